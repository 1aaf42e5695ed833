"""
Current account and foreign current account providers.
"""

from typing import Any, Dict, List, Optional

from ..utils.logging import get_logger
from ..utils.masking import mask_customer_id
from .documents import (
    empty_document,
    filter_transactions_by_date,
    header_text,
    item_list,
    load_document,
    strip_keys,
)

logger = get_logger()

CURRENT_ACCOUNTS_COLLECTION = "currentAccountTransactions"
FOREIGN_CURRENT_ACCOUNTS_COLLECTION = "foreignCurrentAccountTransactions"

_TRANSACTION_KEYS = ("transactions", "transactionsSummary", "pagination")


def _apply_transaction_policy(
    accounts: List[Dict[str, Any]], from_date: str, to_date: str, include_transactions: bool
) -> None:
    for account in accounts:
        if include_transactions:
            filter_transactions_by_date(account, from_date, to_date, ("bookingDate",))
        else:
            strip_keys(account, _TRANSACTION_KEYS)


async def get_current_accounts(  # pylint: disable=too-many-arguments
    # pylint: disable=too-many-positional-arguments
    # Mirrors the provider contract: customer, range, filter, inclusion flag.
    customer_id: str,
    from_date: str,
    to_date: str,
    account_ids: Optional[List[str]] = None,
    include_transactions: bool = True,
    execution_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Current accounts with balances and, optionally, transactions in range.

    Args:
        customer_id: Authenticated customer id
        from_date: Range start, YYYY-MM-DD
        to_date: Range end, YYYY-MM-DD
        account_ids: Keep only these account ids (case-insensitive)
        include_transactions: False drops transactions, summary and pagination
        execution_id: Execution ID for logging

    Returns:
        Provider document with ``data.accounts`` and ``metadata``.
    """
    document = await load_document(CURRENT_ACCOUNTS_COLLECTION, customer_id, execution_id)
    if document is None:
        return empty_document()

    accounts = item_list(document, "accounts")
    if accounts is None:
        return document

    if account_ids:
        wanted = {account_id.lower() for account_id in account_ids}
        accounts[:] = [
            account
            for account in accounts
            if (header_text(account, "account", "accountId") or "").lower() in wanted
        ]

    _apply_transaction_policy(accounts, from_date, to_date, include_transactions)
    logger.debug(
        "provider.current_accounts.fetched",
        execution_id=execution_id,
        customer_id=mask_customer_id(customer_id),
        accounts=len(accounts),
        include_transactions=include_transactions,
    )
    return document


async def get_foreign_current_accounts(  # pylint: disable=too-many-arguments
    # pylint: disable=too-many-positional-arguments
    # Mirrors the provider contract: customer, range, filter, inclusion flag.
    customer_id: str,
    from_date: str,
    to_date: str,
    account_filter: Optional[List[str]] = None,
    include_transactions: bool = True,
    execution_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Foreign currency accounts.

    ``account_filter`` values match either the account id or the account currency
    (e.g. "USD"), case-insensitively.
    """
    document = await load_document(FOREIGN_CURRENT_ACCOUNTS_COLLECTION, customer_id, execution_id)
    if document is None:
        return empty_document()

    accounts = item_list(document, "accounts")
    if accounts is None:
        return document

    if account_filter:
        wanted = {value.lower() for value in account_filter}
        accounts[:] = [
            account
            for account in accounts
            if (header_text(account, "account", "accountId") or "").lower() in wanted
            or (header_text(account, "account", "currency") or "").lower() in wanted
        ]

    _apply_transaction_policy(accounts, from_date, to_date, include_transactions)
    logger.debug(
        "provider.foreign_current_accounts.fetched",
        execution_id=execution_id,
        customer_id=mask_customer_id(customer_id),
        accounts=len(accounts),
        include_transactions=include_transactions,
    )
    return document

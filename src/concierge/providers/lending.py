"""
Loan, mortgage and deposit providers.

All three share one document layout: a list under ``data.<kind>s`` whose entries
carry a ``<kind>`` header block with a nickname, balances and transactions.
"""

from typing import Any, Dict, Optional

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

LOANS_COLLECTION = "loans"
MORTGAGES_COLLECTION = "mortgages"
DEPOSITS_COLLECTION = "deposits"


async def _get_lending_document(  # pylint: disable=too-many-arguments
    # pylint: disable=too-many-positional-arguments
    # Shared body of the three lending providers.
    collection: str,
    kind: str,
    customer_id: str,
    from_date: str,
    to_date: str,
    nickname: Optional[str],
    include_transactions: bool,
    execution_id: Optional[str],
) -> Dict[str, Any]:
    document = await load_document(collection, customer_id, execution_id)
    if document is None:
        return empty_document()

    entries = item_list(document, f"{kind}s")
    if entries is None:
        return document

    if nickname and nickname.strip():
        wanted = nickname.strip().lower()
        # Substring match so "car" finds "Car Loan"
        entries[:] = [
            entry for entry in entries if wanted in (header_text(entry, kind, "nickname") or "\0").lower()
        ]

    for entry in entries:
        if include_transactions:
            filter_transactions_by_date(entry, from_date, to_date, ("bookingDate",))
        else:
            strip_keys(entry, ("transactions", "transactionsSummary"))

    logger.debug(
        f"provider.{collection}.fetched",
        execution_id=execution_id,
        customer_id=mask_customer_id(customer_id),
        entries=len(entries),
        include_transactions=include_transactions,
    )
    return document


async def get_loans(  # pylint: disable=too-many-arguments
    # pylint: disable=too-many-positional-arguments
    # Mirrors the provider contract: customer, range, filter, inclusion flag.
    customer_id: str,
    from_date: str,
    to_date: str,
    nickname: Optional[str] = None,
    include_transactions: bool = True,
    execution_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Loans, optionally filtered by nickname (case-insensitive, partial match)."""
    return await _get_lending_document(
        LOANS_COLLECTION, "loan", customer_id, from_date, to_date, nickname, include_transactions, execution_id
    )


async def get_mortgages(  # pylint: disable=too-many-arguments
    # pylint: disable=too-many-positional-arguments
    # Mirrors the provider contract: customer, range, filter, inclusion flag.
    customer_id: str,
    from_date: str,
    to_date: str,
    nickname: Optional[str] = None,
    include_transactions: bool = True,
    execution_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Mortgages, optionally filtered by nickname (case-insensitive, partial match)."""
    return await _get_lending_document(
        MORTGAGES_COLLECTION,
        "mortgage",
        customer_id,
        from_date,
        to_date,
        nickname,
        include_transactions,
        execution_id,
    )


async def get_deposits(  # pylint: disable=too-many-arguments
    # pylint: disable=too-many-positional-arguments
    # Mirrors the provider contract: customer, range, filter, inclusion flag.
    customer_id: str,
    from_date: str,
    to_date: str,
    nickname: Optional[str] = None,
    include_transactions: bool = True,
    execution_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Deposits, optionally filtered by nickname (case-insensitive, partial match)."""
    return await _get_lending_document(
        DEPOSITS_COLLECTION,
        "deposit",
        customer_id,
        from_date,
        to_date,
        nickname,
        include_transactions,
        execution_id,
    )

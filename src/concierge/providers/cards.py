"""
Credit card provider.
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

CREDIT_CARDS_COLLECTION = "creditCards"


def _last4(masked_pan: Optional[str]) -> Optional[str]:
    # "**** **** **** 1234" -> "1234"
    if not masked_pan or not masked_pan.strip():
        return None
    return masked_pan.split()[-1]


async def get_credit_cards(  # pylint: disable=too-many-arguments
    # pylint: disable=too-many-positional-arguments
    # Mirrors the provider contract: customer, range, filter, inclusion flag.
    customer_id: str,
    from_date: str,
    to_date: str,
    last4_digits: Optional[str] = None,
    include_transactions: bool = True,
    execution_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Credit cards with balances, limits and, optionally, transactions in range.

    Card transactions are dated by ``transactionDate``, falling back to
    ``postingDate``.

    Args:
        customer_id: Authenticated customer id
        from_date: Range start, YYYY-MM-DD
        to_date: Range end, YYYY-MM-DD
        last4_digits: Keep only the card whose masked PAN ends with these digits
        include_transactions: False drops transactions and summary
        execution_id: Execution ID for logging

    Returns:
        Provider document with ``data.cards`` and ``metadata``.
    """
    document = await load_document(CREDIT_CARDS_COLLECTION, customer_id, execution_id)
    if document is None:
        return empty_document()

    cards = item_list(document, "cards")
    if cards is None:
        return document

    if last4_digits and last4_digits.strip():
        wanted = last4_digits.strip()
        cards[:] = [card for card in cards if _last4(header_text(card, "card", "maskedPan")) == wanted]

    for card in cards:
        if include_transactions:
            filter_transactions_by_date(card, from_date, to_date, ("transactionDate", "postingDate"))
        else:
            strip_keys(card, ("transactions", "transactionsSummary"))

    logger.debug(
        "provider.credit_cards.fetched",
        execution_id=execution_id,
        customer_id=mask_customer_id(customer_id),
        cards=len(cards),
        include_transactions=include_transactions,
    )
    return document

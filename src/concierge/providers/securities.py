"""
Securities (investment account) provider.
"""

from typing import Any, Dict, Optional

from ..utils.logging import get_logger
from ..utils.masking import mask_customer_id
from .documents import empty_document, item_list, load_document, strip_keys

logger = get_logger()

SECURITIES_COLLECTION = "securities"


async def get_securities(
    customer_id: str,
    include_positions: bool = True,
    execution_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Securities accounts with valuation and, optionally, positions.

    Securities are valued as of the document date, so no date range applies.
    """
    document = await load_document(SECURITIES_COLLECTION, customer_id, execution_id)
    if document is None:
        return empty_document()

    accounts = item_list(document, "accounts")
    if accounts is None:
        return document

    if not include_positions:
        for account in accounts:
            strip_keys(account, ("positions",))

    logger.debug(
        "provider.securities.fetched",
        execution_id=execution_id,
        customer_id=mask_customer_id(customer_id),
        accounts=len(accounts),
        include_positions=include_positions,
    )
    return document

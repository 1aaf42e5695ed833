"""
Customer banking documents stored as JSONB in PostgreSQL.

Each provider reads one document per customer from the ``bank_documents`` table
(``collection``, ``customer_id``, ``document``) and filters a copy of it. The
stored document is never modified.
"""

import copy
import json
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from ..connections.postgres_connector import fetch_one
from ..utils.errors import ProviderError
from ..utils.logging import get_logger
from ..utils.masking import mask_customer_id
from ..utils.settings import config

logger = get_logger()


def empty_document() -> Dict[str, Any]:
    return {"data": {}, "metadata": {}}


async def load_document(
    collection: str, customer_id: str, execution_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Load a customer's document from a collection.

    Args:
        collection: Document collection, e.g. "creditCards"
        customer_id: Authenticated customer id
        execution_id: Execution ID for logging

    Returns:
        The document, or None if the customer has none in this collection.

    Raises:
        ProviderError: If the stored document is not a JSON object.
    """
    row = await fetch_one(
        f"SELECT document FROM {config.bank_documents_table} "
        "WHERE collection = :collection AND customer_id = :customer_id",
        {"collection": collection, "customer_id": customer_id},
        execution_id=execution_id,
    )
    if row is None:
        logger.info(
            "provider.document_missing",
            execution_id=execution_id,
            collection=collection,
            customer_id=mask_customer_id(customer_id),
        )
        return None

    document = row.get("document")
    # asyncpg hands JSONB back as text unless a codec is registered
    if isinstance(document, (str, bytes)):
        document = json.loads(document)
    if not isinstance(document, dict):
        raise ProviderError(collection, "stored document is not an object")
    return copy.deepcopy(document)


def item_list(document: Dict[str, Any], key: str) -> Optional[List[Dict[str, Any]]]:
    data = document.get("data")
    if not isinstance(data, dict):
        return None
    items = data.get(key)
    return items if isinstance(items, list) else None


def _parse_date(value: Any) -> Optional[date]:
    return date.fromisoformat(value) if isinstance(value, str) else None


def filter_transactions_by_date(
    item: Dict[str, Any], from_date: str, to_date: str, date_keys: Iterable[str]
) -> None:
    """
    Keep transactions whose first present date key falls within the range.

    Undated transactions are kept; unparseable dates are dropped. The summary's
    ``transactionCount`` is updated to the filtered count.
    """
    transactions = item.get("transactions")
    if not isinstance(transactions, list) or not transactions:
        return

    start = date.fromisoformat(from_date)
    end = date.fromisoformat(to_date)
    keys = list(date_keys)

    kept = []
    for transaction in transactions:
        raw = next((transaction.get(key) for key in keys if transaction.get(key) is not None), None)
        if raw is None:
            kept.append(transaction)
            continue
        try:
            booked = _parse_date(raw)
        except ValueError:
            continue
        if booked is not None and start <= booked <= end:
            kept.append(transaction)

    item["transactions"] = kept
    summary = item.get("transactionsSummary")
    if isinstance(summary, dict):
        summary["transactionCount"] = len(kept)


def strip_keys(item: Dict[str, Any], keys: Iterable[str]) -> None:
    for key in keys:
        item.pop(key, None)


def header_text(item: Dict[str, Any], header_key: str, field_name: str) -> Optional[str]:
    header = item.get(header_key)
    if not isinstance(header, dict):
        return None
    value = header.get(field_name)
    return value if isinstance(value, str) else None

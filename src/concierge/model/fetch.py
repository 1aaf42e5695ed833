"""
Data fetch coordinator.

Maps each resolved banking intent to one provider call and decodes the provider
document into its typed response at this boundary. The customer id always comes
from the authenticated request, never from message text. A failing intent is
logged and skipped; the remaining intents are still fetched.
"""

from typing import Any, Dict, List, Optional

from .. import providers
from ..utils.logging import get_logger
from ..utils.masking import is_masked, mask_customer_id
from ..utils.session import EntityHints, TimeRange
from .normalization.raw import RawResponse, decode_response
from .state import Intent

logger = get_logger()

_NICKNAME_ENTITY_KEYS = {
    "loans": "loanIds",
    "mortgages": "mortgageIds",
    "deposits": "depositIds",
}


def include_transactions_for(metric: Optional[str]) -> bool:
    """Only a balance question can be answered without transactions."""
    return (metric or "").lower() != "balance"


def filter_masked_ids(identifiers: Optional[List[str]]) -> Optional[List[str]]:
    """
    Drop masked display values such as ``"****1234"``.

    Returns:
        The usable identifiers, or None when nothing usable remains (fetch all).
    """
    if not identifiers:
        return None
    usable = [identifier for identifier in identifiers if not is_masked(identifier)]
    return usable or None


def extract_nickname(intent: Intent) -> Optional[str]:
    """Nickname filter for a lending intent: parameters, then card ids, then domain ids."""
    nickname = intent.parameters.get("nickname") if intent.parameters else None
    if isinstance(nickname, str) and nickname.strip():
        return nickname.strip()

    hints = intent.entity_hints
    if hints is None:
        return None
    if hints.card_ids:
        return hints.card_ids[0]

    candidates = hints.other_entities.get(_NICKNAME_ENTITY_KEYS.get(intent.domain, ""), [])
    return candidates[0] if candidates else None


def _first_card(hints: Optional[EntityHints]) -> Optional[str]:
    if hints is None or not hints.card_ids:
        return None
    return hints.card_ids[0]


async def _call_provider(
    intent: Intent, customer_id: str, time_range: TimeRange, execution_id: Optional[str]
) -> Dict[str, Any]:
    include_transactions = include_transactions_for(intent.metric)
    account_ids = filter_masked_ids(intent.entity_hints.account_ids if intent.entity_hints else None)
    from_date, to_date = time_range.from_date, time_range.to_date

    if intent.domain == "current-accounts":
        return await providers.get_current_accounts(
            customer_id, from_date, to_date, account_ids, include_transactions, execution_id
        )
    if intent.domain == "foreign-current-accounts":
        return await providers.get_foreign_current_accounts(
            customer_id, from_date, to_date, account_ids, include_transactions, execution_id
        )
    if intent.domain == "credit-cards":
        return await providers.get_credit_cards(
            customer_id, from_date, to_date, _first_card(intent.entity_hints), include_transactions, execution_id
        )
    if intent.domain == "loans":
        return await providers.get_loans(
            customer_id, from_date, to_date, extract_nickname(intent), include_transactions, execution_id
        )
    if intent.domain == "mortgages":
        return await providers.get_mortgages(
            customer_id, from_date, to_date, extract_nickname(intent), include_transactions, execution_id
        )
    if intent.domain == "deposits":
        return await providers.get_deposits(
            customer_id, from_date, to_date, extract_nickname(intent), include_transactions, execution_id
        )
    if intent.domain == "securities":
        return await providers.get_securities(customer_id, include_transactions, execution_id)

    raise ValueError(f"Unknown domain: {intent.domain}")


async def fetch_for_intents(
    intents: List[Intent],
    customer_id: str,
    time_range: TimeRange,
    execution_id: Optional[str] = None,
    used_default_time_range: bool = False,
) -> Dict[str, Any]:
    """
    Fetch provider data for every banking intent.

    Args:
        intents: Resolved intents; UNKNOWN ones are skipped
        customer_id: Authenticated customer id
        time_range: Absolute range applied to every provider
        execution_id: Execution ID for logging
        used_default_time_range: Whether the range is the default, for the plan

    Returns:
        Dictionary with ``responses`` (typed RawResponse list, in intent order) and
        ``execution_plan`` (fromDate, toDate, usingDefaultTimeRange, intentCount,
        fetched, failed).
    """
    responses: List[RawResponse] = []
    failed: List[Dict[str, str]] = []
    banking_intents = [intent for intent in intents if intent.domain and not intent.is_unknown]

    for intent in banking_intents:
        try:
            document = await _call_provider(intent, customer_id, time_range, execution_id)
            response = decode_response(intent.domain, document)
            responses.append(response)
            logger.info(
                "fetch.intent_completed",
                execution_id=execution_id,
                domain=intent.domain,
                metric=intent.metric,
                items=len(response.items),
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            # One domain failing must not lose the data of the others.
            logger.error(
                "fetch.intent_failed",
                execution_id=execution_id,
                domain=intent.domain,
                customer_id=mask_customer_id(customer_id),
                error=str(e),
            )
            failed.append({"domain": intent.domain, "error": str(e)})

    execution_plan = {
        "fromDate": time_range.from_date,
        "toDate": time_range.to_date,
        "usingDefaultTimeRange": used_default_time_range,
        "intentCount": len(intents),
        "fetched": [response.domain for response in responses],
        "failed": failed,
    }
    return {"responses": responses, "execution_plan": execution_plan}

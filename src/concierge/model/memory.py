"""
Conversation memory.

Keeps a short digest of each answered banking turn on the session so follow-up
messages can be interpreted without replaying full data. The log is FIFO-capped;
the newest few entries are replayed to the model as user/assistant pairs.
"""

from typing import Dict, List, Optional

from ..utils.logging import get_logger
from ..utils.session import ConversationSummary, SessionContext, TimeRange
from ..utils.settings import config
from .normalization.models import NormalizedData

logger = get_logger()


def build_summary(normalized: NormalizedData, time_range: Optional[TimeRange]) -> Optional[str]:
    """
    Digest one domain's result, e.g.
    ``domain=loans, timeRange=2025-12-01 to 2025-12-13, entities=[Car Loan], transactions=excluded``.
    """
    if not normalized.domain:
        return None

    identifiers = []
    for entity in normalized.entities:
        identifier = entity.nickname if entity.nickname and entity.nickname.strip() else entity.entity_id
        if identifier and identifier.strip():
            identifiers.append(identifier)

    transactions = "included" if any(entity.has_transactions() for entity in normalized.entities) else "excluded"
    time_range_text = str(time_range) if time_range is not None else "unknown"

    return (
        f"domain={normalized.domain}, timeRange={time_range_text}, "
        f"entities=[{','.join(identifiers)}], transactions={transactions}"
    )


def append_summary(
    session: SessionContext,
    user_message: str,
    response_summary: str,
    max_entries: Optional[int] = None,
) -> None:
    """Append a summary, evicting the oldest entries beyond the cap."""
    limit = max_entries or config.max_conversation_summaries
    session.conversation_summaries.append(
        ConversationSummary(user_message=user_message, response_summary=response_summary)
    )
    overflow = len(session.conversation_summaries) - limit
    if overflow > 0:
        del session.conversation_summaries[:overflow]


def record_turn(
    session: SessionContext,
    user_message: str,
    normalized_data: List[NormalizedData],
    time_range: Optional[TimeRange],
    execution_id: Optional[str] = None,
) -> int:
    """
    Add one summary per normalized domain.

    Returns:
        Number of summaries added
    """
    added = 0
    for normalized in normalized_data:
        summary = build_summary(normalized, time_range)
        if summary is None:
            continue
        append_summary(session, user_message, summary)
        added += 1
        logger.debug("memory.summary_added", execution_id=execution_id, summary=summary)

    if added:
        logger.info(
            "memory.turn_recorded",
            execution_id=execution_id,
            added=added,
            total=len(session.conversation_summaries),
        )
    return added


def recent_turns(session: SessionContext, limit: Optional[int] = None) -> List[Dict[str, str]]:
    """
    Replay the newest summaries as chat messages, oldest first.

    Returns:
        Alternating user/assistant message dictionaries
    """
    count = limit or config.max_history_turns
    messages = []
    for summary in session.conversation_summaries[-count:]:
        messages.append({"role": "user", "content": summary.user_message})
        messages.append({"role": "assistant", "content": f"Previous response: {summary.response_summary}"})
    return messages

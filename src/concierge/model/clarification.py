"""
Clarification coordinator.

A session has at most one open clarification question. ``ask_clarifier`` opens
it and produces the reply that ends the turn; ``apply_clarification`` consumes
it on the next message, hands the answer to the intent resolver as grounding and
clears it whether or not the answer turns out to be usable. No other module sets
``SessionContext.clarification_state``; the only other place it is cleared is
``SessionContext.clear_carried_context`` when an idle session expires.
"""

from datetime import date
from typing import Optional

from ..utils.logging import get_logger
from ..utils.session import ClarificationState
from .state import ChatResponse, OrchestrationState
from .time_range import default_time_range

logger = get_logger()

INTENT_EXTRACTION_FAILED = "intent_extraction_failed"
DEFAULT_DOMAIN = "current-accounts"
DEFAULT_ACCOUNT_SELECTION = (
    "main account (account with 'Main' or 'Primary' in nickname, or first account if multiple exist)"
)

_QUESTIONS = {
    "domain": (
        "Which type of information are you looking for? "
        "(e.g., accounts, credit cards, loans, mortgages, deposits, securities)"
    ),
    "metric": "What would you like to know? (e.g., balance, list of transactions, total amount, count)",
    "time_range": (
        "Which time period would you like? (e.g., last week, last month, yesterday, or specific dates)"
    ),
    "account_selection": (
        "Which account would you like to check? (e.g., main account, or specify account number)"
    ),
    INTENT_EXTRACTION_FAILED: "I couldn't quite understand your request. Could you please rephrase it?",
}

_EXPECTED_ANSWER_TYPES = {
    "time_range": "time_range",
    "account_selection": "account",
    "domain": "domain",
    "metric": "metric",
}

_BALANCE_DOMAINS = ("current-accounts", "loans", "mortgages", "deposits")


def clarification_question(reason: Optional[str]) -> str:
    """The fixed question asked for a clarification reason."""
    if reason is None:
        return "Could you please provide more details about your request?"
    return _QUESTIONS.get(reason.lower(), f"Could you please provide more details about: {reason}?")


def expected_answer_type(reason: Optional[str]) -> str:
    if reason is None:
        return "text"
    return _EXPECTED_ANSWER_TYPES.get(reason.lower(), "text")


def default_metric_for_domain(domain: Optional[str]) -> str:
    """Metric assumed when the customer does not say what they want to know."""
    return "balance" if (domain or "").lower() in _BALANCE_DOMAINS else "list"


def default_for_context(
    clarification_context: Optional[str],
    timezone_name: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    """
    Describe the default that replaces an unusable clarification answer.

    Args:
        clarification_context: Reason the question was asked
        timezone_name: Customer timezone, for the default time range
        today: Override for the current date

    Returns:
        Human-readable default handed to the intent resolver.
    """
    if clarification_context is None:
        return "No default specified"

    reason = clarification_context.lower()
    if reason == "time_range":
        default_range = default_time_range(timezone_name, today=today)
        return f"Time range default: {default_range} (start of current month to today)"
    if reason == "account_selection":
        return f"Account selection default: {DEFAULT_ACCOUNT_SELECTION}"
    if reason == "metric":
        return "Metric default: 'list' (or 'balance' for account-related domains)"
    if reason == "domain":
        return f"Domain default: {DEFAULT_DOMAIN}"
    return f"Default for {clarification_context}: Use sensible default based on context"


def apply_clarification(state: OrchestrationState) -> OrchestrationState:
    """
    Consume the session's open question using this message as the answer.

    If the session claims to be awaiting an answer but holds no question, the flag
    is cleared and the message is handled as a normal turn.
    """
    open_question = state.session.clarification_state
    if open_question is None:
        logger.warning("clarification.state_missing", execution_id=state.correlation_id)
        state.awaiting_clarification = False
        return state

    state.clarification_question = open_question.question
    state.clarification_answer = state.message_text
    state.clarification_context = open_question.clarification_context
    state.expected_answer_type = open_question.expected_answer_type

    state.session.clarification_state = None
    state.awaiting_clarification = False

    logger.info(
        "clarification.applied",
        execution_id=state.correlation_id,
        context=state.clarification_context,
        expected_type=state.expected_answer_type,
    )
    return state


def ask_clarifier(state: OrchestrationState, reason: Optional[str] = None) -> ChatResponse:
    """
    Open a clarification question and build the reply that ends this turn.

    Args:
        state: Request state; ``clarification_needed`` is used when no reason is given
        reason: Reason code (domain, metric, time_range, account_selection, ...)

    Returns:
        The response carrying the question, also stored on ``state.response``.
    """
    reason = reason if reason is not None else state.clarification_needed
    question = clarification_question(reason)

    state.session.clarification_state = ClarificationState(
        question=question,
        expected_answer_type=expected_answer_type(reason),
        clarification_context=reason,
    )

    state.response = ChatResponse(
        answer=question,
        correlation_id=state.correlation_id,
        explanation=f"Clarification needed: {reason}",
    )
    logger.info("clarification.asked", execution_id=state.correlation_id, reason=reason)
    return state.response


def clarification_fallback_response(correlation_id: str, reason: Optional[str]) -> ChatResponse:
    """Reply used when the clarifier itself fails."""
    question = (
        f"Could you please provide more details about: {reason}?"
        if reason is not None
        else "Could you please provide more details about your request?"
    )
    return ChatResponse(
        answer=question,
        correlation_id=correlation_id,
        explanation=f"Clarification needed: {reason if reason is not None else 'unknown'}",
    )

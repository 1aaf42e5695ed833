"""
Conversation pipeline.

``process_message`` runs one customer message through the stages below, in
order, on a fresh ``OrchestrationState``:

    LOAD_CONTEXT -> APPLY_CLARIFICATION (only if a question is open)
    -> RESOLVE_INTENT -> [conversational reply and stop if every intent is UNKNOWN]
    -> RESOLVE_TIME_RANGE -> [ask a clarification question and stop if needed]
    -> FETCH -> NORMALIZE -> record conversation summary -> DRAFT
    -> SAVE_CONTEXT -> RESPOND

Every stage logs ``model.stage.<name>.started``/``.completed`` and adds one
monitor entry. Any exception is turned into a generic error reply; nothing
propagates past ``process_message``.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..utils.logging import get_logger
from ..utils.masking import mask_customer_id
from ..utils.monitor import add_monitor_entry
from ..utils.session import ResolvedIntent, SessionContext, SessionDefaults
from ..utils.settings import config
from .agents import draft_response, extract_intent, generate_conversational_reply
from .clarification import (
    INTENT_EXTRACTION_FAILED,
    apply_clarification,
    ask_clarifier,
    clarification_fallback_response,
    default_for_context,
)
from .fetch import fetch_for_intents
from .memory import recent_turns, record_turn
from .normalization import normalize_all
from .state import ChatResponse, Intent, OrchestrationState
from .time_range import default_time_range, resolve_time_range

MODEL_NAME = "concierge"

ORCHESTRATION_ERROR_ANSWER = "I encountered an error processing your request. Please try again."
UNKNOWN_FALLBACK_ANSWER = "Hello! How can I assist you with your banking needs today?"


def _llm_calls(result: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    if not result.get("tokens_used"):
        return None
    return [
        {
            "model": result.get("model_used") or "unknown",
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "total_tokens": result.get("tokens_used", 0),
            "cost": result.get("cost", 0),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    ]


def _load_context(state: OrchestrationState) -> None:
    logger = get_logger()
    execution_id = state.correlation_id
    session = state.session

    logger.info("model.stage.load_context.started", execution_id=execution_id)
    stage_start = datetime.now(timezone.utc)

    expired = session.is_idle_expired(timedelta(minutes=config.session_ttl_minutes))
    if expired:
        session.clear_carried_context()
        logger.info(
            "model.session.idle_expired",
            execution_id=execution_id,
            customer_id=mask_customer_id(state.customer_id),
            ttl_minutes=config.session_ttl_minutes,
        )
    session.touch()

    if session.defaults is None:
        session.defaults = SessionDefaults()

    state.awaiting_clarification = session.awaiting_clarification
    state.carried_intent = session.last_resolved_intent
    state.carried_time_range = session.last_resolved_time_range

    logger.info(
        "model.stage.load_context.completed",
        execution_id=execution_id,
        expired=expired,
        awaiting_clarification=state.awaiting_clarification,
        has_carried_intent=state.carried_intent is not None,
        has_carried_time_range=state.carried_time_range is not None,
        summaries=len(session.conversation_summaries),
    )
    add_monitor_entry(
        stage_name="Load_Context",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status="Success",
        decision_details="Carried context cleared after idle timeout" if expired else "Session context loaded",
        custom_metadata={
            "awaiting_clarification": state.awaiting_clarification,
            "carried_domain": state.carried_intent.domain if state.carried_intent else None,
            "carried_time_range": str(state.carried_time_range) if state.carried_time_range else None,
        },
    )


def _apply_clarification(state: OrchestrationState) -> None:
    logger = get_logger()
    logger.info("model.stage.apply_clarification.started", execution_id=state.correlation_id)
    stage_start = datetime.now(timezone.utc)

    apply_clarification(state)

    logger.info(
        "model.stage.apply_clarification.completed",
        execution_id=state.correlation_id,
        context=state.clarification_context,
        has_answer=state.clarification_answer is not None,
    )
    add_monitor_entry(
        stage_name="Apply_Clarification",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status="Success",
        decision_details=(
            f"Answer applied for {state.clarification_context}"
            if state.clarification_answer is not None
            else "No open question found; handled as a new request"
        ),
    )


async def _resolve_intent(state: OrchestrationState, context: Dict[str, Any]) -> Dict[str, Any]:
    logger = get_logger()
    execution_id = state.correlation_id

    logger.info("model.stage.resolve_intent.started", execution_id=execution_id)
    stage_start = datetime.now(timezone.utc)

    grounding = state.clarification_grounding()
    if grounding is not None:
        grounding["default"] = default_for_context(state.clarification_context, state.session.timezone)

    result = await extract_intent(
        state.message_text,
        context,
        clarification=grounding,
        history=recent_turns(state.session),
        previous_intent=state.carried_intent,
    )

    if result["status"] == "Success" and result["intents"]:
        state.intents = result["intents"]
        state.confidence = result.get("confidence")
        state.needs_clarification = result.get("needs_clarification", False)
        state.clarification_needed = result.get("clarification_needed")
        state.used_default = result.get("used_default", False)
        state.default_reason = result.get("default_reason")
    else:
        # No usable intent: ask the customer to rephrase
        state.intents = []
        state.needs_clarification = True
        state.clarification_needed = INTENT_EXTRACTION_FAILED

    logger.info(
        "model.stage.resolve_intent.completed",
        execution_id=execution_id,
        status=result["status"],
        intents=[f"{intent.domain}/{intent.metric}" for intent in state.intents],
        needs_clarification=state.needs_clarification,
        used_default=state.used_default,
    )
    add_monitor_entry(
        stage_name="Resolve_Intent",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status=result["status"],
        decision_details=(
            f"Resolved {len(state.intents)} intent(s)"
            if state.intents
            else f"Clarification needed: {state.clarification_needed}"
        ),
        error_message=result.get("error"),
        llm_calls=_llm_calls(result),
        custom_metadata={
            "intents": [intent.to_dict() for intent in state.intents],
            "confidence": state.confidence,
            "needs_clarification": state.needs_clarification,
            "clarification_needed": state.clarification_needed,
            "used_default": state.used_default,
            "default_reason": state.default_reason,
            "prompt_version": result.get("prompt_version"),
        },
    )
    return result


async def _conversational_reply(state: OrchestrationState, context: Dict[str, Any]) -> ChatResponse:
    logger = get_logger()
    execution_id = state.correlation_id

    logger.info("model.stage.conversational.started", execution_id=execution_id)
    stage_start = datetime.now(timezone.utc)

    result = await generate_conversational_reply(state.message_text, context, history=recent_turns(state.session))
    if result["status"] == "Success":
        response = ChatResponse(
            answer=result["answer"],
            correlation_id=state.correlation_id,
            explanation="Conversational response for UNKNOWN intent",
        )
    else:
        response = ChatResponse(
            answer=UNKNOWN_FALLBACK_ANSWER,
            correlation_id=state.correlation_id,
            explanation="Fallback response for UNKNOWN intent",
        )

    logger.info("model.stage.conversational.completed", execution_id=execution_id, status=result["status"])
    add_monitor_entry(
        stage_name="Conversational",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status=result["status"],
        decision_details=response.explanation,
        error_message=result.get("error"),
        llm_calls=_llm_calls(result),
    )
    return response


async def _resolve_time_range(state: OrchestrationState, context: Dict[str, Any]) -> None:
    logger = get_logger()
    execution_id = state.correlation_id
    timezone_name = state.session.timezone

    logger.info("model.stage.resolve_time_range.started", execution_id=execution_id)
    stage_start = datetime.now(timezone.utc)

    hint = next((intent.time_range_hint for intent in state.banking_intents if intent.time_range_hint), None)
    result: Dict[str, Any] = {}
    if hint is not None:
        result = await resolve_time_range(hint, timezone_name, context)
        state.time_range = result["time_range"]
        state.time_range_source = result["source"]
    elif state.carried_time_range is not None:
        # Follow-up without a new time expression keeps the previous range
        state.time_range = state.carried_time_range
        state.time_range_source = "carried"
    else:
        state.time_range = default_time_range(timezone_name)
        state.time_range_source = "default"

    logger.info(
        "model.stage.resolve_time_range.completed",
        execution_id=execution_id,
        hint=hint,
        source=state.time_range_source,
        from_date=state.time_range.from_date,
        to_date=state.time_range.to_date,
    )
    add_monitor_entry(
        stage_name="Resolve_Time_Range",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status="Success",
        decision_details=f"{state.time_range} ({state.time_range_source})",
        llm_calls=_llm_calls(result),
        custom_metadata={"hint": hint, "source": state.time_range_source, **state.time_range.to_dict()},
    )


def _ask_clarification(state: OrchestrationState) -> ChatResponse:
    logger = get_logger()
    execution_id = state.correlation_id

    logger.info("model.stage.clarification.started", execution_id=execution_id)
    stage_start = datetime.now(timezone.utc)

    error = None
    try:
        response = ask_clarifier(state)
    except Exception as e:  # pylint: disable=broad-exception-caught
        # The customer still gets a question, just not a tailored one.
        logger.error("model.clarification.failed", execution_id=execution_id, error=str(e))
        error = str(e)
        response = clarification_fallback_response(state.correlation_id, state.clarification_needed)

    logger.info(
        "model.stage.clarification.completed",
        execution_id=execution_id,
        reason=state.clarification_needed,
    )
    add_monitor_entry(
        stage_name="Clarification",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status="Success" if error is None else "Failure",
        decision_details=response.explanation,
        error_message=error,
    )
    return response


async def _fetch(state: OrchestrationState) -> None:
    logger = get_logger()
    execution_id = state.correlation_id

    logger.info("model.stage.fetch.started", execution_id=execution_id)
    stage_start = datetime.now(timezone.utc)

    result = await fetch_for_intents(
        state.intents,
        state.customer_id,
        state.time_range,
        execution_id=execution_id,
        used_default_time_range=state.time_range_source == "default",
    )
    state.raw_responses = result["responses"]
    state.execution_plan = result["execution_plan"]

    failed = state.execution_plan.get("failed", [])
    logger.info(
        "model.stage.fetch.completed",
        execution_id=execution_id,
        fetched=state.execution_plan.get("fetched"),
        failed=len(failed),
    )
    add_monitor_entry(
        stage_name="Fetch",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status="Success" if not failed else "Partial",
        decision_details=f"Fetched {len(state.raw_responses)} domain(s)",
        error_message="; ".join(f"{item['domain']}: {item['error']}" for item in failed) or None,
        custom_metadata=state.execution_plan,
    )


def _normalize(state: OrchestrationState) -> None:
    logger = get_logger()
    execution_id = state.correlation_id

    logger.info("model.stage.normalize.started", execution_id=execution_id)
    stage_start = datetime.now(timezone.utc)

    state.normalized_data = normalize_all(state.raw_responses, execution_id)

    entity_count = sum(len(data.entities) for data in state.normalized_data)
    logger.info(
        "model.stage.normalize.completed",
        execution_id=execution_id,
        domains=len(state.normalized_data),
        entities=entity_count,
    )
    add_monitor_entry(
        stage_name="Normalize",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status="Success",
        decision_details=f"Normalized {len(state.normalized_data)} of {len(state.raw_responses)} response(s)",
        custom_metadata={"domains": [data.domain for data in state.normalized_data], "entities": entity_count},
    )


async def _draft(state: OrchestrationState, context: Dict[str, Any], history: List[Dict[str, str]]) -> ChatResponse:
    logger = get_logger()
    execution_id = state.correlation_id

    logger.info("model.stage.draft.started", execution_id=execution_id)
    stage_start = datetime.now(timezone.utc)

    result = await draft_response(
        state.message_text,
        state.normalized_data,
        state.intents,
        state.time_range,
        context,
        history=history,
    )
    response = result["response"]

    logger.info(
        "model.stage.draft.completed",
        execution_id=execution_id,
        status=result["status"],
        tables=len(response.tables),
    )
    add_monitor_entry(
        stage_name="Draft",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status=result["status"],
        decision_details=response.explanation,
        error_message=result.get("error"),
        llm_calls=_llm_calls(result),
        custom_metadata={"tables": len(response.tables), "prompt_version": result.get("prompt_version")},
    )
    return response


def _save_context(state: OrchestrationState) -> None:
    logger = get_logger()
    execution_id = state.correlation_id
    session = state.session

    logger.info("model.stage.save_context.started", execution_id=execution_id)
    stage_start = datetime.now(timezone.utc)

    primary = state.banking_intents[0] if state.banking_intents else None
    if primary is not None:
        session.last_resolved_intent = ResolvedIntent(
            domain=primary.domain, metric=primary.metric, parameters=dict(primary.parameters)
        )
        session.last_selected_entities = primary.entity_hints
    if state.time_range is not None:
        session.last_resolved_time_range = state.time_range

    logger.info(
        "model.stage.save_context.completed",
        execution_id=execution_id,
        domain=primary.domain if primary else None,
        time_range=str(state.time_range) if state.time_range else None,
    )
    add_monitor_entry(
        stage_name="Save_Context",
        stage_start_time=stage_start,
        stage_end_time=datetime.now(timezone.utc),
        status="Success",
        decision_details="Follow-up context saved",
    )


async def _run_pipeline(state: OrchestrationState, context: Dict[str, Any]) -> ChatResponse:
    _load_context(state)

    if state.awaiting_clarification:
        _apply_clarification(state)

    await _resolve_intent(state, context)

    if state.all_intents_unknown():
        return await _conversational_reply(state, context)

    if state.needs_clarification and state.clarification_needed == INTENT_EXTRACTION_FAILED:
        return _ask_clarification(state)

    await _resolve_time_range(state, context)

    if state.needs_clarification:
        return _ask_clarification(state)

    await _fetch(state)
    _normalize(state)

    history = recent_turns(state.session)
    record_turn(state.session, state.message_text, state.normalized_data, state.time_range, state.correlation_id)

    response = await _draft(state, context, history)
    _save_context(state)
    return response


async def process_message(
    customer_id: str,
    correlation_id: str,
    message_text: str,
    session: SessionContext,
    context: Dict[str, Any],
) -> ChatResponse:
    """
    Answer one customer message.

    The caller owns the session and must serialize calls for the same customer.

    Args:
        customer_id: Authenticated customer id
        correlation_id: Id of this request, used as execution_id in logs
        message_text: Customer message in English
        session: The customer's session, updated in place
        context: Runtime context (execution_id, auth_config, ssl_config)

    Returns:
        The reply. Never raises.
    """
    logger = get_logger()
    logger.info(
        "model.process_message.started",
        execution_id=correlation_id,
        customer_id=mask_customer_id(customer_id),
        message_length=len(message_text or ""),
    )

    state = OrchestrationState(
        customer_id=customer_id,
        correlation_id=correlation_id,
        message_text=message_text,
        session=session,
    )

    try:
        state.response = await _run_pipeline(state, context)
    except Exception as e:  # pylint: disable=broad-exception-caught
        # Internal error text goes to the explanation channel only.
        logger.error("model.process_message.error", execution_id=correlation_id, error=str(e))
        add_monitor_entry(
            stage_name="Orchestration_Error",
            stage_start_time=datetime.now(timezone.utc),
            status="Failure",
            error_message=str(e),
        )
        state.response = ChatResponse(
            answer=ORCHESTRATION_ERROR_ANSWER,
            correlation_id=correlation_id,
            explanation=f"Orchestration error: {e}",
        )

    state.response.correlation_id = correlation_id
    logger.info(
        "model.process_message.completed",
        execution_id=correlation_id,
        explanation=state.response.explanation,
        tables=len(state.response.tables),
    )
    return state.response

"""
Chat gateway.

Entry point for one customer message: validates the customer id, prepares the
runtime context (SSL, authentication, monitoring), screens and translates the
message, runs the conversation pipeline under the customer's session lock and
translates the reply back into the language of this turn.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .connections.oauth_connector import setup_authentication
from .model.agents import check_message, translate_inbound, translate_outbound, translation_needed
from .model.agents.guard import DEFAULT_REJECTION
from .model.main import MODEL_NAME, process_message
from .model.state import ChatResponse
from .utils.errors import MaliciousContentError, MissingCustomerIdError
from .utils.language import detect_language
from .utils.logging import get_logger
from .utils.masking import mask_customer_id
from .utils.monitor import add_monitor_entry, initialize_monitor, post_monitor_entries_async
from .utils.session import SessionContext, SessionStore
from .utils.ssl import setup_ssl

_session_store: Optional[SessionStore] = None

REJECTION_MESSAGES = {
    "en": DEFAULT_REJECTION,
    "he": "ההודעה מכילה תוכן שעלול להיות זדוני ולא ניתן לעבד אותה.",
}


def get_session_store() -> SessionStore:
    """Process-wide session store, created on first use."""
    global _session_store  # pylint: disable=global-statement
    if _session_store is None:
        _session_store = SessionStore()
    return _session_store


def rejection_message(language_code: Optional[str]) -> str:
    return REJECTION_MESSAGES.get(language_code or "en", DEFAULT_REJECTION)


def validate_customer_id(customer_id_header: Optional[str]) -> str:
    """
    Return the trimmed customer id from the request header.

    Raises:
        MissingCustomerIdError: If the header is missing or blank.
    """
    if customer_id_header is None or not customer_id_header.strip():
        get_logger().error("gateway.missing_customer_id")
        raise MissingCustomerIdError("Customer ID header is required")
    return customer_id_header.strip()


async def _build_context(execution_id: str) -> Dict[str, Any]:
    logger = get_logger()

    logger.info("gateway.stage.ssl_setup.started", execution_id=execution_id)
    ssl_start = datetime.now(timezone.utc)
    ssl_config = setup_ssl()
    logger.info(
        "gateway.stage.ssl_setup.completed",
        execution_id=execution_id,
        status=ssl_config.get("status", "Unknown"),
        verify=ssl_config.get("verify", False),
    )
    add_monitor_entry(
        stage_name="SSL_Setup",
        stage_start_time=ssl_start,
        stage_end_time=datetime.now(timezone.utc),
        status=ssl_config.get("status", "Unknown"),
        decision_details=ssl_config.get("decision_details", "SSL setup completed"),
        error_message=ssl_config.get("error"),
    )

    logger.info("gateway.stage.authentication.started", execution_id=execution_id)
    auth_start = datetime.now(timezone.utc)
    auth_config = await setup_authentication(execution_id, ssl_config)
    logger.info(
        "gateway.stage.authentication.completed",
        execution_id=execution_id,
        status=auth_config.get("status", "Unknown"),
        method=auth_config.get("method", "Unknown"),
    )
    add_monitor_entry(
        stage_name="Authentication",
        stage_start_time=auth_start,
        stage_end_time=datetime.now(timezone.utc),
        status=auth_config.get("status", "Unknown"),
        decision_details=auth_config.get("decision_details", "Authentication completed"),
        error_message=auth_config.get("error"),
    )

    return {"execution_id": execution_id, "auth_config": auth_config, "ssl_config": ssl_config}


def _establish_language(session: SessionContext, message_text: str, execution_id: str) -> Dict[str, Any]:
    """Detect the language of this turn; the session keeps the first detection only."""
    result = detect_language(message_text, execution_id)
    get_logger().info(
        "gateway.language_detected",
        execution_id=execution_id,
        session_id=session.session_id,
        language=result["language_code"],
        confidence=round(result["confidence"], 2),
        session_language=session.language_code,
    )
    if session.language_code is None:
        session.language_code = result["language_code"]
        session.language_confidence = result["confidence"]
    return result


async def _screen_message(message_text: str, language_code: str, context: Dict[str, Any]) -> None:
    logger = get_logger()
    execution_id = context["execution_id"]

    guard_start = datetime.now(timezone.utc)
    result = await check_message(message_text, context)
    add_monitor_entry(
        stage_name="Security_Guard",
        stage_start_time=guard_start,
        stage_end_time=datetime.now(timezone.utc),
        status=result["status"],
        decision_details=result.get("decision"),
        error_message=result.get("error"),
        custom_metadata={"is_safe": result["is_safe"], "risk_score": result.get("risk_score")},
    )

    if not result["is_safe"]:
        issues = [
            name
            for name, flag in (
                ("promptInjection", result.get("prompt_injection_detected")),
                ("maliciousIntent", result.get("malicious_intent_detected")),
                ("unpermittedAction", result.get("unpermitted_action_detected")),
            )
            if flag
        ]
        logger.warning(
            "gateway.message_rejected",
            execution_id=execution_id,
            risk_score=result.get("risk_score"),
            issues=", ".join(issues) or "unknown",
            reason=result.get("rejection_reason"),
        )
        raise MaliciousContentError(result.get("rejection_reason") or DEFAULT_REJECTION, language_code)


async def handle_chat(
    customer_id_header: Optional[str],
    message_text: str,
    store: Optional[SessionStore] = None,
) -> ChatResponse:
    """
    Process one chat message from an authenticated customer.

    Args:
        customer_id_header: Value of the customer id header (trusted)
        message_text: Message as typed by the customer
        store: Session store; the process-wide store by default

    Returns:
        The reply, in the language of this message.

    Raises:
        MissingCustomerIdError: If the customer id is missing or blank.
        MaliciousContentError: If the security guard rejects the message.
    """
    logger = get_logger()
    customer_id = validate_customer_id(customer_id_header)
    correlation_id = str(uuid.uuid4())
    store = store or get_session_store()

    logger.info(
        "gateway.request_received",
        execution_id=correlation_id,
        customer_id=mask_customer_id(customer_id),
        message_length=len(message_text or ""),
    )
    initialize_monitor(correlation_id, MODEL_NAME)

    try:
        context = await _build_context(correlation_id)

        async with store.lock(customer_id):
            session = store.get_or_create(customer_id)
            language = _establish_language(session, message_text, correlation_id)
            language_code = language["language_code"]

            await _screen_message(message_text, language_code, context)

            text_for_processing = message_text
            if language["requires_translation"]:
                translation = await translate_inbound(message_text, context)
                text_for_processing = translation["text"]

            response = await process_message(customer_id, correlation_id, text_for_processing, session, context)
            store.save(session)

        if translation_needed(language_code):
            response = (await translate_outbound(response, language_code, context))["response"]
        response.language = language_code

        logger.info(
            "gateway.request_completed",
            execution_id=correlation_id,
            session_id=session.session_id,
            language=language_code,
        )
        return response
    finally:
        await post_monitor_entries_async(correlation_id)


def logout(customer_id_header: Optional[str], store: Optional[SessionStore] = None) -> bool:
    """
    Drop the customer's session.

    Returns:
        True if a session existed.
    """
    customer_id = validate_customer_id(customer_id_header)
    return (store or get_session_store()).invalidate(customer_id)

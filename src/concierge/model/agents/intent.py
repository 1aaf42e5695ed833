"""
Intent agent.

Turns a customer message (already in English) into one or more banking intents.
When the message answers a clarification question, the question, the answer and
the default to fall back on are appended to the system prompt so an unusable
answer resolves to the default instead of another question.
"""

import json
from typing import Any, Dict, List, Optional

from ...connections.llm_connector import complete_with_tools, extract_tool_arguments
from ...utils.errors import ResponseParseError
from ...utils.logging import get_logger
from ...utils.prompt_loader import load_prompt
from ...utils.session import EntityHints, ResolvedIntent
from ...utils.settings import config
from ..state import INTENT_DOMAINS, METRICS, UNKNOWN_DOMAIN, Intent

TOOL_NAME = "extract_intent"


def _system_prompt(
    prompt: Dict[str, Any],
    clarification: Optional[Dict[str, Optional[str]]],
    previous_intent: Optional[ResolvedIntent],
) -> str:
    system_prompt = prompt["system_prompt"]

    if previous_intent is not None and prompt.get("previous_intent_prompt"):
        system_prompt += prompt["previous_intent_prompt"].format(
            domain=previous_intent.domain, metric=previous_intent.metric
        )

    if clarification is not None:
        system_prompt += prompt["clarification_prompt"].format(
            question=clarification.get("question") or "Unknown question",
            answer=clarification.get("answer") or "",
            expected_answer_type=clarification.get("expected_answer_type") or "unknown",
            context=clarification.get("context") or "unknown",
            default=clarification.get("default") or "No default specified",
        )
    return system_prompt


def _normalize_domain(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.upper() == UNKNOWN_DOMAIN:
        return UNKNOWN_DOMAIN
    # The model sometimes answers "Credit Cards" or "credit_cards"
    text = text.lower().replace("_", "-").replace(" ", "-")
    return text if text in INTENT_DOMAINS else None


def parse_intents(raw_intents: Any, execution_id: Optional[str] = None) -> List[Intent]:
    """
    Validate the model's intent list.

    Intents with a domain outside the known set are dropped; an unknown metric
    becomes "list".

    Raises:
        ResponseParseError: If ``intents`` is not a list.
    """
    logger = get_logger()
    if not isinstance(raw_intents, list):
        raise ResponseParseError("'intents' is not a list")

    intents = []
    for raw in raw_intents:
        if not isinstance(raw, dict):
            continue
        domain = _normalize_domain(raw.get("domain"))
        if domain is None:
            logger.warning("intent.invalid_domain", execution_id=execution_id, domain=raw.get("domain"))
            continue

        metric = str(raw.get("metric") or "").strip().lower()
        if metric not in METRICS:
            metric = "list"

        hint = raw.get("timeRangeHint")
        hint = hint.strip() if isinstance(hint, str) and hint.strip() else None

        entity_hints = EntityHints.from_dict(raw.get("entityHints") if isinstance(raw.get("entityHints"), dict) else None)
        if entity_hints is not None and entity_hints.is_empty():
            entity_hints = None

        parameters = raw.get("parameters") if isinstance(raw.get("parameters"), dict) else {}

        if domain == UNKNOWN_DOMAIN:
            intents.append(Intent(domain=domain, metric="list"))
        else:
            intents.append(
                Intent(
                    domain=domain,
                    metric=metric,
                    time_range_hint=hint,
                    entity_hints=entity_hints,
                    parameters=parameters,
                )
            )
    return intents


async def extract_intent(
    message_text: str,
    context: Dict[str, Any],
    clarification: Optional[Dict[str, Optional[str]]] = None,
    history: Optional[List[Dict[str, str]]] = None,
    previous_intent: Optional[ResolvedIntent] = None,
) -> Dict[str, Any]:
    """
    Extract banking intents from a message.

    Args:
        message_text: The customer message in English
        context: Runtime context (execution_id, auth_config, ssl_config)
        clarification: Grounding from a clarification answer: question, answer,
                       expected_answer_type, context and default
        history: Recent turns as user/assistant messages
        previous_intent: Domain and metric of the last answered question

    Returns:
        Dictionary with:
        {
            "status": "Success" or "Error",
            "intents": List[Intent],
            "confidence": 0.0-1.0,
            "needs_clarification": bool,
            "clarification_needed": Optional reason code,
            "used_default": bool,
            "default_reason": Optional text,
            "tokens_used", "cost", "response_time_ms", "model_used", "prompt_version",
            "error": Present on failure
        }
    """
    logger = get_logger()
    execution_id = context.get("execution_id")
    prompt_version = "unknown"

    try:
        prompt = load_prompt("intent")
        prompt_version = prompt["version"]

        messages = [{"role": "system", "content": _system_prompt(prompt, clarification, previous_intent)}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": message_text})

        model = config.llm.large.model
        response = await complete_with_tools(
            messages=messages,
            tools=[prompt["tool_definition"]],
            context=context,
            llm_params={
                "model": model,
                "temperature": 0.1,
                "max_tokens": config.llm.large.max_tokens,
                "tool_choice": "required",
            },
        )
        metrics = response.get("metrics", {})

        arguments = extract_tool_arguments(response, TOOL_NAME)
        if not arguments or not arguments.strip():
            raise ResponseParseError("model did not call extract_intent")
        result = json.loads(arguments)
        if not isinstance(result, dict):
            raise ResponseParseError("extract_intent arguments are not an object")

        intents = parse_intents(result.get("intents"), execution_id)
        needs_clarification = bool(result.get("needsClarification"))
        used_default = bool(result.get("usedDefault"))

        if used_default:
            logger.info(
                "intent.default_applied",
                execution_id=execution_id,
                reason=result.get("defaultReason"),
            )

        logger.info(
            "intent.extracted",
            execution_id=execution_id,
            intents=[f"{intent.domain}/{intent.metric}" for intent in intents],
            confidence=result.get("confidence"),
            needs_clarification=needs_clarification,
            with_clarification=clarification is not None,
            tokens_used=metrics.get("total_tokens", 0),
        )

        return {
            "status": "Success",
            "intents": intents,
            "confidence": result.get("confidence"),
            "needs_clarification": needs_clarification,
            "clarification_needed": result.get("clarificationNeeded") if needs_clarification else None,
            "used_default": used_default,
            "default_reason": result.get("defaultReason"),
            "tokens_used": metrics.get("total_tokens", 0),
            "cost": metrics.get("total_cost", 0),
            "response_time_ms": metrics.get("response_time", 0) * 1000,
            "model_used": model,
            "prompt_version": prompt_version,
        }

    except Exception as e:  # pylint: disable=broad-exception-caught
        # The pipeline turns an extraction failure into a clarification question.
        logger.error("intent.error", execution_id=execution_id, error=str(e))
        return {
            "status": "Error",
            "intents": [],
            "confidence": None,
            "needs_clarification": True,
            "clarification_needed": None,
            "used_default": False,
            "default_reason": None,
            "tokens_used": 0,
            "cost": 0,
            "response_time_ms": 0,
            "model_used": None,
            "prompt_version": prompt_version,
            "error": str(e),
        }

"""
Security guard agent.

Screens each message for prompt injection, malicious intent and requests to do
anything other than read data. The guard fails open: if the check itself
cannot run, the message is treated as safe and the failure is logged.
"""

import json
from typing import Any, Dict, Optional

from ...connections.llm_connector import complete_with_tools, extract_tool_arguments
from ...utils.logging import get_logger
from ...utils.prompt_loader import load_prompt
from ...utils.settings import config

TOOL_NAME = "report_security_check_result"

DEFAULT_REJECTION = "Message contains potentially malicious content and cannot be processed."


def _safe_result(reason: str, error: Optional[str] = None) -> Dict[str, Any]:
    result = {
        "status": "Success" if error is None else "Error",
        "is_safe": True,
        "prompt_injection_detected": False,
        "malicious_intent_detected": False,
        "unpermitted_action_detected": False,
        "risk_score": 0.0,
        "confidence": 0.0,
        "rejection_reason": None,
        "decision": reason,
        "tokens_used": 0,
        "cost": 0,
        "model_used": None,
    }
    if error is not None:
        result["error"] = error
    return result


async def check_message(message_text: Optional[str], context: Dict[str, Any]) -> Dict[str, Any]:
    """
    Screen a customer message.

    Args:
        message_text: Message as the customer typed it
        context: Runtime context (execution_id, auth_config, ssl_config)

    Returns:
        Dictionary with ``is_safe``, the individual detections, ``risk_score``,
        ``confidence``, ``rejection_reason`` and usage metrics.
    """
    logger = get_logger()
    execution_id = context.get("execution_id")

    if not message_text or not message_text.strip():
        return _safe_result("empty message")

    try:
        prompt = load_prompt("guard")
        messages = [
            {"role": "system", "content": prompt["system_prompt"]},
            {"role": "user", "content": message_text},
        ]

        model = config.llm.small.model
        response = await complete_with_tools(
            messages=messages,
            tools=[prompt["tool_definition"]],
            context=context,
            llm_params={
                "model": model,
                "temperature": 0,
                "max_tokens": config.llm.small.max_tokens,
                "tool_choice": "required",
            },
        )
        metrics = response.get("metrics", {})

        arguments = extract_tool_arguments(response, TOOL_NAME)
        if not arguments:
            raise ValueError("model did not call report_security_check_result")
        report = json.loads(arguments)

        is_safe = bool(report.get("isSafe", True))
        result = {
            "status": "Success",
            "is_safe": is_safe,
            "prompt_injection_detected": bool(report.get("promptInjectionDetected")),
            "malicious_intent_detected": bool(report.get("maliciousIntentDetected")),
            "unpermitted_action_detected": bool(report.get("unpermittedActionDetected")),
            "risk_score": report.get("riskScore", 0.0),
            "confidence": report.get("confidence", 0.0),
            "rejection_reason": None if is_safe else (report.get("rejectionReason") or DEFAULT_REJECTION),
            "decision": "safe" if is_safe else "rejected",
            "tokens_used": metrics.get("total_tokens", 0),
            "cost": metrics.get("total_cost", 0),
            "model_used": model,
            "prompt_version": prompt["version"],
        }

        log = logger.info if is_safe else logger.warning
        log(
            "guard.checked",
            execution_id=execution_id,
            is_safe=is_safe,
            prompt_injection=result["prompt_injection_detected"],
            malicious_intent=result["malicious_intent_detected"],
            unpermitted_action=result["unpermitted_action_detected"],
            risk_score=result["risk_score"],
        )
        return result

    except Exception as e:  # pylint: disable=broad-exception-caught
        # Fail open: an unavailable guard must not block legitimate customers.
        logger.error("guard.error", execution_id=execution_id, error=str(e))
        return _safe_result("guard unavailable", error=str(e))

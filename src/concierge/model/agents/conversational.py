"""
Conversational agent for greetings, thanks and other non-banking messages.
"""

from typing import Any, Dict, List, Optional

from ...connections.llm_connector import complete, extract_content
from ...utils.logging import get_logger
from ...utils.prompt_loader import load_prompt
from ...utils.settings import config


async def generate_conversational_reply(
    message_text: str,
    context: Dict[str, Any],
    history: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
    """
    Reply to a message that needs no banking data.

    Args:
        message_text: The customer message in English
        context: Runtime context (execution_id, auth_config, ssl_config)
        history: Recent turns as user/assistant messages

    Returns:
        Dictionary with status, the reply as ``answer`` and usage metrics. An empty
        reply is reported as an error so the caller can use its fallback.
    """
    logger = get_logger()
    execution_id = context.get("execution_id")
    prompt_version = "unknown"

    try:
        prompt = load_prompt("conversational")
        prompt_version = prompt["version"]

        messages = [{"role": "system", "content": prompt["system_prompt"]}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": message_text})

        model = config.llm.medium.model
        response = await complete(
            messages=messages,
            context=context,
            llm_params={"model": model, "temperature": 0.7, "max_tokens": 256},
        )
        metrics = response.get("metrics", {})

        answer = (extract_content(response) or "").strip()
        if not answer:
            raise ValueError("model returned an empty reply")

        logger.info(
            "conversational.replied",
            execution_id=execution_id,
            length=len(answer),
            tokens_used=metrics.get("total_tokens", 0),
        )
        return {
            "status": "Success",
            "answer": answer,
            "tokens_used": metrics.get("total_tokens", 0),
            "cost": metrics.get("total_cost", 0),
            "response_time_ms": metrics.get("response_time", 0) * 1000,
            "model_used": model,
            "prompt_version": prompt_version,
        }

    except Exception as e:  # pylint: disable=broad-exception-caught
        # A fixed greeting replaces the reply.
        logger.error("conversational.error", execution_id=execution_id, error=str(e))
        return {
            "status": "Error",
            "answer": None,
            "tokens_used": 0,
            "cost": 0,
            "response_time_ms": 0,
            "model_used": None,
            "prompt_version": prompt_version,
            "error": str(e),
        }

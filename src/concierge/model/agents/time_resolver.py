"""
Time-range agent for expressions the deterministic resolver does not know.
"""

import json
from typing import Any, Dict, Optional

from ...connections.llm_connector import complete_with_tools, extract_tool_arguments
from ...utils.logging import get_logger
from ...utils.prompt_loader import load_prompt
from ...utils.settings import config

TOOL_NAME = "resolve_time_range"


def _timezone_info(timezone_name: Optional[str], today: str) -> str:
    if timezone_name and timezone_name.strip():
        return f"Current timezone: {timezone_name}. Today's date: {today}."
    return f"Today's date: {today}."


async def resolve_time_range_with_llm(
    hint: Optional[str],
    timezone_name: Optional[str],
    today: str,
    context: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Ask the model to turn a free-form time expression into absolute dates.

    Args:
        hint: Time expression, e.g. "since last november"
        timezone_name: Customer timezone or None
        today: Today's date in the customer's timezone, YYYY-MM-DD
        context: Runtime context (execution_id, auth_config, ssl_config)

    Returns:
        Dictionary with status, from_date, to_date, tokens_used, cost and
        model_used. The dates are returned as given; the caller validates them.
    """
    logger = get_logger()
    execution_id = context.get("execution_id")
    prompt_version = "unknown"

    try:
        prompt = load_prompt("time_resolver")
        prompt_version = prompt["version"]

        messages = [
            {
                "role": "system",
                "content": prompt["system_prompt"].format(timezone_info=_timezone_info(timezone_name, today)),
            },
            {"role": "user", "content": prompt["user_prompt"].format(hint=hint)},
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
                "tool_choice": {"type": "function", "function": {"name": TOOL_NAME}},
            },
        )
        metrics = response.get("metrics", {})

        arguments = extract_tool_arguments(response, TOOL_NAME)
        if not arguments:
            raise ValueError("model did not call resolve_time_range")
        resolved = json.loads(arguments)

        logger.info(
            "time_resolver.resolved",
            execution_id=execution_id,
            hint=hint,
            from_date=resolved.get("fromDate"),
            to_date=resolved.get("toDate"),
            tokens_used=metrics.get("total_tokens", 0),
        )
        return {
            "status": "Success",
            "from_date": resolved.get("fromDate"),
            "to_date": resolved.get("toDate"),
            "tokens_used": metrics.get("total_tokens", 0),
            "cost": metrics.get("total_cost", 0),
            "response_time_ms": metrics.get("response_time", 0) * 1000,
            "model_used": model,
            "prompt_version": prompt_version,
        }

    except Exception as e:  # pylint: disable=broad-exception-caught
        # The caller falls back to the default range.
        logger.error("time_resolver.error", execution_id=execution_id, hint=hint, error=str(e))
        return {
            "status": "Error",
            "from_date": None,
            "to_date": None,
            "tokens_used": 0,
            "cost": 0,
            "response_time_ms": 0,
            "model_used": None,
            "prompt_version": prompt_version,
            "error": str(e),
        }

"""
LLM connector module for OpenAI-compatible chat completion APIs.

Handles every interaction with the text-generation service: intent extraction,
time-range escalation, security screening, translation, conversational replies
and response drafting all go through ``complete`` or ``complete_with_tools``.
Supports OAuth and API key authentication with configurable model tiers.
"""

import time
from typing import Any, Dict, List, Optional

import httpx
from openai import AsyncOpenAI

from ..utils.logging import get_logger
from ..utils.settings import config

# Module-level client cache to reuse connections
_async_client_cache: Dict[str, AsyncOpenAI] = {}

_RESERVED_PARAMS = ("model", "temperature", "max_tokens")


def _calculate_cost(
    usage: Dict,
    cost_per_1k_input: float,
    cost_per_1k_output: float,
    response_time: float = 0.0,
    model: str = "",
) -> Dict:
    """
    Calculate cost metrics from token usage.

    Args:
        usage: Usage dictionary from API response containing token counts
        cost_per_1k_input: Cost per 1000 input tokens in USD
        cost_per_1k_output: Cost per 1000 output tokens in USD
        response_time: Time taken for the API call in seconds
        model: Model name used for the operation

    Returns:
        Dictionary with calculated costs and metrics
    """
    usage = usage or {}
    prompt_tokens = usage.get("prompt_tokens") or 0
    completion_tokens = usage.get("completion_tokens") or 0
    total_tokens = usage.get("total_tokens") or (prompt_tokens + completion_tokens)

    prompt_cost = (prompt_tokens / 1000.0) * cost_per_1k_input
    completion_cost = (completion_tokens / 1000.0) * cost_per_1k_output

    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": total_tokens,
        "prompt_cost": round(prompt_cost, 6),
        "completion_cost": round(completion_cost, 6),
        "total_cost": round(prompt_cost + completion_cost, 6),
        "response_time": round(response_time, 3),
        "model": model,
    }


class ResponseTimer:
    """
    Context manager for timing API responses.
    """

    def __init__(self):
        """Initialize the timer."""
        self.start_time = None
        self.elapsed = 0.0

    def __enter__(self):
        """Start the timer."""
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Stop the timer and calculate elapsed time."""
        self.elapsed = time.time() - self.start_time
        return False


def _get_model_config(
    model: Optional[str],
    temperature: Optional[float],
    max_tokens: Optional[int],
    default_tier: str = "medium",
) -> tuple:
    """
    Determine model configuration from a model name or tier default.

    Args:
        model: Model name or None
        temperature: Temperature override or None
        max_tokens: Max tokens override or None
        default_tier: Tier used when model is None ("small", "medium", "large")

    Returns:
        Tuple of (model, temperature, max_tokens, model_tier)
    """
    tier = default_tier
    if model is not None:
        tier = "medium"
        for candidate in ("small", "medium", "large"):
            if getattr(config.llm, candidate).model == model:
                tier = candidate
                break

    tier_config = getattr(config.llm, tier)
    return (
        model or tier_config.model,
        temperature if temperature is not None else tier_config.temperature,
        max_tokens or tier_config.max_tokens,
        tier,
    )


async def _get_or_create_async_client(
    auth_token: str, ssl_config: Optional[Dict[str, Any]] = None
) -> AsyncOpenAI:
    """
    Get or create a cached AsyncOpenAI client.

    Clients are cached by auth token and SSL settings so connections are reused
    across requests.

    Args:
        auth_token: Bearer token or API key
        ssl_config: Optional SSL configuration with 'verify' and 'cert_path'

    Returns:
        Configured AsyncOpenAI client instance.
    """
    logger = get_logger()

    ssl_verify = ssl_config.get("verify", True) if ssl_config else True
    ssl_cert = ssl_config.get("cert_path") or "" if ssl_config else ""
    cache_key = f"{auth_token or 'no-auth'}_{ssl_verify}_{ssl_cert}"

    if cache_key in _async_client_cache:
        return _async_client_cache[cache_key]

    httpx_client_kwargs: Dict[str, Any] = {}
    if not ssl_verify:
        httpx_client_kwargs["verify"] = False
    elif ssl_cert:
        httpx_client_kwargs["verify"] = ssl_cert

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(180.0, connect=5.0), **httpx_client_kwargs)

    # No automatic retries: failures surface once and the caller falls back
    client = AsyncOpenAI(
        api_key=auth_token,
        base_url=config.llm.base_url,
        http_client=http_client,
        max_retries=0,
    )
    _async_client_cache[cache_key] = client

    logger.info(
        "llm.client_created",
        base_url=config.llm.base_url,
        ssl_verify=ssl_verify,
        ssl_cert=bool(ssl_cert),
    )
    return client


def _build_api_params(
    model: str,
    temperature: float,
    max_tokens: int,
    model_tier: str,
    messages: List[Dict[str, str]],
    llm_params: Dict[str, Any],
) -> Dict[str, Any]:
    # o-series reasoning models reject temperature and use max_completion_tokens
    is_o_series = model in ("o1", "o3", "o4") or model.startswith(("o1-", "o3-", "o4-"))

    api_params: Dict[str, Any] = {
        "model": model,
        "messages": messages,
        "timeout": getattr(config.llm, model_tier).timeout,
    }
    if is_o_series:
        api_params["max_completion_tokens"] = max_tokens
    else:
        api_params["temperature"] = temperature
        api_params["max_tokens"] = max_tokens

    api_params.update({k: v for k, v in llm_params.items() if k not in _RESERVED_PARAMS})
    return api_params


def _attach_metrics(
    response_dict: Dict[str, Any],
    model: str,
    model_tier: str,
    elapsed: float,
    execution_id: Optional[str],
    operation: str,
) -> Dict[str, Any]:
    tier_config = getattr(config.llm, model_tier)
    usage = response_dict.get("usage") or {}
    metrics = _calculate_cost(
        usage=usage,
        cost_per_1k_input=tier_config.cost_per_1k_input,
        cost_per_1k_output=tier_config.cost_per_1k_output,
        response_time=elapsed,
        model=model,
    )
    get_logger().info(
        f"llm.{operation}.success",
        execution_id=execution_id,
        model=model,
        tokens=metrics["total_tokens"],
        response_time_ms=int(elapsed * 1000),
        cost=f"${metrics['total_cost']:.6f}",
    )
    response_dict["metrics"] = metrics
    return response_dict


async def complete(
    messages: List[Dict[str, str]],
    context: Dict[str, Any],
    llm_params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Generate a non-streaming completion from the LLM.

    Args:
        messages: List of message dictionaries with 'role' and 'content'.
        context: Runtime context containing:
                 - execution_id: Unique identifier for this execution
                 - auth_config: Authentication configuration
                 - ssl_config: SSL configuration
        llm_params: Optional LLM parameters (model, temperature, max_tokens and any
                    additional API parameters)

    Returns:
        Response dictionary (``model_dump`` of the API response) with a
        ``metrics`` entry holding tokens, cost and response time.

    Raises:
        Exception: If the API call fails or times out.
    """
    logger = get_logger()
    llm_params = llm_params or {}
    execution_id = context.get("execution_id")

    model, temperature, max_tokens, model_tier = _get_model_config(
        llm_params.get("model"), llm_params.get("temperature"), llm_params.get("max_tokens")
    )
    logger.debug(
        "llm.completion.started",
        execution_id=execution_id,
        model=model,
        message_count=len(messages),
    )

    try:
        client = await _get_or_create_async_client(
            (context.get("auth_config") or {}).get("token", "no-token"), context.get("ssl_config")
        )
        api_params = _build_api_params(model, temperature, max_tokens, model_tier, messages, llm_params)

        with ResponseTimer() as timer:
            response = await client.chat.completions.create(**api_params)

        return _attach_metrics(
            response.model_dump(), model, model_tier, timer.elapsed, execution_id, "completion"
        )

    except Exception as e:
        logger.error("llm.completion.failed", execution_id=execution_id, model=model, error=str(e))
        raise


async def complete_with_tools(
    messages: List[Dict[str, str]],
    tools: List[Dict[str, Any]],
    context: Dict[str, Any],
    llm_params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Generate a completion with tool/function calling.

    Args:
        messages: List of message dictionaries with 'role' and 'content'.
        tools: List of tool definitions for function calling.
        context: Runtime context (execution_id, auth_config, ssl_config).
        llm_params: Optional LLM parameters. Defaults to the large tier. Pass
                    ``tool_choice`` to force a specific function.

    Returns:
        Response dictionary containing the tool calls plus ``metrics``.

    Raises:
        Exception: If the API call fails or times out.
    """
    logger = get_logger()
    llm_params = llm_params or {}
    execution_id = context.get("execution_id")

    model, temperature, max_tokens, model_tier = _get_model_config(
        llm_params.get("model"),
        llm_params.get("temperature"),
        llm_params.get("max_tokens"),
        default_tier="large",
    )
    logger.debug(
        "llm.tool_completion.started",
        execution_id=execution_id,
        model=model,
        message_count=len(messages),
        tool_count=len(tools),
    )

    try:
        client = await _get_or_create_async_client(
            (context.get("auth_config") or {}).get("token", "no-token"), context.get("ssl_config")
        )
        api_params = _build_api_params(model, temperature, max_tokens, model_tier, messages, llm_params)
        api_params["tools"] = tools

        with ResponseTimer() as timer:
            response = await client.chat.completions.create(**api_params)

        return _attach_metrics(
            response.model_dump(), model, model_tier, timer.elapsed, execution_id, "tool_completion"
        )

    except Exception as e:
        logger.error("llm.tool_completion.failed", execution_id=execution_id, model=model, error=str(e))
        raise


def extract_tool_arguments(response: Dict[str, Any], function_name: str) -> Optional[str]:
    """
    Return the raw JSON arguments of the named tool call, if present.

    Args:
        response: Response dictionary from ``complete_with_tools``
        function_name: Name of the function to look for

    Returns:
        The arguments string, or None if the model did not call the function.
    """
    choices = response.get("choices") or []
    if not choices:
        return None
    message = choices[0].get("message") or {}
    for tool_call in message.get("tool_calls") or []:
        function = tool_call.get("function") or {}
        if function.get("name", function_name) == function_name:
            return function.get("arguments")
    return None


def extract_content(response: Dict[str, Any]) -> Optional[str]:
    """Return the assistant message text from a completion response."""
    choices = response.get("choices") or []
    if not choices:
        return None
    return (choices[0].get("message") or {}).get("content")


async def check_connection(context: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check the LLM connection with a simple prompt.

    Args:
        context: Runtime context (execution_id, auth_config, ssl_config).

    Returns:
        Result dictionary with status and details.
    """
    logger = get_logger()
    test_messages = [
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": "Say 'Hello! I'm working properly.' and nothing else."},
    ]

    try:
        response = await complete(
            messages=test_messages,
            context=context,
            llm_params={"model": config.llm.small.model, "temperature": 0, "max_tokens": 50},
        )
        content = extract_content(response)
        logger.info("llm.connection_check.success", execution_id=context.get("execution_id"))
        return {
            "status": "success",
            "model": config.llm.small.model,
            "response": content,
            "base_url": config.llm.base_url,
        }

    except Exception as e:  # pylint: disable=broad-exception-caught
        # Connection check reports any failure instead of raising.
        logger.error("llm.connection_check.failed", execution_id=context.get("execution_id"), error=str(e))
        return {"status": "failed", "error": str(e), "base_url": config.llm.base_url}


async def close_all_clients() -> None:
    """
    Close all cached async OpenAI clients.

    Called during application shutdown.
    """
    logger = get_logger()
    logger.info("llm.closing_clients", count=len(_async_client_cache))

    for key, client in list(_async_client_cache.items()):
        try:
            await client.close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            # One client failing to close must not keep the others open.
            logger.error("llm.close_failed", client=key[:8], error=str(e))

    _async_client_cache.clear()

"""
OAuth and API key authentication for the LLM gateway.
"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from ..utils.logging import get_logger
from ..utils.settings import config


async def get_oauth_token(execution_id: str, ssl_config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Request an access token with the client credentials grant.

    Args:
        execution_id: Execution ID for logging
        ssl_config: SSL configuration from ``setup_ssl``

    Returns:
        Token response dictionary, or None when OAuth is not configured.

    Raises:
        httpx.HTTPError: If the token endpoint keeps failing after retries.
        ValueError: If the response carries no access token.
    """
    logger = get_logger()

    if not (config.oauth_endpoint and config.oauth_client_id and config.oauth_client_secret):
        logger.warning("oauth.not_configured", execution_id=execution_id)
        return None

    verify: Any = True
    if not ssl_config.get("verify", True):
        verify = False
    elif ssl_config.get("cert_path"):
        verify = ssl_config["cert_path"]

    last_error: Optional[Exception] = None
    for attempt in range(1, max(1, config.oauth_max_retries) + 1):
        try:
            async with httpx.AsyncClient(verify=verify, timeout=30.0) as client:
                response = await client.post(
                    config.oauth_endpoint,
                    data={"grant_type": config.oauth_grant_type},
                    auth=(config.oauth_client_id, config.oauth_client_secret),
                )
                response.raise_for_status()
                token_data = response.json()

            if "access_token" not in token_data:
                raise ValueError("OAuth response missing access_token")

            logger.info("oauth.token_acquired", execution_id=execution_id, attempt=attempt)
            return token_data

        except httpx.HTTPStatusError:
            # Credential errors won't fix themselves on retry
            logger.error("oauth.http_error", execution_id=execution_id, attempt=attempt)
            raise
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            last_error = e
            logger.warning("oauth.retry", execution_id=execution_id, attempt=attempt, error=str(e))
            if attempt < config.oauth_max_retries:
                await asyncio.sleep(config.oauth_retry_delay)

    logger.error("oauth.failed", execution_id=execution_id, error=str(last_error))
    raise last_error


async def setup_authentication(execution_id: str, ssl_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the authentication config used by the LLM connector.

    Args:
        execution_id: Execution ID for logging
        ssl_config: SSL configuration from ``setup_ssl``

    Returns:
        Dictionary with ``success``, ``status``, ``method``, ``token``, ``header``,
        ``error`` and ``decision_details``.
    """
    logger = get_logger()
    method = config.auth_method

    try:
        if method == "oauth":
            token_data = await get_oauth_token(execution_id, ssl_config)
            if token_data is None:
                token = "no-oauth-configured"
                logger.warning("auth.oauth_placeholder", execution_id=execution_id)
                return {
                    "success": True,
                    "status": "Success",
                    "method": "placeholder",
                    "token": token,
                    "header": {"Authorization": f"Bearer {token}"},
                    "error": None,
                    "decision_details": "OAuth not configured, using placeholder token",
                }
            token = token_data["access_token"]
        elif method == "api_key":
            token = config.api_key
            if not token:
                raise ValueError("API_KEY not configured")
        else:
            raise ValueError(f"Invalid AUTH_METHOD: {method}")

        logger.info("auth.configured", execution_id=execution_id, method=method)
        return {
            "success": True,
            "status": "Success",
            "method": method,
            "token": token,
            "header": {"Authorization": f"Bearer {token}"},
            "error": None,
            "decision_details": f"Authentication method: {method}",
        }

    except Exception as e:  # pylint: disable=broad-exception-caught
        # Authentication failures are reported in the result so the caller decides.
        logger.error("auth.failed", execution_id=execution_id, method=method, error=str(e))
        return {
            "success": False,
            "status": "Failure",
            "method": method,
            "token": None,
            "header": {},
            "error": str(e),
            "decision_details": f"Authentication failed: {e}",
        }

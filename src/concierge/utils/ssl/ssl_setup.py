"""
SSL configuration for outbound HTTPS calls (LLM gateway, OAuth endpoint).
"""

import os
from typing import Any, Dict

from ..logging import get_logger
from ..settings import config


def setup_ssl() -> Dict[str, Any]:
    """
    Resolve SSL verification settings from configuration.

    Returns:
        Dictionary with:
        - "verify": bool, whether to verify certificates
        - "cert_path": custom CA bundle path, or None for system certificates
        - "status": "Success" or "Failure"
        - "error": error message when the configured bundle is missing
        - "decision_details": human-readable summary for monitoring
    """
    logger = get_logger()

    if not config.ssl_verify:
        logger.debug("ssl.verification_disabled")
        return {
            "verify": False,
            "cert_path": None,
            "status": "Success",
            "error": None,
            "decision_details": "SSL verification: disabled",
        }

    cert_path = config.ssl_cert_path
    if not cert_path:
        logger.info("ssl.system_certificates")
        return {
            "verify": True,
            "cert_path": None,
            "status": "Success",
            "error": None,
            "decision_details": "SSL verification: system certificates",
        }

    cert_path = os.path.expanduser(cert_path)
    if not os.path.exists(cert_path):
        # Verification stays on with system certificates rather than silently disabling it
        error_msg = f"SSL certificate file not found: {cert_path}"
        logger.error("ssl.certificate_missing", cert_path=cert_path)
        return {
            "verify": True,
            "cert_path": None,
            "status": "Failure",
            "error": error_msg,
            "decision_details": "SSL verification: configured bundle missing, using system certificates",
        }

    logger.info("ssl.custom_certificate", cert_path=cert_path)
    return {
        "verify": True,
        "cert_path": cert_path,
        "status": "Success",
        "error": None,
        "decision_details": f"SSL verification: custom bundle {cert_path}",
    }

"""
Script-based language detection for inbound messages.
"""

import re
from typing import Any, Dict, Optional

from .logging import get_logger

HEBREW_PATTERN = re.compile(r"[\u0590-\u05FF]+")


def _is_hebrew_char(char: str) -> bool:
    return "\u0590" <= char <= "\u05FF"


def detect_language(message_text: Optional[str], execution_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Detect whether a message is Hebrew or English.

    Any Hebrew-script character makes the message Hebrew. Confidence is the share
    of Hebrew characters among letters for Hebrew, or the share of ASCII letters
    for English. Messages without letters get 0.5; blank messages get 0.0.

    Args:
        message_text: Raw message from the customer
        execution_id: Execution ID for logging

    Returns:
        Dictionary with ``language_code`` ("he" or "en"), ``confidence`` and
        ``requires_translation``.
    """
    logger = get_logger()

    if message_text is None or not message_text.strip():
        logger.warning("language.empty_message", execution_id=execution_id)
        return {"language_code": "en", "confidence": 0.0, "requires_translation": False}

    contains_hebrew = bool(HEBREW_PATTERN.search(message_text))
    letters = sum(1 for char in message_text if char.isalpha())

    if letters == 0:
        confidence = 0.5
    elif contains_hebrew:
        hebrew = sum(1 for char in message_text if _is_hebrew_char(char))
        confidence = min(1.0, hebrew / letters)
    else:
        ascii_letters = sum(1 for char in message_text if char.isalpha() and ord(char) < 128)
        confidence = min(1.0, ascii_letters / letters)

    language_code = "he" if contains_hebrew else "en"
    logger.debug(
        "language.detected",
        execution_id=execution_id,
        language=language_code,
        confidence=round(confidence, 2),
    )
    return {
        "language_code": language_code,
        "confidence": confidence,
        "requires_translation": language_code != "en",
    }

"""
Structured logging configuration using structlog.

Produces compact single-line console output:
    2025-12-13 10:15:02 INFO ✓ model.stage.fetch.completed execution_id=... fetched=2
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog

from ..settings import config

_LEVEL_ICONS = {
    "debug": "·",
    "info": "✓",
    "warning": "⚠",
    "error": "✗",
    "critical": "✗",
}


def custom_renderer(logger: Any, method_name: Any, event_dict: Dict[str, Any]) -> str:
    """
    Render a structlog event dict as a single readable line.

    Args:
        logger: Wrapped logger (unused)
        method_name: Name of the logging method (unused)
        event_dict: Event dictionary populated by the processor chain

    Returns:
        Formatted log line
    """
    del logger, method_name
    timestamp = event_dict.pop("timestamp", "")
    level = str(event_dict.pop("level", "info")).lower()
    event = event_dict.pop("event", "")
    icon = _LEVEL_ICONS.get(level, " ")

    parts = [str(timestamp), level.upper(), icon, str(event)]
    parts.extend(f"{key}={value}" for key, value in event_dict.items())
    return " ".join(part for part in parts if part)


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog.

    Args:
        level: Log level name. Falls back to ``config.log_level``.
    """
    log_level = (level or config.log_level or "INFO").upper()
    numeric_level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    logging.getLogger().setLevel(numeric_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.format_exc_info,
            custom_renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


def get_logger(name: Optional[str] = None) -> Any:
    """
    Get a structlog logger.

    Args:
        name: Optional logger name bound to every event

    Returns:
        Bound structlog logger
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()

"""
Concierge utility modules.

This package contains configuration, logging, monitoring, session state and
other shared helpers for the Concierge system.
"""

# Import commonly used functions for convenience
from .errors import (
    ConciergeError,
    MaliciousContentError,
    MissingCustomerIdError,
    ProviderError,
    ResponseParseError,
)
from .language import detect_language
from .logging import setup_logging, get_logger
from .masking import mask_customer_id, is_masked
from .monitor import (
    initialize_monitor,
    add_monitor_entry,
    post_monitor_entries_async,
    get_monitor_entries,
    clear_monitor_entries,
    format_llm_call,
)
from .session import SessionContext, SessionStore, TimeRange
from .settings import config
from .ssl import setup_ssl

__all__ = [
    # Errors
    "ConciergeError",
    "MaliciousContentError",
    "MissingCustomerIdError",
    "ProviderError",
    "ResponseParseError",
    # Language
    "detect_language",
    # Logging
    "setup_logging",
    "get_logger",
    # Masking
    "mask_customer_id",
    "is_masked",
    # Monitor
    "initialize_monitor",
    "add_monitor_entry",
    "post_monitor_entries_async",
    "get_monitor_entries",
    "clear_monitor_entries",
    "format_llm_call",
    # Session
    "SessionContext",
    "SessionStore",
    "TimeRange",
    # Settings
    "config",
    # SSL
    "setup_ssl",
]

"""
Exception types raised across the assistant.

Agents report failures through structured result dictionaries; these exceptions
cover the cases that must interrupt control flow.
"""

from typing import Optional


class ConciergeError(Exception):
    """Base class for all assistant errors."""


class MissingCustomerIdError(ConciergeError):
    """Raised when a request arrives without an authenticated customer id."""


class MaliciousContentError(ConciergeError):
    """Raised when the security guard rejects a message."""

    def __init__(self, message: str, language: Optional[str] = None):
        super().__init__(message)
        self.language = language or "en"


class ResponseParseError(ConciergeError):
    """Raised when an LLM tool call cannot be parsed."""


class ProviderError(ConciergeError):
    """Raised when a banking data provider cannot serve a request."""

    def __init__(self, domain: str, message: str):
        super().__init__(f"{domain}: {message}")
        self.domain = domain

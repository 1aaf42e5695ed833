"""
Typed raw provider responses.

Each banking provider returns a document of the form ``{"data": {...},
"metadata": {...}}`` whose ``data`` holds a domain-specific list. The document is
decoded once, at the fetch boundary, into one variant per domain so later stages
dispatch on the type instead of inspecting untyped dictionaries.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Type

DOMAINS = (
    "current-accounts",
    "foreign-current-accounts",
    "credit-cards",
    "loans",
    "mortgages",
    "deposits",
    "securities",
)


@dataclass(frozen=True)
class RawResponse:
    """A provider response. ``items`` is the domain's entity list from ``data``."""

    domain: ClassVar[str] = ""
    items_key: ClassVar[str] = ""

    data: Dict[str, Any]
    metadata: Optional[Dict[str, Any]] = None
    items: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class CurrentAccountsResponse(RawResponse):
    domain: ClassVar[str] = "current-accounts"
    items_key: ClassVar[str] = "accounts"


@dataclass(frozen=True)
class ForeignCurrentAccountsResponse(RawResponse):
    domain: ClassVar[str] = "foreign-current-accounts"
    items_key: ClassVar[str] = "accounts"


@dataclass(frozen=True)
class CreditCardsResponse(RawResponse):
    domain: ClassVar[str] = "credit-cards"
    items_key: ClassVar[str] = "cards"


@dataclass(frozen=True)
class LoansResponse(RawResponse):
    domain: ClassVar[str] = "loans"
    items_key: ClassVar[str] = "loans"


@dataclass(frozen=True)
class MortgagesResponse(RawResponse):
    domain: ClassVar[str] = "mortgages"
    items_key: ClassVar[str] = "mortgages"


@dataclass(frozen=True)
class DepositsResponse(RawResponse):
    domain: ClassVar[str] = "deposits"
    items_key: ClassVar[str] = "deposits"


@dataclass(frozen=True)
class SecuritiesResponse(RawResponse):
    domain: ClassVar[str] = "securities"
    items_key: ClassVar[str] = "accounts"


RESPONSE_TYPES: Dict[str, Type[RawResponse]] = {
    cls.domain: cls
    for cls in (
        CurrentAccountsResponse,
        ForeignCurrentAccountsResponse,
        CreditCardsResponse,
        LoansResponse,
        MortgagesResponse,
        DepositsResponse,
        SecuritiesResponse,
    )
}


def decode_response(domain: str, document: Any) -> RawResponse:
    """
    Decode a provider document into its domain variant.

    Args:
        domain: Banking domain the document came from
        document: Provider document with ``data`` and ``metadata`` envelopes

    Returns:
        The typed response. A missing item list decodes to no items.

    Raises:
        ValueError: If the domain is unknown or the document is malformed.
    """
    response_type = RESPONSE_TYPES.get(domain)
    if response_type is None:
        raise ValueError(f"Unknown domain: {domain}")
    if not isinstance(document, dict):
        raise ValueError(f"{domain}: response is not an object")

    data = document.get("data")
    if not isinstance(data, dict):
        raise ValueError(f"{domain}: response missing 'data'")

    metadata = document.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValueError(f"{domain}: 'metadata' is not an object")

    items = data.get(response_type.items_key) or []
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise ValueError(f"{domain}: '{response_type.items_key}' is not a list of objects")

    return response_type(data=data, metadata=metadata, items=items)

"""
Canonical normalization of banking provider responses.
"""

from .engine import normalize, normalize_all, normalize_response
from .models import (
    NormalizedBalance,
    NormalizedData,
    NormalizedEntity,
    NormalizedMetadata,
    NormalizedTransaction,
    NormalizedTransactionsSummary,
)
from .raw import DOMAINS, RESPONSE_TYPES, RawResponse, decode_response

__all__ = [
    "normalize",
    "normalize_all",
    "normalize_response",
    "NormalizedBalance",
    "NormalizedData",
    "NormalizedEntity",
    "NormalizedMetadata",
    "NormalizedTransaction",
    "NormalizedTransactionsSummary",
    "DOMAINS",
    "RESPONSE_TYPES",
    "RawResponse",
    "decode_response",
]

"""
Helpers for keeping customer identifiers out of logs.
"""

from typing import Optional

MASK = "****"


def mask_customer_id(customer_id: Optional[str]) -> str:
    """
    Mask a customer id for logging.

    Keeps the first and last two characters, e.g. ``"12345678"`` -> ``"12****78"``.
    Ids of four characters or fewer are fully masked.
    """
    if customer_id is None or len(customer_id) <= 4:
        return MASK
    return customer_id[:2] + MASK + customer_id[-2:]


def is_masked(identifier: Optional[str]) -> bool:
    """Return True if an identifier is a masked display value rather than a real key."""
    return bool(identifier) and MASK in identifier

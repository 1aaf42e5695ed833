"""
Read-only banking data providers, one per domain.
"""

from .accounts import get_current_accounts, get_foreign_current_accounts
from .cards import get_credit_cards
from .documents import empty_document, load_document
from .lending import get_deposits, get_loans, get_mortgages
from .securities import get_securities

__all__ = [
    "get_current_accounts",
    "get_foreign_current_accounts",
    "get_credit_cards",
    "get_loans",
    "get_mortgages",
    "get_deposits",
    "get_securities",
    "empty_document",
    "load_document",
]

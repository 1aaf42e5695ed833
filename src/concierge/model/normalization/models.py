"""
Canonical banking data model produced by normalization.

Every domain maps onto the same shape. Fields that do not apply to a domain stay
None rather than zero, and ``to_dict`` keeps them so consumers can tell "not
applicable" apart from an actual zero.
"""

import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

ENTITY_TYPES = ("ACCOUNT", "CARD", "LOAN", "MORTGAGE", "DEPOSIT", "SECURITIES_ACCOUNT")

_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")


def _camel(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), name)


def _serialize(value: Any) -> Any:
    if isinstance(value, _Serializable):
        return value.to_dict()
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value


class _Serializable:
    """Dataclass mixin rendering camelCase dictionaries for JSON output."""

    def to_dict(self) -> Dict[str, Any]:
        return {_camel(f.name): _serialize(getattr(self, f.name)) for f in fields(self)}


@dataclass
class NormalizedLocation(_Serializable):
    city: Optional[str] = None
    country: Optional[str] = None


@dataclass
class NormalizedMerchant(_Serializable):
    name: Optional[str] = None
    mcc: Optional[str] = None
    location: Optional[NormalizedLocation] = None


@dataclass
class NormalizedCategory(_Serializable):
    code: Optional[str] = None
    label: Optional[str] = None


@dataclass
class NormalizedCounterparty(_Serializable):
    name: Optional[str] = None
    bank_name: Optional[str] = None
    account_masked: Optional[str] = None


@dataclass
class NormalizedTransactionReferences(_Serializable):
    bank_reference: Optional[str] = None
    end_to_end_id: Optional[str] = None
    authorization_code: Optional[str] = None
    rrn: Optional[str] = None
    issuer_reference: Optional[str] = None


@dataclass
class NormalizedEnrichment(_Serializable):
    normalized_description: Optional[str] = None
    tags: Optional[List[str]] = None


@dataclass
class NormalizedInstallments(_Serializable):
    """Installment plan details, credit cards only."""

    is_installment: Optional[bool] = None
    plan_type: Optional[str] = None
    total_installments: Optional[int] = None
    current_installment: Optional[int] = None
    installment_amount: Optional[float] = None


@dataclass
class NormalizedFxRate(_Serializable):  # pylint: disable=too-many-instance-attributes
    # Mirrors the provider's FX rate record field for field.
    """Conversion details, foreign current accounts only."""

    base_currency: Optional[str] = None
    quote_currency: Optional[str] = None
    rate: Optional[float] = None
    rate_timestamp: Optional[str] = None
    rate_type: Optional[str] = None
    source: Optional[str] = None
    applied_to: Optional[str] = None
    converted_amount_ils: Optional[float] = None
    is_final: Optional[bool] = None


@dataclass
class NormalizedTransaction(_Serializable):  # pylint: disable=too-many-instance-attributes
    # Canonical transaction carries every optional sub-record.
    """
    One transaction.

    ``date`` and ``value_date`` come from ``transactionDate``/``postingDate`` for
    cards and from ``bookingDate``/``valueDate`` for every other domain.
    """

    transaction_id: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    date: Optional[str] = None
    value_date: Optional[str] = None
    description: Optional[str] = None
    merchant: Optional[NormalizedMerchant] = None
    category: Optional[NormalizedCategory] = None
    counterparty: Optional[NormalizedCounterparty] = None
    references: Optional[NormalizedTransactionReferences] = None
    enrichment: Optional[NormalizedEnrichment] = None
    installments: Optional[NormalizedInstallments] = None
    fx_rate: Optional[NormalizedFxRate] = None


@dataclass
class NormalizedTransactionReference(_Serializable):
    """Pointer to a notable transaction inside a summary."""

    amount: Optional[float] = None
    currency: Optional[str] = None
    transaction_id: Optional[str] = None
    booking_date: Optional[str] = None
    description: Optional[str] = None


@dataclass
class NormalizedIlsEquivalent(_Serializable):
    total_debits_ils: Optional[float] = None
    total_credits_ils: Optional[float] = None
    fx_method: Optional[str] = None


@dataclass
class NormalizedTransactionsSummary(_Serializable):  # pylint: disable=too-many-instance-attributes
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    transaction_count: Optional[int] = None
    total_debits: Optional[float] = None
    total_credits: Optional[float] = None
    largest_debit: Optional[NormalizedTransactionReference] = None
    largest_credit: Optional[NormalizedTransactionReference] = None
    last_activity_date: Optional[str] = None
    ils_equivalent: Optional[NormalizedIlsEquivalent] = None


@dataclass
class NormalizedBalance(_Serializable):  # pylint: disable=too-many-instance-attributes
    # Superset of every domain's balance fields.
    """
    Balance superset.

    Card-only: ``credit_limit`` (also read from account balances when present),
    ``available_credit``. Lending and deposits: ``principal_outstanding``,
    ``accrued_interest``, ``total_outstanding``. Securities-only: ``market_value``,
    ``cash_balance``, ``total_value``.
    """

    as_of: Optional[str] = None
    currency: Optional[str] = None
    current: Optional[float] = None
    available: Optional[float] = None
    pending: Optional[float] = None
    credit_limit: Optional[float] = None
    available_credit: Optional[float] = None
    principal_outstanding: Optional[float] = None
    accrued_interest: Optional[float] = None
    total_outstanding: Optional[float] = None
    market_value: Optional[float] = None
    cash_balance: Optional[float] = None
    total_value: Optional[float] = None


@dataclass
class NormalizedEntity(_Serializable):  # pylint: disable=too-many-instance-attributes
    entity_id: Optional[str]
    entity_type: str
    nickname: Optional[str] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    balance: Optional[NormalizedBalance] = None
    transactions: Optional[List[NormalizedTransaction]] = None
    transactions_summary: Optional[NormalizedTransactionsSummary] = None
    domain_specific: Dict[str, Any] = field(default_factory=dict)

    def has_transactions(self) -> bool:
        return bool(self.transactions)


@dataclass
class NormalizedMetadata(_Serializable):
    schema_version: Optional[str] = None
    currency_decimals: Optional[Dict[str, int]] = None
    disclaimers: Optional[List[str]] = None


@dataclass
class NormalizedData(_Serializable):
    """Normalized entities of one domain plus the provider's metadata."""

    domain: str
    entities: List[NormalizedEntity] = field(default_factory=list)
    metadata: Optional[NormalizedMetadata] = None

"""
Normalization engine.

Maps each domain's raw provider response onto the canonical entity model. There
is one mapping function per domain; they differ only in where each canonical
field lives in the source document:

    current / foreign accounts  account.accountId,  balances.current/available/holds
    credit cards                card.cardId,        currentBalance.postedBalance/pendingAmount
                                                    + limits.creditLimit/availableCredit
    loans / mortgages / deposits  <x>.<x>Id,        balances.principalOutstanding/
                                                    accruedInterest/totalOutstanding
    securities                  account.securitiesAccountId,
                                                    valuation.marketValueBase/
                                                    cashBalanceBase/totalValueBase

Source blocks with no canonical counterpart are copied into ``domain_specific``.
Output depends only on the input document, so normalizing the same document
twice yields identical results.
"""

import copy
from typing import Any, Callable, Dict, List, Optional, Type

from ...utils.logging import get_logger
from .models import (
    NormalizedBalance,
    NormalizedCategory,
    NormalizedCounterparty,
    NormalizedData,
    NormalizedEnrichment,
    NormalizedEntity,
    NormalizedFxRate,
    NormalizedIlsEquivalent,
    NormalizedInstallments,
    NormalizedLocation,
    NormalizedMerchant,
    NormalizedMetadata,
    NormalizedTransaction,
    NormalizedTransactionReference,
    NormalizedTransactionReferences,
    NormalizedTransactionsSummary,
)
from .raw import (
    CreditCardsResponse,
    CurrentAccountsResponse,
    DepositsResponse,
    ForeignCurrentAccountsResponse,
    LoansResponse,
    MortgagesResponse,
    RawResponse,
    SecuritiesResponse,
    decode_response,
)

logger = get_logger()


def _number(source: Optional[Dict[str, Any]], key: str) -> Optional[float]:
    if not source:
        return None
    value = source.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _integer(source: Optional[Dict[str, Any]], key: str) -> Optional[int]:
    if not source:
        return None
    value = source.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _text(source: Optional[Dict[str, Any]], key: str) -> Optional[str]:
    if not source:
        return None
    value = source.get(key)
    return value if isinstance(value, str) else None


def _flag(source: Optional[Dict[str, Any]], key: str) -> Optional[bool]:
    if not source:
        return None
    value = source.get(key)
    return value if isinstance(value, bool) else None


def _block(source: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    value = source.get(key)
    return value if isinstance(value, dict) else None


def _header(item: Dict[str, Any], key: str, domain: str) -> Dict[str, Any]:
    header = _block(item, key)
    if header is None:
        raise ValueError(f"{domain}: entry missing '{key}' block")
    return header


def _preserve(item: Dict[str, Any], keys: List[str]) -> Dict[str, Any]:
    # Deep copies so the canonical output never aliases the provider document
    return {key: copy.deepcopy(item.get(key)) for key in keys}


# Balances


def _account_balance(balances: Optional[Dict[str, Any]]) -> Optional[NormalizedBalance]:
    if balances is None:
        return None
    return NormalizedBalance(
        as_of=_text(balances, "asOf"),
        currency=_text(balances, "currency") or _text(balances, "baseCurrency"),
        current=_number(balances, "current"),
        available=_number(balances, "available"),
        pending=_number(balances, "holds"),
        credit_limit=_number(balances, "creditLimit"),
        principal_outstanding=_number(balances, "principalOutstanding"),
        accrued_interest=_number(balances, "accruedInterest"),
        total_outstanding=_number(balances, "totalOutstanding"),
    )


def _card_balance(
    current_balance: Optional[Dict[str, Any]], limits: Optional[Dict[str, Any]]
) -> NormalizedBalance:
    return NormalizedBalance(
        as_of=_text(current_balance, "asOf"),
        currency=_text(current_balance, "currency"),
        current=_number(current_balance, "postedBalance"),
        pending=_number(current_balance, "pendingAmount"),
        credit_limit=_number(limits, "creditLimit"),
        available_credit=_number(limits, "availableCredit"),
    )


def _securities_balance(valuation: Optional[Dict[str, Any]]) -> Optional[NormalizedBalance]:
    if valuation is None:
        return None
    return NormalizedBalance(
        as_of=_text(valuation, "asOf"),
        currency=_text(valuation, "baseCurrency"),
        market_value=_number(valuation, "marketValueBase"),
        cash_balance=_number(valuation, "cashBalanceBase"),
        total_value=_number(valuation, "totalValueBase"),
    )


# Transactions


def _merchant(merchant: Optional[Dict[str, Any]]) -> Optional[NormalizedMerchant]:
    if merchant is None:
        return None
    location = _block(merchant, "location")
    return NormalizedMerchant(
        name=_text(merchant, "name"),
        mcc=_text(merchant, "mcc"),
        location=(
            NormalizedLocation(city=_text(location, "city"), country=_text(location, "country"))
            if location is not None
            else None
        ),
    )


def _category(category: Optional[Dict[str, Any]]) -> Optional[NormalizedCategory]:
    if category is None:
        return None
    return NormalizedCategory(code=_text(category, "code"), label=_text(category, "label"))


def _counterparty(counterparty: Optional[Dict[str, Any]]) -> Optional[NormalizedCounterparty]:
    if counterparty is None:
        return None
    return NormalizedCounterparty(
        name=_text(counterparty, "name"),
        bank_name=_text(counterparty, "bankName"),
        account_masked=_text(counterparty, "accountMasked"),
    )


def _references(references: Optional[Dict[str, Any]]) -> Optional[NormalizedTransactionReferences]:
    if references is None:
        return None
    return NormalizedTransactionReferences(
        bank_reference=_text(references, "bankReference"),
        end_to_end_id=_text(references, "endToEndId"),
        authorization_code=_text(references, "authorizationCode"),
        rrn=_text(references, "rrn"),
        issuer_reference=_text(references, "issuerReference"),
    )


def _enrichment(enrichment: Optional[Dict[str, Any]]) -> Optional[NormalizedEnrichment]:
    if enrichment is None:
        return None
    tags = enrichment.get("tags")
    return NormalizedEnrichment(
        normalized_description=_text(enrichment, "normalizedDescription"),
        tags=[str(tag) for tag in tags] if isinstance(tags, list) else None,
    )


def _installments(installments: Optional[Dict[str, Any]]) -> Optional[NormalizedInstallments]:
    if installments is None:
        return None
    return NormalizedInstallments(
        is_installment=_flag(installments, "isInstallment"),
        plan_type=_text(installments, "planType"),
        total_installments=_integer(installments, "totalInstallments"),
        current_installment=_integer(installments, "currentInstallment"),
        installment_amount=_number(installments, "installmentAmount"),
    )


def _fx_rate(fx_rate: Optional[Dict[str, Any]]) -> Optional[NormalizedFxRate]:
    if fx_rate is None:
        return None
    return NormalizedFxRate(
        base_currency=_text(fx_rate, "baseCurrency"),
        quote_currency=_text(fx_rate, "quoteCurrency"),
        rate=_number(fx_rate, "rate"),
        rate_timestamp=_text(fx_rate, "rateTimestamp"),
        rate_type=_text(fx_rate, "rateType"),
        source=_text(fx_rate, "source"),
        applied_to=_text(fx_rate, "appliedTo"),
        converted_amount_ils=_number(fx_rate, "convertedAmountIls"),
        is_final=_flag(fx_rate, "isFinal"),
    )


def _transaction(tx: Dict[str, Any], domain: str) -> NormalizedTransaction:
    is_card = domain == "credit-cards"
    return NormalizedTransaction(
        transaction_id=_text(tx, "transactionId"),
        type=_text(tx, "type"),
        status=_text(tx, "status"),
        amount=_number(tx, "amount"),
        currency=_text(tx, "currency"),
        date=_text(tx, "transactionDate" if is_card else "bookingDate"),
        value_date=_text(tx, "postingDate" if is_card else "valueDate"),
        description=_text(tx, "description"),
        merchant=_merchant(_block(tx, "merchant")),
        category=_category(_block(tx, "category")),
        counterparty=_counterparty(_block(tx, "counterparty")),
        references=_references(_block(tx, "references")),
        enrichment=_enrichment(_block(tx, "enrichment")),
        installments=_installments(_block(tx, "installments")) if is_card else None,
        fx_rate=_fx_rate(_block(tx, "fxRate")) if domain == "foreign-current-accounts" else None,
    )


def _transactions(item: Dict[str, Any], domain: str) -> List[NormalizedTransaction]:
    raw = item.get("transactions")
    if not isinstance(raw, list):
        return []
    return [_transaction(tx, domain) for tx in raw if isinstance(tx, dict)]


def _transaction_reference(ref: Optional[Dict[str, Any]]) -> Optional[NormalizedTransactionReference]:
    if ref is None:
        return None
    return NormalizedTransactionReference(
        amount=_number(ref, "amount"),
        currency=_text(ref, "currency"),
        transaction_id=_text(ref, "transactionId"),
        booking_date=_text(ref, "bookingDate"),
        description=_text(ref, "description"),
    )


def _transactions_summary(item: Dict[str, Any], domain: str) -> Optional[NormalizedTransactionsSummary]:
    summary = _block(item, "transactionsSummary")
    if summary is None:
        return None

    ils_equivalent = None
    if domain == "foreign-current-accounts":
        ils = _block(summary, "ilsEquivalent")
        if ils is not None:
            ils_equivalent = NormalizedIlsEquivalent(
                total_debits_ils=_number(ils, "totalDebitsIls"),
                total_credits_ils=_number(ils, "totalCreditsIls"),
                fx_method=_text(ils, "fxMethod"),
            )

    return NormalizedTransactionsSummary(
        from_date=_text(summary, "fromDate"),
        to_date=_text(summary, "toDate"),
        transaction_count=_integer(summary, "transactionCount"),
        total_debits=_number(summary, "totalDebits"),
        total_credits=_number(summary, "totalCredits"),
        largest_debit=_transaction_reference(_block(summary, "largestDebit")),
        largest_credit=_transaction_reference(_block(summary, "largestCredit")),
        last_activity_date=_text(summary, "lastActivityDate"),
        ils_equivalent=ils_equivalent,
    )


def _metadata(metadata: Optional[Dict[str, Any]]) -> Optional[NormalizedMetadata]:
    if metadata is None:
        return None
    decimals = metadata.get("currencyDecimals")
    disclaimers = metadata.get("disclaimers")
    return NormalizedMetadata(
        schema_version=_text(metadata, "schemaVersion"),
        currency_decimals=dict(decimals) if isinstance(decimals, dict) else None,
        disclaimers=list(disclaimers) if isinstance(disclaimers, list) else None,
    )


# Per-domain mappers


def _account_entity(item: Dict[str, Any], domain: str) -> NormalizedEntity:
    account = _header(item, "account", domain)
    return NormalizedEntity(
        entity_id=_text(account, "accountId"),
        entity_type="ACCOUNT",
        nickname=_text(account, "nickname"),
        currency=_text(account, "currency"),
        status=_text(account, "status"),
        balance=_account_balance(_block(item, "balances")),
        transactions=_transactions(item, domain),
        transactions_summary=_transactions_summary(item, domain),
        domain_specific={"account": copy.deepcopy(account), **_preserve(item, ["pagination"])},
    )


def normalize_current_accounts(response: CurrentAccountsResponse) -> List[NormalizedEntity]:
    return [_account_entity(item, response.domain) for item in response.items]


def normalize_foreign_current_accounts(response: ForeignCurrentAccountsResponse) -> List[NormalizedEntity]:
    return [_account_entity(item, response.domain) for item in response.items]


def normalize_credit_cards(response: CreditCardsResponse) -> List[NormalizedEntity]:
    entities = []
    for item in response.items:
        card = _header(item, "card", response.domain)
        limits = _block(item, "limits")
        entities.append(
            NormalizedEntity(
                entity_id=_text(card, "cardId"),
                entity_type="CARD",
                nickname=_text(card, "nickname"),
                currency=_text(card, "currency"),
                status=_text(card, "status"),
                balance=_card_balance(_block(item, "currentBalance"), limits),
                transactions=_transactions(item, response.domain),
                transactions_summary=_transactions_summary(item, response.domain),
                domain_specific={
                    "card": copy.deepcopy(card),
                    **_preserve(item, ["limits", "lastStatement", "pagination"]),
                },
            )
        )
    return entities


def _lending_entities(
    response: RawResponse, header_key: str, entity_type: str, extra_keys: List[str]
) -> List[NormalizedEntity]:
    entities = []
    for item in response.items:
        header = _header(item, header_key, response.domain)
        entities.append(
            NormalizedEntity(
                entity_id=_text(header, f"{header_key}Id"),
                entity_type=entity_type,
                nickname=_text(header, "nickname"),
                currency=_text(header, "currency"),
                status=_text(header, "status"),
                balance=_account_balance(_block(item, "balances")),
                transactions=_transactions(item, response.domain),
                transactions_summary=_transactions_summary(item, response.domain),
                domain_specific={header_key: copy.deepcopy(header), **_preserve(item, extra_keys)},
            )
        )
    return entities


def normalize_loans(response: LoansResponse) -> List[NormalizedEntity]:
    return _lending_entities(response, "loan", "LOAN", ["schedule", "features"])


def normalize_mortgages(response: MortgagesResponse) -> List[NormalizedEntity]:
    return _lending_entities(response, "mortgage", "MORTGAGE", ["accounts", "segments", "features"])


def normalize_deposits(response: DepositsResponse) -> List[NormalizedEntity]:
    return _lending_entities(response, "deposit", "DEPOSIT", ["features"])


def normalize_securities(response: SecuritiesResponse) -> List[NormalizedEntity]:
    entities = []
    for item in response.items:
        account = _header(item, "account", response.domain)
        valuation = _block(item, "valuation")
        entities.append(
            NormalizedEntity(
                entity_id=_text(account, "securitiesAccountId"),
                entity_type="SECURITIES_ACCOUNT",
                nickname=_text(account, "nickname"),
                currency=_text(account, "baseCurrency"),
                status=_text(account, "status"),
                balance=_securities_balance(valuation),
                # Positions are not transactions; they stay under domain_specific
                transactions=None,
                transactions_summary=None,
                domain_specific={
                    "account": copy.deepcopy(account),
                    "valuation": copy.deepcopy(valuation),
                    **_preserve(item, ["positionsSummary", "positions"]),
                },
            )
        )
    return entities


_MAPPERS: Dict[Type[RawResponse], Callable[[Any], List[NormalizedEntity]]] = {
    CurrentAccountsResponse: normalize_current_accounts,
    ForeignCurrentAccountsResponse: normalize_foreign_current_accounts,
    CreditCardsResponse: normalize_credit_cards,
    LoansResponse: normalize_loans,
    MortgagesResponse: normalize_mortgages,
    DepositsResponse: normalize_deposits,
    SecuritiesResponse: normalize_securities,
}


def normalize_response(response: RawResponse, execution_id: Optional[str] = None) -> Optional[NormalizedData]:
    """
    Normalize one decoded provider response.

    Args:
        response: Typed provider response
        execution_id: Execution ID for logging

    Returns:
        NormalizedData, or None if the response is malformed (logged).
    """
    mapper = _MAPPERS.get(type(response))
    if mapper is None:
        logger.warning("normalization.unknown_domain", execution_id=execution_id, domain=response.domain)
        return None

    try:
        entities = mapper(response)
    except (ValueError, TypeError, AttributeError) as e:
        logger.error(
            "normalization.malformed_response",
            execution_id=execution_id,
            domain=response.domain,
            error=str(e),
        )
        return None

    logger.debug(
        "normalization.domain_normalized",
        execution_id=execution_id,
        domain=response.domain,
        entities=len(entities),
    )
    return NormalizedData(domain=response.domain, entities=entities, metadata=_metadata(response.metadata))


def normalize(domain: str, document: Any, execution_id: Optional[str] = None) -> Optional[NormalizedData]:
    """
    Decode and normalize a raw provider document.

    Args:
        domain: Banking domain of the document
        document: Raw ``{"data": ..., "metadata": ...}`` document
        execution_id: Execution ID for logging

    Returns:
        NormalizedData, or None on malformed input.
    """
    try:
        response = decode_response(domain, document)
    except ValueError as e:
        logger.error("normalization.decode_failed", execution_id=execution_id, domain=domain, error=str(e))
        return None
    return normalize_response(response, execution_id)


def normalize_all(responses: List[RawResponse], execution_id: Optional[str] = None) -> List[NormalizedData]:
    """Normalize a batch, skipping responses that fail."""
    results = []
    for response in responses:
        normalized = normalize_response(response, execution_id)
        if normalized is not None:
            results.append(normalized)
    return results

"""
Tests for the normalization engine and raw response decoding.
"""

import copy
import json

import pytest

from concierge.model.normalization import (
    DOMAINS,
    RESPONSE_TYPES,
    decode_response,
    normalize,
    normalize_all,
)
from concierge.model.normalization.models import NormalizedBalance


class TestDecodeResponse:
    """Test decoding provider documents into typed responses."""

    def test_every_domain_has_a_type(self):
        """Each banking domain decodes to its own response type."""
        assert set(RESPONSE_TYPES) == set(DOMAINS)

    def test_decode_current_accounts(self, current_accounts_document):
        """Items come from the domain's list under data."""
        response = decode_response("current-accounts", current_accounts_document)

        assert response.domain == "current-accounts"
        assert len(response.items) == 1
        assert response.metadata["schemaVersion"] == "1.0"

    def test_missing_item_list_is_empty(self):
        """A data block without the item list decodes to no items."""
        response = decode_response("mortgages", {"data": {}})

        assert response.items == []

    @pytest.mark.parametrize(
        "domain,document",
        [
            ("pensions", {"data": {}}),
            ("loans", []),
            ("loans", {"metadata": {}}),
            ("loans", {"data": {"loans": "not-a-list"}}),
            ("loans", {"data": {"loans": [1, 2]}}),
            ("loans", {"data": {}, "metadata": "x"}),
        ],
    )
    def test_malformed_documents(self, domain, document):
        """Malformed documents raise ValueError."""
        with pytest.raises(ValueError):
            decode_response(domain, document)


class TestNormalizeAccounts:
    """Test current account normalization."""

    def test_account_fields(self, current_accounts_document):
        """Account header, balances and transactions map to canonical fields."""
        # Execute
        normalized = normalize("current-accounts", current_accounts_document)

        # Assert
        assert normalized.domain == "current-accounts"
        entity = normalized.entities[0]
        assert entity.entity_id == "ACC-001"
        assert entity.entity_type == "ACCOUNT"
        assert entity.nickname == "Main Account"
        assert entity.balance.current == 12500.5
        assert entity.balance.available == 12000.0
        assert entity.balance.pending == 500.5
        assert entity.balance.credit_limit is None
        assert entity.balance.market_value is None

        first = entity.transactions[0]
        assert first.date == "2025-12-10"
        assert first.value_date == "2025-12-11"
        assert first.merchant.name == "Shufersal"
        assert first.category.label == "Groceries"
        assert first.installments is None
        assert entity.transactions[1].counterparty.bank_name == "Bank Hapoalim"
        assert entity.transactions_summary.transaction_count == 2
        assert entity.domain_specific["pagination"] == {"pageSize": 50, "hasMore": False}

    def test_metadata(self, current_accounts_document):
        """Provider metadata is carried over."""
        normalized = normalize("current-accounts", current_accounts_document)

        assert normalized.metadata.schema_version == "1.0"
        assert normalized.metadata.currency_decimals == {"ILS": 2}
        assert normalized.metadata.disclaimers == ["Balances are indicative."]

    def test_does_not_alias_source(self, current_accounts_document):
        """Preserved blocks are copies of the provider document."""
        normalized = normalize("current-accounts", current_accounts_document)

        normalized.entities[0].domain_specific["account"]["nickname"] = "changed"

        assert current_accounts_document["data"]["accounts"][0]["account"]["nickname"] == "Main Account"


class TestDeterminism:
    """Test that normalization output depends only on the document."""

    @pytest.mark.parametrize(
        "domain,fixture_name",
        [
            ("current-accounts", "current_accounts_document"),
            ("foreign-current-accounts", "foreign_current_accounts_document"),
            ("credit-cards", "credit_cards_document"),
            ("loans", "loans_document"),
            ("mortgages", "mortgages_document"),
            ("deposits", "deposits_document"),
            ("securities", "securities_document"),
        ],
    )
    def test_identical_output(self, request, domain, fixture_name):
        """Normalizing the same document twice serializes to the same bytes."""
        # Setup
        document = request.getfixturevalue(fixture_name)

        # Execute
        first = normalize(domain, copy.deepcopy(document))
        second = normalize(domain, copy.deepcopy(document))

        # Assert
        assert first is not None
        assert first.domain == domain
        assert first.entities
        assert json.dumps(first.to_dict(), sort_keys=True) == json.dumps(second.to_dict(), sort_keys=True)


class TestNormalizeOtherDomains:
    """Test cards, lending and securities."""

    def test_credit_card_fields(self, credit_cards_document):
        """Cards read balances from currentBalance and limits."""
        entity = normalize("credit-cards", credit_cards_document).entities[0]

        assert entity.entity_id == "CARD-9"
        assert entity.entity_type == "CARD"
        assert entity.balance.current == 1840.0
        assert entity.balance.pending == 120.0
        assert entity.balance.credit_limit == 15000.0
        assert entity.balance.available_credit == 13040.0
        assert entity.balance.available is None
        assert entity.transactions[0].date == "2025-12-12"
        assert entity.transactions[0].value_date == "2025-12-14"
        assert entity.transactions[0].installments.is_installment is False
        assert entity.domain_specific["lastStatement"]["balance"] == 2100.0

    def test_loan_fields(self, loans_document):
        """Loans map lending balances and keep the schedule."""
        entities = normalize("loans", loans_document).entities

        assert [e.entity_id for e in entities] == ["LN-1", "LN-2"]
        assert entities[0].entity_type == "LOAN"
        assert entities[0].balance.principal_outstanding == 42000.0
        assert entities[0].balance.total_outstanding == 42310.25
        assert entities[0].domain_specific["schedule"]["nextPaymentAmount"] == 1500.0
        assert entities[0].has_transactions()
        assert not entities[1].has_transactions()

    def test_mortgage_fields(self, mortgages_document):
        """Mortgages map lending balances and keep accounts, segments and features."""
        # Execute
        entity = normalize("mortgages", mortgages_document).entities[0]

        # Assert
        assert entity.entity_id == "MTG-3"
        assert entity.entity_type == "MORTGAGE"
        assert entity.nickname == "Home Mortgage"
        assert entity.balance.principal_outstanding == 850000.0
        assert entity.balance.accrued_interest == 2100.0
        assert entity.balance.total_outstanding == 852100.0
        assert entity.balance.available is None
        assert entity.balance.market_value is None
        assert entity.domain_specific["mortgage"]["mortgageId"] == "MTG-3"
        assert entity.domain_specific["accounts"] == [{"accountId": "ACC-001", "role": "PAYMENT"}]
        assert [s["segmentId"] for s in entity.domain_specific["segments"]] == ["S-1", "S-2"]
        assert entity.domain_specific["features"] == {"earlyRepaymentAllowed": True}
        assert entity.transactions == []

    def test_deposit_fields(self, deposits_document):
        """Deposits keep features; absent totals stay None rather than zero."""
        entity = normalize("deposits", deposits_document).entities[0]

        assert entity.entity_id == "DEP-5"
        assert entity.entity_type == "DEPOSIT"
        assert entity.balance.principal_outstanding == 20000.0
        assert entity.balance.accrued_interest == 450.0
        assert entity.balance.total_outstanding is None
        assert entity.domain_specific["deposit"]["nickname"] == "Savings Plan"
        assert entity.domain_specific["features"] == {"maturityDate": "2026-06-30", "autoRenew": False}
        assert set(entity.domain_specific) == {"deposit", "features"}

    def test_securities_fields(self, securities_document):
        """Securities have valuation balances and no transactions."""
        entity = normalize("securities", securities_document).entities[0]

        assert entity.entity_id == "SEC-7"
        assert entity.entity_type == "SECURITIES_ACCOUNT"
        assert entity.currency == "ILS"
        assert entity.balance.market_value == 250000.0
        assert entity.balance.cash_balance == 5000.0
        assert entity.balance.total_value == 255000.0
        assert entity.transactions is None
        assert entity.domain_specific["positions"] == [{"symbol": "TA35", "quantity": 100}]

    def test_foreign_account_fx_rate(self):
        """Foreign account transactions keep FX details."""
        document = {
            "data": {
                "accounts": [
                    {
                        "account": {"accountId": "FX-1", "currency": "USD"},
                        "transactions": [
                            {
                                "transactionId": "F-1",
                                "amount": 100,
                                "bookingDate": "2025-12-01",
                                "fxRate": {"baseCurrency": "USD", "quoteCurrency": "ILS", "rate": 3.7},
                            }
                        ],
                        "transactionsSummary": {"ilsEquivalent": {"totalDebitsIls": 370.0}},
                    }
                ]
            }
        }

        entity = normalize("foreign-current-accounts", document).entities[0]

        assert entity.transactions[0].fx_rate.rate == 3.7
        assert entity.transactions[0].amount == 100.0
        assert entity.transactions_summary.ils_equivalent.total_debits_ils == 370.0

    def test_wrongly_typed_fields_become_none(self):
        """Values of the wrong type are treated as absent."""
        document = {
            "data": {
                "accounts": [
                    {"account": {"accountId": "ACC-2"}, "balances": {"current": "lots", "available": True}}
                ]
            }
        }

        balance = normalize("current-accounts", document).entities[0].balance

        assert balance.current is None
        assert balance.available is None


class TestMalformedInput:
    """Test failure handling."""

    def test_missing_header_block(self):
        """An entry without its header block fails the whole domain."""
        assert normalize("loans", {"data": {"loans": [{"balances": {}}]}}) is None

    def test_undecodable_document(self):
        """Undecodable documents return None."""
        assert normalize("loans", "not a document") is None

    def test_normalize_all_skips_failures(self, loans_document):
        """Batch normalization keeps the responses that succeed."""
        good = decode_response("loans", loans_document)
        bad = decode_response("deposits", {"data": {"deposits": [{"noHeader": {}}]}})

        results = normalize_all([good, bad])

        assert [r.domain for r in results] == ["loans"]


class TestSerialization:
    """Test camelCase output."""

    def test_to_dict_keeps_nulls(self):
        """Inapplicable fields serialize as None with camelCase keys."""
        data = NormalizedBalance(current=10.0).to_dict()

        assert data["current"] == 10.0
        assert "creditLimit" in data
        assert data["creditLimit"] is None
        assert "availableCredit" in data

"""
Tests for the data fetch coordinator.
"""

from unittest.mock import AsyncMock, patch

import pytest

from concierge.model.fetch import (
    extract_nickname,
    fetch_for_intents,
    filter_masked_ids,
    include_transactions_for,
)
from concierge.model.state import Intent
from concierge.utils.session import EntityHints, TimeRange

TIME_RANGE = TimeRange("2025-12-01", "2025-12-13")


class TestHelpers:
    """Test intent-to-provider mapping helpers."""

    def test_include_transactions(self):
        """Only balance questions skip transactions."""
        assert include_transactions_for("balance") is False
        assert include_transactions_for("BALANCE") is False
        assert include_transactions_for("list") is True
        assert include_transactions_for(None) is True

    def test_filter_masked_ids(self):
        """Masked display values are dropped; nothing usable means fetch all."""
        assert filter_masked_ids(["ACC-001", "****1234"]) == ["ACC-001"]
        assert filter_masked_ids(["****1234"]) is None
        assert filter_masked_ids([]) is None
        assert filter_masked_ids(None) is None

    def test_extract_nickname_priority(self):
        """Parameters win over card ids, which win over domain ids."""
        hints = EntityHints(card_ids=["Visa"], other_entities={"loanIds": ["Car Loan"]})
        loan_hints = EntityHints(other_entities={"loanIds": ["Car Loan"]})
        with_param = Intent("loans", "list", parameters={"nickname": " Home "}, entity_hints=hints)

        assert extract_nickname(with_param) == "Home"
        assert extract_nickname(Intent("loans", "list", entity_hints=hints)) == "Visa"
        assert extract_nickname(Intent("loans", "list", entity_hints=loan_hints)) == "Car Loan"
        assert extract_nickname(Intent("mortgages", "list")) is None


class TestFetchForIntents:
    """Test fetching across intents."""

    @pytest.mark.asyncio
    @patch("concierge.providers.get_current_accounts", new_callable=AsyncMock)
    async def test_fetch_current_accounts(self, mock_accounts, current_accounts_document):
        """Provider arguments follow the intent; the document is decoded."""
        # Setup
        mock_accounts.return_value = current_accounts_document
        intent = Intent(
            "current-accounts",
            "balance",
            entity_hints=EntityHints(account_ids=["ACC-001", "****9999"]),
        )

        # Execute
        result = await fetch_for_intents([intent], "123456789", TIME_RANGE, "exec-1")

        # Assert
        mock_accounts.assert_called_once_with(
            "123456789", "2025-12-01", "2025-12-13", ["ACC-001"], False, "exec-1"
        )
        assert [r.domain for r in result["responses"]] == ["current-accounts"]
        assert result["execution_plan"] == {
            "fromDate": "2025-12-01",
            "toDate": "2025-12-13",
            "usingDefaultTimeRange": False,
            "intentCount": 1,
            "fetched": ["current-accounts"],
            "failed": [],
        }

    @pytest.mark.asyncio
    @patch("concierge.providers.get_securities", new_callable=AsyncMock)
    @patch("concierge.providers.get_credit_cards", new_callable=AsyncMock)
    async def test_partial_failure(self, mock_cards, mock_securities, securities_document):
        """A failing provider is recorded and the others still fetch."""
        # Setup
        mock_cards.side_effect = RuntimeError("card service down")
        mock_securities.return_value = securities_document
        intents = [
            Intent("credit-cards", "list", entity_hints=EntityHints(card_ids=["4321"])),
            Intent("securities", "list"),
        ]

        # Execute
        result = await fetch_for_intents(intents, "123456789", TIME_RANGE, used_default_time_range=True)

        # Assert
        assert mock_cards.call_args.args[3] == "4321"
        mock_securities.assert_called_once_with("123456789", True, None)
        plan = result["execution_plan"]
        assert plan["fetched"] == ["securities"]
        assert plan["failed"] == [{"domain": "credit-cards", "error": "card service down"}]
        assert plan["usingDefaultTimeRange"] is True

    @pytest.mark.asyncio
    @patch("concierge.providers.get_loans", new_callable=AsyncMock)
    async def test_malformed_document_fails_domain(self, mock_loans):
        """Documents that do not decode count as failures."""
        mock_loans.return_value = {"data": {"loans": "oops"}}

        result = await fetch_for_intents([Intent("loans", "list")], "123456789", TIME_RANGE)

        assert result["responses"] == []
        assert result["execution_plan"]["failed"][0]["domain"] == "loans"

    @pytest.mark.asyncio
    async def test_unknown_intents_skipped(self):
        """UNKNOWN intents are not fetched but still counted."""
        result = await fetch_for_intents([Intent("UNKNOWN", "list")], "123456789", TIME_RANGE)

        assert result["responses"] == []
        assert result["execution_plan"]["intentCount"] == 1
        assert result["execution_plan"]["fetched"] == []

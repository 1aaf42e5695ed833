"""
Tests for the banking data providers.

Documents are served from a mocked ``fetch_one``.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from concierge.providers import (
    empty_document,
    get_credit_cards,
    get_current_accounts,
    get_deposits,
    get_foreign_current_accounts,
    get_loans,
    get_securities,
    load_document,
)
from concierge.utils.errors import ProviderError

FETCH_ONE = "concierge.providers.documents.fetch_one"


class TestLoadDocument:
    """Test document loading."""

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_query_parameters(self, mock_fetch_one, loans_document):
        """The customer id and collection are bound as parameters."""
        mock_fetch_one.return_value = {"document": loans_document}

        document = await load_document("loans", "123456789", "exec-1")

        assert document == loans_document
        query, params = mock_fetch_one.call_args.args
        assert "FROM bank_documents" in query
        assert params == {"collection": "loans", "customer_id": "123456789"}

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_json_text_is_decoded(self, mock_fetch_one, loans_document):
        """JSONB returned as text is parsed."""
        mock_fetch_one.return_value = {"document": json.dumps(loans_document)}

        document = await load_document("loans", "123456789")

        assert document["data"]["loans"][0]["loan"]["loanId"] == "LN-1"

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_missing_document(self, mock_fetch_one):
        """A customer without a document gets None."""
        mock_fetch_one.return_value = None

        assert await load_document("loans", "123456789") is None

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_non_object_document(self, mock_fetch_one):
        """Stored values that are not objects are provider errors."""
        mock_fetch_one.return_value = {"document": "[1, 2]"}

        with pytest.raises(ProviderError):
            await load_document("loans", "123456789")


class TestAccountProviders:
    """Test current and foreign account providers."""

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_transactions_filtered_by_date(self, mock_fetch_one, current_accounts_document):
        """Only transactions booked in range are kept and the count follows."""
        # Setup
        mock_fetch_one.return_value = {"document": current_accounts_document}

        # Execute
        document = await get_current_accounts("123456789", "2025-12-01", "2025-12-13")

        # Assert
        account = document["data"]["accounts"][0]
        assert [tx["transactionId"] for tx in account["transactions"]] == ["TX-1"]
        assert account["transactionsSummary"]["transactionCount"] == 1
        # Source document untouched
        assert len(current_accounts_document["data"]["accounts"][0]["transactions"]) == 2

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_balance_only(self, mock_fetch_one, current_accounts_document):
        """Without transactions the summary and pagination go too."""
        mock_fetch_one.return_value = {"document": current_accounts_document}

        document = await get_current_accounts(
            "123456789", "2025-12-01", "2025-12-13", include_transactions=False
        )

        account = document["data"]["accounts"][0]
        assert "transactions" not in account
        assert "transactionsSummary" not in account
        assert "pagination" not in account
        assert account["balances"]["current"] == 12500.5

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_account_id_filter(self, mock_fetch_one, current_accounts_document):
        """Account ids filter case-insensitively."""
        mock_fetch_one.return_value = {"document": current_accounts_document}

        kept = await get_current_accounts("123456789", "2025-12-01", "2025-12-13", ["acc-001"])
        mock_fetch_one.return_value = {"document": current_accounts_document}
        dropped = await get_current_accounts("123456789", "2025-12-01", "2025-12-13", ["ACC-999"])

        assert len(kept["data"]["accounts"]) == 1
        assert dropped["data"]["accounts"] == []

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_foreign_filter_by_currency(self, mock_fetch_one):
        """Foreign accounts can be selected by currency."""
        mock_fetch_one.return_value = {
            "document": {
                "data": {
                    "accounts": [
                        {"account": {"accountId": "FX-USD", "currency": "USD"}},
                        {"account": {"accountId": "FX-EUR", "currency": "EUR"}},
                    ]
                }
            }
        }

        document = await get_foreign_current_accounts(
            "123456789", "2025-12-01", "2025-12-13", ["usd"], include_transactions=False
        )

        assert [a["account"]["accountId"] for a in document["data"]["accounts"]] == ["FX-USD"]

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_missing_document_is_empty(self, mock_fetch_one):
        """No stored document gives an empty provider document."""
        mock_fetch_one.return_value = None

        document = await get_current_accounts("123456789", "2025-12-01", "2025-12-13")

        assert document == empty_document()


class TestCardProvider:
    """Test the credit card provider."""

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_last4_filter(self, mock_fetch_one, credit_cards_document):
        """Cards are selected by the last four PAN digits."""
        mock_fetch_one.return_value = {"document": credit_cards_document}
        match = await get_credit_cards("123456789", "2025-12-01", "2025-12-13", "4321")
        mock_fetch_one.return_value = {"document": credit_cards_document}
        miss = await get_credit_cards("123456789", "2025-12-01", "2025-12-13", "0000")

        assert len(match["data"]["cards"]) == 1
        assert match["data"]["cards"][0]["transactions"][0]["transactionId"] == "CT-1"
        assert miss["data"]["cards"] == []

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_card_transactions_use_transaction_date(self, mock_fetch_one, credit_cards_document):
        """Card transactions are dated by transactionDate."""
        mock_fetch_one.return_value = {"document": credit_cards_document}

        document = await get_credit_cards("123456789", "2025-12-13", "2025-12-31")

        assert document["data"]["cards"][0]["transactions"] == []


class TestLendingAndSecurities:
    """Test lending and securities providers."""

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_loan_nickname_partial_match(self, mock_fetch_one, loans_document):
        """Nickname filters match partially and case-insensitively."""
        mock_fetch_one.return_value = {"document": loans_document}

        document = await get_loans("123456789", "2025-12-01", "2025-12-13", "car")

        loans = document["data"]["loans"]
        assert [entry["loan"]["loanId"] for entry in loans] == ["LN-1"]
        assert loans[0]["transactions"][0]["transactionId"] == "LT-1"

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_deposits_without_list(self, mock_fetch_one):
        """Documents missing the item list pass through."""
        mock_fetch_one.return_value = {"document": {"data": {}, "metadata": {}}}

        document = await get_deposits("123456789", "2025-12-01", "2025-12-13")

        assert document == {"data": {}, "metadata": {}}

    @pytest.mark.asyncio
    @patch(FETCH_ONE, new_callable=AsyncMock)
    async def test_securities_without_positions(self, mock_fetch_one, securities_document):
        """Positions are dropped when not requested; valuation stays."""
        mock_fetch_one.return_value = {"document": securities_document}

        document = await get_securities("123456789", include_positions=False)

        account = document["data"]["accounts"][0]
        assert "positions" not in account
        assert account["valuation"]["totalValueBase"] == 255000.0

"""
Tests for time range resolution.

2025-12-13 is a Saturday; weeks run Sunday through Saturday.
"""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from concierge.model.time_range import (
    TimeRange,
    default_time_range,
    resolve_deterministically,
    resolve_time_range,
    today_in_timezone,
)

TODAY = date(2025, 12, 13)


class TestResolveDeterministically:
    """Test phrases resolved without a model call."""

    @pytest.mark.parametrize(
        "hint,expected",
        [
            ("today", ("2025-12-13", "2025-12-13")),
            ("yesterday", ("2025-12-12", "2025-12-12")),
            ("this week", ("2025-12-07", "2025-12-13")),
            ("last week", ("2025-11-30", "2025-12-06")),
            ("this month", ("2025-12-01", "2025-12-13")),
            ("last month", ("2025-11-01", "2025-11-30")),
            ("last 3 days", ("2025-12-11", "2025-12-13")),
            ("past 2 weeks", ("2025-11-30", "2025-12-13")),
            ("last 1 month", ("2025-11-14", "2025-12-13")),
            ("2025-11-01 to 2025-11-30", ("2025-11-01", "2025-11-30")),
            ("  Last Month  ", ("2025-11-01", "2025-11-30")),
        ],
    )
    def test_known_phrases(self, hint, expected):
        """Common phrases resolve to inclusive absolute ranges."""
        assert resolve_deterministically(hint, today=TODAY) == TimeRange(*expected)

    @pytest.mark.parametrize("hint", [None, "", "   "])
    def test_missing_hint_uses_default(self, hint):
        """No hint means first of the month through today."""
        assert resolve_deterministically(hint, today=TODAY) == TimeRange("2025-12-01", "2025-12-13")

    def test_month_arithmetic_clamps(self):
        """Subtracting a month from the 31st clamps to the shorter month."""
        result = resolve_deterministically("last 1 month", today=date(2025, 3, 31))
        assert result == TimeRange("2025-03-01", "2025-03-31")

    def test_last_week_on_sunday(self):
        """On a Sunday, last week is the full previous Sunday-Saturday."""
        result = resolve_deterministically("last week", today=date(2025, 12, 14))
        assert result == TimeRange("2025-12-07", "2025-12-13")

    def test_last_week_on_wednesday(self):
        """Midweek, last week is the previous Sunday-Saturday and excludes this week."""
        result = resolve_deterministically("last week", today=date(2025, 12, 10))
        assert result == TimeRange("2025-11-30", "2025-12-06")

    @pytest.mark.parametrize("hint", ["last 0 days", "past 0 weeks", "last 0 months"])
    def test_zero_count_escalates(self, hint):
        """A zero count has no inclusive range and is not resolved here."""
        assert resolve_deterministically(hint, today=TODAY) is None

    @pytest.mark.parametrize("hint", ["last 99999999 days", "past 99999999 weeks", "last 999999 months"])
    def test_huge_count_uses_default(self, hint):
        """Counts reaching past the calendar fall back to the default range."""
        assert resolve_deterministically(hint, today=TODAY) == TimeRange("2025-12-01", "2025-12-13")

    @pytest.mark.parametrize("hint", ["since the holidays", "2025-12-01 to 2025-11-01", "Q3"])
    def test_unknown_phrases_escalate(self, hint):
        """Free-form or inverted ranges are not resolved here."""
        assert resolve_deterministically(hint, today=TODAY) is None


class TestDefaults:
    """Test default range and timezone handling."""

    def test_default_time_range(self):
        """The default range starts on the first of the month."""
        assert default_time_range(today=date(2025, 2, 28)) == TimeRange("2025-02-01", "2025-02-28")

    def test_invalid_timezone_falls_back(self):
        """Unknown timezones fall back to the system date."""
        assert today_in_timezone("Not/AZone") == date.today()


class TestResolveTimeRange:
    """Test resolution with escalation to the model."""

    @pytest.mark.asyncio
    @patch("concierge.model.time_range.resolve_time_range_with_llm", new_callable=AsyncMock)
    async def test_deterministic_skips_model(self, mock_llm, test_context):
        """Known phrases never call the model."""
        result = await resolve_time_range("last 3 days", None, test_context, today=TODAY)

        assert result["time_range"] == TimeRange("2025-12-11", "2025-12-13")
        assert result["source"] == "deterministic"
        assert result["tokens_used"] == 0
        mock_llm.assert_not_called()

    @pytest.mark.asyncio
    @patch("concierge.model.time_range.resolve_time_range_with_llm", new_callable=AsyncMock)
    async def test_escalation_success(self, mock_llm, test_context):
        """Valid dates from the model are used."""
        # Setup
        mock_llm.return_value = {
            "status": "Success",
            "from_date": "2025-06-01",
            "to_date": "2025-08-31",
            "tokens_used": 80,
            "cost": 0.0001,
            "model_used": "gpt-4.1-nano",
        }

        # Execute
        result = await resolve_time_range("over the summer", "Asia/Jerusalem", test_context, today=TODAY)

        # Assert
        assert result["time_range"] == TimeRange("2025-06-01", "2025-08-31")
        assert result["source"] == "llm"
        assert result["tokens_used"] == 80
        mock_llm.assert_called_once_with("over the summer", "Asia/Jerusalem", "2025-12-13", test_context)

    @pytest.mark.asyncio
    @patch("concierge.model.time_range.resolve_time_range_with_llm", new_callable=AsyncMock)
    async def test_escalation_invalid_dates_fall_back(self, mock_llm, test_context):
        """Inverted or unparseable dates degrade to the default range."""
        mock_llm.return_value = {
            "status": "Success",
            "from_date": "2025-09-01",
            "to_date": "2025-08-01",
            "tokens_used": 80,
            "cost": 0.0001,
        }

        result = await resolve_time_range("over the summer", None, test_context, today=TODAY)

        assert result["time_range"] == TimeRange("2025-12-01", "2025-12-13")
        assert result["source"] == "default"
        assert result["tokens_used"] == 80

    @pytest.mark.asyncio
    @patch("concierge.model.time_range.resolve_time_range_with_llm", new_callable=AsyncMock)
    async def test_escalation_error_falls_back(self, mock_llm, test_context):
        """A failed escalation degrades to the default range."""
        mock_llm.return_value = {"status": "Error", "error": "timeout", "tokens_used": 0, "cost": 0}

        result = await resolve_time_range("since forever", None, test_context, today=TODAY)

        assert result["source"] == "default"
        assert result["time_range"] == TimeRange("2025-12-01", "2025-12-13")

    @pytest.mark.asyncio
    @patch("concierge.model.time_range.resolve_time_range_with_llm", new_callable=AsyncMock)
    async def test_huge_count_never_raises(self, mock_llm, test_context):
        """Out-of-calendar counts resolve to the default without the model."""
        result = await resolve_time_range("last 99999999 days", "UTC", test_context, today=TODAY)

        assert result["time_range"] == TimeRange("2025-12-01", "2025-12-13")
        mock_llm.assert_not_called()

    @pytest.mark.asyncio
    @patch("concierge.model.time_range.resolve_time_range_with_llm", new_callable=AsyncMock)
    async def test_zero_count_is_never_inverted(self, mock_llm, test_context):
        """A zero count goes to the model and still ends in an ordered range."""
        # Setup
        mock_llm.return_value = {"status": "Error", "error": "timeout", "tokens_used": 0, "cost": 0}

        # Execute
        result = await resolve_time_range("last 0 days", "UTC", test_context, today=TODAY)

        # Assert
        time_range = result["time_range"]
        assert time_range.from_date <= time_range.to_date
        assert time_range == TimeRange("2025-12-01", "2025-12-13")
        mock_llm.assert_awaited_once()

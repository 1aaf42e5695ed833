"""
Time range resolution.

Turns a free-text hint such as "last week" or "2025-11-01 to 2025-11-30" into an
absolute inclusive date interval. Common phrases are resolved here without any
model call; anything else is escalated to the time-range agent, and a failed
escalation falls back to the default range (first of the month through today).

Weeks run Sunday through Saturday.
"""

import calendar
import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..utils.logging import get_logger
from ..utils.session import TimeRange
from .agents.time_resolver import resolve_time_range_with_llm

logger = get_logger()

_FORMATTED_RANGE = re.compile(r"(\d{4}-\d{2}-\d{2})\s*(?:to|-)\s*(\d{4}-\d{2}-\d{2})")
_LAST_N = re.compile(r"(?:last|past)\s+(\d+)\s+(day|days|week|weeks|month|months)")

__all__ = [
    "TimeRange",
    "today_in_timezone",
    "default_time_range",
    "resolve_deterministically",
    "resolve_time_range",
]


def today_in_timezone(timezone_name: Optional[str] = None) -> date:
    """Today's date in the named IANA timezone, or the system date if unknown."""
    if timezone_name and timezone_name.strip():
        try:
            return datetime.now(ZoneInfo(timezone_name.strip())).date()
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("time_range.invalid_timezone", timezone=timezone_name)
    return date.today()


def _fmt(value: date) -> str:
    return value.isoformat()


def _minus_months(value: date, months: int) -> date:
    # Clamp to the last day of the target month (Mar 31 - 1 month = Feb 28/29)
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _days_since_sunday(value: date) -> int:
    # weekday(): Monday=0 .. Sunday=6
    return (value.weekday() + 1) % 7


def default_time_range(timezone_name: Optional[str] = None, today: Optional[date] = None) -> TimeRange:
    """First day of the current month through today."""
    today = today or today_in_timezone(timezone_name)
    return TimeRange(_fmt(today.replace(day=1)), _fmt(today))


def _parse_formatted_range(hint: str) -> Optional[TimeRange]:
    match = _FORMATTED_RANGE.search(hint)
    if not match:
        return None
    try:
        from_date = date.fromisoformat(match.group(1))
        to_date = date.fromisoformat(match.group(2))
    except ValueError:
        logger.debug("time_range.unparseable_range", hint=hint)
        return None
    if from_date > to_date:
        return None
    return TimeRange(_fmt(from_date), _fmt(to_date))


def _parse_last_n(hint: str, today: date) -> Optional[TimeRange]:
    match = _LAST_N.search(hint)
    if not match:
        return None
    count = int(match.group(1))
    if count < 1:
        return None
    unit = match.group(2)
    try:
        if unit.startswith("day"):
            from_date = today - timedelta(days=count - 1)
        elif unit.startswith("week"):
            from_date = today - timedelta(weeks=count) + timedelta(days=1)
        else:
            from_date = _minus_months(today, count) + timedelta(days=1)
    except (OverflowError, ValueError):
        # Reaches past the first representable date
        logger.warning("time_range.count_out_of_range", hint=hint, count=count)
        return default_time_range(today=today)
    return TimeRange(_fmt(from_date), _fmt(today))


def resolve_deterministically(
    hint: Optional[str],
    timezone_name: Optional[str] = None,
    today: Optional[date] = None,
) -> Optional[TimeRange]:
    """
    Resolve a time hint without calling a model.

    Args:
        hint: Free-text time expression, may be None or blank
        timezone_name: IANA timezone used to decide what "today" is
        today: Override for the current date

    Returns:
        The resolved range, or None when the hint needs escalation.
    """
    today = today or today_in_timezone(timezone_name)

    if hint is None or not hint.strip():
        return default_time_range(today=today)

    text = hint.strip().lower()

    parsed = _parse_formatted_range(text)
    if parsed is not None:
        return parsed

    if text == "today":
        return TimeRange(_fmt(today), _fmt(today))
    if text == "yesterday":
        yesterday = today - timedelta(days=1)
        return TimeRange(_fmt(yesterday), _fmt(yesterday))
    if text == "this week":
        week_start = today - timedelta(days=_days_since_sunday(today))
        return TimeRange(_fmt(week_start), _fmt(today))
    if text == "last week":
        last_saturday = today - timedelta(days=_days_since_sunday(today) + 1)
        return TimeRange(_fmt(last_saturday - timedelta(days=6)), _fmt(last_saturday))
    if text == "this month":
        return TimeRange(_fmt(today.replace(day=1)), _fmt(today))
    if text == "last month":
        last_month_end = today.replace(day=1) - timedelta(days=1)
        return TimeRange(_fmt(last_month_end.replace(day=1)), _fmt(last_month_end))

    return _parse_last_n(text, today)


def _validated(result: Dict[str, Any]) -> Optional[TimeRange]:
    try:
        from_date = date.fromisoformat(str(result.get("from_date")))
        to_date = date.fromisoformat(str(result.get("to_date")))
    except ValueError:
        return None
    if from_date > to_date:
        return None
    return TimeRange(_fmt(from_date), _fmt(to_date))


async def resolve_time_range(
    hint: Optional[str],
    timezone_name: Optional[str],
    context: Dict[str, Any],
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Resolve a time hint, escalating to the model for free-form expressions.

    Never raises: a failed or malformed escalation degrades to the default range.

    Args:
        hint: Free-text time expression from the intent
        timezone_name: Customer timezone
        context: Runtime context (execution_id, auth_config, ssl_config)
        today: Override for the current date

    Returns:
        Dictionary with ``time_range`` (TimeRange), ``source`` ("deterministic",
        "llm" or "default"), ``tokens_used`` and ``cost``.
    """
    execution_id = context.get("execution_id")
    today = today or today_in_timezone(timezone_name)

    resolved = resolve_deterministically(hint, timezone_name, today=today)
    if resolved is not None:
        logger.info(
            "time_range.resolved",
            execution_id=execution_id,
            hint=hint or "default",
            from_date=resolved.from_date,
            to_date=resolved.to_date,
        )
        return {"time_range": resolved, "source": "deterministic", "tokens_used": 0, "cost": 0}

    logger.info("time_range.escalated", execution_id=execution_id, hint=hint)
    result = await resolve_time_range_with_llm(hint, timezone_name, _fmt(today), context)

    resolved = _validated(result) if result.get("status") == "Success" else None
    if resolved is None:
        resolved = default_time_range(today=today)
        logger.warning(
            "time_range.fallback_default",
            execution_id=execution_id,
            hint=hint,
            error=result.get("error", "invalid dates returned"),
            from_date=resolved.from_date,
            to_date=resolved.to_date,
        )
        source = "default"
    else:
        logger.info(
            "time_range.resolved_llm",
            execution_id=execution_id,
            hint=hint,
            from_date=resolved.from_date,
            to_date=resolved.to_date,
        )
        source = "llm"

    return {
        "time_range": resolved,
        "source": source,
        "tokens_used": result.get("tokens_used", 0),
        "cost": result.get("cost", 0),
        "model_used": result.get("model_used"),
    }

"""Clock and calendar helpers."""

from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

LOGGER = structlog.get_logger(__name__)


def get_zone(timezone_name: str) -> ZoneInfo:
    """Return a ZoneInfo instance, defaulting to UTC on failure."""
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        LOGGER.warning("timezone.unknown", timezone=timezone_name, fallback="UTC")
        return ZoneInfo("UTC")


def now_in_timezone(timezone_name: str) -> datetime:
    """Current datetime in the configured timezone."""
    return datetime.now(tz=get_zone(timezone_name))


def today_in_timezone(timezone_name: str) -> date:
    """Calendar date used to resolve "today" and "tonight"."""
    return now_in_timezone(timezone_name).date()


def parse_clock(value: str) -> time:
    """Parse a 24h ``HH:MM`` string."""
    return datetime.strptime(value.strip(), "%H:%M").time()


def clock_minutes(value: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string."""
    parsed = parse_clock(value)
    return parsed.hour * 60 + parsed.minute


def minutes_apart(first: str, second: str) -> int:
    """Absolute distance in minutes between two clock times on the same day."""
    return abs(clock_minutes(first) - clock_minutes(second))

"""Centralized datetime utilities for consistent timezone handling.

All functions return naive UTC datetimes for database compatibility
(SQLAlchemy models store naive UTC).

Usage:
    from cronwatch.core.datetime_utils import utc_now, seconds_ago

    cutoff = seconds_ago(job.expected_every_s)
    recent = query.where(Run.created_at >= cutoff)
"""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from cronwatch.core.logging import get_logger

logger = get_logger(__name__)


def utc_now() -> datetime:
    """Get current UTC time as naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def seconds_ago(seconds: int | float, now: datetime | None = None) -> datetime:
    """Get the naive UTC instant `seconds` before `now` (defaults to current time)."""
    return (now or utc_now()) - timedelta(seconds=seconds)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def is_valid_timezone(tz_name: str) -> bool:
    """Check if a timezone name is valid IANA identifier."""
    try:
        ZoneInfo(tz_name)
        return True
    except (KeyError, ValueError):
        return False


def start_of_local_day(timezone: str, now: datetime | None = None) -> datetime:
    """Get local midnight of the current day in `timezone`, as naive UTC.

    Args:
        timezone: IANA timezone string (e.g., "Europe/Paris"); invalid names fall back to UTC
        now: Reference instant as naive UTC (defaults to current time)

    Returns:
        Naive UTC datetime of the most recent local midnight
    """
    if not is_valid_timezone(timezone):
        logger.bind(timezone=timezone).warning("invalid_timezone_using_utc")
        timezone = "UTC"
    tz = ZoneInfo(timezone)

    reference = (now or utc_now()).replace(tzinfo=UTC)
    local_now = reference.astimezone(tz)
    local_midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return to_naive_utc(local_midnight)


def format_duration(seconds: int | float) -> str:
    """Render a duration compactly, e.g. 3725 -> '1h 2m'."""
    secs = int(seconds)
    days, rem = divmod(secs, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)

    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return f"{secs}s"

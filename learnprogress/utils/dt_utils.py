# File: utils/dt_utils.py
"""Date and time utilities for learnprogress.

Pure Python date/time functions with no engine or manager imports. This is the
single place where "local calendar day" and "ISO week start (Monday)" are
defined; streaks, reminders and seasonal windows all derive their period
boundaries from here.

⚠️ UTILS PURITY: NO imports from `learnprogress.engines` or `.managers`.
   Uses standard library: datetime, zoneinfo, plus dateutil.

Functions:
    - set_default_timezone / get_default_timezone: Local calendar time zone
    - dt_now_utc / dt_now_local: Current time (timezone-aware)
    - dt_resolve_now: Optional "now" argument to an aware UTC datetime
    - as_utc / as_local: Timezone conversion (naive input assumed)
    - start_of_local_day / local_midnight / end_of_local_day: Day boundaries
    - next_local_midnight: Start of the calendar day after a datetime
    - week_start: Local Monday 00:00 of the ISO week containing a datetime
    - local_date_token / week_token / token_to_date: Period tokens
    - days_between / weeks_between: Calendar differences between dates
    - dt_parse: Normalize ISO strings / dates / datetimes to aware datetimes
    - dt_to_iso: Serialize an aware datetime as an ISO 8601 UTC string
    - dt_format_duration / dt_time_until: Human-readable countdowns
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
import logging
from zoneinfo import ZoneInfo

# Third-party date utilities
from dateutil.relativedelta import MO, relativedelta

# Module-level logger
_LOGGER = logging.getLogger(__name__)

# Default timezone - can be overridden by caller
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the local calendar timezone used for all period computations.

    Call this once during application setup with the learner's timezone.

    Args:
        tz: ZoneInfo object representing the default timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Get the current default timezone.

    Returns:
        The configured default timezone (ZoneInfo object)
    """
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


def dt_resolve_now(now: datetime | None = None) -> datetime:
    """Return now as an aware UTC datetime, or the current time if None.

    Naive values are read as local wall time (see as_utc), so callers may
    pass either form.
    """
    return as_utc(now) if now else dt_now_utc()


def dt_now_local(tz: ZoneInfo | None = None) -> datetime:
    """Return the current datetime in local timezone (timezone-aware).

    Args:
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.
    """
    return datetime.now(tz or DEFAULT_TIME_ZONE)


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_utc(dt_obj: datetime) -> datetime:
    """Convert a datetime to UTC timezone.

    Naive datetimes are interpreted as local (DEFAULT_TIME_ZONE) wall time,
    matching how a caller passes "the moment the session finished".
    """
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=DEFAULT_TIME_ZONE)
    return dt_obj.astimezone(UTC)


def as_local(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Convert a datetime to local timezone.

    Naive datetimes are interpreted as local wall time already.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        return dt_obj.replace(tzinfo=tz_info)
    return dt_obj.astimezone(tz_info)


def local_midnight(day: date, tz: ZoneInfo | None = None) -> datetime:
    """Return 00:00:00 local time on the given calendar date.

    DST-safe: the wall time is combined with the zone, not offset-shifted.
    """
    return datetime.combine(day, time.min, tzinfo=tz or DEFAULT_TIME_ZONE)


def end_of_local_day(day: date, tz: ZoneInfo | None = None) -> datetime:
    """Return 23:59:59.999999 local time on the given calendar date."""
    return datetime.combine(day, time.max, tzinfo=tz or DEFAULT_TIME_ZONE)


def start_of_local_day(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Get the start of day (00:00:00) for a datetime in local timezone.

    Args:
        dt_obj: Datetime object (can be in any timezone)
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Datetime at 00:00:00 in local timezone (timezone-aware)
    """
    return local_midnight(as_local(dt_obj, tz).date(), tz)


def next_local_midnight(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Return the start of the local calendar day after dt_obj."""
    return local_midnight(as_local(dt_obj, tz).date() + timedelta(days=1), tz)


def week_start(dt_obj: datetime | date, tz: ZoneInfo | None = None) -> datetime:
    """Return local Monday 00:00 of the ISO week containing dt_obj.

    Examples:
        Sunday 2024-01-07 → Monday 2024-01-01 00:00
        Monday 2024-01-08 → Monday 2024-01-08 00:00
    """
    if isinstance(dt_obj, datetime):
        day = as_local(dt_obj, tz).date()
    else:
        day = dt_obj
    return local_midnight(day + relativedelta(weekday=MO(-1)), tz)


# ==============================================================================
# Period Tokens
# ==============================================================================


def local_date_token(dt_obj: datetime, tz: ZoneInfo | None = None) -> str:
    """Return the local calendar date of dt_obj as "YYYY-MM-DD"."""
    return as_local(dt_obj, tz).date().isoformat()


def week_token(dt_obj: datetime, tz: ZoneInfo | None = None) -> str:
    """Return the local ISO week start (Monday) of dt_obj as "YYYY-MM-DD"."""
    return week_start(dt_obj, tz).date().isoformat()


def token_to_date(token: str | None) -> date | None:
    """Parse a period token back to a date.

    Accepts "YYYY-MM-DD" as well as full ISO datetimes (date part is used),
    so tokens written by older versions still compare correctly.

    Returns:
        date, or None if the token is missing or unparseable.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        return date.fromisoformat(token[:10])
    except ValueError:
        _LOGGER.debug("Ignoring unparseable period token: %s", token)
        return None


def days_between(later: date, earlier: date) -> int:
    """Return the number of calendar days from earlier to later."""
    return (later - earlier).days


def weeks_between(later: date, earlier: date) -> int:
    """Return the number of ISO weeks between the weeks of two dates."""
    later_monday = later + relativedelta(weekday=MO(-1))
    earlier_monday = earlier + relativedelta(weekday=MO(-1))
    return (later_monday - earlier_monday).days // 7


# ==============================================================================
# Parsing / Serialization
# ==============================================================================


def dt_parse(dt_input: str | date | datetime | None) -> datetime | None:
    """Normalize various datetime inputs to a timezone-aware UTC datetime.

    Args:
        dt_input: ISO string, date or datetime, or None

    Returns:
        Aware datetime in UTC, or None if the input could not be parsed.

    Example:
        >>> dt_parse("2025-04-15T10:00:00+02:00")
        datetime.datetime(2025, 4, 15, 8, 0, tzinfo=datetime.timezone.utc)
    """
    if not dt_input:
        return None

    if isinstance(dt_input, datetime):
        return as_utc(dt_input)

    if isinstance(dt_input, date):
        return as_utc(local_midnight(dt_input))

    if isinstance(dt_input, str):
        try:
            return as_utc(datetime.fromisoformat(dt_input))
        except (ValueError, OverflowError):
            _LOGGER.debug("Could not parse datetime string: %s", dt_input)
            return None

    return None


def dt_to_iso(dt_obj: datetime) -> str:
    """Serialize a datetime as an ISO 8601 string in UTC."""
    return as_utc(dt_obj).isoformat()


# ==============================================================================
# Durations
# ==============================================================================


def dt_format_duration(td: timedelta | None) -> str:
    """Format a timedelta into a compact human-readable duration string.

    Args:
        td: timedelta object to format, or None

    Returns:
        Duration string like "1d 6h 30m", or "0" if None/zero/negative.

    Examples:
        dt_format_duration(timedelta(days=1, hours=6)) → "1d 6h"
        dt_format_duration(timedelta(minutes=30)) → "30m"
        dt_format_duration(None) → "0"
    """
    if td is None or td <= timedelta():
        return "0"

    total_seconds = int(td.total_seconds())
    days, remainder = divmod(total_seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60

    parts: list[str] = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    return " ".join(parts) if parts else "0"


def dt_time_until(
    target_dt: datetime | None, now: datetime | None = None
) -> str | None:
    """Calculate human-readable time remaining until a target datetime.

    Returns:
        Formatted duration string (e.g., "2h 30m"), or None if target_dt is
        None or already in the past.
    """
    if not target_dt:
        return None

    current = as_utc(now) if now else dt_now_utc()
    target = as_utc(target_dt)
    if current >= target:
        return None

    return dt_format_duration(target - current)

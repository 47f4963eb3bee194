"""UTC-everywhere time handling. Provider timestamps are epoch milliseconds."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Convert UTC datetime to local timezone for display.

    ONLY use this at display boundaries - when rendering for customers.

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )

    try:
        local_tz = ZoneInfo(tz_name)
    except KeyError:
        raise ValueError(f"Unknown timezone: {tz_name}")

    return dt.astimezone(local_tz)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def from_epoch_ms(value: int | str) -> datetime:
    """
    Convert an epoch-milliseconds timestamp (as sent by the delivery provider)
    to a UTC datetime.

    Raises ValueError if value is not numeric.
    """
    try:
        millis = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid epoch-millisecond timestamp: {value!r}")
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(to_utc(dt).timestamp() * 1000)


def format_clock_time(dt: datetime, tz_name: str) -> str:
    """
    Render a datetime as a short lowercase clock time, e.g. '2:30pm'.

    Used for customer-facing tracking timestamps.
    """
    local = to_local(dt, tz_name)
    hour = local.hour % 12 or 12
    suffix = "am" if local.hour < 12 else "pm"
    return f"{hour}:{local.minute:02d}{suffix}"

"""Utility modules for cross-cutting concerns."""

from utils.timezone import (
    now_utc,
    to_utc,
    to_local,
    parse_iso,
    from_epoch_ms,
    to_epoch_ms,
    format_clock_time,
)

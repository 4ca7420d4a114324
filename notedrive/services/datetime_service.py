"""Millisecond timestamps used throughout the index."""

from __future__ import annotations

import time
from datetime import UTC, datetime


def now_ms() -> int:
    """Return the current UTC time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def seconds_to_ms(seconds: float) -> int:
    return int(seconds * 1000)


def format_iso(timestamp_ms: int) -> str:
    """Format a millisecond timestamp as ISO 8601 for log output."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).isoformat()

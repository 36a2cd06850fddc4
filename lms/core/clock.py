"""Time and percentage helpers shared by the services."""

from __future__ import annotations

import datetime


def now_ts() -> int:
    """Current UTC time as integer Unix seconds."""
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def percent(part: int, whole: int) -> int:
    """round(100 * part / whole), halves rounded up; 0 when whole is 0.

    Integer arithmetic keeps 12.5 -> 13 exact, where the builtin round()
    would give 12.
    """
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)

"""Formatting helpers for times, durations and insulin amounts."""

from __future__ import annotations

import time

__all__ = [
    "since_midnight",
    "time_string",
    "short_time",
    "duration_string",
    "insulin_string",
]


def since_midnight(t: float) -> int:
    """Seconds since local midnight for the timestamp t."""
    tm = time.localtime(t)
    return tm.tm_hour * 3600 + tm.tm_min * 60 + tm.tm_sec


def time_string(t: float) -> str:
    """Local date and time as YYYY-MM-DD HH:MM:SS."""
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(t))


def short_time(t: float) -> str:
    """Local time of day as HH:MM:SS."""
    return time.strftime("%H:%M:%S", time.localtime(t))


def _trunc_divmod(a: int, b: int) -> tuple[int, int]:
    # Division that truncates toward zero, keeping the remainder's sign with a.
    q = abs(a) // b
    if a < 0:
        q = -q
    return q, a - q * b


def duration_string(seconds: int) -> str:
    """Format a duration such as 1h30m0s, 1m0s or 30s."""
    h, s = _trunc_divmod(seconds, 3600)
    m, s = _trunc_divmod(s, 60)
    if h != 0:
        return f"{h}h{m}m{s}s"
    if m != 0:
        return f"{m}m{s}s"
    return f"{s}s"


def insulin_string(ins: int) -> str:
    """Format milliunits of insulin as units with three decimals."""
    if ins < 0:
        raise ValueError(f"negative insulin amount {ins}")
    units, milli = divmod(ins, 1000)
    return f"{units}.{milli:03d} U"
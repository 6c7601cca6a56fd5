"""Lookups in daily schedules whose entries start at a time of day."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .model import BasalRate, CarbRatio, Sensitivity, Target
from .utility import since_midnight

__all__ = [
    "entry_at",
    "basal_rate_at",
    "carb_ratio_at",
    "sensitivity_at",
    "target_at",
    "next_change",
]

_DAY = 24 * 3600


class _Timed(Protocol):
    start: int


def entry_at(schedule: Sequence[_Timed], t: float) -> int | None:
    """Index of the entry in effect at timestamp t, or None if none has started.

    Entries must be ordered by start time (seconds since midnight).
    """
    d = since_midnight(t)
    last = None
    for i, entry in enumerate(schedule):
        if entry.start > d:
            break
        last = i
    return last


def basal_rate_at(schedule: Sequence[BasalRate], t: float) -> int | None:
    """Index of the basal rate in effect at t."""
    return entry_at(schedule, t)


def carb_ratio_at(schedule: Sequence[CarbRatio], t: float) -> int | None:
    """Index of the carb ratio in effect at t."""
    return entry_at(schedule, t)


def sensitivity_at(schedule: Sequence[Sensitivity], t: float) -> int | None:
    """Index of the insulin sensitivity in effect at t."""
    return entry_at(schedule, t)


def target_at(schedule: Sequence[Target], t: float) -> int | None:
    """Index of the glucose target in effect at t."""
    return entry_at(schedule, t)


def next_change(schedule: Sequence[BasalRate], t: float) -> float:
    """Time at which the next scheduled rate takes effect, strictly after t."""
    i = basal_rate_at(schedule, t)
    if i is None:
        raise ValueError("no basal rate in effect at the given time")
    nxt = schedule[i + 1].start if i + 1 < len(schedule) else _DAY
    return t + (nxt - since_midnight(t))
"""Data types and unit conversions for pump settings and schedules.

Insulin is expressed in milliunits, glucose in mg/dL (or in micromol/L for
mmol/L pumps), and times of day as seconds since midnight.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

__all__ = [
    "HISTORY_PAGE_SIZE",
    "STATUS_NORMAL",
    "CarbUnits",
    "GlucoseUnits",
    "TempBasalType",
    "Settings",
    "Status",
    "BasalRate",
    "CarbRatio",
    "Sensitivity",
    "Target",
    "int_to_insulin",
    "int_to_glucose",
    "half_hours",
]

HISTORY_PAGE_SIZE = 1022
STATUS_NORMAL = 0x03


class CarbUnits(IntEnum):
    GRAMS = 1
    EXCHANGES = 2


class GlucoseUnits(IntEnum):
    MG_PER_DL = 1
    MMOL_PER_L = 2


class TempBasalType(IntEnum):
    ABSOLUTE = 0
    PERCENT = 1


@dataclass(frozen=True)
class Settings:
    """Pump settings: insulin action time in hours and delivery limits."""

    dia: int
    temp_basal_type: int
    max_basal: int
    max_bolus: int


@dataclass(frozen=True)
class Status:
    code: int
    bolusing: bool
    suspended: bool

    @property
    def normal(self) -> bool:
        """True when the pump reports its normal status code."""
        return self.code == STATUS_NORMAL


@dataclass(frozen=True)
class BasalRate:
    start: int
    rate: int


@dataclass(frozen=True)
class CarbRatio:
    """Carb ratio: 10x grams/unit or 1000x units/exchange."""

    start: int
    units: CarbUnits
    ratio: int


@dataclass(frozen=True)
class Sensitivity:
    start: int
    units: GlucoseUnits
    sensitivity: int


@dataclass(frozen=True)
class Target:
    start: int
    units: GlucoseUnits
    low: int
    high: int


def int_to_insulin(n: int, family: int) -> int:
    """Convert a raw pump insulin value to milliunits for the given model family."""
    if family <= 22:
        return 100 * n
    return 25 * n


def int_to_glucose(n: int, units: int) -> int:
    """Convert a raw pump glucose value according to the pump's glucose units."""
    if units == GlucoseUnits.MG_PER_DL:
        return n
    if units == GlucoseUnits.MMOL_PER_L:
        # 10x mmol/L to micromol/L
        return 100 * n
    raise ValueError(f"unknown glucose unit {units}")


def half_hours(n: int) -> int:
    """Convert a number of half-hours into seconds."""
    return 60 * 30 * n
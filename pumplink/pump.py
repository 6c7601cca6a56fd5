"""High-level pump queries built on the command link.

Each method sends one pump command and decodes its response.  A response
that is too short or carries an unexpected length field raises PumpError.
"""

from __future__ import annotations

import logging
import time
from enum import IntEnum
from typing import Protocol, TypeVar

from .commands import Command, PumpError
from .model import (
    HISTORY_PAGE_SIZE,
    BasalRate,
    CarbRatio,
    CarbUnits,
    GlucoseUnits,
    Sensitivity,
    Settings,
    Status,
    Target,
    TempBasalType,
    half_hours,
    int_to_glucose,
    int_to_insulin,
)

__all__ = ["Pump"]

_log = logging.getLogger(__name__)

_E = TypeVar("_E", bound=IntEnum)


class _Link(Protocol):
    def short_command(self, cmd: int) -> bytes: ...

    def extended_response(self, cmd: int) -> bytes: ...

    def download_page(self, cmd: int, page_num: int) -> bytes: ...

    def send_wakeup(self) -> bool: ...


def _be16(data: bytes, i: int) -> int:
    return (data[i] << 8) | data[i + 1]


def _le16(data: bytes, i: int) -> int:
    return (data[i + 1] << 8) | data[i]


def _as_enum(enum: type[_E], value: int) -> _E | int:
    try:
        return enum(value)
    except ValueError:
        return value


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise PumpError(message)


def _glucose(n: int, units: int) -> int:
    try:
        return int_to_glucose(n, units)
    except ValueError as err:
        raise PumpError(str(err)) from None


def _check_table(name: str, data: bytes, step: int) -> int:
    """Validate a schedule response header and return its entry byte count."""
    _require(len(data) >= 2, f"{name}: {len(data)}-byte response")
    num = data[0] - 1
    _require(
        step + num < len(data),
        f"{name}: invalid length field ({num}) for {len(data)}-byte packet",
    )
    _require(num % step == 0, f"{name}: length field ({num}) not divisible by {step}")
    return num


class Pump:
    """Queries a pump through a command link."""

    def __init__(self, link: _Link) -> None:
        self._link = link
        self._family = 0

    def family(self) -> int:
        """Model family (the last two digits of the model number)."""
        if self._family == 0:
            self.model()
        return self._family

    def model(self) -> int:
        """Model number reported by the pump; also caches its family."""
        data = self._link.short_command(Command.MODEL)
        _require(len(data) >= 2, f"model: {len(data)}-byte response")
        k = data[1]
        _require(len(data) >= 2 + k, f"model: {len(data)}-byte response for {k} digits")
        model = 0
        for digit in data[2 : 2 + k]:
            model = 10 * model + digit - ord("0")
        self._family = model % 100
        return model

    def basal_rates(self, limit: int) -> list[BasalRate]:
        """Basal rate schedule, at most limit entries."""
        data = self._link.extended_response(Command.BASAL_RATES)
        rates: list[BasalRate] = []
        for i in range(0, len(data) - 2, 3):
            if len(rates) >= limit:
                break
            rate = int_to_insulin(_le16(data, i), 23)
            t = data[i + 2]
            # Don't stop if the 00:00 rate happens to be zero.
            if i > 1 and rate == 0 and t == 0:
                break
            rates.append(BasalRate(start=half_hours(t), rate=rate))
        return rates

    def battery(self) -> int:
        """Battery voltage in millivolts."""
        data = self._link.short_command(Command.BATTERY)
        _require(len(data) >= 4 and data[0] == 3, "battery: invalid response")
        return _be16(data, 2) * 10

    def carb_ratios(self, limit: int) -> list[CarbRatio]:
        """Carb ratio schedule, at most limit entries."""
        fam = self.family()
        data = self._link.short_command(Command.CARB_RATIOS)
        step = 2 if fam <= 22 else 3
        num = _check_table("carb ratios", data, step)
        units = data[1]
        entries = data[step:]
        ratios: list[CarbRatio] = []
        for i in range(0, num - step + 1, step):
            if len(ratios) >= limit:
                break
            t = entries[i]
            if t == 0 and ratios:
                break
            if fam <= 22:
                v = entries[i + 1]
                if units == CarbUnits.GRAMS:
                    ratio = 10 * v
                elif units == CarbUnits.EXCHANGES:
                    ratio = 100 * v
                else:
                    raise PumpError(f"carb ratios: unknown carb unit {units}")
            else:
                ratio = _be16(entries, i + 1)
            ratios.append(
                CarbRatio(start=half_hours(t), units=_as_enum(CarbUnits, units), ratio=ratio)
            )
        return ratios

    def carb_units(self) -> CarbUnits | int:
        """Carbohydrate units configured on the pump."""
        data = self._link.short_command(Command.CARB_UNITS)
        _require(len(data) >= 2 and data[0] == 1, "carb units: invalid response")
        return _as_enum(CarbUnits, data[1])

    def clock(self) -> int:
        """Pump clock as local epoch seconds."""
        data = self._link.short_command(Command.CLOCK)
        _require(len(data) >= 8 and data[0] == 7, "clock: invalid response")
        fields = (_be16(data, 4), data[6], data[7], data[1], data[2], data[3], 0, 0, -1)
        return int(time.mktime(fields))

    def glucose_units(self) -> GlucoseUnits | int:
        """Glucose units configured on the pump."""
        data = self._link.short_command(Command.GLUCOSE_UNITS)
        _require(len(data) >= 2 and data[0] == 1, "glucose units: invalid response")
        return _as_enum(GlucoseUnits, data[1])

    def history_page(self, page_num: int) -> bytes:
        """The data bytes of one history page."""
        data = self._link.download_page(Command.HISTORY, page_num)
        _require(
            len(data) == HISTORY_PAGE_SIZE,
            f"history page {page_num}: length {len(data)}",
        )
        return data

    def reservoir(self) -> int:
        """Insulin remaining in the reservoir, in milliunits."""
        fam = self.family()
        data = self._link.short_command(Command.RESERVOIR)
        if fam <= 22:
            _require(len(data) >= 3 and data[0] == 2, "reservoir: invalid response")
            return _be16(data, 1) * 100
        _require(len(data) >= 5 and data[0] == 4, "reservoir: invalid response")
        return _be16(data, 3) * 25

    def sensitivities(self, limit: int) -> list[Sensitivity]:
        """Insulin sensitivity schedule, at most limit entries."""
        data = self._link.short_command(Command.SENSITIVITIES)
        num = _check_table("sensitivities", data, 2)
        units = data[1]
        entries = data[2:]
        result: list[Sensitivity] = []
        for i in range(0, num - 1, 2):
            if len(result) >= limit:
                break
            v = entries[i]
            t = v & 0x3F
            if t == 0 and result:
                break
            s = (((v >> 6) & 0x1) << 8) | entries[i + 1]
            result.append(
                Sensitivity(
                    start=half_hours(t),
                    units=_as_enum(GlucoseUnits, units),
                    sensitivity=_glucose(s, units),
                )
            )
        return result

    def settings(self) -> Settings:
        """Insulin action time, temp basal type and delivery limits."""
        fam = self.family()
        cmd = Command.SETTINGS_512 if fam <= 12 else Command.SETTINGS
        data = self._link.short_command(cmd)
        if fam <= 12:
            _require(len(data) >= 19 and data[0] == 18, "settings: invalid response")
            max_bolus = int_to_insulin(data[6], 22)
            max_basal = int_to_insulin(_be16(data, 7), 23)
            # Response indicates only regular or fast-acting.
            dia = 8 if data[18] else 6
        elif fam <= 22:
            _require(len(data) >= 22 and data[0] == 21, "settings: invalid response")
            max_bolus = int_to_insulin(data[6], 22)
            max_basal = int_to_insulin(_be16(data, 7), 23)
            dia = data[18]
        else:
            _require(len(data) >= 26 and data[0] == 25, "settings: invalid response")
            max_bolus = int_to_insulin(data[7], 22)
            max_basal = int_to_insulin(_be16(data, 8), 23)
            dia = data[18]
        return Settings(
            dia=dia,
            temp_basal_type=_as_enum(TempBasalType, data[14]),
            max_basal=max_basal,
            max_bolus=max_bolus,
        )

    def status(self) -> Status:
        """Pump status code and bolusing/suspended flags."""
        data = self._link.short_command(Command.STATUS)
        _require(len(data) >= 4 and data[0] == 3, "status: invalid response")
        return Status(code=data[1], bolusing=data[2] == 1, suspended=data[3] == 1)

    def targets(self, limit: int) -> list[Target]:
        """Glucose target schedule, at most limit entries."""
        fam = self.family()
        cmd = Command.TARGETS_512 if fam <= 12 else Command.TARGETS
        data = self._link.short_command(cmd)
        step = 2 if fam <= 12 else 3
        num = _check_table("targets", data, step)
        units = data[1]
        entries = data[2:]
        result: list[Target] = []
        for i in range(0, num - step + 1, step):
            if len(result) >= limit:
                break
            t = entries[i]
            if t == 0 and result:
                break
            low = _glucose(entries[i + 1], units)
            high = _glucose(entries[i + 2], units) if fam > 12 else low
            result.append(
                Target(
                    start=half_hours(t),
                    units=_as_enum(GlucoseUnits, units),
                    low=low,
                    high=high,
                )
            )
        return result

    def temp_basal(self) -> tuple[int, int]:
        """Current temp basal as (rate in milliunits/hour, minutes remaining).

        Percentage temp basals are unsupported and report a rate of 0.
        """
        data = self._link.short_command(Command.TEMP_BASAL)
        _require(len(data) >= 7 and data[0] == 6, "temp basal: invalid response")
        minutes = _be16(data, 5)
        if data[1] != 0:
            _log.error("temp basal: unsupported %d percent rate", data[2])
            return 0, minutes
        return _be16(data, 3) * 25, minutes

    def wakeup(self) -> bool:
        """Make sure the pump is listening, waking it up if necessary."""
        try:
            self.model()
        except PumpError:
            return self._link.send_wakeup()
        return True
"""Decoding of pump history pages into insulin-related records."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass
from enum import IntEnum

from .model import TempBasalType, half_hours, int_to_insulin
from .utility import time_string

__all__ = [
    "RecordType",
    "AlarmCode",
    "HistoryRecord",
    "HistoryError",
    "UnknownRecordError",
    "RecordSizeError",
    "decode_time",
    "record_type_name",
    "decode_history_record",
    "decode_history",
]

_log = logging.getLogger(__name__)


class RecordType(IntEnum):
    Bolus = 0x01
    Prime = 0x03
    Alarm = 0x06
    DailyTotal = 0x07
    BasalProfileBefore = 0x08
    BasalProfileAfter = 0x09
    BGCapture = 0x0A
    SensorAlarm = 0x0B
    ClearAlarm = 0x0C
    ChangeBasalPattern = 0x14
    TempBasalDuration = 0x16
    ChangeTime = 0x17
    NewTime = 0x18
    LowBattery = 0x19
    BatteryChange = 0x1A
    SetAutoOff = 0x1B
    PrepareInsulinChange = 0x1C
    SuspendPump = 0x1E
    ResumePump = 0x1F
    SelfTest = 0x20
    Rewind = 0x21
    ClearSettings = 0x22
    EnableChildBlock = 0x23
    MaxBolus = 0x24
    EnableRemote = 0x26
    MaxBasal = 0x2C
    EnableBolusWizard = 0x2D
    Unknown2E = 0x2E
    BolusWizard512 = 0x2F
    UnabsorbedInsulin512 = 0x30
    ChangeBGReminder = 0x31
    SetAlarmClockTime = 0x32
    TempBasalRate = 0x33
    LowReservoir = 0x34
    AlarmClock = 0x35
    ChangeMeterID = 0x36
    BGReceived512 = 0x39
    ConfirmInsulinChange = 0x3A
    SensorStatus = 0x3B
    EnableMeter = 0x3C
    BGReceived = 0x3F
    MealMarker = 0x40
    ExerciseMarker = 0x41
    InsulinMarker = 0x42
    OtherMarker = 0x43
    EnableSensorAutoCal = 0x44
    ChangeBolusWizardSetup = 0x4F
    SensorSetup = 0x50
    Sensor51 = 0x51
    Sensor52 = 0x52
    ChangeSensorAlarm = 0x53
    Sensor54 = 0x54
    Sensor55 = 0x55
    ChangeSensorAlert = 0x56
    ChangeBolusStep = 0x57
    BolusWizardSetup = 0x5A
    BolusWizard = 0x5B
    UnabsorbedInsulin = 0x5C
    SaveSettings = 0x5D
    EnableVariableBolus = 0x5E
    ChangeEasyBolus = 0x5F
    EnableBGReminder = 0x60
    EnableAlarmClock = 0x61
    ChangeTempBasalType = 0x62
    ChangeAlarmType = 0x63
    ChangeTimeFormat = 0x64
    ChangeReservoirWarning = 0x65
    EnableBolusReminder = 0x66
    SetBolusReminderTime = 0x67
    DeleteBolusReminderTime = 0x68
    BolusReminder = 0x69
    DeleteAlarmClockTime = 0x6A
    DailyTotal515 = 0x6C
    DailyTotal522 = 0x6D
    DailyTotal523 = 0x6E
    ChangeCarbUnits = 0x6F
    BasalProfileStart = 0x7B
    ConnectOtherDevices = 0x7C
    ChangeOtherDevice = 0x7D
    ChangeMarriage = 0x81
    DeleteOtherDevice = 0x82
    EnableCaptureEvent = 0x83


class AlarmCode(IntEnum):
    BatteryOutLimitExceeded = 0x03
    NoDelivery = 0x04
    BatteryDepleted = 0x05
    AutoOff = 0x06
    DeviceReset = 0x10
    ReprogramError = 0x3D
    EmptyReservoir = 0x3E


@dataclass(frozen=True)
class HistoryRecord:
    """A decoded history record.

    For Alarm records the insulin field holds the alarm code.
    ``relevant`` is true for insulin-related records.
    """

    type: int
    length: int
    time: int | None = None
    insulin: int = 0
    duration: int = 0
    relevant: bool = False


class HistoryError(ValueError):
    """Raised when history data cannot be decoded."""


class UnknownRecordError(HistoryError):
    def __init__(self, record_type: int) -> None:
        super().__init__(f"unknown history record type {record_type:02X}")
        self.record_type = record_type


class RecordSizeError(HistoryError):
    def __init__(self, record_type: int, length: int, available: int) -> None:
        super().__init__(
            f"history record type {record_type:02X} would require {length} bytes"
            f" but only {available} remain"
        )
        self.record_type = record_type
        self.length = length
        self.available = available


R = RecordType

_FIXED_LENGTHS: dict[int, int] = {
    R.Prime: 10,
    R.Alarm: 9,
    R.BasalProfileBefore: 152,
    R.BasalProfileAfter: 152,
    R.BGCapture: 7,
    R.SensorAlarm: 8,
    R.ClearAlarm: 7,
    R.ChangeBasalPattern: 7,
    R.TempBasalDuration: 7,
    R.ChangeTime: 7,
    R.NewTime: 7,
    R.LowBattery: 7,
    R.BatteryChange: 7,
    R.SetAutoOff: 7,
    R.PrepareInsulinChange: 7,
    R.SuspendPump: 7,
    R.ResumePump: 7,
    R.SelfTest: 7,
    R.Rewind: 7,
    R.ClearSettings: 7,
    R.EnableChildBlock: 7,
    R.MaxBolus: 7,
    R.EnableRemote: 21,
    R.MaxBasal: 7,
    R.EnableBolusWizard: 7,
    R.Unknown2E: 107,
    R.BolusWizard512: 19,
    R.ChangeBGReminder: 7,
    R.SetAlarmClockTime: 7,
    R.TempBasalRate: 8,
    R.LowReservoir: 7,
    R.AlarmClock: 7,
    R.ChangeMeterID: 21,
    R.BGReceived512: 10,
    R.ConfirmInsulinChange: 7,
    R.SensorStatus: 7,
    R.EnableMeter: 21,
    R.BGReceived: 10,
    R.MealMarker: 9,
    R.ExerciseMarker: 8,
    R.InsulinMarker: 8,
    R.OtherMarker: 7,
    R.EnableSensorAutoCal: 7,
    R.ChangeBolusWizardSetup: 39,
    R.Sensor51: 7,
    R.Sensor52: 7,
    R.ChangeSensorAlarm: 8,
    R.Sensor54: 64,
    R.Sensor55: 55,
    R.ChangeSensorAlert: 12,
    R.ChangeBolusStep: 7,
    R.SaveSettings: 7,
    R.EnableVariableBolus: 7,
    R.ChangeEasyBolus: 7,
    R.EnableBGReminder: 7,
    R.EnableAlarmClock: 7,
    R.ChangeTempBasalType: 7,
    R.ChangeAlarmType: 7,
    R.ChangeTimeFormat: 7,
    R.ChangeReservoirWarning: 7,
    R.EnableBolusReminder: 7,
    R.SetBolusReminderTime: 9,
    R.DeleteBolusReminderTime: 9,
    R.BolusReminder: 9,
    R.DeleteAlarmClockTime: 7,
    R.DailyTotal515: 38,
    R.DailyTotal522: 44,
    R.DailyTotal523: 52,
    R.ChangeCarbUnits: 7,
    R.BasalProfileStart: 10,
    R.ConnectOtherDevices: 7,
    R.ChangeOtherDevice: 37,
    R.ChangeMarriage: 12,
    R.DeleteOtherDevice: 12,
    R.EnableCaptureEvent: 7,
}


def decode_time(data: bytes | bytearray | memoryview) -> int:
    """Decode a 5-byte history timestamp into local epoch seconds."""
    if len(data) < 5:
        raise ValueError("timestamp requires 5 bytes")
    b0, b1, b2, b3, b4 = bytes(data[:5])
    # The 4-bit month is held in the top 2 bits of the first 2 bytes.
    month = ((b0 >> 6) << 2) | (b1 >> 6)
    fields = (
        (b4 & 0x7F) + 2000,
        month,
        b3 & 0x1F,
        b2 & 0x1F,
        b1 & 0x3F,
        b0 & 0x3F,
        0,
        0,
        -1,
    )
    return int(time.mktime(fields))


def record_type_name(t: int) -> str:
    """Name of a history record type, or UnknownXX for undefined types."""
    try:
        return RecordType(t).name
    except ValueError:
        return f"Unknown{t:02X}"


def _be16(data: bytes, i: int) -> int:
    return (data[i] << 8) | data[i + 1]


def _le16(data: bytes, i: int) -> int:
    return (data[i + 1] << 8) | data[i]


def _record_length(rtype: RecordType, data: bytes, family: int) -> int:
    if rtype is R.Bolus:
        return 9 if family <= 22 else 13
    if rtype is R.DailyTotal:
        return 7 if family <= 22 else 10
    if rtype is R.SensorSetup:
        return 41 if family >= 51 else 37
    if rtype is R.BolusWizardSetup:
        return 124 if family <= 22 else 144
    if rtype is R.BolusWizard:
        return 20 if family <= 22 else 22
    if rtype in (R.UnabsorbedInsulin, R.UnabsorbedInsulin512):
        if len(data) < 2:
            raise RecordSizeError(rtype, 2, len(data))
        return data[1]
    return _FIXED_LENGTHS[rtype]


def decode_history_record(
    data: bytes | bytearray | memoryview, family: int
) -> HistoryRecord:
    """Decode the history record at the start of data.

    Raises UnknownRecordError for an undefined type and RecordSizeError
    when the record would extend past the end of data.
    """
    data = bytes(data)
    if not data:
        raise HistoryError("no history data")
    try:
        rtype = RecordType(data[0])
    except ValueError:
        raise UnknownRecordError(data[0]) from None
    length = _record_length(rtype, data, family)
    if length > len(data):
        raise RecordSizeError(rtype, length, len(data))

    def record(**fields) -> HistoryRecord:
        return HistoryRecord(type=rtype, length=length, **fields)

    if rtype is R.Bolus:
        if family <= 22:
            return record(
                time=decode_time(data[4:9]),
                insulin=int_to_insulin(data[2], family),
                duration=half_hours(data[3]),
                relevant=True,
            )
        return record(
            time=decode_time(data[8:13]),
            insulin=int_to_insulin(_be16(data, 3), family),
            duration=half_hours(data[7]),
            relevant=True,
        )
    if rtype is R.Prime:
        return record(time=decode_time(data[5:10]), relevant=True)
    if rtype is R.Alarm:
        return record(time=decode_time(data[4:9]), insulin=data[1], relevant=True)
    if rtype in (R.ClearAlarm, R.SuspendPump, R.ResumePump, R.Rewind):
        return record(time=decode_time(data[2:7]), relevant=True)
    if rtype is R.TempBasalDuration:
        return record(
            time=decode_time(data[2:7]),
            duration=half_hours(data[1]),
            relevant=True,
        )
    if rtype is R.TempBasalRate:
        when = decode_time(data[2:7])
        if data[7] >> 3 == TempBasalType.ABSOLUTE:
            rate = int_to_insulin(((data[7] & 0x7) << 8) | data[1], 23)
            return record(time=when, insulin=rate, relevant=True)
        if data[1] == 0:
            return record(time=when, insulin=0, relevant=True)
        _log.error(
            "%3d percent temp basal in pump history at %s", data[1], time_string(when)
        )
        return record(time=when)
    if rtype is R.BasalProfileStart:
        # data[7] is the starting half-hour.
        return record(
            time=decode_time(data[2:7]),
            insulin=int_to_insulin(_le16(data, 8), 23),
            relevant=True,
        )
    return record()


def decode_history(
    page: bytes | bytearray | memoryview, family: int
) -> Iterator[HistoryRecord]:
    """Yield the insulin-related records of a history page in order.

    Decoding stops at trailing all-zero padding.  A malformed record
    raises a HistoryError after the records before it have been yielded.
    """
    data = bytes(page)
    pos = 0
    while pos < len(data):
        rest = data[pos:]
        if not any(rest):
            return
        rec = decode_history_record(rest, family)
        if rec.length == 0:
            raise HistoryError(
                f"history record type {rec.type:02X} has zero length"
            )
        if rec.relevant:
            yield rec
        pos += rec.length
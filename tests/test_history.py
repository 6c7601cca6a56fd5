import time

import pytest
from hypothesis import given, strategies as st

from pumplink.history import (
    AlarmCode,
    HistoryError,
    RecordSizeError,
    RecordType,
    UnknownRecordError,
    decode_history,
    decode_history_record,
    decode_time,
    record_type_name,
)
from pumplink.utility import time_string

# Timestamp bytes for 2016-02-21 10:34:09.
TS = bytes.fromhex("09A20A1510")
TS_STRING = "2016-02-21 10:34:09"


@pytest.mark.parametrize(
    "byte_str, expected",
    [
        ("1F 40 00 01 05", "2005-01-01 00:00:31"),
        ("09 A2 0A 15 10", "2016-02-21 10:34:09"),
        ("42 22 54 65 10", "2016-04-05 20:34:02"),
        ("79 23 0C 12 10", "2016-04-18 12:35:57"),
        ("75 B7 13 04 10", "2016-06-04 19:55:53"),
        ("5D B3 0F 06 10", "2016-06-06 15:51:29"),
        ("40 94 12 0F 10", "2016-06-15 18:20:00"),
        ("B1 34 87 6B 12", "2018-08-11 07:52:49"),
    ],
)
def test_decode_time(byte_str, expected):
    assert time_string(decode_time(bytes.fromhex(byte_str))) == expected


def test_decode_time_matches_mktime():
    expected = int(time.mktime((2016, 2, 21, 10, 34, 9, 0, 0, -1)))
    assert decode_time(TS) == expected


def test_decode_time_too_short():
    with pytest.raises(ValueError):
        decode_time(b"\x01\x02")


@pytest.mark.parametrize(
    "value, name",
    [
        (0x01, "Bolus"),
        (0x03, "Prime"),
        (0x07, "DailyTotal"),
        (0x16, "TempBasalDuration"),
        (0x2E, "Unknown2E"),
        (0x33, "TempBasalRate"),
        (0x5C, "UnabsorbedInsulin"),
        (0x7B, "BasalProfileStart"),
        (0x83, "EnableCaptureEvent"),
        (0x02, "Unknown02"),
        (0xFF, "UnknownFF"),
    ],
)
def test_record_type_name(value, name):
    assert record_type_name(value) == name


def test_alarm_code_values():
    assert AlarmCode(0x04) is AlarmCode.NoDelivery
    assert AlarmCode.EmptyReservoir == 0x3E


def test_bolus_old_family():
    data = bytes([0x01, 0x00, 0x0A, 0x02]) + TS
    rec = decode_history_record(data, 22)
    assert rec.type == RecordType.Bolus
    assert rec.length == 9
    assert rec.relevant
    assert rec.insulin == 1000
    assert rec.duration == 3600
    assert time_string(rec.time) == TS_STRING


def test_bolus_new_family():
    data = bytes([0x01, 0x00, 0x00, 0x00, 0x28, 0x00, 0x00, 0x01]) + TS
    rec = decode_history_record(data, 23)
    assert rec.length == 13
    assert rec.insulin == 1000
    assert rec.duration == 1800
    assert time_string(rec.time) == TS_STRING


def test_bolus_too_short():
    data = bytes([0x01, 0x00, 0x0A, 0x02]) + TS[:4]
    with pytest.raises(RecordSizeError) as exc:
        decode_history_record(data, 22)
    assert exc.value.length == 9
    assert exc.value.record_type == RecordType.Bolus


def test_unknown_record():
    with pytest.raises(UnknownRecordError) as exc:
        decode_history_record(bytes([0x02, 0, 0, 0, 0, 0, 0]), 22)
    assert exc.value.record_type == 0x02


def test_empty_record_data():
    with pytest.raises(HistoryError):
        decode_history_record(b"", 22)


def test_alarm_stores_code():
    data = bytes([0x06, 0x04, 0x00, 0x00]) + TS
    rec = decode_history_record(data, 22)
    assert rec.insulin == AlarmCode.NoDelivery
    assert rec.relevant
    assert time_string(rec.time) == TS_STRING


def test_prime():
    data = bytes([0x03, 0, 0, 0, 0]) + TS
    rec = decode_history_record(data, 22)
    assert rec.length == 10
    assert rec.relevant
    assert time_string(rec.time) == TS_STRING


@pytest.mark.parametrize("code", [0x0C, 0x1E, 0x1F, 0x21])
def test_timed_events(code):
    rec = decode_history_record(bytes([code, 0x00]) + TS, 22)
    assert rec.length == 7
    assert rec.relevant
    assert time_string(rec.time) == TS_STRING


def test_temp_basal_duration():
    rec = decode_history_record(bytes([0x16, 0x02]) + TS, 22)
    assert rec.duration == 3600
    assert rec.relevant


def test_temp_basal_rate_absolute():
    rec = decode_history_record(bytes([0x33, 0x28]) + TS + bytes([0x00]), 22)
    assert rec.length == 8
    assert rec.insulin == 1000
    assert rec.relevant


def test_temp_basal_rate_absolute_high_bits():
    rec = decode_history_record(bytes([0x33, 0x28]) + TS + bytes([0x01]), 22)
    assert rec.insulin == 7400


def test_temp_basal_rate_percent_zero():
    rec = decode_history_record(bytes([0x33, 0x00]) + TS + bytes([0x08]), 22)
    assert rec.relevant
    assert rec.insulin == 0


def test_temp_basal_rate_percent_nonzero_skipped():
    rec = decode_history_record(bytes([0x33, 0x32]) + TS + bytes([0x08]), 22)
    assert not rec.relevant
    assert rec.length == 8


def test_basal_profile_start():
    data = bytes([0x7B, 0x00]) + TS + bytes([0x00, 0x28, 0x00])
    rec = decode_history_record(data, 23)
    assert rec.length == 10
    assert rec.insulin == 1000
    assert rec.relevant


@pytest.mark.parametrize(
    "code, family, length",
    [
        (0x07, 22, 7),
        (0x07, 23, 10),
        (0x50, 51, 41),
        (0x50, 23, 37),
        (0x5A, 22, 124),
        (0x5A, 23, 144),
        (0x5B, 22, 20),
        (0x5B, 23, 22),
        (0x08, 22, 152),
        (0x2E, 22, 107),
    ],
)
def test_skipped_record_lengths(code, family, length):
    data = bytes([code]) + bytes(length - 1)
    rec = decode_history_record(data, family)
    assert rec.length == length
    assert not rec.relevant


def test_unabsorbed_insulin_length_from_data():
    data = bytes([0x5C, 0x05, 0, 0, 0])
    rec = decode_history_record(data, 22)
    assert rec.length == 5
    assert not rec.relevant


def test_unabsorbed_insulin_too_long():
    with pytest.raises(RecordSizeError):
        decode_history_record(bytes([0x5C, 0x09, 0, 0]), 22)


def test_decode_history_yields_relevant_records():
    rewind = bytes([0x21, 0x00]) + TS
    daily = bytes([0x07]) + bytes(6)
    bolus = bytes([0x01, 0x00, 0x0A, 0x02]) + TS
    page = rewind + daily + bolus + bytes(20)
    records = list(decode_history(page, 22))
    assert [r.type for r in records] == [RecordType.Rewind, RecordType.Bolus]
    assert records[1].insulin == 1000


def test_decode_history_error_after_records():
    rewind = bytes([0x21, 0x00]) + TS
    page = rewind + bytes([0x02, 0x01, 0x02])
    gen = decode_history(page, 22)
    first = next(gen)
    assert first.type == RecordType.Rewind
    with pytest.raises(UnknownRecordError):
        next(gen)


def test_decode_history_truncated_record():
    page = bytes([0x21, 0x00]) + TS[:3]
    with pytest.raises(RecordSizeError):
        list(decode_history(page, 22))


def test_decode_history_zero_length_record():
    page = bytes([0x5C, 0x00, 0x01])
    with pytest.raises(HistoryError):
        list(decode_history(page, 22))


@given(st.integers(min_value=0, max_value=1022))
def test_decode_history_all_zero_page(n):
    assert list(decode_history(bytes(n), 22)) == []


@given(st.lists(st.integers(min_value=0, max_value=0x3F), min_size=1, max_size=10))
def test_decode_history_counts_rewinds(durations):
    page = b"".join(bytes([0x16, d]) + TS for d in durations)
    records = list(decode_history(page, 22))
    assert [r.duration for r in records] == [d * 1800 for d in durations]
from datetime import datetime, timedelta

import pytest

from pumplink.model import BasalRate, CarbUnits, CarbRatio, GlucoseUnits, Target
from pumplink.schedule import (
    basal_rate_at,
    carb_ratio_at,
    entry_at,
    next_change,
    sensitivity_at,
    target_at,
)


def parse_json_time(s):
    return int(datetime.strptime(s[:19], "%Y-%m-%dT%H:%M:%S").timestamp())


def tod(h, m):
    return h * 3600 + m * 60


def at_time(h, m):
    return int((datetime(2019, 6, 13) + timedelta(hours=h, minutes=m)).timestamp())


HOURLY = [BasalRate(start=h * 3600, rate=1000) for h in range(24)]

PROFILE = [
    BasalRate(tod(0, 0), 1000),
    BasalRate(tod(4, 0), 2000),
    BasalRate(tod(8, 0), 3000),
    BasalRate(tod(12, 0), 4000),
    BasalRate(tod(16, 0), 5000),
    BasalRate(tod(20, 0), 6000),
]


@pytest.mark.parametrize(
    "ts, index",
    [
        ("2019-06-13T00:00:00Z", 0),
        ("2019-06-13T00:59:59Z", 0),
        ("2019-06-13T01:00:00Z", 1),
        ("2019-06-13T23:00:00Z", 23),
        ("2019-06-13T23:59:59Z", 23),
    ],
)
def test_basal_rate_at(ts, index):
    assert basal_rate_at(HOURLY, parse_json_time(ts)) == index


@pytest.mark.parametrize(
    "cur, nxt",
    [
        ((0, 0), (4, 0)),
        ((3, 59), (4, 0)),
        ((4, 0), (8, 0)),
        ((23, 59), (24, 0)),
    ],
)
def test_next_change(cur, nxt):
    assert next_change(PROFILE, at_time(*cur)) == at_time(*nxt)


def test_entry_before_first_start():
    schedule = [BasalRate(tod(4, 0), 1000)]
    assert entry_at(schedule, at_time(1, 0)) is None


def test_entry_empty_schedule():
    assert entry_at([], at_time(12, 0)) is None


def test_next_change_without_rate_raises():
    with pytest.raises(ValueError):
        next_change([], at_time(12, 0))
    with pytest.raises(ValueError):
        next_change([BasalRate(tod(4, 0), 1000)], at_time(1, 0))


def test_other_schedule_lookups():
    ratios = [CarbRatio(tod(0, 0), CarbUnits.GRAMS, 100), CarbRatio(tod(6, 0), CarbUnits.GRAMS, 120)]
    targets = [
        Target(tod(0, 0), GlucoseUnits.MG_PER_DL, 100, 120),
        Target(tod(22, 0), GlucoseUnits.MG_PER_DL, 110, 130),
    ]
    assert carb_ratio_at(ratios, at_time(5, 59)) == 0
    assert carb_ratio_at(ratios, at_time(6, 0)) == 1
    assert target_at(targets, at_time(23, 0)) == 1
    assert sensitivity_at(PROFILE, at_time(13, 30)) == 3


def test_next_change_is_after_time():
    for h in range(24):
        t = at_time(h, 30)
        assert next_change(PROFILE, t) > t
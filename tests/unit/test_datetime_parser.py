from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

import pytest

from sheetcal.parsing.datetime_parser import (
    CIVIL_TZ,
    SLOT_TIME_RANGES,
    looks_like_date,
    parse_civil_date,
    parse_civil_datetime,
    parse_time_range,
)


@pytest.mark.parametrize(
    "text",
    ["27/1/2026", "27/01/2026", "2026-01-27", "27.01.2026", "27-01-26", "2026/1/27", "2026-01-27 00:00:00"],
)
def test_equivalent_date_formats_give_same_instants(text, fixed_now):
    """Every supported encoding of the same civil day parses identically."""
    span = parse_civil_datetime(text, "1", now=fixed_now)
    assert span.start == datetime(2026, 1, 27, 7, 0, tzinfo=CIVIL_TZ)
    assert span.end == datetime(2026, 1, 27, 9, 15, tzinfo=CIVIL_TZ)


def test_day_first_is_default_for_ambiguous_dates():
    assert parse_civil_date("03/04/2026") == date(2026, 4, 3)


def test_month_out_of_range_swaps_day_and_month():
    """1/27/2026 is not day-first but is still readable after a swap."""
    assert parse_civil_date("1/27/2026") == date(2026, 1, 27)


def test_excel_serial_date():
    assert parse_civil_date("46049") == date(2026, 1, 27)


@pytest.mark.parametrize("text", ["", "abc", "32/13/2026", "2026-02-30", "7"])
def test_invalid_dates_return_none(text):
    assert parse_civil_date(text) is None


def test_slot_two_matches_literal_range(fixed_now):
    """Slot "2" and "9:30 - 11:45" resolve to the same instants."""
    by_slot = parse_civil_datetime("27/01/2026", "2", now=fixed_now)
    by_range = parse_civil_datetime("27/01/2026", "9:30 - 11:45", now=fixed_now)
    assert by_slot == by_range
    assert by_slot.start.isoformat() == "2026-01-27T09:30:00+07:00"
    assert by_slot.end.isoformat() == "2026-01-27T11:45:00+07:00"


@pytest.mark.parametrize("code", sorted(SLOT_TIME_RANGES))
def test_slot_table_is_deterministic(code):
    assert parse_time_range(str(code)) == SLOT_TIME_RANGES[code]
    assert parse_time_range(f"Slot {code}") == SLOT_TIME_RANGES[code]


@pytest.mark.parametrize(
    "text, expected",
    [
        ("13h30-15h", (time(13, 30), time(15, 0))),
        ("13h30 – 15h00", (time(13, 30), time(15, 0))),
        ("7:00—9:15", (time(7, 0), time(9, 15))),
        ("9:00 AM - 11:00 AM", (time(9, 0), time(11, 0))),
        ("1 pm - 2:30 pm", (time(13, 0), time(14, 30))),
        ("13h", (time(13, 0), None)),
        ("13", (time(13, 0), None)),
    ],
)
def test_time_range_shapes(text, expected):
    assert parse_time_range(text) == expected


def test_bare_hour_gets_one_hour_span(fixed_now):
    span = parse_civil_datetime("27/01/2026", "13", now=fixed_now)
    assert span.start.time() == time(13, 0)
    assert span.end - span.start == timedelta(hours=1)


def test_invalid_date_collapses_to_now(fixed_now, caplog):
    """Unparseable date never raises; both instants become the current minute."""
    with caplog.at_level(logging.WARNING):
        span = parse_civil_datetime("not a date", "1", now=fixed_now)
    assert span.start == span.end == fixed_now
    assert span.collapsed
    assert any("unparseable date" in r.getMessage() for r in caplog.records)


def test_invalid_time_uses_midnight_plus_one_hour(fixed_now, caplog):
    with caplog.at_level(logging.WARNING):
        span = parse_civil_datetime("27/01/2026", "whenever", now=fixed_now)
    assert span.start == datetime(2026, 1, 27, 0, 0, tzinfo=CIVIL_TZ)
    assert span.end == datetime(2026, 1, 27, 1, 0, tzinfo=CIVIL_TZ)
    assert any("unparseable time" in r.getMessage() for r in caplog.records)


def test_end_before_start_is_replaced(fixed_now):
    span = parse_civil_datetime("27/01/2026", "15:00 - 13:00", now=fixed_now)
    assert span.end == span.start + timedelta(hours=1)


def test_far_date_is_flagged_but_accepted(fixed_now, caplog):
    with caplog.at_level(logging.WARNING):
        span = parse_civil_datetime("01/02/2030", "1", now=fixed_now)
    assert span.start.date() == date(2030, 2, 1)
    assert any("transposed" in r.getMessage() for r in caplog.records)


def test_near_date_is_not_flagged(fixed_now, caplog):
    with caplog.at_level(logging.WARNING):
        parse_civil_datetime("27/01/2026", "1", now=fixed_now)
    assert not caplog.records


def test_output_offset_is_fixed_plus_seven(fixed_now):
    span = parse_civil_datetime("15/07/2026", "3", now=fixed_now)
    assert span.start.utcoffset() == timedelta(hours=7)
    assert span.start.isoformat() == "2026-07-15T12:30:00+07:00"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("27/01/2026", True),
        ("2026-01-27", True),
        ("27/01/2026 08:30", True),
        ("2026-01-27 00:00:00", True),
        ("27/01/2026 7h", False),
        ("Thứ 3", False),
    ],
)
def test_looks_like_date(text, expected):
    assert looks_like_date(text) is expected

from __future__ import annotations

from datetime import datetime

import pytest

from ordering_service.availability import (
    CLOSED_LABEL,
    DAY_KEYS,
    DEFAULT_WEEKLY_HOURS,
    DaySchedule,
    ScheduleFormatError,
    TimeInterval,
    day_key_for,
    day_key_from_sunday_index,
    format_compact,
    is_open_now,
    normalize_schedule,
    normalize_time,
    sanitize_schedule,
)

# 2024-01-01 was a Monday.
MONDAY = datetime(2024, 1, 1)
SUNDAY = datetime(2024, 1, 7)


def at(day: datetime, hour: int, minute: int = 0) -> datetime:
    return day.replace(hour=hour, minute=minute)


@pytest.fixture()
def split_shift_monday():
    return {
        "monday": {
            "closed": False,
            "intervals": [
                {"open": "11:00", "close": "14:00"},
                {"open": "18:00", "close": "22:00"},
            ],
        }
    }


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("09:30", "09:30"),
        ("5", "05:00"),
        ("5:30", "05:30"),
        ("5pm", "17:00"),
        ("11:45am", "11:45"),
        ("12am", "00:00"),
        ("12pm", "12:00"),
        ("12:30 AM", "00:30"),
        (" 7 PM ", "19:00"),
        ("0am", "00:00"),
        ("00:30am", "00:30"),
        ("0pm", "12:00"),
    ],
)
def test_normalize_time(raw, expected):
    assert normalize_time(raw) == expected


@pytest.mark.parametrize("raw", ["noon", "", "25:00", "10:75", "13pm", "1:2"])
def test_normalize_time_returns_unparseable_input(raw):
    assert normalize_time(raw) == raw


@pytest.mark.parametrize(
    "hour, minute, expected",
    [(13, 0, True), (15, 0, False), (14, 0, False), (11, 0, True), (10, 59, False), (21, 59, True), (22, 0, False)],
)
def test_split_shift_boundaries(split_shift_monday, hour, minute, expected):
    verdict = is_open_now(split_shift_monday, at(MONDAY, hour, minute))
    assert verdict.open is expected
    assert verdict.active_window_description == "11:00 - 14:00, 18:00 - 22:00"
    assert verdict.day_key == "monday"
    assert verdict.fail_open is False


def test_unsorted_overlapping_intervals_match_any(split_shift_monday):
    split_shift_monday["monday"]["intervals"] = [
        {"open": "18:00", "close": "22:00"},
        {"open": "09:00", "close": "12:00"},
        {"open": "11:00", "close": "14:00"},
    ]
    assert is_open_now(split_shift_monday, at(MONDAY, 13, 30)).open is True
    assert is_open_now(split_shift_monday, at(MONDAY, 9, 0)).open is True
    assert is_open_now(split_shift_monday, at(MONDAY, 16, 0)).open is False


def test_sunday_only_schedule_uses_monday_first_rotation():
    schedule = {"sunday": {"closed": False, "intervals": [{"open": "00:00", "close": "23:59"}]}}
    assert SUNDAY.isoweekday() % 7 == 0
    assert is_open_now(schedule, at(SUNDAY, 12)).open is True
    assert is_open_now(schedule, at(MONDAY, 12)).open is False


@pytest.mark.parametrize(
    "index, key",
    [(0, "sunday"), (1, "monday"), (2, "tuesday"), (5, "friday"), (6, "saturday")],
)
def test_day_key_from_sunday_index(index, key):
    assert day_key_from_sunday_index(index) == key


def test_day_key_from_sunday_index_rejects_out_of_range():
    with pytest.raises(ValueError):
        day_key_from_sunday_index(7)


def test_day_key_for_covers_whole_week():
    keys = [day_key_for(MONDAY.replace(day=1 + offset)) for offset in range(7)]
    assert tuple(keys) == DAY_KEYS


def test_closed_flag_wins_over_intervals(split_shift_monday):
    split_shift_monday["monday"]["closed"] = True
    verdict = is_open_now(split_shift_monday, at(MONDAY, 12))
    assert verdict.open is False
    assert verdict.active_window_description == CLOSED_LABEL


@pytest.mark.parametrize("flag, expected_open", [("false", True), ("False", True), ("true", False), ("1", False), ("", True)])
def test_string_closed_flag(split_shift_monday, flag, expected_open):
    split_shift_monday["monday"]["closed"] = flag
    assert is_open_now(split_shift_monday, at(MONDAY, 12)).open is expected_open


def test_sanitize_reads_string_closed_flag():
    week = sanitize_schedule(
        {
            "monday": {"closed": "false", "intervals": [{"open": "11:00", "close": "14:00"}]},
            "tuesday": {"closed": "true", "intervals": [{"open": "11:00", "close": "14:00"}]},
        }
    )
    assert week["monday"].closed is False
    assert week["monday"].intervals == (TimeInterval("11:00", "14:00"),)
    assert week["tuesday"] == DaySchedule(closed=True)


def test_open_day_without_intervals_is_closed():
    verdict = is_open_now({"monday": {"closed": False, "intervals": []}}, at(MONDAY, 12))
    assert verdict.open is False
    assert verdict.active_window_description == "Fermé"


def test_missing_day_is_closed():
    verdict = is_open_now({"tuesday": {"open": "10:00", "close": "20:00"}}, at(MONDAY, 12))
    assert verdict.open is False


def test_legacy_single_window_with_twelve_hour_times():
    schedule = {"monday": {"closed": False, "open": "11am", "close": "9:30pm"}}
    verdict = is_open_now(schedule, at(MONDAY, 21, 15))
    assert verdict.open is True
    assert verdict.active_window_description == "11:00 - 21:30"


def test_unusable_intervals_are_dropped():
    schedule = {
        "monday": {
            "closed": False,
            "intervals": [{"open": "lunch", "close": "later"}, {"open": "18:00", "close": "22:00"}],
        }
    }
    verdict = is_open_now(schedule, at(MONDAY, 12))
    assert verdict.open is False
    assert verdict.active_window_description == "18:00 - 22:00"


def test_only_unusable_intervals_reads_as_closed():
    schedule = {"monday": {"closed": False, "intervals": [{"open": "noon", "close": "late"}]}}
    verdict = is_open_now(schedule, at(MONDAY, 12))
    assert verdict.open is False
    assert verdict.active_window_description == CLOSED_LABEL


def test_overnight_interval_never_matches():
    schedule = {"monday": {"closed": False, "intervals": [{"open": "22:00", "close": "02:00"}]}}
    assert is_open_now(schedule, at(MONDAY, 23)).open is False
    assert is_open_now(schedule, at(MONDAY, 1)).open is False


@pytest.mark.parametrize("schedule", [None, "closed", ["monday"], {"monday": "11-14"}, {"monday": {"intervals": "11-14"}}])
def test_malformed_schedule_fails_open(schedule):
    verdict = is_open_now(schedule, at(MONDAY, 3))
    assert verdict.open is True
    assert verdict.active_window_description == ""
    assert verdict.fail_open is True


def test_day_keys_are_case_insensitive():
    week = normalize_schedule({"Monday": {"open": "10:00", "close": "11:00"}})
    assert week["monday"].intervals == (TimeInterval("10:00", "11:00"),)
    assert set(week) == set(DAY_KEYS)


def test_default_hours_are_closed_on_sunday():
    week = normalize_schedule(DEFAULT_WEEKLY_HOURS)
    assert week["sunday"].effectively_closed
    assert is_open_now(DEFAULT_WEEKLY_HOURS, at(datetime(2024, 1, 5), 14, 15)).open is True


def test_sanitize_schedule_filters_and_sorts():
    week = sanitize_schedule(
        {
            "monday": {
                "closed": False,
                "intervals": [
                    {"open": "18:00", "close": "22:00"},
                    {"open": "11:00", "close": "14:00"},
                    {"open": "15:00", "close": "15:00"},
                    {"open": "5pm", "close": "9pm"},
                    {"open": "24:00", "close": "25:00"},
                ],
            },
            "tuesday": {"closed": True, "intervals": [{"open": "11:00", "close": "14:00"}]},
        }
    )
    assert week["monday"] == DaySchedule(
        closed=False,
        intervals=(TimeInterval("11:00", "14:00"), TimeInterval("18:00", "22:00")),
    )
    assert week["tuesday"] == DaySchedule(closed=True)
    assert week["sunday"] == DaySchedule(closed=True)


def test_sanitize_schedule_rejects_non_mapping():
    with pytest.raises(ScheduleFormatError):
        sanitize_schedule(["monday"])


def test_format_compact():
    week = normalize_schedule(DEFAULT_WEEKLY_HOURS)
    assert format_compact(week["friday"]) == "11h-14h30 • 18h-23h"
    assert format_compact(week["sunday"]) == CLOSED_LABEL

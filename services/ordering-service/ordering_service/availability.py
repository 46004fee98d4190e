"""Opening-hours evaluation against a weekly schedule.

Schedules arrive in several shapes (``{"closed", "intervals"}`` or the legacy
single ``{"open", "close"}`` window, 24h or 12h time strings). Everything is
normalised into :class:`DaySchedule` before any minute arithmetic runs.

Overnight intervals (``close`` before ``open``) are not supported and never
match. The clock passed to :func:`is_open_now` is compared as local wall
time; no timezone conversion happens here.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DAY_KEYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
CLOSED_LABEL = "Fermé"

_TWELVE_HOUR_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)?$", re.IGNORECASE)
_CANONICAL_RE = re.compile(r"^(\d{2}):(\d{2})$")

DEFAULT_WEEKLY_HOURS: Dict[str, dict] = {
    "monday": {"closed": False, "intervals": [{"open": "11:00", "close": "14:00"}, {"open": "18:00", "close": "22:00"}]},
    "tuesday": {"closed": False, "intervals": [{"open": "11:00", "close": "14:00"}, {"open": "18:00", "close": "22:00"}]},
    "wednesday": {"closed": False, "intervals": [{"open": "11:00", "close": "14:00"}, {"open": "18:00", "close": "22:00"}]},
    "thursday": {"closed": False, "intervals": [{"open": "11:00", "close": "14:00"}, {"open": "18:00", "close": "22:00"}]},
    "friday": {"closed": False, "intervals": [{"open": "11:00", "close": "14:30"}, {"open": "18:00", "close": "23:00"}]},
    "saturday": {"closed": False, "intervals": [{"open": "11:00", "close": "15:00"}, {"open": "18:00", "close": "23:00"}]},
    "sunday": {"closed": True, "intervals": []},
}


class ScheduleFormatError(ValueError):
    """Raised when an hours document does not have the expected shape."""


@dataclass(frozen=True)
class TimeInterval:
    open: str
    close: str

    @property
    def open_minutes(self) -> Optional[int]:
        return to_minutes(self.open)

    @property
    def close_minutes(self) -> Optional[int]:
        return to_minutes(self.close)

    @property
    def usable(self) -> bool:
        return self.open_minutes is not None and self.close_minutes is not None

    def contains(self, minute_of_day: int) -> bool:
        start, end = self.open_minutes, self.close_minutes
        if start is None or end is None:
            return False
        return start <= minute_of_day < end


@dataclass(frozen=True)
class DaySchedule:
    closed: bool
    intervals: tuple[TimeInterval, ...] = ()

    @property
    def effectively_closed(self) -> bool:
        return self.closed or not self.intervals

    def to_dict(self) -> dict:
        return {
            "closed": self.closed,
            "intervals": [{"open": i.open, "close": i.close} for i in self.intervals],
        }


WeeklySchedule = Dict[str, DaySchedule]


@dataclass(frozen=True)
class AvailabilityVerdict:
    open: bool
    active_window_description: str
    day_key: Optional[str] = None
    fail_open: bool = False


def normalize_time(raw: str) -> str:
    """Convert ``"5"``, ``"5:30"``, ``"5pm"`` or ``"11:45am"`` to ``"HH:MM"``.

    Input that cannot be read as a time of day is returned unchanged.
    """
    if not isinstance(raw, str):
        return raw
    match = _TWELVE_HOUR_RE.match(raw.strip())
    if not match:
        return raw

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    meridiem = (match.group(3) or "").lower()

    if meridiem:
        if hour > 12:
            return raw
        if meridiem == "pm" and hour < 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0

    if hour > 23 or minute > 59:
        return raw
    return f"{hour:02d}:{minute:02d}"


def to_minutes(value: str) -> Optional[int]:
    if not isinstance(value, str):
        return None
    match = _CANONICAL_RE.match(value)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour * 60 + minute


def day_key_from_sunday_index(index: int) -> str:
    """Map a Sunday=0..Saturday=6 weekday number onto a Monday-first day key."""
    if not 0 <= index <= 6:
        raise ValueError(f"Wochentag ausserhalb von 0..6: {index}")
    return DAY_KEYS[(index + 6) % 7]


def day_key_for(moment: datetime) -> str:
    # isoweekday() is Monday=1..Sunday=7, so % 7 yields the Sunday=0 numbering.
    return day_key_from_sunday_index(moment.isoweekday() % 7)


def _normalize_interval(raw) -> Optional[TimeInterval]:
    if isinstance(raw, TimeInterval):
        interval = TimeInterval(normalize_time(raw.open), normalize_time(raw.close))
    elif isinstance(raw, Mapping):
        interval = TimeInterval(
            normalize_time(raw.get("open") or ""),
            normalize_time(raw.get("close") or ""),
        )
    else:
        raise ScheduleFormatError(f"Intervall hat ein ungueltiges Format: {raw!r}")
    return interval if interval.usable else None


_TRUTHY_FLAGS = frozenset({"true", "1", "yes", "on"})


def _is_closed(value) -> bool:
    # Form posts send "false" as a string.
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_FLAGS
    return bool(value)


def normalize_day(raw) -> DaySchedule:
    if raw is None:
        return DaySchedule(closed=True)
    if isinstance(raw, DaySchedule):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        raise ScheduleFormatError(f"Tageseintrag hat ein ungueltiges Format: {raw!r}")

    closed = _is_closed(raw.get("closed", False))
    intervals = raw.get("intervals")
    if intervals is None:
        if raw.get("open") and raw.get("close"):
            intervals = [{"open": raw["open"], "close": raw["close"]}]
        else:
            intervals = []
    elif not isinstance(intervals, (list, tuple)):
        raise ScheduleFormatError(f"'intervals' muss eine Liste sein: {intervals!r}")

    normalized = [_normalize_interval(item) for item in intervals]
    return DaySchedule(
        closed=closed,
        intervals=tuple(item for item in normalized if item is not None),
    )


def normalize_schedule(document) -> WeeklySchedule:
    if not isinstance(document, Mapping):
        raise ScheduleFormatError("Oeffnungszeiten muessen ein Objekt pro Wochentag sein.")
    by_key = {str(key).lower(): value for key, value in document.items()}
    return {key: normalize_day(by_key.get(key)) for key in DAY_KEYS}


def describe_day(day: DaySchedule) -> str:
    if day.effectively_closed:
        return CLOSED_LABEL
    return ", ".join(f"{i.open} - {i.close}" for i in day.intervals)


def is_open_now(schedule, now: datetime) -> AvailabilityVerdict:
    """Tell whether ``now`` falls into any of the day's opening intervals.

    A missing or malformed schedule yields an open verdict with
    ``fail_open=True``: availability is advisory and a broken hours document
    must not stop orders. Call sites that enforce closure have to treat that
    verdict as "check skipped".
    """
    if schedule is None:
        logger.warning("No opening hours available, failing open")
        return AvailabilityVerdict(open=True, active_window_description="", fail_open=True)
    try:
        week = normalize_schedule(schedule)
    except ScheduleFormatError as exc:
        logger.warning("Malformed opening hours, failing open: %s", exc)
        return AvailabilityVerdict(open=True, active_window_description="", fail_open=True)

    day_key = day_key_for(now)
    day = week[day_key]
    if day.effectively_closed:
        return AvailabilityVerdict(open=False, active_window_description=CLOSED_LABEL, day_key=day_key)

    minute_of_day = now.hour * 60 + now.minute
    return AvailabilityVerdict(
        open=any(interval.contains(minute_of_day) for interval in day.intervals),
        active_window_description=describe_day(day),
        day_key=day_key,
    )


def sanitize_schedule(document) -> WeeklySchedule:
    """Clean an hours document before it is stored by the back office.

    Only strict ``HH:MM`` intervals with ``open < close`` survive, sorted by
    opening time. Closed days keep no intervals.
    """
    if not isinstance(document, Mapping):
        raise ScheduleFormatError("Oeffnungszeiten muessen ein Objekt pro Wochentag sein.")

    sanitized: WeeklySchedule = {}
    for key in DAY_KEYS:
        raw = document.get(key)
        if not isinstance(raw, Mapping):
            sanitized[key] = DaySchedule(closed=True)
            continue
        closed = _is_closed(raw.get("closed", False))
        intervals = raw.get("intervals")
        if closed or not isinstance(intervals, (list, tuple)):
            sanitized[key] = DaySchedule(closed=closed)
            continue

        clean = []
        for item in intervals:
            if not isinstance(item, Mapping):
                continue
            interval = TimeInterval(str(item.get("open") or ""), str(item.get("close") or ""))
            if not interval.usable or interval.open_minutes >= interval.close_minutes:
                continue
            clean.append(interval)
        clean.sort(key=lambda interval: interval.open_minutes)
        sanitized[key] = DaySchedule(closed=False, intervals=tuple(clean))
    return sanitized


def _compact_time(value: str) -> str:
    hour, _, minute = value.partition(":")
    return f"{hour}h{minute}" if minute and minute != "00" else f"{hour}h"


def format_compact(day: DaySchedule) -> str:
    """Storefront rendering, e.g. ``11h-14h30 • 18h-22h``."""
    if day.effectively_closed:
        return CLOSED_LABEL
    return " • ".join(
        f"{_compact_time(i.open)}-{_compact_time(i.close)}" for i in day.intervals
    )

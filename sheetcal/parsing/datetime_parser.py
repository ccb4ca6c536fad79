from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

"""Civil date/time normalization.

Turns free-form spreadsheet date and time cells into absolute instants at a
fixed UTC+07:00 offset (no DST). The parser never raises: unparseable input is
logged at WARN and replaced by a documented substitute.

Accepted date shapes:  27/1/2026, 27-01-26, 27.01.2026, 2026-01-27,
                       2026-01-27 00:00:00, Excel serial day numbers.
Accepted time shapes:  slot code (1..5, "Slot 3"), 13:30 - 15:00, 13h30-15h,
                       9h, 13, 9:00 AM - 11:00 AM.
"""

__all__ = [
    "CIVIL_TZ",
    "SLOT_TIME_RANGES",
    "CivilSpan",
    "looks_like_date",
    "parse_civil_date",
    "parse_civil_datetime",
    "parse_time_range",
    "resolve_slot",
]

logger = logging.getLogger(__name__)

CIVIL_TZ = timezone(timedelta(hours=7))

SLOT_TIME_RANGES: dict[int, tuple[time, time]] = {
    1: (time(7, 0), time(9, 15)),
    2: (time(9, 30), time(11, 45)),
    3: (time(12, 30), time(14, 45)),
    4: (time(15, 0), time(17, 15)),
    5: (time(17, 30), time(19, 45)),
}

DEFAULT_DURATION = timedelta(hours=1)
TRANSPOSITION_WARN_DAYS = 730

# Excel stores days since 1899-12-30; accept only a plausible window
_EXCEL_EPOCH = date(1899, 12, 30)
_EXCEL_SERIAL_RANGE = (20000, 80000)

_DATE_RE = re.compile(r"^(\d{1,4})[/\-.](\d{1,2})[/\-.](\d{1,4})(?:$|[\sT])")
_STRICT_DATE_RE = re.compile(r"^\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}(?:[\sT]+\d{1,2}:\d{2}(?::\d{2})?)?$")
_DASHES_RE = re.compile(r"[‐-―−]")
_SLOT_RE = re.compile(r"^(?:slot|ca)\s*(\d{1,2})$")
_CLOCK_RE = re.compile(r"^(\d{1,2})(?:\s*[:h]\s*(\d{2})?)?\s*(am|pm|a\.m\.|p\.m\.)?$")


@dataclass(frozen=True)
class CivilSpan:
    start: datetime
    end: datetime

    @property
    def collapsed(self) -> bool:
        return self.start == self.end


def looks_like_date(text: str) -> bool:
    """Strict ``D/M/Y`` style shape check; an ``HH:MM[:SS]`` clock may follow."""
    return bool(_STRICT_DATE_RE.match(text.strip()))


def parse_civil_date(text: str) -> date | None:
    """Parse a date cell; ``None`` when no valid calendar date can be read."""
    s = (text or "").strip()
    if not s:
        return None

    if s.isdigit():
        serial = int(s)
        lo, hi = _EXCEL_SERIAL_RANGE
        if lo <= serial <= hi:
            return _EXCEL_EPOCH + timedelta(days=serial)
        return None

    m = _DATE_RE.match(s)
    if not m:
        return None
    a, b, c = (int(g) for g in m.groups())
    if a > 1000:
        year, month, day = a, b, c
    else:
        day, month, year = a, b, c
        if year < 100:
            year += 2000

    # 1/27/2026 style input: swap before giving up
    if not 1 <= month <= 12 and 1 <= day <= 12:
        day, month = month, day

    try:
        return date(year, month, day)
    except ValueError:
        return None


def resolve_slot(code: int) -> tuple[time, time] | None:
    return SLOT_TIME_RANGES.get(code)


def _parse_clock(part: str) -> time | None:
    m = _CLOCK_RE.match(part.strip())
    if not m:
        return None
    hour = int(m.group(1))
    minute = int(m.group(2) or 0)
    suffix = (m.group(3) or "").replace(".", "")
    if suffix:
        if not 1 <= hour <= 12:
            return None
        if suffix == "pm" and hour != 12:
            hour += 12
        elif suffix == "am" and hour == 12:
            hour = 0
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def parse_time_range(text: str) -> tuple[time, time | None] | None:
    """Parse a time cell into ``(start, end)``; end is ``None`` when absent.

    A pure integer selects a slot when it is in the slot table, otherwise it is
    read as a bare start hour.
    """
    s = _DASHES_RE.sub("-", (text or "").strip().lower())
    if not s:
        return None

    if s.isdigit():
        n = int(s)
        slot = resolve_slot(n)
        if slot is not None:
            return slot
        if 0 <= n <= 23:
            return time(n, 0), None
        return None

    m = _SLOT_RE.match(s)
    if m:
        return resolve_slot(int(m.group(1)))

    parts = [p for p in re.split(r"\s*-\s*", s) if p]
    if not parts or len(parts) > 2:
        return None
    start = _parse_clock(parts[0])
    if start is None:
        return None
    if len(parts) == 1:
        return start, None
    end = _parse_clock(parts[1])
    if end is None:
        return None
    return start, end


def _civil_now(now: datetime | None) -> datetime:
    current = now or datetime.now(CIVIL_TZ)
    if current.tzinfo is None:
        current = current.replace(tzinfo=CIVIL_TZ)
    return current.astimezone(CIVIL_TZ).replace(second=0, microsecond=0)


def parse_civil_datetime(date_str: str, time_str: str, *, now: datetime | None = None) -> CivilSpan:
    """Combine a date cell and a time cell into a civil span.

    Fallbacks (logged at WARN, never raised):
      - invalid date: start and end both collapse to the current civil minute
      - invalid or missing time: 00:00 - 01:00 of the parsed date
      - end not after start: start + 1h
    A date more than two years from today is accepted with a WARN, since it
    usually means day and month were transposed.
    """
    current = _civil_now(now)
    parsed_date = parse_civil_date(date_str)
    if parsed_date is None:
        logger.warning(f"unparseable date {date_str!r}: using current time")
        return CivilSpan(start=current, end=current)

    if abs((parsed_date - current.date()).days) > TRANSPOSITION_WARN_DAYS:
        logger.warning(f"date {date_str!r} is more than two years away; day/month may be transposed")

    parsed_time = parse_time_range(time_str)
    if parsed_time is None:
        logger.warning(f"unparseable time {time_str!r} for date {date_str!r}: using 00:00")
        start = datetime.combine(parsed_date, time(0, 0), tzinfo=CIVIL_TZ)
        return CivilSpan(start=start, end=start + DEFAULT_DURATION)

    start_t, end_t = parsed_time
    start = datetime.combine(parsed_date, start_t, tzinfo=CIVIL_TZ)
    if end_t is None:
        return CivilSpan(start=start, end=start + DEFAULT_DURATION)
    end = datetime.combine(parsed_date, end_t, tzinfo=CIVIL_TZ)
    if end <= start:
        logger.warning(f"time range {time_str!r} ends before it starts: using one hour")
        end = start + DEFAULT_DURATION
    return CivilSpan(start=start, end=end)

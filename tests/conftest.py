# Shared pytest fixtures
from __future__ import annotations

import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pytest

from sheetcal.logging.init import reset_logging
from sheetcal.models.event import NormalizedEvent
from sheetcal.parsing.datetime_parser import CIVIL_TZ
from sheetcal.services.calendar_adapter import CalendarAdapterError, ExistingEvent

# Fixed "today" so far-date warnings and collapsed fallbacks are deterministic
NOW = datetime(2026, 1, 20, 8, 0, tzinfo=CIVIL_TZ)


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source:
  type: excel
  path: ./data/schedule.xlsx
layout:
  profile: auto
  exclude_groups: [defense]
fallbacks:
  person: Unknown
  location: TBD
calendar:
  calendar_id: primary
  strategy: private_key
  auto_confirm: true
person_filter: all
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sync.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def civil(y: int, m: int, d: int, hh: int, mm: int = 0) -> datetime:
    return datetime(y, m, d, hh, mm, tzinfo=CIVIL_TZ)


@pytest.fixture()
def make_event():
    """Factory for NormalizedEvent with sensible defaults."""
    counter = {"n": 0}

    def _make(
        task: str = "Review",
        person: str = "Nguyen Van A",
        start: datetime | None = None,
        end: datetime | None = None,
        **kwargs: Any,
    ) -> NormalizedEvent:
        counter["n"] += 1
        start = start or civil(2026, 1, 27, 7, 0)
        end = end or civil(2026, 1, 27, 9, 15)
        return NormalizedEvent(
            id=kwargs.pop("id", f"evt-{counter['n']}"),
            date=start.strftime("%d/%m/%Y"),
            start_time=start,
            end_time=end,
            person=person,
            task=task,
            location=kwargs.pop("location", "P.101"),
            **kwargs,
        )

    return _make


class FakeCalendar:
    """In-memory calendar implementing the four adapter operations."""

    def __init__(self) -> None:
        self.entries: dict[str, ExistingEvent] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_create_for: set[str] = set()
        self.fail_delete = False
        self._seq = 0

    def add(self, summary: str, start: datetime, end: datetime, source_key: str | None = None) -> ExistingEvent:
        self._seq += 1
        entry = ExistingEvent(id=f"cal-{self._seq}", summary=summary, start=start, end=end, source_key=source_key)
        self.entries[entry.id] = entry
        return entry

    def _from_payload(self, event_id: str, payload: dict[str, Any]) -> ExistingEvent:
        return ExistingEvent(
            id=event_id,
            summary=payload["summary"],
            start=datetime.fromisoformat(payload["start"]["dateTime"]),
            end=datetime.fromisoformat(payload["end"]["dateTime"]),
            source_key=payload["extendedProperties"]["private"]["sheetRowId"],
        )

    def mutations(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("create", "update", "delete")]

    async def list_events_for_day(self, day: date) -> list[ExistingEvent]:
        self.calls.append(("list", day.isoformat()))
        return [e for e in self.entries.values() if e.start.astimezone(CIVIL_TZ).date() == day]

    async def create_event(self, payload: dict[str, Any]) -> str:
        self.calls.append(("create", payload["summary"]))
        if payload["summary"] in self.fail_create_for:
            raise CalendarAdapterError("backend exploded", status_code=500)
        self._seq += 1
        event_id = f"cal-{self._seq}"
        self.entries[event_id] = self._from_payload(event_id, payload)
        return event_id

    async def update_event(self, event_id: str, payload: dict[str, Any]) -> None:
        self.calls.append(("update", event_id))
        self.entries[event_id] = self._from_payload(event_id, payload)

    async def delete_event(self, event_id: str) -> None:
        self.calls.append(("delete", event_id))
        if self.fail_delete:
            raise CalendarAdapterError("calendar unreachable")
        self.entries.pop(event_id, None)


class KeyedFakeCalendar(FakeCalendar):
    """Fake that also supports private-metadata lookups."""

    async def find_event_by_key(self, key: str) -> ExistingEvent | None:
        self.calls.append(("find", key))
        return next((e for e in self.entries.values() if e.source_key == key), None)


@pytest.fixture()
def fake_calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture()
def keyed_calendar() -> KeyedFakeCalendar:
    return KeyedFakeCalendar()


@pytest.fixture()
def civil_dt():
    """Build an aware datetime at the civil offset."""
    return civil


@pytest.fixture()
def fixed_now() -> datetime:
    return NOW

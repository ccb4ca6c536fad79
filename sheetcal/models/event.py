from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

"""NormalizedEvent model.

One schedulable calendar entry produced from a spreadsheet row (or one group of
a flattened two-tier row). Instants are timezone-aware at the civil offset.
"""

__all__ = [
    "EventStatus",
    "NormalizedEvent",
]


class EventStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass(frozen=True)
class NormalizedEvent:
    id: str
    date: str  # cell text the date was parsed from
    start_time: datetime
    end_time: datetime
    person: str
    task: str
    location: str
    raw: dict[str, str] = field(default_factory=dict)
    email: str | None = None
    group_name: str | None = None
    source_row_id: str | None = None
    status: EventStatus = EventStatus.PENDING

    @property
    def title(self) -> str:
        """Calendar summary, also the key for exact-match detection."""
        return f"[{self.task}] - {self.person}"

    @property
    def start_iso(self) -> str:
        return self.start_time.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end_time.isoformat()

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .event import EventStatus

"""Reconciliation result aggregation.

SyncResultBuilder is threaded through one reconcile run and frozen into a
SyncResult at the end. Log lines are collected in the result; subscribers
receive each line as it is produced (e.g. a progress display).
"""

__all__ = [
    "SyncResult",
    "SyncResultBuilder",
]


@dataclass(frozen=True)
class SyncResult:
    created: int = 0
    updated: int = 0
    failed: int = 0
    kept: int = 0
    logs: tuple[str, ...] = ()
    event_statuses: Mapping[str, EventStatus] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return self.created + self.updated + self.kept

    @property
    def has_failures(self) -> bool:
        return self.failed > 0


class SyncResultBuilder:
    """Mutable accumulator for a single reconcile run."""

    def __init__(self) -> None:
        self.created = 0
        self.updated = 0
        self.failed = 0
        self.kept = 0
        self._logs: list[str] = []
        self._statuses: dict[str, EventStatus] = {}
        self._subscribers: list[Callable[[str], None]] = []

    def subscribe(self, callback: Callable[[str], None]) -> None:
        self._subscribers.append(callback)

    def log(self, line: str) -> None:
        self._logs.append(line)
        for cb in self._subscribers:
            cb(line)

    def mark_created(self, event_id: str, line: str) -> None:
        self.created += 1
        self._statuses[event_id] = EventStatus.SYNCED
        self.log(line)

    def mark_updated(self, event_id: str, line: str) -> None:
        self.updated += 1
        self._statuses[event_id] = EventStatus.SYNCED
        self.log(line)

    def mark_kept(self, event_id: str, line: str) -> None:
        self.kept += 1
        self._statuses[event_id] = EventStatus.SYNCED
        self.log(line)

    def mark_failed(self, event_id: str, line: str) -> None:
        self.failed += 1
        self._statuses[event_id] = EventStatus.FAILED
        self.log(line)

    def build(self) -> SyncResult:
        return SyncResult(
            created=self.created,
            updated=self.updated,
            failed=self.failed,
            kept=self.kept,
            logs=tuple(self._logs),
            event_statuses=MappingProxyType(dict(self._statuses)),
        )

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Column role mapping models."""

__all__ = [
    "ColumnMapping",
    "ColumnRole",
    "InferredSchema",
    "REQUIRED_ROLES",
]


class ColumnRole(str, Enum):
    DATE = "date"
    TIME = "time"
    PERSON = "person"
    TASK = "task"
    LOCATION = "location"
    EMAIL = "email"


REQUIRED_ROLES: tuple[ColumnRole, ...] = (ColumnRole.DATE, ColumnRole.TIME, ColumnRole.PERSON)


@dataclass(frozen=True)
class ColumnMapping:
    """Partial role -> zero-based column index mapping."""
    date: int | None = None
    time: int | None = None
    person: int | None = None
    task: int | None = None
    location: int | None = None
    email: int | None = None

    def get(self, role: ColumnRole) -> int | None:
        return getattr(self, role.value)

    def has(self, role: ColumnRole) -> bool:
        return self.get(role) is not None

    def as_dict(self) -> dict[str, int]:
        return {r.value: idx for r in ColumnRole if (idx := self.get(r)) is not None}

    @classmethod
    def from_dict(cls, data: dict[str, int | None]) -> ColumnMapping:
        known = {r.value for r in ColumnRole}
        return cls(**{k: v for k, v in data.items() if k in known})

    def merged_with(self, override: ColumnMapping) -> ColumnMapping:
        """Return a mapping where every role set in ``override`` wins."""
        merged = self.as_dict()
        merged.update(override.as_dict())
        return ColumnMapping.from_dict(merged)


@dataclass(frozen=True)
class InferredSchema:
    mapping: ColumnMapping
    confidence: float
    is_reliable: bool
    scores: dict[str, float] = field(default_factory=dict)

    @property
    def missing_required(self) -> list[str]:
        return [r.value for r in REQUIRED_ROLES if not self.mapping.has(r)]

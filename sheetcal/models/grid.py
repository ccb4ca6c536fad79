from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

"""Raw grid model.

A RawGrid is the untouched cell matrix of one spreadsheet tab. Ragged input is
padded once at ingestion so every row has the same width and downstream index
access never needs bounds checks.
"""

__all__ = [
    "GridRow",
    "RawGrid",
    "cell_to_text",
]


def cell_to_text(value: Any) -> str:
    """Render a single cell value as stripped text ("" for missing cells)."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


@dataclass(frozen=True)
class GridRow:
    """A data row plus its 1-based row number in the source sheet."""
    row_number: int
    cells: tuple[str, ...]

    def is_empty(self) -> bool:
        return all(c == "" for c in self.cells)


@dataclass(frozen=True)
class RawGrid:
    rows: tuple[tuple[str, ...], ...]
    width: int

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[Any]]) -> RawGrid:
        """Build a grid from arbitrary nested sequences, padding ragged rows."""
        text_rows = [[cell_to_text(v) for v in row] for row in rows]
        width = max((len(r) for r in text_rows), default=0)
        padded = tuple(tuple(r + [""] * (width - len(r))) for r in text_rows)
        return cls(rows=padded, width=width)

    def __len__(self) -> int:
        return len(self.rows)

    def row(self, index: int) -> tuple[str, ...]:
        return self.rows[index]

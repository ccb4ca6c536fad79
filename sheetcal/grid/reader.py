from __future__ import annotations

import logging
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

import pandas as pd

from sheetcal.models.grid import RawGrid, cell_to_text

"""Local spreadsheet readers (Excel / CSV) producing a RawGrid.

Sheets are read without a header row: header detection happens later on the
grid. Excel date cells are rendered day-first (dd/mm/YYYY) so they go through
the same date parser as typed-in text.
"""

__all__ = [
    "GridReadError",
    "read_csv_grid",
    "read_excel_grid",
    "read_grid",
]

logger = logging.getLogger(__name__)


class GridReadError(Exception):
    """Raised when a spreadsheet file cannot be read."""


def _render(value: Any) -> str:
    if value is None or value is pd.NaT:
        return ""
    # pd.Timestamp is a datetime subclass
    if isinstance(value, datetime):
        if (value.hour, value.minute, value.second) == (0, 0, 0):
            return value.strftime("%d/%m/%Y")
        return value.strftime("%d/%m/%Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return cell_to_text(value)


def _frame_to_grid(df: pd.DataFrame) -> RawGrid:
    rows = [[_render(v) for v in row] for row in df.itertuples(index=False, name=None)]
    return RawGrid.from_rows(rows)


def read_excel_grid(path: Path, sheet_name: str | None = None) -> RawGrid:
    """Read one sheet (first sheet when ``sheet_name`` is None) as a RawGrid."""
    if not path.exists():
        raise GridReadError(f"file not found: {path}")
    try:
        xls = pd.ExcelFile(path)
        names = [str(n) for n in xls.sheet_names]
        target = sheet_name if sheet_name is not None else names[0]
        if target not in names:
            raise GridReadError(f"sheet {target!r} not found in {path.name} (sheets: {names})")
        # keep_default_na=False: "NA"/"N/A" typed into a cell stay text
        df = xls.parse(target, header=None, keep_default_na=False)
    except GridReadError:
        raise
    except (OSError, ValueError) as e:
        raise GridReadError(f"cannot read {path}: {e}") from e
    grid = _frame_to_grid(df)
    logger.debug(f"read {path.name}:{target} rows={len(grid)} width={grid.width}")
    return grid


def read_csv_grid(path: Path, encoding: str = "utf-8-sig") -> RawGrid:
    if not path.exists():
        raise GridReadError(f"file not found: {path}")
    try:
        df = pd.read_csv(path, header=None, dtype=str, keep_default_na=False, encoding=encoding)
    except pd.errors.EmptyDataError:
        return RawGrid.from_rows([])
    except (OSError, ValueError) as e:
        raise GridReadError(f"cannot read {path}: {e}") from e
    grid = _frame_to_grid(df)
    logger.debug(f"read {path.name} rows={len(grid)} width={grid.width}")
    return grid


def read_grid(path: Path, sheet_name: str | None = None) -> RawGrid:
    """Dispatch on the file suffix (.csv vs Excel)."""
    if path.suffix.lower() == ".csv":
        return read_csv_grid(path)
    return read_excel_grid(path, sheet_name)

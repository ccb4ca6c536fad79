from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from sheetcal.models.event import NormalizedEvent
from sheetcal.models.grid import GridRow, cell_to_text
from sheetcal.models.header import HeaderResolution
from sheetcal.models.schema import ColumnMapping
from sheetcal.parsing.datetime_parser import looks_like_date, parse_civil_datetime

"""Row normalization and group flattening.

Flat mode keeps one event per row that has both a date and a time cell.
Grouped mode explodes each row into one event per group (REVIEW 1, REVIEW 2,
...) whose date cell holds a real date; time may be missing there and falls
back through the date/time parser.

Event ids are SHA-1 digests of (sheet, tab, row number, disambiguator) so a
re-load of the same sheet yields the same ids.
"""

__all__ = [
    "NormalizeOptions",
    "event_id",
    "filter_events_by_person",
    "group_runs",
    "normalize_resolution",
    "normalize_rows",
    "normalize_rows_with_grouping",
    "raw_keys",
]

logger = logging.getLogger(__name__)

RowLike = GridRow | Sequence[str]

GENERIC_PREFIX = "Column_"

# (keywords, exclusions) searched in lowercase detail headers of one group
_GROUP_FIELDS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "date": (("date", "ngày"), ("thứ", "weekday", "day of week", "trong tuần")),
    "time": (("slot", "time", "giờ", "ca học", "ca thi", "tiết"), ()),
    "room": (("room", "phòng", "location", "địa điểm"), ()),
    "reviewer": (
        ("reviewer", "giảng viên", "thành viên", "member", "teacher", "người", "họ tên", "tên"),
        (),
    ),
    "code": (("code", "mã"), ("slot",)),
}


@dataclass(frozen=True)
class NormalizeOptions:
    """Fallback text and task lookup order for blank cells."""
    person_fallback: str = "Unknown"
    task_fallback: str = "Nhiệm vụ không tên"
    location_fallback: str = "Chưa xác định"
    unassigned_person: str = "Unassigned"
    task_fallback_columns: tuple[int, ...] = ()


def event_id(sheet_id: str, tab_name: str, row_number: int, key: str) -> str:
    payload = "|".join([sheet_id, tab_name, str(row_number), key.strip().lower()])
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def raw_keys(headers: Sequence[str], width: int | None = None) -> list[str]:
    """Column names for ``raw``; blank and repeated names become ``Column_{i}``."""
    total = max(len(headers), width or 0)
    keys: list[str] = []
    seen: set[str] = set()
    for i in range(total):
        name = headers[i].strip() if i < len(headers) else ""
        if not name or name in seen:
            name = f"{GENERIC_PREFIX}{i}"
        seen.add(name)
        keys.append(name)
    return keys


def _unpack(row: RowLike, fallback_number: int) -> tuple[int, tuple[str, ...]]:
    if isinstance(row, GridRow):
        return row.row_number, row.cells
    return fallback_number, tuple(cell_to_text(c) for c in row)


def _cell(cells: Sequence[str], index: int | None) -> str:
    if index is None or index < 0 or index >= len(cells):
        return ""
    return cells[index].strip()


def _first_filled(cells: Sequence[str], indexes: Iterable[int]) -> str:
    for idx in indexes:
        value = _cell(cells, idx)
        if value:
            return value
    return ""


def _raw_map(keys: Sequence[str], cells: Sequence[str]) -> dict[str, str]:
    names = keys if len(keys) >= len(cells) else raw_keys(keys, len(cells))
    return {names[i]: (cells[i] if i < len(cells) else "") for i in range(len(names))}


def normalize_rows(
    headers: Sequence[str],
    raw_rows: Iterable[RowLike],
    mapping: ColumnMapping,
    header_row_index: int,
    *,
    sheet_id: str = "",
    tab_name: str = "",
    options: NormalizeOptions | None = None,
    now: datetime | None = None,
) -> list[NormalizedEvent]:
    """Flat mode: one event per row carrying both a date and a time cell.

    Plain cell sequences are numbered from the row below the header
    (``header_row_index + 2`` in 1-based sheet rows).
    """
    opts = options or NormalizeOptions()
    if mapping.date is None or mapping.time is None:
        logger.warning("no date/time column mapped: no events produced")
        return []

    keys = raw_keys(headers)
    events: list[NormalizedEvent] = []
    for offset, row in enumerate(raw_rows):
        row_number, cells = _unpack(row, header_row_index + 2 + offset)
        date_cell = _cell(cells, mapping.date)
        time_cell = _cell(cells, mapping.time)
        if not date_cell or not time_cell:
            continue
        try:
            span = parse_civil_datetime(date_cell, time_cell, now=now)
            person = _cell(cells, mapping.person) or opts.person_fallback
            task = (
                _cell(cells, mapping.task)
                or _first_filled(cells, opts.task_fallback_columns)
                or opts.task_fallback
            )
            events.append(
                NormalizedEvent(
                    id=event_id(sheet_id, tab_name, row_number, person),
                    date=date_cell,
                    start_time=span.start,
                    end_time=span.end,
                    person=person,
                    task=task,
                    location=_cell(cells, mapping.location) or opts.location_fallback,
                    email=_cell(cells, mapping.email) or None,
                    raw=_raw_map(keys, cells),
                    source_row_id=f"{sheet_id}/{tab_name}/{row_number}",
                )
            )
        except Exception as e:
            logger.warning(f"row {row_number}: dropped ({e})")
    logger.debug(f"flat normalize: {len(events)} event(s)")
    return events


def _is_generic(label: str) -> bool:
    return not label or label.startswith(GENERIC_PREFIX)


def group_runs(group_headers: Sequence[str]) -> list[tuple[str, list[int]]]:
    """Contiguous runs of identical non-generic group labels."""
    runs: list[tuple[str, list[int]]] = []
    current: tuple[str, list[int]] | None = None
    for idx, raw_label in enumerate(group_headers):
        label = raw_label.strip()
        if _is_generic(label):
            current = None
            continue
        if current is not None and current[0] == label:
            current[1].append(idx)
        else:
            current = (label, [idx])
            runs.append(current)
    return runs


def _group_values(local: Sequence[tuple[str, str]], field: str) -> list[str]:
    keywords, exclusions = _GROUP_FIELDS[field]
    found: list[str] = []
    for header, value in local:
        if not value:
            continue
        if any(k in header for k in keywords) and not any(x in header for x in exclusions):
            found.append(value)
    return found


def _first_group_value(local: Sequence[tuple[str, str]], field: str) -> str:
    values = _group_values(local, field)
    return values[0] if values else ""


def _column_keys(headers: Sequence[str], indexes: Sequence[int], taken: set[str]) -> dict[int, str]:
    """Key columns by their own label; blank or clashing labels become ``Column_{i}``."""
    keys: dict[int, str] = {}
    seen = set(taken)
    for i in indexes:
        name = headers[i].strip() if i < len(headers) else ""
        if not name or name in seen:
            name = f"{GENERIC_PREFIX}{i}"
        seen.add(name)
        keys[i] = name
    return keys


def _shared_cell(cells: Sequence[str], index: int | None, shared: set[int]) -> str:
    return _cell(cells, index) if index in shared else ""


def normalize_rows_with_grouping(
    group_headers: Sequence[str],
    detail_headers: Sequence[str],
    raw_rows: Iterable[RowLike],
    mapping: ColumnMapping,
    header_row_index: int,
    *,
    sheet_id: str = "",
    tab_name: str = "",
    options: NormalizeOptions | None = None,
    now: datetime | None = None,
) -> list[NormalizedEvent]:
    """Grouped mode: explode each row into one event per dated group.

    ``raw`` holds the shared (ungrouped) columns plus the group's own columns,
    each group keyed by its own detail labels. Person and task fall back to
    mapped shared columns when the group carries no reviewer or code.
    """
    opts = options or NormalizeOptions()
    runs = group_runs(group_headers)
    if not runs:
        logger.warning("no group labels found: no grouped events produced")
        return []

    grouped_cols = {i for _, cols in runs for i in cols}
    shared_cols = [i for i in range(len(detail_headers)) if i not in grouped_cols]
    shared_keys = _column_keys(detail_headers, shared_cols, set())
    shared_set = set(shared_cols)
    run_keys = [_column_keys(detail_headers, cols, set(shared_keys.values())) for _, cols in runs]

    # repeated non-contiguous labels need distinct ids
    label_keys: list[str] = []
    label_seen: dict[str, int] = {}
    for label, _ in runs:
        n = label_seen.get(label, 0)
        label_seen[label] = n + 1
        label_keys.append(label if n == 0 else f"{label}#{n + 1}")

    events: list[NormalizedEvent] = []
    for offset, row in enumerate(raw_rows):
        row_number, cells = _unpack(row, header_row_index + 2 + offset)
        source_row_id = f"{sheet_id}/{tab_name}/{row_number}"
        shared = {shared_keys[i]: _cell(cells, i) for i in shared_cols}
        shared_person = _shared_cell(cells, mapping.person, shared_set)
        shared_task = _shared_cell(cells, mapping.task, shared_set) or _first_filled(
            cells, (i for i in opts.task_fallback_columns if i in shared_set)
        )

        for (label, cols), id_key, keys in zip(runs, label_keys, run_keys):
            local = [(detail_headers[i].strip().lower(), _cell(cells, i)) for i in cols]
            date_cell = _first_group_value(local, "date")
            if not looks_like_date(date_cell):
                continue
            try:
                time_cell = _first_group_value(local, "time")
                span = parse_civil_datetime(date_cell, time_cell, now=now)
                reviewers = _group_values(local, "reviewer")
                detail = _first_group_value(local, "code") or shared_task
                location = (
                    _first_group_value(local, "room")
                    or _cell(cells, mapping.location)
                    or opts.location_fallback
                )
                raw = dict(shared)
                raw.update({keys[i]: _cell(cells, i) for i in cols})
                raw["Group"] = label
                events.append(
                    NormalizedEvent(
                        id=event_id(sheet_id, tab_name, row_number, id_key),
                        date=date_cell,
                        start_time=span.start,
                        end_time=span.end,
                        person=", ".join(reviewers) or shared_person or opts.unassigned_person,
                        task=f"{label} - {detail}" if detail else label,
                        location=location,
                        email=_cell(cells, mapping.email) or None,
                        raw=raw,
                        group_name=label,
                        source_row_id=source_row_id,
                    )
                )
            except Exception as e:
                logger.warning(f"row {row_number} group {label!r}: dropped ({e})")
    logger.debug(f"grouped normalize: {len(events)} event(s) from {len(runs)} group(s)")
    return events


def normalize_resolution(
    resolution: HeaderResolution,
    mapping: ColumnMapping,
    *,
    sheet_id: str = "",
    tab_name: str = "",
    options: NormalizeOptions | None = None,
    now: datetime | None = None,
) -> list[NormalizedEvent]:
    """Dispatch to flat or grouped mode depending on the header tiers."""
    if resolution.group_headers is not None:
        return normalize_rows_with_grouping(
            resolution.group_headers,
            resolution.detail_headers,
            resolution.data_rows,
            mapping,
            resolution.header_row_index,
            sheet_id=sheet_id,
            tab_name=tab_name,
            options=options,
            now=now,
        )
    return normalize_rows(
        resolution.detail_headers,
        resolution.data_rows,
        mapping,
        resolution.header_row_index,
        sheet_id=sheet_id,
        tab_name=tab_name,
        options=options,
        now=now,
    )


def filter_events_by_person(events: Iterable[NormalizedEvent], query: str | None) -> list[NormalizedEvent]:
    """Case-insensitive substring filter on person or email; "" / "all" keep everything."""
    q = (query or "").strip().lower()
    if not q or q == "all":
        return list(events)
    return [
        e for e in events
        if q in e.person.lower() or (e.email is not None and q in e.email.lower())
    ]

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import httpx

from sheetcal.config.loader import FallbackConfig, LayoutConfig, SourceConfig
from sheetcal.grid.reader import read_grid
from sheetcal.grid.sheets_api import extract_sheet_id, fetch_grid
from sheetcal.logging.error_log import SyncErrorLogBuffer
from sheetcal.models.event import NormalizedEvent
from sheetcal.models.grid import RawGrid
from sheetcal.models.header import FlatLayout, HeaderResolution, LayoutProfile, TwoTierLayout
from sheetcal.models.schema import ColumnMapping, ColumnRole, InferredSchema
from sheetcal.models.sync_result import SyncResult
from sheetcal.services.calendar_adapter import DEFAULT_TIMEZONE, CalendarAdapter
from sheetcal.services.format_detector import detect_format, resolve_header_at_row
from sheetcal.services.normalizer import NormalizeOptions, normalize_resolution
from sheetcal.services.reconciler import ConfirmCallback, reconcile
from sheetcal.services.schema_inference import infer_schema

"""Load -> detect -> infer -> normalize -> reconcile, in one place.

``load_sheet`` is pure and synchronous; ``sync_events`` drives the reconciler
and flushes the failure log. ``load_source_grid`` is the only I/O on the
loading side.
"""

__all__ = [
    "SAMPLE_ROWS",
    "LoadedSheet",
    "PipelineError",
    "build_layout_profile",
    "build_normalize_options",
    "ensure_syncable",
    "load_sheet",
    "load_source_grid",
    "source_identity",
    "sync_events",
]

logger = logging.getLogger(__name__)

SAMPLE_ROWS = 5


class PipelineError(Exception):
    """Fatal condition for one run (unreadable source, nothing to sync, ...)."""


@dataclass(frozen=True)
class LoadedSheet:
    resolution: HeaderResolution
    schema: InferredSchema
    mapping: ColumnMapping
    events: list[NormalizedEvent]


def build_layout_profile(layout: LayoutConfig) -> LayoutProfile:
    if layout.profile == "flat":
        return FlatLayout()
    return TwoTierLayout(
        excluded_groups=tuple(layout.exclude_groups),
        forced=layout.profile == "two_tier",
    )


def build_normalize_options(fallbacks: FallbackConfig) -> NormalizeOptions:
    return NormalizeOptions(
        person_fallback=fallbacks.person,
        task_fallback=fallbacks.task,
        location_fallback=fallbacks.location,
        unassigned_person=fallbacks.unassigned,
        task_fallback_columns=tuple(fallbacks.task_columns),
    )


def source_identity(source: SourceConfig) -> tuple[str, str]:
    """(sheet id, tab name) feeding the deterministic event ids."""
    if source.type == "google_sheets":
        return extract_sheet_id(source.spreadsheet or ""), source.tab or ""
    return Path(source.path or "").name, source.sheet or ""


async def load_source_grid(
    source: SourceConfig, auth_token: str = "", *, http_client: httpx.AsyncClient | None = None
) -> RawGrid:
    if source.type == "google_sheets":
        return await fetch_grid(
            source.spreadsheet or "",
            source.range,
            auth_token,
            tab_name=source.tab,
            http_client=http_client,
        )
    return read_grid(Path(source.path or ""), source.sheet)


def load_sheet(
    grid: RawGrid,
    *,
    sheet_id: str = "",
    tab_name: str = "",
    profile: LayoutProfile | None = None,
    header_row_index: int | None = None,
    mapping: ColumnMapping | None = None,
    options: NormalizeOptions | None = None,
    now: datetime | None = None,
) -> LoadedSheet:
    """Resolve headers, infer the mapping and build the full event list.

    ``header_row_index`` (0-based) switches from automatic detection to the
    manual override; roles set in ``mapping`` win over inferred ones.
    """
    if header_row_index is None:
        resolution = detect_format(grid, profile)
    else:
        resolution = resolve_header_at_row(grid, header_row_index, profile)

    sample = [row.cells for row in resolution.data_rows[:SAMPLE_ROWS]]
    schema = infer_schema(resolution.detail_headers, sample)
    effective = schema.mapping.merged_with(mapping) if mapping is not None else schema.mapping

    events = normalize_resolution(
        resolution,
        effective,
        sheet_id=sheet_id,
        tab_name=tab_name,
        options=options,
        now=now,
    )
    logger.info(
        f"loaded layout={resolution.layout} header_row={resolution.header_row_index + 1} "
        f"data_rows={len(resolution.data_rows)} events={len(events)}"
    )
    return LoadedSheet(resolution=resolution, schema=schema, mapping=effective, events=events)


async def sync_events(
    events: Sequence[NormalizedEvent],
    adapter: CalendarAdapter,
    *,
    strategy: str = "private_key",
    confirm: ConfirmCallback | None = None,
    error_log: SyncErrorLogBuffer | None = None,
    sheet: str = "",
    tab: str = "",
    timezone_name: str = DEFAULT_TIMEZONE,
    subscribers: Iterable[Callable[[str], None]] = (),
) -> SyncResult:
    """Reconcile and flush the failure log, even when reconciling is interrupted."""
    try:
        return await reconcile(
            events,
            adapter,
            strategy=strategy,
            confirm=confirm,
            error_log=error_log,
            sheet=sheet,
            tab=tab,
            timezone_name=timezone_name,
            subscribers=subscribers,
        )
    finally:
        if error_log is not None:
            path = error_log.flush()
            if path is not None:
                logger.info(f"failure details written to {path}")


def ensure_syncable(loaded: LoadedSheet) -> None:
    """Raise PipelineError when flat rows cannot be normalized at all."""
    if loaded.resolution.is_two_tier:
        return
    missing = [r.value for r in (ColumnRole.DATE, ColumnRole.TIME) if not loaded.mapping.has(r)]
    if missing:
        raise PipelineError(
            f"no {'/'.join(missing)} column identified; set 'mapping' in the config or use --header-row"
        )

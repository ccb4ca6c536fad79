from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from sheetcal.config.loader import DEFAULT_CONFIG_PATH, ConfigError, SyncConfig, load_config
from sheetcal.grid.reader import GridReadError
from sheetcal.grid.sheets_api import SheetsRequestError
from sheetcal.logging.error_log import SyncErrorLogBuffer
from sheetcal.logging.init import log_summary, setup_logging
from sheetcal.models.sync_result import SyncResult
from sheetcal.services.calendar_adapter import GoogleCalendarAdapter
from sheetcal.services.format_detector import HeaderResolutionError
from sheetcal.services.normalizer import filter_events_by_person
from sheetcal.services.pipeline import (
    LoadedSheet,
    PipelineError,
    build_layout_profile,
    build_normalize_options,
    ensure_syncable,
    load_sheet,
    load_source_grid,
    source_identity,
    sync_events,
)
from sheetcal.services.summary import render_summary_line

"""CLI entrypoint.

Flow: .env -> config -> read grid -> detect/infer/normalize -> (filter by
person) -> reconcile against Google Calendar -> SUMMARY line.

Exit codes:
    0  every event created, updated or kept (also --inspect-data / --dry-run)
    1  fatal: config, source, token or mapping problem
    2  at least one event failed or was declined
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

ACCESS_TOKEN_ENV = "GOOGLE_ACCESS_TOKEN"
SHEETS_TOKEN_ENV = "GOOGLE_SHEETS_TOKEN"
INSPECT_EVENT_LIMIT = 5
_YES_ANSWERS = {"y", "yes", "c", "có"}


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; .env values win over the inherited environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Spreadsheet schedule -> Google Calendar sync")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print resolved headers, mapping and first events then exit")
    p.add_argument("--dry-run", action="store_true", help="Normalize only; do not touch the calendar")
    p.add_argument("--yes", action="store_true", help="Approve every overwrite without prompting")
    p.add_argument("--person", default=None, help="Only sync events whose person/email contains this text ('all' = everyone)")
    p.add_argument("--header-row", type=int, default=None, help="1-based header row (overrides detection)")
    return p.parse_args(argv)


async def _prompt_confirm(message: str) -> bool:
    answer = await asyncio.to_thread(input, f"{message} [y/N] ")
    return answer.strip().lower() in _YES_ANSWERS


def _auto_confirm(message: str) -> bool:
    logging.getLogger(__name__).info(f"auto-confirmed: {message}")
    return True


def _inspect_data(loaded: LoadedSheet) -> int:
    res = loaded.resolution
    print(f"LAYOUT: {res.layout} header_row={res.header_row_index + 1} data_rows={len(res.data_rows)}")
    if res.group_headers is not None:
        print(f"  group_headers={list(res.group_headers)}")
    print(f"  detail_headers={list(res.detail_headers)}")
    print(
        f"  mapping={loaded.mapping.as_dict()} confidence={loaded.schema.confidence} "
        f"reliable={loaded.schema.is_reliable}"
    )
    print(f"  events={len(loaded.events)}")
    for e in loaded.events[:INSPECT_EVENT_LIMIT]:
        print(f"    {e.start_iso} -> {e.end_iso} {e.title} @ {e.location}")
    return EXIT_SUCCESS_ALL


def _finish(total_events: int, result: SyncResult, started: float) -> None:
    summary_line = render_summary_line(total_events, result, time.perf_counter() - started)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line[len("SUMMARY "):])


async def _run(cfg: SyncConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    started = time.perf_counter()
    access_token = os.getenv(ACCESS_TOKEN_ENV, "")
    sheets_token = os.getenv(SHEETS_TOKEN_ENV) or access_token

    if cfg.source.type == "google_sheets" and not sheets_token:
        logger.error(f"{SHEETS_TOKEN_ENV} or {ACCESS_TOKEN_ENV} is required to read Google Sheets")
        return EXIT_FATAL

    try:
        grid = await load_source_grid(cfg.source, sheets_token)
        sheet_id, tab = source_identity(cfg.source)
    except (GridReadError, SheetsRequestError) as e:
        logger.error(f"source: {e}")
        return EXIT_FATAL

    header_row = args.header_row if args.header_row is not None else cfg.layout.header_row
    try:
        loaded = load_sheet(
            grid,
            sheet_id=sheet_id,
            tab_name=tab,
            profile=build_layout_profile(cfg.layout),
            header_row_index=header_row - 1 if header_row is not None else None,
            mapping=cfg.mapping,
            options=build_normalize_options(cfg.fallbacks),
        )
    except HeaderResolutionError as e:
        logger.error(f"header: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(loaded)

    try:
        ensure_syncable(loaded)
    except PipelineError as e:
        logger.error(f"mapping: {e}")
        return EXIT_FATAL

    events = filter_events_by_person(loaded.events, args.person if args.person is not None else cfg.person_filter)
    if len(events) != len(loaded.events):
        logger.info(f"person filter kept {len(events)}/{len(loaded.events)} event(s)")

    if not events:
        logger.warning("no valid rows to sync")
        _finish(0, SyncResult(), started)
        return EXIT_SUCCESS_ALL

    if args.dry_run:
        for e in events:
            logger.info(f"dry-run: {e.start_iso} {e.title} @ {e.location}")
        _finish(len(events), SyncResult(), started)
        return EXIT_SUCCESS_ALL

    if not access_token:
        logger.error(f"{ACCESS_TOKEN_ENV} is required to sync the calendar")
        return EXIT_FATAL

    confirm = _auto_confirm if (args.yes or cfg.calendar.auto_confirm) else _prompt_confirm
    error_log = SyncErrorLogBuffer()
    async with GoogleCalendarAdapter(access_token, calendar_id=cfg.calendar.calendar_id) as adapter:
        result = await sync_events(
            events,
            adapter,
            strategy=cfg.calendar.strategy,
            confirm=confirm,
            error_log=error_log,
            sheet=sheet_id,
            tab=tab,
            timezone_name=cfg.calendar.timezone,
        )

    _finish(len(events), result, started)
    return EXIT_PARTIAL_FAILURE if result.has_failures else EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] from tests must not pick up pytest's own argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    return asyncio.run(_run(cfg, args, logger))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

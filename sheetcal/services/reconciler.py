from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence

from sheetcal.logging.error_log import SyncErrorLogBuffer
from sheetcal.models.error_record import SyncErrorRecord
from sheetcal.models.event import NormalizedEvent
from sheetcal.models.sync_result import SyncResult, SyncResultBuilder
from sheetcal.services.calendar_adapter import (
    DEFAULT_TIMEZONE,
    CalendarAdapter,
    CalendarAdapterError,
    ExistingEvent,
    build_event_payload,
)
from sheetcal.services.progress import ProgressTracker

"""Calendar reconciliation.

Two strategies, one per reconciler instance:

private_key  entries are tagged with the event id as private metadata; a
             tagged entry is updated in place, otherwise a new one is created.
day_scan     the day's entries are compared by title and interval: exact
             match is kept, a shifted or overlapping entry is replaced only
             after confirmation.

Events are processed strictly one at a time. A failing event is counted and
logged; the run always continues and returns what it accumulated.
"""

__all__ = [
    "STRATEGIES",
    "ConfirmCallback",
    "DayScanReconciler",
    "PrivateKeyReconciler",
    "Reconciler",
    "build_reconciler",
    "reconcile",
]

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool | Awaitable[bool]]


def _is_exact(existing: ExistingEvent, event: NormalizedEvent) -> bool:
    return existing.summary == event.title and existing.start == event.start_time


def _when(event: NormalizedEvent) -> str:
    return f"{event.start_time:%d/%m/%Y %H:%M}-{event.end_time:%H:%M}"


class Reconciler:
    """Shared event loop, bookkeeping and confirmation handling."""

    strategy = ""

    def __init__(
        self,
        adapter: CalendarAdapter,
        *,
        confirm: ConfirmCallback | None = None,
        error_log: SyncErrorLogBuffer | None = None,
        sheet: str = "",
        tab: str = "",
        timezone_name: str = DEFAULT_TIMEZONE,
        subscribers: Iterable[Callable[[str], None]] = (),
        show_progress: bool | None = None,
    ) -> None:
        self.adapter = adapter
        self.confirm = confirm
        self.error_log = error_log
        self.sheet = sheet
        self.tab = tab
        self.timezone_name = timezone_name
        self.subscribers = list(subscribers)
        self.show_progress = show_progress

    async def reconcile(self, events: Sequence[NormalizedEvent]) -> SyncResult:
        builder = SyncResultBuilder()
        for cb in self.subscribers:
            builder.subscribe(cb)

        logger.info(f"reconciling {len(events)} event(s) strategy={self.strategy}")
        with ProgressTracker(len(events), enabled=self.show_progress) as progress:
            for event in events:
                progress.start_item(event.title)
                try:
                    await self._reconcile_one(event, builder)
                except CalendarAdapterError as e:
                    self._fail(builder, event, "ADAPTER_ERROR", str(e))
                except Exception as e:
                    self._fail(builder, event, "UNEXPECTED_ERROR", f"{type(e).__name__}: {e}")
                progress.finish_item()
                progress.set_postfix(
                    created=builder.created, updated=builder.updated, kept=builder.kept, failed=builder.failed
                )
        return builder.build()

    async def _reconcile_one(self, event: NormalizedEvent, builder: SyncResultBuilder) -> None:
        raise NotImplementedError

    async def _ask(self, message: str) -> bool:
        """Await the confirmation port; no port means decline."""
        if self.confirm is None:
            logger.debug("no confirmation callback: declining destructive change")
            return False
        answer = self.confirm(message)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    def _payload(self, event: NormalizedEvent) -> dict:
        return build_event_payload(event, self.timezone_name)

    async def _create(self, event: NormalizedEvent) -> str:
        return await self.adapter.create_event(self._payload(event))

    async def _delete_all(self, entries: Iterable[ExistingEvent], builder: SyncResultBuilder) -> None:
        for entry in entries:
            try:
                await self.adapter.delete_event(entry.id)
            except Exception as e:
                # the replacement is still created
                line = f"Delete failed: {entry.summary}: {e}"
                logger.warning(line)
                builder.log(line)

    def _created(self, builder: SyncResultBuilder, event: NormalizedEvent) -> None:
        line = f"Created: {event.title} ({_when(event)})"
        logger.info(line)
        builder.mark_created(event.id, line)

    def _updated(self, builder: SyncResultBuilder, event: NormalizedEvent) -> None:
        line = f"Updated: {event.title} ({_when(event)})"
        logger.info(line)
        builder.mark_updated(event.id, line)

    def _kept(self, builder: SyncResultBuilder, event: NormalizedEvent) -> None:
        line = f"Kept: {event.title} ({_when(event)}) already on calendar"
        logger.debug(line)
        builder.mark_kept(event.id, line)

    def _declined(self, builder: SyncResultBuilder, event: NormalizedEvent, what: str) -> None:
        line = f"Declined: {event.title}: {what}"
        logger.warning(line)
        builder.mark_failed(event.id, line)
        self._record(event, "DECLINED", what)

    def _fail(self, builder: SyncResultBuilder, event: NormalizedEvent, error_type: str, reason: str) -> None:
        line = f"Failed: {event.title}: {reason}"
        logger.error(line)
        builder.mark_failed(event.id, line)
        self._record(event, error_type, reason)

    def _record(self, event: NormalizedEvent, error_type: str, message: str) -> None:
        if self.error_log is not None:
            self.error_log.append(
                SyncErrorRecord.create(self.sheet, self.tab, event.id, event.title, error_type, message)
            )


class PrivateKeyReconciler(Reconciler):
    """Idempotent sync keyed on the event id stored as private metadata."""

    strategy = "private_key"

    async def _find_by_key(self, event: NormalizedEvent) -> tuple[ExistingEvent | None, list[ExistingEvent] | None]:
        finder = getattr(self.adapter, "find_event_by_key", None)
        if callable(finder):
            return await finder(event.id), None
        day_entries = await self.adapter.list_events_for_day(event.start_time.date())
        match = next((e for e in day_entries if e.source_key == event.id), None)
        return match, day_entries

    async def _reconcile_one(self, event: NormalizedEvent, builder: SyncResultBuilder) -> None:
        existing, day_entries = await self._find_by_key(event)
        if existing is not None:
            if _is_exact(existing, event) and existing.end == event.end_time:
                self._kept(builder, event)
                return
            await self.adapter.update_event(existing.id, self._payload(event))
            self._updated(builder, event)
            return

        # an untagged identical entry (created by hand or by day_scan) is kept too
        if day_entries is None:
            day_entries = await self.adapter.list_events_for_day(event.start_time.date())
        if any(_is_exact(e, event) for e in day_entries):
            self._kept(builder, event)
            return

        await self._create(event)
        self._created(builder, event)


class DayScanReconciler(Reconciler):
    """Title/interval comparison against the day's entries."""

    strategy = "day_scan"

    async def _reconcile_one(self, event: NormalizedEvent, builder: SyncResultBuilder) -> None:
        entries = await self.adapter.list_events_for_day(event.start_time.date())

        if any(_is_exact(e, event) for e in entries):
            self._kept(builder, event)
            return

        shifted = [e for e in entries if e.summary == event.title]
        if shifted:
            old = ", ".join(f"{e.start:%H:%M}-{e.end:%H:%M}" for e in shifted)
            question = f"'{event.title}' is already scheduled at {old}. Move it to {_when(event)}?"
            if not await self._ask(question):
                self._declined(builder, event, f"time shift from {old} not confirmed")
                return
            await self._delete_all(shifted, builder)
            await self._create(event)
            self._updated(builder, event)
            return

        overlapping = [e for e in entries if e.overlaps(event.start_time, event.end_time)]
        if overlapping:
            names = "; ".join(f"'{e.summary}' {e.start:%H:%M}-{e.end:%H:%M}" for e in overlapping)
            question = f"'{event.title}' ({_when(event)}) overlaps {names}. Replace them?"
            if not await self._ask(question):
                self._declined(builder, event, f"overlap with {len(overlapping)} existing event(s) not confirmed")
                return
            await self._delete_all(overlapping, builder)
            await self._create(event)
            self._updated(builder, event)
            return

        await self._create(event)
        self._created(builder, event)


STRATEGIES: dict[str, type[Reconciler]] = {
    PrivateKeyReconciler.strategy: PrivateKeyReconciler,
    DayScanReconciler.strategy: DayScanReconciler,
}


def build_reconciler(strategy: str, adapter: CalendarAdapter, **kwargs) -> Reconciler:
    try:
        cls = STRATEGIES[strategy]
    except KeyError:
        raise ValueError(f"unknown reconcile strategy: {strategy!r} (expected one of {sorted(STRATEGIES)})") from None
    return cls(adapter, **kwargs)


async def reconcile(
    events: Sequence[NormalizedEvent],
    calendar_adapter: CalendarAdapter,
    *,
    strategy: str = PrivateKeyReconciler.strategy,
    confirm: ConfirmCallback | None = None,
    error_log: SyncErrorLogBuffer | None = None,
    sheet: str = "",
    tab: str = "",
    timezone_name: str = DEFAULT_TIMEZONE,
    subscribers: Iterable[Callable[[str], None]] = (),
    show_progress: bool | None = None,
) -> SyncResult:
    """Reconcile ``events`` against the calendar behind ``calendar_adapter``."""
    reconciler = build_reconciler(
        strategy,
        calendar_adapter,
        confirm=confirm,
        error_log=error_log,
        sheet=sheet,
        tab=tab,
        timezone_name=timezone_name,
        subscribers=subscribers,
        show_progress=show_progress,
    )
    return await reconciler.reconcile(events)

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from sheetcal.models.event import NormalizedEvent
from sheetcal.parsing.datetime_parser import CIVIL_TZ

"""Calendar adapter port and its Google Calendar v3 implementation.

The reconciler drives a calendar exclusively through ``CalendarAdapter``.
``GoogleCalendarAdapter`` speaks the REST API over ``httpx.AsyncClient`` with a
caller-supplied bearer token; token acquisition happens elsewhere.
"""

__all__ = [
    "DEFAULT_TIMEZONE",
    "GOOGLE_CALENDAR_API_BASE_URL",
    "PRIVATE_KEY_PROPERTY",
    "CalendarAdapter",
    "CalendarAdapterError",
    "ExistingEvent",
    "GoogleCalendarAdapter",
    "build_event_payload",
]

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
DEFAULT_TIMEZONE = "Asia/Ho_Chi_Minh"
PRIVATE_KEY_PROPERTY = "sheetRowId"
DEFAULT_TIMEOUT_SECONDS = 30.0


class CalendarAdapterError(Exception):
    """Raised when a calendar operation fails (HTTP status or transport)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        prefix = f"calendar request failed ({status_code})" if status_code else "calendar request failed"
        super().__init__(f"{prefix}: {message}")


@dataclass(frozen=True)
class ExistingEvent:
    id: str
    summary: str
    start: datetime
    end: datetime
    source_key: str | None = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open interval overlap."""
        return start < self.end and end > self.start


@runtime_checkable
class CalendarAdapter(Protocol):
    async def list_events_for_day(self, day: date) -> list[ExistingEvent]: ...

    async def create_event(self, payload: dict[str, Any]) -> str: ...

    async def update_event(self, event_id: str, payload: dict[str, Any]) -> None: ...

    async def delete_event(self, event_id: str) -> None: ...


def build_event_payload(event: NormalizedEvent, timezone_name: str = DEFAULT_TIMEZONE) -> dict[str, Any]:
    """Calendar resource body for a normalized event.

    The description lists the non-empty source columns as ``key: value`` lines;
    the event id is stored as private metadata for idempotent re-sync.
    """
    description = "\n".join(f"{k}: {v}" for k, v in event.raw.items() if v)
    return {
        "summary": event.title,
        "location": event.location,
        "description": description,
        "start": {"dateTime": event.start_iso, "timeZone": timezone_name},
        "end": {"dateTime": event.end_iso, "timeZone": timezone_name},
        "extendedProperties": {
            "private": {PRIVATE_KEY_PROPERTY: event.id, "person": event.person},
        },
        "reminders": {"useDefault": True},
    }


def _safe_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:200]
        if isinstance(error_payload, str) and error_payload.strip():
            return " ".join(error_payload.split())[:200]

    raw_text = response.text.strip()
    if raw_text:
        return " ".join(raw_text.split())[:200]
    return "request failed without an error payload"


def _parse_instant(value: dict[str, Any]) -> datetime | None:
    if "dateTime" in value:
        parsed = datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=CIVIL_TZ)
        return parsed
    if "date" in value:
        # all-day entries block the whole civil day
        return datetime.combine(date.fromisoformat(value["date"]), time(0, 0), tzinfo=CIVIL_TZ)
    return None


def _to_existing(item: dict[str, Any]) -> ExistingEvent | None:
    if item.get("status") == "cancelled":
        return None
    start = _parse_instant(item.get("start") or {})
    end = _parse_instant(item.get("end") or {})
    if start is None or end is None:
        return None
    private = (item.get("extendedProperties") or {}).get("private") or {}
    return ExistingEvent(
        id=str(item.get("id", "")),
        summary=str(item.get("summary", "")),
        start=start,
        end=end,
        source_key=private.get(PRIVATE_KEY_PROPERTY),
    )


class GoogleCalendarAdapter:
    """Google Calendar v3 REST adapter.

    Pass ``http_client`` to share a client (or inject ``httpx.MockTransport``
    in tests); otherwise the adapter owns one and closes it in ``aclose``.
    """

    def __init__(
        self,
        access_token: str,
        *,
        calendar_id: str = "primary",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not access_token:
            raise ValueError("access_token is required")
        self._access_token = access_token
        self.calendar_id = calendar_id
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> GoogleCalendarAdapter:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def _events_path(self) -> str:
        return f"/calendars/{quote(self.calendar_id, safe='@.')}/events"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{GOOGLE_CALENDAR_API_BASE_URL}{path}"
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            return await self._client.request(method, url, params=params, json=json_body, headers=headers)
        except httpx.HTTPError as exc:
            raise CalendarAdapterError(f"{type(exc).__name__}: {exc}") from exc

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._request(method, path, params=params, json_body=json_body)
        if response.status_code < 200 or response.status_code >= 300:
            raise CalendarAdapterError(_safe_error_message(response), status_code=response.status_code)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise CalendarAdapterError("calendar API returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise CalendarAdapterError("calendar API returned an unexpected JSON payload shape")
        return payload

    async def _list(self, params: dict[str, Any]) -> list[ExistingEvent]:
        events: list[ExistingEvent] = []
        page_params = dict(params)
        while True:
            payload = await self._request_json("GET", self._events_path, params=page_params)
            for item in payload.get("items") or []:
                existing = _to_existing(item)
                if existing is not None:
                    events.append(existing)
            token = payload.get("nextPageToken")
            if not token:
                return events
            page_params["pageToken"] = token

    async def list_events_for_day(self, day: date) -> list[ExistingEvent]:
        day_start = datetime.combine(day, time(0, 0), tzinfo=CIVIL_TZ)
        day_end = day_start + timedelta(days=1)
        return await self._list(
            {
                "timeMin": day_start.isoformat(),
                "timeMax": day_end.isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": 250,
            }
        )

    async def find_event_by_key(self, key: str) -> ExistingEvent | None:
        matches = await self._list(
            {"privateExtendedProperty": f"{PRIVATE_KEY_PROPERTY}={key}", "maxResults": 10}
        )
        return matches[0] if matches else None

    async def create_event(self, payload: dict[str, Any]) -> str:
        created = await self._request_json("POST", self._events_path, json_body=payload)
        event_id = created.get("id")
        if not isinstance(event_id, str) or not event_id:
            raise CalendarAdapterError("create response did not include an event id")
        return event_id

    async def update_event(self, event_id: str, payload: dict[str, Any]) -> None:
        await self._request_json("PUT", f"{self._events_path}/{event_id}", json_body=payload)

    async def delete_event(self, event_id: str) -> None:
        """Delete an entry; 404/410 mean it is already gone and count as success."""
        response = await self._request("DELETE", f"{self._events_path}/{event_id}")
        if response.status_code in (404, 410):
            logger.debug(f"event {event_id} already deleted")
            return
        if response.status_code < 200 or response.status_code >= 300:
            raise CalendarAdapterError(_safe_error_message(response), status_code=response.status_code)

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""SyncErrorRecord model for JSON Lines failure logging.

One record per event that could not be reconciled. The key set is fixed; the
error log writer serializes the dataclass as-is.
"""

__all__ = [
    "SyncErrorRecord",
]


@dataclass(frozen=True)
class SyncErrorRecord:
    """Structured failure record.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        sheet: spreadsheet id or file name
        tab: tab / sheet name
        event_id: deterministic NormalizedEvent id
        title: calendar summary of the event
        error_type: classification in UPPER_SNAKE_CASE (ADAPTER_ERROR, DECLINED, ...)
        message: human readable reason
    """
    timestamp: str
    sheet: str
    tab: str
    event_id: str
    title: str
    error_type: str
    message: str

    @staticmethod
    def create(
        sheet: str, tab: str, event_id: str, title: str, error_type: str, message: str
    ) -> SyncErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return SyncErrorRecord(
            timestamp=ts,
            sheet=sheet,
            tab=tab,
            event_id=event_id,
            title=title,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

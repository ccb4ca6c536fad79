"""Domain models for the spreadsheet -> calendar sync pipeline."""

from .error_record import SyncErrorRecord
from .event import EventStatus, NormalizedEvent
from .grid import GridRow, RawGrid
from .header import FlatLayout, HeaderResolution, LayoutProfile, TwoTierLayout
from .schema import ColumnMapping, ColumnRole, InferredSchema
from .sync_result import SyncResult, SyncResultBuilder

__all__ = [
    # Grid / header
    "GridRow",
    "RawGrid",
    "HeaderResolution",
    "FlatLayout",
    "TwoTierLayout",
    "LayoutProfile",
    # Schema
    "ColumnMapping",
    "ColumnRole",
    "InferredSchema",
    # Events / results
    "EventStatus",
    "NormalizedEvent",
    "SyncResult",
    "SyncResultBuilder",
    "SyncErrorRecord",
]

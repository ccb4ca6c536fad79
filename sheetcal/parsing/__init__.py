from .datetime_parser import (
    CIVIL_TZ,
    SLOT_TIME_RANGES,
    CivilSpan,
    looks_like_date,
    parse_civil_date,
    parse_civil_datetime,
    parse_time_range,
    resolve_slot,
)

__all__ = [
    "CIVIL_TZ",
    "SLOT_TIME_RANGES",
    "CivilSpan",
    "looks_like_date",
    "parse_civil_date",
    "parse_civil_datetime",
    "parse_time_range",
    "resolve_slot",
]

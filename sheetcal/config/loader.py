from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from sheetcal.models.header import DEFAULT_EXCLUDED_GROUPS
from sheetcal.models.schema import ColumnMapping

"""Config loader.

Responsibilities:
- Load YAML config (default config/sync.yml)
- Validate against the bundled config_schema.json
- Apply defaults and return frozen dataclasses

Secrets (access tokens) are never read from the YAML file; the CLI takes them
from the environment.
"""

__all__ = [
    "CalendarConfig",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "FallbackConfig",
    "LayoutConfig",
    "SCHEMA_PATH",
    "SourceConfig",
    "SyncConfig",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/sync.yml")
DEFAULT_RANGE = "A1:BZ500"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class SourceConfig:
    type: str
    path: str | None = None
    sheet: str | None = None
    spreadsheet: str | None = None
    tab: str | None = None
    range: str = DEFAULT_RANGE


@dataclass(frozen=True)
class LayoutConfig:
    profile: str = "auto"  # auto | flat | two_tier
    header_row: int | None = None  # 1-based; None = detect
    exclude_groups: tuple[str, ...] = DEFAULT_EXCLUDED_GROUPS


@dataclass(frozen=True)
class FallbackConfig:
    person: str = "Unknown"
    task: str = "Nhiệm vụ không tên"
    location: str = "Chưa xác định"
    unassigned: str = "Unassigned"
    task_columns: tuple[int, ...] = ()


@dataclass(frozen=True)
class CalendarConfig:
    calendar_id: str = "primary"
    strategy: str = "private_key"
    timezone: str = "Asia/Ho_Chi_Minh"
    auto_confirm: bool = False


@dataclass(frozen=True)
class SyncConfig:
    source: SourceConfig
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    mapping: ColumnMapping | None = None
    fallbacks: FallbackConfig = field(default_factory=FallbackConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    person_filter: str | None = None


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or not JSON, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path)
        where = f" at {location}" if location else ""
        raise ConfigError(f"config validation failed{where}: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> SyncConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    src = data["source"]
    source = SourceConfig(
        type=src["type"],
        path=src.get("path"),
        sheet=src.get("sheet"),
        spreadsheet=src.get("spreadsheet"),
        tab=src.get("tab"),
        range=src.get("range", DEFAULT_RANGE),
    )

    lay = data.get("layout") or {}
    layout = LayoutConfig(
        profile=lay.get("profile", "auto"),
        header_row=lay.get("header_row"),
        exclude_groups=tuple(lay.get("exclude_groups", DEFAULT_EXCLUDED_GROUPS)),
    )

    mapping_raw = data.get("mapping")
    mapping = ColumnMapping.from_dict(mapping_raw) if mapping_raw else None

    fb = data.get("fallbacks") or {}
    defaults = FallbackConfig()
    fallbacks = FallbackConfig(
        person=fb.get("person", defaults.person),
        task=fb.get("task", defaults.task),
        location=fb.get("location", defaults.location),
        unassigned=fb.get("unassigned", defaults.unassigned),
        task_columns=tuple(fb.get("task_columns", ())),
    )

    cal = data.get("calendar") or {}
    cal_defaults = CalendarConfig()
    calendar = CalendarConfig(
        calendar_id=cal.get("calendar_id", cal_defaults.calendar_id),
        strategy=cal.get("strategy", cal_defaults.strategy),
        timezone=cal.get("timezone", cal_defaults.timezone),
        auto_confirm=bool(cal.get("auto_confirm", cal_defaults.auto_confirm)),
    )

    return SyncConfig(
        source=source,
        layout=layout,
        mapping=mapping,
        fallbacks=fallbacks,
        calendar=calendar,
        person_filter=data.get("person_filter"),
    )

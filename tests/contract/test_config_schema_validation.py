from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest
import yaml
from jsonschema.exceptions import ValidationError

from sheetcal.config.loader import SCHEMA_PATH

"""Config schema contract test: bundled schema vs shipped and sample configs."""

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_shipped_sample_config_validates():
    config = yaml.safe_load((PROJECT_ROOT / "config" / "sync.yml").read_text(encoding="utf-8"))
    jsonschema.validate(config, _schema())


def test_config_schema_validates_from_sample_yaml(sample_config_yaml: str):
    """The sample config from conftest.py validates against the schema."""
    jsonschema.validate(yaml.safe_load(sample_config_yaml), _schema())


def test_config_schema_minimal_valid_config():
    jsonschema.validate({"source": {"type": "csv", "path": "s.csv"}}, _schema())


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"source": {"type": "excel"}},
        {"source": {"type": "google_sheets", "path": "x.xlsx"}},
        {"source": {"type": "ods", "path": "x.ods"}},
        {"source": {"type": "csv", "path": "s.csv"}, "layout": {"header_row": 0}},
        {"source": {"type": "csv", "path": "s.csv"}, "calendar": {"auto_confirm": "yes"}},
        {"source": {"type": "csv", "path": "s.csv"}, "mapping": {"room": 3}},
        {"source": {"type": "csv", "path": "s.csv"}, "access_token": "secret"},
    ],
)
def test_config_schema_rejects_invalid(config):
    with pytest.raises(ValidationError):
        jsonschema.validate(config, _schema())

from __future__ import annotations

import re
from pathlib import Path

from sheetcal.cli import main as cli_main

"""SUMMARY output contract: exactly one SUMMARY line, emitted last, fixed key order."""

SUMMARY_RE = re.compile(
    r"^SUMMARY events=(\d+) created=(\d+) updated=(\d+) kept=(\d+) failed=(\d+) elapsed_sec=([0-9.]+)$"
)


def test_summary_line_for_empty_source(write_config: Path, temp_workdir: Path, capsys):
    csv = temp_workdir / "data" / "schedule.csv"
    csv.write_text("Ngày,Giờ,Họ tên\n", encoding="utf-8")
    text = write_config.read_text(encoding="utf-8").replace(
        "type: excel\n  path: ./data/schedule.xlsx", "type: csv\n  path: ./data/schedule.csv"
    )
    write_config.write_text(text, encoding="utf-8")

    code = cli_main([])
    lines = capsys.readouterr().out.strip().splitlines()

    assert code == 0
    summary = [line for line in lines if line.startswith("SUMMARY")]
    assert len(summary) == 1
    assert lines[-1] == summary[0]
    m = SUMMARY_RE.match(summary[0])
    assert m is not None
    assert m.groups()[:5] == ("0", "0", "0", "0", "0")


def test_every_line_carries_a_label(write_config: Path, temp_workdir: Path, capsys):
    csv = temp_workdir / "data" / "schedule.csv"
    csv.write_text("Ngày,Giờ,Họ tên\n27/01/2026,1,Nguyen Van A\n", encoding="utf-8")
    text = write_config.read_text(encoding="utf-8").replace(
        "type: excel\n  path: ./data/schedule.xlsx", "type: csv\n  path: ./data/schedule.csv"
    )
    write_config.write_text(text, encoding="utf-8")

    code = cli_main(["--dry-run"])
    lines = capsys.readouterr().out.strip().splitlines()

    assert code == 0
    assert all(re.match(r"^(DEBUG|INFO|WARN|ERROR|SUMMARY) ", line) for line in lines)
    assert SUMMARY_RE.match(lines[-1]).group(1) == "1"

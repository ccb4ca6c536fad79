from __future__ import annotations

import pytest

from sheetcal.config.loader import LayoutConfig
from sheetcal.models.grid import RawGrid
from sheetcal.models.header import FlatLayout, TwoTierLayout
from sheetcal.services.format_detector import (
    HeaderResolutionError,
    detect_format,
    resolve_header_at_row,
    score_layouts,
)
from sheetcal.services.pipeline import build_layout_profile


def _grid(rows):
    return RawGrid.from_rows(rows)


def test_flat_header_in_first_row():
    grid = _grid([["Ngày", "Giờ", "Tên"], ["27/01/2026", "1", "Nguyen Van A"]])
    res = detect_format(grid)
    assert res.layout == "flat"
    assert res.header_row_index == 0
    assert res.group_headers is None
    assert res.detail_headers == ("Ngày", "Giờ", "Tên")
    assert res.data_start_index == 1
    assert [r.row_number for r in res.data_rows] == [2]


def test_flat_header_below_title_row():
    grid = _grid(
        [
            ["Lịch trực tháng 1"],
            ["Ngày", "Giờ", "Giảng viên", "Phòng"],
            ["27/01/2026", "7h - 9h", "A", "P.101"],
        ]
    )
    res = detect_format(grid)
    assert res.layout == "flat"
    assert res.header_row_index == 1
    assert res.data_rows[0].cells == ("27/01/2026", "7h - 9h", "A", "P.101")


def test_two_tier_review_layout():
    grid = _grid(
        [
            ["REVIEW 1", "", "REVIEW 2", ""],
            ["Date", "Reviewer", "Date", "Reviewer"],
            ["27/01/2026", "X", "28/01/2026", "Y"],
        ]
    )
    res = detect_format(grid)
    assert res.layout == "two_tier"
    assert res.header_row_index == 1
    assert res.group_headers == ("REVIEW 1", "REVIEW 1", "REVIEW 2", "REVIEW 2")
    assert res.detail_headers == ("Date", "Reviewer", "Date", "Reviewer")
    assert res.data_start_index == 2
    assert len(res.group_headers) == len(res.detail_headers) == 4


def test_tie_falls_back_to_flat_row_zero():
    grid = _grid([["", "a"], ["c", "d"]])
    scores = score_layouts(grid)
    assert scores.two_tier_group_index == 0
    assert scores.flat_score == scores.two_tier_score
    res = detect_format(grid)
    assert res.layout == "flat"
    assert res.header_row_index == 0


def test_flat_profile_never_builds_group_tier():
    grid = _grid(
        [
            ["REVIEW 1", "", "REVIEW 2", ""],
            ["Date", "Reviewer", "Date", "Reviewer"],
            ["27/01/2026", "X", "28/01/2026", "Y"],
        ]
    )
    res = detect_format(grid, FlatLayout())
    assert res.group_headers is None
    assert resolve_header_at_row(grid, 0, FlatLayout()).group_headers is None


def test_short_header_row_is_padded():
    """Trailing blank header cells dropped by the API still get column names."""
    grid = _grid([["Ngày", "Giờ"], ["27/01/2026", "1", "Nguyen Van A", "extra"]])
    res = resolve_header_at_row(grid, 0)
    assert res.detail_headers == ("Ngày", "Giờ", "Column_2", "Column_3")
    assert len(res.data_rows[0].cells) == 4


def test_manual_override_detects_group_row():
    grid = _grid(
        [
            ["Project", "", "REVIEW 1", "", ""],
            ["Mã nhóm", "Tên đề tài", "Date", "Slot", "Reviewer"],
            ["G01", "AI", "27/01/2026", "2", "X"],
        ]
    )
    res = resolve_header_at_row(grid, 0)
    assert res.layout == "two_tier"
    assert res.header_row_index == 1
    assert res.data_start_index == 2
    assert res.group_headers == ("Project", "Project", "REVIEW 1", "REVIEW 1", "REVIEW 1")


def test_manual_override_on_detail_row_is_flat():
    grid = _grid([["Ngày", "Giờ", "Tên"], ["27/01/2026", "1", "A"]])
    res = resolve_header_at_row(grid, 0)
    assert res.group_headers is None
    assert res.data_start_index == 1


def test_excluded_groups_are_dropped_from_every_row():
    grid = _grid(
        [
            ["REVIEW 1", "", "DEFENSE 1", ""],
            ["Date", "Reviewer", "Date", "Reviewer"],
            ["27/01/2026", "X", "30/01/2026", "Z"],
            ["28/01/2026", "Y", "31/01/2026", "W"],
        ]
    )
    res = resolve_header_at_row(grid, 0, TwoTierLayout(excluded_groups=("defense",)))
    assert res.group_headers == ("REVIEW 1", "REVIEW 1")
    assert res.kept_columns == (0, 1)
    assert [r.cells for r in res.data_rows] == [("27/01/2026", "X"), ("28/01/2026", "Y")]


def test_leading_empty_data_rows_are_trimmed():
    grid = _grid(
        [
            ["Ngày", "Giờ", "Tên"],
            ["", "", ""],
            ["", "", ""],
            ["27/01/2026", "1", "A"],
        ]
    )
    res = resolve_header_at_row(grid, 0)
    assert [r.row_number for r in res.data_rows] == [4]


@pytest.mark.parametrize("index", [-1, 3])
def test_out_of_range_header_row_raises(index):
    grid = _grid([["a"], ["b"], ["c"]])
    with pytest.raises(HeaderResolutionError):
        resolve_header_at_row(grid, index)


def test_empty_grid_detects_without_error():
    res = detect_format(RawGrid.from_rows([]))
    assert res.detail_headers == ()
    assert res.data_rows == ()


def test_title_with_group_keyword_is_not_a_group_tier():
    grid = _grid(
        [
            ["Lịch coi thi đợt 1"],
            ["Ngày", "Giờ", "Họ tên", "Nhiệm vụ", "Phòng"],
            ["27/01/2026", "1", "Nguyen Van A", "Coi thi", "P.101"],
        ]
    )
    scores = score_layouts(grid)
    assert scores.two_tier_score < scores.flat_score
    res = detect_format(grid)
    assert res.layout == "flat"
    assert res.header_row_index == 1
    assert res.group_headers is None


def test_manual_override_on_title_row_is_flat():
    grid = _grid([["Đợt 1"], ["Ngày", "Giờ", "Tên"], ["", "", ""]])
    res = resolve_header_at_row(grid, 0)
    assert res.group_headers is None
    assert res.header_row_index == 0


def test_forced_two_tier_builds_group_tier_on_low_score():
    grid = _grid(
        [
            ["Sáng", "", "Chiều", ""],
            ["Ngày", "Giờ", "Ngày", "Giờ"],
            ["27/01/2026", "1", "27/01/2026", "3"],
        ]
    )
    assert detect_format(grid).layout == "flat"
    res = detect_format(grid, TwoTierLayout(forced=True))
    assert res.layout == "two_tier"
    assert res.header_row_index == 1
    assert res.group_headers == ("Sáng", "Sáng", "Chiều", "Chiều")


def test_forced_two_tier_without_group_row_detects_automatically():
    grid = _grid([["Ngày tháng"], ["27/01/2026"]])
    res = detect_format(grid, TwoTierLayout(forced=True))
    assert res.group_headers is None


@pytest.mark.parametrize(
    "profile, expected",
    [
        ("auto", TwoTierLayout(excluded_groups=("defense",))),
        ("two_tier", TwoTierLayout(excluded_groups=("defense",), forced=True)),
        ("flat", FlatLayout()),
    ],
)
def test_layout_config_profiles(profile, expected):
    layout = LayoutConfig(profile=profile, exclude_groups=("defense",))
    assert build_layout_profile(layout) == expected

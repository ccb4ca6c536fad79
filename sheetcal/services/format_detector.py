from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sheetcal.models.grid import GridRow, RawGrid
from sheetcal.models.header import FlatLayout, HeaderResolution, LayoutProfile, TwoTierLayout
from sheetcal.models.schema import ColumnRole
from sheetcal.parsing.datetime_parser import looks_like_date
from sheetcal.services.schema_inference import ROLE_PATTERNS, keyword_hits

"""Header row / layout detection.

Two archetypes are scored from independent signals:

flat      one header row (possibly under a title row), data right below
two_tier  a sparse group row (REVIEW 1, REVIEW 2, ...) over a detail header row

``detect_format`` picks the best-scoring archetype; ``resolve_header_at_row``
is the manual override used when the user points at the header row directly.
"""

__all__ = [
    "GROUP_KEYWORDS",
    "HEADER_SCAN_ROWS",
    "HeaderResolutionError",
    "LayoutScores",
    "detect_format",
    "resolve_header_at_row",
    "score_layouts",
]

logger = logging.getLogger(__name__)

HEADER_SCAN_ROWS = 5
GROUP_SCAN_ROWS = 3
GROUP_KEYWORDS: tuple[str, ...] = ("review", "defense", "bảo vệ", "phản biện", "đợt")


class HeaderResolutionError(Exception):
    """Raised when a requested header row does not exist in the grid."""


@dataclass(frozen=True)
class LayoutScores:
    flat_score: int
    flat_header_index: int
    two_tier_score: int
    two_tier_group_index: int | None


def _row_keyword_hits(row: Sequence[str]) -> int:
    return sum(1 for cell in row if keyword_hits(cell) > 0)


def _filled_ratio(row: Sequence[str]) -> float:
    if not row:
        return 0.0
    return sum(1 for c in row if c) / len(row)


def _looks_like_data(row: Sequence[str]) -> bool:
    """Heuristic: a row holding values rather than labels."""
    cells = [c for c in row if c]
    if not cells:
        return False
    for c in cells:
        if looks_like_date(c) or ROLE_PATTERNS[ColumnRole.EMAIL].search(c):
            return True
        if ROLE_PATTERNS[ColumnRole.TIME].search(c):
            return True
    return _row_keyword_hits(row) == 0 and any(c.isdigit() for c in cells)


def _has_group_keyword(row: Sequence[str]) -> bool:
    return any(k in c.lower() for c in row if c for k in GROUP_KEYWORDS)


def _fill_forward(row: Sequence[str]) -> tuple[str, ...]:
    filled: list[str] = []
    last = ""
    for cell in row:
        if cell:
            last = cell
        filled.append(last)
    return tuple(filled)


def _is_group_shaped(row: Sequence[str]) -> bool:
    """At least two group labels, or one label that leaves some columns ungrouped.

    A lone title cell fills forward across the whole row and is not a group tier.
    """
    filled = _fill_forward(row)
    labels = {c for c in filled if c}
    return len(labels) >= 2 or (len(labels) == 1 and "" in filled)


def score_layouts(grid: RawGrid, profile: LayoutProfile | None = None) -> LayoutScores:
    """Score both archetypes; exposed for --inspect-data diagnostics."""
    n = len(grid)

    # flat: best keyword row among the first rows, earliest on ties
    flat_idx = 0
    best_hits = -1
    for i in range(min(HEADER_SCAN_ROWS, n)):
        hits = _row_keyword_hits(grid.row(i))
        if hits > best_hits:
            best_hits = hits
            flat_idx = i
    flat_score = 0
    if n:
        if best_hits >= 2:
            flat_score += 2
        if _filled_ratio(grid.row(flat_idx)) >= 0.5:
            flat_score += 1
        if flat_idx + 1 < n and _looks_like_data(grid.row(flat_idx + 1)):
            flat_score += 1

    two_score = 0
    two_idx: int | None = None
    if not isinstance(profile, FlatLayout):
        for g in range(min(GROUP_SCAN_ROWS, n - 1)):
            group_row, detail_row = grid.row(g), grid.row(g + 1)
            if not _is_group_shaped(group_row):
                continue
            score = 0
            if _has_group_keyword(group_row):
                score += 2
            if _filled_ratio(group_row) < _filled_ratio(detail_row):
                score += 1
            if _row_keyword_hits(detail_row) > _row_keyword_hits(group_row):
                score += 1
            if g + 2 < n and _looks_like_data(grid.row(g + 2)):
                score += 1
            if score > two_score:
                two_score = score
                two_idx = g

    return LayoutScores(
        flat_score=flat_score,
        flat_header_index=flat_idx,
        two_tier_score=two_score,
        two_tier_group_index=two_idx,
    )


def _first_group_row(grid: RawGrid) -> int | None:
    for g in range(min(GROUP_SCAN_ROWS, len(grid) - 1)):
        if _is_group_shaped(grid.row(g)):
            return g
    return None


def _excluded_terms(profile: LayoutProfile | None) -> tuple[str, ...]:
    if isinstance(profile, TwoTierLayout):
        return tuple(t.lower() for t in profile.excluded_groups)
    if profile is None:
        return tuple(t.lower() for t in TwoTierLayout().excluded_groups)
    return ()


def _build(
    grid: RawGrid, header_index: int, group_index: int | None, profile: LayoutProfile | None
) -> HeaderResolution:
    detail_raw = grid.row(header_index)
    group_raw = _fill_forward(grid.row(group_index)) if group_index is not None else None

    kept: list[int] = list(range(grid.width))
    if group_raw is not None:
        terms = _excluded_terms(profile)
        if terms:
            kept = [
                i for i in kept
                if not any(t in group_raw[i].lower() or t in detail_raw[i].lower() for t in terms)
            ]
            dropped = grid.width - len(kept)
            if dropped:
                logger.debug(f"excluded {dropped} column(s) matching {list(terms)}")

    detail = tuple(detail_raw[i] or f"Column_{pos}" for pos, i in enumerate(kept))
    group = tuple(group_raw[i] for i in kept) if group_raw is not None else None

    data_start = header_index + 1
    rows: list[GridRow] = []
    for idx in range(data_start, len(grid)):
        cells = grid.row(idx)
        rows.append(GridRow(row_number=idx + 1, cells=tuple(cells[i] for i in kept)))
    while rows and rows[0].is_empty():
        rows.pop(0)

    return HeaderResolution(
        header_row_index=header_index,
        group_headers=group,
        detail_headers=detail,
        data_start_index=data_start,
        data_rows=tuple(rows),
        kept_columns=tuple(kept),
        layout="two_tier" if group is not None else "flat",
    )


def detect_format(grid: RawGrid, profile: LayoutProfile | None = None) -> HeaderResolution:
    """Pick header rows automatically. Ties fall back to flat with header row 0."""
    if len(grid) == 0:
        logger.warning("empty grid: nothing to detect")
        return HeaderResolution(
            header_row_index=0,
            group_headers=None,
            detail_headers=(),
            data_start_index=1,
            data_rows=(),
            kept_columns=(),
            layout="flat",
        )

    scores = score_layouts(grid, profile)
    logger.debug(
        f"layout scores flat={scores.flat_score}@{scores.flat_header_index} "
        f"two_tier={scores.two_tier_score}@{scores.two_tier_group_index}"
    )
    if isinstance(profile, TwoTierLayout) and profile.forced:
        g = scores.two_tier_group_index
        if g is None:
            g = _first_group_row(grid)
        if g is not None:
            logger.info(f"two-tier layout forced (group row {g + 1}, detail row {g + 2})")
            return _build(grid, g + 1, g, profile)
        logger.warning("two-tier layout forced but no group row found: detecting automatically")
    if scores.two_tier_group_index is not None and scores.two_tier_score > scores.flat_score:
        g = scores.two_tier_group_index
        logger.info(f"detected two-tier header (group row {g + 1}, detail row {g + 2})")
        return _build(grid, g + 1, g, profile)
    if scores.flat_score > scores.two_tier_score:
        logger.info(f"detected flat header at row {scores.flat_header_index + 1}")
        return _build(grid, scores.flat_header_index, None, profile)
    logger.info("layout scores tied: using row 1 as a flat header")
    return _build(grid, 0, None, profile)


def resolve_header_at_row(
    grid: RawGrid, chosen_row_index: int, profile: LayoutProfile | None = None
) -> HeaderResolution:
    """Resolve headers from a user-chosen row (0-based).

    The chosen row is read as a group row when the next row is more
    header-like (more keyword hits or denser) and is not data itself.
    """
    if not 0 <= chosen_row_index < len(grid):
        raise HeaderResolutionError(
            f"header row {chosen_row_index} out of range (grid has {len(grid)} rows)"
        )

    if not isinstance(profile, FlatLayout) and chosen_row_index + 1 < len(grid):
        current = grid.row(chosen_row_index)
        following = grid.row(chosen_row_index + 1)
        if isinstance(profile, TwoTierLayout) and profile.forced and _is_group_shaped(current):
            return _build(grid, chosen_row_index + 1, chosen_row_index, profile)
        more_header_like = (
            _row_keyword_hits(following) > _row_keyword_hits(current)
            or _filled_ratio(following) > _filled_ratio(current)
        )
        if more_header_like and _is_group_shaped(current) and not _looks_like_data(following):
            return _build(grid, chosen_row_index + 1, chosen_row_index, profile)

    return _build(grid, chosen_row_index, None, profile)

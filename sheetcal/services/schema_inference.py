from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from sheetcal.models.schema import ColumnMapping, ColumnRole, InferredSchema, REQUIRED_ROLES

"""Column role inference.

Every (column, role) pair is scored from two independent signals:

- keyword hit in the header text (case-insensitive substring, or whole word
  for short keywords such as "ca"): +0.6
- every non-empty sample cell matches the role's value pattern: +0.4

Per role the best column wins; ties keep the leftmost column. Confidence is the
mean score of the roles that were found at all.
"""

__all__ = [
    "KEYWORD_SCORE",
    "PATTERN_SCORE",
    "RELIABLE_CONFIDENCE",
    "ROLE_KEYWORDS",
    "ROLE_PATTERNS",
    "ROLE_WORD_PATTERNS",
    "infer_schema",
    "keyword_hits",
]

logger = logging.getLogger(__name__)

KEYWORD_SCORE = 0.6
PATTERN_SCORE = 0.4
RELIABLE_CONFIDENCE = 0.75

ROLE_KEYWORDS: dict[ColumnRole, tuple[str, ...]] = {
    ColumnRole.DATE: ("ngày", "date", "thời gian"),
    ColumnRole.TIME: ("giờ", "time", "slot", "ca học", "ca thi", "tiết"),
    ColumnRole.PERSON: (
        # bare "họ" would match "phòng học"
        "họ tên", "họ và tên", "tên", "giảng viên", "thành viên", "người",
        "teacher", "member", "name", "reviewer",
    ),
    ColumnRole.TASK: ("nhiệm vụ", "vai trò", "việc", "task", "role", "duty", "môn"),
    ColumnRole.LOCATION: ("phòng", "địa điểm", "room", "location", "online"),
    ColumnRole.EMAIL: ("email", "thư điện tử"),
}

# "ca" alone is a substring of "location"; match it only as a word
ROLE_WORD_PATTERNS: dict[ColumnRole, re.Pattern[str]] = {
    ColumnRole.TIME: re.compile(r"\bca\b"),
}

ROLE_PATTERNS: dict[ColumnRole, re.Pattern[str]] = {
    ColumnRole.DATE: re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}"),
    ColumnRole.TIME: re.compile(r"\d{1,2}[h:](\d{2})?\s*[-–—]\s*\d{1,2}[h:](\d{2})?", re.IGNORECASE),
    ColumnRole.EMAIL: re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
}


def _has_keyword(lowered: str, role: ColumnRole) -> bool:
    if any(k in lowered for k in ROLE_KEYWORDS[role]):
        return True
    word = ROLE_WORD_PATTERNS.get(role)
    return word is not None and word.search(lowered) is not None


def keyword_hits(text: str) -> int:
    """Number of roles whose keywords appear in ``text``."""
    lowered = text.strip().lower()
    if not lowered:
        return 0
    return sum(1 for role in ROLE_KEYWORDS if _has_keyword(lowered, role))


def _keyword_score(header: str, role: ColumnRole) -> float:
    lowered = header.strip().lower()
    if lowered and _has_keyword(lowered, role):
        return KEYWORD_SCORE
    return 0.0


def _pattern_score(values: Sequence[str], role: ColumnRole) -> float:
    pattern = ROLE_PATTERNS.get(role)
    if pattern is None:
        return 0.0
    non_empty = [v.strip() for v in values if v and v.strip()]
    # no evidence is not a match
    if not non_empty:
        return 0.0
    if all(pattern.search(v) for v in non_empty):
        return PATTERN_SCORE
    return 0.0


def _column(sample_rows: Sequence[Sequence[str]], index: int) -> list[str]:
    return [row[index] if index < len(row) else "" for row in sample_rows]


def infer_schema(headers: Sequence[str], sample_rows: Sequence[Sequence[str]]) -> InferredSchema:
    """Infer a column mapping from header labels and a few sample rows."""
    found: dict[str, int] = {}
    scores: dict[str, float] = {}

    for role in ColumnRole:
        best_index: int | None = None
        best_score = 0.0
        for idx, header in enumerate(headers):
            score = _keyword_score(header, role) + _pattern_score(_column(sample_rows, idx), role)
            # strict ">" keeps the leftmost column on ties
            if score > best_score:
                best_score = score
                best_index = idx
        if best_index is not None:
            found[role.value] = best_index
            scores[role.value] = round(best_score, 4)

    mapping = ColumnMapping.from_dict(found)
    confidence = round(sum(scores.values()) / len(scores), 4) if scores else 0.0
    is_reliable = confidence > RELIABLE_CONFIDENCE and all(mapping.has(r) for r in REQUIRED_ROLES)
    schema = InferredSchema(mapping=mapping, confidence=confidence, is_reliable=is_reliable, scores=scores)

    logger.info(f"schema inferred mapping={mapping.as_dict()} confidence={confidence}")
    if not is_reliable:
        missing = schema.missing_required
        detail = f" missing={missing}" if missing else ""
        logger.warning(f"schema inference is unreliable (confidence={confidence}){detail}; review the mapping")
    return schema

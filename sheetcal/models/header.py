from __future__ import annotations

from dataclasses import dataclass, field

from .grid import GridRow

"""Header resolution and layout profile models.

LayoutProfile is a tagged variant: FlatLayout never carries a group tier,
TwoTierLayout carries the group labels whose columns must be dropped; with
``forced`` set, detection always builds the group tier when a group row exists.
"""

__all__ = [
    "DEFAULT_EXCLUDED_GROUPS",
    "FlatLayout",
    "HeaderResolution",
    "LayoutProfile",
    "TwoTierLayout",
]

DEFAULT_EXCLUDED_GROUPS: tuple[str, ...] = ("defense", "bảo vệ")


@dataclass(frozen=True)
class FlatLayout:
    kind: str = field(default="flat", init=False)


@dataclass(frozen=True)
class TwoTierLayout:
    excluded_groups: tuple[str, ...] = DEFAULT_EXCLUDED_GROUPS
    forced: bool = False
    kind: str = field(default="two_tier", init=False)


LayoutProfile = FlatLayout | TwoTierLayout


@dataclass(frozen=True)
class HeaderResolution:
    """Resolved header tiers plus the data rows they describe.

    Attributes:
        header_row_index: grid index of the detail header row
        group_headers: forward-filled group labels (two-tier only)
        detail_headers: per-column labels, never blank
        data_start_index: grid index of the first data row
        data_rows: data rows restricted to ``kept_columns``
        kept_columns: original grid column indexes surviving exclusion
        layout: "flat" or "two_tier"
    """
    header_row_index: int
    group_headers: tuple[str, ...] | None
    detail_headers: tuple[str, ...]
    data_start_index: int
    data_rows: tuple[GridRow, ...]
    kept_columns: tuple[int, ...]
    layout: str

    @property
    def is_two_tier(self) -> bool:
        return self.group_headers is not None

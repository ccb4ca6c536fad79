from __future__ import annotations

from sheetcal.models.sync_result import SyncResult

"""SUMMARY line rendering.

Format:
SUMMARY events={total} created={c} updated={u} kept={k} failed={f} elapsed_sec={s}
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for tiny values
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(total_events: int, result: SyncResult, elapsed_seconds: float) -> str:
    """Render the SUMMARY line for one sync (or dry) run.

    >>> render_summary_line(3, SyncResult(created=1, updated=1, kept=1), 2.0)
    'SUMMARY events=3 created=1 updated=1 kept=1 failed=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY events={total_events} "
        f"created={result.created} "
        f"updated={result.updated} "
        f"kept={result.kept} "
        f"failed={result.failed} "
        f"elapsed_sec={_format_seconds(elapsed_seconds)}"
    )

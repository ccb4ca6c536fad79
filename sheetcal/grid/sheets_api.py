from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import quote

import httpx

from sheetcal.models.grid import RawGrid

"""Google Sheets values API reader.

Only ``spreadsheets.values.get`` is used; the token is an opaque bearer string
acquired elsewhere. The API drops trailing empty cells, so rows come back
ragged and are padded by RawGrid.
"""

__all__ = [
    "DEFAULT_RANGE",
    "SHEETS_API_BASE_URL",
    "SheetsRequestError",
    "extract_sheet_id",
    "fetch_grid",
]

logger = logging.getLogger(__name__)

SHEETS_API_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"
DEFAULT_RANGE = "A1:BZ500"

_SHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")


class SheetsRequestError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def extract_sheet_id(locator: str) -> str:
    """Spreadsheet id from a full URL; bare ids pass through."""
    m = _SHEET_ID_RE.search(locator)
    if m:
        return m.group(1)
    candidate = locator.strip()
    if not candidate or "/" in candidate:
        raise SheetsRequestError(f"not a spreadsheet URL or id: {locator!r}")
    return candidate


def _range_path(range_spec: str, tab_name: str | None) -> str:
    spec = range_spec or DEFAULT_RANGE
    if tab_name and "!" not in spec:
        spec = f"'{tab_name}'!{spec}"
    return quote(spec, safe="")


async def fetch_grid(
    sheet_locator: str,
    range_spec: str = DEFAULT_RANGE,
    auth_token: str = "",
    *,
    tab_name: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> RawGrid:
    """Fetch one range of a spreadsheet as a RawGrid."""
    sheet_id = extract_sheet_id(sheet_locator)
    url = f"{SHEETS_API_BASE_URL}/{sheet_id}/values/{_range_path(range_spec, tab_name)}"
    headers = {"Authorization": f"Bearer {auth_token}"} if auth_token else {}

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=30.0)
    try:
        response = await client.get(url, headers=headers)
    except httpx.HTTPError as e:
        raise SheetsRequestError(f"sheets request failed: {type(e).__name__}: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if response.status_code < 200 or response.status_code >= 300:
        raise SheetsRequestError(
            f"sheets request failed ({response.status_code}): {response.text.strip()[:200]}",
            status_code=response.status_code,
        )
    try:
        payload: dict[str, Any] = response.json()
    except ValueError as e:
        raise SheetsRequestError("sheets API returned invalid JSON") from e

    values = payload.get("values") or []
    grid = RawGrid.from_rows(values)
    logger.info(f"fetched {len(grid)} row(s) from sheet {sheet_id} range {payload.get('range', range_spec)}")
    return grid

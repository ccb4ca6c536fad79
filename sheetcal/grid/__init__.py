from .reader import GridReadError, read_csv_grid, read_excel_grid, read_grid
from .sheets_api import SheetsRequestError, extract_sheet_id, fetch_grid

__all__ = [
    "GridReadError",
    "SheetsRequestError",
    "extract_sheet_id",
    "fetch_grid",
    "read_csv_grid",
    "read_excel_grid",
    "read_grid",
]

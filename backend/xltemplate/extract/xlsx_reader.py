from __future__ import annotations

import io
import logging
import zipfile
from decimal import Decimal
from typing import Any, Dict, List, Optional

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..normalize.dates import date_to_text, is_date_value
from ..normalize.numbers import format_number, is_numeric
from .errors import DataReadError
from .types import DataTable

logger = logging.getLogger(__name__)


def cell_to_text(value: Any) -> str:
    """
    openpyxl cell value -> the text a data row carries:
      None -> "", 3.0 -> "3", True -> "TRUE", datetime -> ISO date.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)) and is_numeric(value):
        return format_number(float(value))
    if is_date_value(value):
        return date_to_text(value)
    return str(value)


def _is_blank_row(row: List[str]) -> bool:
    return all(v.strip() == "" for v in row)


def read_xlsx(data: bytes, sheet: Optional[str] = None) -> Dict[str, DataTable]:
    """
    XLSX bytes -> {sheet name: DataTable}, in workbook order.

    Cached formula results are read (data_only). The first row gives the
    headers; empty header cells become "Column N". Trailing empty rows
    are dropped.
    """
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise DataReadError(f"Cannot open XLSX data file: {e}") from e

    try:
        names = wb.sheetnames
        if sheet is not None:
            if sheet not in names:
                raise DataReadError(f"Sheet not found in data file: {sheet!r}")
            names = [sheet]

        out: Dict[str, DataTable] = {}
        for name in names:
            ws = wb[name]
            grid: List[List[str]] = [
                [cell_to_text(v) for v in row] for row in ws.iter_rows(values_only=True)
            ]
            while grid and _is_blank_row(grid[-1]):
                grid.pop()

            width = max((len(r) for r in grid), default=0)
            if not grid or width == 0:
                out[name] = DataTable(name=name, headers=["Column 1"], rows=[])
                continue

            first = grid[0] + [""] * (width - len(grid[0]))
            headers = [h if h.strip() else f"Column {i + 1}" for i, h in enumerate(first)]
            rows = [r + [""] * (width - len(r)) for r in grid[1:]]
            out[name] = DataTable(name=name, headers=headers, rows=rows)
            logger.debug("xlsx: sheet=%r columns=%d rows=%d", name, width, len(rows))
    finally:
        wb.close()

    return out

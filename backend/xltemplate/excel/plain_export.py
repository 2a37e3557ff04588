"""
Built-in layout for data that comes without a template.

  row 1        title, merged across the table
  row 2        "Ngày DD tháng MM năm YYYY" (optional)
  spacer row
  header row   bold, theme header colours
  data rows    banded fills, numbers right-aligned with "#,##0.##"

An optional STT (sequence number) column is put in front of the data
columns. Panes are frozen below the header row.
"""

from __future__ import annotations

import io
import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.utils.cell import get_column_letter

from ..extract.types import DataTable
from ..normalize.numbers import is_numeric
from .style_apply import apply_column_widths, apply_row_heights, apply_thin_grid, set_cell
from .styles import (
    DATA_HEIGHT,
    DATE_COLOR,
    DATE_HEIGHT,
    DEFAULT_THEME,
    FIXED_WIDTH,
    HEADER_HEIGHT,
    MAX_WIDTH,
    MIN_WIDTH,
    NUMBER_FMT,
    SPACER_HEIGHT,
    TITLE_HEIGHT,
    WIDTH_PADDING,
    get_theme,
)
from .workbook import sanitize_sheet_name

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "BÁO CÁO DỮ LIỆU"
DEFAULT_SHEET_NAME = "Sheet1"
STT_CAPTION = "STT"

# "007", "-01": codes, not numbers
_LEADING_ZERO_RE = re.compile(r"^[+-]?0\d")


def format_report_date(day: date) -> str:
    return f"Ngày {day.day:02d} tháng {day.month:02d} năm {day.year}"


def plain_number(value: Any) -> Optional[Union[int, float]]:
    """
    Numeric value of a data cell, None for text.

    Thousands separators are dropped first ("1,234.5" -> 1234.5).
    """
    if value is None or isinstance(value, bool):
        return None
    s = str(value).strip().replace(",", "")
    if not s or _LEADING_ZERO_RE.match(s) or not is_numeric(s):
        return None
    f = float(s)
    if f.is_integer() and abs(f) < 1e15:
        return int(f)
    return f


def column_widths(
    headers: Sequence[str], rows: Sequence[Sequence[Any]], *, autofit: bool = True
) -> List[float]:
    """Longest text of a column plus padding, clamped to [10, 50]; 15 each without autofit."""
    widths: List[float] = []
    for i, caption in enumerate(headers):
        if not autofit:
            widths.append(FIXED_WIDTH)
            continue
        longest = len(str(caption))
        for row in rows:
            if i < len(row) and row[i] is not None:
                longest = max(longest, len(str(row[i])))
        widths.append(float(min(max(longest + WIDTH_PADDING, MIN_WIDTH), MAX_WIDTH)))
    return widths


def export_plain_xlsx(
    table: DataTable,
    *,
    title: Optional[str] = None,
    theme: str = DEFAULT_THEME,
    include_stt: bool = True,
    include_date: bool = True,
    autofit: bool = True,
    sheet_name: Optional[str] = None,
    today: Optional[date] = None,
) -> bytes:
    """DataTable -> XLSX bytes in the built-in layout."""
    style = get_theme(theme)
    data_width = len(table.headers)

    headers: List[str] = ([STT_CAPTION] if include_stt else []) + list(table.headers)
    rows: List[List[Any]] = []
    for idx, values in enumerate(table.rows):
        padded = list(values[:data_width]) + [""] * (data_width - len(values))
        rows.append(([idx + 1] if include_stt else []) + padded)

    total_cols = max(1, len(headers))
    last_col = get_column_letter(total_cols)

    wb = Workbook()
    ws = wb.active
    ws.title = sanitize_sheet_name(sheet_name or DEFAULT_SHEET_NAME) or DEFAULT_SHEET_NAME

    heights: Dict[int, float] = {}

    set_cell(ws, "A1", title or DEFAULT_TITLE, bold=True, size=16, color=style.title_color, h="center")
    if total_cols > 1:
        ws.merge_cells(f"A1:{last_col}1")
    heights[1] = TITLE_HEIGHT
    r = 2

    if include_date:
        set_cell(
            ws,
            f"A{r}",
            format_report_date(today or date.today()),
            italic=True,
            color=DATE_COLOR,
            h="center",
        )
        if total_cols > 1:
            ws.merge_cells(f"A{r}:{last_col}{r}")
        heights[r] = DATE_HEIGHT
        r += 1

    heights[r] = SPACER_HEIGHT
    r += 1

    header_row = r
    for c, caption in enumerate(headers, start=1):
        set_cell(
            ws,
            f"{get_column_letter(c)}{header_row}",
            caption,
            bold=True,
            size=11,
            color=style.header_font,
            h="center",
            fill=style.header_pattern,
            wrap=True,
        )
    heights[header_row] = HEADER_HEIGHT

    for idx, values in enumerate(rows):
        rr = header_row + 1 + idx
        fill = style.even_pattern if idx % 2 == 0 else style.odd_pattern
        for c, value in enumerate(values, start=1):
            addr = f"{get_column_letter(c)}{rr}"
            if include_stt and c == 1:
                set_cell(ws, addr, value, h="center", fill=fill)
                continue
            number = plain_number(value)
            if number is not None:
                set_cell(ws, addr, number, h="right", fill=fill, num_fmt=NUMBER_FMT)
            else:
                text = "" if value is None else str(value)
                set_cell(ws, addr, text or None, h="left", fill=fill, wrap=True)
        heights[rr] = DATA_HEIGHT

    last_row = header_row + len(rows)
    if headers:
        apply_thin_grid(ws, f"A{header_row}", f"{last_col}{last_row}", style.border_side)

    apply_row_heights(ws, heights)
    apply_column_widths(
        ws,
        {
            get_column_letter(i): w
            for i, w in enumerate(column_widths(headers, rows, autofit=autofit), start=1)
        },
    )

    ws.freeze_panes = f"A{header_row + 1}"
    ws.page_setup.orientation = "portrait"
    ws.page_setup.paperSize = ws.PAPERSIZE_A4

    buf = io.BytesIO()
    wb.save(buf)
    logger.info(
        "plain export: %d rows x %d columns, theme=%s, sheet=%r",
        len(rows),
        len(headers),
        style.name,
        ws.title,
    )
    return buf.getvalue()

from __future__ import annotations

from typing import Any, Optional

from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from .styles import FONT_NAME, TEXT_COLOR

# Excel stores an explicit (empty) diagonal side on bordered cells
EMPTY_DIAG = Side(style=None, color=None)


# ---------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------

def apply_column_widths(ws: Worksheet, widths: dict[str, float]) -> None:
    for col, w in widths.items():
        ws.column_dimensions[col].width = w


def apply_row_heights(ws: Worksheet, heights: dict[int, float]) -> None:
    for r, h in heights.items():
        ws.row_dimensions[r].height = h


# ---------------------------------------------------------------------
# Cell setter (single point of styling)
# ---------------------------------------------------------------------

def set_cell(
    ws: Worksheet,
    addr: str,
    value: Any,
    *,
    bold: bool = False,
    size: int = 10,
    color: str = TEXT_COLOR,
    h: str = "left",
    v: str = "center",
    fill: Optional[PatternFill] = None,
    num_fmt: Optional[str] = None,
    wrap: Optional[bool] = None,
    italic: bool = False,
) -> None:
    cell = ws[addr]
    cell.value = value
    cell.alignment = Alignment(
        horizontal=h,
        vertical=v,
        wrap_text=wrap,
    )
    cell.font = Font(
        name=FONT_NAME,
        size=size,
        bold=bold,
        italic=italic,
        color=color,
    )
    if fill is not None:
        cell.fill = fill
    if num_fmt is not None:
        cell.number_format = num_fmt


# ---------------------------------------------------------------------
# Borders
# ---------------------------------------------------------------------

def apply_thin_grid(ws: Worksheet, top_left: str, bottom_right: str, side: Side) -> None:
    tl = ws[top_left]
    br = ws[bottom_right]
    min_row, min_col = tl.row, tl.column
    max_row, max_col = br.row, br.column

    border = Border(left=side, right=side, top=side, bottom=side, diagonal=EMPTY_DIAG)

    for r in range(min_row, max_row + 1):
        for c in range(min_col, max_col + 1):
            ws.cell(r, c).border = border

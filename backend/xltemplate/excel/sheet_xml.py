from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from lxml import etree

from .cells import (
    BOOLEAN,
    ERROR,
    FORMULA_STRING,
    INLINE_STRING,
    NUMBER,
    SHARED_STRING,
    Cell,
    CellRange,
    Row,
    split_ref,
)
from .errors import MalformedTemplate
from .xml import parse_xml, qn

logger = logging.getLogger(__name__)

_KNOWN_TYPES = {SHARED_STRING, INLINE_STRING, NUMBER, BOOLEAN, FORMULA_STRING, ERROR}


@dataclass(frozen=True)
class ColumnSpec:
    """One <col min max width> entry."""

    first: int
    last: int
    width: Optional[float]
    style_id: Optional[int] = None
    hidden: bool = False


@dataclass(frozen=True)
class SheetGrid:
    """Everything the zone detector and rewriter read from a worksheet part."""

    rows: Tuple[Row, ...]
    merges: Tuple[CellRange, ...]
    columns: Tuple[ColumnSpec, ...]
    auto_filter: Optional[str]
    conditional_formats: Tuple[str, ...]
    dimension: Optional[str]

    def row(self, number: int) -> Optional[Row]:
        for r in self.rows:
            if r.number == number:
                return r
        return None


def _float_or_none(v: Optional[str]) -> Optional[float]:
    if v is None or v == "":
        return None
    try:
        return float(v)
    except ValueError:
        return None


def _int_or(v: Optional[str], default: int) -> int:
    try:
        return int(v) if v not in (None, "") else default
    except ValueError:
        return default


def _inline_text(c: etree._Element) -> str:
    is_el = c.find(qn("is"))
    if is_el is None:
        return ""
    return "".join(t.text or "" for t in is_el.iter(qn("t")))


def _parse_cell(
    c: etree._Element,
    row_number: int,
    fallback_col: int,
    shared_strings: Sequence[str],
) -> Cell:
    ref = c.get("r")
    if ref:
        col, row = split_ref(ref)
        if row != row_number:
            raise MalformedTemplate(f"cell {ref} sits in row {row_number}")
    else:
        col = fallback_col

    ctype = c.get("t") or NUMBER
    if ctype not in _KNOWN_TYPES:
        ctype = NUMBER

    v_el = c.find(qn("v"))
    raw = (v_el.text or "") if v_el is not None else ""
    f_el = c.find(qn("f"))
    formula = f_el.text if f_el is not None and f_el.text else None

    if ctype == SHARED_STRING:
        try:
            idx = int(raw)
        except ValueError:
            idx = -1
        display = shared_strings[idx] if 0 <= idx < len(shared_strings) else ""
    elif ctype == INLINE_STRING:
        display = _inline_text(c)
    elif ctype == BOOLEAN:
        display = "TRUE" if raw == "1" else "FALSE" if raw == "0" else raw
    else:
        display = raw

    return Cell(
        column=col,
        row=row_number,
        style_id=_int_or(c.get("s"), 0),
        type=ctype,
        raw_value=raw,
        display_value=display,
        formula=formula,
    )


def parse_rows(sheet_data: etree._Element, shared_strings: Sequence[str]) -> Tuple[Row, ...]:
    rows: List[Row] = []
    last_number = 0
    for row_el in sheet_data.findall(qn("row")):
        number = _int_or(row_el.get("r"), last_number + 1)
        if number <= last_number:
            raise MalformedTemplate(f"row numbers are not increasing at row {number}")
        last_number = number

        cells: Dict[int, Cell] = {}
        next_col = 1
        for c in row_el.findall(qn("c")):
            cell = _parse_cell(c, number, next_col, shared_strings)
            if cell.column in cells:
                raise MalformedTemplate(f"duplicate cell {cell.reference}")
            cells[cell.column] = cell
            next_col = cell.column + 1

        rows.append(
            Row(
                number=number,
                cells=tuple(cells[k] for k in sorted(cells)),
                height=_float_or_none(row_el.get("ht")),
                hidden=row_el.get("hidden") in ("1", "true"),
            )
        )
    return tuple(rows)


def parse_sheet(xml_bytes: bytes, shared_strings: Sequence[str]) -> SheetGrid:
    root = parse_xml(xml_bytes, what="worksheet")
    if root.tag != qn("worksheet"):
        raise MalformedTemplate(f"unexpected worksheet root element: {root.tag}")

    sheet_data = root.find(qn("sheetData"))
    if sheet_data is None:
        raise MalformedTemplate("worksheet has no <sheetData>")

    rows = parse_rows(sheet_data, shared_strings)

    merges: List[CellRange] = []
    merge_el = root.find(qn("mergeCells"))
    if merge_el is not None:
        for m in merge_el.findall(qn("mergeCell")):
            ref = m.get("ref") or ""
            try:
                merges.append(CellRange.from_ref(ref))
            except ValueError:
                logger.warning("skipping unreadable merge ref %r", ref)

    columns: List[ColumnSpec] = []
    cols_el = root.find(qn("cols"))
    if cols_el is not None:
        for col in cols_el.findall(qn("col")):
            first = _int_or(col.get("min"), 0)
            last = _int_or(col.get("max"), first)
            if first <= 0:
                continue
            style = col.get("style")
            columns.append(
                ColumnSpec(
                    first=first,
                    last=last,
                    width=_float_or_none(col.get("width")),
                    style_id=int(style) if style and style.isdigit() else None,
                    hidden=col.get("hidden") in ("1", "true"),
                )
            )

    af = root.find(qn("autoFilter"))
    dim = root.find(qn("dimension"))

    return SheetGrid(
        rows=rows,
        merges=tuple(merges),
        columns=tuple(columns),
        auto_filter=af.get("ref") if af is not None else None,
        conditional_formats=tuple(
            cf.get("sqref") or "" for cf in root.findall(qn("conditionalFormatting"))
        ),
        dimension=dim.get("ref") if dim is not None else None,
    )

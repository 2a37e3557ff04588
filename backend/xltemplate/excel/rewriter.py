# backend/xltemplate/excel/rewriter.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from lxml import etree

from ..normalize.numbers import format_number
from .cells import (
    EMPTY,
    SHARED_STRING,
    CellRange,
    CellValue,
    Empty,
    Formula,
    Number,
    Text,
    classify_value,
    make_ref,
    split_ref,
)
from .errors import MalformedTemplate, NoStylePattern
from .formulas import (
    RowShift,
    dimension_ref,
    shift_cell_ref,
    shift_formula,
    shift_merge,
    shift_sqref,
)
from .shared_strings import SharedStringTable
from .sheet_xml import SheetGrid
from .xml import parse_xml, qn, serialize_xml
from .zones import ZoneMap

logger = logging.getLogger(__name__)


# =============================================================================
# Plan
# =============================================================================

@dataclass(frozen=True)
class PlannedCell:
    column: int
    style_id: int
    value: CellValue = EMPTY
    string_index: Optional[int] = None  # set for Text values


@dataclass(frozen=True)
class PlannedRow:
    number: int
    cells: Tuple[PlannedCell, ...]
    height: Optional[float] = None


@dataclass(frozen=True)
class FieldWrite:
    column: int
    row: int
    value: CellValue
    string_index: Optional[int] = None

    @property
    def reference(self) -> str:
        return make_ref(self.column, self.row)


@dataclass(frozen=True)
class RewritePlan:
    """
    Everything the serialization pass needs, decided up front.

    `sheet_name` is the current name of the sheet being rewritten (for
    self-qualified references), `rename_to` its new name if any.
    """

    shift: RowShift
    new_rows: Tuple[PlannedRow, ...]
    field_writes: Tuple[FieldWrite, ...]
    merges: Tuple[CellRange, ...]
    merges_changed: bool
    auto_filter: Optional[str]
    conditional_formats: Tuple[str, ...]
    dimension: str
    sheet_name: Optional[str] = None
    rename_to: Optional[str] = None

    @property
    def row_shift(self) -> int:
        return self.shift.delta

    def rewrite_formula(self, text: str) -> str:
        return shift_formula(
            text, self.shift, sheet_name=self.sheet_name, rename_to=self.rename_to
        )


def _string_index(value: CellValue, strings: SharedStringTable) -> Optional[int]:
    if isinstance(value, Text):
        return strings.get_or_add(value.value)
    return None


def _plan_field_writes(
    field_updates: Mapping[str, Any],
    data_start: int,
    strings: SharedStringTable,
) -> Tuple[FieldWrite, ...]:
    writes: Dict[Tuple[int, int], FieldWrite] = {}
    for ref, raw in field_updates.items():
        try:
            col, row = split_ref(str(ref).strip())
        except ValueError:
            logger.warning("field update %r: not a cell reference, skipped", ref)
            continue
        if row >= data_start:
            logger.warning("field update %s: outside the header zone, skipped", ref)
            continue
        value = classify_value(raw)
        writes[(row, col)] = FieldWrite(
            column=col, row=row, value=value, string_index=_string_index(value, strings)
        )
    return tuple(writes[k] for k in sorted(writes))


def plan_rewrite(
    grid: SheetGrid,
    zones: ZoneMap,
    new_rows: Sequence[Sequence[Any]],
    strings: SharedStringTable,
    *,
    field_updates: Optional[Mapping[str, Any]] = None,
    sheet_name: Optional[str] = None,
    rename_to: Optional[str] = None,
) -> RewritePlan:
    """
    Decide the shape of the rewritten sheet.

    New strings are registered in `strings` here; nothing else is mutated.
    Raises NoStylePattern when the template has no example data row to
    copy styles from.
    """
    zone = zones.data_zone
    patterns = zone.patterns
    if not patterns:
        raise NoStylePattern(
            f"no example data rows below caption row {zones.caption_row.row_number}"
        )

    field_writes = _plan_field_writes(field_updates or {}, zone.start_row, strings)

    planned: List[PlannedRow] = []
    for i, values in enumerate(new_rows):
        pattern = patterns[i % len(patterns)]
        number = zone.start_row + i
        cells = []
        for col in range(1, zones.max_column + 1):
            raw = values[col - 1] if col - 1 < len(values) else None
            value = classify_value(raw)
            cells.append(
                PlannedCell(
                    column=col,
                    style_id=pattern.style_for(col),
                    value=value,
                    string_index=_string_index(value, strings),
                )
            )
        planned.append(PlannedRow(number=number, cells=tuple(cells), height=pattern.height))

    shift = RowShift(
        data_start=zone.start_row,
        data_end=zone.end_row,
        footer_start=zones.footer_start,
        new_data_end=zone.start_row + len(planned) - 1,
    )

    merges: List[CellRange] = []
    for rng in grid.merges:
        moved = shift_merge(rng, shift)
        if moved is not None:
            merges.append(moved)
    merges_changed = tuple(merges) != tuple(grid.merges)

    # rows that survive, with their numbers after the rewrite
    last_row = shift.new_data_end
    max_column = zones.max_column
    for r in grid.rows:
        if zone.contains(r.number):
            continue
        last_row = max(last_row, shift.moved(r.number))
        max_column = max(max_column, r.last_column)
    for w in field_writes:
        last_row = max(last_row, w.row)
        max_column = max(max_column, w.column)

    plan = RewritePlan(
        shift=shift,
        new_rows=tuple(planned),
        field_writes=field_writes,
        merges=tuple(merges),
        merges_changed=merges_changed,
        auto_filter=shift_sqref(grid.auto_filter, shift) if grid.auto_filter else None,
        conditional_formats=tuple(shift_sqref(s, shift) for s in grid.conditional_formats),
        dimension=dimension_ref(max_column, last_row),
        sheet_name=sheet_name,
        rename_to=rename_to,
    )
    logger.info(
        "rewrite plan: %d rows into %d..%d, footer shift %+d, %d merges kept of %d",
        len(planned),
        shift.data_start,
        shift.new_data_end,
        shift.delta,
        len(merges),
        len(grid.merges),
    )
    return plan


# =============================================================================
# Serialization
# =============================================================================

def _row_number(row_el: etree._Element, previous: int) -> int:
    r = row_el.get("r")
    if r is None or not r.isdigit():
        return previous + 1
    return int(r)


def _cell_column(c: etree._Element) -> Optional[int]:
    ref = c.get("r")
    if not ref:
        return None
    try:
        return split_ref(ref)[0]
    except ValueError:
        return None


def _set_value(c: etree._Element, value: CellValue, string_index: Optional[int]) -> None:
    """Write a CellValue into a (value-less) <c> element."""
    if isinstance(value, Empty):
        return
    if isinstance(value, Number):
        etree.SubElement(c, qn("v")).text = format_number(value.value)
    elif isinstance(value, Text):
        if string_index is None:
            raise MalformedTemplate(f"no shared string index for {value.value!r}")
        c.set("t", SHARED_STRING)
        etree.SubElement(c, qn("v")).text = str(string_index)
    elif isinstance(value, Formula):
        etree.SubElement(c, qn("f")).text = value.text.lstrip("=")
        if value.cached is not None:
            etree.SubElement(c, qn("v")).text = value.cached


def _clear_value(c: etree._Element) -> None:
    for tag in ("f", "v", "is"):
        for el in c.findall(qn(tag)):
            c.remove(el)
    if "t" in c.attrib:
        del c.attrib["t"]


def _build_row(planned: PlannedRow) -> etree._Element:
    row_el = etree.Element(qn("row"), r=str(planned.number))
    if planned.height is not None:
        row_el.set("ht", format_number(planned.height))
        row_el.set("customHeight", "1")
    for pc in planned.cells:
        c = etree.SubElement(
            row_el, qn("c"), r=make_ref(pc.column, planned.number), s=str(pc.style_id)
        )
        _set_value(c, pc.value, pc.string_index)
    return row_el


def _apply_field_write(row_el: etree._Element, write: FieldWrite) -> None:
    target = None
    insert_at = len(row_el)
    for c in row_el.findall(qn("c")):
        col = _cell_column(c)
        if col == write.column:
            target = c
            break
        if col is not None and col > write.column:
            insert_at = row_el.index(c)
            break

    if target is None:
        target = etree.Element(qn("c"), r=write.reference)
        row_el.insert(insert_at, target)
    else:
        _clear_value(target)
    _set_value(target, write.value, write.string_index)


def _rewrite_kept_row(row_el: etree._Element, number: int, plan: RewritePlan) -> None:
    new_number = plan.shift.moved(number)
    if new_number != number:
        row_el.set("r", str(new_number))

    for c in row_el.findall(qn("c")):
        col = _cell_column(c)
        if col is not None and new_number != number:
            c.set("r", make_ref(col, new_number))

        f = c.find(qn("f"))
        if f is None:
            continue
        shared_ref = f.get("ref")
        if shared_ref:
            f.set("ref", shift_cell_ref(shared_ref, plan.shift))
        if f.text:
            new_text = plan.rewrite_formula(f.text)
            if new_text != f.text:
                f.text = new_text
                # cached result no longer matches the formula
                v = c.find(qn("v"))
                if v is not None:
                    c.remove(v)


def _insert_after_sheet_pr(root: etree._Element, el: etree._Element) -> None:
    sheet_pr = root.find(qn("sheetPr"))
    root.insert(root.index(sheet_pr) + 1 if sheet_pr is not None else 0, el)


def render_sheet(original_xml: bytes, plan: RewritePlan) -> bytes:
    """
    Apply a RewritePlan to a fresh parse of the original worksheet part.

    Rows above the data span stay in place, the data span is replaced by
    the planned rows, later rows are renumbered. Everything outside
    <sheetData>, <mergeCells>, <autoFilter>, <conditionalFormatting> and
    <dimension> is left as it was.
    """
    root = parse_xml(original_xml, what="worksheet")
    sheet_data = root.find(qn("sheetData"))
    if sheet_data is None:
        raise MalformedTemplate("worksheet has no <sheetData>")

    shift = plan.shift
    before: List[Tuple[int, etree._Element]] = []
    after: List[Tuple[int, etree._Element]] = []
    previous = 0
    for row_el in list(sheet_data):
        sheet_data.remove(row_el)
        if row_el.tag != qn("row"):
            continue
        number = _row_number(row_el, previous)
        previous = number
        if number < shift.data_start:
            before.append((number, row_el))
        elif number > shift.data_end:
            after.append((number, row_el))

    # field updates: existing header cells in place, missing cells / rows created
    for write in plan.field_writes:
        row_el = next((el for n, el in before if n == write.row), None)
        if row_el is None:
            row_el = etree.Element(qn("row"), r=str(write.row))
            before.append((write.row, row_el))
            before.sort(key=lambda item: item[0])
        _apply_field_write(row_el, write)

    for number, row_el in before:
        _rewrite_kept_row(row_el, number, plan)
        sheet_data.append(row_el)
    for planned in plan.new_rows:
        sheet_data.append(_build_row(planned))
    for number, row_el in after:
        _rewrite_kept_row(row_el, number, plan)
        sheet_data.append(row_el)

    merge_el = root.find(qn("mergeCells"))
    if merge_el is not None and plan.merges_changed:
        for m in list(merge_el):
            merge_el.remove(m)
        if plan.merges:
            for rng in plan.merges:
                etree.SubElement(merge_el, qn("mergeCell"), ref=rng.ref)
            merge_el.set("count", str(len(plan.merges)))
        else:
            root.remove(merge_el)

    af = root.find(qn("autoFilter"))
    if af is not None and plan.auto_filter:
        af.set("ref", plan.auto_filter)

    for cf, sqref in zip(root.findall(qn("conditionalFormatting")), plan.conditional_formats):
        if sqref:
            cf.set("sqref", sqref)
        else:
            root.remove(cf)

    dim = root.find(qn("dimension"))
    if dim is None:
        dim = etree.Element(qn("dimension"))
        _insert_after_sheet_pr(root, dim)
    dim.set("ref", plan.dimension)

    return serialize_xml(root)


def rewrite_sheet(
    sheet_xml: bytes,
    grid: SheetGrid,
    zones: ZoneMap,
    new_rows: Sequence[Sequence[Any]],
    strings: SharedStringTable,
    *,
    field_updates: Optional[Mapping[str, Any]] = None,
    sheet_name: Optional[str] = None,
    rename_to: Optional[str] = None,
) -> Tuple[bytes, RewritePlan]:
    plan = plan_rewrite(
        grid,
        zones,
        new_rows,
        strings,
        field_updates=field_updates,
        sheet_name=sheet_name,
        rename_to=rename_to,
    )
    return render_sheet(sheet_xml, plan), plan


__all__ = [
    "FieldWrite",
    "PlannedCell",
    "PlannedRow",
    "RewritePlan",
    "plan_rewrite",
    "render_sheet",
    "rewrite_sheet",
]

# backend/xltemplate/excel/engine.py
"""
Template facade: analyze an XLSX template once, then generate any number
of documents from it.

    model = analyze_template(data)
    out = generate_from_template(model, rows, field_updates={"B2": "2024-05-01"})

A TemplateModel is immutable; every generation works on its own parse of
the original bytes, so one model can be shared between concurrent calls.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .archive import XlsxArchive
from .formulas import rename_sheet_prefix, shift_formula
from .rewriter import RewritePlan, rewrite_sheet
from .shared_strings import SharedString, SharedStringTable, parse_shared_strings
from .sheet_xml import SheetGrid, parse_sheet
from .workbook import (
    WorkbookInfo,
    read_workbook,
    register_shared_strings,
    rewrite_workbook,
    sanitize_sheet_name,
    unregister_part,
)
from .zones import ZoneMap, detect_zones

logger = logging.getLogger(__name__)

CONTENT_TYPES_PATH = "[Content_Types].xml"


@dataclass(frozen=True)
class TemplateModel:
    source: bytes
    workbook: WorkbookInfo
    shared_strings: Tuple[SharedString, ...]
    grid: SheetGrid
    zones: ZoneMap

    @property
    def sheet_path(self) -> str:
        return self.workbook.first_sheet.path

    @property
    def sheet_name(self) -> str:
        return self.workbook.first_sheet.name

    @property
    def sheet_names(self) -> Tuple[str, ...]:
        return self.workbook.sheet_names


@dataclass(frozen=True)
class TemplateSummary:
    sheet_count: int
    sheet_names: Tuple[str, ...]
    column_captions: Tuple[str, ...]
    header_row_count: int
    data_row_count: int
    footer_row_count: int
    has_categories: bool
    category_count: int
    max_columns: int
    merge_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sheet_count": self.sheet_count,
            "sheet_names": list(self.sheet_names),
            "column_captions": list(self.column_captions),
            "header_row_count": self.header_row_count,
            "data_row_count": self.data_row_count,
            "footer_row_count": self.footer_row_count,
            "has_categories": self.has_categories,
            "category_count": self.category_count,
            "max_columns": self.max_columns,
            "merge_count": self.merge_count,
        }


def analyze_template(data: bytes) -> TemplateModel:
    """
    Parse the workbook structure and detect the zones of its first sheet.

    Raises ArchiveIOError for unreadable containers and MalformedTemplate
    for missing / broken parts or a sheet without a usable caption row.
    """
    archive = XlsxArchive(data)
    workbook = read_workbook(archive)

    sst_xml = None
    if workbook.shared_strings_path:
        sst_xml = archive.read_optional(workbook.shared_strings_path)
    strings = parse_shared_strings(sst_xml)

    grid = parse_sheet(archive.read(workbook.first_sheet.path), [s.text for s in strings])
    zones = detect_zones(grid.rows, merges=grid.merges, columns=grid.columns)

    logger.info(
        "template analyzed: sheet=%r rows=%d strings=%d merges=%d",
        workbook.first_sheet.name,
        len(grid.rows),
        len(strings),
        len(grid.merges),
    )
    return TemplateModel(
        source=archive.data,
        workbook=workbook,
        shared_strings=strings,
        grid=grid,
        zones=zones,
    )


def _shared_strings_target(workbook: WorkbookInfo) -> str:
    return posixpath.join(posixpath.dirname(workbook.workbook_path), "sharedStrings.xml")


def generate_from_template(
    model: TemplateModel,
    rows: Sequence[Sequence[Any]],
    *,
    sheet_name: Optional[str] = None,
    field_updates: Optional[Mapping[str, Any]] = None,
) -> bytes:
    """
    Produce a new XLSX with the data zone replaced by `rows`.

    `rows` hold one value per caption column (str, int, float, None or a
    CellValue); missing trailing values are left empty. `sheet_name`
    renames the first sheet, cleaned up to a name Excel accepts.
    `field_updates` maps header cell references to new values.

    Raises NoStylePattern when the template has no example data rows.
    """
    archive = XlsxArchive(model.source)
    workbook = model.workbook

    sst_path = workbook.shared_strings_path
    sst_xml = archive.read_optional(sst_path) if sst_path else None
    strings = SharedStringTable(model.shared_strings, source_xml=sst_xml)

    new_name = None
    if sheet_name and sheet_name != model.sheet_name:
        others = [n for n in model.sheet_names if n != model.sheet_name]
        new_name = sanitize_sheet_name(sheet_name, taken=others)
        if new_name == model.sheet_name:
            new_name = None
    sheet_xml, plan = rewrite_sheet(
        archive.read(model.sheet_path),
        model.grid,
        model.zones,
        rows,
        strings,
        field_updates=field_updates,
        sheet_name=model.sheet_name,
        rename_to=new_name,
    )

    replacements: Dict[str, bytes] = {model.sheet_path: sheet_xml}
    drop: List[str] = []
    content_types: Optional[bytes] = None
    workbook_rels: Optional[bytes] = None

    if strings.changed:
        if sst_xml is not None:
            replacements[sst_path] = strings.to_xml()
        else:
            target = sst_path or _shared_strings_target(workbook)
            replacements[target] = strings.to_xml()
            content_types, workbook_rels = register_shared_strings(
                archive.read(CONTENT_TYPES_PATH),
                archive.read(workbook.rels_path),
                workbook_path=workbook.workbook_path,
                part_path=target,
            )

    if workbook.calc_chain_path and plan.row_shift != 0:
        # cell positions listed there no longer exist; Excel rebuilds it
        content_types, workbook_rels = unregister_part(
            content_types or archive.read(CONTENT_TYPES_PATH),
            workbook_rels or archive.read(workbook.rels_path),
            workbook_path=workbook.workbook_path,
            part_path=workbook.calc_chain_path,
        )
        drop.append(workbook.calc_chain_path)

    if content_types is not None:
        replacements[CONTENT_TYPES_PATH] = content_types
    if workbook_rels is not None:
        replacements[workbook.rels_path] = workbook_rels

    workbook_xml = _rewrite_workbook_part(archive, model, plan, new_name)
    if workbook_xml is not None:
        replacements[workbook.workbook_path] = workbook_xml

    out = archive.clone_with(replacements, drop=drop)
    logger.info(
        "generated %d data rows (shift %+d), %d new strings, parts replaced: %s",
        len(plan.new_rows),
        plan.row_shift,
        len(strings.added),
        ", ".join(sorted(replacements)),
    )
    return out


def _rewrite_workbook_part(
    archive: XlsxArchive,
    model: TemplateModel,
    plan: RewritePlan,
    new_name: Optional[str],
) -> Optional[bytes]:
    def _defined_name(text: str) -> str:
        shifted = shift_formula(
            text,
            plan.shift,
            sheet_name=model.sheet_name,
            qualified_only=True,
            rename_to=new_name,
        )
        if new_name:
            # whole-row / whole-column references carry the prefix too
            shifted = rename_sheet_prefix(shifted, model.sheet_name, new_name)
        return shifted

    return rewrite_workbook(
        archive.read(model.workbook.workbook_path),
        sheet_name=new_name,
        defined_name=_defined_name,
    )


def get_template_summary(model: TemplateModel) -> TemplateSummary:
    zones = model.zones
    zone = zones.data_zone
    return TemplateSummary(
        sheet_count=len(model.sheet_names),
        sheet_names=model.sheet_names,
        column_captions=zones.captions,
        header_row_count=len(zones.header_rows) + 1,
        data_row_count=len(zone.data_rows),
        footer_row_count=len(zones.footer_rows),
        has_categories=bool(zone.category_rows),
        category_count=len(zone.category_rows),
        max_columns=zones.max_column,
        merge_count=len(zones.merged_ranges),
    )


def extract_data_rows(model: TemplateModel) -> List[List[str]]:
    """
    The template's own integer-led data rows, one display value per
    caption column. Category rows are not among them, so feeding the
    result back into generate_from_template reproduces the data values.
    """
    zones = model.zones
    out: List[List[str]] = []
    for row in zones.data_zone.data_rows:
        values = []
        for col in range(1, zones.max_column + 1):
            cell = row.cell(col)
            values.append(cell.display_value if cell is not None else "")
        out.append(values)
    return out

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

from lxml import etree

from .archive import XlsxArchive
from .errors import MalformedTemplate
from .xml import NS_CONTENT_TYPES, NS_PKG_REL, NS_REL, parse_xml, qn, serialize_xml

logger = logging.getLogger(__name__)

REL_OFFICE_DOCUMENT = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument"
)
REL_SHARED_STRINGS = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/sharedStrings"
)
CT_SHARED_STRINGS = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sharedStrings+xml"
)
REL_CALC_CHAIN = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/calcChain"
)

DEFAULT_WORKBOOK_PATH = "xl/workbook.xml"

MAX_SHEET_NAME = 31
_SHEET_NAME_FORBIDDEN_RE = re.compile(r"[\[\]:*?/\\]")


@dataclass(frozen=True)
class SheetRef:
    name: str
    relationship_id: str
    path: str


@dataclass(frozen=True)
class WorkbookInfo:
    workbook_path: str
    rels_path: str
    sheets: Tuple[SheetRef, ...]
    shared_strings_path: Optional[str]
    calc_chain_path: Optional[str] = None

    @property
    def first_sheet(self) -> SheetRef:
        return self.sheets[0]

    @property
    def sheet_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.sheets)


def _rels_path_for(part_path: str) -> str:
    folder, name = posixpath.split(part_path)
    return posixpath.join(folder, "_rels", f"{name}.rels")


def _resolve_target(base_part: str, target: str) -> str:
    if target.startswith("/"):
        return target.lstrip("/")
    folder = posixpath.dirname(base_part)
    return posixpath.normpath(posixpath.join(folder, target))


def _find_workbook_path(archive: XlsxArchive) -> str:
    root_rels = archive.read_optional("_rels/.rels")
    if root_rels is None:
        return DEFAULT_WORKBOOK_PATH
    root = parse_xml(root_rels, what="_rels/.rels")
    for rel in root.findall(qn("Relationship", NS_PKG_REL)):
        if rel.get("Type") == REL_OFFICE_DOCUMENT and rel.get("Target"):
            return _resolve_target("", rel.get("Target"))
    return DEFAULT_WORKBOOK_PATH


def _read_relationships(archive: XlsxArchive, part_path: str) -> Dict[str, Tuple[str, str]]:
    """rId -> (type, resolved part path) for one part."""
    rels_path = _rels_path_for(part_path)
    root = parse_xml(archive.read(rels_path), what=rels_path)
    out: Dict[str, Tuple[str, str]] = {}
    for rel in root.findall(qn("Relationship", NS_PKG_REL)):
        rid = rel.get("Id")
        target = rel.get("Target")
        if not rid or not target or rel.get("TargetMode") == "External":
            continue
        out[rid] = (rel.get("Type") or "", _resolve_target(part_path, target))
    return out


def read_workbook(archive: XlsxArchive) -> WorkbookInfo:
    """Resolve sheet names to worksheet part paths through the workbook rels."""
    workbook_path = _find_workbook_path(archive)
    wb_root = parse_xml(archive.read(workbook_path), what=workbook_path)
    rels = _read_relationships(archive, workbook_path)

    sheets_el = wb_root.find(qn("sheets"))
    if sheets_el is None:
        raise MalformedTemplate("workbook has no <sheets> element")

    sheets = []
    for i, node in enumerate(sheets_el.findall(qn("sheet"))):
        name = node.get("name") or f"Sheet{i + 1}"
        rid = node.get(qn("id", NS_REL)) or f"rId{i + 1}"
        rel = rels.get(rid)
        if rel is None:
            logger.warning("sheet %r points to unknown relationship %s", name, rid)
            continue
        sheets.append(SheetRef(name=name, relationship_id=rid, path=rel[1]))

    if not sheets:
        raise MalformedTemplate("workbook has no resolvable worksheets")
    if not archive.has(sheets[0].path):
        raise MalformedTemplate(f"missing worksheet part: {sheets[0].path}")

    shared_strings_path = None
    calc_chain_path = None
    for rel_type, path in rels.values():
        if rel_type == REL_SHARED_STRINGS and shared_strings_path is None:
            shared_strings_path = path
        elif rel_type == REL_CALC_CHAIN and archive.has(path):
            calc_chain_path = path

    return WorkbookInfo(
        workbook_path=workbook_path,
        rels_path=_rels_path_for(workbook_path),
        sheets=tuple(sheets),
        shared_strings_path=shared_strings_path,
        calc_chain_path=calc_chain_path,
    )


# ---------------------------------------------------------------------
# Workbook part edits
# ---------------------------------------------------------------------


def rewrite_workbook(
    workbook_xml: bytes,
    *,
    sheet_name: Optional[str],
    defined_name: Callable[[str], str],
) -> Optional[bytes]:
    """
    Rename the first sheet and pass every <definedName> text through
    `defined_name`. Returns None when nothing changed, so the part can be
    kept byte-identical.
    """
    root = parse_xml(workbook_xml, what="workbook")
    changed = False

    if sheet_name:
        first = root.find(f"{qn('sheets')}/{qn('sheet')}")
        if first is not None and first.get("name") != sheet_name:
            first.set("name", sheet_name)
            changed = True

    names_el = root.find(qn("definedNames"))
    if names_el is not None:
        for dn in names_el.findall(qn("definedName")):
            text = dn.text or ""
            new_text = defined_name(text)
            if new_text != text:
                logger.debug("defined name %s: %s -> %s", dn.get("name"), text, new_text)
                dn.text = new_text
                changed = True

    return serialize_xml(root) if changed else None


def register_shared_strings(
    content_types_xml: bytes, workbook_rels_xml: bytes, *, workbook_path: str, part_path: str
) -> Tuple[bytes, bytes]:
    """Declare a new sharedStrings part for templates that shipped without one."""
    ct_root = parse_xml(content_types_xml, what="[Content_Types].xml")
    part_name = "/" + part_path
    if not any(o.get("PartName") == part_name for o in ct_root.findall(qn("Override", NS_CONTENT_TYPES))):
        etree.SubElement(
            ct_root,
            qn("Override", NS_CONTENT_TYPES),
            PartName=part_name,
            ContentType=CT_SHARED_STRINGS,
        )

    rels_root = parse_xml(workbook_rels_xml, what="workbook rels")
    rels = rels_root.findall(qn("Relationship", NS_PKG_REL))
    if any(r.get("Type") == REL_SHARED_STRINGS for r in rels):
        return serialize_xml(ct_root), serialize_xml(rels_root)
    existing = {r.get("Id") for r in rels}
    n = 1
    while f"rId{n}" in existing:
        n += 1
    target = posixpath.relpath(part_path, posixpath.dirname(workbook_path) or ".")
    etree.SubElement(
        rels_root,
        qn("Relationship", NS_PKG_REL),
        Id=f"rId{n}",
        Type=REL_SHARED_STRINGS,
        Target=target,
    )
    return serialize_xml(ct_root), serialize_xml(rels_root)


def unregister_part(
    content_types_xml: bytes, workbook_rels_xml: bytes, *, workbook_path: str, part_path: str
) -> Tuple[bytes, bytes]:
    """Remove the content-type override and workbook relationship of a dropped part."""
    ct_root = parse_xml(content_types_xml, what="[Content_Types].xml")
    part_name = "/" + part_path
    for o in ct_root.findall(qn("Override", NS_CONTENT_TYPES)):
        if o.get("PartName") == part_name:
            ct_root.remove(o)

    rels_root = parse_xml(workbook_rels_xml, what="workbook rels")
    for rel in rels_root.findall(qn("Relationship", NS_PKG_REL)):
        target = rel.get("Target") or ""
        if rel.get("TargetMode") != "External" and _resolve_target(workbook_path, target) == part_path:
            rels_root.remove(rel)
    return serialize_xml(ct_root), serialize_xml(rels_root)


def sanitize_sheet_name(name: str, *, taken: Iterable[str] = ()) -> Optional[str]:
    """
    Make a requested sheet name acceptable to Excel:
      - `[ ] : * ? / \\` become "_"
      - no leading / trailing apostrophe or blanks
      - at most 31 characters
    Returns None when nothing usable is left or the name clashes
    (case-insensitively) with one of `taken`.
    """
    cleaned = _SHEET_NAME_FORBIDDEN_RE.sub("_", name or "")
    cleaned = cleaned.strip().strip("'").strip()[:MAX_SHEET_NAME].rstrip()
    if not cleaned:
        logger.warning("sheet name %r is empty after cleanup, rename skipped", name)
        return None
    if cleaned.lower() in {t.lower() for t in taken}:
        logger.warning("sheet name %r is already used in the workbook, rename skipped", cleaned)
        return None
    if cleaned != name:
        logger.info("sheet name %r written as %r", name, cleaned)
    return cleaned

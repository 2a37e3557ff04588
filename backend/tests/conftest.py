from __future__ import annotations

import io
import sys
import zipfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pytest
from lxml import etree
from openpyxl import Workbook, load_workbook
from openpyxl.formatting.rule import CellIsRule
from openpyxl.styles import Font, PatternFill


def pytest_sessionstart(session):
    """
    Make sure backend/ (where the xltemplate package lives) is on sys.path,
    even when pytest is started from the repository root.
    """
    backend_dir = Path(__file__).resolve().parents[1]  # .../backend
    p = str(backend_dir)
    if p not in sys.path:
        sys.path.insert(0, p)


NS = {"m": "http://schemas.openxmlformats.org/spreadsheetml/2006/main"}

FILL_ODD = PatternFill("solid", fgColor="FFFFF2CC")
FILL_EVEN = PatternFill("solid", fgColor="FFDDEBF7")


def _to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ---------------------------------------------------------------------
# String storage of openpyxl output
#
# Depending on its version openpyxl writes text cells as shared strings
# or as inline strings. Templates from Excel carry a shared string table,
# so the fixtures rebuild one (or strip it) explicitly.
# ---------------------------------------------------------------------

SST_PATH = "xl/sharedStrings.xml"
CT_PATH = "[Content_Types].xml"
WORKBOOK_RELS_PATH = "xl/_rels/workbook.xml.rels"
CT_SST = "application/vnd.openxmlformats-officedocument.spreadsheetml.sharedStrings+xml"
REL_SST = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/sharedStrings"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

# text -> runs (text, bold); stored as a rich-text <si>
RICH_TEXT = {"Customer": (("Cust", True), ("omer", False))}


def _m(tag: str) -> str:
    return "{%s}%s" % (NS["m"], tag)


def _zip_parts(data: bytes) -> List[Tuple[str, bytes]]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return [(name, zf.read(name)) for name in zf.namelist()]


def _zip_bytes(parts: Sequence[Tuple[str, bytes]]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, payload in parts:
            zf.writestr(name, payload)
    return buf.getvalue()


def _xml(root: etree._Element) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)


def _si_text(si: etree._Element) -> str:
    return "".join(t.text or "" for t in si.iter(_m("t")))


def _new_si(text: str) -> etree._Element:
    si = etree.Element(_m("si"))
    runs = RICH_TEXT.get(text)
    if runs is None:
        t = etree.SubElement(si, _m("t"))
        t.text = text
        return si
    for run_text, bold in runs:
        r = etree.SubElement(si, _m("r"))
        if bold:
            rpr = etree.SubElement(r, _m("rPr"))
            etree.SubElement(rpr, _m("b"))
        t = etree.SubElement(r, _m("t"))
        t.set(XML_SPACE, "preserve")
        t.text = run_text
    return si


def with_shared_strings(data: bytes) -> bytes:
    """
    Move every inline string of the worksheets into xl/sharedStrings.xml
    (created and registered when missing). Texts listed in RICH_TEXT get
    a rich-text entry.
    """
    parts = _zip_parts(data)
    names = [name for name, _ in parts]
    payloads = dict(parts)

    if SST_PATH in payloads:
        sst = etree.fromstring(payloads[SST_PATH])
    else:
        sst = etree.Element(_m("sst"), nsmap={None: NS["m"]})
    index = {_si_text(si): i for i, si in enumerate(sst.findall(_m("si")))}
    refs = 0

    for name in names:
        if not (name.startswith("xl/worksheets/") and name.endswith(".xml")):
            continue
        root = etree.fromstring(payloads[name])
        for c in root.iter(_m("c")):
            if c.get("t") == "s":
                refs += 1
                continue
            if c.get("t") != "inlineStr":
                continue
            is_el = c.find(_m("is"))
            text = "".join(t.text or "" for t in is_el.iter(_m("t"))) if is_el is not None else ""
            if is_el is not None:
                c.remove(is_el)
            if text not in index:
                index[text] = len(index)
                sst.append(_new_si(text))
            c.set("t", "s")
            v = etree.SubElement(c, _m("v"))
            v.text = str(index[text])
            refs += 1
        payloads[name] = _xml(root)

    sst.set("count", str(refs))
    sst.set("uniqueCount", str(len(index)))
    payloads[SST_PATH] = _xml(sst)

    if SST_PATH not in names:
        names.append(SST_PATH)
        ct = etree.fromstring(payloads[CT_PATH])
        etree.SubElement(
            ct,
            "{%s}Override" % CT_NS,
            PartName="/" + SST_PATH,
            ContentType=CT_SST,
        )
        payloads[CT_PATH] = _xml(ct)
        rels = etree.fromstring(payloads[WORKBOOK_RELS_PATH])
        etree.SubElement(
            rels,
            "{%s}Relationship" % PKG_REL_NS,
            Id="rIdSharedStrings",
            Type=REL_SST,
            Target="sharedStrings.xml",
        )
        payloads[WORKBOOK_RELS_PATH] = _xml(rels)

    return _zip_bytes([(name, payloads[name]) for name in names])


def without_shared_strings(data: bytes) -> bytes:
    """
    Inline every shared string cell and remove xl/sharedStrings.xml with
    its content-type override and workbook relationship.
    """
    parts = _zip_parts(data)
    payloads = dict(parts)
    if SST_PATH not in payloads:
        return data

    texts = [_si_text(si) for si in etree.fromstring(payloads[SST_PATH]).findall(_m("si"))]
    for name, _ in parts:
        if not (name.startswith("xl/worksheets/") and name.endswith(".xml")):
            continue
        root = etree.fromstring(payloads[name])
        for c in root.iter(_m("c")):
            if c.get("t") != "s":
                continue
            v = c.find(_m("v"))
            text = texts[int(v.text)]
            c.remove(v)
            c.set("t", "inlineStr")
            is_el = etree.SubElement(c, _m("is"))
            etree.SubElement(is_el, _m("t")).text = text
        payloads[name] = _xml(root)

    ct = etree.fromstring(payloads[CT_PATH])
    for el in list(ct):
        if el.get("PartName") == "/" + SST_PATH:
            ct.remove(el)
    payloads[CT_PATH] = _xml(ct)
    rels = etree.fromstring(payloads[WORKBOOK_RELS_PATH])
    for el in list(rels):
        if el.get("Type") == REL_SST:
            rels.remove(el)
    payloads[WORKBOOK_RELS_PATH] = _xml(rels)

    return _zip_bytes([(name, payloads[name]) for name, _ in parts if name != SST_PATH])


REL_CALC_CHAIN = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/calcChain"
CT_CALC_CHAIN = "application/vnd.openxmlformats-officedocument.spreadsheetml.calcChain+xml"
CALC_CHAIN_PATH = "xl/calcChain.xml"


def _edit_parts(data: bytes, edits: Dict[str, bytes]) -> bytes:
    parts = _zip_parts(data)
    names = [name for name, _ in parts]
    payloads = dict(parts)
    for name, payload in edits.items():
        if name not in payloads:
            names.append(name)
        payloads[name] = payload
    return _zip_bytes([(name, payloads[name]) for name in names])


def add_defined_names(data: bytes, names: Mapping[str, str]) -> bytes:
    root = etree.fromstring(read_part(data, "xl/workbook.xml"))
    container = root.find(_m("definedNames"))
    if container is None:
        container = etree.Element(_m("definedNames"))
        root.find(_m("sheets")).addnext(container)
    for name, text in names.items():
        dn = etree.SubElement(container, _m("definedName"), name=name)
        if name.startswith("_xlnm."):
            dn.set("localSheetId", "0")
        dn.text = text
    return _edit_parts(data, {"xl/workbook.xml": _xml(root)})


def add_calc_chain(data: bytes, cells: Sequence[str]) -> bytes:
    chain = etree.Element(_m("calcChain"), nsmap={None: NS["m"]})
    for ref in cells:
        etree.SubElement(chain, _m("c"), r=ref, i="1")

    ct = etree.fromstring(read_part(data, CT_PATH))
    etree.SubElement(ct, "{%s}Override" % CT_NS, PartName="/" + CALC_CHAIN_PATH, ContentType=CT_CALC_CHAIN)
    rels = etree.fromstring(read_part(data, WORKBOOK_RELS_PATH))
    etree.SubElement(
        rels,
        "{%s}Relationship" % PKG_REL_NS,
        Id="rIdCalcChain",
        Type=REL_CALC_CHAIN,
        Target="calcChain.xml",
    )
    return _edit_parts(
        data,
        {CT_PATH: _xml(ct), WORKBOOK_RELS_PATH: _xml(rels), CALC_CHAIN_PATH: _xml(chain)},
    )


def build_invoice_template(
    *,
    data_rows: Sequence[Sequence[object]] = (
        (1, "Apple", 10),
        (2, "Banana", 20),
        (3, "Cherry", 30),
    ),
    with_footer: bool = True,
    extra_merges: Iterable[str] = (),
    auto_filter: Optional[str] = None,
    conditional_format: Optional[str] = None,
    defined_names: Optional[Mapping[str, str]] = None,
    calc_chain: bool = False,
    shared_strings: bool = True,
) -> bytes:
    """
    Caption row 5 (No. / Item / Qty), data from row 6, footer with
    "Total" and =SUM over the data column.

    `defined_names` maps name -> formula text ("_xlnm.Print_Area" is
    sheet-local); `calc_chain` adds an xl/calcChain.xml listing the
    footer formulas. Text cells go through a shared string table unless
    `shared_strings` is False.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Invoice"

    ws["A1"] = "INVOICE"
    ws["A1"].font = Font(bold=True, size=14)
    ws.merge_cells("A1:C1")
    ws["A2"] = "Date"
    ws["B2"] = "2024-01-01"
    ws["A3"] = "Customer"
    ws["B3"] = "ACME"

    for col, caption in enumerate(("No.", "Item", "Qty"), start=1):
        cell = ws.cell(row=5, column=col, value=caption)
        cell.font = Font(bold=True)

    first = 6
    for i, values in enumerate(data_rows):
        r = first + i
        fill = FILL_ODD if i % 2 == 0 else FILL_EVEN
        for col, value in enumerate(values, start=1):
            cell = ws.cell(row=r, column=col, value=value)
            cell.fill = fill
        ws.row_dimensions[r].height = 18 if i % 2 == 0 else 20

    if with_footer:
        last = first + len(data_rows) - 1
        footer = last + 1
        ws.cell(row=footer, column=1, value="Total").font = Font(bold=True)
        ws.cell(row=footer, column=3, value=f"=SUM(C{first}:C{last})")
        ws.merge_cells(f"A{footer}:B{footer}")
        ws.cell(row=footer + 1, column=1, value="Signed")
        ws.cell(row=footer + 1, column=3, value=f"=C{footer}*2")

    for ref in extra_merges:
        ws.merge_cells(ref)
    if auto_filter:
        ws.auto_filter.ref = auto_filter
    if conditional_format:
        ws.conditional_formatting.add(
            conditional_format,
            CellIsRule(operator="greaterThan", formula=["15"], fill=FILL_EVEN),
        )

    ws.column_dimensions["A"].width = 6
    ws.column_dimensions["B"].width = 24
    ws.column_dimensions["C"].width = 10

    data = _to_bytes(wb)
    data = with_shared_strings(data) if shared_strings else without_shared_strings(data)
    if defined_names:
        data = add_defined_names(data, defined_names)
    if calc_chain:
        footer = first + len(data_rows)
        data = add_calc_chain(data, [f"C{footer}", f"C{footer + 1}"])
    return data


def build_plain_table_template() -> bytes:
    """No caption marker, no totals: header row plus three data rows."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Data"
    ws.append(["Id", "Name", "City", "Score"])
    ws.append([1, "Ann", "Paris", 10])
    ws.append([2, "Bob", "Oslo", 20])
    ws.append([3, "Cid", "Rome", 30])
    return with_shared_strings(_to_bytes(wb))


def build_no_data_template() -> bytes:
    """Caption row followed directly by the totals row."""
    wb = Workbook()
    ws = wb.active
    ws.append(["Report"])
    ws.append(["No.", "Item", "Qty"])
    ws.append(["Total", None, "=SUM(C3:C3)"])
    return with_shared_strings(_to_bytes(wb))


@pytest.fixture
def invoice_template() -> bytes:
    return build_invoice_template()


@pytest.fixture
def invoice_template_factory() -> Callable[..., bytes]:
    return build_invoice_template


@pytest.fixture
def plain_table_template() -> bytes:
    return build_plain_table_template()


@pytest.fixture
def no_data_template() -> bytes:
    return build_no_data_template()


@pytest.fixture
def open_xlsx() -> Callable[[bytes], Workbook]:
    def _open(data: bytes) -> Workbook:
        return load_workbook(io.BytesIO(data))

    return _open


def read_part(data: bytes, name: str) -> bytes:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return zf.read(name)


def part_names(data: bytes) -> List[str]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return zf.namelist()


@pytest.fixture
def sheet_root() -> Callable[[bytes], etree._Element]:
    """Parsed xl/worksheets/sheet1.xml of a workbook."""

    def _root(data: bytes) -> etree._Element:
        return etree.fromstring(read_part(data, "xl/worksheets/sheet1.xml"))

    return _root


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "out"
    out.mkdir(parents=True, exist_ok=True)
    return out


@pytest.fixture
def xlsx_part() -> Callable[[bytes, str], bytes]:
    return read_part


@pytest.fixture
def xlsx_part_names() -> Callable[[bytes], List[str]]:
    return part_names

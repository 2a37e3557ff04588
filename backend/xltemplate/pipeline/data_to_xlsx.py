from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..excel.engine import TemplateModel, analyze_template, generate_from_template
from ..extract.csv_reader import read_csv
from ..extract.errors import DataReadError
from ..extract.types import DataTable
from ..extract.xlsx_reader import read_xlsx
from .column_mapping import build_column_mapping, map_rows, validate_mapping

logger = logging.getLogger(__name__)

SUPPORTED_DATA_SUFFIXES = (".csv", ".xlsx")


def load_data_table(data: bytes, filename: str, *, sheet: Optional[str] = None) -> DataTable:
    """
    Data file bytes -> one DataTable.

    For XLSX the given sheet is used, else the first one.
    """
    suffix = Path(filename).suffix.lower()
    if suffix == ".csv":
        return read_csv(data)
    if suffix == ".xlsx":
        tables = read_xlsx(data, sheet=sheet)
        if not tables:
            raise DataReadError(f"No sheets in data file: {filename}")
        return next(iter(tables.values()))
    raise DataReadError(f"Unsupported data file type: {filename}")


def rows_for_template(
    model: TemplateModel,
    table: DataTable,
    mapping: Optional[Sequence[int]] = None,
) -> List[List[str]]:
    """
    Align data rows with the template's caption columns.

    Without an explicit mapping, columns are matched by caption / header
    similarity.
    """
    captions = model.zones.captions
    if mapping is None:
        resolved = build_column_mapping(captions, table.headers)
    else:
        resolved = validate_mapping(mapping, len(captions), len(table.headers))
    return map_rows(table, resolved)


def build_xlsx_from_data(
    template: bytes,
    table: DataTable,
    *,
    mapping: Optional[Sequence[int]] = None,
    sheet_name: Optional[str] = None,
    field_updates: Optional[Mapping[str, Any]] = None,
) -> bytes:
    """Template bytes + DataTable -> generated XLSX bytes."""
    model = analyze_template(template)
    rows = rows_for_template(model, table, mapping)
    return generate_from_template(
        model, rows, sheet_name=sheet_name, field_updates=field_updates
    )


def build_xlsx_from_files(
    template_path: Path,
    data_path: Path,
    out_xlsx_path: Path,
    *,
    data_sheet: Optional[str] = None,
    sheet_name: Optional[str] = None,
    field_updates: Optional[Mapping[str, Any]] = None,
) -> None:
    """
    Template XLSX + CSV/XLSX data file on disk -> XLSX on disk.

    Input files are never modified.
    """
    table = load_data_table(
        Path(data_path).read_bytes(), Path(data_path).name, sheet=data_sheet
    )
    out = build_xlsx_from_data(
        Path(template_path).read_bytes(),
        table,
        sheet_name=sheet_name,
        field_updates=field_updates,
    )
    out_xlsx_path.parent.mkdir(parents=True, exist_ok=True)
    out_xlsx_path.write_bytes(out)


def _parse_field_updates(value: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"--fields must be a JSON object: {e}") from e
    if not isinstance(parsed, dict):
        raise argparse.ArgumentTypeError("--fields must be a JSON object")
    return parsed


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Fill an XLSX template with CSV / XLSX data")
    p.add_argument("template", help="Path to the template XLSX")
    p.add_argument("data", help="Path to the data file (.csv or .xlsx)")
    p.add_argument(
        "out_xlsx",
        nargs="?",
        default="out/result.xlsx",
        help="Path to output XLSX",
    )
    p.add_argument(
        "--data-sheet",
        dest="data_sheet",
        default=None,
        help="Sheet of an XLSX data file to read (default: first sheet).",
    )
    p.add_argument(
        "--sheet-name",
        dest="sheet_name",
        default=None,
        help="Rename the output sheet.",
    )
    p.add_argument(
        "--fields",
        dest="field_updates",
        type=_parse_field_updates,
        default=None,
        help='Header cell updates as JSON, e.g. \'{"B2": "2024-05-01"}\'.',
    )
    return p


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    args = _build_arg_parser().parse_args()

    out_xlsx = Path(args.out_xlsx)
    print(f"[RUN] Fill {args.template} with {args.data}")
    build_xlsx_from_files(
        Path(args.template),
        Path(args.data),
        out_xlsx,
        data_sheet=args.data_sheet,
        sheet_name=args.sheet_name,
        field_updates=args.field_updates,
    )
    print(f"[OK] XLSX written to {out_xlsx.resolve()}")

from __future__ import annotations

import argparse
import logging
from datetime import date
from pathlib import Path
from typing import Optional

from ..excel.plain_export import DEFAULT_TITLE, export_plain_xlsx
from ..excel.styles import DEFAULT_THEME, THEMES
from .data_to_xlsx import load_data_table

logger = logging.getLogger(__name__)


def build_plain_xlsx_from_data(
    data: bytes,
    filename: str,
    *,
    data_sheet: Optional[str] = None,
    title: Optional[str] = None,
    theme: str = DEFAULT_THEME,
    include_stt: bool = True,
    include_date: bool = True,
    autofit: bool = True,
    sheet_name: Optional[str] = None,
    today: Optional[date] = None,
) -> bytes:
    """CSV / XLSX data file bytes -> XLSX in the built-in layout (no template)."""
    table = load_data_table(data, filename, sheet=data_sheet)
    return export_plain_xlsx(
        table,
        title=title,
        theme=theme,
        include_stt=include_stt,
        include_date=include_date,
        autofit=autofit,
        sheet_name=sheet_name,
        today=today,
    )


def build_plain_xlsx_from_files(
    data_path: Path,
    out_xlsx_path: Path,
    *,
    data_sheet: Optional[str] = None,
    title: Optional[str] = None,
    theme: str = DEFAULT_THEME,
    include_stt: bool = True,
    include_date: bool = True,
    autofit: bool = True,
    sheet_name: Optional[str] = None,
) -> None:
    out = build_plain_xlsx_from_data(
        Path(data_path).read_bytes(),
        Path(data_path).name,
        data_sheet=data_sheet,
        title=title,
        theme=theme,
        include_stt=include_stt,
        include_date=include_date,
        autofit=autofit,
        sheet_name=sheet_name,
    )
    out_xlsx_path.parent.mkdir(parents=True, exist_ok=True)
    out_xlsx_path.write_bytes(out)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Export CSV / XLSX data as a styled XLSX report")
    p.add_argument("data", help="Path to the data file (.csv or .xlsx)")
    p.add_argument(
        "out_xlsx",
        nargs="?",
        default="out/report.xlsx",
        help="Path to output XLSX",
    )
    p.add_argument("--data-sheet", dest="data_sheet", default=None)
    p.add_argument("--title", default=DEFAULT_TITLE, help="Report title (row 1).")
    p.add_argument("--theme", default=DEFAULT_THEME, choices=sorted(THEMES))
    p.add_argument("--no-stt", dest="include_stt", action="store_false", help="Omit the STT column.")
    p.add_argument("--no-date", dest="include_date", action="store_false", help="Omit the date line.")
    p.add_argument(
        "--no-autofit",
        dest="autofit",
        action="store_false",
        help="Fixed column widths instead of widths from the content.",
    )
    p.add_argument("--sheet-name", dest="sheet_name", default=None)
    return p


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    args = _build_arg_parser().parse_args()

    out_xlsx = Path(args.out_xlsx)
    print(f"[RUN] Export {args.data} ({args.theme})")
    build_plain_xlsx_from_files(
        Path(args.data),
        out_xlsx,
        data_sheet=args.data_sheet,
        title=args.title,
        theme=args.theme,
        include_stt=args.include_stt,
        include_date=args.include_date,
        autofit=args.autofit,
        sheet_name=args.sheet_name,
    )
    print(f"[OK] XLSX written to {out_xlsx.resolve()}")

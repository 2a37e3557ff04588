"""
Tests for the data-file to built-in-layout XLSX pipeline.
"""

import io
from datetime import date

from openpyxl import load_workbook

from xltemplate.pipeline.data_to_plain_xlsx import (
    _build_arg_parser,
    build_plain_xlsx_from_data,
    build_plain_xlsx_from_files,
)

CSV_DATA = b"Item,Qty\nApple,10\nBanana,20\n"


class TestBuildPlainXlsx:
    def test_from_csv_bytes(self):
        out = build_plain_xlsx_from_data(CSV_DATA, "fruit.csv", title="Fruit", today=date(2024, 1, 2))
        ws = load_workbook(io.BytesIO(out)).active
        assert ws["A1"].value == "Fruit"
        assert ws["A2"].value == "Ngày 02 tháng 01 năm 2024"
        assert [ws.cell(row=4, column=c).value for c in range(1, 4)] == ["STT", "Item", "Qty"]
        assert ws["C6"].value == 20

    def test_from_files(self, tmp_path, temp_output_dir):
        data_path = tmp_path / "fruit.csv"
        data_path.write_bytes(CSV_DATA)
        out_path = temp_output_dir / "nested" / "report.xlsx"

        build_plain_xlsx_from_files(data_path, out_path, include_stt=False, include_date=False)

        ws = load_workbook(out_path).active
        assert ws["A3"].value == "Item"
        assert ws["B5"].value == 20
        assert data_path.read_bytes() == CSV_DATA


def test_cli_flags():
    args = _build_arg_parser().parse_args(["data.csv", "--theme", "classic", "--no-stt", "--no-autofit"])
    assert args.out_xlsx == "out/report.xlsx"
    assert args.theme == "classic"
    assert args.include_stt is False
    assert args.include_date is True
    assert args.autofit is False

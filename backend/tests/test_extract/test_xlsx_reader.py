"""
Tests for the XLSX data reader.
"""

import io
from datetime import date, datetime, time

import pytest
from openpyxl import Workbook
from openpyxl.styles import PatternFill

from xltemplate.extract.errors import DataReadError
from xltemplate.extract.xlsx_reader import cell_to_text, read_xlsx


def _workbook_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def data_workbook() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Orders"
    ws.append(["Item", None, "Qty", "Date"])
    ws.append(["Apple", "red", 3, datetime(2024, 5, 1)])
    ws.append(["Pear", None, 2.5, date(2024, 5, 2)])
    # styled but empty trailing row
    ws.cell(row=5, column=1).fill = PatternFill("solid", fgColor="FFFF0000")

    other = wb.create_sheet("Notes")
    other.append(["Text"])
    other.append(["hello"])

    wb.create_sheet("Empty")
    return _workbook_bytes(wb)


class TestCellToText:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ""),
            (True, "TRUE"),
            (False, "FALSE"),
            (3, "3"),
            (3.0, "3"),
            (2.5, "2.5"),
            ("text", "text"),
            (date(2024, 5, 1), "2024-05-01"),
            (datetime(2024, 5, 1, 9, 30), "2024-05-01 09:30:00"),
            (time(9, 30), "09:30:00"),
        ],
    )
    def test_values(self, value, expected):
        assert cell_to_text(value) == expected


class TestReadXlsx:
    def test_all_sheets_in_order(self, data_workbook):
        tables = read_xlsx(data_workbook)
        assert list(tables) == ["Orders", "Notes", "Empty"]

    def test_headers_and_rows(self, data_workbook):
        table = read_xlsx(data_workbook)["Orders"]
        assert table.headers == ["Item", "Column 2", "Qty", "Date"]
        assert table.rows == [
            ["Apple", "red", "3", "2024-05-01"],
            ["Pear", "", "2.5", "2024-05-02"],
        ]

    def test_single_sheet(self, data_workbook):
        tables = read_xlsx(data_workbook, sheet="Notes")
        assert list(tables) == ["Notes"]
        assert tables["Notes"].rows == [["hello"]]

    def test_empty_sheet(self, data_workbook):
        table = read_xlsx(data_workbook, sheet="Empty")["Empty"]
        assert table.headers == ["Column 1"]
        assert table.rows == []

    def test_missing_sheet(self, data_workbook):
        with pytest.raises(DataReadError):
            read_xlsx(data_workbook, sheet="Nope")

    def test_not_an_xlsx(self):
        with pytest.raises(DataReadError):
            read_xlsx(b"not a workbook")

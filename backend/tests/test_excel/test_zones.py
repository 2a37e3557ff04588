"""
Tests for zone detection over parsed rows.
"""

import pytest

from xltemplate.excel.cells import Cell, CellRange, Row
from xltemplate.excel.errors import MalformedTemplate
from xltemplate.excel.sheet_xml import ColumnSpec
from xltemplate.excel.zones import (
    detect_zones,
    is_category_row,
    is_total_row,
    looks_like_caption_row,
)


def _row(number, *values, formulas=None, styles=None):
    formulas = formulas or {}
    styles = styles or {}
    cells = []
    for col, v in enumerate(values, start=1):
        if v is None and col not in formulas:
            continue
        cells.append(
            Cell(
                column=col,
                row=number,
                style_id=styles.get(col, 0),
                display_value="" if v is None else str(v),
                formula=formulas.get(col),
            )
        )
    return Row(number=number, cells=tuple(cells))


@pytest.fixture
def invoice_rows():
    return [
        _row(1, "INVOICE"),
        _row(2, "Date", "2024-01-01"),
        _row(5, "No.", "Item", "Qty"),
        _row(6, "1", "Apple", "10", styles={1: 3, 2: 4, 3: 5}),
        _row(7, "2", "Banana", "20", styles={1: 6, 2: 7, 3: 8}),
        _row(8, "3", "Cherry", "30", styles={1: 3, 2: 4, 3: 5}),
        _row(9, "Total", None, "", formulas={3: "SUM(C6:C8)"}),
    ]


class TestPredicates:
    def test_caption_row(self):
        assert looks_like_caption_row(_row(1, "STT", "Tên", "Số lượng"))
        assert looks_like_caption_row(_row(1, "#", "Name", "Qty"))

    def test_caption_row_needs_marker(self):
        assert not looks_like_caption_row(_row(1, "Id", "Name", "Qty"))

    def test_caption_row_rejects_long_text(self):
        assert not looks_like_caption_row(_row(1, "No.", "x" * 30, "Qty"))

    def test_caption_row_needs_three_filled(self):
        assert not looks_like_caption_row(_row(1, "No.", "", "Qty"))

    def test_total_row(self):
        assert is_total_row(_row(9, "Grand TOTAL"))
        assert is_total_row(_row(9, "合計"))
        assert is_total_row(_row(9, None, None, "", formulas={3: "sum(C1:C2)"}))
        assert not is_total_row(_row(9, "4", "Item"))

    def test_category_row(self):
        assert is_category_row(_row(7, "Fruit"))
        assert not is_category_row(_row(7, "12", "x"))
        assert not is_category_row(_row(7, " ", "x"))


class TestDetectZones:
    def test_invoice_layout(self, invoice_rows):
        zones = detect_zones(invoice_rows)

        assert zones.caption_row.row_number == 5
        assert not zones.caption_row.fallback
        assert zones.captions == ("No.", "Item", "Qty")
        assert [r.number for r in zones.header_rows] == [1, 2]
        assert zones.data_zone.start_row == 6
        assert zones.data_zone.end_row == 8
        assert [r.number for r in zones.footer_rows] == [9]
        assert zones.footer_start == 9
        assert zones.max_column == 3

    def test_style_patterns_alternate(self, invoice_rows):
        zones = detect_zones(invoice_rows)
        patterns = zones.data_zone.patterns
        assert len(patterns) == 2
        assert patterns[0].style_for(2) == 4
        assert patterns[1].style_for(2) == 7
        assert patterns[0].style_for(9) == 0

    def test_single_example_row(self):
        rows = [_row(1, "No.", "Item", "Qty"), _row(2, "1", "a", "1"), _row(3, "Total")]
        zone = detect_zones(rows).data_zone
        assert len(zone.example_rows) == 1
        assert len(zone.patterns) == 1

    def test_examples_capped_at_four(self):
        rows = [_row(1, "No.", "Item", "Qty")] + [_row(i, str(i), "x", "1") for i in range(2, 10)]
        zone = detect_zones(rows).data_zone
        assert len(zone.data_rows) == 8
        assert len(zone.example_rows) == 4

    def test_category_rows_inside_data(self):
        rows = [
            _row(1, "No.", "Item", "Qty"),
            _row(2, "1", "a", "1"),
            _row(3, "Vegetables"),
            _row(4, "2", "b", "2"),
            _row(5, "Subtotal", None, "3"),
        ]
        zone = detect_zones(rows).data_zone
        assert zone.start_row == 2
        assert zone.end_row == 4
        assert [r.number for r in zone.category_rows] == [3]
        assert [r.number for r in zone.data_rows] == [2, 4]

    def test_sub_caption_rows_skipped(self):
        rows = [
            _row(1, "No.", "Item", "Qty"),
            _row(2, "", "(kg)", "(pcs)"),
            _row(3, "1", "a", "1"),
        ]
        zones = detect_zones(rows)
        assert zones.data_zone.start_row == 3
        assert zones.footer_rows == ()

    def test_fallback_widest_row(self):
        rows = [
            _row(1, "Report"),
            _row(2, "Id", "Name", "City", "Score"),
            _row(3, "1", "Ann", "Paris", "10"),
            _row(4, "2", "Bob", "Oslo"),
        ]
        zones = detect_zones(rows)
        assert zones.caption_row.fallback
        assert zones.caption_row.row_number == 2
        assert zones.data_zone.start_row == 3
        assert zones.data_zone.end_row == 4
        assert zones.footer_rows == ()

    def test_nothing_after_caption(self):
        rows = [_row(1, "Title"), _row(2, "No.", "Item", "Qty")]
        zones = detect_zones(rows)
        zone = zones.data_zone
        assert zone.start_row == 4
        assert zone.end_row == 3
        assert zone.is_empty
        assert zone.example_rows == ()

    def test_total_right_after_caption(self):
        rows = [_row(1, "No.", "Item", "Qty"), _row(2, "Total", None, "0")]
        zone = detect_zones(rows).data_zone
        assert zone.example_rows == ()

    def test_empty_sheet(self):
        with pytest.raises(MalformedTemplate):
            detect_zones([])

    def test_widths_and_merges_carried(self, invoice_rows):
        zones = detect_zones(
            invoice_rows,
            merges=[CellRange.from_ref("A1:C1")],
            columns=[ColumnSpec(first=1, last=2, width=12.5), ColumnSpec(first=3, last=9, width=8)],
        )
        assert zones.column_widths == {1: 12.5, 2: 12.5, 3: 8}
        assert zones.merged_ranges == (CellRange(1, 1, 3, 1),)

import pytest

from xltemplate.excel.workbook import MAX_SHEET_NAME, sanitize_sheet_name


class TestSanitizeSheetName:
    def test_valid_name_unchanged(self):
        assert sanitize_sheet_name("May 2024") == "May 2024"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("a/b", "a_b"),
            ("a\\b", "a_b"),
            ("Q1: [draft]", "Q1_ _draft_"),
            ("what?*", "what__"),
        ],
    )
    def test_forbidden_characters_replaced(self, raw, expected):
        assert sanitize_sheet_name(raw) == expected

    def test_truncated_to_excel_limit(self):
        name = sanitize_sheet_name("Quarterly report for the northern region")
        assert len(name) == MAX_SHEET_NAME
        assert name == "Quarterly report for the northe"

    def test_apostrophes_at_edges_removed(self):
        assert sanitize_sheet_name("'Sales'") == "Sales"
        assert sanitize_sheet_name("Bob's") == "Bob's"

    @pytest.mark.parametrize("raw", ["", "   ", "''"])
    def test_nothing_left(self, raw):
        assert sanitize_sheet_name(raw) is None

    def test_clash_with_other_sheet(self):
        assert sanitize_sheet_name("summary", taken=("Data", "Summary")) is None
        assert sanitize_sheet_name("Totals", taken=("Data", "Summary")) == "Totals"

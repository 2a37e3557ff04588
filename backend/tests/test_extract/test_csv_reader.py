"""
Tests for the CSV data reader.
"""

import pytest

from xltemplate.extract.csv_reader import detect_delimiter, read_csv
from xltemplate.extract.errors import DataReadError


class TestDetectDelimiter:
    def test_comma_default(self):
        assert detect_delimiter("Name,Qty,Price") == ","
        assert detect_delimiter("Name") == ","

    def test_tab(self):
        assert detect_delimiter("Name\tQty\tPrice") == "\t"

    def test_semicolon(self):
        assert detect_delimiter("Name;Qty;Price,EUR") == ";"

    def test_tie_keeps_comma(self):
        assert detect_delimiter("a;b,c") == ","


class TestReadCsv:
    def test_basic(self):
        table = read_csv(b"Name,Qty\nApple,3\nBanana,5\n")
        assert table.name == "Sheet1"
        assert table.headers == ["Name", "Qty"]
        assert table.rows == [["Apple", "3"], ["Banana", "5"]]
        assert table.width == 2

    def test_semicolon_and_tab_files(self):
        assert read_csv(b"a;b\n1;2").rows == [["1", "2"]]
        assert read_csv(b"a\tb\n1\t2").rows == [["1", "2"]]

    def test_bom_is_stripped(self):
        table = read_csv("\ufeffName,Qty\nApple,3\n".encode("utf-8"))
        assert table.headers == ["Name", "Qty"]

    def test_str_input_with_bom(self):
        table = read_csv("\ufeffName,Qty\nApple,3\n")
        assert table.headers[0] == "Name"

    def test_cp1252_fallback(self):
        table = read_csv(b"Name\nCaf\xe9\n")
        assert table.rows == [["Café"]]

    def test_blank_lines_and_trimming(self):
        table = read_csv(b" Name , Qty \n\n  Apple , 3 \n   \nPear,1\n")
        assert table.headers == ["Name", "Qty"]
        assert table.rows == [["Apple", "3"], ["Pear", "1"]]

    def test_rows_padded_and_cut_to_header_width(self):
        table = read_csv(b"a,b,c\n1\n1,2,3,4\n")
        assert table.rows == [["1", "", ""], ["1", "2", "3"]]

    def test_quoted_delimiter(self):
        table = read_csv(b'Name,Note\nApple,"red, sweet"\n')
        assert table.rows == [["Apple", "red, sweet"]]

    def test_quoted_value_with_blank_line(self):
        table = read_csv(b'a,b\n1,"line1\n\nline3"\n\n2,x\n')
        assert table.rows == [["1", "line1\n\nline3"], ["2", "x"]]

    def test_crlf_line_endings(self):
        table = read_csv(b"Name,Qty\r\nApple,3\r\n\r\nPear,1\r\n")
        assert table.rows == [["Apple", "3"], ["Pear", "1"]]

    def test_header_only(self):
        table = read_csv(b"Name,Qty\n")
        assert table.rows == []

    @pytest.mark.parametrize("data", [b"", b"\n\n  \n"])
    def test_empty_file(self, data):
        with pytest.raises(DataReadError):
            read_csv(data)

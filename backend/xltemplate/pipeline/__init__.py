"""
Pipeline - Data file to filled template.

Components:
- column_mapping: Match template captions with data headers
- data_to_xlsx: Read a data file and generate the XLSX from a template
- data_to_plain_xlsx: Read a data file and export it in the built-in layout
"""

from .column_mapping import build_column_mapping, map_rows, string_similarity
from .data_to_plain_xlsx import build_plain_xlsx_from_data
from .data_to_xlsx import build_xlsx_from_data, load_data_table, rows_for_template

__all__ = [
    "build_column_mapping",
    "build_plain_xlsx_from_data",
    "build_xlsx_from_data",
    "load_data_table",
    "map_rows",
    "rows_for_template",
    "string_similarity",
]

from __future__ import annotations

import csv
import io
import logging
from typing import List, Union

from .errors import DataReadError
from .types import DataTable

logger = logging.getLogger(__name__)

CSV_SHEET_NAME = "Sheet1"


def _decode(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        return data.lstrip("\ufeff")
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise DataReadError("CSV file is not valid UTF-8 / cp1252 text")


def detect_delimiter(header_line: str) -> str:
    """
    Pick the delimiter from the header line:
    tab or semicolon when they outnumber commas, comma otherwise.
    """
    commas = header_line.count(",")
    tabs = header_line.count("\t")
    semis = header_line.count(";")
    if tabs > commas:
        return "\t"
    if semis > commas:
        return ";"
    return ","


def read_csv(data: Union[bytes, str]) -> DataTable:
    """
    CSV text -> DataTable.

    Blank lines are skipped, values are trimmed and every row is padded /
    cut to the header width.
    """
    text = _decode(data)
    header_line = next((ln for ln in text.splitlines() if ln.strip()), None)
    if header_line is None:
        raise DataReadError("CSV file is empty")

    delimiter = detect_delimiter(header_line)
    try:
        # quoted values may span blank lines
        parsed = [
            r
            for r in csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
            if any(v.strip() for v in r)
        ]
    except csv.Error as e:
        raise DataReadError(f"Cannot parse CSV: {e}") from e
    if not parsed:
        raise DataReadError("CSV file is empty")

    headers = [h.strip() for h in parsed[0]]
    rows: List[List[str]] = []
    for raw in parsed[1:]:
        row = [v.strip() for v in raw][: len(headers)]
        row.extend([""] * (len(headers) - len(row)))
        rows.append(row)

    logger.debug("csv: delimiter=%r columns=%d rows=%d", delimiter, len(headers), len(rows))
    return DataTable(name=CSV_SHEET_NAME, headers=headers, rows=rows)

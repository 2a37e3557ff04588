from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Tuple, Union

from openpyxl.utils.cell import (
    column_index_from_string,
    coordinate_from_string,
    get_column_letter,
    range_boundaries,
)

from ..normalize.numbers import is_numeric, to_float

# ---------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------


def column_letter(col: int) -> str:
    return get_column_letter(col)


def column_number(letters: str) -> int:
    return column_index_from_string(letters.upper())


def split_ref(ref: str) -> Tuple[int, int]:
    """"C12" -> (3, 12). "$C$12" is accepted as well."""
    letters, row = coordinate_from_string(ref.replace("$", ""))
    return column_index_from_string(letters), int(row)


def make_ref(col: int, row: int) -> str:
    return f"{get_column_letter(col)}{row}"


@dataclass(frozen=True)
class CellRange:
    """Two-corner block: merges, auto-filter extents, CF scopes."""

    start_col: int
    start_row: int
    end_col: int
    end_row: int

    @classmethod
    def from_ref(cls, ref: str) -> "CellRange":
        if ":" not in ref:
            col, row = split_ref(ref)
            return cls(col, row, col, row)
        min_col, min_row, max_col, max_row = range_boundaries(ref.replace("$", ""))
        if min_row is None or max_row is None or min_col is None or max_col is None:
            raise ValueError(f"not a two-corner range: {ref!r}")
        return cls(min_col, min_row, max_col, max_row)

    @property
    def ref(self) -> str:
        return f"{make_ref(self.start_col, self.start_row)}:{make_ref(self.end_col, self.end_row)}"

    def with_rows(self, start_row: int, end_row: int) -> "CellRange":
        return CellRange(self.start_col, start_row, self.end_col, end_row)

    def overlaps_rows(self, first: int, last: int) -> bool:
        return self.start_row <= last and self.end_row >= first

    def __str__(self) -> str:
        return self.ref


# ---------------------------------------------------------------------
# Parsed grid
# ---------------------------------------------------------------------

# <c t="..."> values; a missing t means number.
SHARED_STRING = "s"
INLINE_STRING = "inlineStr"
NUMBER = "n"
BOOLEAN = "b"
FORMULA_STRING = "str"
ERROR = "e"


@dataclass(frozen=True)
class Cell:
    column: int
    row: int
    style_id: int = 0
    type: str = NUMBER
    raw_value: str = ""
    display_value: str = ""
    formula: Optional[str] = None

    @property
    def reference(self) -> str:
        return make_ref(self.column, self.row)

    @property
    def is_blank(self) -> bool:
        return self.display_value.strip() == ""


@dataclass(frozen=True)
class Row:
    number: int
    cells: Tuple[Cell, ...] = ()
    height: Optional[float] = None
    hidden: bool = False

    @property
    def first_cell(self) -> Optional[Cell]:
        return self.cells[0] if self.cells else None

    def cell(self, column: int) -> Optional[Cell]:
        for c in self.cells:
            if c.column == column:
                return c
        return None

    @property
    def last_column(self) -> int:
        return max((c.column for c in self.cells), default=0)


# ---------------------------------------------------------------------
# Values going into synthesized cells
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Formula:
    text: str
    cached: Optional[str] = None


CellValue = Union[Empty, Number, Text, Formula]

EMPTY = Empty()


def classify_value(value: Any) -> CellValue:
    """
    Turn an incoming value (csv text, openpyxl value, JSON scalar) into a
    CellValue. Strings are never promoted to formulas: callers that want a
    formula pass a Formula instance.
    """
    if isinstance(value, (Empty, Number, Text, Formula)):
        return value
    if value is None:
        return EMPTY
    if isinstance(value, bool):
        return Text("TRUE" if value else "FALSE")
    if isinstance(value, (int, float, Decimal)) and is_numeric(value):
        return Number(float(value))
    s = str(value)
    if s == "":
        return EMPTY
    if is_numeric(s):
        return Number(to_float(s))
    return Text(s)

"""Row-shift arithmetic over formula text and range references.

Pure text rewriting over cell / range tokens; formulas are never parsed
or evaluated. Known blind spots:
  - absolute and relative references are shifted alike
  - references into other sheets, structured table references and
    defined-name usages are left alone
  - whole-row / whole-column references ($5:$9, C:C) are left alone
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .cells import CellRange, column_letter

# Sheet prefix (quoted or bare), first corner, optional second corner.
_REF_RE = re.compile(
    r"""
    (?<![A-Za-z0-9_.$'!\]])
    (?P<sheet>'(?:[^']|'')+'!|[A-Za-z_À-￿][\w.À-￿]*!)?
    (?P<c1>\$?[A-Z]{1,3})(?P<r1>\$?\d+)
    (?::(?P<c2>\$?[A-Z]{1,3})(?P<r2>\$?\d+))?
    (?![A-Za-z0-9_(!\[])
    """,
    re.VERBOSE,
)

_STRING_LITERAL_RE = re.compile(r'"(?:[^"]|"")*"')

_SQREF_RANGE_RE = re.compile(r"([A-Z]+)(\d+):([A-Z]+)(\d+)")


@dataclass(frozen=True)
class RowShift:
    """
    Geometry of one data-zone replacement.

    data_start..data_end is the original data span, footer_start the first
    row after it, new_data_end the last row of the new data span.
    """

    data_start: int
    data_end: int
    footer_start: int
    new_data_end: int

    @property
    def delta(self) -> int:
        return self.new_data_end - self.data_end

    def moved(self, row: int) -> int:
        """Row number after the rewrite for a row kept from the original."""
        return row + self.delta if row >= self.footer_start else row

    def range_rows(self, r1: int, r2: int) -> tuple[int, int]:
        """
        Two-corner rule:
          - before the data span: untouched
          - touching the data span: re-spanned to the new data span
          - at / after the footer start: moved with the footer
        With no data rows left, a range inside the data span shrinks to the
        row just above it (SUM(C6:C8) -> SUM(C5:C5)).
        """
        if r2 < self.data_start:
            return r1, r2
        if r1 >= self.footer_start:
            return r1 + self.delta, r2 + self.delta
        new_r2 = r2 + self.delta if r2 >= self.footer_start else self.new_data_end
        new_r1 = r1
        if r1 >= self.data_start and r1 > self.new_data_end:
            new_r1 = max(self.data_start, self.new_data_end)
        if new_r2 < new_r1:
            # empty data span: the row above it, never a reversed range
            new_r1 = new_r2
        return new_r1, new_r2


def quote_sheet(name: str) -> str:
    if re.fullmatch(r"[A-Za-z_][A-Za-z0-9_.]*", name) and not re.fullmatch(
        r"[A-Za-z]{1,3}\d+", name
    ):
        return name
    return "'" + name.replace("'", "''") + "'"


def _unquote_sheet(prefix: str) -> str:
    name = prefix[:-1]
    if name.startswith("'") and name.endswith("'"):
        name = name[1:-1].replace("''", "'")
    return name


def _with_row(row_token: str, row: int) -> str:
    return ("$" if row_token.startswith("$") else "") + str(row)


def _row_of(row_token: str) -> int:
    return int(row_token.lstrip("$"))


def shift_formula(
    text: str,
    shift: RowShift,
    *,
    sheet_name: Optional[str] = None,
    qualified_only: bool = False,
    rename_to: Optional[str] = None,
) -> str:
    """
    Rewrite cell / range tokens of a formula for a data-zone replacement.

      SUM(C6:C8) with data 6..8 -> 6..10           -> SUM(C6:C10)
      C9*0.1 with footer from row 9, delta +2      -> C11*0.1

    `sheet_name` marks which sheet prefix counts as "this sheet"; tokens
    qualified with any other sheet stay as they are. `qualified_only`
    restricts rewriting to tokens carrying this sheet's prefix (defined
    names). `rename_to` replaces this sheet's prefix.
    """

    def _token(m: re.Match) -> str:
        sheet = m.group("sheet")
        if sheet is not None:
            if sheet_name is None or _unquote_sheet(sheet) != sheet_name:
                return m.group(0)
            prefix = (quote_sheet(rename_to) + "!") if rename_to else sheet
        else:
            if qualified_only:
                return m.group(0)
            prefix = ""

        c1, r1 = m.group("c1"), m.group("r1")
        if m.group("r2") is None:
            row = _row_of(r1)
            return f"{prefix}{c1}{_with_row(r1, shift.moved(row))}"

        c2, r2 = m.group("c2"), m.group("r2")
        new1, new2 = shift.range_rows(_row_of(r1), _row_of(r2))
        return f"{prefix}{c1}{_with_row(r1, new1)}:{c2}{_with_row(r2, new2)}"

    # keep string literals verbatim
    out = []
    pos = 0
    for lit in _STRING_LITERAL_RE.finditer(text):
        out.append(_REF_RE.sub(_token, text[pos:lit.start()]))
        out.append(lit.group(0))
        pos = lit.end()
    out.append(_REF_RE.sub(_token, text[pos:]))
    return "".join(out)


# ---------------------------------------------------------------------
# Structural ranges (merges, filters, CF scopes)
# ---------------------------------------------------------------------


def shift_merge(rng: CellRange, shift: RowShift) -> Optional[CellRange]:
    """
    Merge reconciliation; None means the merge is dropped.
      - starting at / after the footer: moved
      - ending above the data span: untouched
      - starting inside the data span: dropped (its anchor cell is gone)
      - from above the data span into the footer: end moved
      - from above the data span into it: cut back to the last row
        before the data span, dropped if one cell is left
    No surviving merge covers a row of the new data span.
    """
    if rng.start_row >= shift.footer_start:
        return rng.with_rows(rng.start_row + shift.delta, rng.end_row + shift.delta)
    if rng.end_row < shift.data_start:
        return rng
    if rng.start_row >= shift.data_start:
        return None
    if rng.end_row >= shift.footer_start:
        return rng.with_rows(rng.start_row, rng.end_row + shift.delta)
    cut = rng.with_rows(rng.start_row, shift.data_start - 1)
    if cut.start_row == cut.end_row and cut.start_col == cut.end_col:
        return None
    return cut


def shift_sqref(sqref: str, shift: RowShift) -> str:
    """
    Auto-filter / conditional-formatting scope: a range ending at or after
    the original data end gets its end row moved; one starting at or after
    the footer start moves as a whole. Single cells are left alone. A range
    lying inside a data span that became empty is dropped, so the result
    may be "".
    """
    kept = []
    for token in sqref.split():
        m = _SQREF_RANGE_RE.fullmatch(token)
        if m is None:
            kept.append(token)
            continue
        c1, r1, c2, r2 = m.group(1), int(m.group(2)), m.group(3), int(m.group(4))
        if r2 < shift.data_end:
            kept.append(token)
            continue
        if r1 >= shift.footer_start:
            r1 += shift.delta
        r2 += shift.delta
        if r2 < r1:
            continue
        kept.append(f"{c1}{r1}:{c2}{r2}")
    return " ".join(kept)


def shift_cell_ref(ref: str, shift: RowShift) -> str:
    """Shared-formula `ref` attribute (single cell or range) of a moved row."""
    if ":" in ref:
        try:
            rng = CellRange.from_ref(ref)
        except ValueError:
            return ref
        return rng.with_rows(shift.moved(rng.start_row), shift.moved(rng.end_row)).ref
    m = re.fullmatch(r"([A-Z]+)(\d+)", ref)
    if not m:
        return ref
    return f"{m.group(1)}{shift.moved(int(m.group(2)))}"


def dimension_ref(max_column: int, last_row: int) -> str:
    return f"A1:{column_letter(max(1, max_column))}{max(1, last_row)}"


def rename_sheet_prefix(text: str, old: str, new: str) -> str:
    """Swap every `old!` / `'old'!` prefix for the new sheet name, string literals aside."""
    pattern = re.compile(
        r"(?<![\w.'])(?:'" + re.escape(old.replace("'", "''")) + r"'|" + re.escape(old) + r")!"
    )
    replacement = quote_sheet(new) + "!"
    out = []
    pos = 0
    for lit in _STRING_LITERAL_RE.finditer(text):
        out.append(pattern.sub(lambda m: replacement, text[pos:lit.start()]))
        out.append(lit.group(0))
        pos = lit.end()
    out.append(pattern.sub(lambda m: replacement, text[pos:]))
    return "".join(out)

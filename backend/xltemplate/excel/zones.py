from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..normalize.numbers import parses_as_integer
from .cells import CellRange, Row
from .errors import MalformedTemplate
from .sheet_xml import ColumnSpec

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------
# Heuristic constants
# ---------------------------------------------------------------------

CAPTION_SCAN_ROWS = 30
FALLBACK_SCAN_ROWS = 20
CAPTION_MIN_CELLS = 3
CAPTION_MAX_TEXT = 30
MAX_EXAMPLE_ROWS = 4

# Sequence-number column captions, compared trimmed + lower-cased.
SEQUENCE_MARKERS = frozenset(
    {
        "no.",
        "no",
        "stt",
        "#",
        "番号",
        "№",
        "n°",
        "nr.",
    }
)

# Substrings (lower-cased) that make a row a totals row.
TOTAL_MARKERS = (
    "小計",
    "合計",
    "subtotal",
    "total",
    "tổng",
    "消費税",
)


@dataclass(frozen=True)
class CaptionRow:
    row_number: int
    captions: Tuple[str, ...]  # one per column 1..max_column
    row: Row
    fallback: bool = False


@dataclass(frozen=True)
class StylePattern:
    """Per-column style ids sampled from one example data row."""

    row_number: int
    height: Optional[float]
    styles: Dict[int, int] = field(default_factory=dict)

    def style_for(self, column: int) -> int:
        return self.styles.get(column, 0)


@dataclass(frozen=True)
class DataZone:
    start_row: int
    end_row: int
    data_rows: Tuple[Row, ...] = ()
    example_rows: Tuple[Row, ...] = ()
    category_rows: Tuple[Row, ...] = ()

    @property
    def span(self) -> int:
        return max(0, self.end_row - self.start_row + 1)

    @property
    def is_empty(self) -> bool:
        return self.end_row < self.start_row

    @property
    def patterns(self) -> Tuple[StylePattern, ...]:
        """Alternating (length 2) when two or more examples exist, else one."""
        cycle = 2 if len(self.example_rows) >= 2 else 1
        return tuple(
            StylePattern(
                row_number=r.number,
                height=r.height,
                styles={c.column: c.style_id for c in r.cells},
            )
            for r in self.example_rows[:cycle]
        )

    def contains(self, row_number: int) -> bool:
        return self.start_row <= row_number <= self.end_row


@dataclass(frozen=True)
class ZoneMap:
    header_rows: Tuple[Row, ...]
    caption_row: CaptionRow
    data_zone: DataZone
    footer_rows: Tuple[Row, ...]
    merged_ranges: Tuple[CellRange, ...]
    column_widths: Dict[int, float]
    max_column: int

    @property
    def footer_start(self) -> int:
        if self.footer_rows:
            return self.footer_rows[0].number
        return self.data_zone.end_row + 1

    @property
    def captions(self) -> Tuple[str, ...]:
        return self.caption_row.captions


# ---------------------------------------------------------------------
# Row predicates
# ---------------------------------------------------------------------


def _first_value(row: Row) -> str:
    first = row.first_cell
    return first.display_value if first is not None else ""


def starts_with_sequence_number(row: Row) -> bool:
    return parses_as_integer(_first_value(row))


def is_total_row(row: Row) -> bool:
    for c in row.cells:
        if c.formula and "SUM" in c.formula.upper():
            return True
        text = c.display_value.lower()
        if text and any(m in text for m in TOTAL_MARKERS):
            return True
    return False


def is_category_row(row: Row) -> bool:
    """
    Non-numeric first cell inside the data range, with visible text.

    A legitimately blank leading column is not told apart from a divider;
    the heuristic stays as it is so accepted template shapes don't move.
    """
    if starts_with_sequence_number(row):
        return False
    return _first_value(row).strip() != ""


def looks_like_caption_row(row: Row) -> bool:
    if len(row.cells) < CAPTION_MIN_CELLS:
        return False
    texts = [c.display_value for c in row.cells]
    if any(len(t) >= CAPTION_MAX_TEXT for t in texts):
        return False
    if sum(1 for t in texts if t) < CAPTION_MIN_CELLS:
        return False
    return any(t.strip().lower() in SEQUENCE_MARKERS for t in texts)


# ---------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------


def _find_caption_index(rows: Sequence[Row]) -> Tuple[int, bool]:
    for i, r in enumerate(rows[:CAPTION_SCAN_ROWS]):
        if i + 1 < len(rows) and rows[i + 1].cells and looks_like_caption_row(r):
            return i, False

    best, best_count = -1, 0
    for i, r in enumerate(rows[:FALLBACK_SCAN_ROWS]):
        if len(r.cells) > best_count:
            best, best_count = i, len(r.cells)
    return best, True


def _expand_widths(columns: Sequence[ColumnSpec], max_column: int) -> Dict[int, float]:
    widths: Dict[int, float] = {}
    for spec in columns:
        if spec.width is None:
            continue
        for col in range(spec.first, min(spec.last, max_column) + 1):
            widths[col] = spec.width
    return widths


def detect_zones(
    rows: Sequence[Row],
    *,
    merges: Sequence[CellRange] = (),
    columns: Sequence[ColumnSpec] = (),
) -> ZoneMap:
    """
    Split a template sheet into header / caption / data / footer.

    Raises MalformedTemplate when no row can serve as the caption row,
    which only happens for a sheet without any cells in its first rows.
    """
    rows = list(rows)
    caption_idx, fallback = _find_caption_index(rows)
    if caption_idx < 0:
        raise MalformedTemplate("no column caption row found")

    caption = rows[caption_idx]
    max_column = caption.last_column
    captions = tuple(
        (caption.cell(col).display_value if caption.cell(col) else "")
        for col in range(1, max_column + 1)
    )
    if fallback:
        logger.debug("caption row: no marker found, widest row %d used", caption.number)

    # data start: first integer-led row after the caption
    start_idx = caption_idx + 1
    while start_idx < len(rows) and not starts_with_sequence_number(rows[start_idx]):
        start_idx += 1

    if start_idx >= len(rows):
        zone = DataZone(start_row=caption.number + 2, end_row=caption.number + 1)
        footer: Tuple[Row, ...] = tuple(rows[caption_idx + 1:])
    else:
        end_idx = len(rows) - 1
        for i in range(start_idx, len(rows)):
            if is_total_row(rows[i]):
                end_idx = i - 1
                break

        in_zone = rows[start_idx:end_idx + 1]
        data_rows: List[Row] = []
        category_rows: List[Row] = []
        for r in in_zone:
            if starts_with_sequence_number(r):
                data_rows.append(r)
            elif is_category_row(r):
                category_rows.append(r)

        start_row = rows[start_idx].number
        end_row = rows[end_idx].number if end_idx >= start_idx else start_row - 1
        zone = DataZone(
            start_row=start_row,
            end_row=end_row,
            data_rows=tuple(data_rows),
            example_rows=tuple(data_rows[:MAX_EXAMPLE_ROWS]),
            category_rows=tuple(category_rows),
        )
        footer = tuple(rows[end_idx + 1:])

    zones = ZoneMap(
        header_rows=tuple(rows[:caption_idx]),
        caption_row=CaptionRow(
            row_number=caption.number,
            captions=captions,
            row=caption,
            fallback=fallback,
        ),
        data_zone=zone,
        footer_rows=footer,
        merged_ranges=tuple(merges),
        column_widths=_expand_widths(columns, max_column),
        max_column=max_column,
    )
    logger.info(
        "zones: caption=%d data=%d..%d (%d rows, %d categories) footer=%d rows",
        caption.number,
        zone.start_row,
        zone.end_row,
        len(zone.data_rows),
        len(zone.category_rows),
        len(footer),
    )
    return zones

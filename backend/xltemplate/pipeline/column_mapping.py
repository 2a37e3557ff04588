from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..extract.types import DataTable

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.3

# -1 in a mapping leaves that template column empty
UNMAPPED = -1


def _bigrams(s: str) -> set[str]:
    return {s[i:i + 2] for i in range(len(s) - 1)}


def string_similarity(a: str, b: str) -> float:
    """
    Caption / header likeness in [0, 1]:
      - equal                       -> 1.0
      - one contains the other      -> 0.8
      - otherwise Jaccard over character bigrams
    Callers lower-case both sides.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    if a in b or b in a:
        return 0.8
    ba, bb = _bigrams(a), _bigrams(b)
    union = len(ba | bb)
    if union == 0:
        return 0.0
    return len(ba & bb) / union


def build_column_mapping(
    captions: Sequence[str],
    headers: Sequence[str],
    threshold: float = DEFAULT_THRESHOLD,
) -> List[int]:
    """
    For every template caption column, the index of the best matching data
    header, or UNMAPPED. Empty captions are never mapped; ties keep the
    first header; a score must exceed `threshold` to count.
    """
    lowered = [str(h).lower() for h in headers]
    mapping: List[int] = []
    for caption in captions:
        text = str(caption).strip()
        if not text:
            mapping.append(UNMAPPED)
            continue
        best, best_score = UNMAPPED, 0.0
        for i, h in enumerate(lowered):
            score = string_similarity(text.lower(), h)
            if score > best_score:
                best, best_score = i, score
        mapping.append(best if best_score > threshold else UNMAPPED)

    logger.debug("column mapping: %s", mapping)
    return mapping


def validate_mapping(mapping: Sequence[int], column_count: int, header_count: int) -> List[int]:
    """Check a caller-supplied mapping against the template and data widths."""
    if len(mapping) != column_count:
        raise ValueError(
            f"mapping has {len(mapping)} entries, template has {column_count} columns"
        )
    out: List[int] = []
    for i, idx in enumerate(mapping):
        idx = int(idx)
        if idx != UNMAPPED and not 0 <= idx < header_count:
            raise ValueError(f"mapping[{i}] = {idx} is not a data column index")
        out.append(idx)
    return out


def map_rows(table: DataTable, mapping: Optional[Sequence[int]]) -> List[List[str]]:
    """Rows of `table` re-ordered into template column order."""
    if mapping is None:
        return [list(r) for r in table.rows]
    out: List[List[str]] = []
    for row in table.rows:
        out.append([row[idx] if 0 <= idx < len(row) else "" for idx in mapping])
    return out

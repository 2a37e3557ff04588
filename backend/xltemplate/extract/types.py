from __future__ import annotations

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class DataTable:
    """One sheet of input data: first row as headers, the rest as text rows."""

    name: str
    headers: List[str]
    rows: List[List[str]]

    @property
    def width(self) -> int:
        return len(self.headers)

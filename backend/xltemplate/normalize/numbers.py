from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any

# Lexical form of xsd:double without INF/NaN, i.e. what may go into <v> as is.
#  - "12", "-3.5", ".5", "5.", "1e3", "+2E-4"
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")

# Leading integer, the way a first "No." cell is read ("1", "12.", "3a").
_LEADING_INT_RE = re.compile(r"^\s*[+-]?\d+")


def is_numeric(value: Any) -> bool:
    """
    The one "looks numeric" predicate.

    Used by zone detection, cell synthesis and field updates alike, so a
    value is typed the same way everywhere:
      - int / float / Decimal -> True (bool is not a number here)
      - str -> True when the stripped text is a plain decimal number
      - anything else (None, "", "12 kg", "1,5", "1e400") -> False
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal)):
        try:
            return math.isfinite(float(value))
        except OverflowError:
            return False
    if value is None:
        return False
    s = str(value).strip()
    if not s:
        return False
    if not _NUMBER_RE.match(s):
        return False
    # "1e400" is well-formed but has no finite double
    return math.isfinite(float(s))


def parses_as_integer(text: Any) -> bool:
    """True when the text starts with an integer (sequence-number cells)."""
    if text is None:
        return False
    return bool(_LEADING_INT_RE.match(str(text)))


def to_float(value: Any) -> float:
    if not is_numeric(value):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    return float(str(value).strip())


def format_number(value: float) -> str:
    """
    Render a number for a <v> node:
      3.0 -> "3", 0.1 -> "0.1", 1e20 -> "100000000000000000000"
    """
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    return repr(float(value))

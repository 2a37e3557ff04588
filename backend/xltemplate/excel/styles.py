from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from openpyxl.styles import PatternFill, Side

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------
# Base typography / number formats
# ---------------------------------------------------------------------

FONT_NAME = "Arial"

NUMBER_FMT = "#,##0.##"

TEXT_COLOR = "FF333333"
DATE_COLOR = "FF666666"

# ---------------------------------------------------------------------
# Row heights of the plain export layout
# ---------------------------------------------------------------------

TITLE_HEIGHT = 30.0
DATE_HEIGHT = 20.0
SPACER_HEIGHT = 6.0
HEADER_HEIGHT = 24.0
DATA_HEIGHT = 20.0

# ---------------------------------------------------------------------
# Column widths
# ---------------------------------------------------------------------

FIXED_WIDTH = 15.0
MIN_WIDTH = 10
MAX_WIDTH = 50
WIDTH_PADDING = 3

# ---------------------------------------------------------------------
# Themes (ARGB)
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class Theme:
    name: str
    header_fill: str
    header_font: str
    even_fill: str
    odd_fill: str
    border_color: str
    title_color: str

    @property
    def header_pattern(self) -> PatternFill:
        return PatternFill("solid", fgColor=self.header_fill)

    @property
    def even_pattern(self) -> PatternFill:
        return PatternFill("solid", fgColor=self.even_fill)

    @property
    def odd_pattern(self) -> PatternFill:
        return PatternFill("solid", fgColor=self.odd_fill)

    @property
    def border_side(self) -> Side:
        return Side(style="thin", color=self.border_color)


THEMES: Dict[str, Theme] = {
    "professional": Theme(
        name="professional",
        header_fill="FF1E3A5F",
        header_font="FFFFFFFF",
        even_fill="FFEEF2F7",
        odd_fill="FFFFFFFF",
        border_color="FFD0D5DD",
        title_color="FF1E3A5F",
    ),
    "modern": Theme(
        name="modern",
        header_fill="FF6366F1",
        header_font="FFFFFFFF",
        even_fill="FFF0EDFF",
        odd_fill="FFFFFFFF",
        border_color="FFE0DEFF",
        title_color="FF6366F1",
    ),
    "classic": Theme(
        name="classic",
        header_fill="FF2D5016",
        header_font="FFFFFFFF",
        even_fill="FFECF5E8",
        odd_fill="FFFFFFFF",
        border_color="FFC8E6C9",
        title_color="FF2D5016",
    ),
    "minimal": Theme(
        name="minimal",
        header_fill="FF374151",
        header_font="FFFFFFFF",
        even_fill="FFF3F4F6",
        odd_fill="FFFFFFFF",
        border_color="FFE5E7EB",
        title_color="FF374151",
    ),
}

DEFAULT_THEME = "professional"


def get_theme(name: str) -> Theme:
    """Theme by name; unknown names fall back to the default theme."""
    theme = THEMES.get((name or "").strip().lower())
    if theme is None:
        logger.warning("unknown theme %r, using %s", name, DEFAULT_THEME)
        return THEMES[DEFAULT_THEME]
    return theme

from __future__ import annotations


class ExtractError(Exception):
    """Base error for reading CSV / XLSX data files."""


class DataReadError(ExtractError):
    pass

"""XLSX template transplant: fill a human-authored spreadsheet template with new data rows."""

__version__ = "0.1.0"

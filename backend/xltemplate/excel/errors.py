from __future__ import annotations


class TemplateError(Exception):
    """Base error for template analysis / generation."""


class MalformedTemplate(TemplateError):
    """Required part or element is missing, or no caption row can be anchored."""


class NoStylePattern(TemplateError):
    """The template has no example data rows to take row styling from."""


class ArchiveIOError(TemplateError):
    """The container itself cannot be read or written."""

"""
Services layer - Business logic orchestration.

This layer coordinates between the template engine, stored files and
the external PDF converter.
"""

from .template_service import ProcessingError, TemplateNotFound, TemplateService

__all__ = [
    "ProcessingError",
    "TemplateNotFound",
    "TemplateService",
]

"""
Schemas - Pydantic models for request/response validation.
"""

from .common import ErrorEnvelope, ErrorResponse
from .template import TemplateResponse, TemplateSummaryModel

__all__ = [
    # Template schemas
    "TemplateResponse",
    "TemplateSummaryModel",
    # Common schemas
    "ErrorEnvelope",
    "ErrorResponse",
]

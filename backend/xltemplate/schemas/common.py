"""
Common schemas used across the application.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error body, carried in `detail` of an HTTP error."""

    code: str = Field(..., description="Error code for client handling")
    message: str = Field(..., description="Error message")
    stage: Optional[str] = Field(None, description="Where it failed: upload, analyze, read_data, generate, export, pdf")
    details: Optional[dict[str, Any]] = Field(None, description="Detailed error information")

    class Config:
        json_schema_extra = {
            "example": {
                "code": "NO_STYLE_PATTERN",
                "message": "The template has no example data rows to copy styles from.",
                "stage": "generate",
            }
        }


class ErrorEnvelope(BaseModel):
    detail: ErrorResponse

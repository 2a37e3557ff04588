"""
Template upload / summary schemas.
"""

from typing import List

from pydantic import BaseModel, Field

from ..excel.engine import TemplateSummary


class TemplateSummaryModel(BaseModel):
    sheet_count: int
    sheet_names: List[str]
    column_captions: List[str] = Field(..., description="One caption per template column, empty allowed")
    header_row_count: int = Field(..., description="Header rows plus the caption row")
    data_row_count: int
    footer_row_count: int
    has_categories: bool
    category_count: int
    max_columns: int
    merge_count: int

    @classmethod
    def from_summary(cls, summary: TemplateSummary) -> "TemplateSummaryModel":
        return cls(**summary.to_dict())


class TemplateResponse(BaseModel):
    template_id: str
    filename: str
    summary: TemplateSummaryModel

    class Config:
        json_schema_extra = {
            "example": {
                "template_id": "0f1e2d3c4b5a69788796a5b4c3d2e1f0",
                "filename": "invoice.xlsx",
                "summary": {
                    "sheet_count": 1,
                    "sheet_names": ["Sheet1"],
                    "column_captions": ["No.", "Item", "Qty"],
                    "header_row_count": 5,
                    "data_row_count": 3,
                    "footer_row_count": 1,
                    "has_categories": False,
                    "category_count": 0,
                    "max_columns": 3,
                    "merge_count": 1,
                },
            }
        }

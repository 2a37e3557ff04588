# backend/xltemplate/api/exports.py
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import FileResponse

from ..core.errors import UserFacingError, to_user_error
from ..excel.plain_export import DEFAULT_TITLE
from ..excel.styles import DEFAULT_THEME, THEMES
from ..extract.errors import ExtractError
from ..pipeline.data_to_xlsx import SUPPORTED_DATA_SUFFIXES
from ..services.template_service import OUTPUT_FORMATS, ProcessingError, TemplateService
from ..utils.xlsx_to_pdf import PdfConversionError
from .templates import _ERROR_RESPONSES, _http_error, _read_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exports", tags=["exports"])


@router.post("", responses=_ERROR_RESPONSES)
async def export_without_template(
    data_file: UploadFile = File(...),
    output: str = Form("xlsx"),
    title: str = Form(DEFAULT_TITLE),
    theme: str = Form(DEFAULT_THEME),
    include_stt: bool = Form(True),
    include_date: bool = Form(True),
    autofit: bool = Form(True),
    sheet_name: Optional[str] = Form(None),
    data_sheet: Optional[str] = Form(None),
) -> Any:
    """
    Export a CSV / XLSX data file in the built-in report layout: title,
    optional date line and STT column, themed header and banded rows.
    """
    if output not in OUTPUT_FORMATS:
        raise _http_error(
            400,
            UserFacingError(
                code="UNSUPPORTED_OUTPUT",
                message=f"output must be one of: {', '.join(OUTPUT_FORMATS)}",
                stage="upload",
            ),
        )
    if theme not in THEMES:
        raise _http_error(
            400,
            UserFacingError(
                code="UNKNOWN_THEME",
                message=f"theme must be one of: {', '.join(sorted(THEMES))}",
                details={"theme": theme},
                stage="upload",
            ),
        )

    data, filename = await _read_upload(data_file, allowed=SUPPORTED_DATA_SUFFIXES, stage="upload")

    svc = TemplateService()
    try:
        result = await svc.export_plain(
            data,
            filename,
            data_sheet=data_sheet,
            title=title or None,
            theme=theme,
            include_stt=include_stt,
            include_date=include_date,
            autofit=autofit,
            sheet_name=sheet_name or None,
            output=output,
        )
    except ProcessingError as e:
        raise _http_error(400, UserFacingError(code="BAD_REQUEST", message=str(e), stage="export")) from e
    except ExtractError as e:
        raise _http_error(422, to_user_error(e, stage="read_data")) from e
    except PdfConversionError as e:
        msg = str(e)
        if "not installed" in msg.lower():
            raise _http_error(501, UserFacingError(code="PDF_UNAVAILABLE", message=msg, stage="pdf")) from e
        raise _http_error(500, UserFacingError(code="PDF_FAILED", message=msg, stage="pdf")) from e

    return FileResponse(
        path=str(result.path),
        filename=result.filename,
        media_type=result.media_type,
    )

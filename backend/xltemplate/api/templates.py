# backend/xltemplate/api/templates.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import TypeAdapter, ValidationError

from ..core.errors import UserFacingError, to_user_error
from ..excel.errors import TemplateError
from ..extract.errors import ExtractError
from ..pipeline.data_to_xlsx import SUPPORTED_DATA_SUFFIXES
from ..schemas.common import ErrorEnvelope
from ..schemas.template import TemplateResponse, TemplateSummaryModel
from ..services.template_service import (
    OUTPUT_FORMATS,
    ProcessingError,
    StoredTemplate,
    TemplateNotFound,
    TemplateService,
)
from ..utils.xlsx_to_pdf import PdfConversionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["templates"])

DEFAULT_MAX_UPLOAD_MB = 10

_ERROR_RESPONSES: Dict[Union[int, str], Dict[str, Any]] = {
    400: {"model": ErrorEnvelope},
    404: {"model": ErrorEnvelope},
    413: {"model": ErrorEnvelope},
    422: {"model": ErrorEnvelope},
}

_FIELD_UPDATES = TypeAdapter(Dict[str, Union[float, str, None]])
_MAPPING = TypeAdapter(List[int])


def _max_upload_bytes() -> int:
    raw = os.getenv("XLTEMPLATE_MAX_UPLOAD_MB")
    try:
        mb = float(raw) if raw else DEFAULT_MAX_UPLOAD_MB
    except ValueError:
        logger.warning("XLTEMPLATE_MAX_UPLOAD_MB=%r is not a number, using %d", raw, DEFAULT_MAX_UPLOAD_MB)
        mb = DEFAULT_MAX_UPLOAD_MB
    return int(mb * 1024 * 1024)


def _http_error(status_code: int, err: UserFacingError) -> HTTPException:
    return HTTPException(status_code=status_code, detail=err.to_dict())


async def _read_upload(f: UploadFile, *, allowed: tuple[str, ...], stage: str) -> tuple[bytes, str]:
    filename = f.filename or ""
    if not filename:
        raise _http_error(
            400, UserFacingError(code="EMPTY_FILENAME", message="uploaded file has empty filename", stage=stage)
        )
    if Path(filename).suffix.lower() not in allowed:
        raise _http_error(
            400,
            UserFacingError(
                code="UNSUPPORTED_FILE",
                message=f"Only {', '.join(allowed)} files are supported",
                details={"filename": filename},
                stage=stage,
            ),
        )

    limit = _max_upload_bytes()
    data = await f.read(limit + 1)
    if len(data) > limit:
        raise _http_error(
            413,
            UserFacingError(
                code="FILE_TOO_LARGE",
                message=f"File exceeds {limit // (1024 * 1024)} MB",
                details={"filename": filename},
                stage=stage,
            ),
        )
    return data, filename


def _response(stored: StoredTemplate) -> TemplateResponse:
    return TemplateResponse(
        template_id=stored.template_id,
        filename=stored.filename,
        summary=TemplateSummaryModel.from_summary(stored.summary),
    )


@router.post("", response_model=TemplateResponse, responses=_ERROR_RESPONSES)
async def upload_template(file: UploadFile = File(...)) -> TemplateResponse:
    data, filename = await _read_upload(file, allowed=(".xlsx",), stage="upload")

    svc = TemplateService()
    try:
        stored = await svc.store_template(data, filename)
    except TemplateError as e:
        logger.info("template rejected: %s: %s", filename, e)
        raise _http_error(422, to_user_error(e, stage="analyze")) from e
    return _response(stored)


@router.get("/{template_id}", response_model=TemplateResponse, responses=_ERROR_RESPONSES)
async def get_template(template_id: str) -> TemplateResponse:
    svc = TemplateService()
    try:
        stored = await svc.summary(template_id)
    except TemplateNotFound as e:
        raise _http_error(404, UserFacingError(code="NOT_FOUND", message=str(e))) from e
    except TemplateError as e:
        raise _http_error(422, to_user_error(e, stage="analyze")) from e
    return _response(stored)


@router.post("/{template_id}/generate", responses=_ERROR_RESPONSES)
async def generate_document(
    template_id: str,
    data_file: UploadFile = File(...),
    output: str = Form("xlsx"),
    sheet_name: Optional[str] = Form(None),
    data_sheet: Optional[str] = Form(None),
    field_updates: Optional[str] = Form(None),
    mapping: Optional[str] = Form(None),
) -> Any:
    """
    Fill a stored template from a CSV / XLSX data file.

    `field_updates` is a JSON object of header cell updates ({"B2": "..."}),
    `mapping` a JSON list giving the data column index per template column
    (-1 leaves a column empty). Without a mapping, columns are matched by
    caption similarity.
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

    try:
        updates = _FIELD_UPDATES.validate_json(field_updates) if field_updates else None
        columns = _MAPPING.validate_json(mapping) if mapping else None
    except ValidationError as e:
        raise _http_error(
            422,
            UserFacingError(
                code="INVALID_FORM",
                message="field_updates must be a JSON object and mapping a JSON array of integers",
                details={"reason": str(e)},
                stage="upload",
            ),
        ) from e

    data, filename = await _read_upload(data_file, allowed=SUPPORTED_DATA_SUFFIXES, stage="upload")

    svc = TemplateService()
    try:
        result = await svc.generate(
            template_id,
            data,
            filename,
            data_sheet=data_sheet,
            mapping=columns,
            sheet_name=sheet_name or None,
            field_updates=updates,
            output=output,
        )
    except TemplateNotFound as e:
        raise _http_error(404, UserFacingError(code="NOT_FOUND", message=str(e))) from e
    except ProcessingError as e:
        raise _http_error(400, UserFacingError(code="BAD_REQUEST", message=str(e), stage="generate")) from e
    except ExtractError as e:
        raise _http_error(422, to_user_error(e, stage="read_data")) from e
    except TemplateError as e:
        raise _http_error(422, to_user_error(e, stage="generate")) from e
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

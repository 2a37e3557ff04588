from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..excel.errors import ArchiveIOError, MalformedTemplate, NoStylePattern, TemplateError
from ..extract.errors import ExtractError


@dataclass
class UserFacingError(Exception):
    """
    An error that is safe and useful to show directly in UI.
    """
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
    stage: Optional[str] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.stage:
            out["stage"] = self.stage
        if self.details:
            out["details"] = self.details
        return out


_TEMPLATE_CODES = (
    (ArchiveIOError, "ARCHIVE_IO", "The file is not a readable XLSX workbook."),
    (NoStylePattern, "NO_STYLE_PATTERN", "The template has no example data rows to copy styles from."),
    (MalformedTemplate, "MALFORMED_TEMPLATE", "The template structure could not be read."),
)


def to_user_error(e: BaseException, *, stage: Optional[str] = None) -> UserFacingError:
    """Translate a domain error into a UserFacingError; anything else is passed through str()."""
    if isinstance(e, UserFacingError):
        return e
    if isinstance(e, TemplateError):
        for cls, code, message in _TEMPLATE_CODES:
            if isinstance(e, cls):
                return UserFacingError(code=code, message=message, details={"reason": str(e)}, stage=stage)
        return UserFacingError(code="TEMPLATE_ERROR", message=str(e), stage=stage)
    if isinstance(e, ExtractError):
        return UserFacingError(code="DATA_READ", message=str(e), stage=stage)
    return UserFacingError(code="INTERNAL", message=str(e) or type(e).__name__, stage=stage)

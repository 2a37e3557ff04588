# backend/xltemplate/services/template_service.py

from __future__ import annotations

import json
import logging
import os
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from ..excel.engine import (
    TemplateModel,
    TemplateSummary,
    analyze_template,
    generate_from_template,
    get_template_summary,
)
from ..excel.plain_export import export_plain_xlsx
from ..excel.styles import DEFAULT_THEME, THEMES
from ..pipeline.data_to_xlsx import load_data_table, rows_for_template
from ..utils.xlsx_to_pdf import convert_xlsx_to_pdf

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"

OUTPUT_FORMATS = ("xlsx", "pdf")

_TEMPLATE_ID_RE = re.compile(r"^[0-9a-f]{32}$")
_UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|]')


class ProcessingError(RuntimeError):
    pass


class TemplateNotFound(ProcessingError):
    pass


@dataclass(frozen=True)
class StoredTemplate:
    template_id: str
    filename: str
    summary: TemplateSummary


@dataclass(frozen=True)
class GeneratedFile:
    path: Path
    filename: str
    media_type: str


def default_data_dir() -> Path:
    env = os.getenv("XLTEMPLATE_DATA_DIR")
    if env:
        return Path(env)
    return Path(__file__).resolve().parents[1] / "data"


def _safe_stem(name: str) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", (name or "").strip()) or "export"


def _output_name(template_filename: str, output: str) -> str:
    stem = Path(template_filename or "template.xlsx").stem or "template"
    return f"{stem}_filled.{output}"


class TemplateService:
    """
    Facade over stored templates:
      - store: analyze an uploaded template and keep it under data_dir
      - summary: zone summary of a stored template
      - generate: fill a stored template from a CSV / XLSX data file
      - export_plain: CSV / XLSX data in the built-in layout, no template

    Layout:
      data_dir/templates/<template_id>/template.xlsx
      data_dir/templates/<template_id>/meta.json
      data_dir/templates/<template_id>/outputs/<output_id>.xlsx|.pdf
      data_dir/exports/<output_id>.xlsx|.pdf
    """

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        if data_dir is None:
            data_dir = default_data_dir()
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def new_template_id(self) -> str:
        return uuid.uuid4().hex

    def template_dir(self, template_id: str) -> Path:
        if not _TEMPLATE_ID_RE.match(template_id or ""):
            raise TemplateNotFound(f"template not found: {template_id}")
        return self._data_dir / "templates" / template_id

    # -----------------------------
    # Templates
    # -----------------------------
    async def store_template(self, data: bytes, filename: str) -> StoredTemplate:
        """
        Analyze first, store after: a template that cannot be analyzed is
        never written to disk.
        """
        model = analyze_template(data)
        summary = get_template_summary(model)

        template_id = self.new_template_id()
        tdir = self.template_dir(template_id)
        tdir.mkdir(parents=True, exist_ok=True)
        (tdir / "template.xlsx").write_bytes(data)
        (tdir / "meta.json").write_text(
            json.dumps(
                {
                    "template_id": template_id,
                    "filename": filename,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                    "summary": summary.to_dict(),
                },
                ensure_ascii=False,
                indent=2,
            ),
            encoding="utf-8",
        )
        logger.info("template stored: id=%s file=%r", template_id, filename)
        return StoredTemplate(template_id=template_id, filename=filename, summary=summary)

    def _template_filename(self, tdir: Path) -> str:
        meta_path = tdir / "meta.json"
        try:
            payload = json.loads(meta_path.read_text(encoding="utf-8"))
            return str(payload.get("filename") or "template.xlsx")
        except (OSError, ValueError) as e:
            logger.warning("meta.json unreadable for %s, using default name: %s", tdir.name, e)
            return "template.xlsx"

    async def load_model(self, template_id: str) -> TemplateModel:
        path = self.template_dir(template_id) / "template.xlsx"
        if not path.exists():
            raise TemplateNotFound(f"template not found: {template_id}")
        return analyze_template(path.read_bytes())

    async def summary(self, template_id: str) -> StoredTemplate:
        model = await self.load_model(template_id)
        return StoredTemplate(
            template_id=template_id,
            filename=self._template_filename(self.template_dir(template_id)),
            summary=get_template_summary(model),
        )

    # -----------------------------
    # Generation
    # -----------------------------
    async def generate(
        self,
        template_id: str,
        data: bytes,
        data_filename: str,
        *,
        data_sheet: Optional[str] = None,
        mapping: Optional[Sequence[int]] = None,
        sheet_name: Optional[str] = None,
        field_updates: Optional[Mapping[str, Any]] = None,
        output: str = "xlsx",
    ) -> GeneratedFile:
        if output not in OUTPUT_FORMATS:
            raise ProcessingError(f"unsupported output format: {output}")

        model = await self.load_model(template_id)
        table = load_data_table(data, data_filename, sheet=data_sheet)
        try:
            rows = rows_for_template(model, table, mapping)
        except ValueError as e:
            raise ProcessingError(f"invalid column mapping: {e}") from e
        out = generate_from_template(
            model, rows, sheet_name=sheet_name, field_updates=field_updates
        )

        tdir = self.template_dir(template_id)
        out_dir = tdir / "outputs"
        out_dir.mkdir(parents=True, exist_ok=True)
        xlsx_path = out_dir / f"{uuid.uuid4().hex}.xlsx"
        xlsx_path.write_bytes(out)

        filename = _output_name(self._template_filename(tdir), output)
        if output == "pdf":
            pdf_path = convert_xlsx_to_pdf(xlsx_path)
            return GeneratedFile(path=pdf_path, filename=filename, media_type=PDF_MEDIA_TYPE)
        return GeneratedFile(path=xlsx_path, filename=filename, media_type=XLSX_MEDIA_TYPE)

    # -----------------------------
    # Export without a template
    # -----------------------------
    async def export_plain(
        self,
        data: bytes,
        data_filename: str,
        *,
        data_sheet: Optional[str] = None,
        title: Optional[str] = None,
        theme: str = DEFAULT_THEME,
        include_stt: bool = True,
        include_date: bool = True,
        autofit: bool = True,
        sheet_name: Optional[str] = None,
        output: str = "xlsx",
    ) -> GeneratedFile:
        """Data file -> report in the built-in layout, stored under data_dir/exports/."""
        if output not in OUTPUT_FORMATS:
            raise ProcessingError(f"unsupported output format: {output}")
        if theme not in THEMES:
            raise ProcessingError(f"unknown theme: {theme}")

        table = load_data_table(data, data_filename, sheet=data_sheet)
        out = export_plain_xlsx(
            table,
            title=title,
            theme=theme,
            include_stt=include_stt,
            include_date=include_date,
            autofit=autofit,
            sheet_name=sheet_name,
        )

        out_dir = self._data_dir / "exports"
        out_dir.mkdir(parents=True, exist_ok=True)
        xlsx_path = out_dir / f"{uuid.uuid4().hex}.xlsx"
        xlsx_path.write_bytes(out)
        logger.info("plain export stored: %s (%d rows)", xlsx_path.name, len(table.rows))

        filename = f"{_safe_stem(Path(data_filename).stem)}.{output}"
        if output == "pdf":
            pdf_path = convert_xlsx_to_pdf(xlsx_path)
            return GeneratedFile(path=pdf_path, filename=filename, media_type=PDF_MEDIA_TYPE)
        return GeneratedFile(path=xlsx_path, filename=filename, media_type=XLSX_MEDIA_TYPE)

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

CONVERT_TIMEOUT_SECONDS = 120


class PdfConversionError(RuntimeError):
    pass


def convert_xlsx_to_pdf(xlsx_path: Path, *, timeout: float = CONVERT_TIMEOUT_SECONDS) -> Path:
    """
    Convert a generated XLSX -> PDF using headless LibreOffice (soffice).
    The PDF is written next to the XLSX; an existing one is returned as-is.
    """
    xlsx_path = Path(xlsx_path)

    if not xlsx_path.exists():
        raise PdfConversionError(f"XLSX not found: {xlsx_path}")

    pdf_path = xlsx_path.with_suffix(".pdf")
    if pdf_path.exists():
        return pdf_path

    soffice = shutil.which("soffice")
    if not soffice:
        raise PdfConversionError("LibreOffice (soffice) is not installed in runtime image")

    # separate LO profile per call: parallel conversions lock a shared one
    with tempfile.TemporaryDirectory(prefix="lo_profile_") as profile_dir:
        cmd = [
            soffice,
            "--headless",
            "--nologo",
            "--nofirststartwizard",
            f"-env:UserInstallation=file://{profile_dir}",
            "--convert-to",
            "pdf",
            "--outdir",
            str(xlsx_path.parent),
            str(xlsx_path),
        ]
        logger.info("pdf: converting %s", xlsx_path.name)
        try:
            p = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise PdfConversionError(f"LibreOffice convert timed out after {timeout:.0f}s") from e
        if p.returncode != 0:
            raise PdfConversionError(f"LibreOffice convert failed: {p.stderr.strip() or p.stdout.strip()}")

    if not pdf_path.exists():
        raise PdfConversionError("PDF was not created")

    return pdf_path

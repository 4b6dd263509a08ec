"""Ingest utilities shared by the upload service and CLI commands.

- ``load_statement_text``: read a stored statement file into plain text
  (UTF-8 for delimited/text files, ``pdfplumber`` for PDFs), enforcing the
  upload size cap.
- ``extract_candidates``: dispatch text to the extractor for a file format.
"""

from __future__ import annotations

import os
from os import PathLike
from pathlib import Path

from ..errors import ExtractionFailure, UnsupportedFileError
from ..models import ExtractionResult, StatementFormat

MAX_UPLOAD_BYTES_ENV = "STATEMENT_INGEST_MAX_UPLOAD_BYTES"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def max_upload_bytes() -> int:
    """Resolve the upload size cap from the environment (default 10 MiB)."""

    raw = os.getenv(MAX_UPLOAD_BYTES_ENV)
    if not raw:
        return DEFAULT_MAX_UPLOAD_BYTES
    try:
        value = int(raw.strip())
    except ValueError:
        return DEFAULT_MAX_UPLOAD_BYTES
    return value if value > 0 else DEFAULT_MAX_UPLOAD_BYTES


def _pdf_to_text(path: Path) -> str:
    # Deferred so tabular-only callers never pay for importing pdfplumber.
    import pdfplumber

    with pdfplumber.open(path) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


def load_statement_text(path: str | PathLike[str], *, file_format: StatementFormat) -> str:
    """Return the plain text of a stored statement file.

    Raises ``UnsupportedFileError`` when the file exceeds the size cap and
    ``ExtractionFailure`` when it cannot be read or decoded.
    """

    p = Path(path)
    try:
        size = p.stat().st_size
    except OSError as exc:
        raise ExtractionFailure(f"cannot read statement file {p}: {exc}") from exc
    limit = max_upload_bytes()
    if size > limit:
        raise UnsupportedFileError(f"statement file is {size} bytes; limit is {limit}")

    if file_format == "freetext":
        try:
            return _pdf_to_text(p)
        except Exception as exc:
            raise ExtractionFailure(f"failed to extract text from PDF {p.name}: {exc}") from exc

    try:
        # utf-8-sig drops a leading BOM that spreadsheet exports often add.
        return p.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ExtractionFailure(f"cannot read statement file {p.name}: {exc}") from exc


def extract_candidates(text: str, file_format: StatementFormat) -> ExtractionResult:
    """Run the extractor that matches ``file_format`` over ``text``."""

    from .adapters.freetext_pdf import extract_freetext
    from .adapters.tabular_csv import extract_tabular

    if file_format == "tabular":
        return extract_tabular(text)
    if file_format == "freetext":
        return extract_freetext(text)
    raise UnsupportedFileError(f"unknown statement format: {file_format!r}")


__all__ = [
    "MAX_UPLOAD_BYTES_ENV",
    "DEFAULT_MAX_UPLOAD_BYTES",
    "max_upload_bytes",
    "load_statement_text",
    "extract_candidates",
]

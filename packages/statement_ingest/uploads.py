# ruff: noqa: I001
"""Statement upload lifecycle.

Public surface:
- ``create_upload``: register a statement file against an owner's account.
- ``parse_upload``: extract candidates, tag duplicates and store them on the
  upload (``pending``/``failed``/``completed`` → ``parsing`` → ``completed``
  or ``failed``).
- ``get_upload`` / ``list_uploads``: owner-scoped reads.

Like :mod:`statement_ingest.persistence`, nothing here commits; callers wrap
calls in ``db.client.session_scope``.
"""

from __future__ import annotations

from pathlib import PurePath

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.finance import StatementUpload
from .duplicates import tag_duplicates
from .errors import (
    AccountNotFoundError,
    ExtractionFailure,
    InvalidStateError,
    StatementIngestError,
    UnsupportedFileError,
    UploadNotFoundError,
)
from .ingest.utils import extract_candidates, load_statement_text
from .logging_setup import get_logger
from .models import STATEMENT_FORMATS, StatementFormat, TransactionCandidate
from .persistence import get_account_by_id

_logger = get_logger("statement_ingest.uploads")

_FORMAT_BY_EXTENSION: dict[str, StatementFormat] = {
    ".pdf": "freetext",
    ".csv": "tabular",
    ".txt": "tabular",
}


def infer_format(file_name: str) -> StatementFormat:
    """Map a file name to its statement format by extension."""

    ext = PurePath(file_name).suffix.lower()
    fmt = _FORMAT_BY_EXTENSION.get(ext)
    if fmt is None:
        raise UnsupportedFileError(
            f"unsupported statement file {file_name!r}; expected one of "
            + ", ".join(sorted(_FORMAT_BY_EXTENSION))
        )
    return fmt


def get_upload(session: Session, *, upload_id: int, owner_id: str) -> StatementUpload:
    """Return the owner's upload or raise ``UploadNotFoundError``."""

    stmt = select(StatementUpload).where(
        StatementUpload.id == upload_id, StatementUpload.owner_id == owner_id
    )
    upload = session.execute(stmt).scalars().first()
    if upload is None:
        raise UploadNotFoundError(f"Statement upload {upload_id} not found")
    return upload


def list_uploads(
    session: Session, *, owner_id: str, account_id: int | None = None
) -> list[StatementUpload]:
    """Return the owner's uploads, newest first, optionally for one account."""

    stmt = select(StatementUpload).where(StatementUpload.owner_id == owner_id)
    if account_id is not None:
        stmt = stmt.where(StatementUpload.account_id == account_id)
    stmt = stmt.order_by(StatementUpload.uploaded_at.desc(), StatementUpload.id.desc())
    return list(session.execute(stmt).scalars())


def create_upload(
    session: Session,
    *,
    owner_id: str,
    account_id: int,
    file_name: str,
    file_ref: str | None = None,
    file_format: StatementFormat | None = None,
) -> StatementUpload:
    """Register a new ``pending`` upload for one of the owner's accounts."""

    if get_account_by_id(session, account_id, owner_id) is None:
        raise AccountNotFoundError(f"Account {account_id} not found")
    if file_format is None:
        file_format = infer_format(file_name)
    elif file_format not in STATEMENT_FORMATS:
        raise UnsupportedFileError(f"unknown statement format: {file_format!r}")

    upload = StatementUpload(
        owner_id=owner_id,
        account_id=account_id,
        file_name=file_name,
        file_format=file_format,
        file_ref=file_ref,
        parse_status="pending",
        candidate_count=0,
        skipped_count=0,
        candidates=[],
        version=0,
    )
    session.add(upload)
    session.flush()
    _logger.info(
        "Created upload %s (%s, %s) for account %s", upload.id, file_name, file_format, account_id
    )
    return upload


def _read_and_extract(
    session: Session, upload: StatementUpload, text: str | None
) -> tuple[list[TransactionCandidate], int]:
    if text is None:
        if not upload.file_ref:
            raise ExtractionFailure("upload has no stored file and no text was supplied")
        text = load_statement_text(upload.file_ref, file_format=upload.file_format)
    result = extract_candidates(text, upload.file_format)
    tagged = tag_duplicates(
        session,
        owner_id=upload.owner_id,
        account_id=upload.account_id,
        candidates=result.candidates,
    )
    return tagged, result.skipped_count


def parse_upload(
    session: Session, *, upload_id: int, owner_id: str, text: str | None = None
) -> StatementUpload:
    """Extract and store candidates for an upload.

    ``text`` is the already-extracted statement text; when omitted the file
    at ``upload.file_ref`` is read. Extraction failures are recorded on the
    upload (``parse_status='failed'`` plus ``error_message``) and the upload
    is returned, so the caller's transaction persists the failed state.
    Re-parsing replaces the candidate list wholesale.
    """

    upload = get_upload(session, upload_id=upload_id, owner_id=owner_id)
    if upload.parse_status == "parsing":
        raise InvalidStateError(upload.id, upload.parse_status, expected="pending")

    upload.parse_status = "parsing"
    upload.error_message = None
    upload.version = upload.version + 1
    session.flush()
    _logger.info("Upload %s: parsing (%s)", upload.id, upload.file_format)

    try:
        candidates, skipped = _read_and_extract(session, upload, text)
    except (StatementIngestError, ValueError, ArithmeticError, OSError) as exc:
        _logger.warning("Upload %s: extraction failed: %s", upload.id, exc)
        upload.parse_status = "failed"
        upload.error_message = str(exc) or exc.__class__.__name__
        upload.candidates = []
        upload.candidate_count = 0
        upload.skipped_count = 0
        session.flush()
        return upload

    upload.candidates = [c.to_record() for c in candidates]
    upload.candidate_count = len(candidates)
    upload.skipped_count = skipped
    upload.parse_status = "completed"
    session.flush()
    _logger.info(
        "Upload %s: completed with %d candidate(s), %d skipped",
        upload.id,
        upload.candidate_count,
        upload.skipped_count,
    )
    return upload


__all__ = [
    "infer_format",
    "create_upload",
    "parse_upload",
    "get_upload",
    "list_uploads",
]

"""Review buffer: inspect and edit an upload's candidates before commit.

The buffer is the ``candidates`` JSON list stored on the upload. Reads
rebuild validated ``TransactionCandidate`` models from it; edits replace the
whole list so the JSON column change is always detected.

Edits re-run the duplicate check against the ledger only (never against the
other candidates in the same upload) and bump the upload ``version`` so a
confirm that read the old list cannot claim the upload afterwards.
"""

from __future__ import annotations

from pydantic import ValidationError
from sqlalchemy.orm import Session

from db.models.finance import StatementUpload

from .duplicates import tag_duplicates
from .errors import CandidateNotFoundError, CandidateValidationError, InvalidStateError
from .logging_setup import get_logger
from .models import CandidateEdit, ReviewSnapshot, TransactionCandidate
from .uploads import get_upload

_logger = get_logger("statement_ingest.review")


def load_candidates(upload: StatementUpload) -> list[TransactionCandidate]:
    """Deserialize the upload's stored candidates (extraction order)."""

    return [TransactionCandidate.from_record(rec) for rec in upload.candidates or []]


def _require_completed(upload: StatementUpload) -> None:
    if upload.parse_status != "completed":
        raise InvalidStateError(upload.id, upload.parse_status)


def get_review(session: Session, *, upload_id: int, owner_id: str) -> ReviewSnapshot:
    """Return the upload and its candidates for review."""

    upload = get_upload(session, upload_id=upload_id, owner_id=owner_id)
    _require_completed(upload)
    return ReviewSnapshot(upload=upload, candidates=load_candidates(upload))


def edit_candidate(
    session: Session,
    *,
    upload_id: int,
    owner_id: str,
    temp_id: str,
    edit: CandidateEdit,
) -> TransactionCandidate:
    """Apply ``edit`` to one candidate and re-tag it against the ledger.

    Fields the edit does not supply are left unchanged. Raises
    ``CandidateValidationError`` when the edited candidate is invalid; in that
    case nothing is written.
    """

    upload = get_upload(session, upload_id=upload_id, owner_id=owner_id)
    _require_completed(upload)

    candidates = load_candidates(upload)
    try:
        pos = next(i for i, c in enumerate(candidates) if c.temp_id == temp_id)
    except StopIteration:
        raise CandidateNotFoundError(
            f"Candidate {temp_id!r} not found in upload {upload_id}"
        ) from None

    current = candidates[pos]
    try:
        edited = TransactionCandidate.model_validate(
            {**current.model_dump(), **edit.changes()}
        )
    except ValidationError as exc:
        raise CandidateValidationError(str(exc)) from exc

    (tagged,) = tag_duplicates(
        session, owner_id=owner_id, account_id=upload.account_id, candidates=[edited]
    )
    candidates[pos] = tagged
    upload.candidates = [c.to_record() for c in candidates]
    upload.version = upload.version + 1
    session.flush()
    _logger.info(
        "Upload %s: edited %s (%s)%s",
        upload.id,
        temp_id,
        ", ".join(sorted(edit.changes())) or "no changes",
        " - now a duplicate" if tagged.is_duplicate else "",
    )
    return tagged


__all__ = ["load_candidates", "get_review", "edit_candidate"]

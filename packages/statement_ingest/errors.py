"""Exception taxonomy for the statement ingestion pipeline.

Row-level extraction problems are not exceptions; extractors report them as
``SkippedRow`` values (see :mod:`statement_ingest.models`). Everything below
is raised across module boundaries:

- ``ExtractionFailure``: the whole document could not be read/extracted. The
  upload is marked ``failed`` and must be re-parsed explicitly.
- ``StateError`` (and subclasses): the operation does not apply to the current
  upload/account state, or the referenced entity does not exist. No partial
  mutation is performed.
- ``CandidateValidationError``: a review edit payload is malformed.
- ``LedgerError`` (and subclasses): raised by the ledger write path. The
  committer converts these into counters instead of aborting a batch.
"""

from __future__ import annotations


class StatementIngestError(Exception):
    """Base class for all pipeline errors."""


class ExtractionFailure(StatementIngestError):
    """The source document could not be read or extracted."""


class UnsupportedFileError(StatementIngestError, ValueError):
    """The uploaded file type or size is not accepted."""


class StateError(StatementIngestError):
    """Operation rejected because of upload/account state."""


class InvalidStateError(StateError):
    """The upload's ``parse_status`` does not allow the operation."""

    def __init__(self, upload_id: int, status: str, expected: str = "completed") -> None:
        super().__init__(
            f"Statement upload {upload_id} is {status!r}; operation requires {expected!r}"
        )
        self.upload_id = upload_id
        self.status = status
        self.expected = expected


class ConcurrentConfirmError(StateError):
    """Another mutation claimed the upload first (version compare-and-swap lost)."""


class NotFoundError(StateError):
    """A referenced entity does not exist for the given owner."""


class UploadNotFoundError(NotFoundError):
    pass


class AccountNotFoundError(NotFoundError):
    pass


class CandidateNotFoundError(NotFoundError):
    pass


class CandidateValidationError(StatementIngestError, ValueError):
    """A candidate edit payload failed validation; nothing was changed."""


class LedgerError(StatementIngestError):
    """Base class for failures raised by the ledger write path."""


class DuplicateTransactionError(LedgerError):
    """A live ledger transaction with the same fingerprint already exists."""

    def __init__(self, fingerprint: str, existing_id: int | None = None) -> None:
        super().__init__("Duplicate transaction detected")
        self.fingerprint = fingerprint
        self.existing_id = existing_id


class LedgerValidationError(LedgerError, ValueError):
    """The ledger rejected the transaction payload."""


__all__ = [
    "StatementIngestError",
    "ExtractionFailure",
    "UnsupportedFileError",
    "StateError",
    "InvalidStateError",
    "ConcurrentConfirmError",
    "NotFoundError",
    "UploadNotFoundError",
    "AccountNotFoundError",
    "CandidateNotFoundError",
    "CandidateValidationError",
    "LedgerError",
    "DuplicateTransactionError",
    "LedgerValidationError",
]

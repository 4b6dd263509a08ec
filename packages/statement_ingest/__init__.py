"""Public interface for the ``statement_ingest`` package.

Bank statement ingestion: extract candidate transactions from CSV exports or
PDF-derived text, flag ones already in the ledger, let a reviewer edit them,
then commit the reviewed set idempotently with a single balance update.

There is no runtime logic here, only symbol re-exports.
"""

from .api import (
    check_duplicates,
    compute_fingerprint,
    confirm_upload,
    create_upload,
    edit_candidate,
    extract_freetext,
    extract_tabular,
    get_review,
    get_upload,
    list_uploads,
    parse_statement_date,
    parse_upload,
    soft_delete_transaction,
    tag_duplicates,
)
from .errors import (
    CandidateNotFoundError,
    CandidateValidationError,
    ConcurrentConfirmError,
    ExtractionFailure,
    InvalidStateError,
    StatementIngestError,
    UnsupportedFileError,
)
from .models import (
    CandidateEdit,
    CommitResult,
    ExtractionResult,
    ReviewSnapshot,
    SkippedRow,
    TransactionCandidate,
)

__all__ = [
    # API
    "create_upload",
    "parse_upload",
    "get_upload",
    "list_uploads",
    "extract_tabular",
    "extract_freetext",
    "parse_statement_date",
    "compute_fingerprint",
    "check_duplicates",
    "tag_duplicates",
    "soft_delete_transaction",
    "get_review",
    "edit_candidate",
    "confirm_upload",
    # Models / types
    "TransactionCandidate",
    "CandidateEdit",
    "SkippedRow",
    "ExtractionResult",
    "ReviewSnapshot",
    "CommitResult",
    # Errors
    "StatementIngestError",
    "ExtractionFailure",
    "UnsupportedFileError",
    "InvalidStateError",
    "ConcurrentConfirmError",
    "CandidateNotFoundError",
    "CandidateValidationError",
]

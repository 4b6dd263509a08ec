"""Public API surface for the ``statement_ingest`` package.

This module is a stable import surface only; implementations live in the
component modules and are re-exported here:

- uploads: ``create_upload``, ``parse_upload``, ``get_upload``, ``list_uploads``
- extraction: ``extract_tabular``, ``extract_freetext``, ``parse_statement_date``
- fingerprints: ``compute_fingerprint``, ``check_duplicates``, ``tag_duplicates``
- review buffer: ``get_review``, ``edit_candidate``
- commit: ``confirm_upload``

Every DB-backed function takes a caller-owned ``Session`` (see
``db.client.session_scope``) and never commits on its own.
"""

from __future__ import annotations

from .commit import confirm_upload
from .dates import parse_statement_date
from .duplicates import check_duplicates, tag_duplicates
from .ingest.adapters.freetext_pdf import extract_freetext
from .ingest.adapters.tabular_csv import extract_tabular
from .persistence import compute_fingerprint, soft_delete_transaction
from .review import edit_candidate, get_review
from .uploads import create_upload, get_upload, list_uploads, parse_upload

__all__ = [
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
]

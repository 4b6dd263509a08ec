"""Shared SQLAlchemy models registry for the workspace database.

Includes the ledger, account and statement-upload models used by
``statement_ingest``.
"""

from .finance import Account, Base, LedgerTransaction, StatementUpload

__all__ = [
    "Base",
    "Account",
    "LedgerTransaction",
    "StatementUpload",
]

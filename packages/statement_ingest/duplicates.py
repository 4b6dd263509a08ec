"""Duplicate lookup shared by parsing, review edits and the committer.

Public surface:
- ``check_duplicates``: fingerprint each candidate and map every fingerprint
  to the live ledger row that already carries it (or ``None``). Read-only.
- ``tag_duplicates``: return copies of the candidates with ``fingerprint``,
  ``is_duplicate`` and ``matching_transaction_id`` filled in.

Candidates are checked against the ledger only, never against siblings in
the same batch: two identical rows in one statement are both reported as
new, and the second is rejected at commit time by the ledger itself.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from db.models.finance import LedgerTransaction
from sqlalchemy import select
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .models import TransactionCandidate
from .persistence import compute_fingerprint

_logger = get_logger("statement_ingest.duplicates")

# Keep IN (...) lists well under driver parameter limits (SQLite: 999).
_LOOKUP_CHUNK = 500


def candidate_fingerprint(candidate: TransactionCandidate, account_id: int) -> str:
    return compute_fingerprint(
        date=candidate.date,
        amount=candidate.amount,
        description=candidate.description,
        account_id=account_id,
    )


def check_duplicates(
    session: Session,
    *,
    owner_id: str,
    account_id: int,
    candidates: Iterable[TransactionCandidate],
) -> dict[str, LedgerTransaction | None]:
    """Return ``{fingerprint: existing live ledger row or None}`` for ``candidates``.

    Lookups are batched per chunk of fingerprints and scoped to ``owner_id``;
    soft-deleted rows never match.
    """

    fps = list(dict.fromkeys(candidate_fingerprint(c, account_id) for c in candidates))
    found: dict[str, LedgerTransaction | None] = dict.fromkeys(fps)
    for start in range(0, len(fps), _LOOKUP_CHUNK):
        chunk = fps[start : start + _LOOKUP_CHUNK]
        stmt = select(LedgerTransaction).where(
            LedgerTransaction.owner_id == owner_id,
            LedgerTransaction.fingerprint_sha256.in_(chunk),
            LedgerTransaction.is_deleted.is_(False),
        )
        for row in session.execute(stmt).scalars():
            found[row.fingerprint_sha256] = row
    return found


def tag_duplicates(
    session: Session,
    *,
    owner_id: str,
    account_id: int,
    candidates: Sequence[TransactionCandidate],
) -> list[TransactionCandidate]:
    """Recompute fingerprint and duplicate flag for each candidate (copies)."""

    matches = check_duplicates(
        session, owner_id=owner_id, account_id=account_id, candidates=candidates
    )
    tagged: list[TransactionCandidate] = []
    for c in candidates:
        fp = candidate_fingerprint(c, account_id)
        existing = matches.get(fp)
        tagged.append(
            c.model_copy(
                update={
                    "fingerprint": fp,
                    "is_duplicate": existing is not None,
                    "matching_transaction_id": existing.id if existing is not None else None,
                }
            )
        )
    dupes = sum(1 for c in tagged if c.is_duplicate)
    if dupes:
        _logger.info("%d of %d candidate(s) already in the ledger", dupes, len(tagged))
    return tagged


__all__ = [
    "candidate_fingerprint",
    "check_duplicates",
    "tag_duplicates",
]

# ruff: noqa: I001
"""Ingestion committer: turn reviewed candidates into ledger transactions.

``confirm_upload`` is the only write path from an upload into the ledger.

Guarantees
----------
- Single flight: the upload is claimed by a compare-and-swap on its
  ``version``. A concurrent confirm (or an edit that landed after the caller
  read the upload) makes the swap match zero rows and the call raises
  ``ConcurrentConfirmError`` without writing anything.
- Partial success: each row is inserted in its own SAVEPOINT by
  ``persistence.create_transaction``; a rejected row (ledger validation,
  database error) is counted as skipped and the rest of the batch continues.
- Idempotency: the ledger re-checks every fingerprint, so confirming the same
  upload twice creates nothing the second time.
- One balance write: the net delta of the rows actually created is applied
  to the account with a single UPDATE.
"""

from __future__ import annotations

from collections.abc import Collection
from decimal import Decimal

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from db.models.finance import LedgerTransaction, StatementUpload
from .errors import (
    AccountNotFoundError,
    ConcurrentConfirmError,
    DuplicateTransactionError,
    InvalidStateError,
    LedgerError,
)
from .logging_setup import get_logger
from .models import CommitResult, TransactionCandidate, quantize_amount
from .persistence import adjust_balance, create_transaction, get_account_by_id
from .review import load_candidates
from .uploads import get_upload

_logger = get_logger("statement_ingest.commit")


def signed_delta(direction: str, amount: Decimal) -> Decimal:
    """Balance effect of one transaction: income adds, expense subtracts."""

    if direction == "income":
        return amount
    if direction == "expense":
        return -amount
    return Decimal("0")


def net_balance_delta(transactions: Collection[LedgerTransaction]) -> Decimal:
    total = sum((signed_delta(t.direction, t.amount) for t in transactions), Decimal("0"))
    return quantize_amount(total)


def _claim_upload(session: Session, upload: StatementUpload) -> None:
    expected = upload.version
    result = session.execute(
        update(StatementUpload)
        .where(
            StatementUpload.id == upload.id,
            StatementUpload.version == expected,
            StatementUpload.parse_status == "completed",
        )
        .values(version=expected + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrentConfirmError(
            f"Statement upload {upload.id} was modified or confirmed concurrently"
        )
    set_committed_value(upload, "version", expected + 1)


def _select(
    candidates: list[TransactionCandidate], temp_ids: Collection[str] | None
) -> list[TransactionCandidate]:
    if not temp_ids:
        return candidates
    wanted = set(temp_ids)
    return [c for c in candidates if c.temp_id in wanted]


def confirm_upload(
    session: Session,
    *,
    upload_id: int,
    owner_id: str,
    temp_ids: Collection[str] | None = None,
    skip_duplicates: bool = False,
) -> CommitResult:
    """Write the selected candidates of a completed upload to the ledger.

    ``temp_ids`` selects candidates by temp id; ``None`` or empty selects
    all of them. Unknown temp ids are ignored. With ``skip_duplicates`` set,
    candidates flagged as duplicates are not attempted and ledger-detected
    duplicates are counted under ``duplicates``; otherwise a ledger-detected
    duplicate counts as ``skipped``.
    """

    upload = get_upload(session, upload_id=upload_id, owner_id=owner_id)
    if upload.parse_status != "completed":
        raise InvalidStateError(upload.id, upload.parse_status)
    _claim_upload(session, upload)

    account = get_account_by_id(session, upload.account_id, owner_id)
    if account is None:
        raise AccountNotFoundError(f"Account {upload.account_id} not found")

    result = CommitResult()
    for candidate in _select(load_candidates(upload), temp_ids):
        if skip_duplicates and candidate.is_duplicate:
            result.duplicates += 1
            continue
        try:
            row = create_transaction(
                session,
                owner_id=owner_id,
                account_id=account.id,
                direction=candidate.direction,
                amount=candidate.amount,
                currency=account.currency,
                description=candidate.description,
                date=candidate.date,
                reference_number=candidate.reference_number,
                source_upload_id=upload.id,
            )
        except DuplicateTransactionError:
            if skip_duplicates:
                result.duplicates += 1
            else:
                result.skipped += 1
            _logger.debug("Upload %s: %s is already in the ledger", upload.id, candidate.temp_id)
            continue
        except (LedgerError, SQLAlchemyError, ValueError, ArithmeticError) as exc:
            result.skipped += 1
            _logger.warning("Upload %s: %s rejected: %s", upload.id, candidate.temp_id, exc)
            continue
        result.transactions.append(row)

    if result.transactions:
        result.balance_delta = net_balance_delta(result.transactions)
        adjust_balance(session, account.id, result.balance_delta)

    session.execute(
        update(StatementUpload)
        .where(StatementUpload.id == upload.id)
        .values(last_confirmed_at=func.now())
        .execution_options(synchronize_session=False)
    )
    session.expire(upload, ["last_confirmed_at", "updated_at"])
    _logger.info(
        "Upload %s confirmed: %d created, %d skipped, %d duplicate(s); balance delta %s",
        upload.id,
        result.created,
        result.skipped,
        result.duplicates,
        result.balance_delta,
    )
    return result


__all__ = ["signed_delta", "net_balance_delta", "confirm_upload"]

# ruff: noqa: I001
"""Persistence integration for statement_ingest.

Functions here read and write the shared database owned by ``libs/db``. They
rely on SQLAlchemy ORM models defined in ``db.models.finance`` and a session
provided by the caller (``db.client.session_scope``); nothing here commits.

Scope:
- ``compute_fingerprint``: the pure duplicate key used everywhere.
- Ledger: create (with the authoritative duplicate check), lookup by
  fingerprint, soft delete.
- Accounts: owner-scoped lookup and single-statement balance adjustment.
"""

from __future__ import annotations

import datetime as dt
import hashlib
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from db.models.finance import Account, LedgerTransaction
from .dates import canonical_date
from .errors import DuplicateTransactionError, LedgerValidationError
from .logging_setup import get_logger
from .models import LEDGER_DIRECTIONS, quantize_amount

_logger = get_logger("statement_ingest.persistence")


def _to_decimal_2(raw: Any) -> Decimal:
    try:
        d = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise LedgerValidationError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise LedgerValidationError(f"invalid amount: {raw!r}")
    return quantize_amount(d)


def normalize_description(description: str) -> str:
    return description.strip().lower()


def compute_fingerprint(
    *,
    date: dt.date | dt.datetime,
    amount: Decimal | int | float | str,
    description: str,
    account_id: int | str,
) -> str:
    """Compute the SHA-256 duplicate fingerprint for one transaction.

    Payload: ``YYYY-MM-DD|<amount 2dp>|<lower(trim(description))>|<account>``.
    Formatting differences (case, surrounding whitespace, ``450`` vs
    ``450.00``, time of day) never change the result. Distinct real events
    sharing all four values collide by construction.
    """

    payload = "|".join(
        (
            canonical_date(date),
            f"{_to_decimal_2(amount):.2f}",
            normalize_description(description),
            str(account_id),
        )
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


def find_transaction_by_fingerprint(
    session: Session, owner_id: str, fingerprint: str
) -> LedgerTransaction | None:
    """Return the live (non-deleted) ledger row with ``fingerprint`` for the owner."""

    stmt = (
        select(LedgerTransaction)
        .where(
            LedgerTransaction.owner_id == owner_id,
            LedgerTransaction.fingerprint_sha256 == fingerprint,
            LedgerTransaction.is_deleted.is_(False),
        )
        .limit(1)
    )
    return session.execute(stmt).scalars().first()


def create_transaction(
    session: Session,
    *,
    owner_id: str,
    account_id: int,
    direction: str,
    amount: Decimal | int | float | str,
    currency: str,
    description: str,
    date: dt.date,
    reference_number: str | None = None,
    account_type: str = "bank",
    source_upload_id: int | None = None,
) -> LedgerTransaction:
    """Insert one ledger transaction, enforcing fingerprint uniqueness.

    The fingerprint is re-derived here from the payload; callers' cached
    duplicate flags are advisory only. Raises ``DuplicateTransactionError``
    when a live row with the same fingerprint exists for ``owner_id``, either
    found up front or reported by the partial unique index when a concurrent
    writer wins the race. The insert runs inside a SAVEPOINT so a rejected row
    leaves the caller's transaction usable.
    """

    if direction not in LEDGER_DIRECTIONS:
        raise LedgerValidationError(f"invalid direction: {direction!r}")
    amount_d = _to_decimal_2(amount)
    if amount_d <= 0:
        raise LedgerValidationError("amount must be greater than zero")
    desc = (description or "").strip()
    if not desc:
        raise LedgerValidationError("description is required")
    if not currency or len(currency.strip()) != 3:
        raise LedgerValidationError(f"invalid currency: {currency!r}")

    fingerprint = compute_fingerprint(
        date=date, amount=amount_d, description=desc, account_id=account_id
    )
    existing = find_transaction_by_fingerprint(session, owner_id, fingerprint)
    if existing is not None:
        raise DuplicateTransactionError(fingerprint, existing.id)

    row = LedgerTransaction(
        owner_id=owner_id,
        account_id=account_id,
        account_type=account_type,
        direction=direction,
        amount=amount_d,
        currency=currency.strip().upper(),
        description=desc,
        date=date,
        reference_number=(reference_number or "").strip() or None,
        status="completed",
        fingerprint_sha256=fingerprint,
        source_upload_id=source_upload_id,
        is_deleted=False,
    )
    try:
        with session.begin_nested():
            session.add(row)
            session.flush()
    except IntegrityError as exc:
        # Only the live-fingerprint index makes this a duplicate; FK and check
        # violations are plain rejections.
        winner = find_transaction_by_fingerprint(session, owner_id, fingerprint)
        if winner is None:
            raise LedgerValidationError(f"rejected by database: {exc.orig}") from exc
        _logger.info("Fingerprint %s rejected by unique index: %s", fingerprint[:12], exc.orig)
        raise DuplicateTransactionError(fingerprint, winner.id) from exc
    except DBAPIError as exc:
        raise LedgerValidationError(f"rejected by database: {exc.orig}") from exc
    return row


def soft_delete_transaction(session: Session, transaction_id: int, owner_id: str) -> bool:
    """Mark a live transaction deleted. Its fingerprint stops counting as a duplicate."""

    now = func.now()
    result = session.execute(
        update(LedgerTransaction)
        .where(
            LedgerTransaction.id == transaction_id,
            LedgerTransaction.owner_id == owner_id,
            LedgerTransaction.is_deleted.is_(False),
        )
        .values(is_deleted=True, deleted_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def get_account_by_id(session: Session, account_id: int, owner_id: str) -> Account | None:
    stmt = select(Account).where(Account.id == account_id, Account.owner_id == owner_id)
    return session.execute(stmt).scalars().first()


def adjust_balance(session: Session, account_id: int, delta: Decimal) -> None:
    """Apply ``delta`` to the account's running balance in one UPDATE."""

    session.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(current_balance=Account.current_balance + quantize_amount(delta))
        .execution_options(synchronize_session=False)
    )


__all__ = [
    "normalize_description",
    "compute_fingerprint",
    "find_transaction_by_fingerprint",
    "create_transaction",
    "soft_delete_transaction",
    "get_account_by_id",
    "adjust_balance",
]

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CHAR,
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr

# SQLite only autoincrements ``INTEGER PRIMARY KEY`` (rowid) columns.
_PK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: si_accounts
# ---------------------------


class Account(Base):
    __tablename__ = "si_accounts"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False, server_default=text("'INR'"))
    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )
    # Running balance maintained by ledger writers (statement confirm applies a
    # single net delta per call).
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )
    status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'active'"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint("status in ('active','archived')", name="ck_si_account_status"),
    )


# ---------------------------
# Core: si_transactions (ledger)
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "si_transactions"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("si_accounts.id"), nullable=False, index=True
    )
    account_type: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'bank'")
    )
    direction: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'completed'")
    )
    # sha256 over (date, amount, normalized description, account). Unique per
    # owner among live rows; see ``uq_si_tx_owner_fingerprint_live`` below.
    fingerprint_sha256: Mapped[str] = mapped_column(CHAR(64), nullable=False)
    source_upload_id: Mapped[int | None] = mapped_column(
        ForeignKey("si_statement_uploads.id", ondelete="SET NULL"), nullable=True
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "direction in ('income','expense','transfer')", name="ck_si_tx_direction"
        ),
        CheckConstraint("account_type in ('bank','cash')", name="ck_si_tx_account_type"),
        CheckConstraint("amount >= 0", name="ck_si_tx_amount_non_negative"),
        Index(
            "uq_si_tx_owner_fingerprint_live",
            "owner_id",
            "fingerprint_sha256",
            unique=True,
            postgresql_where=text("is_deleted = false"),
            sqlite_where=text("is_deleted = 0"),
        ),
        Index("ix_si_tx_owner_date", "owner_id", "date"),
    )


# ---------------------------
# Staging: si_statement_uploads
# ---------------------------


class StatementUpload(Base):
    __tablename__ = "si_statement_uploads"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("si_accounts.id"), nullable=False)
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    file_format: Mapped[str] = mapped_column(String, nullable=False)
    file_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    parse_status: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'pending'")
    )
    candidate_count: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    # Serialized ``TransactionCandidate`` dicts in extraction order. Always
    # reassigned as a whole list; JSON columns do not track in-place mutation.
    candidates: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Bumped on every mutation; confirm claims the row by compare-and-swap.
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    last_confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "file_format in ('tabular','freetext')", name="ck_si_upload_file_format"
        ),
        CheckConstraint(
            "parse_status in ('pending','parsing','completed','failed')",
            name="ck_si_upload_parse_status",
        ),
        Index("ix_si_upload_owner_status", "owner_id", "parse_status"),
        Index("ix_si_upload_owner_account_uploaded", "owner_id", "account_id", "uploaded_at"),
    )


__all__ = [
    "Base",
    "Account",
    "LedgerTransaction",
    "StatementUpload",
]

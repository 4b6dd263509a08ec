# ruff: noqa: I001
"""Accounts, ledger transactions and statement uploads.

Revision ID: 0001_statement_ingest_core
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_statement_ingest_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# SQLite only autoincrements INTEGER PRIMARY KEY.
_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "si_accounts",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'INR'")),
        sa.Column("opening_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("current_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'active'")),
        *_timestamps(),
        sa.CheckConstraint("status in ('active','archived')", name="ck_si_account_status"),
    )
    op.create_index("ix_si_accounts_owner_id", "si_accounts", ["owner_id"])

    op.create_table(
        "si_statement_uploads",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("account_id", sa.BigInteger(), sa.ForeignKey("si_accounts.id"), nullable=False),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("file_format", sa.String(), nullable=False),
        sa.Column("file_ref", sa.Text(), nullable=True),
        sa.Column(
            "uploaded_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "parse_status", sa.String(), nullable=False, server_default=sa.text("'pending'")
        ),
        sa.Column("candidate_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("candidates", sa.JSON(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "file_format in ('tabular','freetext')", name="ck_si_upload_file_format"
        ),
        sa.CheckConstraint(
            "parse_status in ('pending','parsing','completed','failed')",
            name="ck_si_upload_parse_status",
        ),
    )
    op.create_index(
        "ix_si_upload_owner_status", "si_statement_uploads", ["owner_id", "parse_status"]
    )
    op.create_index(
        "ix_si_upload_owner_account_uploaded",
        "si_statement_uploads",
        ["owner_id", "account_id", "uploaded_at"],
    )

    op.create_table(
        "si_transactions",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("account_id", sa.BigInteger(), sa.ForeignKey("si_accounts.id"), nullable=False),
        sa.Column("account_type", sa.String(), nullable=False, server_default=sa.text("'bank'")),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reference_number", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'completed'")),
        sa.Column("fingerprint_sha256", sa.CHAR(64), nullable=False),
        sa.Column(
            "source_upload_id",
            sa.BigInteger(),
            sa.ForeignKey("si_statement_uploads.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "direction in ('income','expense','transfer')", name="ck_si_tx_direction"
        ),
        sa.CheckConstraint("account_type in ('bank','cash')", name="ck_si_tx_account_type"),
        sa.CheckConstraint("amount >= 0", name="ck_si_tx_amount_non_negative"),
    )
    op.create_index("ix_si_transactions_account_id", "si_transactions", ["account_id"])
    op.create_index("ix_si_tx_owner_date", "si_transactions", ["owner_id", "date"])
    # Fingerprint uniqueness among live rows is the commit-time duplicate guard.
    op.create_index(
        "uq_si_tx_owner_fingerprint_live",
        "si_transactions",
        ["owner_id", "fingerprint_sha256"],
        unique=True,
        postgresql_where=sa.text("is_deleted = false"),
        sqlite_where=sa.text("is_deleted = 0"),
    )


def downgrade() -> None:
    op.drop_index("uq_si_tx_owner_fingerprint_live", table_name="si_transactions")
    op.drop_index("ix_si_tx_owner_date", table_name="si_transactions")
    op.drop_index("ix_si_transactions_account_id", table_name="si_transactions")
    op.drop_table("si_transactions")
    op.drop_index("ix_si_upload_owner_account_uploaded", table_name="si_statement_uploads")
    op.drop_index("ix_si_upload_owner_status", table_name="si_statement_uploads")
    op.drop_table("si_statement_uploads")
    op.drop_index("ix_si_accounts_owner_id", table_name="si_accounts")
    op.drop_table("si_accounts")

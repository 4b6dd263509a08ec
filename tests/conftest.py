"""Pytest configuration for test isolation.

Tests import the workspace packages straight from the source tree, so
``packages/``, ``libs/db/src`` and the repo root (for ``tests.helpers``) are
put on ``sys.path`` here, before any test module is imported.

The pipeline reads a few ``STATEMENT_INGEST_*`` variables and the shared
``db.client`` engine is process-global. An autouse fixture clears both so no
test sees another test's environment or database.
"""

# ruff: noqa: E402, I001
from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in [str(_ROOT / "packages"), str(_ROOT / "libs/db/src"), str(_ROOT)]
    if p not in sys.path
]

import pytest

from db.client import reset_engine
from tests.helpers.db import bootstrap_sqlite_db, seed_account


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop ambient configuration and the shared engine around every test."""

    for name in (
        "DATABASE_URL",
        "STATEMENT_INGEST_LOG_LEVEL",
        "STATEMENT_INGEST_MAX_UPLOAD_BYTES",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    reset_engine()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """A fresh file-backed SQLite database with the full schema."""

    return bootstrap_sqlite_db(tmp_path / "statement-ingest.db")


@pytest.fixture
def account_id(db_url: str) -> int:
    """An account owned by ``tests.helpers.db.OWNER`` with balance 5000.00."""

    return seed_account(database_url=db_url)

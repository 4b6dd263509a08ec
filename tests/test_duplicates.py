from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from db.client import session_scope

import statement_ingest.persistence as persistence_mod
from statement_ingest.duplicates import check_duplicates, tag_duplicates
from statement_ingest.errors import DuplicateTransactionError, LedgerValidationError
from statement_ingest.models import TransactionCandidate
from statement_ingest.persistence import (
    compute_fingerprint,
    create_transaction,
    find_transaction_by_fingerprint,
    soft_delete_transaction,
)
from tests.helpers.db import OTHER_OWNER, OWNER, ledger_rows, seed_account


def _create(session, account_id: int, *, owner_id: str = OWNER, **overrides):
    fields = {
        "owner_id": owner_id,
        "account_id": account_id,
        "direction": "expense",
        "amount": Decimal("450.00"),
        "currency": "INR",
        "description": "Electricity Bill",
        "date": dt.date(2024, 3, 1),
    }
    fields.update(overrides)
    return create_transaction(session, **fields)


def _candidate(temp_id: str = "temp_0", **overrides) -> TransactionCandidate:
    fields = {
        "temp_id": temp_id,
        "date": dt.date(2024, 3, 1),
        "amount": Decimal("450.00"),
        "description": "Electricity Bill",
        "direction": "expense",
    }
    fields.update(overrides)
    return TransactionCandidate(**fields)


# ---- Ledger write path -------------------------------------------------------


def test_create_transaction_stores_fingerprint(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        row = _create(session, account_id, description="  Electricity Bill ", currency="inr")
        row_id = row.id

    (stored,) = ledger_rows(database_url=db_url)
    assert stored.id == row_id
    assert stored.description == "Electricity Bill"
    assert stored.currency == "INR"
    assert stored.fingerprint_sha256 == compute_fingerprint(
        date=dt.date(2024, 3, 1),
        amount=Decimal("450.00"),
        description="electricity bill",
        account_id=account_id,
    )


def test_create_transaction_rejects_live_duplicate(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        first = _create(session, account_id)
        with pytest.raises(DuplicateTransactionError) as info:
            _create(session, account_id, description="ELECTRICITY BILL", amount=450)
        assert info.value.existing_id == first.id
        assert str(info.value) == "Duplicate transaction detected"

    assert len(ledger_rows(database_url=db_url)) == 1


def test_duplicate_scope_is_per_owner(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        first = _create(session, account_id)
        # Same payload and account id, hence the same fingerprint; different owner.
        second = _create(session, account_id, owner_id=OTHER_OWNER)
        assert first.fingerprint_sha256 == second.fingerprint_sha256

    assert len(ledger_rows(database_url=db_url, owner_id=OTHER_OWNER)) == 1

    other_account = seed_account(database_url=db_url, owner_id=OTHER_OWNER)
    with session_scope(database_url=db_url) as session:
        assert not check_duplicates(
            session,
            owner_id=OTHER_OWNER,
            account_id=other_account,
            candidates=[_candidate()],
        ).popitem()[1]


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": Decimal("0")},
        {"amount": Decimal("-5")},
        {"description": "   "},
        {"direction": "sideways"},
        {"currency": "RUPEES"},
    ],
)
def test_create_transaction_validates_payload(
    db_url: str, account_id: int, overrides: dict
) -> None:
    with session_scope(database_url=db_url) as session:
        with pytest.raises(LedgerValidationError):
            _create(session, account_id, **overrides)


def test_foreign_key_failure_is_not_a_duplicate(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        with pytest.raises(LedgerValidationError) as info:
            _create(session, account_id + 999)
        assert not isinstance(info.value, DuplicateTransactionError)

        # The savepoint rolled back; the outer transaction is still usable.
        _create(session, account_id)

    assert len(ledger_rows(database_url=db_url)) == 1


def test_unique_index_race_reports_the_winning_row(
    db_url: str, account_id: int, monkeypatch: pytest.MonkeyPatch
) -> None:
    with session_scope(database_url=db_url) as session:
        first = _create(session, account_id)
        first_id = first.id

    real_find = persistence_mod.find_transaction_by_fingerprint
    calls: list[str] = []

    def _stale_then_real(session, owner_id, fingerprint):
        calls.append(fingerprint)
        # The up-front check misses the row, as if the other writer had not
        # committed yet.
        if len(calls) == 1:
            return None
        return real_find(session, owner_id, fingerprint)

    monkeypatch.setattr(persistence_mod, "find_transaction_by_fingerprint", _stale_then_real)

    with session_scope(database_url=db_url) as session:
        with pytest.raises(DuplicateTransactionError) as info:
            _create(session, account_id)
        assert info.value.existing_id == first_id

    assert len(ledger_rows(database_url=db_url)) == 1


def test_soft_deleted_rows_no_longer_count(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        row = _create(session, account_id)
        fp = row.fingerprint_sha256
        assert soft_delete_transaction(session, row.id, OWNER) is True
        assert soft_delete_transaction(session, row.id, OWNER) is False
        assert find_transaction_by_fingerprint(session, OWNER, fp) is None

        # The partial unique index lets the same fingerprint live again.
        recreated = _create(session, account_id)
        assert recreated.id != row.id


# ---- Candidate tagging -------------------------------------------------------


def test_check_duplicates_maps_each_fingerprint(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        existing = _create(session, account_id)
        known = _candidate("temp_0", description="electricity bill ")
        new = _candidate("temp_1", description="Water Bill")

        found = check_duplicates(
            session, owner_id=OWNER, account_id=account_id, candidates=[known, new]
        )

        assert len(found) == 2
        assert found[existing.fingerprint_sha256] is not None
        assert found[existing.fingerprint_sha256].id == existing.id
        assert sum(1 for v in found.values() if v is None) == 1


def test_tag_duplicates_returns_flagged_copies(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        existing = _create(session, account_id)
        originals = [_candidate("temp_0"), _candidate("temp_1", description="Water Bill")]

        tagged = tag_duplicates(
            session, owner_id=OWNER, account_id=account_id, candidates=originals
        )

        assert [c.temp_id for c in tagged] == ["temp_0", "temp_1"]
        assert tagged[0].is_duplicate is True
        assert tagged[0].matching_transaction_id == existing.id
        assert tagged[0].fingerprint == existing.fingerprint_sha256
        assert tagged[1].is_duplicate is False
        assert tagged[1].matching_transaction_id is None
        assert tagged[1].fingerprint is not None
        # Inputs are untouched.
        assert originals[0].is_duplicate is False
        assert originals[0].fingerprint is None


def test_sibling_candidates_are_not_duplicates_of_each_other(
    db_url: str, account_id: int
) -> None:
    with session_scope(database_url=db_url) as session:
        tagged = tag_duplicates(
            session,
            owner_id=OWNER,
            account_id=account_id,
            candidates=[_candidate("temp_0"), _candidate("temp_1")],
        )

    assert [c.is_duplicate for c in tagged] == [False, False]
    assert tagged[0].fingerprint == tagged[1].fingerprint


def test_check_duplicates_handles_large_batches(db_url: str, account_id: int) -> None:
    candidates = [
        _candidate(f"temp_{i}", description=f"Payment {i}") for i in range(1200)
    ]
    with session_scope(database_url=db_url) as session:
        _create(session, account_id, description="Payment 1100")
        found = check_duplicates(
            session, owner_id=OWNER, account_id=account_id, candidates=candidates
        )

    assert len(found) == 1200
    assert sum(1 for v in found.values() if v is not None) == 1

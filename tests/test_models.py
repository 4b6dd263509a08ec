from __future__ import annotations

import datetime as dt
import io
import logging
from decimal import Decimal

import pytest
from pydantic import ValidationError

import statement_ingest.logging_setup as logging_setup
from statement_ingest.logging_setup import _parse_level, configure_logging, get_logger
from statement_ingest.models import (
    CandidateEdit,
    ExtractionResult,
    SkippedRow,
    TransactionCandidate,
)


def _candidate(**overrides) -> TransactionCandidate:
    fields = {
        "temp_id": "temp_0",
        "date": dt.date(2024, 3, 1),
        "amount": "450.005",
        "description": "  Electricity Bill ",
        "direction": "expense",
        "reference_number": "  ",
    }
    fields.update(overrides)
    return TransactionCandidate(**fields)


def test_candidate_normalizes_fields() -> None:
    c = _candidate()

    assert c.amount == Decimal("450.01")
    assert c.description == "Electricity Bill"
    assert c.reference_number is None
    assert c.is_duplicate is False


@pytest.mark.parametrize(
    "overrides",
    [{"amount": "0"}, {"amount": "-1"}, {"description": ""}, {"direction": "transfer"}],
)
def test_candidate_rejects_invalid_values(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        _candidate(**overrides)


def test_candidate_record_round_trip_is_json_safe() -> None:
    c = _candidate(balance=Decimal("1234.5"), fingerprint="ab" * 32)

    record = c.to_record()

    assert record["date"] == "2024-03-01"
    assert record["amount"] == "450.01"
    assert TransactionCandidate.from_record(record) == c


def test_candidate_edit_changes_reports_supplied_fields_only() -> None:
    assert CandidateEdit(description="New").changes() == {"description": "New"}
    assert CandidateEdit(reference_number="").changes() == {"reference_number": None}
    assert CandidateEdit(amount=None).changes() == {}
    assert CandidateEdit(date="01-03-2024").changes() == {"date": dt.date(2024, 3, 1)}


def test_extraction_result_routes_outcomes() -> None:
    result = ExtractionResult()
    result.add(_candidate())
    result.add(SkippedRow(3, "bad_date", "someday"))

    assert len(result.candidates) == 1
    assert result.skipped_count == 1
    assert result.skipped[0].detail == "someday"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("DEBUG", logging.DEBUG),
        (" warning ", logging.WARNING),
        ("10", 10),
        (logging.ERROR, logging.ERROR),
        ("nonsense", logging.INFO),
    ],
)
def test_parse_level(raw, expected: int) -> None:
    assert _parse_level(raw) == expected


def test_parse_level_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STATEMENT_INGEST_LOG_LEVEL", "debug")
    assert _parse_level(None) == logging.DEBUG
    monkeypatch.delenv("STATEMENT_INGEST_LOG_LEVEL")
    assert _parse_level(None) == logging.INFO


def test_get_logger_is_namespaced() -> None:
    logger = get_logger("statement_ingest.tests")

    assert logger.name == "statement_ingest.tests"
    assert logging.getLogger("statement_ingest").handlers


@pytest.fixture
def fresh_logging(monkeypatch: pytest.MonkeyPatch):
    pkg_logger = logging.getLogger("statement_ingest")
    sql_logger = logging.getLogger("sqlalchemy.engine")
    saved = (list(pkg_logger.handlers), pkg_logger.level, pkg_logger.propagate)
    saved_sql = (list(sql_logger.handlers), sql_logger.level)
    monkeypatch.setattr(logging_setup, "_handler", None)
    yield
    pkg_logger.handlers[:] = saved[0]
    pkg_logger.setLevel(saved[1])
    pkg_logger.propagate = saved[2]
    sql_logger.handlers[:] = saved_sql[0]
    sql_logger.setLevel(saved_sql[1])


def test_configure_logging_attaches_one_handler(fresh_logging) -> None:
    stream = io.StringIO()

    handler = configure_logging("debug", sql=False, stream=stream)
    get_logger("statement_ingest.tests").debug("parsed %d rows", 3)

    assert "statement_ingest.tests: parsed 3 rows" in stream.getvalue()
    assert configure_logging("warning", sql=False) is handler
    assert handler.level == logging.WARNING
    assert logging.getLogger("statement_ingest").handlers.count(handler) == 1


def test_configure_logging_can_route_sql(
    fresh_logging, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("STATEMENT_INGEST_LOG_SQL", "yes")

    handler = configure_logging("info", stream=io.StringIO())

    assert handler in logging.getLogger("sqlalchemy.engine").handlers

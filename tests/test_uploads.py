from __future__ import annotations

import datetime as dt
from decimal import Decimal, InvalidOperation
from pathlib import Path

import pytest
from db.client import session_scope

import statement_ingest.uploads as uploads_mod
from statement_ingest.errors import (
    AccountNotFoundError,
    ExtractionFailure,
    UnsupportedFileError,
    UploadNotFoundError,
)
from statement_ingest.ingest.utils import extract_candidates, load_statement_text
from statement_ingest.persistence import create_transaction
from statement_ingest.uploads import (
    create_upload,
    get_upload,
    infer_format,
    list_uploads,
    parse_upload,
)
from tests.helpers.db import OTHER_OWNER, OWNER

CSV_TEXT = (
    "Date,Description,Amount,Type\n"
    "01/03/2024,Electricity Bill,450.00,Debit\n"
    "02/03/2024,Salary,50000,Credit\n"
    "not-a-date,Broken row,10,Debit\n"
)


@pytest.mark.parametrize(
    ("name", "fmt"),
    [("march.csv", "tabular"), ("MARCH.PDF", "freetext"), ("export.txt", "tabular")],
)
def test_infer_format(name: str, fmt: str) -> None:
    assert infer_format(name) == fmt


@pytest.mark.parametrize("name", ["statement.xlsx", "statement", "photo.png"])
def test_infer_format_rejects_other_files(name: str) -> None:
    with pytest.raises(UnsupportedFileError):
        infer_format(name)


def test_create_upload_starts_pending(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        upload = create_upload(
            session, owner_id=OWNER, account_id=account_id, file_name="march.csv"
        )
        assert upload.parse_status == "pending"
        assert upload.file_format == "tabular"
        assert upload.candidates == []
        assert upload.version == 0


def test_create_upload_requires_owned_account(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        with pytest.raises(AccountNotFoundError):
            create_upload(
                session, owner_id=OTHER_OWNER, account_id=account_id, file_name="march.csv"
            )


def test_parse_upload_from_text_stores_tagged_candidates(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        create_transaction(
            session,
            owner_id=OWNER,
            account_id=account_id,
            direction="expense",
            amount=Decimal("450.00"),
            currency="INR",
            description="electricity bill",
            date=dt.date(2024, 3, 1),
        )
        upload = create_upload(
            session, owner_id=OWNER, account_id=account_id, file_name="march.csv"
        )
        upload_id = upload.id

    with session_scope(database_url=db_url) as session:
        upload = parse_upload(session, upload_id=upload_id, owner_id=OWNER, text=CSV_TEXT)
        assert upload.parse_status == "completed"

    with session_scope(database_url=db_url) as session:
        upload = get_upload(session, upload_id=upload_id, owner_id=OWNER)
        assert upload.parse_status == "completed"
        assert upload.candidate_count == 2
        assert upload.skipped_count == 1
        assert upload.error_message is None
        assert [c["temp_id"] for c in upload.candidates] == ["temp_0", "temp_1"]
        assert [c["is_duplicate"] for c in upload.candidates] == [True, False]
        assert upload.candidates[0]["amount"] == "450.00"
        assert upload.candidates[0]["date"] == "2024-03-01"


def test_parse_upload_reads_stored_file(db_url: str, account_id: int, tmp_path: Path) -> None:
    path = tmp_path / "march.csv"
    # Spreadsheet exports often start with a UTF-8 BOM.
    path.write_bytes(b"\xef\xbb\xbf" + CSV_TEXT.encode("utf-8"))

    with session_scope(database_url=db_url) as session:
        upload = create_upload(
            session,
            owner_id=OWNER,
            account_id=account_id,
            file_name=path.name,
            file_ref=str(path),
        )
        upload = parse_upload(session, upload_id=upload.id, owner_id=OWNER)
        assert upload.parse_status == "completed"
        assert upload.candidate_count == 2


def test_failed_extraction_is_recorded_not_raised(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        upload = create_upload(
            session, owner_id=OWNER, account_id=account_id, file_name="empty.csv"
        )
        upload_id = upload.id
        parsed = parse_upload(session, upload_id=upload_id, owner_id=OWNER, text="")
        assert parsed.parse_status == "failed"

    with session_scope(database_url=db_url) as session:
        upload = get_upload(session, upload_id=upload_id, owner_id=OWNER)
        assert upload.parse_status == "failed"
        assert upload.error_message == "CSV file is empty or invalid"
        assert upload.candidates == []
        assert upload.candidate_count == 0

        # A failed upload may be re-parsed explicitly.
        upload = parse_upload(session, upload_id=upload_id, owner_id=OWNER, text=CSV_TEXT)
        assert upload.parse_status == "completed"
        assert upload.error_message is None
        assert upload.candidate_count == 2


def test_freetext_bad_amount_lines_are_skipped_not_fatal(db_url: str, account_id: int) -> None:
    text = (
        "01/03/2024 -450.00 Electricity Bill\n"
        "02/03/2024 0.004 Interest\n"
        "03/03/2024 123456789012345678901234567 Too big\n"
    )
    with session_scope(database_url=db_url) as session:
        upload = create_upload(
            session, owner_id=OWNER, account_id=account_id, file_name="march.pdf"
        )
        upload = parse_upload(session, upload_id=upload.id, owner_id=OWNER, text=text)

        assert upload.parse_status == "completed"
        assert upload.candidate_count == 1
        assert upload.skipped_count == 2


def test_arithmetic_error_during_extraction_marks_upload_failed(
    db_url: str, account_id: int, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _explode(text, file_format):
        raise InvalidOperation("quantize result has too many digits")

    monkeypatch.setattr(uploads_mod, "extract_candidates", _explode)

    with session_scope(database_url=db_url) as session:
        upload = create_upload(
            session, owner_id=OWNER, account_id=account_id, file_name="march.csv"
        )
        upload_id = upload.id
        parse_upload(session, upload_id=upload_id, owner_id=OWNER, text=CSV_TEXT)

    with session_scope(database_url=db_url) as session:
        upload = get_upload(session, upload_id=upload_id, owner_id=OWNER)
        assert upload.parse_status == "failed"
        assert upload.error_message
        assert upload.candidates == []


def test_reparse_replaces_candidates(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        upload = create_upload(
            session, owner_id=OWNER, account_id=account_id, file_name="march.csv"
        )
        parse_upload(session, upload_id=upload.id, owner_id=OWNER, text=CSV_TEXT)
        version_after_first = upload.version
        parse_upload(
            session,
            upload_id=upload.id,
            owner_id=OWNER,
            text="Date,Description,Amount\n05/03/2024,Only row,-1\n",
        )
        assert upload.candidate_count == 1
        assert upload.candidates[0]["description"] == "Only row"
        assert upload.version > version_after_first


def test_missing_file_marks_upload_failed(db_url: str, account_id: int, tmp_path: Path) -> None:
    with session_scope(database_url=db_url) as session:
        upload = create_upload(
            session,
            owner_id=OWNER,
            account_id=account_id,
            file_name="gone.csv",
            file_ref=str(tmp_path / "gone.csv"),
        )
        upload = parse_upload(session, upload_id=upload.id, owner_id=OWNER)
        assert upload.parse_status == "failed"
        assert "gone.csv" in (upload.error_message or "")


def test_get_upload_is_owner_scoped(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        upload = create_upload(
            session, owner_id=OWNER, account_id=account_id, file_name="march.csv"
        )
        with pytest.raises(UploadNotFoundError):
            get_upload(session, upload_id=upload.id, owner_id=OTHER_OWNER)
        with pytest.raises(UploadNotFoundError):
            parse_upload(session, upload_id=upload.id + 100, owner_id=OWNER, text=CSV_TEXT)


def test_list_uploads_newest_first(db_url: str, account_id: int) -> None:
    with session_scope(database_url=db_url) as session:
        for name in ("jan.csv", "feb.csv", "mar.pdf"):
            create_upload(session, owner_id=OWNER, account_id=account_id, file_name=name)

    with session_scope(database_url=db_url) as session:
        names = [u.file_name for u in list_uploads(session, owner_id=OWNER)]
        assert names == ["mar.pdf", "feb.csv", "jan.csv"]
        assert list_uploads(session, owner_id=OWNER, account_id=account_id + 1) == []
        assert list_uploads(session, owner_id=OTHER_OWNER) == []


# ---- File loading ------------------------------------------------------------


def test_load_statement_text_enforces_size_cap(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "big.csv"
    path.write_text(CSV_TEXT, encoding="utf-8")
    monkeypatch.setenv("STATEMENT_INGEST_MAX_UPLOAD_BYTES", "16")

    with pytest.raises(UnsupportedFileError):
        load_statement_text(path, file_format="tabular")


def test_load_statement_text_rejects_undecodable_bytes(tmp_path: Path) -> None:
    path = tmp_path / "latin1.csv"
    path.write_bytes("Date,Description,Amount\n01/03/2024,Caf\xe9,-3\n".encode("latin-1"))

    with pytest.raises(ExtractionFailure):
        load_statement_text(path, file_format="tabular")


def test_load_statement_text_reports_unreadable_pdf(tmp_path: Path) -> None:
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"this is not a pdf")

    with pytest.raises(ExtractionFailure):
        load_statement_text(path, file_format="freetext")


def test_extract_candidates_dispatches_by_format() -> None:
    assert extract_candidates(CSV_TEXT, "tabular").skipped_count == 1
    freetext = extract_candidates("01/03/2024 -450.00 Electricity Bill\n", "freetext")
    assert [c.description for c in freetext.candidates] == ["Electricity Bill"]
    with pytest.raises(UnsupportedFileError):
        extract_candidates(CSV_TEXT, "spreadsheet")  # type: ignore[arg-type]

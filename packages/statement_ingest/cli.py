# ruff: noqa: I001
"""CLI for the ``statement_ingest`` package.

This module exposes callable command handlers (``cmd_upload``,
``cmd_parse``, ...) and a Typer-based console interface. Environment
variables (notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Business logic lives in
``statement_ingest.api`` and the modules it re-exports.

Every handler opens one ``db.client.session_scope``; output is printed before
the scope closes. Pipeline errors are written to stderr and turned into a
non-zero exit status.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from typer.models import ArgumentInfo, OptionInfo

from db.client import session_scope
from .errors import CandidateValidationError, StatementIngestError
from .logging_setup import configure_logging
from .models import CandidateEdit, TransactionCandidate


def _err(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _fmt_candidate(c: TransactionCandidate) -> str:
    dup = f"\tDUPLICATE of #{c.matching_transaction_id}" if c.is_duplicate else ""
    return (
        f"{c.temp_id}\t{c.date.isoformat()}\t{c.direction}\t{c.amount:.2f}\t{c.description}{dup}"
    )


# ---- Command handlers --------------------------------------------------------


def cmd_upload(
    file_path: str,
    *,
    owner_id: str,
    account_id: int,
    parse: bool = True,
    database_url: str | None = None,
) -> int:
    """Register a statement file and (by default) parse it right away."""

    from .uploads import create_upload, parse_upload

    path = Path(file_path)
    if not path.is_file():
        return _err(f"File not found: {file_path}")

    try:
        with session_scope(database_url=database_url) as session:
            upload = create_upload(
                session,
                owner_id=owner_id,
                account_id=account_id,
                file_name=path.name,
                file_ref=str(path.resolve()),
            )
            print(f"upload {upload.id}\t{upload.file_name}\t{upload.file_format}")
            if not parse:
                return 0
            upload = parse_upload(session, upload_id=upload.id, owner_id=owner_id)
            return _report_parse(upload)
    except StatementIngestError as e:
        return _err(str(e))


def _report_parse(upload: Any) -> int:
    if upload.parse_status == "failed":
        print(f"upload {upload.id}\tfailed\t{upload.error_message}")
        return _err(f"parsing upload {upload.id} failed: {upload.error_message}")
    print(
        f"upload {upload.id}\t{upload.parse_status}\t"
        f"{upload.candidate_count} candidate(s)\t{upload.skipped_count} skipped"
    )
    return 0


def cmd_parse(
    upload_id: int,
    *,
    owner_id: str,
    text_path: str | None = None,
    database_url: str | None = None,
) -> int:
    """(Re-)parse an upload, optionally from already-extracted text."""

    from .uploads import parse_upload

    text: str | None = None
    if text_path is not None:
        try:
            text = Path(text_path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            return _err(f"cannot read {text_path}: {e}")

    try:
        with session_scope(database_url=database_url) as session:
            upload = parse_upload(session, upload_id=upload_id, owner_id=owner_id, text=text)
            return _report_parse(upload)
    except StatementIngestError as e:
        return _err(str(e))


def cmd_review(upload_id: int, *, owner_id: str, database_url: str | None = None) -> int:
    """Print the candidates of a parsed upload, one per line."""

    from .review import get_review

    try:
        with session_scope(database_url=database_url) as session:
            snapshot = get_review(session, upload_id=upload_id, owner_id=owner_id)
            for c in snapshot.candidates:
                print(_fmt_candidate(c))
            print(
                f"{len(snapshot.candidates)} candidate(s), "
                f"{snapshot.duplicate_count} duplicate(s), "
                f"{snapshot.upload.skipped_count} row(s) skipped during extraction"
            )
    except StatementIngestError as e:
        return _err(str(e))
    return 0


def cmd_edit(
    upload_id: int,
    temp_id: str,
    *,
    owner_id: str,
    changes: dict[str, Any],
    database_url: str | None = None,
) -> int:
    """Apply field changes to one candidate."""

    from .review import edit_candidate

    if not changes:
        return _err("nothing to change; pass at least one field option")
    try:
        edit = CandidateEdit.model_validate(changes)
    except ValidationError as e:
        return _err(str(CandidateValidationError(str(e))))

    try:
        with session_scope(database_url=database_url) as session:
            updated = edit_candidate(
                session, upload_id=upload_id, owner_id=owner_id, temp_id=temp_id, edit=edit
            )
            print(_fmt_candidate(updated))
    except StatementIngestError as e:
        return _err(str(e))
    return 0


def cmd_confirm(
    upload_id: int,
    *,
    owner_id: str,
    temp_ids: Sequence[str] | None = None,
    skip_duplicates: bool = False,
    database_url: str | None = None,
) -> int:
    """Commit the selected candidates of an upload to the ledger."""

    from .commit import confirm_upload

    try:
        with session_scope(database_url=database_url) as session:
            result = confirm_upload(
                session,
                upload_id=upload_id,
                owner_id=owner_id,
                temp_ids=temp_ids,
                skip_duplicates=skip_duplicates,
            )
            print(
                f"created {result.created}\tskipped {result.skipped}\t"
                f"duplicates {result.duplicates}\tbalance delta {result.balance_delta}"
            )
    except StatementIngestError as e:
        return _err(str(e))
    return 0


def cmd_list_uploads(
    *, owner_id: str, account_id: int | None = None, database_url: str | None = None
) -> int:
    """List an owner's uploads, newest first."""

    from .uploads import list_uploads

    with session_scope(database_url=database_url) as session:
        for u in list_uploads(session, owner_id=owner_id, account_id=account_id):
            print(
                f"{u.id}\t{u.uploaded_at:%Y-%m-%d %H:%M}\t{u.account_id}\t{u.file_name}\t"
                f"{u.parse_status}\t{u.candidate_count}"
            )
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Ingest bank statements (CSV or PDF) into the ledger: upload, parse, "
        "review, edit, confirm. Loads DATABASE_URL from a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect these when used as default values below.
OWNER_OPTION: OptionInfo = typer.Option(..., "--owner", help="Owner (user) identifier.")
UPLOAD_ID_OPTION: OptionInfo = typer.Option(..., "--upload-id", help="Statement upload id.")
ACCOUNT_ID_OPTION: OptionInfo = typer.Option(..., "--account-id", help="Target account id.")
TEMP_ID_OPTION: OptionInfo = typer.Option(..., "--temp-id", help="Candidate temp id (temp_N).")
FILE_PATH_ARGUMENT: ArgumentInfo = typer.Argument(
    ..., dir_okay=False, help="Statement file (.csv, .txt or .pdf)."
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
LOG_LEVEL_OPTION: OptionInfo = typer.Option(
    None, "--log-level", help="Log level (falls back to STATEMENT_INGEST_LOG_LEVEL, then INFO)."
)
LOG_SQL_OPTION: OptionInfo = typer.Option(
    None, "--log-sql/--no-log-sql", help="Also log SQL statements (STATEMENT_INGEST_LOG_SQL)."
)


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


@app.command("upload")
def upload_cmd(
    file_path: Annotated[Path, FILE_PATH_ARGUMENT],
    owner_id: Annotated[str, OWNER_OPTION],
    account_id: Annotated[int, ACCOUNT_ID_OPTION],
    *,
    parse: bool = typer.Option(True, help="Parse the file immediately after registering it."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Register a statement file against an account."""

    _exit(
        cmd_upload(
            str(file_path),
            owner_id=owner_id,
            account_id=account_id,
            parse=parse,
            database_url=database_url,
        )
    )


@app.command("parse")
def parse_cmd(
    upload_id: Annotated[int, UPLOAD_ID_OPTION],
    owner_id: Annotated[str, OWNER_OPTION],
    *,
    text_file: Path | None = typer.Option(
        None, "--text-file", dir_okay=False, help="Parse this pre-extracted text instead."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Parse (or re-parse) an upload."""

    _exit(
        cmd_parse(
            upload_id,
            owner_id=owner_id,
            text_path=str(text_file) if text_file is not None else None,
            database_url=database_url,
        )
    )


@app.command("review")
def review_cmd(
    upload_id: Annotated[int, UPLOAD_ID_OPTION],
    owner_id: Annotated[str, OWNER_OPTION],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Show the candidates awaiting confirmation."""

    _exit(cmd_review(upload_id, owner_id=owner_id, database_url=database_url))


@app.command("edit")
def edit_cmd(
    upload_id: Annotated[int, UPLOAD_ID_OPTION],
    owner_id: Annotated[str, OWNER_OPTION],
    temp_id: Annotated[str, TEMP_ID_OPTION],
    *,
    date: str | None = typer.Option(None, help="New date (any supported statement format)."),
    amount: str | None = typer.Option(None, help="New positive amount."),
    description: str | None = typer.Option(None, help="New description."),
    direction: str | None = typer.Option(None, help="income or expense."),
    reference: str | None = typer.Option(
        None, help="New reference number (empty string clears it)."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Edit one candidate before confirming."""

    supplied = {
        "date": date,
        "amount": amount,
        "description": description,
        "direction": direction,
        "reference_number": reference,
    }
    changes = {k: v for k, v in supplied.items() if v is not None}
    _exit(
        cmd_edit(
            upload_id, temp_id, owner_id=owner_id, changes=changes, database_url=database_url
        )
    )


@app.command("confirm")
def confirm_cmd(
    upload_id: Annotated[int, UPLOAD_ID_OPTION],
    owner_id: Annotated[str, OWNER_OPTION],
    *,
    temp_id: list[str] | None = typer.Option(
        None, "--temp-id", help="Confirm only these candidates (repeatable)."
    ),
    skip_duplicates: bool = typer.Option(
        False, help="Leave candidates already in the ledger out of the commit."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Write reviewed candidates to the ledger."""

    _exit(
        cmd_confirm(
            upload_id,
            owner_id=owner_id,
            temp_ids=temp_id or None,
            skip_duplicates=skip_duplicates,
            database_url=database_url,
        )
    )


@app.command("uploads")
def uploads_cmd(
    owner_id: Annotated[str, OWNER_OPTION],
    *,
    account_id: int | None = typer.Option(None, "--account-id", help="Filter by account."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """List statement uploads, newest first."""

    _exit(cmd_list_uploads(owner_id=owner_id, account_id=account_id, database_url=database_url))


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    log_level: str | None = LOG_LEVEL_OPTION,
    log_sql: bool | None = LOG_SQL_OPTION,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(log_level, sql=log_sql)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m statement_ingest.cli`
    app()

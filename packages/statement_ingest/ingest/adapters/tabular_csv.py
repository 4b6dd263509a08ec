"""Adapter for delimited (CSV-shaped) bank statement exports.

Bank CSVs vary in column order and naming, so columns are located by keyword
matching on the header row rather than by exact header names:

- date: ``date``, ``transaction date``, ``transaction_date``
- amount: ``amount``, ``transaction amount``, ``transaction_amount``
- description: ``description``, ``particulars``, ``narration``, ``details``
- type: ``type``, ``transaction type``, ``debit/credit``, ``dr/cr``
- balance: ``balance``, ``closing balance``, ``closing_balance``
- reference: ``reference``, ``ref no``, ``ref``, ``cheque``, ``chq``, ``utr``

When date, amount or description cannot be found in the first row, the file
is treated as headerless: every row (including row 0) is read positionally as
``date, amount, description``.

Rows that fail shape/date/amount validation are reported as ``SkippedRow``
values; they never abort the document.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from ...dates import parse_statement_date
from ...errors import ExtractionFailure
from ...logging_setup import get_logger
from ...models import ExtractionResult, RowOutcome, SkippedRow, TransactionCandidate

_logger = get_logger("statement_ingest.ingest.tabular_csv")

DATE_KEYWORDS: tuple[str, ...] = ("date", "transaction date", "transaction_date")
AMOUNT_KEYWORDS: tuple[str, ...] = ("amount", "transaction amount", "transaction_amount")
DESCRIPTION_KEYWORDS: tuple[str, ...] = ("description", "particulars", "narration", "details")
TYPE_KEYWORDS: tuple[str, ...] = ("type", "transaction type", "debit/credit", "dr/cr")
BALANCE_KEYWORDS: tuple[str, ...] = ("balance", "closing balance", "closing_balance")
REFERENCE_KEYWORDS: tuple[str, ...] = ("reference", "ref no", "ref", "cheque", "chq", "utr")

NOT_FOUND = -1
MIN_FIELDS = 3

_EXPENSE_MARKERS = ("debit", "dr", "withdraw")
_INCOME_MARKERS = ("credit", "cr", "deposit")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
# "Rs. 1,000.00" and similar abbreviated currency prefixes.
_ABBREVIATION_RE = re.compile(r"[A-Za-z]+\.")


def tokenize_row(line: str) -> list[str]:
    """Split one CSV line on commas, honoring double quotes.

    A ``"`` toggles the in-quotes state and is dropped; commas inside quotes
    are kept. Escaped quotes (``""``) are not supported. Fields are trimmed.
    """

    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    fields.append("".join(current).strip())
    return fields


def find_column_index(header_fields: Sequence[str], keywords: Sequence[str]) -> int:
    """Return the first column whose lower-cased header contains a keyword.

    Keywords are tried in priority order; within a keyword, the leftmost
    matching column wins. Returns ``-1`` when nothing matches.
    """

    columns = [col.strip().lower() for col in header_fields]
    for keyword in keywords:
        kw = keyword.lower()
        for index, col in enumerate(columns):
            if kw in col:
                return index
    return NOT_FOUND


@dataclass(frozen=True, slots=True)
class ColumnMap:
    date: int
    amount: int
    description: int
    type: int = NOT_FOUND
    balance: int = NOT_FOUND
    reference: int = NOT_FOUND
    has_header: bool = True

    @classmethod
    def positional(cls) -> ColumnMap:
        return cls(date=0, amount=1, description=2, has_header=False)


def map_columns(header_line: str) -> ColumnMap:
    """Guess column roles from ``header_line``; positional fallback when headerless."""

    header = tokenize_row(header_line.lower())
    date_col = find_column_index(header, DATE_KEYWORDS)
    amount_col = find_column_index(header, AMOUNT_KEYWORDS)
    desc_col = find_column_index(header, DESCRIPTION_KEYWORDS)
    if NOT_FOUND in (date_col, amount_col, desc_col):
        return ColumnMap.positional()
    return ColumnMap(
        date=date_col,
        amount=amount_col,
        description=desc_col,
        type=find_column_index(header, TYPE_KEYWORDS),
        balance=find_column_index(header, BALANCE_KEYWORDS),
        reference=find_column_index(header, REFERENCE_KEYWORDS),
    )


def parse_signed_amount(raw: str | None) -> Decimal | None:
    """Strip everything but digits, ``-`` and ``.`` and parse a signed decimal.

    Abbreviations ending in a dot (``Rs.``) are dropped first so their dot
    is not read as a decimal point.

    Returns ``None`` when nothing parseable remains.
    """

    if raw is None:
        return None
    cleaned = _NON_NUMERIC_RE.sub("", _ABBREVIATION_RE.sub("", raw))
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def direction_from_type(type_text: str) -> str | None:
    """Map a type-column value to a direction (``None`` when unrecognized)."""

    lowered = type_text.lower()
    if any(marker in lowered for marker in _EXPENSE_MARKERS):
        return "expense"
    if any(marker in lowered for marker in _INCOME_MARKERS):
        return "income"
    return None


def _cell(columns: Sequence[str], index: int) -> str:
    if index == NOT_FOUND or index >= len(columns):
        return ""
    return columns[index]


def _row_outcome(line: str, line_no: int, cols: ColumnMap, temp_id: str) -> RowOutcome:
    columns = tokenize_row(line)
    if len(columns) < MIN_FIELDS:
        return SkippedRow(line_no, "too_few_fields")

    date_str = _cell(columns, cols.date)
    txn_date = parse_statement_date(date_str)
    if txn_date is None:
        return SkippedRow(line_no, "bad_date", date_str)

    amount_str = _cell(columns, cols.amount)
    amount = parse_signed_amount(amount_str)
    if amount is None or amount == 0:
        return SkippedRow(line_no, "bad_amount", amount_str)

    description = _cell(columns, cols.description).strip()
    if not description:
        return SkippedRow(line_no, "empty_description")

    direction = "income" if amount > 0 else "expense"
    type_str = _cell(columns, cols.type)
    if type_str:
        direction = direction_from_type(type_str) or direction

    balance_str = _cell(columns, cols.balance)
    balance = parse_signed_amount(balance_str) if balance_str else None

    return TransactionCandidate(
        temp_id=temp_id,
        date=txn_date,
        amount=abs(amount),
        description=description,
        direction=direction,
        reference_number=_cell(columns, cols.reference) or None,
        balance=balance,
    )


def extract_tabular(text: str) -> ExtractionResult:
    """Extract transaction candidates from CSV-shaped statement text.

    Raises ``ExtractionFailure`` when the document has fewer than two
    non-blank lines. Every other problem is per-row and recorded in
    ``ExtractionResult.skipped``.
    """

    lines = text.strip().splitlines()
    if sum(1 for ln in lines if ln.strip()) < 2:
        raise ExtractionFailure("CSV file is empty or invalid")

    cols = map_columns(lines[0])
    start = 1 if cols.has_header else 0
    if not cols.has_header:
        _logger.info("No recognizable header row; reading columns positionally")

    result = ExtractionResult()
    for line_no in range(start, len(lines)):
        line = lines[line_no].strip()
        if not line:
            continue
        temp_id = f"temp_{len(result.candidates)}"
        try:
            outcome = _row_outcome(line, line_no, cols, temp_id)
        except (ValueError, ArithmeticError) as exc:
            outcome = SkippedRow(line_no, "error", str(exc))
        if isinstance(outcome, SkippedRow):
            _logger.debug("Skipping CSV line %d: %s", line_no + 1, outcome.reason)
        result.add(outcome)

    _logger.info(
        "CSV extraction: %d candidate(s), %d skipped row(s)",
        len(result.candidates),
        result.skipped_count,
    )
    return result


__all__ = [
    "ColumnMap",
    "tokenize_row",
    "find_column_index",
    "map_columns",
    "parse_signed_amount",
    "direction_from_type",
    "extract_tabular",
]

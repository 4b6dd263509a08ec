"""Adapter for line-oriented text extracted from PDF bank statements.

PDF text extraction loses table structure, so each line is matched against an
ordered cascade of independent line shapes. Every pattern pairs a regular
expression with a validator (date must parse, amount must be non-zero,
description must be non-empty); the first pattern whose match validates wins
and later patterns are not consulted for that line.

Cascade (fixed priority)
------------------------
``numeric_date_first``
    ``01/03/2024  -450.00  Electricity Bill``
``month_name_date_first``
    ``01 Mar 2024  1,250.00  Salary``
``trailing_date``
    ``Electricity Bill  -450.00  01/03/2024``

Contract
--------
This is best-effort extraction. Nonstandard layouts are expected to
under-extract; lines that match nothing (headers, page footers, running
totals) are reported as ``no_match`` skips rather than guessed at.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from ...dates import parse_statement_date
from ...logging_setup import get_logger
from ...models import (
    ExtractionResult,
    RowOutcome,
    SkippedRow,
    TransactionCandidate,
    quantize_amount,
)

_logger = get_logger("statement_ingest.ingest.freetext_pdf")

_NUMERIC_DATE = r"\d{1,2}[-/]\d{1,2}[-/]\d{2,4}"
_MONTH_NAME_DATE = (
    r"\d{1,2}[-/\s](?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?[-/\s]\d{2,4}"
)
# Plain "1250.00" or grouped "1,250.00"; optional leading sign.
_AMOUNT = r"[+-]?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d*)?"


@dataclass(frozen=True, slots=True)
class LinePattern:
    """One line shape in the cascade: a regex plus the roles of its groups."""

    name: str
    regex: re.Pattern[str]
    date_group: str = "date"
    amount_group: str = "amount"
    description_group: str = "description"

    def match(self, line: str, temp_id: str) -> TransactionCandidate | None:
        """Return a candidate when ``line`` matches and validates, else ``None``."""

        m = self.regex.search(line)
        if m is None:
            return None
        txn_date = parse_statement_date(m.group(self.date_group))
        if txn_date is None:
            return None
        amount = _parse_amount(m.group(self.amount_group))
        if amount is None:
            return None
        try:
            magnitude = quantize_amount(abs(amount))
        except ArithmeticError:
            return None
        # Sub-cent amounts round to zero.
        if magnitude == 0:
            return None
        description = m.group(self.description_group).strip()
        if not description:
            return None
        return TransactionCandidate(
            temp_id=temp_id,
            date=txn_date,
            amount=magnitude,
            description=description,
            direction="income" if amount > 0 else "expense",
        )


def _parse_amount(token: str) -> Decimal | None:
    try:
        value = Decimal(token.replace(",", ""))
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


DEFAULT_PATTERNS: tuple[LinePattern, ...] = (
    LinePattern(
        "numeric_date_first",
        re.compile(
            rf"(?P<date>{_NUMERIC_DATE})\s+(?P<amount>{_AMOUNT})\s+(?P<description>.+)",
            re.IGNORECASE,
        ),
    ),
    LinePattern(
        "month_name_date_first",
        re.compile(
            rf"(?P<date>{_MONTH_NAME_DATE})\s+(?P<amount>{_AMOUNT})\s+(?P<description>.+)",
            re.IGNORECASE,
        ),
    ),
    LinePattern(
        "trailing_date",
        re.compile(
            rf"(?P<description>.+?)\s+(?P<amount>{_AMOUNT})\s+(?P<date>{_NUMERIC_DATE})",
            re.IGNORECASE,
        ),
    ),
)


def match_line(
    line: str, temp_id: str, patterns: Sequence[LinePattern] = DEFAULT_PATTERNS
) -> tuple[str, TransactionCandidate] | None:
    """Run the cascade over one line; return ``(pattern name, candidate)`` or ``None``."""

    for pattern in patterns:
        candidate = pattern.match(line, temp_id)
        if candidate is not None:
            return pattern.name, candidate
    return None


def extract_freetext(
    text: str, patterns: Sequence[LinePattern] = DEFAULT_PATTERNS
) -> ExtractionResult:
    """Extract transaction candidates from PDF-extracted plain text."""

    result = ExtractionResult()
    hits: dict[str, int] = {}
    for line_no, raw in enumerate(text.split("\n")):
        line = raw.strip()
        if not line:
            continue
        temp_id = f"temp_{len(result.candidates)}"
        outcome: RowOutcome
        try:
            matched = match_line(line, temp_id, patterns)
        except (ValueError, ArithmeticError) as exc:
            outcome = SkippedRow(line_no, "error", str(exc))
        else:
            if matched is None:
                outcome = SkippedRow(line_no, "no_match")
            else:
                name, outcome = matched
                hits[name] = hits.get(name, 0) + 1
        result.add(outcome)

    _logger.info(
        "Free-text extraction: %d candidate(s) %s, %d line(s) skipped",
        len(result.candidates),
        hits or "",
        result.skipped_count,
    )
    return result


__all__ = [
    "LinePattern",
    "DEFAULT_PATTERNS",
    "match_line",
    "extract_freetext",
]

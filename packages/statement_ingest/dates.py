"""Statement date normalization.

Bank exports write dates in a handful of shapes. ``parse_statement_date``
tries them in a fixed priority order and returns a calendar ``date`` or
``None``. Callers treat ``None`` as "skip this row"; there is no epoch or
zero-date sentinel.

Priority order
--------------
1. ``D-M-Y`` / ``D/M/Y`` (day first; 2 to 4 digit year)
2. ``Y-M-D`` / ``Y/M/D`` (4-digit year first)
3. ``D Mon Y`` with ``-``, ``/`` or space separators (English month names)
4. Generic parse of the whole string (``dateutil``), restricted to tokens
   that carry a 4-digit year and are not bare numbers.

Two-digit years always land in the 2000s (``24`` → ``2024``). A pattern that
matches but names an impossible date (``31-02-2024``) falls through to the
next pattern rather than rolling over.
"""

from __future__ import annotations

import datetime as dt
import re

from dateutil import parser as date_parser

# Digit runs are bounded on both sides so "2024-03-01" never reads as "24-03-01".
_DMY_RE = re.compile(r"(?<!\d)(\d{1,2})[-/](\d{1,2})[-/](\d{2,4})(?!\d)")
_YMD_RE = re.compile(r"(?<!\d)(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?!\d)")
_D_MON_Y_RE = re.compile(
    r"(?<!\d)(\d{1,2})[-/\s]"
    r"(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"
    r"[-/\s](\d{2,4})(?!\d)",
    re.IGNORECASE,
)

_MONTHS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_BARE_NUMBER_RE = re.compile(r"[+-]?[\d.,\s]+")
_HAS_YEAR_RE = re.compile(r"(?<!\d)\d{4}(?!\d)")


def _expand_year(raw: str) -> int:
    # Known simplification: no sliding window, every 2-digit year is 20xx.
    year = int(raw)
    return year + 2000 if year < 100 else year


def _safe_date(year: int, month: int, day: int) -> dt.date | None:
    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def _from_dmy(s: str) -> dt.date | None:
    m = _DMY_RE.search(s)
    if not m:
        return None
    return _safe_date(_expand_year(m.group(3)), int(m.group(2)), int(m.group(1)))


def _from_ymd(s: str) -> dt.date | None:
    m = _YMD_RE.search(s)
    if not m:
        return None
    return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _from_day_month_name(s: str) -> dt.date | None:
    m = _D_MON_Y_RE.search(s)
    if not m:
        return None
    month = _MONTHS[m.group(2).lower()[:3]]
    return _safe_date(_expand_year(m.group(3)), month, int(m.group(1)))


def _from_generic(s: str) -> dt.date | None:
    if _BARE_NUMBER_RE.fullmatch(s) or not _HAS_YEAR_RE.search(s):
        return None
    try:
        return date_parser.parse(s, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


_STRATEGIES = (_from_dmy, _from_ymd, _from_day_month_name, _from_generic)


def parse_statement_date(token: str | None) -> dt.date | None:
    """Parse a free-form statement date token; ``None`` when nothing matches."""

    if token is None:
        return None
    s = token.strip()
    if not s:
        return None
    for strategy in _STRATEGIES:
        parsed = strategy(s)
        if parsed is not None:
            return parsed
    return None


def canonical_date(value: dt.date | dt.datetime) -> str:
    """Render a calendar date as ``YYYY-MM-DD`` (time of day is dropped)."""

    if isinstance(value, dt.datetime):
        value = value.date()
    return value.isoformat()


__all__ = ["parse_statement_date", "canonical_date"]

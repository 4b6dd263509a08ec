"""Data models and type aliases for ``statement_ingest``.

``TransactionCandidate`` is the unit that flows through the pipeline: built by
an extractor, tagged by the fingerprint engine, edited in the review buffer
and finally read (never mutated) by the committer. It is a pydantic model
because it round-trips through the upload's JSON ``candidates`` column and
must re-validate on load.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from db.models.finance import LedgerTransaction, StatementUpload

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

type Direction = Literal["income", "expense"]
"""Direction of an extracted candidate. Ledger rows additionally allow
``"transfer"``, which never originates from a statement."""

type LedgerDirection = Literal["income", "expense", "transfer"]

type StatementFormat = Literal["tabular", "freetext"]

type ParseStatus = Literal["pending", "parsing", "completed", "failed"]

type SkipReason = Literal[
    "too_few_fields",
    "bad_date",
    "bad_amount",
    "empty_description",
    "no_match",
    "error",
]

DIRECTIONS: tuple[str, ...] = ("income", "expense")
LEDGER_DIRECTIONS: tuple[str, ...] = ("income", "expense", "transfer")
STATEMENT_FORMATS: tuple[str, ...] = ("tabular", "freetext")

_CENT = Decimal("0.01")


def quantize_amount(value: Decimal) -> Decimal:
    """Round to 2 decimal places (ROUND_HALF_UP), the ledger's precision."""

    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------


class TransactionCandidate(BaseModel):
    """One extracted statement row awaiting review.

    ``amount`` is always strictly positive; the sign of the raw statement value
    lives in ``direction``. ``fingerprint``/``is_duplicate``/
    ``matching_transaction_id`` reflect the most recent duplicate check and
    may be stale relative to later commits; the ledger write re-checks.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    temp_id: str
    date: dt.date
    amount: Decimal
    description: str
    direction: Direction
    reference_number: str | None = None
    balance: Decimal | None = None
    is_duplicate: bool = False
    matching_transaction_id: int | None = None
    fingerprint: str | None = None

    @field_validator("amount")
    @classmethod
    def _amount_positive(cls, v: Decimal) -> Decimal:
        q = quantize_amount(v)
        if q <= 0:
            raise ValueError("amount must be greater than zero")
        return q

    @field_validator("description")
    @classmethod
    def _description_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("description must be non-empty")
        return v

    @field_validator("reference_number")
    @classmethod
    def _blank_reference_is_none(cls, v: str | None) -> str | None:
        return v or None

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-safe dict stored in ``StatementUpload.candidates``."""

        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> TransactionCandidate:
        return cls.model_validate(record)


class CandidateEdit(BaseModel):
    """Partial update for one candidate; unset fields are left unchanged.

    ``reference_number`` may be explicitly set to ``None`` to clear it. For
    the other fields an explicit ``None`` is treated as "not supplied".
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    date: dt.date | None = None
    amount: Decimal | None = None
    description: str | None = None
    direction: Direction | None = None
    reference_number: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_statement_style_date(cls, v: Any) -> Any:
        if isinstance(v, str):
            from .dates import parse_statement_date  # local import avoids a cycle

            parsed = parse_statement_date(v)
            if parsed is None:
                raise ValueError(f"unrecognized date: {v!r}")
            return parsed
        return v

    @field_validator("amount")
    @classmethod
    def _amount_positive(cls, v: Decimal | None) -> Decimal | None:
        if v is None:
            return None
        q = quantize_amount(v)
        if q <= 0:
            raise ValueError("amount must be greater than zero")
        return q

    @field_validator("description")
    @classmethod
    def _description_non_empty(cls, v: str | None) -> str | None:
        if v is not None and not v:
            raise ValueError("description must be non-empty")
        return v

    def changes(self) -> dict[str, Any]:
        """Return only the fields the caller supplied."""

        out: dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if name == "reference_number":
                out[name] = value or None
            elif value is not None:
                out[name] = value
        return out


# ---------------------------------------------------------------------------
# Extraction results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SkippedRow:
    """A source line that did not yield a candidate."""

    line_no: int
    reason: SkipReason
    detail: str | None = None


type RowOutcome = TransactionCandidate | SkippedRow
"""Per-line result inside an extractor: a candidate or an explicit skip."""


@dataclass(slots=True)
class ExtractionResult:
    """Accepted candidates (extraction order) plus every skipped line."""

    candidates: list[TransactionCandidate] = field(default_factory=list)
    skipped: list[SkippedRow] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def add(self, outcome: RowOutcome) -> None:
        if isinstance(outcome, SkippedRow):
            self.skipped.append(outcome)
        else:
            self.candidates.append(outcome)


# ---------------------------------------------------------------------------
# Review and commit results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReviewSnapshot:
    upload: StatementUpload
    candidates: list[TransactionCandidate]

    @property
    def duplicate_count(self) -> int:
        return sum(1 for c in self.candidates if c.is_duplicate)


@dataclass(slots=True)
class CommitResult:
    """Outcome of one confirm call.

    ``transactions`` holds the ledger rows created by this call;
    ``skipped`` counts rows rejected for any reason other than being a
    duplicate under ``skip_duplicates``; ``duplicates`` counts those.
    """

    transactions: list[LedgerTransaction] = field(default_factory=list)
    skipped: int = 0
    duplicates: int = 0
    balance_delta: Decimal = Decimal("0.00")

    @property
    def created(self) -> int:
        return len(self.transactions)


__all__ = [
    "Direction",
    "LedgerDirection",
    "StatementFormat",
    "ParseStatus",
    "SkipReason",
    "DIRECTIONS",
    "LEDGER_DIRECTIONS",
    "STATEMENT_FORMATS",
    "quantize_amount",
    "TransactionCandidate",
    "CandidateEdit",
    "SkippedRow",
    "RowOutcome",
    "ExtractionResult",
    "ReviewSnapshot",
    "CommitResult",
]

"""Data models for reconciliation records and results."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional


class RecordKind(Enum):
    """Tag shared by every record that flows through the reporting engine."""

    BANK = "bank"
    LEDGER = "ledger"
    MATCHED = "matched"


class TransactionSource(Enum):
    """Side of the reconciliation an unmatched transaction came from."""

    BANK = "Bank"
    LEDGER = "Ledger"

    @property
    def kind(self) -> RecordKind:
        return RecordKind.BANK if self is TransactionSource.BANK else RecordKind.LEDGER


class ConfidenceBand(Enum):
    """Display bucket for a match confidence score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Record(ABC):
    """
    Shape shared by transactions and matched pairs.

    Amounts are signed: inflows positive, outflows negative. The engine
    consumes the sign as given and never re-derives it.
    """

    date: date
    description: str
    amount: Decimal

    @property
    @abstractmethod
    def kind(self) -> RecordKind:
        """Which list of a result this record belongs to."""

    def search_fields(self) -> tuple[Optional[str], ...]:
        """Text fields a free-text filter is allowed to look at."""
        return (self.description,)


@dataclass(frozen=True)
class Transaction(Record):
    """A bank or ledger line with no counterpart on the other side."""

    source: TransactionSource = TransactionSource.BANK
    ref: Optional[str] = None

    @property
    def kind(self) -> RecordKind:
        return self.source.kind

    def search_fields(self) -> tuple[Optional[str], ...]:
        return (self.description, self.ref)


@dataclass(frozen=True)
class MatchedPair(Record):
    """
    One bank line and one ledger line believed to be the same event.

    ``amount`` is the value both sides agree on. ``match_confidence`` is
    advisory metadata (0-100) and never takes part in arithmetic.
    """

    match_confidence: float = 0.0
    notes: str = ""
    bank_ref: Optional[str] = None
    ledger_ref: Optional[str] = None
    reasoning: Optional[str] = None

    @property
    def kind(self) -> RecordKind:
        return RecordKind.MATCHED

    @property
    def confidence_band(self) -> ConfidenceBand:
        if self.match_confidence >= 90:
            return ConfidenceBand.HIGH
        if self.match_confidence >= 70:
            return ConfidenceBand.MEDIUM
        return ConfidenceBand.LOW

    def search_fields(self) -> tuple[Optional[str], ...]:
        return (self.description, self.notes, self.reasoning, self.bank_ref, self.ledger_ref)


@dataclass(frozen=True)
class ReconciliationSummary:
    """
    Summary block returned by the matching service.

    Counts and amount totals always agree with the record collections.
    ``net_discrepancy`` is the matcher's own residual figure and is kept
    exactly as declared.
    """

    total_matches: int
    total_unmatched_bank: int
    total_unmatched_ledger: int
    net_discrepancy: Decimal
    matched_amount: Decimal
    unmatched_bank_amount: Decimal
    unmatched_ledger_amount: Decimal
    bank_statement_balance: Optional[Decimal] = None
    ledger_balance: Optional[Decimal] = None
    audit_score: Optional[float] = None


@dataclass(frozen=True)
class ReconciliationResult:
    """Complete, immutable output of one matching call."""

    summary: ReconciliationSummary
    matches: tuple[MatchedPair, ...] = ()
    unmatched_bank: tuple[Transaction, ...] = ()
    unmatched_ledger: tuple[Transaction, ...] = ()

    @property
    def total_items(self) -> int:
        return len(self.matches) + len(self.unmatched_bank) + len(self.unmatched_ledger)

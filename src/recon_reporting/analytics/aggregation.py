"""
Aggregation engine for reconciliation results.

Everything here is a pure function of its inputs: totals, rankings and the
dashboard view are recomputed from the record collections on every call and
never written back to the result.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Protocol, Sequence, Union

from ..models.transaction import (
    MatchedPair,
    ReconciliationResult,
    ReconciliationSummary,
    Transaction,
    TransactionSource,
)

CENT = Decimal("0.01")
ZERO = Decimal("0")


class RecordSet(Protocol):
    """Anything carrying the three record collections and the declared summary."""

    summary: ReconciliationSummary
    matches: Sequence[MatchedPair]
    unmatched_bank: Sequence[Transaction]
    unmatched_ledger: Sequence[Transaction]


@dataclass(frozen=True)
class Totals:
    """Counts and amount sums derived from a set of records."""

    total_matches: int
    total_unmatched_bank: int
    total_unmatched_ledger: int
    matched_amount: Decimal
    unmatched_bank_amount: Decimal
    unmatched_ledger_amount: Decimal
    # Carried through from the matcher unchanged
    net_discrepancy: Decimal
    bank_statement_balance: Optional[Decimal] = None
    ledger_balance: Optional[Decimal] = None
    audit_score: Optional[float] = None

    @property
    def total_items(self) -> int:
        return self.total_matches + self.total_unmatched_bank + self.total_unmatched_ledger


@dataclass(frozen=True)
class RankedUnmatched:
    """An unmatched transaction tagged with the side it came from."""

    side: TransactionSource
    transaction: Transaction

    @property
    def amount(self) -> Decimal:
        return self.transaction.amount


@dataclass(frozen=True)
class DashboardView:
    """Figures behind the dashboard cards and charts."""

    totals: Totals
    count_breakdown: list[tuple[str, int]] = field(default_factory=list)
    amount_breakdown: list[tuple[str, Decimal]] = field(default_factory=list)
    top_unmatched: list[RankedUnmatched] = field(default_factory=list)
    variance: Decimal = ZERO
    match_rate: float = 0.0

    @property
    def total_items(self) -> int:
        return self.totals.total_items


def _sum(records: Iterable[Union[MatchedPair, Transaction]]) -> Decimal:
    return sum((r.amount for r in records), ZERO)


def compute_totals(result: RecordSet) -> Totals:
    """
    Recompute counts and amount totals from the records.

    Args:
        result: A ReconciliationResult or a filtered view of one

    Returns:
        Totals whose amounts are exact Decimal sums of the records
    """
    summary = result.summary
    return Totals(
        total_matches=len(result.matches),
        total_unmatched_bank=len(result.unmatched_bank),
        total_unmatched_ledger=len(result.unmatched_ledger),
        matched_amount=_sum(result.matches),
        unmatched_bank_amount=_sum(result.unmatched_bank),
        unmatched_ledger_amount=_sum(result.unmatched_ledger),
        net_discrepancy=summary.net_discrepancy,
        bank_statement_balance=summary.bank_statement_balance,
        ledger_balance=summary.ledger_balance,
        audit_score=summary.audit_score,
    )


def top_unmatched(
    unmatched_bank: Sequence[Transaction],
    unmatched_ledger: Sequence[Transaction],
    n: int,
) -> list[RankedUnmatched]:
    """
    Rank unmatched items from both sides by absolute amount.

    Ties keep bank items ahead of ledger items, then input order; sorted()
    is stable so concatenating bank first is enough.

    Args:
        unmatched_bank: Unmatched bank transactions
        unmatched_ledger: Unmatched ledger transactions
        n: Maximum number of items to return

    Returns:
        At most n items, largest magnitude first
    """
    if n <= 0:
        return []

    tagged = [RankedUnmatched(TransactionSource.BANK, t) for t in unmatched_bank]
    tagged += [RankedUnmatched(TransactionSource.LEDGER, t) for t in unmatched_ledger]

    ranked = sorted(tagged, key=lambda item: abs(item.amount), reverse=True)
    return ranked[:n]


def variance(summary: Union[ReconciliationSummary, Totals]) -> Decimal:
    """Absolute gap between closing balances; missing balances count as zero."""
    bank = summary.bank_statement_balance or ZERO
    ledger = summary.ledger_balance or ZERO
    return abs(bank - ledger)


def format_currency(amount: Union[Decimal, int, float], symbol: str = "GHS ") -> str:
    """
    Format an amount for display: symbol prefix, grouping, two decimals.

    >>> format_currency(Decimal("-1200"), "GHS ")
    'GHS -1,200.00'
    """
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    shown = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if shown == 0:
        shown = abs(shown)
    return f"{symbol}{shown:,.2f}"


def build_dashboard(result: ReconciliationResult, top_n: int = 5) -> DashboardView:
    """
    Assemble the dashboard view for a result.

    Args:
        result: Reconciliation result
        top_n: How many of the largest unmatched items to list

    Returns:
        DashboardView
    """
    totals = compute_totals(result)

    match_rate = 0.0
    if totals.total_items:
        match_rate = totals.total_matches / totals.total_items * 100

    return DashboardView(
        totals=totals,
        count_breakdown=[
            ("Matched", totals.total_matches),
            ("Unmatched (Bank)", totals.total_unmatched_bank),
            ("Unmatched (Ledger)", totals.total_unmatched_ledger),
        ],
        amount_breakdown=[
            ("Matched", totals.matched_amount),
            ("Bank", totals.unmatched_bank_amount),
            ("Ledger", totals.unmatched_ledger_amount),
        ],
        top_unmatched=top_unmatched(result.unmatched_bank, result.unmatched_ledger, top_n),
        variance=variance(result.summary),
        match_rate=match_rate,
    )

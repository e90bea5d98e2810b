"""
Shared fixtures for the reporting tests.

The sample payload is the matcher's answer for a March 2024 statement of
seven bank lines against five ledger entries: four matches, three unmatched
bank items and one unmatched ledger item.
"""

import copy
from datetime import date, datetime
from decimal import Decimal

import pytest

from recon_reporting.config import ReportingConfig
from recon_reporting.models import (
    MatchedPair,
    ReconciliationResult,
    ReconciliationSummary,
    Transaction,
    TransactionSource,
    parse_result,
)
from recon_reporting.reports import ReportHeader


SAMPLE_PAYLOAD = {
    "summary": {
        "totalMatches": 4,
        "totalUnmatchedBank": 3,
        "totalUnmatchedLedger": 1,
        "netDiscrepancy": -287.50,
        "matchedAmount": 232.01,
        "unmatchedBankAmount": -275.00,
        "unmatchedLedgerAmount": 12.50,
        "bankStatementBalance": -26.49,
        "ledgerBalance": 244.51,
        "auditScore": 78,
    },
    "matches": [
        {
            "date": "2024-03-01",
            "description": "Deposit - ABC Corp / Service Revenue: ABC Corp",
            "amount": 1500.00,
            "matchConfidence": 98,
            "bankRef": "DEP-001",
            "ledgerRef": "INV-101",
            "notes": "Exact amount and date",
            "reasoning": "Customer name appears on both sides",
        },
        {
            "date": "2024-03-05",
            "description": "Amazon.com*Purchase / Office Supplies - Amazon",
            "amount": -45.99,
            "matchConfidence": 92,
            "bankRef": "AMZ-99",
            "ledgerRef": "EXP-45",
            "notes": "Posted one day apart",
        },
        {
            "date": "2024-03-10",
            "description": "WeWork Rent / Monthly Office Rent",
            "amount": -1200.00,
            "matchConfidence": 95,
            "bankRef": "RENT-MAR",
            "ledgerRef": "EXP-RENT",
            "notes": "Recurring rent",
        },
        {
            "date": "2024-03-25",
            "description": "Card spend / In-flight meal",
            "amount": -22.00,
            "matchConfidence": 64,
            "bankRef": "STR-23",
            "ledgerRef": "EXP-TRAVEL",
            "notes": "Amounts differ; travel expense claim",
        },
    ],
    "unmatchedBank": [
        {"date": "2024-03-20", "description": "Stripe Transfer", "amount": 250.00, "ref": "STR-PAY"},
        {
            "date": "2024-03-28",
            "description": "Check #5055 Consultant",
            "amount": -500.00,
            "ref": "CHK-5055",
        },
        {
            "date": "2024-03-31",
            "description": "Monthly Service Fee",
            "amount": -25.00,
            "ref": "FEE-MAR",
        },
    ],
    "unmatchedLedger": [
        {"date": "2024-03-31", "description": "Interest Income", "amount": 12.50, "ref": "INT-01"},
    ],
}


@pytest.fixture
def sample_payload():
    """A fresh, mutable copy of the sample matcher answer."""
    return copy.deepcopy(SAMPLE_PAYLOAD)


@pytest.fixture
def sample_result(sample_payload):
    return parse_result(sample_payload)


@pytest.fixture
def config():
    return ReportingConfig()


@pytest.fixture
def generated_at():
    return datetime(2024, 4, 2, 15, 30)


@pytest.fixture
def header(config, generated_at):
    return ReportHeader.from_config(config, generated_at)


def _summary_for(matches, bank, ledger, **extra) -> ReconciliationSummary:
    return ReconciliationSummary(
        total_matches=len(matches),
        total_unmatched_bank=len(bank),
        total_unmatched_ledger=len(ledger),
        net_discrepancy=extra.pop("net_discrepancy", Decimal("0")),
        matched_amount=sum((m.amount for m in matches), Decimal("0")),
        unmatched_bank_amount=sum((t.amount for t in bank), Decimal("0")),
        unmatched_ledger_amount=sum((t.amount for t in ledger), Decimal("0")),
        **extra,
    )


@pytest.fixture
def make_result():
    """
    Factory building a consistent ReconciliationResult.

    Amounts are given as strings; each side becomes a list of records dated
    through March 2024.
    """

    def _make(matches=(), bank=(), ledger=(), **extra) -> ReconciliationResult:
        def day(i):
            return date(2024, 3, 1 + i % 28)

        pairs = tuple(
            MatchedPair(
                date=day(i),
                description=f"Matched item {i + 1}",
                amount=Decimal(a),
                match_confidence=90.0,
                bank_ref=f"B-{i + 1}",
                ledger_ref=f"L-{i + 1}",
            )
            for i, a in enumerate(matches)
        )
        bank_txns = tuple(
            Transaction(day(i), f"Bank item {i + 1}", Decimal(a), TransactionSource.BANK, f"BK-{i + 1}")
            for i, a in enumerate(bank)
        )
        ledger_txns = tuple(
            Transaction(day(i), f"Ledger item {i + 1}", Decimal(a), TransactionSource.LEDGER, f"GL-{i + 1}")
            for i, a in enumerate(ledger)
        )
        return ReconciliationResult(
            summary=_summary_for(pairs, bank_txns, ledger_txns, **extra),
            matches=pairs,
            unmatched_bank=bank_txns,
            unmatched_ledger=ledger_txns,
        )

    return _make

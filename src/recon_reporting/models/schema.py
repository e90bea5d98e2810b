"""
Wire schema for reconciliation payloads.

The matching service answers with camelCase JSON. This module validates that
payload with pydantic, checks the summary invariants, and converts it into
the immutable record model. A payload that fails any check is rejected as a
whole; nothing is repaired.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Optional
import logging

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..utils.exceptions import ResultValidationError
from .transaction import (
    MatchedPair,
    ReconciliationResult,
    ReconciliationSummary,
    Transaction,
    TransactionSource,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _to_decimal(value: Any) -> Decimal:
    """Convert a wire number to Decimal, refusing NaN and infinities."""
    if isinstance(value, bool):
        raise ValueError("amount must be a number, not a boolean")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        # repr() is the shortest round-tripping form, so 45.99 stays 45.99
        amount = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"not a decimal number: {value!r}") from e
    else:
        raise ValueError(f"not a decimal number: {value!r}")

    if not amount.is_finite():
        raise ValueError("amount must be finite")
    return amount


def _to_date(value: Any) -> date:
    """Resolve a wire value to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError as e:
            raise ValueError(f"not an ISO-8601 date: {value!r}") from e
    raise ValueError(f"not an ISO-8601 date: {value!r}")


Money = Annotated[Decimal, BeforeValidator(_to_decimal)]
IsoDate = Annotated[date, BeforeValidator(_to_date)]
Score = Annotated[float, Field(ge=0, le=100, allow_inf_nan=False)]
Count = Annotated[int, Field(ge=0)]


class WireModel(BaseModel):
    """Base for camelCase wire models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class TransactionPayload(WireModel):
    date: IsoDate
    description: str
    amount: Money
    ref: Optional[str] = None


class MatchPayload(WireModel):
    date: IsoDate
    description: str
    amount: Money
    match_confidence: Score
    bank_ref: Optional[str] = None
    ledger_ref: Optional[str] = None
    notes: Optional[str] = None
    reasoning: Optional[str] = None


class SummaryPayload(WireModel):
    total_matches: Count
    total_unmatched_bank: Count
    total_unmatched_ledger: Count
    net_discrepancy: Money
    matched_amount: Money
    unmatched_bank_amount: Money
    unmatched_ledger_amount: Money
    bank_statement_balance: Optional[Money] = None
    ledger_balance: Optional[Money] = None
    audit_score: Optional[Score] = None


class ResultPayload(WireModel):
    summary: SummaryPayload
    matches: list[MatchPayload]
    unmatched_bank: list[TransactionPayload]
    unmatched_ledger: list[TransactionPayload]


def output_schema() -> dict[str, Any]:
    """JSON schema the matching service is asked to conform to."""
    return ResultPayload.model_json_schema(by_alias=True)


def parse_result(payload: Any) -> ReconciliationResult:
    """
    Validate a raw matcher payload and build a ReconciliationResult.

    Args:
        payload: Decoded JSON object (dict) from the matching service

    Returns:
        Immutable reconciliation result

    Raises:
        ResultValidationError: If any record or summary field is invalid, or
            the summary counts and totals disagree with the records
    """
    if not isinstance(payload, dict):
        raise ResultValidationError("Reconciliation payload must be a JSON object")

    try:
        wire = ResultPayload.model_validate(payload)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        logger.error(f"Rejected reconciliation payload with {len(errors)} error(s)")
        raise ResultValidationError("Invalid reconciliation payload", errors) from e

    matches = tuple(
        MatchedPair(
            date=m.date,
            description=m.description,
            amount=m.amount,
            match_confidence=m.match_confidence,
            notes=m.notes or "",
            bank_ref=m.bank_ref,
            ledger_ref=m.ledger_ref,
            reasoning=m.reasoning,
        )
        for m in wire.matches
    )
    unmatched_bank = tuple(_to_transaction(t, TransactionSource.BANK) for t in wire.unmatched_bank)
    unmatched_ledger = tuple(
        _to_transaction(t, TransactionSource.LEDGER) for t in wire.unmatched_ledger
    )

    s = wire.summary
    summary = ReconciliationSummary(
        total_matches=s.total_matches,
        total_unmatched_bank=s.total_unmatched_bank,
        total_unmatched_ledger=s.total_unmatched_ledger,
        net_discrepancy=s.net_discrepancy,
        matched_amount=s.matched_amount,
        unmatched_bank_amount=s.unmatched_bank_amount,
        unmatched_ledger_amount=s.unmatched_ledger_amount,
        bank_statement_balance=s.bank_statement_balance,
        ledger_balance=s.ledger_balance,
        audit_score=s.audit_score,
    )

    _check_summary_invariants(summary, matches, unmatched_bank, unmatched_ledger)

    logger.info(
        f"Accepted reconciliation result: {len(matches)} matches, "
        f"{len(unmatched_bank)} unmatched bank, {len(unmatched_ledger)} unmatched ledger"
    )
    return ReconciliationResult(
        summary=summary,
        matches=matches,
        unmatched_bank=unmatched_bank,
        unmatched_ledger=unmatched_ledger,
    )


def _to_transaction(payload: TransactionPayload, source: TransactionSource) -> Transaction:
    return Transaction(
        date=payload.date,
        description=payload.description,
        amount=payload.amount,
        source=source,
        ref=payload.ref,
    )


def _check_summary_invariants(
    summary: ReconciliationSummary,
    matches: tuple[MatchedPair, ...],
    unmatched_bank: tuple[Transaction, ...],
    unmatched_ledger: tuple[Transaction, ...],
) -> None:
    """Counts and totals must agree with the records at minor-unit precision."""
    errors: list[str] = []

    checks = [
        ("totalMatches", summary.total_matches, len(matches)),
        ("totalUnmatchedBank", summary.total_unmatched_bank, len(unmatched_bank)),
        ("totalUnmatchedLedger", summary.total_unmatched_ledger, len(unmatched_ledger)),
    ]
    for name, declared, actual in checks:
        if declared != actual:
            errors.append(f"summary.{name}: declared {declared}, records give {actual}")

    amounts = [
        ("matchedAmount", summary.matched_amount, matches),
        ("unmatchedBankAmount", summary.unmatched_bank_amount, unmatched_bank),
        ("unmatchedLedgerAmount", summary.unmatched_ledger_amount, unmatched_ledger),
    ]
    for name, declared, records in amounts:
        actual = sum((r.amount for r in records), Decimal("0"))
        if declared.quantize(CENT) != actual.quantize(CENT):
            errors.append(f"summary.{name}: declared {declared}, records give {actual}")

    if errors:
        logger.error(f"Summary disagrees with records: {errors}")
        raise ResultValidationError("Summary does not match records", errors)


def result_to_payload(result: ReconciliationResult) -> dict[str, Any]:
    """Serialize a result back to the camelCase wire shape."""
    s = result.summary
    summary = SummaryPayload(
        total_matches=s.total_matches,
        total_unmatched_bank=s.total_unmatched_bank,
        total_unmatched_ledger=s.total_unmatched_ledger,
        net_discrepancy=s.net_discrepancy,
        matched_amount=s.matched_amount,
        unmatched_bank_amount=s.unmatched_bank_amount,
        unmatched_ledger_amount=s.unmatched_ledger_amount,
        bank_statement_balance=s.bank_statement_balance,
        ledger_balance=s.ledger_balance,
        audit_score=s.audit_score,
    )
    wire = ResultPayload(
        summary=summary,
        matches=[
            MatchPayload(
                date=m.date,
                description=m.description,
                amount=m.amount,
                match_confidence=m.match_confidence,
                bank_ref=m.bank_ref,
                ledger_ref=m.ledger_ref,
                notes=m.notes,
                reasoning=m.reasoning,
            )
            for m in result.matches
        ],
        unmatched_bank=[_to_wire_transaction(t) for t in result.unmatched_bank],
        unmatched_ledger=[_to_wire_transaction(t) for t in result.unmatched_ledger],
    )
    return wire.model_dump(mode="json", by_alias=True, exclude_none=True)


def _to_wire_transaction(txn: Transaction) -> TransactionPayload:
    return TransactionPayload(
        date=txn.date, description=txn.description, amount=txn.amount, ref=txn.ref
    )

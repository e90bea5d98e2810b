"""Data models for reconciliation results."""

from .transaction import (
    ConfidenceBand,
    MatchedPair,
    Record,
    RecordKind,
    ReconciliationResult,
    ReconciliationSummary,
    Transaction,
    TransactionSource,
)
from .schema import output_schema, parse_result, result_to_payload

__all__ = [
    "ConfidenceBand",
    "MatchedPair",
    "Record",
    "RecordKind",
    "ReconciliationResult",
    "ReconciliationSummary",
    "Transaction",
    "TransactionSource",
    "output_schema",
    "parse_result",
    "result_to_payload",
]

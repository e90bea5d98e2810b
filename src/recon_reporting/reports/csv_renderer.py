"""
Delimited-text export.

Each rendered section is written as its own block: a column header row
followed by one row per record, with a blank line between blocks. Quoting
follows the usual CSV rules, so descriptions containing commas, quotes or
line breaks survive a round trip.
"""

from decimal import Decimal
import io
import logging

import pandas as pd

from ..models.transaction import MatchedPair, Transaction
from .base import (
    Column,
    ExportFormat,
    ReportContent,
    ReportHeader,
    ReportRenderer,
    Section,
    SectionTable,
    build_filename,
    summary_rows,
)

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = (
    Column("Metric"),
    Column("Transaction Count", align="right"),
    Column("Net Value", align="right", money=True),
)

MATCH_COLUMNS = (
    Column("Type"),
    Column("Date"),
    Column("Description"),
    Column("Amount", align="right", money=True),
    Column("Bank Reference"),
    Column("Ledger Reference"),
    Column("Confidence", align="right"),
    Column("Notes"),
    Column("Reasoning"),
)

TRANSACTION_COLUMNS = (
    Column("Type"),
    Column("Date"),
    Column("Description"),
    Column("Amount", align="right", money=True),
    Column("Reference"),
)

ROW_TYPES = {
    Section.MATCHES: "MATCHED",
    Section.UNMATCHED_BANK: "UNMATCHED_BANK",
    Section.UNMATCHED_LEDGER: "UNMATCHED_LEDGER",
}


def _plain_amount(amount: Decimal) -> str:
    return format(amount, "f")


def _confidence(value: float) -> str:
    return f"{value:g}"


class CsvReportRenderer(ReportRenderer):
    """Renders a filtered result as a single UTF-8 CSV document."""

    format = ExportFormat.CSV
    media_type = "text/csv"

    @property
    def label(self) -> str:
        return self.config.export.csv_label

    def filename(self, header: ReportHeader) -> str:
        return build_filename(self.label, header.company_name, self.format.value)

    def format_sections(self, content: ReportContent) -> list[SectionTable]:
        tables: list[SectionTable] = []

        for section in content.sections:
            if section is Section.SUMMARY:
                rows = tuple(
                    (metric, str(count), _plain_amount(amount))
                    for metric, count, amount in summary_rows(content.totals)
                )
                tables.append(SectionTable(section, "Summary", SUMMARY_COLUMNS, rows))
            elif section is Section.MATCHES:
                rows = tuple(self._match_row(m) for m in content.filtered.matches)
                tables.append(SectionTable(section, "Matches", MATCH_COLUMNS, rows))
            else:
                row_type = ROW_TYPES[section]
                rows = tuple(
                    self._transaction_row(row_type, t) for t in content.records_for(section)
                )
                tables.append(SectionTable(section, row_type, TRANSACTION_COLUMNS, rows))

        return tables

    def _match_row(self, match: MatchedPair) -> tuple[str, ...]:
        return (
            ROW_TYPES[Section.MATCHES],
            match.date.isoformat(),
            match.description,
            _plain_amount(match.amount),
            match.bank_ref or "",
            match.ledger_ref or "",
            _confidence(match.match_confidence),
            match.notes or "",
            match.reasoning or "",
        )

    def _transaction_row(self, row_type: str, txn: Transaction) -> tuple[str, ...]:
        return (
            row_type,
            txn.date.isoformat(),
            txn.description,
            _plain_amount(txn.amount),
            txn.ref or "",
        )

    def layout(self, content: ReportContent, tables: list[SectionTable]) -> list[pd.DataFrame]:
        frames = []
        for table in tables:
            frame = pd.DataFrame(
                [list(row) for row in table.rows],
                columns=[c.name for c in table.columns],
                dtype=object,
            )
            frames.append(frame)
        return frames

    def finalize(self, content: ReportContent, laid_out: list[pd.DataFrame]) -> bytes:
        buffer = io.StringIO()
        for index, frame in enumerate(laid_out):
            if index:
                buffer.write("\n")
            frame.to_csv(buffer, index=False, lineterminator="\n")

        logger.debug(f"CSV export wrote {len(laid_out)} section(s)")
        return buffer.getvalue().encode("utf-8")

"""
Excel workbook export for reconciliation results.
Creates one sheet per rendered section with formatted output.
"""

import io
import logging

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE, Cell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..analytics.aggregation import variance
from ..models.transaction import ConfidenceBand
from .base import (
    Column,
    ExportFormat,
    ReportContent,
    ReportRenderer,
    Section,
    SectionTable,
    summary_rows,
)

logger = logging.getLogger(__name__)

HEADER_FONT = Font(color="FFFFFF", bold=True)
BAND_FILLS = {
    ConfidenceBand.HIGH: PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid"),
    ConfidenceBand.MEDIUM: PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid"),
    ConfidenceBand.LOW: PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid"),
}
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
MONEY_FORMAT = "#,##0.00"

SHEET_NAMES = {
    Section.SUMMARY: "Summary",
    Section.MATCHES: "Matched Transactions",
    Section.UNMATCHED_BANK: "Bank Unmatched",
    Section.UNMATCHED_LEDGER: "Ledger Unmatched",
}
EMPTY_SHEET_NAME = "Report"

SUMMARY_COLUMNS = (
    Column("Metric"),
    Column("Transaction Count", align="right"),
    Column("Net Value", align="right", money=True),
)

MATCH_COLUMNS = (
    Column("Date"),
    Column("Description"),
    Column("Amount", align="right", money=True),
    Column("Bank Reference"),
    Column("Ledger Reference"),
    Column("Confidence", align="right"),
    Column("Confidence Band"),
    Column("Notes"),
    Column("Reasoning"),
)

TRANSACTION_COLUMNS = (
    Column("Date"),
    Column("Description"),
    Column("Amount", align="right", money=True),
    Column("Reference"),
)


def _fill_for(rgb: tuple[int, int, int]) -> PatternFill:
    color = "".join(f"{c:02X}" for c in rgb)
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


def _put(ws: Worksheet, row: int, column: int, value) -> Cell:
    """Write a value to a cell, keeping strings as literal text.

    Control characters that XML cannot carry are dropped, and a string
    starting with ``=`` is stored as text rather than a formula.
    """
    if isinstance(value, str):
        value = ILLEGAL_CHARACTERS_RE.sub("", value)
    cell = ws.cell(row=row, column=column, value=value)
    if isinstance(value, str):
        cell.data_type = "s"
    return cell


class ExcelReportRenderer(ReportRenderer):
    """Generates Excel workbooks with one sheet per report section."""

    format = ExportFormat.XLSX
    media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    @property
    def label(self) -> str:
        return self.config.export.xlsx_label

    def format_sections(self, content: ReportContent) -> list[SectionTable]:
        tables: list[SectionTable] = []

        for section in content.sections:
            title = SHEET_NAMES[section]
            if section is Section.SUMMARY:
                rows = tuple(
                    (metric, count, float(amount))
                    for metric, count, amount in summary_rows(content.totals)
                )
                tables.append(SectionTable(section, title, SUMMARY_COLUMNS, rows))
            elif section is Section.MATCHES:
                rows = tuple(
                    (
                        m.date,
                        m.description,
                        float(m.amount),
                        m.bank_ref or "",
                        m.ledger_ref or "",
                        m.match_confidence,
                        m.confidence_band.value,
                        m.notes,
                        m.reasoning or "",
                    )
                    for m in content.filtered.matches
                )
                tables.append(SectionTable(section, title, MATCH_COLUMNS, rows))
            else:
                rows = tuple(
                    (t.date, t.description, float(t.amount), t.ref or "")
                    for t in content.records_for(section)
                )
                tables.append(SectionTable(section, title, TRANSACTION_COLUMNS, rows))

        return tables

    def layout(self, content: ReportContent, tables: list[SectionTable]) -> Workbook:
        wb = Workbook()

        # Remove default sheet
        if wb.active:
            wb.remove(wb.active)

        for table in tables:
            ws = wb.create_sheet(table.title)
            start_row = 1
            if table.section is Section.SUMMARY:
                start_row = self._write_summary_preamble(ws, content)
            self._write_table(ws, table, start_row)
            self._auto_fit_columns(ws)

        if not wb.sheetnames:
            # A workbook needs at least one visible sheet
            ws = wb.create_sheet(EMPTY_SHEET_NAME)
            ws["A1"] = "No records match the current filters."

        return wb

    def finalize(self, content: ReportContent, laid_out: Workbook) -> bytes:
        buffer = io.BytesIO()
        laid_out.save(buffer)
        logger.debug(f"Workbook export wrote {len(laid_out.sheetnames)} sheet(s)")
        return buffer.getvalue()

    def _write_summary_preamble(self, ws: Worksheet, content: ReportContent) -> int:
        """Write the header block above the summary table; return the table's first row."""
        header = content.header
        totals = content.totals

        _put(ws, 1, 1, header.title)
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:C1")

        info = [
            ("Company:", header.company_name),
            ("As At:", header.as_at_date or "-"),
            ("Generated At:", header.generated_at.strftime("%Y-%m-%d %H:%M:%S")),
            ("Net Discrepancy (declared):", float(totals.net_discrepancy)),
            ("Balance Variance:", float(variance(totals))),
        ]
        if totals.audit_score is not None:
            info.append(("Audit Score:", totals.audit_score))

        row = 3
        for label, value in info:
            ws.cell(row=row, column=1, value=label).font = Font(bold=True)
            cell = _put(ws, row, 2, value)
            if isinstance(value, float) and label != "Audit Score:":
                cell.number_format = MONEY_FORMAT
            row += 1

        return row + 1

    def _write_table(self, ws: Worksheet, table: SectionTable, start_row: int) -> None:
        head_fill = _fill_for(table.section.accent)

        for col, column in enumerate(table.columns, start=1):
            cell = ws.cell(row=start_row, column=col, value=column.name)
            cell.fill = head_fill
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

        band_col = next(
            (i for i, c in enumerate(table.columns) if c.name == "Confidence Band"), None
        )

        for row_num, row in enumerate(table.rows, start=start_row + 1):
            row_fill = None
            if table.section is Section.MATCHES and band_col is not None:
                row_fill = BAND_FILLS[ConfidenceBand(row[band_col])]
            elif table.section in (Section.UNMATCHED_BANK, Section.UNMATCHED_LEDGER):
                row_fill = UNMATCHED_FILL

            for col, (column, value) in enumerate(zip(table.columns, row), start=1):
                cell = _put(ws, row_num, col, value)
                cell.border = THIN_BORDER
                if column.money:
                    cell.number_format = MONEY_FORMAT
                if column.align == "right":
                    cell.alignment = Alignment(horizontal="right")
                if row_fill is not None:
                    cell.fill = row_fill

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = 0
            column = get_column_letter(column_cells[0].column)

            for cell in column_cells:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))

            ws.column_dimensions[column].width = min(max_length + 2, 50)

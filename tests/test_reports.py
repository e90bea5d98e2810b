"""
Tests for the export pipeline renderers.

Covers:
- Section selection and filenames
- CSV blocks and quoting
- PDF pagination, footers and accents
- Excel workbook sheets
"""

from datetime import date
from decimal import Decimal
import csv
import io

import pytest
from openpyxl import load_workbook

from recon_reporting.analytics import FilterCriteria, apply_filters, format_currency
from recon_reporting.models import (
    ReconciliationResult,
    ReconciliationSummary,
    Transaction,
    TransactionSource,
)
from recon_reporting.reports import (
    CsvReportRenderer,
    ExcelReportRenderer,
    ExportFormat,
    PdfReportRenderer,
    Section,
    SectionSelection,
    build_filename,
    get_renderer,
    sanitize_company_name,
    sections_to_render,
)
from recon_reporting.reports.base import BRAND_COLOR
from recon_reporting.reports.pdf_renderer import BlockKind, RectOp, TextOp
from recon_reporting.utils.exceptions import NothingSelectedError


def _csv_blocks(data: bytes) -> list[list[list[str]]]:
    """Split CSV output into blocks of parsed rows."""
    blocks: list[list[list[str]]] = [[]]
    for row in csv.reader(io.StringIO(data.decode("utf-8"))):
        if not row:
            blocks.append([])
        else:
            blocks[-1].append(row)
    return [b for b in blocks if b]


class TestSectionsAndNames:
    """Tests for shared renderer helpers."""

    def test_summary_renders_even_when_filtered_empty(self, sample_result):
        view = apply_filters(sample_result, FilterCriteria.from_inputs("2024-04-01"))
        assert sections_to_render(view, SectionSelection()) == (Section.SUMMARY,)

    def test_empty_sections_are_skipped(self, make_result):
        view = apply_filters(make_result(matches=["10.00"], ledger=["5.00"]))
        assert sections_to_render(view, SectionSelection(summary=False)) == (
            Section.MATCHES,
            Section.UNMATCHED_LEDGER,
        )

    def test_sanitize_company_name(self):
        assert sanitize_company_name("  Acme   Trading/Ghana Ltd ") == "Acme_Trading-Ghana_Ltd"

    def test_trailing_dots_do_not_reach_the_extension(self):
        assert sanitize_company_name("Sample Logistics Ltd.") == "Sample_Logistics_Ltd"
        assert build_filename("ReconReport", "Acme Co. ", "csv") == "ReconReport_Acme_Co.csv"

    def test_filename_with_timestamp(self):
        assert (
            build_filename("Reconciliation_Report", "Acme Co", "pdf", 1711843200000)
            == "Reconciliation_Report_Acme_Co_1711843200000.pdf"
        )

    def test_renderer_lookup(self, config):
        assert isinstance(get_renderer(ExportFormat.CSV, config), CsvReportRenderer)
        assert isinstance(get_renderer(ExportFormat.PDF, config), PdfReportRenderer)
        assert isinstance(get_renderer(ExportFormat.XLSX, config), ExcelReportRenderer)

    @pytest.mark.parametrize("renderer_cls", [CsvReportRenderer, PdfReportRenderer])
    def test_nothing_selected_is_rejected(self, config, sample_result, header, renderer_cls):
        with pytest.raises(NothingSelectedError):
            renderer_cls(config).render(
                apply_filters(sample_result), SectionSelection.none(), header
            )


class TestCsvRenderer:
    """Tests for the delimited-text export."""

    def test_one_block_per_section(self, config, sample_result, header):
        artifact = CsvReportRenderer(config).render(
            apply_filters(sample_result), SectionSelection(), header
        )
        blocks = _csv_blocks(artifact.content)

        assert [len(b) for b in blocks] == [4, 5, 4, 2]
        assert blocks[0][0] == ["Metric", "Transaction Count", "Net Value"]
        assert blocks[1][1][0] == "MATCHED"
        assert blocks[2][1][0] == "UNMATCHED_BANK"
        assert blocks[3][1][0] == "UNMATCHED_LEDGER"

    def test_summary_rows_use_filtered_totals(self, config, sample_result, header):
        view = apply_filters(sample_result, FilterCriteria.from_inputs(category="inflow"))
        artifact = CsvReportRenderer(config).render(view, SectionSelection(), header)
        summary = _csv_blocks(artifact.content)[0]
        assert summary[1][:2] == ["Successfully Matched", "1"]
        assert Decimal(summary[1][2]) == Decimal("1500")

    def test_special_characters_round_trip(self, config, header):
        description = 'Refund, "urgent"\nsecond line'
        txn = Transaction(
            date(2024, 3, 3), description, Decimal("-9.99"), TransactionSource.BANK, "R-1"
        )
        result = ReconciliationResult(
            summary=ReconciliationSummary(
                0, 1, 0, Decimal("0"), Decimal("0"), Decimal("-9.99"), Decimal("0")
            ),
            unmatched_bank=(txn,),
        )
        artifact = CsvReportRenderer(config).render(
            apply_filters(result), SectionSelection(summary=False), header
        )
        rows = list(csv.reader(io.StringIO(artifact.content.decode("utf-8"))))
        assert rows[1] == ["UNMATCHED_BANK", "2024-03-03", description, "-9.99", "R-1"]

    def test_deselected_sections_are_absent(self, config, sample_result, header):
        selection = SectionSelection(summary=False, matches=False, unmatched_ledger=False)
        artifact = CsvReportRenderer(config).render(
            apply_filters(sample_result), selection, header
        )
        text = artifact.content.decode("utf-8")
        assert "MATCHED," not in text
        assert "UNMATCHED_LEDGER" not in text
        assert len(_csv_blocks(artifact.content)) == 1

    def test_filename_has_no_timestamp(self, config, sample_result, header):
        artifact = CsvReportRenderer(config).render(
            apply_filters(sample_result), SectionSelection(), header
        )
        assert artifact.filename == "ReconReport_Sample_Logistics_Ltd.csv"
        assert artifact.media_type == "text/csv"


class TestPdfRenderer:
    """Tests for the paged document export."""

    def _layout(self, config, result, header, selection=None):
        renderer = PdfReportRenderer(config)
        content = renderer.analyze(apply_filters(result), selection or SectionSelection(), header)
        return renderer, renderer.layout(content, renderer.format_sections(content))

    @pytest.mark.parametrize("match_rows", range(18, 48, 3))
    def test_titles_are_never_orphaned(self, config, header, make_result, match_rows):
        result = make_result(
            matches=["10.00"] * match_rows, bank=["-5.00"] * 6, ledger=["1.00"] * 4
        )
        _, layout = self._layout(config, result, header)

        for page in layout.pages:
            blocks = page.blocks
            for i, block in enumerate(blocks):
                if block.kind is BlockKind.TITLE:
                    assert blocks[i + 1].kind is BlockKind.TABLE_HEAD
                    assert blocks[i + 2].kind is BlockKind.ROW
                    assert blocks[i + 2].section is block.section

    def test_rows_stay_above_the_footer(self, config, header, make_result):
        result = make_result(matches=["10.00"] * 80, bank=["-5.00"] * 40)
        renderer, layout = self._layout(config, result, header)
        assert layout.total_pages > 2
        for page in layout.pages:
            assert all(b.bottom <= renderer.bottom_limit for b in page.blocks)

    def test_continued_tables_repeat_their_head(self, config, header, make_result):
        _, layout = self._layout(
            config, make_result(matches=["10.00"] * 80), header, SectionSelection(summary=False)
        )
        for page in layout.pages:
            assert page.blocks[0].kind in (BlockKind.TITLE, BlockKind.TABLE_HEAD)

    def test_every_page_has_band_and_footer(self, config, header, make_result):
        _, layout = self._layout(config, make_result(matches=["1.00"] * 70), header)
        total = layout.total_pages
        for page in layout.pages:
            band = page.ops[0]
            assert isinstance(band, RectOp) and band.fill == BRAND_COLOR
            footer_text = " ".join(op.text for op in page.footer_ops if isinstance(op, TextOp))
            assert f"Page {page.number} of {total}" in footer_text
            assert "Export Date: 02/04/2024" in footer_text

    def test_table_heads_use_section_accents(self, config, sample_result, header):
        _, layout = self._layout(config, sample_result, header)
        fills = {op.fill for op in layout.pages[0].ops if isinstance(op, RectOp) and op.fill}
        for section in Section:
            assert section.accent in fills

    def test_accents_are_fixed(self):
        assert Section.SUMMARY.accent == (30, 41, 59)
        assert Section.MATCHES.accent == (16, 185, 129)
        assert Section.UNMATCHED_BANK.accent == (245, 158, 11)
        assert Section.UNMATCHED_LEDGER.accent == (99, 102, 241)

    def test_section_titles_carry_counts(self, config, sample_result, header):
        _, layout = self._layout(config, sample_result, header)
        texts = [op.text for op in layout.pages[0].ops if isinstance(op, TextOp)]
        assert "2. Verified Matches (4)" in texts
        assert "3. Unmatched Bank Statement Items (3)" in texts

    def test_cell_alignment_and_money_text(self, config, sample_result, header):
        renderer, layout = self._layout(config, sample_result, header)
        ops = {op.text: op for page in layout.pages for op in page.ops if isinstance(op, TextOp)}

        rent = format_currency(Decimal("-1200.00"), renderer.currency_symbol)
        assert rent == "GHS -1,200.00"
        assert ops[rent].align == "right"
        assert ops[format_currency(Decimal("-25.00"), renderer.currency_symbol)].align == "right"
        assert ops["64%"].align == "right"
        assert ops["Monthly Service Fee"].align == "left"

    def test_long_text_is_truncated(self):
        fitted = PdfReportRenderer._fit("word " * 100, 30, "Helvetica", 8)
        assert fitted.endswith("...")
        assert len(fitted) < 100

    def test_document_bytes(self, config, sample_result, header):
        artifact = PdfReportRenderer(config).render(
            apply_filters(sample_result), SectionSelection(), header
        )
        assert artifact.content.startswith(b"%PDF")
        assert artifact.filename == (
            f"Reconciliation_Report_Sample_Logistics_Ltd_{header.timestamp_ms}.pdf"
        )


class TestExcelRenderer:
    """Tests for the workbook export."""

    def test_one_sheet_per_section(self, config, sample_result, header):
        artifact = ExcelReportRenderer(config).render(
            apply_filters(sample_result), SectionSelection(), header
        )
        wb = load_workbook(io.BytesIO(artifact.content))
        assert wb.sheetnames == [
            "Summary",
            "Matched Transactions",
            "Bank Unmatched",
            "Ledger Unmatched",
        ]
        assert wb["Bank Unmatched"]["B2"].value == "Stripe Transfer"

    def test_empty_view_still_produces_a_workbook(self, config, sample_result, header):
        view = apply_filters(sample_result, FilterCriteria.from_inputs("2025-01-01"))
        artifact = ExcelReportRenderer(config).render(
            view, SectionSelection(summary=False), header
        )
        wb = load_workbook(io.BytesIO(artifact.content))
        assert wb.sheetnames == ["Report"]

    @staticmethod
    def _bank_only_result(description):
        txn = Transaction(
            date(2024, 3, 3), description, Decimal("-9.99"), TransactionSource.BANK, "R-1"
        )
        return ReconciliationResult(
            summary=ReconciliationSummary(
                0, 1, 0, Decimal("0"), Decimal("0"), Decimal("-9.99"), Decimal("0")
            ),
            unmatched_bank=(txn,),
        )

    def test_formula_like_text_stays_text(self, config, header):
        description = '=HYPERLINK("http://x","y")'
        artifact = ExcelReportRenderer(config).render(
            apply_filters(self._bank_only_result(description)),
            SectionSelection(summary=False),
            header,
        )
        cell = load_workbook(io.BytesIO(artifact.content))["Bank Unmatched"]["B2"]
        assert cell.data_type == "s"
        assert cell.value == description

    def test_control_characters_are_dropped(self, config, header):
        artifact = ExcelReportRenderer(config).render(
            apply_filters(self._bank_only_result("OCR line\x0bbreak")),
            SectionSelection(),
            header,
        )
        wb = load_workbook(io.BytesIO(artifact.content))
        assert wb["Bank Unmatched"]["B2"].value == "OCR linebreak"
        assert wb["Bank Unmatched"]["C2"].value == -9.99

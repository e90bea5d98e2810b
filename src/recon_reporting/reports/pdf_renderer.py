"""
Paged-document (PDF) export.

Layout works on an in-memory page model, in millimetres, measured from the
top edge of the page:

1. Sections are placed top-down with a running cursor. Before a section
   title is written the renderer checks that the title, the table head and
   the first data row fit on the current page; otherwise it starts a new
   page and re-draws the header band. A title never ends up alone at the
   bottom of a page.
2. Footers reading "Page i of N" are stamped on every page once the total
   page count is known.
3. The finished model is painted onto a reportlab canvas.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union
import io
import logging

from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from ..analytics.aggregation import format_currency
from ..models.transaction import MatchedPair, Transaction
from .base import (
    BRAND_COLOR,
    RGB,
    Column,
    ExportFormat,
    ReportContent,
    ReportHeader,
    ReportRenderer,
    Section,
    SectionTable,
    summary_rows,
)

logger = logging.getLogger(__name__)

WHITE: RGB = (255, 255, 255)
BLACK: RGB = (0, 0, 0)
GRID: RGB = (200, 200, 200)
FOOTER_RULE: RGB = (220, 220, 220)
MUTED: RGB = (100, 116, 139)

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
CELL_PADDING = 2.0
ELLIPSIS = "..."


@dataclass(frozen=True)
class TextOp:
    x: float
    y: float
    text: str
    size: float = 10.0
    bold: bool = False
    color: RGB = BLACK
    align: str = "left"


@dataclass(frozen=True)
class RectOp:
    x: float
    y: float
    width: float
    height: float
    fill: Optional[RGB] = None
    stroke: Optional[RGB] = None


@dataclass(frozen=True)
class LineOp:
    x1: float
    y1: float
    x2: float
    y2: float
    color: RGB = BLACK


DrawOp = Union[TextOp, RectOp, LineOp]


class BlockKind(Enum):
    TITLE = "title"
    TABLE_HEAD = "table_head"
    ROW = "row"


@dataclass(frozen=True)
class PlacedBlock:
    """Where a logical piece of a section landed on its page."""

    kind: BlockKind
    section: Section
    top: float
    bottom: float


@dataclass
class LayoutPage:
    number: int
    ops: list[DrawOp] = field(default_factory=list)
    blocks: list[PlacedBlock] = field(default_factory=list)
    footer_ops: list[DrawOp] = field(default_factory=list)


@dataclass
class PageLayout:
    pages: list[LayoutPage] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.pages)


SECTION_TITLES = {
    Section.SUMMARY: "1. Executive Summary",
    Section.MATCHES: "2. Verified Matches ({count})",
    Section.UNMATCHED_BANK: "3. Unmatched Bank Statement Items ({count})",
    Section.UNMATCHED_LEDGER: "4. Unmatched Internal Ledger Entries ({count})",
}

SUMMARY_COLUMNS = (
    Column("Metric", weight=2.0),
    Column("Transaction Count", align="right", weight=1.2),
    Column("Net Value", align="right", weight=1.5, money=True),
)

MATCH_COLUMNS = (
    Column("Date", weight=1.1),
    Column("Description", weight=3.0),
    Column("Bank Ref", weight=1.3),
    Column("Ledger Ref", weight=1.3),
    Column("Confidence", align="right", weight=1.0),
    Column("Amount", align="right", weight=1.6, money=True),
)

TRANSACTION_COLUMNS = (
    Column("Date", weight=1.1),
    Column("Description", weight=4.5),
    Column("Reference", weight=1.5),
    Column("Value", align="right", weight=1.8, money=True),
)


def _generated_stamp(header: ReportHeader) -> str:
    moment = header.generated_at
    hour = moment.hour % 12 or 12
    suffix = "am" if moment.hour < 12 else "pm"
    return f"{moment:%d/%m/%Y}, {hour}:{moment:%M} {suffix}"


class PdfReportRenderer(ReportRenderer):
    """Renders a filtered result as an A4 PDF with a branded header band."""

    format = ExportFormat.PDF
    media_type = "application/pdf"

    def __init__(self, config):
        super().__init__(config)
        self.geometry = config.layout

    @property
    def label(self) -> str:
        return self.config.export.pdf_label

    @property
    def content_width(self) -> float:
        return self.geometry.page_width - 2 * self.geometry.margin

    @property
    def bottom_limit(self) -> float:
        """Lowest y a table row may reach before the footer zone."""
        return self.geometry.page_height - self.geometry.footer_zone

    # -- format ---------------------------------------------------------

    def format_sections(self, content: ReportContent) -> list[SectionTable]:
        def money(amount) -> str:
            return format_currency(amount, self.currency_symbol)

        tables: list[SectionTable] = []

        for section in content.sections:
            records = content.records_for(section)
            title = SECTION_TITLES[section].format(count=len(records))

            if section is Section.SUMMARY:
                rows = tuple(
                    (metric, str(count), money(amount))
                    for metric, count, amount in summary_rows(content.totals)
                )
                tables.append(SectionTable(section, title, SUMMARY_COLUMNS, rows))
            elif section is Section.MATCHES:
                rows = tuple(self._match_row(m, money) for m in records)
                tables.append(SectionTable(section, title, MATCH_COLUMNS, rows))
            else:
                rows = tuple(self._transaction_row(t, money) for t in records)
                tables.append(SectionTable(section, title, TRANSACTION_COLUMNS, rows))

        return tables

    @staticmethod
    def _match_row(match: MatchedPair, money) -> tuple[str, ...]:
        return (
            match.date.isoformat(),
            match.description,
            match.bank_ref or "-",
            match.ledger_ref or "-",
            f"{match.match_confidence:g}%",
            money(match.amount),
        )

    @staticmethod
    def _transaction_row(txn: Transaction, money) -> tuple[str, ...]:
        return (txn.date.isoformat(), txn.description, txn.ref or "-", money(txn.amount))

    # -- layout ---------------------------------------------------------

    def layout(self, content: ReportContent, tables: list[SectionTable]) -> PageLayout:
        """Place every section, then stamp page footers once the total is known."""
        layout = PageLayout()
        self._place_sections(layout, content.header, tables)
        self._stamp_footers(layout, content.header)
        logger.debug(f"PDF layout finished with {layout.total_pages} page(s)")
        return layout

    def _row_style(self, section: Section) -> tuple[float, float]:
        """Row height and font size for a section's table."""
        if section is Section.SUMMARY:
            return self.geometry.summary_row_height, 10.0
        return self.geometry.row_height, 8.0

    def _place_sections(
        self, layout: PageLayout, header: ReportHeader, tables: list[SectionTable]
    ) -> None:
        g = self.geometry
        page = self._new_page(layout, header)
        y = g.content_top

        for table in tables:
            row_height, font_size = self._row_style(table.section)
            needed = g.title_height + g.head_row_height + row_height

            if y > g.page_height - g.reserve_bottom or y + needed > self.bottom_limit:
                logger.debug(f"Page break before section {table.section.value} at y={y:.1f}")
                page = self._new_page(layout, header)
                y = g.content_top

            title_color = BLACK if table.section is Section.SUMMARY else table.section.accent
            page.ops.append(
                TextOp(g.margin, y + g.title_height * 0.75, table.title, 14, True, title_color)
            )
            page.blocks.append(PlacedBlock(BlockKind.TITLE, table.section, y, y + g.title_height))
            y += g.title_height

            y = self._draw_table_head(page, table, y, font_size)
            for row in table.rows:
                if y + row_height > self.bottom_limit:
                    page = self._new_page(layout, header)
                    y = self._draw_table_head(page, table, g.content_top, font_size)
                self._draw_row(page, table, row, y, row_height, font_size)
                y += row_height

            y += g.section_gap

    def _new_page(self, layout: PageLayout, header: ReportHeader) -> LayoutPage:
        page = LayoutPage(number=layout.total_pages + 1)
        page.ops.extend(self._header_band(header))
        layout.pages.append(page)
        return page

    def _header_band(self, header: ReportHeader) -> list[DrawOp]:
        g = self.geometry
        right = g.page_width - g.margin
        subtitle = header.company_name
        if header.as_at_date:
            subtitle = f"{subtitle} - As At {header.as_at_date}"

        return [
            RectOp(0, 0, g.page_width, g.header_height, fill=BRAND_COLOR),
            TextOp(g.margin, 24, header.title, 28, True, WHITE),
            TextOp(g.margin, 34, subtitle, 14, False, WHITE),
            TextOp(right, 18, f"Classification: {header.classification}", 8, False, WHITE, "right"),
            TextOp(right, 24, f"Generated: {_generated_stamp(header)}", 8, False, WHITE, "right"),
        ]

    def _column_spans(self, columns: tuple[Column, ...]) -> list[tuple[float, float]]:
        total_weight = sum(c.weight for c in columns)
        x = self.geometry.margin
        spans = []
        for column in columns:
            width = self.content_width * column.weight / total_weight
            spans.append((x, width))
            x += width
        return spans

    def _draw_table_head(
        self, page: LayoutPage, table: SectionTable, y: float, font_size: float
    ) -> float:
        height = self.geometry.head_row_height
        accent = table.section.accent
        page.ops.append(RectOp(self.geometry.margin, y, self.content_width, height, fill=accent))

        for column, (x, width) in zip(table.columns, self._column_spans(table.columns)):
            text = self._fit(column.name, width, FONT_BOLD, font_size)
            page.ops.append(
                TextOp(
                    self._text_x(x, width, column.align),
                    y + height * 0.65,
                    text,
                    font_size,
                    True,
                    WHITE,
                    column.align,
                )
            )

        page.blocks.append(PlacedBlock(BlockKind.TABLE_HEAD, table.section, y, y + height))
        return y + height

    def _draw_row(
        self,
        page: LayoutPage,
        table: SectionTable,
        row: tuple,
        y: float,
        height: float,
        font_size: float,
    ) -> None:
        for column, value, (x, width) in zip(
            table.columns, row, self._column_spans(table.columns)
        ):
            font = FONT_BOLD if column.money else FONT
            page.ops.append(RectOp(x, y, width, height, stroke=GRID))
            page.ops.append(
                TextOp(
                    self._text_x(x, width, column.align),
                    y + height * 0.65,
                    self._fit(str(value), width, font, font_size),
                    font_size,
                    column.money,
                    BLACK,
                    column.align,
                )
            )

        page.blocks.append(PlacedBlock(BlockKind.ROW, table.section, y, y + height))

    @staticmethod
    def _text_x(x: float, width: float, align: str) -> float:
        if align == "right":
            return x + width - CELL_PADDING
        if align == "center":
            return x + width / 2
        return x + CELL_PADDING

    @staticmethod
    def _fit(text: str, width: float, font: str, size: float) -> str:
        """Truncate text with an ellipsis so it fits inside a cell."""
        text = " ".join(text.split())
        available = (width - 2 * CELL_PADDING) * mm
        if stringWidth(text, font, size) <= available:
            return text
        while text and stringWidth(text + ELLIPSIS, font, size) > available:
            text = text[:-1]
        return text.rstrip() + ELLIPSIS

    def _stamp_footers(self, layout: PageLayout, header: ReportHeader) -> None:
        g = self.geometry
        rule_y = g.page_height - g.footer_zone + 5
        text_y = g.page_height - g.footer_zone + 10
        right = g.page_width - g.margin
        total = layout.total_pages

        for page in layout.pages:
            page.footer_ops = [
                LineOp(g.margin, rule_y, right, rule_y, FOOTER_RULE),
                TextOp(
                    g.margin,
                    text_y,
                    f"{header.company_name} | {header.product_name}   Page {page.number} of {total}",
                    8,
                    False,
                    MUTED,
                ),
                TextOp(
                    right,
                    text_y,
                    f"Export Date: {header.generated_at:%d/%m/%Y}",
                    8,
                    False,
                    MUTED,
                    "right",
                ),
            ]

    # -- finalize -------------------------------------------------------

    def finalize(self, content: ReportContent, laid_out: PageLayout) -> bytes:
        g = self.geometry
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=(g.page_width * mm, g.page_height * mm))
        pdf.setTitle(f"{content.header.title} - {content.header.company_name}")
        pdf.setAuthor(content.header.product_name)

        for page in laid_out.pages:
            for op in page.ops + page.footer_ops:
                self._paint(pdf, op)
            pdf.showPage()

        pdf.save()
        return buffer.getvalue()

    def _paint(self, pdf: canvas.Canvas, op: DrawOp) -> None:
        height = self.geometry.page_height

        if isinstance(op, RectOp):
            if op.fill:
                pdf.setFillColorRGB(*(c / 255 for c in op.fill))
            if op.stroke:
                pdf.setStrokeColorRGB(*(c / 255 for c in op.stroke))
                pdf.setLineWidth(0.25)
            pdf.rect(
                op.x * mm,
                (height - op.y - op.height) * mm,
                op.width * mm,
                op.height * mm,
                stroke=1 if op.stroke else 0,
                fill=1 if op.fill else 0,
            )
        elif isinstance(op, LineOp):
            pdf.setStrokeColorRGB(*(c / 255 for c in op.color))
            pdf.setLineWidth(0.5)
            pdf.line(op.x1 * mm, (height - op.y1) * mm, op.x2 * mm, (height - op.y2) * mm)
        else:
            pdf.setFont(FONT_BOLD if op.bold else FONT, op.size)
            pdf.setFillColorRGB(*(c / 255 for c in op.color))
            x, y = op.x * mm, (height - op.y) * mm
            if op.align == "right":
                pdf.drawRightString(x, y, op.text)
            elif op.align == "center":
                pdf.drawCentredString(x, y, op.text)
            else:
                pdf.drawString(x, y, op.text)

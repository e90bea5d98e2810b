"""
Shared building blocks for report renderers.

A renderer works in the same four phases the export task reports:
``analyze`` picks the sections to emit, ``format`` turns records into
section tables, ``layout`` arranges them for the target medium and
``finalize`` produces the artifact bytes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional
import logging
import re

from ..analytics.aggregation import Totals, compute_totals
from ..analytics.filters import FilteredResult
from ..config import ReportingConfig, SectionsConfig
from ..utils.exceptions import NothingSelectedError, ReportGenerationError

logger = logging.getLogger(__name__)

RGB = tuple[int, int, int]

BRAND_COLOR: RGB = (26, 35, 126)


class ExportFormat(Enum):
    """Artifact formats the pipeline can produce."""

    CSV = "csv"
    PDF = "pdf"
    XLSX = "xlsx"


class Section(Enum):
    """The four independently selectable report divisions."""

    SUMMARY = "summary"
    MATCHES = "matches"
    UNMATCHED_BANK = "unmatched_bank"
    UNMATCHED_LEDGER = "unmatched_ledger"

    @property
    def accent(self) -> RGB:
        return SECTION_ACCENTS[self]


SECTION_ACCENTS: dict[Section, RGB] = {
    Section.SUMMARY: (30, 41, 59),
    Section.MATCHES: (16, 185, 129),
    Section.UNMATCHED_BANK: (245, 158, 11),
    Section.UNMATCHED_LEDGER: (99, 102, 241),
}


@dataclass(frozen=True)
class SectionSelection:
    """Which sections the user wants in the export."""

    summary: bool = True
    matches: bool = True
    unmatched_bank: bool = True
    unmatched_ledger: bool = True

    @classmethod
    def from_config(cls, sections: SectionsConfig) -> "SectionSelection":
        return cls(
            summary=sections.summary,
            matches=sections.matches,
            unmatched_bank=sections.unmatched_bank,
            unmatched_ledger=sections.unmatched_ledger,
        )

    @classmethod
    def none(cls) -> "SectionSelection":
        return cls(False, False, False, False)

    def is_enabled(self, section: Section) -> bool:
        return getattr(self, section.value)

    @property
    def any_selected(self) -> bool:
        return any(self.is_enabled(s) for s in Section)


@dataclass(frozen=True)
class ReportHeader:
    """Metadata printed in the report header band and footer."""

    company_name: str
    as_at_date: str = ""
    generated_at: datetime = field(default_factory=datetime.now)
    title: str = "Reconciliation Report"
    product_name: str = "Reconciliation Report Pro"
    classification: str = "Protected"

    @classmethod
    def from_config(
        cls, config: ReportingConfig, generated_at: Optional[datetime] = None
    ) -> "ReportHeader":
        report = config.report
        return cls(
            company_name=report.company_name,
            as_at_date=report.as_at_date,
            generated_at=generated_at or datetime.now(),
            title=report.title,
            product_name=report.product_name,
            classification=report.classification,
        )

    @property
    def timestamp_ms(self) -> int:
        return int(self.generated_at.timestamp() * 1000)


@dataclass(frozen=True)
class ReportContent:
    """Output of the analyze phase: what will be rendered."""

    header: ReportHeader
    sections: tuple[Section, ...]
    filtered: FilteredResult
    totals: Totals

    def records_for(self, section: Section) -> tuple:
        if section is Section.MATCHES:
            return self.filtered.matches
        if section is Section.UNMATCHED_BANK:
            return self.filtered.unmatched_bank
        if section is Section.UNMATCHED_LEDGER:
            return self.filtered.unmatched_ledger
        return ()


@dataclass(frozen=True)
class Column:
    name: str
    align: str = "left"
    weight: float = 1.0
    money: bool = False


@dataclass(frozen=True)
class SectionTable:
    """One section ready for layout: title, columns and raw cell values."""

    section: Section
    title: str
    columns: tuple[Column, ...]
    rows: tuple[tuple[Any, ...], ...]


@dataclass(frozen=True)
class ExportArtifact:
    """A finished, fully built export. Nothing is written until save()."""

    filename: str
    content: bytes
    media_type: str

    def save(self, directory: Path) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.filename
        path.write_bytes(self.content)
        logger.info(f"Saved export: {path}")
        return path


def sanitize_company_name(name: str) -> str:
    """Make a company name safe to embed in a filename."""
    cleaned = re.sub(r"[\\/]", "-", name.strip().rstrip(". "))
    return re.sub(r"\s+", "_", cleaned)


def build_filename(
    label: str, company_name: str, extension: str, timestamp: Optional[int] = None
) -> str:
    """
    Build a download filename.

    >>> build_filename("ReconReport", "Sample  Logistics Ltd", "csv")
    'ReconReport_Sample_Logistics_Ltd.csv'
    """
    stem = f"{label}_{sanitize_company_name(company_name)}"
    if timestamp is not None:
        stem = f"{stem}_{timestamp}"
    return f"{stem}.{extension}"


def sections_to_render(filtered: FilteredResult, selection: SectionSelection) -> tuple[Section, ...]:
    """
    Sections that actually appear in an export.

    The summary renders whenever it is selected. Record sections render only
    when selected and non-empty after filtering.
    """
    chosen: list[Section] = []
    if selection.summary:
        chosen.append(Section.SUMMARY)
    if selection.matches and filtered.matches:
        chosen.append(Section.MATCHES)
    if selection.unmatched_bank and filtered.unmatched_bank:
        chosen.append(Section.UNMATCHED_BANK)
    if selection.unmatched_ledger and filtered.unmatched_ledger:
        chosen.append(Section.UNMATCHED_LEDGER)
    return tuple(chosen)


def summary_rows(totals: Totals) -> tuple[tuple[str, int, Any], ...]:
    """Metric, count and net value rows of the summary section."""
    return (
        ("Successfully Matched", totals.total_matches, totals.matched_amount),
        ("Outstanding Bank Items", totals.total_unmatched_bank, totals.unmatched_bank_amount),
        (
            "Outstanding Ledger Items",
            totals.total_unmatched_ledger,
            totals.unmatched_ledger_amount,
        ),
    )


class ReportRenderer(ABC):
    """Base class for export renderers."""

    format: ExportFormat
    media_type: str = "application/octet-stream"

    def __init__(self, config: ReportingConfig):
        """
        Initialize the renderer.

        Args:
            config: Application configuration
        """
        self.config = config
        self.currency_symbol = config.currency.symbol

    @property
    @abstractmethod
    def label(self) -> str:
        """Filename prefix for this artifact type."""

    def analyze(
        self,
        filtered: FilteredResult,
        selection: SectionSelection,
        header: ReportHeader,
    ) -> ReportContent:
        """
        Decide what goes into the report.

        Raises:
            NothingSelectedError: If every section is deselected
        """
        if not selection.any_selected:
            raise NothingSelectedError()
        return ReportContent(
            header=header,
            sections=sections_to_render(filtered, selection),
            filtered=filtered,
            totals=compute_totals(filtered),
        )

    @abstractmethod
    def format_sections(self, content: ReportContent) -> list[SectionTable]:
        """Turn records into section tables."""

    @abstractmethod
    def layout(self, content: ReportContent, tables: list[SectionTable]) -> Any:
        """Arrange section tables for the target medium."""

    @abstractmethod
    def finalize(self, content: ReportContent, laid_out: Any) -> bytes:
        """Produce the artifact bytes."""

    def filename(self, header: ReportHeader) -> str:
        return build_filename(
            self.label, header.company_name, self.format.value, header.timestamp_ms
        )

    def render(
        self,
        filtered: FilteredResult,
        selection: SectionSelection,
        header: ReportHeader,
    ) -> ExportArtifact:
        """
        Run all phases in one go.

        Raises:
            NothingSelectedError: If every section is deselected
            ReportGenerationError: If any phase fails
        """
        content = self.analyze(filtered, selection, header)
        try:
            tables = self.format_sections(content)
            laid_out = self.layout(content, tables)
            data = self.finalize(content, laid_out)
        except ReportGenerationError:
            raise
        except Exception as e:
            logger.error(f"{self.format.value.upper()} export failed: {e}")
            raise ReportGenerationError(f"Failed to generate {self.format.value} report: {e}") from e

        return ExportArtifact(
            filename=self.filename(header),
            content=data,
            media_type=self.media_type,
        )

"""Export renderers for reconciliation reports."""

from ..config import ReportingConfig
from .base import (
    ExportArtifact,
    ExportFormat,
    ReportContent,
    ReportHeader,
    ReportRenderer,
    Section,
    SectionSelection,
    build_filename,
    sanitize_company_name,
    sections_to_render,
)
from .csv_renderer import CsvReportRenderer
from .excel_generator import ExcelReportRenderer
from .pdf_renderer import PdfReportRenderer

RENDERERS: dict[ExportFormat, type[ReportRenderer]] = {
    ExportFormat.CSV: CsvReportRenderer,
    ExportFormat.PDF: PdfReportRenderer,
    ExportFormat.XLSX: ExcelReportRenderer,
}


def get_renderer(export_format: ExportFormat, config: ReportingConfig) -> ReportRenderer:
    """Instantiate the renderer for an export format."""
    return RENDERERS[export_format](config)


__all__ = [
    "ExportArtifact",
    "ExportFormat",
    "ReportContent",
    "ReportHeader",
    "ReportRenderer",
    "Section",
    "SectionSelection",
    "build_filename",
    "sanitize_company_name",
    "sections_to_render",
    "CsvReportRenderer",
    "ExcelReportRenderer",
    "PdfReportRenderer",
    "RENDERERS",
    "get_renderer",
]

"""Aggregation and filtering over reconciliation results."""

from .aggregation import (
    DashboardView,
    RankedUnmatched,
    Totals,
    build_dashboard,
    compute_totals,
    format_currency,
    top_unmatched,
    variance,
)
from .filters import (
    Category,
    FilterCriteria,
    FilteredResult,
    Page,
    StatusFilter,
    apply_filters,
    filter_records,
    paginate,
    select_status,
)

__all__ = [
    "DashboardView",
    "RankedUnmatched",
    "Totals",
    "build_dashboard",
    "compute_totals",
    "format_currency",
    "top_unmatched",
    "variance",
    "Category",
    "FilterCriteria",
    "FilteredResult",
    "Page",
    "StatusFilter",
    "apply_filters",
    "filter_records",
    "paginate",
    "select_status",
]

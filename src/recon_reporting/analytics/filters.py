"""
Filter engine over the three record collections.

Filters never mutate their input. Every call returns fresh tuples, and an
empty selection is a valid answer rather than an error.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from math import ceil
from typing import Generic, Optional, Sequence, TypeVar, Union

from ..models.transaction import (
    MatchedPair,
    Record,
    ReconciliationSummary,
    Transaction,
)
from ..utils.exceptions import FilterError

R = TypeVar("R")


class Category(Enum):
    """Cash direction filter."""

    ALL = "all"
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class StatusFilter(Enum):
    """Which collections a table view shows."""

    ALL = "all"
    MATCHED = "matched"
    UNMATCHED_BANK = "unmatched_bank"
    UNMATCHED_LEDGER = "unmatched_ledger"


def _parse_bound(value: Union[str, date, None], name: str) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise FilterError(f"{name} must be a YYYY-MM-DD date, got {value!r}") from e


@dataclass(frozen=True)
class FilterCriteria:
    """
    Date range, cash direction and free-text predicates, combined with AND.

    An end date before the start date is allowed; it simply lets nothing
    through.
    """

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category: Category = Category.ALL
    free_text: Optional[str] = None

    @classmethod
    def from_inputs(
        cls,
        start_date: Union[str, date, None] = None,
        end_date: Union[str, date, None] = None,
        category: Union[str, Category] = Category.ALL,
        free_text: Optional[str] = None,
    ) -> "FilterCriteria":
        """
        Build criteria from loosely typed UI or CLI values.

        Empty strings mean "not set".

        Raises:
            FilterError: If a date or category cannot be understood
        """
        if not isinstance(category, Category):
            try:
                category = Category(str(category).strip().lower())
            except ValueError as e:
                raise FilterError(f"Unknown category: {category!r}") from e

        text = free_text.strip() if free_text else None

        return cls(
            start_date=_parse_bound(start_date, "start_date"),
            end_date=_parse_bound(end_date, "end_date"),
            category=category,
            free_text=text or None,
        )

    @property
    def is_empty(self) -> bool:
        return (
            self.start_date is None
            and self.end_date is None
            and self.category is Category.ALL
            and not self.free_text
        )

    def accepts(self, record: Record) -> bool:
        return (
            self._date_passes(record)
            and self._category_passes(record)
            and self._text_passes(record)
        )

    def _date_passes(self, record: Record) -> bool:
        return (not self.start_date or record.date >= self.start_date) and (
            not self.end_date or record.date <= self.end_date
        )

    def _category_passes(self, record: Record) -> bool:
        if self.category is Category.INFLOW:
            return record.amount > 0
        if self.category is Category.OUTFLOW:
            return record.amount < 0
        return True

    def _text_passes(self, record: Record) -> bool:
        if not self.free_text:
            return True
        needle = self.free_text.lower()
        haystack = record.search_fields() + (record.date.isoformat(), str(record.amount))
        return any(needle in value.lower() for value in haystack if value)


@dataclass(frozen=True)
class FilteredResult:
    """A read-only subset of a reconciliation result."""

    summary: ReconciliationSummary
    matches: tuple[MatchedPair, ...] = ()
    unmatched_bank: tuple[Transaction, ...] = ()
    unmatched_ledger: tuple[Transaction, ...] = ()

    @classmethod
    def from_result(cls, result) -> "FilteredResult":
        return cls(
            summary=result.summary,
            matches=tuple(result.matches),
            unmatched_bank=tuple(result.unmatched_bank),
            unmatched_ledger=tuple(result.unmatched_ledger),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.matches or self.unmatched_bank or self.unmatched_ledger)


def filter_records(records: Sequence[R], criteria: FilterCriteria) -> tuple[R, ...]:
    """Return the records that pass every predicate, preserving order."""
    return tuple(r for r in records if criteria.accepts(r))


def apply_filters(result, criteria: Optional[FilterCriteria] = None) -> FilteredResult:
    """
    Apply criteria to all three collections independently.

    Args:
        result: ReconciliationResult or FilteredResult
        criteria: Filter criteria; None means no filtering

    Returns:
        New FilteredResult; the input is left untouched
    """
    if criteria is None or criteria.is_empty:
        return FilteredResult.from_result(result)

    return FilteredResult(
        summary=result.summary,
        matches=filter_records(result.matches, criteria),
        unmatched_bank=filter_records(result.unmatched_bank, criteria),
        unmatched_ledger=filter_records(result.unmatched_ledger, criteria),
    )


def select_status(filtered: FilteredResult, status: StatusFilter) -> FilteredResult:
    """Blank out the collections a status filter hides."""
    if status is StatusFilter.ALL:
        return filtered
    return FilteredResult(
        summary=filtered.summary,
        matches=filtered.matches if status is StatusFilter.MATCHED else (),
        unmatched_bank=filtered.unmatched_bank if status is StatusFilter.UNMATCHED_BANK else (),
        unmatched_ledger=(
            filtered.unmatched_ledger if status is StatusFilter.UNMATCHED_LEDGER else ()
        ),
    )


@dataclass(frozen=True)
class Page(Generic[R]):
    """One page of a table view."""

    items: tuple[R, ...]
    page: int
    page_size: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return max(1, ceil(self.total_items / self.page_size))

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def paginate(records: Sequence[R], page: int = 1, page_size: int = 25) -> Page[R]:
    """
    Slice records into a 1-based page.

    Pages past the end clamp to the last page; pages below 1 clamp to 1.

    Raises:
        FilterError: If page_size is not positive
    """
    if page_size <= 0:
        raise FilterError(f"page_size must be positive, got {page_size}")

    total = len(records)
    last_page = max(1, ceil(total / page_size))
    page = min(max(page, 1), last_page)
    start = (page - 1) * page_size

    return Page(
        items=tuple(records[start : start + page_size]),
        page=page,
        page_size=page_size,
        total_items=total,
    )

"""
Table Pagination Utilities for the Visit Table.

This module provides the windowing behind the visit data table:
- Inclusive date-range filtering with open-ended bounds
- Ascending/descending sort by visit date
- Fixed-page-size pagination with 1-based page numbers
- Bounded page-button windowing centered on the current page

The transforms are pure. Filtering runs before sorting and sorting before
pagination. Page numbers are never clamped implicitly: after a filter change
the caller applies clamp_page() (paginate_visits() does this for you and
reports the page it actually used).

Usage:
    from table_pagination import VisitTableQuery, SortOrder, paginate_visits

    result = paginate_visits(
        visits,
        VisitTableQuery(start_date="2025-03-01", end_date="2025-03-31",
                        sort_order=SortOrder.DESC, page=2)
    )
    for visit in result.items:
        ...
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, TypeVar, Union

from constants import DEFAULT_PAGE_SIZE, VISIBLE_PAGE_BUTTONS
from date_utilities import parse_date
from visit_record_normalizer import NormalizedVisit

# Set up logging
logger = logging.getLogger(__name__)

T = TypeVar('T')

DateBound = Union[date, datetime, str, None]


class SortOrder(Enum):
    """Sort direction of the visit table."""
    ASC = "asc"
    DESC = "desc"


def toggle_sort_order(order: SortOrder) -> SortOrder:
    """Flip between newest-first and oldest-first."""
    return SortOrder.ASC if order == SortOrder.DESC else SortOrder.DESC


def _resolve_bound(value: DateBound, name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    parsed = parse_date(value)
    if parsed is None:
        logger.warning(f"Ignoring unparseable {name} filter value: '{value}'")
    return parsed


def is_valid_date_range(start_date: DateBound, end_date: DateBound) -> bool:
    """Check a filter range; an open or unparseable bound is always valid."""
    start = parse_date(start_date) if start_date else None
    end = parse_date(end_date) if end_date else None
    if start is None or end is None:
        return True
    return start <= end


def filter_visits_by_date_range(
    visits: List[NormalizedVisit],
    start_date: DateBound = None,
    end_date: DateBound = None
) -> List[NormalizedVisit]:
    """Filter visits to an inclusive date range.

    Args:
        visits: Normalized visits
        start_date: First day to include, or None for open-ended
        end_date: Last day to include, or None for open-ended

    Returns:
        Visits within the range, in their original order. With no bounds every
        visit is returned; with any bound, undated visits are left out.
    """
    start = _resolve_bound(start_date, "start_date")
    end = _resolve_bound(end_date, "end_date")

    if start is None and end is None:
        return list(visits)

    filtered = []
    for visit in visits:
        if visit.visit_date is None:
            continue
        if start is not None and visit.visit_date < start:
            continue
        if end is not None and visit.visit_date > end:
            continue
        filtered.append(visit)

    return filtered


def sort_visits(
    visits: List[NormalizedVisit],
    order: SortOrder = SortOrder.DESC
) -> List[NormalizedVisit]:
    """Sort visits by date; the sort is stable and undated visits go last."""
    dated = [v for v in visits if v.visit_date is not None]
    undated = [v for v in visits if v.visit_date is None]

    dated.sort(key=lambda v: v.visit_date, reverse=(order == SortOrder.DESC))
    return dated + undated


def calculate_total_pages(total_items: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    """Number of pages needed for total_items (0 when there are none)."""
    if page_size <= 0:
        raise ValueError(f"Page size must be positive, got {page_size}")
    return math.ceil(total_items / page_size)


def paginate(items: Sequence[T], page: int, page_size: int = DEFAULT_PAGE_SIZE) -> List[T]:
    """Return the slice for a 1-based page number.

    A page past the end yields an empty list; no clamping happens here.
    """
    if page_size <= 0:
        raise ValueError(f"Page size must be positive, got {page_size}")
    start = (max(page, 1) - 1) * page_size
    return list(items[start:start + page_size])


def clamp_page(page: int, total_pages: int) -> int:
    """Pull a page number back onto the last page after the data shrank.

    Only applies when page > total_pages and total_pages > 0; an empty
    result keeps the requested page.
    """
    if page > total_pages and total_pages > 0:
        return total_pages
    return page


def get_visible_pages(
    current_page: int,
    total_pages: int,
    max_buttons: int = VISIBLE_PAGE_BUTTONS
) -> List[int]:
    """Page numbers to show as buttons.

    At most max_buttons pages, centered on the current page and shifted to
    stay within [1, total_pages].

    Example:
        >>> get_visible_pages(1, 10)
        [1, 2, 3, 4, 5]
        >>> get_visible_pages(6, 10)
        [4, 5, 6, 7, 8]
        >>> get_visible_pages(10, 10)
        [6, 7, 8, 9, 10]
    """
    if total_pages <= 0:
        return []

    half = max_buttons // 2
    start_page = max(1, current_page - half)
    end_page = min(total_pages, start_page + max_buttons - 1)
    if end_page - start_page + 1 < max_buttons:
        start_page = max(1, end_page - max_buttons + 1)

    return list(range(start_page, end_page + 1))


@dataclass(frozen=True)
class VisitTableQuery:
    """The three independent controls of the visit table.

    Attributes:
        start_date: Inclusive lower date bound (None for open)
        end_date: Inclusive upper date bound (None for open)
        sort_order: Sort direction by date
        page: Requested 1-based page
        page_size: Rows per page
    """
    start_date: DateBound = None
    end_date: DateBound = None
    sort_order: SortOrder = SortOrder.DESC
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def with_filter(self, start_date: DateBound = None, end_date: DateBound = None) -> "VisitTableQuery":
        """New query with a changed date filter, back on page 1."""
        return replace(self, start_date=start_date, end_date=end_date, page=1)

    def with_page(self, page: int) -> "VisitTableQuery":
        return replace(self, page=page)

    def toggled(self) -> "VisitTableQuery":
        """New query with the sort direction flipped."""
        return replace(self, sort_order=toggle_sort_order(self.sort_order))


@dataclass
class PageResult:
    """One rendered page of the visit table.

    Attributes:
        items: Visits on this page
        page: Page number actually used (after clamping)
        page_size: Rows per page
        total_items: Visits remaining after the date filter
        total_pages: Pages needed for total_items
        visible_pages: Page buttons to display
        is_valid_range: False when start_date is after end_date
    """
    items: List[NormalizedVisit]
    page: int
    page_size: int
    total_items: int
    total_pages: int
    visible_pages: List[int] = field(default_factory=list)
    is_valid_range: bool = True

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "items": [visit.to_dict() for visit in self.items],
            "page": self.page,
            "pageSize": self.page_size,
            "totalItems": self.total_items,
            "totalPages": self.total_pages,
            "visiblePages": list(self.visible_pages),
            "isValidRange": self.is_valid_range,
        }


def paginate_visits(
    visits: List[NormalizedVisit],
    query: Optional[VisitTableQuery] = None
) -> PageResult:
    """Apply filter, sort and pagination to a snapshot of visits.

    The requested page is auto-adjusted with clamp_page() against the total
    page count of the filtered data.

    Args:
        visits: Normalized visits
        query: Table controls (defaults to newest first, page 1)

    Returns:
        PageResult with the page slice and paging metadata
    """
    if query is None:
        query = VisitTableQuery()

    filtered = filter_visits_by_date_range(visits, query.start_date, query.end_date)
    ordered = sort_visits(filtered, query.sort_order)

    total_pages = calculate_total_pages(len(ordered), query.page_size)
    page = clamp_page(query.page, total_pages)
    if page != query.page:
        logger.debug(f"Page {query.page} is past the last page, showing page {page}")

    return PageResult(
        items=paginate(ordered, page, query.page_size),
        page=page,
        page_size=query.page_size,
        total_items=len(ordered),
        total_pages=total_pages,
        visible_pages=get_visible_pages(page, total_pages),
        is_valid_range=is_valid_date_range(query.start_date, query.end_date),
    )

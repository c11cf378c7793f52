"""
Visit Dashboard Module

Orchestrates one view of the visit analytics:
- fetches the raw visit records and normalizes them once per load
- computes the weekly, monthly and yearly statistics cards and the summary
- renders one page of the visit table
- loads the month calendar, fetching booking requests and scheduled events
  concurrently and discarding results that a newer request has superseded

Usage:
    python visit_dashboard.py                       # Current Jakarta time
    python visit_dashboard.py --demo                # Fixed demonstration instant
    python visit_dashboard.py --year 2025 --month 3 --report laporan.pdf
    python visit_dashboard.py --start-date 2025-03-01 --end-date 2025-03-31 --sort asc
    python visit_dashboard.py --log-level DEBUG
"""

import argparse
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from constants import (
    DEFAULT_PAGE_SIZE,
    DEMO_REFERENCE_INSTANT,
    VISITOR_CATEGORY_LABELS,
)
from calendar_day_bucket_merger import (
    BookingRequest,
    CalendarDayCell,
    ScheduledEvent,
    build_month_grid,
    format_month_title,
)
from cms_client import CmsClient, FetchResult, load_config_from_env
from date_utilities import (
    get_current_datetime,
    format_number_id,
    parse_date_argument,
    parse_datetime_argument,
)
from logging_config import configure_logging, add_log_level_argument
from period_comparison_calculator import (
    PeriodStats,
    VisitSummary,
    calculate_all_period_stats,
    CategoryShare,
    calculate_category_distribution,
    calculate_category_totals,
    calculate_visit_summary,
    format_change_text,
)
from table_pagination import PageResult, SortOrder, VisitTableQuery, paginate_visits
from visit_record_normalizer import NormalizationStats, NormalizedVisit, normalize_visits
from visit_report import create_visit_report

# Set up logging
logger = logging.getLogger(__name__)

CALENDAR_FETCH_WORKERS = 2


@dataclass
class DashboardSnapshot:
    """Everything the statistics section and the visit table show for one load.

    Attributes:
        stats: Weekly, monthly and yearly statistics cards
        summary: Overall visit summary
        category_totals: Visitors per age category
        category_distribution: Count and share of each age category
        page: The rendered visit table page
        normalization: Statistics of the normalization run
        fetch_succeeded: False when the visit fetch failed and the views are empty
    """
    stats: List[PeriodStats]
    summary: VisitSummary
    category_totals: Dict[str, int]
    page: PageResult
    category_distribution: List[CategoryShare] = field(default_factory=list)
    normalization: NormalizationStats = field(default_factory=NormalizationStats)
    fetch_succeeded: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stats": [s.to_dict() for s in self.stats],
            "summary": self.summary.to_dict(),
            "categoryTotals": dict(self.category_totals),
            "categoryDistribution": [s.to_dict() for s in self.category_distribution],
            "table": self.page.to_dict(),
            "fetchSucceeded": self.fetch_succeeded,
        }


class VisitDashboard:
    """Loads visit records and derives the statistics and table views from one snapshot."""

    def __init__(self, client: CmsClient, now: Optional[datetime] = None):
        self.client = client
        self.now = now
        self.visits: List[NormalizedVisit] = []
        self.normalization = NormalizationStats()
        self.last_fetch: Optional[FetchResult] = None

    def load_visits(self) -> List[NormalizedVisit]:
        """Fetch and normalize the visit records, replacing the current snapshot.

        A failed fetch leaves an empty snapshot so every view renders as
        "no data yet".
        """
        result = self.client.fetch_visits()
        self.last_fetch = result
        self.normalization = NormalizationStats()

        if not result:
            logger.warning(f"Visit records unavailable: {result.message}")
            self.visits = []
            return self.visits

        self.visits = normalize_visits(result.records, self.normalization)
        logger.info(f"Loaded {len(self.visits)} visit records")
        return self.visits

    def get_period_stats(self, show_comparison: bool = True) -> List[PeriodStats]:
        return calculate_all_period_stats(self.visits, now=self.now, show_comparison=show_comparison)

    def get_table_page(self, query: Optional[VisitTableQuery] = None) -> PageResult:
        return paginate_visits(self.visits, query)

    def build_snapshot(
        self,
        query: Optional[VisitTableQuery] = None,
        show_comparison: bool = True
    ) -> DashboardSnapshot:
        """Compute every view from the current visit snapshot."""
        return DashboardSnapshot(
            stats=self.get_period_stats(show_comparison),
            summary=calculate_visit_summary(self.visits),
            category_totals=calculate_category_totals(self.visits),
            page=self.get_table_page(query),
            category_distribution=calculate_category_distribution(self.visits),
            normalization=self.normalization,
            fetch_succeeded=bool(self.last_fetch) if self.last_fetch is not None else True,
        )


@dataclass
class CalendarMonth:
    """A loaded month of the admin calendar.

    Attributes:
        year: Calendar year
        month: Calendar month (1-12)
        cells: Month grid, padding cells first
        bookings_loaded: False when the booking fetch failed
        events_loaded: False when the event fetch failed
    """
    year: int
    month: int
    cells: List[CalendarDayCell]
    bookings_loaded: bool = True
    events_loaded: bool = True

    @property
    def title(self) -> str:
        return format_month_title(self.year, self.month)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "title": self.title,
            "cells": [cell.to_dict() for cell in self.cells],
            "bookingsLoaded": self.bookings_loaded,
            "eventsLoaded": self.events_loaded,
        }


class CalendarMonthLoader:
    """
    Loads calendar months, fetching both record streams concurrently.

    Every load_month() call takes a new request token. When a newer call was
    started while a fetch was in flight, the older result is discarded and
    load_month() returns None, so a quick month change never shows the
    previous month's records.

    Args:
        client: CMS client used for both fetches.
        today: Day highlighted as "today" (defaults to the Jakarta clock).
        max_workers: Size of the fetch thread pool.
    """

    def __init__(self, client: CmsClient, today: Optional[date] = None,
                 max_workers: int = CALENDAR_FETCH_WORKERS):
        self.client = client
        self.today = today
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="calendar-fetch")
        self._lock = threading.Lock()
        self._latest_token = 0
        self._in_flight = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False

    @property
    def is_loading(self) -> bool:
        """True while at least one month load is in flight."""
        with self._lock:
            return self._in_flight > 0

    def _begin_request(self) -> int:
        with self._lock:
            self._latest_token += 1
            self._in_flight += 1
            return self._latest_token

    def _end_request(self, token: int) -> bool:
        """Finish a request; returns True when it is still the latest one."""
        with self._lock:
            self._in_flight -= 1
            return token == self._latest_token

    def load_month(self, year: int, month: int) -> Optional[CalendarMonth]:
        """
        Fetch bookings and events of a month and build its grid.

        Returns:
            CalendarMonth, or None when a newer load_month() call superseded
            this one.
        """
        token = self._begin_request()
        try:
            bookings_future = self._executor.submit(self.client.fetch_booking_requests, year, month)
            events_future = self._executor.submit(self.client.fetch_scheduled_events)
            bookings_result = bookings_future.result()
            events_result = events_future.result()
        finally:
            is_latest = self._end_request(token)

        if not is_latest:
            logger.info(f"Discarding stale calendar result for {year}-{month:02d}")
            return None

        if not bookings_result:
            logger.warning(f"Booking requests unavailable: {bookings_result.message}")
        if not events_result:
            logger.warning(f"Scheduled events unavailable: {events_result.message}")

        bookings = [
            BookingRequest.from_dict(r) for r in bookings_result.records if isinstance(r, dict)
        ]
        events = [
            ScheduledEvent.from_dict(r) for r in events_result.records if isinstance(r, dict)
        ]

        cells = build_month_grid(year, month, bookings, events, today=self.today)
        return CalendarMonth(
            year=year,
            month=month,
            cells=cells,
            bookings_loaded=bool(bookings_result),
            events_loaded=bool(events_result),
        )

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


def format_dashboard_text(snapshot: DashboardSnapshot,
                          calendar_month: Optional[CalendarMonth] = None) -> str:
    """Plain-text rendering of a dashboard load for the console."""
    lines = ["Statistik Pengunjung", "=" * 60]
    for stats in snapshot.stats:
        line = f"{stats.label:<10} {format_number_id(stats.value):>8}  {stats.period}"
        change = format_change_text(stats.comparison)
        if change:
            line += f"  [{change}]"
        lines.append(line)

    summary = snapshot.summary
    lines.extend([
        "",
        f"Total pengunjung : {format_number_id(summary.total_visitors)}",
        f"Jumlah hari      : {format_number_id(summary.total_days)}",
        f"Rata-rata/hari   : {format_number_id(summary.average_per_day)}",
        f"Hari tertinggi   : {format_number_id(summary.highest_day_count)} ({summary.highest_day_date})",
        "",
        "Distribusi kategori: " + ", ".join(
            f"{VISITOR_CATEGORY_LABELS[s.category]} {format_number_id(s.count)} ({s.percent}%)"
            for s in snapshot.category_distribution
        ),
        "",
        f"Data Kunjungan (halaman {snapshot.page.page} dari {max(snapshot.page.total_pages, 1)}, "
        f"{snapshot.page.total_items} data)",
        "-" * 60,
    ])

    for visit in snapshot.page.items:
        lines.append(f"{visit.date or '-':<12} total {visit.total}")
    if not snapshot.page.is_valid_range:
        lines.append("Rentang tanggal tidak valid")

    if calendar_month is not None:
        lines.extend(["", f"Kalender {calendar_month.title}", "-" * 60])
        for cell in calendar_month.cells:
            if not cell.total_items:
                continue
            titles = ", ".join(entry.title or "-" for entry in cell.visible_entries)
            more = f" {cell.overflow_label}" if cell.overflow_count else ""
            lines.append(f"{cell.date_key}: {titles}{more}")

    return "\n".join(lines)


def resolve_reference_instant(args: argparse.Namespace) -> datetime:
    """Reference instant for a CLI run: --now, then --demo, then the Jakarta clock."""
    if args.now is not None:
        return args.now
    if args.demo:
        return datetime.fromisoformat(DEMO_REFERENCE_INSTANT)
    return get_current_datetime()


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RPTRA Visit Dashboard")
    parser.add_argument("--now", type=parse_datetime_argument, default=None,
                        help="Reference instant, e.g. 2025-03-12T09:30 (default: current Jakarta time)")
    parser.add_argument("--demo", action="store_true",
                        help=f"Use the fixed demonstration instant {DEMO_REFERENCE_INSTANT}")
    parser.add_argument("--year", type=int, default=None, help="Calendar year (default: reference year)")
    parser.add_argument("--month", type=int, choices=range(1, 13), default=None, metavar="MONTH",
                        help="Calendar month 1-12 (default: reference month)")
    parser.add_argument("--start-date", type=parse_date_argument, default=None,
                        help="Table filter start date (YYYY-MM-DD)")
    parser.add_argument("--end-date", type=parse_date_argument, default=None,
                        help="Table filter end date (YYYY-MM-DD)")
    parser.add_argument("--sort", choices=[o.value for o in SortOrder], default=SortOrder.DESC.value,
                        help="Table sort order by date (default: desc)")
    parser.add_argument("--page", type=int, default=1, help="Table page, 1-based (default: 1)")
    parser.add_argument("--page-size", type=int, default=DEFAULT_PAGE_SIZE,
                        help=f"Table rows per page (default: {DEFAULT_PAGE_SIZE})")
    parser.add_argument("--no-comparison", action="store_true",
                        help="Leave out the previous-period comparison")
    parser.add_argument("--report", metavar="PATH", default=None,
                        help="Write a PDF report to PATH")
    add_log_level_argument(parser)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    if args.page_size <= 0:
        parser.error("--page-size must be positive")

    configure_logging(log_level=args.log_level)

    now = resolve_reference_instant(args)
    year = args.year if args.year is not None else now.year
    month = args.month if args.month is not None else now.month
    logger.info(f"Reference instant {now.isoformat()}, calendar {year}-{month:02d}")

    query = VisitTableQuery(
        start_date=args.start_date,
        end_date=args.end_date,
        sort_order=SortOrder(args.sort),
        page=args.page,
        page_size=args.page_size,
    )

    with CmsClient(load_config_from_env()) as client:
        dashboard = VisitDashboard(client, now=now)
        dashboard.load_visits()
        snapshot = dashboard.build_snapshot(query, show_comparison=not args.no_comparison)

        with CalendarMonthLoader(client, today=now.date()) as loader:
            calendar_month = loader.load_month(year, month)

    print(format_dashboard_text(snapshot, calendar_month))

    if args.report:
        create_visit_report(
            args.report,
            stats=snapshot.stats,
            page_result=snapshot.page,
            cells=calendar_month.cells if calendar_month else [],
            year=year,
            month=month,
            summary=snapshot.summary,
            distribution=snapshot.category_distribution,
            generated_at=now,
        )
        print(f"\nLaporan disimpan: {args.report}")

    success = snapshot.fetch_succeeded and (
        calendar_month is not None
        and calendar_month.bookings_loaded
        and calendar_month.events_loaded
    )
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())

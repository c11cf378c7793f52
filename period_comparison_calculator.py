"""
Period Comparison Calculator Module

Sums normalized visit totals over a period window and compares them with the
immediately preceding window of the same length (week-over-week,
month-over-month, year-over-year). Produces the PeriodStats shown on the
"Mingguan", "Bulanan" and "Tahunan" statistics cards, plus the overall visit
summary and visitor category distribution of the statistics section.

Usage:
    from period_comparison_calculator import (
        PeriodComparison,
        PeriodStats,
        TrendDirection,
        VisitSummary,
        filter_visits_in_window,
        sum_visit_totals,
        calculate_percent_change,
        compare_windows,
        calculate_period_stats,
        calculate_all_period_stats,
        calculate_visit_summary,
        calculate_category_totals,
        calculate_category_distribution,
        get_trend_direction,
        format_change_text,
    )
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Dict, Optional, Any, Union

from constants import VISITOR_CATEGORIES
from date_utilities import format_date_only, format_number_id
from period_window_calculator import (
    PeriodUnit,
    PeriodWindow,
    get_period_windows,
    format_period_label,
)
from visit_record_normalizer import NormalizedVisit

# Set up logging
logger = logging.getLogger(__name__)


class TrendDirection(Enum):
    """Direction of the current period compared to the previous one."""
    UP = "up"
    DOWN = "down"
    FLAT = "flat"
    NO_DATA = "no_data"


@dataclass(frozen=True)
class PeriodComparison:
    """Comparison of a period total against the preceding period.

    Attributes:
        previous: Sum of visit totals in the previous window
        change: current - previous
        change_percent: round(change / previous * 100), 0 when previous is 0
    """
    previous: int
    change: int
    change_percent: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "previous": self.previous,
            "change": self.change,
            "changePercent": self.change_percent,
        }


@dataclass(frozen=True)
class PeriodStats:
    """Statistics card data for one period.

    Attributes:
        label: Card title ("Mingguan", "Bulanan", "Tahunan" or custom)
        value: Sum of visit totals in the current window
        period: Display string of the current window
        comparison: Comparison with the previous window, None when not requested
    """
    label: str
    value: int
    period: str
    comparison: Optional[PeriodComparison] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting comparison when it was not requested."""
        result: Dict[str, Any] = {
            "label": self.label,
            "value": self.value,
            "period": self.period,
        }
        if self.comparison is not None:
            result["comparison"] = self.comparison.to_dict()
        return result


@dataclass(frozen=True)
class VisitSummary:
    """Overall figures of a visit collection.

    Attributes:
        total_visitors: Sum of all visit totals
        total_days: Number of visit records
        average_per_day: total_visitors / total_days, half-up rounded
        highest_day_count: Largest single-record total
        highest_day_date: Display date of that record, "-" when none
    """
    total_visitors: int
    total_days: int
    average_per_day: int
    highest_day_count: int
    highest_day_date: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalVisitors": format_number_id(self.total_visitors),
            "totalDays": format_number_id(self.total_days),
            "averagePerDay": format_number_id(self.average_per_day),
            "highestDay": {
                "count": format_number_id(self.highest_day_count),
                "date": self.highest_day_date,
            },
        }


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity.

    Matches the rounding used for the published figures (2.5 -> 3, -2.5 -> -2),
    unlike Python's round() which rounds halves to even.
    """
    return int(math.floor(value + 0.5))


def calculate_percent_change(current: int, previous: int) -> int:
    """Calculate the integer percentage change between two totals.

    Args:
        current: Current period total
        previous: Previous period total

    Returns:
        round(change / previous * 100), or 0 when previous is 0. A jump from
        nothing is reported as 0%, never as infinity.

    Example:
        >>> calculate_percent_change(75, 50)
        50
        >>> calculate_percent_change(10, 0)
        0
    """
    if previous > 0:
        return round_half_up((current - previous) / previous * 100)
    return 0


def filter_visits_in_window(
    visits: List[NormalizedVisit],
    window: PeriodWindow
) -> List[NormalizedVisit]:
    """Keep the visits whose day falls inside the window (both ends included).

    Undated visits are excluded.
    """
    return [
        visit for visit in visits
        if visit.visit_date is not None and window.contains(visit.visit_date)
    ]


def sum_visit_totals(visits: List[NormalizedVisit]) -> int:
    """Sum the total of each visit."""
    return sum(visit.total for visit in visits)


def compare_windows(
    visits: List[NormalizedVisit],
    current: PeriodWindow,
    previous: PeriodWindow,
    label: str,
    period: str,
    show_comparison: bool = True
) -> PeriodStats:
    """Build PeriodStats for a current window and its preceding window.

    Args:
        visits: Normalized visits (records outside both windows are ignored)
        current: The current window
        previous: The preceding window
        label: Card title
        period: Display string for the current window
        show_comparison: If False, comparison is left out entirely

    Returns:
        PeriodStats for the current window
    """
    current_total = sum_visit_totals(filter_visits_in_window(visits, current))

    comparison = None
    if show_comparison:
        previous_total = sum_visit_totals(filter_visits_in_window(visits, previous))
        comparison = PeriodComparison(
            previous=previous_total,
            change=current_total - previous_total,
            change_percent=calculate_percent_change(current_total, previous_total),
        )

    return PeriodStats(
        label=label,
        value=current_total,
        period=period,
        comparison=comparison,
    )


def calculate_period_stats(
    visits: List[NormalizedVisit],
    unit: Union[PeriodUnit, str],
    now: Optional[datetime] = None,
    show_comparison: bool = True
) -> PeriodStats:
    """Calculate the statistics card for one period unit.

    Args:
        visits: Normalized visits
        unit: PeriodUnit or its value/title ("week", "Bulanan", ...)
        now: Reference instant (defaults to the Jakarta wall clock)
        show_comparison: Whether to compare with the preceding window

    Returns:
        PeriodStats labelled with the unit's card title

    Example:
        >>> stats = calculate_period_stats(visits, "month", now=datetime(2025, 3, 10))
        >>> stats.period
        'Maret 2025'
    """
    unit = PeriodUnit.from_value(unit)
    current, previous = get_period_windows(unit, now)

    stats = compare_windows(
        visits,
        current,
        previous,
        label=unit.title,
        period=format_period_label(current, unit),
        show_comparison=show_comparison,
    )

    logger.debug(
        f"{unit.title}: {stats.value} visitors in {stats.period}"
        + (f" (previous {stats.comparison.previous})" if stats.comparison else "")
    )
    return stats


def calculate_all_period_stats(
    visits: List[NormalizedVisit],
    now: Optional[datetime] = None,
    show_comparison: bool = True
) -> List[PeriodStats]:
    """Calculate the weekly, monthly and yearly cards against one reference instant."""
    return [
        calculate_period_stats(visits, unit, now=now, show_comparison=show_comparison)
        for unit in (PeriodUnit.WEEK, PeriodUnit.MONTH, PeriodUnit.YEAR)
    ]


def calculate_visit_summary(visits: List[NormalizedVisit]) -> VisitSummary:
    """Calculate total, day count, daily average and busiest day.

    The busiest day is the first record with the strictly highest total; a
    collection whose totals are all 0 has no busiest day.
    """
    total_visitors = sum_visit_totals(visits)
    total_days = len(visits)
    average = round_half_up(total_visitors / total_days) if total_days else 0

    highest: Optional[NormalizedVisit] = None
    for visit in visits:
        if visit.total > (highest.total if highest else 0):
            highest = visit

    return VisitSummary(
        total_visitors=total_visitors,
        total_days=total_days,
        average_per_day=average,
        highest_day_count=highest.total if highest else 0,
        highest_day_date=format_date_only(highest.date) if highest and highest.date else "-",
    )


def calculate_category_totals(visits: List[NormalizedVisit]) -> Dict[str, int]:
    """Sum each visitor category across the visits."""
    totals = {category: 0 for category in VISITOR_CATEGORIES}
    for visit in visits:
        for category, count in visit.category_counts().items():
            totals[category] += count
    return totals


@dataclass(frozen=True)
class CategoryShare:
    """One row of the visitor category distribution."""
    category: str
    count: int
    percent: int

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "count": self.count, "percent": self.percent}


def calculate_category_distribution(visits: List[NormalizedVisit]) -> List[CategoryShare]:
    """Count and share of the grand total for each visitor category.

    Percentages are half-up rounded and may not add up to exactly 100.
    With no visitors at all every share is 0.
    """
    totals = calculate_category_totals(visits)
    grand_total = sum(totals.values())
    return [
        CategoryShare(
            category=category,
            count=totals[category],
            percent=round_half_up(totals[category] / grand_total * 100) if grand_total > 0 else 0,
        )
        for category in VISITOR_CATEGORIES
    ]


def get_trend_direction(stats: Union[PeriodStats, PeriodComparison, None]) -> TrendDirection:
    """Determine the trend from the sign of the change.

    Returns NO_DATA when no comparison was requested.
    """
    comparison = stats.comparison if isinstance(stats, PeriodStats) else stats
    if comparison is None:
        return TrendDirection.NO_DATA
    if comparison.change > 0:
        return TrendDirection.UP
    elif comparison.change < 0:
        return TrendDirection.DOWN
    return TrendDirection.FLAT


def format_change_text(comparison: Optional[PeriodComparison]) -> str:
    """Format a comparison for display.

    Returns:
        "+25 (+50%)", "-3 (-10%)", "Tidak ada perubahan" for no change, or ""
        when there is no comparison.
    """
    if comparison is None:
        return ""
    if comparison.change == 0:
        return "Tidak ada perubahan"

    prefix = "+" if comparison.change > 0 else ""
    return f"{prefix}{comparison.change} ({prefix}{comparison.change_percent}%)"

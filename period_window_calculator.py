"""
Period Window Calculator Module

Computes the closed datetime windows behind the "Mingguan", "Bulanan" and
"Tahunan" visit statistics: the current week, month or year containing a
reference instant, and the immediately preceding window of the same unit.

Weeks start on Sunday. Every window starts at 00:00:00.000 of its first day and
ends at 23:59:59.999 of its last day, in naive local (Asia/Jakarta) time. The
reference instant is always injectable; when omitted the Jakarta wall clock is
read once, here, and never inside the aggregation functions.

Usage:
    from period_window_calculator import (
        PeriodUnit,
        PeriodWindow,
        get_current_week_range,
        get_previous_week_range,
        get_current_month_range,
        get_previous_month_range,
        get_current_year_range,
        get_previous_year_range,
        get_period_windows,
        format_period_label,
    )
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, date
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from constants import DAYS_IN_WEEK
from date_utilities import (
    get_current_datetime,
    start_of_day,
    end_of_day,
    format_date_only,
    format_month_year,
)

# Set up logging
logger = logging.getLogger(__name__)


class PeriodUnit(Enum):
    """Length of a statistics window."""
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def title(self) -> str:
        """Indonesian card title used on the public statistics page."""
        return _UNIT_TITLES[self]

    @classmethod
    def from_value(cls, value: Union["PeriodUnit", str]) -> "PeriodUnit":
        """Resolve a unit from its value ('week') or its card title ('Mingguan').

        Raises:
            ValueError: If the value names no unit.
        """
        if isinstance(value, cls):
            return value

        cleaned = str(value).strip().lower()
        for unit in cls:
            if cleaned in (unit.value, unit.title.lower()):
                return unit

        raise ValueError(
            f"Unknown period unit: '{value}'. "
            f"Valid: {[u.value for u in cls]} or {[u.title for u in cls]}"
        )


_UNIT_TITLES = {
    PeriodUnit.WEEK: "Mingguan",
    PeriodUnit.MONTH: "Bulanan",
    PeriodUnit.YEAR: "Tahunan",
}


@dataclass(frozen=True)
class PeriodWindow:
    """A closed datetime interval with a human-readable label.

    Attributes:
        start: First instant of the window (00:00:00.000 of the first day)
        end: Last instant of the window (23:59:59.999 of the last day)
        label: Human-readable label, e.g. "Bulan Ini"
    """
    start: datetime
    end: datetime
    label: str = ""

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(
                f"Window start ({self.start}) must be before or equal to "
                f"window end ({self.end})"
            )

    @property
    def days_in_window(self) -> int:
        """Number of calendar days covered (inclusive)."""
        return (self.end.date() - self.start.date()).days + 1

    def contains(self, value: Union[date, datetime]) -> bool:
        """Check whether a day or instant falls inside the window.

        Both ends are included. A plain date is taken as the start of that day.
        """
        if not isinstance(value, datetime):
            value = start_of_day(value)
        return self.start <= value <= self.end

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "start": self.start.isoformat(timespec="milliseconds"),
            "end": self.end.isoformat(timespec="milliseconds"),
            "label": self.label,
            "days_in_window": self.days_in_window,
        }


def _resolve_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return get_current_datetime()
    if not isinstance(now, datetime):
        return start_of_day(now)
    return now


def _week_start(now: datetime) -> date:
    # datetime.weekday() is Monday=0, the grid counts from Sunday=0
    days_since_sunday = (now.weekday() + 1) % DAYS_IN_WEEK
    return now.date() - timedelta(days=days_since_sunday)


def _month_window(year: int, month: int, label: str) -> PeriodWindow:
    _, last_day = calendar.monthrange(year, month)
    return PeriodWindow(
        start=start_of_day(date(year, month, 1)),
        end=end_of_day(date(year, month, last_day)),
        label=label,
    )


def _year_window(year: int, label: str) -> PeriodWindow:
    return PeriodWindow(
        start=start_of_day(date(year, 1, 1)),
        end=end_of_day(date(year, 12, 31)),
        label=label,
    )


def get_current_week_range(now: Optional[datetime] = None) -> PeriodWindow:
    """Get the Sunday-to-Saturday week containing the reference instant.

    Example:
        >>> w = get_current_week_range(datetime(2025, 3, 12, 9, 30))
        >>> w.start, w.end.date()
        (datetime.datetime(2025, 3, 9, 0, 0), datetime.date(2025, 3, 15))
    """
    now = _resolve_now(now)
    start = _week_start(now)
    return PeriodWindow(
        start=start_of_day(start),
        end=end_of_day(start + timedelta(days=DAYS_IN_WEEK - 1)),
        label="Minggu Ini",
    )


def get_previous_week_range(now: Optional[datetime] = None) -> PeriodWindow:
    """Get the 7 days immediately before the current week."""
    current = get_current_week_range(now)
    return PeriodWindow(
        start=current.start - timedelta(days=DAYS_IN_WEEK),
        end=current.end - timedelta(days=DAYS_IN_WEEK),
        label="Minggu Lalu",
    )


def get_current_month_range(now: Optional[datetime] = None) -> PeriodWindow:
    """Get the calendar month containing the reference instant."""
    now = _resolve_now(now)
    return _month_window(now.year, now.month, "Bulan Ini")


def get_previous_month_range(now: Optional[datetime] = None) -> PeriodWindow:
    """Get the calendar month before the current one.

    Example:
        >>> w = get_previous_month_range(datetime(2025, 1, 15))
        >>> w.start.date(), w.end.date()
        (datetime.date(2024, 12, 1), datetime.date(2024, 12, 31))
    """
    now = _resolve_now(now)
    if now.month == 1:
        return _month_window(now.year - 1, 12, "Bulan Lalu")
    return _month_window(now.year, now.month - 1, "Bulan Lalu")


def get_current_year_range(now: Optional[datetime] = None) -> PeriodWindow:
    """Get the calendar year containing the reference instant."""
    now = _resolve_now(now)
    return _year_window(now.year, "Tahun Ini")


def get_previous_year_range(now: Optional[datetime] = None) -> PeriodWindow:
    """Get the calendar year before the current one."""
    now = _resolve_now(now)
    return _year_window(now.year - 1, "Tahun Lalu")


_WINDOW_FUNCTIONS = {
    PeriodUnit.WEEK: (get_current_week_range, get_previous_week_range),
    PeriodUnit.MONTH: (get_current_month_range, get_previous_month_range),
    PeriodUnit.YEAR: (get_current_year_range, get_previous_year_range),
}


def get_period_windows(
    unit: Union[PeriodUnit, str],
    now: Optional[datetime] = None
) -> Tuple[PeriodWindow, PeriodWindow]:
    """Get the current window and the preceding window of the same unit.

    The wall clock is read at most once so both windows share one reference.

    Args:
        unit: PeriodUnit or its value/title ("week", "Bulanan", ...)
        now: Reference instant (defaults to the Jakarta wall clock)

    Returns:
        Tuple of (current, previous) PeriodWindow objects
    """
    unit = PeriodUnit.from_value(unit)
    now = _resolve_now(now)

    current_fn, previous_fn = _WINDOW_FUNCTIONS[unit]
    current = current_fn(now)
    previous = previous_fn(now)

    logger.debug(
        f"{unit.value} windows for {now.isoformat()}: "
        f"current {current.start.date()}..{current.end.date()}, "
        f"previous {previous.start.date()}..{previous.end.date()}"
    )
    return current, previous


def format_period_label(window: PeriodWindow, unit: Union[PeriodUnit, str]) -> str:
    """Format the period line shown under a statistics card.

    Returns:
        "9 Mar 2025 - 15 Mar 2025" for weeks, "Maret 2025" for months and
        "2025" for years.
    """
    unit = PeriodUnit.from_value(unit)

    if unit == PeriodUnit.WEEK:
        return f"{format_date_only(window.start)} - {format_date_only(window.end)}"
    if unit == PeriodUnit.MONTH:
        return format_month_year(window.start.year, window.start.month)
    return str(window.start.year)

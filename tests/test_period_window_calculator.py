"""Unit tests for the period window calculator."""
from datetime import date, datetime, timedelta

import pytest

from period_window_calculator import (
    PeriodUnit,
    PeriodWindow,
    format_period_label,
    get_current_month_range,
    get_current_week_range,
    get_current_year_range,
    get_period_windows,
    get_previous_month_range,
    get_previous_week_range,
    get_previous_year_range,
)


class TestWeekRanges:
    """Test cases for Sunday-based week windows."""

    def test_week_starts_on_sunday(self):
        # 2025-03-12 is a Wednesday
        window = get_current_week_range(datetime(2025, 3, 12, 9, 30))

        assert window.start == datetime(2025, 3, 9, 0, 0, 0)
        assert window.end == datetime(2025, 3, 15, 23, 59, 59, 999000)
        assert window.start.weekday() == 6  # Sunday
        assert window.label == "Minggu Ini"

    def test_sunday_reference_starts_its_own_week(self):
        window = get_current_week_range(datetime(2025, 3, 9, 0, 0))

        assert window.start.date() == date(2025, 3, 9)

    def test_saturday_reference_stays_in_week(self):
        window = get_current_week_range(datetime(2025, 3, 15, 23, 59))

        assert window.start.date() == date(2025, 3, 9)

    def test_previous_week_is_contiguous_and_seven_days(self):
        now = datetime(2025, 3, 12, 9, 30)
        current = get_current_week_range(now)
        previous = get_previous_week_range(now)

        assert current.days_in_window == 7
        assert previous.days_in_window == 7
        assert previous.end.date() + timedelta(days=1) == current.start.date()
        assert previous.start == datetime(2025, 3, 2)
        assert previous.label == "Minggu Lalu"

    def test_week_crossing_year_boundary(self):
        # 2025-01-01 is a Wednesday; its week starts Sunday 2024-12-29
        window = get_current_week_range(datetime(2025, 1, 1, 12, 0))

        assert window.start.date() == date(2024, 12, 29)
        assert window.end.date() == date(2025, 1, 4)


class TestMonthRanges:
    """Test cases for calendar month windows."""

    def test_current_month(self):
        window = get_current_month_range(datetime(2025, 2, 14))

        assert window.start == datetime(2025, 2, 1)
        assert window.end == datetime(2025, 2, 28, 23, 59, 59, 999000)
        assert window.label == "Bulan Ini"

    def test_leap_february(self):
        window = get_current_month_range(datetime(2024, 2, 10))

        assert window.end.date() == date(2024, 2, 29)

    def test_previous_month_rolls_over_year(self):
        window = get_previous_month_range(datetime(2025, 1, 15))

        assert window.start == datetime(2024, 12, 1)
        assert window.end == datetime(2024, 12, 31, 23, 59, 59, 999000)
        assert window.label == "Bulan Lalu"

    def test_previous_month_within_year(self):
        window = get_previous_month_range(datetime(2025, 3, 31, 22, 0))

        assert window.start.date() == date(2025, 2, 1)
        assert window.end.date() == date(2025, 2, 28)


class TestYearRanges:
    """Test cases for calendar year windows."""

    def test_current_and_previous_year(self):
        now = datetime(2025, 8, 31, 23, 37)

        current = get_current_year_range(now)
        previous = get_previous_year_range(now)

        assert current.start == datetime(2025, 1, 1)
        assert current.end == datetime(2025, 12, 31, 23, 59, 59, 999000)
        assert previous.start == datetime(2024, 1, 1)
        assert previous.end.date() == date(2024, 12, 31)
        assert current.label == "Tahun Ini"
        assert previous.label == "Tahun Lalu"


class TestPeriodWindow:
    """Test cases for the PeriodWindow value type."""

    def test_start_after_end_rejected(self):
        with pytest.raises(ValueError):
            PeriodWindow(start=datetime(2025, 3, 2), end=datetime(2025, 3, 1))

    def test_contains_is_closed_on_both_ends(self):
        window = get_current_month_range(datetime(2025, 3, 10))

        assert window.contains(datetime(2025, 3, 1, 0, 0, 0))
        assert window.contains(datetime(2025, 3, 31, 23, 59, 59, 999000))
        assert window.contains(date(2025, 3, 31))
        assert not window.contains(date(2025, 4, 1))
        assert not window.contains(datetime(2025, 2, 28, 23, 59, 59))

    def test_to_dict(self):
        window = get_current_month_range(datetime(2025, 3, 10))

        data = window.to_dict()

        assert data["start"] == "2025-03-01T00:00:00.000"
        assert data["end"] == "2025-03-31T23:59:59.999"
        assert data["days_in_window"] == 31


class TestPeriodUnit:
    """Test cases for unit lookup."""

    @pytest.mark.parametrize("value,expected", [
        ("week", PeriodUnit.WEEK),
        ("Bulanan", PeriodUnit.MONTH),
        ("TAHUNAN", PeriodUnit.YEAR),
        (PeriodUnit.MONTH, PeriodUnit.MONTH),
    ])
    def test_from_value(self, value, expected):
        assert PeriodUnit.from_value(value) == expected

    def test_unknown_unit(self):
        with pytest.raises(ValueError):
            PeriodUnit.from_value("fortnight")

    def test_titles(self):
        assert [u.title for u in PeriodUnit] == ["Mingguan", "Bulanan", "Tahunan"]


class TestGetPeriodWindows:
    """Test cases for get_period_windows and labels."""

    def test_returns_current_and_previous(self):
        current, previous = get_period_windows("month", datetime(2025, 1, 15))

        assert current.start.date() == date(2025, 1, 1)
        assert previous.start.date() == date(2024, 12, 1)

    def test_plain_date_reference(self):
        current, _ = get_period_windows(PeriodUnit.WEEK, date(2025, 3, 12))

        assert current.start.date() == date(2025, 3, 9)

    def test_defaults_to_jakarta_clock(self, monkeypatch):
        monkeypatch.setattr(
            "period_window_calculator.get_current_datetime",
            lambda: datetime(2025, 8, 31, 23, 37),
        )

        current, previous = get_period_windows(PeriodUnit.YEAR)

        assert current.start.year == 2025
        assert previous.start.year == 2024

    def test_format_period_label(self):
        now = datetime(2025, 3, 12)
        week, _ = get_period_windows(PeriodUnit.WEEK, now)
        month, _ = get_period_windows(PeriodUnit.MONTH, now)
        year, _ = get_period_windows(PeriodUnit.YEAR, now)

        assert format_period_label(week, PeriodUnit.WEEK) == "9 Mar 2025 - 15 Mar 2025"
        assert format_period_label(month, "month") == "Maret 2025"
        assert format_period_label(year, PeriodUnit.YEAR) == "2025"

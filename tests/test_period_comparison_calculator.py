"""Unit tests for the period aggregator and comparator."""
from datetime import datetime

import pytest

from period_comparison_calculator import (
    PeriodComparison,
    PeriodStats,
    TrendDirection,
    calculate_all_period_stats,
    calculate_category_distribution,
    calculate_category_totals,
    calculate_percent_change,
    calculate_period_stats,
    calculate_visit_summary,
    compare_windows,
    filter_visits_in_window,
    format_change_text,
    get_trend_direction,
    round_half_up,
    sum_visit_totals,
)
from period_window_calculator import get_period_windows
from visit_record_normalizer import normalize_visit, normalize_visits


def make_visit(day, dewasa, record_id=None):
    return normalize_visit({"_id": record_id or day, "date": day, "dewasa": dewasa})


class TestPercentChange:
    """Test cases for the percentage arithmetic."""

    def test_increase(self):
        assert calculate_percent_change(75, 50) == 50

    def test_zero_previous_is_zero_percent(self):
        assert calculate_percent_change(10, 0) == 0

    def test_decrease(self):
        assert calculate_percent_change(30, 40) == -25

    @pytest.mark.parametrize("value,expected", [
        (2.5, 3),
        (2.4, 2),
        (-2.5, -2),
        (-2.6, -3),
        (0.0, 0),
    ])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_percent_rounds_half_up(self):
        # 1 / 8 * 100 = 12.5
        assert calculate_percent_change(9, 8) == 13


class TestWindowAggregation:
    """Test cases for filtering and summing visits in a window."""

    def test_window_edges_are_included(self):
        current, _ = get_period_windows("month", datetime(2025, 3, 15))
        visits = [
            make_visit("2025-02-28", 1),
            make_visit("2025-03-01", 2),
            make_visit("2025-03-31T00:00:00.000Z", 4),
            make_visit("2025-04-01", 8),
        ]

        inside = filter_visits_in_window(visits, current)

        assert sum_visit_totals(inside) == 6

    def test_undated_visits_excluded(self):
        current, _ = get_period_windows("year", datetime(2025, 3, 15))
        visits = [make_visit("2025-03-01", 2), make_visit("garbage", 100)]

        assert sum_visit_totals(filter_visits_in_window(visits, current)) == 2

    def test_empty_input(self):
        current, previous = get_period_windows("week", datetime(2025, 3, 15))

        stats = compare_windows([], current, previous, "Mingguan", "x")

        assert stats.value == 0
        assert stats.comparison == PeriodComparison(previous=0, change=0, change_percent=0)


class TestCalculatePeriodStats:
    """Test cases for the statistics cards."""

    def test_month_over_month(self):
        visits = normalize_visits([
            {"_id": "1", "date": "2025-02-10", "anak": "30", "dewasa": "20"},
            {"_id": "2", "date": "2025-03-05", "anak": 50},
            {"_id": "3", "date": "2025-03-10", "remaja": "25"},
        ])

        stats = calculate_period_stats(visits, "month", now=datetime(2025, 3, 12))

        assert stats.label == "Bulanan"
        assert stats.period == "Maret 2025"
        assert stats.value == 75
        assert stats.comparison.previous == 50
        assert stats.comparison.change == 25
        assert stats.comparison.change_percent == 50

    def test_zero_previous_period(self):
        visits = [make_visit("2025-03-10", 10)]

        stats = calculate_period_stats(visits, "month", now=datetime(2025, 3, 12))

        assert stats.value == 10
        assert stats.comparison.change == 10
        assert stats.comparison.change_percent == 0

    def test_week_uses_sunday_start(self):
        visits = [
            make_visit("2025-03-08", 4),   # Saturday, previous week
            make_visit("2025-03-09", 6),   # Sunday, current week
        ]

        stats = calculate_period_stats(visits, "week", now=datetime(2025, 3, 12))

        assert stats.value == 6
        assert stats.comparison.previous == 4
        assert stats.period == "9 Mar 2025 - 15 Mar 2025"

    def test_without_comparison(self):
        stats = calculate_period_stats([make_visit("2025-03-10", 3)], "year",
                                       now=datetime(2025, 3, 12), show_comparison=False)

        assert stats.comparison is None
        assert stats.to_dict() == {"label": "Tahunan", "value": 3, "period": "2025"}

    def test_to_dict_uses_change_percent_key(self):
        stats = PeriodStats(label="Bulanan", value=75, period="Maret 2025",
                            comparison=PeriodComparison(previous=50, change=25, change_percent=50))

        assert stats.to_dict()["comparison"] == {"previous": 50, "change": 25, "changePercent": 50}

    def test_all_period_stats(self):
        visits = [make_visit("2025-08-31", 5), make_visit("2025-08-01", 7), make_visit("2024-12-31", 11)]

        weekly, monthly, yearly = calculate_all_period_stats(visits, now=datetime(2025, 8, 31, 23, 37))

        assert (weekly.label, monthly.label, yearly.label) == ("Mingguan", "Bulanan", "Tahunan")
        assert weekly.value == 5
        assert monthly.value == 12
        assert yearly.value == 12
        assert yearly.comparison.previous == 11


class TestVisitSummary:
    """Test cases for the overall summary."""

    def test_summary(self):
        visits = [
            make_visit("2025-03-01", 10),
            make_visit("2025-03-02", 25),
            make_visit("2025-03-03", 25),
            make_visit("2025-03-04", 1),
        ]

        summary = calculate_visit_summary(visits)

        assert summary.total_visitors == 61
        assert summary.total_days == 4
        assert summary.average_per_day == 15  # 15.25
        assert summary.highest_day_count == 25
        assert summary.highest_day_date == "2 Mar 2025"

    def test_empty_summary(self):
        summary = calculate_visit_summary([])

        assert summary.total_visitors == 0
        assert summary.average_per_day == 0
        assert summary.highest_day_date == "-"

    def test_all_zero_has_no_highest_day(self):
        summary = calculate_visit_summary([make_visit("2025-03-01", 0)])

        assert summary.highest_day_count == 0
        assert summary.highest_day_date == "-"

    def test_summary_to_dict_uses_thousands_separator(self):
        summary = calculate_visit_summary([make_visit("2025-03-01", 1234)])

        assert summary.to_dict()["totalVisitors"] == "1.234"

    def test_category_totals(self):
        visits = normalize_visits([
            {"_id": "1", "date": "2025-03-01", "balita": 1, "lansia": "2"},
            {"_id": "2", "date": "2025-03-02", "balita": "3"},
        ])

        totals = calculate_category_totals(visits)

        assert totals == {"balita": 4, "anak": 0, "remaja": 0, "dewasa": 0, "lansia": 2}

    def test_category_distribution(self):
        visits = normalize_visits([
            {"_id": "1", "date": "2025-03-01", "balita": 1, "anak": 2},
            {"_id": "2", "date": "2025-03-02", "lansia": "5"},
        ])

        distribution = calculate_category_distribution(visits)

        assert [s.category for s in distribution] == ["balita", "anak", "remaja", "dewasa", "lansia"]
        # 12.5% and 62.5% round half up
        assert [(s.count, s.percent) for s in distribution] == [
            (1, 13), (2, 25), (0, 0), (0, 0), (5, 63),
        ]

    def test_category_distribution_without_visitors(self):
        visits = normalize_visits([{"_id": "1", "date": "2025-03-01", "anak": "abc"}])

        distribution = calculate_category_distribution(visits)

        assert all(s.count == 0 and s.percent == 0 for s in distribution)
        assert calculate_category_distribution([])[0].to_dict() == {
            "category": "balita", "count": 0, "percent": 0,
        }


class TestTrendDisplay:
    """Test cases for trend direction and change text."""

    def test_trend_direction(self):
        up = PeriodComparison(previous=50, change=25, change_percent=50)
        down = PeriodComparison(previous=40, change=-10, change_percent=-25)
        flat = PeriodComparison(previous=5, change=0, change_percent=0)

        assert get_trend_direction(up) == TrendDirection.UP
        assert get_trend_direction(down) == TrendDirection.DOWN
        assert get_trend_direction(flat) == TrendDirection.FLAT
        assert get_trend_direction(PeriodStats("Bulanan", 1, "x")) == TrendDirection.NO_DATA

    def test_format_change_text(self):
        assert format_change_text(PeriodComparison(50, 25, 50)) == "+25 (+50%)"
        assert format_change_text(PeriodComparison(40, -10, -25)) == "-10 (-25%)"
        assert format_change_text(PeriodComparison(5, 0, 0)) == "Tidak ada perubahan"
        assert format_change_text(None) == ""

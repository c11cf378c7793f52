"""Unit tests for the visit record normalizer."""
import logging
from dataclasses import FrozenInstanceError
from datetime import date

import pytest

from visit_record_normalizer import (
    NormalizationStats,
    NormalizedVisit,
    coerce_category_count,
    normalize_visit,
    normalize_visits,
)


class TestCoerceCategoryCount:
    """Test cases for coercing a single category value."""

    @pytest.mark.parametrize("value,expected", [
        (5, 5),
        (0, 0),
        ("5", 5),
        (" 12 ", 12),
        ("5.0", 5),
        ("1e3", 1000),
        (7.9, 7),
        ("", 0),
        (None, 0),
        ("abc", 0),
        (-3, 0),
        ("-2", 0),
        (float("nan"), 0),
        (float("inf"), 0),
        (True, 0),
        ([1], 0),
    ])
    def test_coercion(self, value, expected):
        assert coerce_category_count(value) == expected


class TestNormalizeVisit:
    """Test cases for normalizing one record."""

    def test_numeric_counts(self):
        visit = normalize_visit({
            "_id": "a1", "date": "2025-03-10",
            "balita": 5, "anak": 0, "remaja": 3, "dewasa": 0, "lansia": 2,
        })

        assert visit.total == 10
        assert visit.visit_date == date(2025, 3, 10)
        assert visit.day_key == "2025-03-10"

    def test_string_counts(self):
        visit = normalize_visit({
            "_id": "a1", "date": "2025-03-10",
            "balita": "5", "anak": "0", "remaja": "3", "dewasa": "0", "lansia": "2",
        })

        assert visit.total == 10
        assert visit.category_counts() == {
            "balita": 5, "anak": 0, "remaja": 3, "dewasa": 0, "lansia": 2,
        }

    def test_invalid_category_becomes_zero(self):
        visit = normalize_visit({"_id": "a1", "date": "2025-03-10", "balita": "abc", "anak": 4})

        assert visit.balita == 0
        assert visit.total == 4

    def test_timestamp_date_keeps_day(self):
        visit = normalize_visit({"_id": "a1", "date": "2025-03-10T00:00:00.000Z"})

        assert visit.visit_date == date(2025, 3, 10)
        assert visit.date == "2025-03-10T00:00:00.000Z"

    def test_id_variants(self):
        assert normalize_visit({"id": "x"}).id == "x"
        assert normalize_visit({"_id": {"$oid": "65f0"}}).id == "65f0"
        assert normalize_visit({}).id == ""

    def test_undated_record_is_kept(self):
        visit = normalize_visit({"_id": "a1", "date": "someday", "lansia": 3})

        assert visit.visit_date is None
        assert visit.day_key is None
        assert visit.total == 3

    def test_non_dict_input(self):
        visit = normalize_visit("garbage")

        assert visit.total == 0
        assert visit.visit_date is None

    def test_timestamps_carried(self):
        visit = normalize_visit({
            "_id": "a1", "date": "2025-03-10",
            "createdAt": "2025-03-10T08:00:00Z", "updatedAt": "2025-03-11T08:00:00Z",
        })

        assert visit.created_at == "2025-03-10T08:00:00Z"
        assert visit.updated_at == "2025-03-11T08:00:00Z"

    def test_to_dict(self):
        visit = normalize_visit({"_id": "a1", "date": "2025-03-10", "anak": "2", "dewasa": 1})

        assert visit.to_dict() == {
            "id": "a1", "date": "2025-03-10",
            "balita": 0, "anak": 2, "remaja": 0, "dewasa": 1, "lansia": 0,
            "total": 3,
        }


class TestNormalizedVisit:
    """Test cases for the NormalizedVisit value type."""

    def test_total_is_recomputed(self):
        visit = NormalizedVisit(id="a", date="2025-03-10", visit_date=date(2025, 3, 10),
                                balita=1, anak=2, remaja=3, dewasa=4, lansia=5)

        assert visit.total == 15

    def test_is_immutable(self):
        visit = NormalizedVisit(id="a", date="2025-03-10", visit_date=date(2025, 3, 10))

        with pytest.raises(FrozenInstanceError):
            visit.total = 99


class TestNormalizeVisits:
    """Test cases for normalizing a collection."""

    def test_same_length_and_order(self):
        raw = [
            {"_id": "1", "date": "2025-03-01", "anak": 1},
            {"_id": "2", "date": "bad", "anak": 2},
            {"_id": "3", "date": "2025-03-03", "anak": "x"},
        ]

        visits = normalize_visits(raw)

        assert [v.id for v in visits] == ["1", "2", "3"]
        assert [v.total for v in visits] == [1, 2, 0]

    @pytest.mark.parametrize("payload", [None, {"error": "boom"}, "text", 42])
    def test_non_list_yields_empty(self, payload):
        assert normalize_visits(payload) == []

    def test_error_object_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="visit_record_normalizer"):
            normalize_visits({"error": "boom"})

        assert "Expected a list of visit records" in caplog.text

    def test_stats_are_collected(self):
        stats = NormalizationStats()
        raw = [
            {"_id": "1", "date": "2025-03-01", "balita": "2", "anak": 1},
            {"date": "", "balita": "abc"},
            {"_id": "3", "date": "not-a-date"},
        ]

        normalize_visits(raw, stats)

        assert stats.total_records == 3
        assert stats.coerced_values == 1
        assert stats.invalid_values == 1
        assert stats.missing_ids == 1
        assert stats.missing_dates == 1
        assert stats.invalid_dates == 1
        assert stats.undated_records == 2
        assert stats.issues_by_field["balita"] == 2
        assert stats.has_issues()
        assert "Records: 3" in stats.get_summary()

    def test_undated_records_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="visit_record_normalizer"):
            normalize_visits([{"_id": "1"}])

        assert "no usable date" in caplog.text

"""
Visit Record Normalizer Module

Turns raw visit records, as returned by the CMS analytics endpoint, into
canonical NormalizedVisit objects with five guaranteed non-negative integer
category counts and a recomputed total.

The CMS stores category counts as strings, older records carry numbers, and
hand-edited records may hold anything. Malformed values are coerced to 0 and
counted; no record is ever dropped here, even one without a usable date.
Downstream consumers decide what an undated record means for them.

Usage:
    from visit_record_normalizer import (
        NormalizedVisit,
        NormalizationStats,
        coerce_category_count,
        normalize_visit,
        normalize_visits,
    )
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from constants import VISITOR_CATEGORIES
from date_utilities import parse_date

# Set up logging
logger = logging.getLogger(__name__)


class CoercionResult(Enum):
    """Outcome of coercing one category value."""
    NO_COERCION_NEEDED = "no_coercion_needed"  # Already a non-negative integer
    COERCED = "coerced"                        # Numeric string or fractional number
    MISSING = "missing"                        # Absent, None or empty string -> 0
    INVALID = "invalid"                        # Not numeric, negative or non-finite -> 0


def _coerce_category(value: Any) -> Tuple[int, CoercionResult]:
    """Coerce a raw category value to a non-negative integer.

    Returns:
        Tuple of (count, CoercionResult)
    """
    if value is None:
        return 0, CoercionResult.MISSING

    # bool is an int subclass but never a meaningful visitor count
    if isinstance(value, bool):
        return 0, CoercionResult.INVALID

    if isinstance(value, int):
        if value < 0:
            return 0, CoercionResult.INVALID
        return value, CoercionResult.NO_COERCION_NEEDED

    if isinstance(value, float):
        if not math.isfinite(value) or value < 0:
            return 0, CoercionResult.INVALID
        if value.is_integer():
            return int(value), CoercionResult.NO_COERCION_NEEDED
        return int(value), CoercionResult.COERCED

    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return 0, CoercionResult.MISSING
        try:
            number = float(cleaned)
        except ValueError:
            return 0, CoercionResult.INVALID
        if not math.isfinite(number) or number < 0:
            return 0, CoercionResult.INVALID
        return int(number), CoercionResult.COERCED

    return 0, CoercionResult.INVALID


def coerce_category_count(value: Any) -> int:
    """Coerce a raw category value to a non-negative integer.

    Numbers are used as-is (fractions truncated), numeric strings are parsed,
    anything else becomes 0.

    Example:
        >>> coerce_category_count("5")
        5
        >>> coerce_category_count("abc")
        0
        >>> coerce_category_count(-3)
        0
    """
    count, _ = _coerce_category(value)
    return count


@dataclass(frozen=True)
class NormalizedVisit:
    """Canonical per-day visit record.

    Attributes:
        id: Record identifier ("" when the CMS sent none)
        date: Original date string, kept for display
        visit_date: Parsed calendar day, None when missing or unparseable
        balita, anak, remaja, dewasa, lansia: Non-negative category counts
        created_at: Original creation timestamp, if any
        updated_at: Original update timestamp, if any
        total: Sum of the five categories, always recomputed
    """
    id: str
    date: str
    visit_date: Optional[date]
    balita: int = 0
    anak: int = 0
    remaja: int = 0
    dewasa: int = 0
    lansia: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    total: int = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "total", sum(self.category_counts().values()))

    @property
    def day_key(self) -> Optional[str]:
        """The 'YYYY-MM-DD' key of the visit day, or None when undated."""
        return self.visit_date.isoformat() if self.visit_date else None

    def category_counts(self) -> Dict[str, int]:
        """Category counts in display order."""
        return {category: getattr(self, category) for category in VISITOR_CATEGORIES}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "date": self.date,
            **self.category_counts(),
            "total": self.total,
        }


@dataclass
class NormalizationStats:
    """Statistics collected while normalizing one fetch of visit records."""
    total_records: int = 0
    coerced_values: int = 0
    missing_values: int = 0
    invalid_values: int = 0
    missing_ids: int = 0
    missing_dates: int = 0
    invalid_dates: int = 0
    issues_by_field: Dict[str, int] = field(default_factory=dict)

    def record_category(self, field_name: str, result: CoercionResult) -> None:
        """Record the coercion outcome of one category value."""
        if result == CoercionResult.COERCED:
            self.coerced_values += 1
            return
        if result == CoercionResult.NO_COERCION_NEEDED:
            return

        if result == CoercionResult.MISSING:
            self.missing_values += 1
        else:
            self.invalid_values += 1
        self.issues_by_field[field_name] = self.issues_by_field.get(field_name, 0) + 1

    @property
    def undated_records(self) -> int:
        """Records unusable for date-bucketed views."""
        return self.missing_dates + self.invalid_dates

    def has_issues(self) -> bool:
        """Check whether any value had to be defaulted."""
        return bool(
            self.missing_values or self.invalid_values
            or self.missing_ids or self.undated_records
        )

    def get_summary(self) -> str:
        """Get a summary of the normalization run."""
        lines = [
            "Visit Normalization Summary:",
            f"  Records: {self.total_records}",
            f"  Coerced values: {self.coerced_values}",
            f"  Missing values (-> 0): {self.missing_values}",
            f"  Invalid values (-> 0): {self.invalid_values}",
            f"  Missing ids: {self.missing_ids}",
            f"  Missing dates: {self.missing_dates}",
            f"  Unparseable dates: {self.invalid_dates}",
        ]
        if self.issues_by_field:
            lines.append("  Issues by field:")
            for field_name, count in sorted(self.issues_by_field.items()):
                lines.append(f"    {field_name}: {count}")
        return "\n".join(lines)


def _extract_id(raw: Dict[str, Any]) -> str:
    value = raw.get("_id") or raw.get("id")
    # Extended JSON serializes ObjectIds as {"$oid": "..."}
    if isinstance(value, dict):
        value = value.get("$oid")
    return str(value) if value else ""


def _extract_date_string(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        return value
    return ""


def normalize_visit(
    raw: Any,
    stats: Optional[NormalizationStats] = None
) -> NormalizedVisit:
    """Normalize a single raw visit record.

    Args:
        raw: Raw record (normally a dict; anything else normalizes to an
            undated all-zero record)
        stats: Optional NormalizationStats to record outcomes into

    Returns:
        NormalizedVisit with coerced counts and a recomputed total
    """
    if not isinstance(raw, dict):
        raw = {}

    counts = {}
    for category in VISITOR_CATEGORIES:
        count, result = _coerce_category(raw.get(category))
        counts[category] = count
        if stats is not None:
            stats.record_category(category, result)

    record_id = _extract_id(raw)
    date_string = _extract_date_string(raw.get("date"))
    visit_date = parse_date(date_string)

    if stats is not None:
        stats.total_records += 1
        if not record_id:
            stats.missing_ids += 1
        if not date_string:
            stats.missing_dates += 1
        elif visit_date is None:
            stats.invalid_dates += 1

    return NormalizedVisit(
        id=record_id,
        date=date_string,
        visit_date=visit_date,
        created_at=raw.get("createdAt"),
        updated_at=raw.get("updatedAt"),
        **counts,
    )


def normalize_visits(
    raw_records: Any,
    stats: Optional[NormalizationStats] = None
) -> List[NormalizedVisit]:
    """Normalize a fetched collection of raw visit records.

    The output has the same length and order as the input. A payload that is
    not a list (an error object, None) is treated as "no data yet".

    Args:
        raw_records: JSON array of raw visit records
        stats: Optional NormalizationStats; a fresh one is used when omitted

    Returns:
        List of NormalizedVisit objects
    """
    if not isinstance(raw_records, (list, tuple)):
        if raw_records is not None:
            logger.warning(
                f"Expected a list of visit records, got {type(raw_records).__name__}. "
                f"Treating as empty."
            )
        return []

    if stats is None:
        stats = NormalizationStats()

    visits = [normalize_visit(raw, stats) for raw in raw_records]

    logger.debug(stats.get_summary())
    if stats.undated_records:
        logger.warning(
            f"{stats.undated_records} of {stats.total_records} visit records have no "
            f"usable date and will be left out of date-based views"
        )

    return visits

"""
Calendar Day-Bucket Merger Module

Builds the month grid of the admin visit calendar from two independently shaped
record streams:
- booking requests (facility usage requests), keyed by `tanggalPelaksanaan`
- scheduled events, keyed by `date`

Both streams are indexed once per month into a map from 'YYYY-MM-DD' to tagged
CalendarEntry objects, then laid out as a Sunday-first grid: padding cells
before day 1, one cell per day, no trailing padding. Records are matched by
exact day-key string equality so a UTC-serialized date can never drift onto a
neighbouring local day.

Usage:
    from calendar_day_bucket_merger import (
        BookingStatus,
        BookingRequest,
        ScheduledEvent,
        EntryKind,
        CalendarEntry,
        CalendarDayCell,
        build_day_index,
        build_month_grid,
        get_leading_padding,
        navigate_month,
        get_month_query_range,
    )

    cells = build_month_grid(2025, 3, bookings, events, today=date(2025, 3, 5))
    for cell in cells:
        if cell.day is None:
            continue
        shown = cell.visible_entries
        more = cell.overflow_count   # rendered as "+N lainnya"
"""

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from constants import DAYS_IN_WEEK, MAX_VISIBLE_CELL_ITEMS
from date_utilities import get_current_datetime, to_day_key, format_month_year

# Set up logging
logger = logging.getLogger(__name__)


class BookingStatus(Enum):
    """Lifecycle status of a booking request.

    UNKNOWN covers missing or unrecognized values so they stay visible as a
    separate (gray) bucket instead of silently passing as pending.
    """
    PENDING = "pending"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value: Any) -> "BookingStatus":
        cleaned = str(value).strip().lower() if value is not None else ""
        for status in cls:
            if status.value == cleaned and status != cls.UNKNOWN:
                return status
        return cls.UNKNOWN


# Calendar badge colours per booking status
STATUS_COLORS = {
    BookingStatus.COMPLETED: "#22C55E",  # green
    BookingStatus.SCHEDULED: "#3B82F6",  # blue
    BookingStatus.CANCELLED: "#EF4444",  # red
    BookingStatus.PENDING: "#6B7280",    # gray
    BookingStatus.UNKNOWN: "#6B7280",    # gray
}

EVENT_COLOR = "#8B5CF6"  # violet


def get_status_color(status: BookingStatus) -> str:
    """Hex colour of a booking badge."""
    return STATUS_COLORS.get(status, STATUS_COLORS[BookingStatus.UNKNOWN])


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class BookingRequest:
    """A facility booking request as needed by the calendar.

    Attributes:
        tanggal_pelaksanaan: Execution day, 'YYYY-MM-DD'
        nama_instansi: Requesting institution
        jumlah_peserta: Number of participants
        status: Parsed status (UNKNOWN for unrecognized values)
        raw_status: Status exactly as received
        id: Record identifier
    """
    tanggal_pelaksanaan: str
    nama_instansi: str = ""
    jumlah_peserta: int = 0
    status: BookingStatus = BookingStatus.PENDING
    raw_status: Optional[str] = None
    id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookingRequest":
        """Create a BookingRequest from a CMS record."""
        raw_status = data.get("status")
        return cls(
            tanggal_pelaksanaan=str(data.get("tanggalPelaksanaan") or "").strip(),
            nama_instansi=str(data.get("namaInstansi") or ""),
            jumlah_peserta=_to_int(data.get("jumlahPeserta")),
            status=BookingStatus.from_value(raw_status),
            raw_status=raw_status,
            id=str(data.get("_id") or data.get("id") or ""),
        )

    @property
    def tooltip(self) -> str:
        return f"Instansi: {self.nama_instansi}, Peserta: {self.jumlah_peserta}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tanggalPelaksanaan": self.tanggal_pelaksanaan,
            "namaInstansi": self.nama_instansi,
            "jumlahPeserta": self.jumlah_peserta,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class ScheduledEvent:
    """A scheduled community event as needed by the calendar.

    Attributes:
        date: Event day, 'YYYY-MM-DD'
        title: Event title
        time: Free-form display time (never parsed)
        id: Record identifier
    """
    date: str
    title: str = ""
    time: str = ""
    id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledEvent":
        """Create a ScheduledEvent from a CMS record.

        A date serialized with a time part keeps only its 'YYYY-MM-DD' prefix.
        """
        raw_date = str(data.get("date") or "").strip()
        return cls(
            date=raw_date.split("T", 1)[0],
            title=str(data.get("title") or ""),
            time=str(data.get("time") or ""),
            id=str(data.get("_id") or data.get("id") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "date": self.date, "title": self.title, "time": self.time}


class EntryKind(Enum):
    """Which stream a calendar entry came from."""
    VISIT = "visit"
    EVENT = "event"


@dataclass(frozen=True)
class CalendarEntry:
    """A tagged record placed on a calendar day."""
    kind: EntryKind
    data: Union[BookingRequest, ScheduledEvent]

    @property
    def title(self) -> str:
        if self.kind == EntryKind.VISIT:
            return self.data.nama_instansi
        return self.data.title

    @property
    def color(self) -> str:
        if self.kind == EntryKind.VISIT:
            return get_status_color(self.data.status)
        return EVENT_COLOR

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "data": self.data.to_dict()}


@dataclass
class CalendarDayCell:
    """One cell of the month grid.

    Attributes:
        day: Day of month, None for padding cells
        date_key: 'YYYY-MM-DD' of the day, None for padding cells
        visits: Booking requests on this day
        events: Scheduled events on this day
        is_today: True when the cell is the current local day
    """
    day: Optional[int]
    date_key: Optional[str] = None
    visits: List[BookingRequest] = field(default_factory=list)
    events: List[ScheduledEvent] = field(default_factory=list)
    is_today: bool = False

    @property
    def is_clickable(self) -> bool:
        return self.day is not None

    @property
    def total_items(self) -> int:
        return len(self.visits) + len(self.events)

    @property
    def entries(self) -> List[CalendarEntry]:
        """All entries, visits before events."""
        return (
            [CalendarEntry(EntryKind.VISIT, v) for v in self.visits]
            + [CalendarEntry(EntryKind.EVENT, e) for e in self.events]
        )

    @property
    def visible_entries(self) -> List[CalendarEntry]:
        """Entries shown verbatim in the cell."""
        return self.entries[:MAX_VISIBLE_CELL_ITEMS]

    @property
    def overflow_count(self) -> int:
        """Entries summarized as "+N lainnya"; 0 when everything fits."""
        return max(self.total_items - MAX_VISIBLE_CELL_ITEMS, 0)

    @property
    def overflow_label(self) -> str:
        return f"+{self.overflow_count} lainnya" if self.overflow_count else ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "day": self.day,
            "dateKey": self.date_key,
            "visits": [v.to_dict() for v in self.visits],
            "events": [e.to_dict() for e in self.events],
            "isToday": self.is_today,
            "overflow": self.overflow_count,
        }


def _coerce_booking(item: Any) -> Optional[BookingRequest]:
    if isinstance(item, BookingRequest):
        return item
    return BookingRequest.from_dict(item) if isinstance(item, dict) else None


def _coerce_event(item: Any) -> Optional[ScheduledEvent]:
    if isinstance(item, ScheduledEvent):
        return item
    return ScheduledEvent.from_dict(item) if isinstance(item, dict) else None


def get_leading_padding(year: int, month: int) -> int:
    """Number of empty cells before day 1 (Sunday = 0, Saturday = 6)."""
    # date.weekday() counts from Monday
    return (date(year, month, 1).weekday() + 1) % DAYS_IN_WEEK


def is_today(year: int, month: int, day: Optional[int], today: date) -> bool:
    """Check whether a grid day is the given current day."""
    if day is None:
        return False
    return day == today.day and month == today.month and year == today.year


def build_day_index(
    year: int,
    month: int,
    visits: List[Union[BookingRequest, Dict[str, Any]]],
    events: List[Union[ScheduledEvent, Dict[str, Any]]]
) -> Dict[str, List[CalendarEntry]]:
    """Index both streams by day key for one month.

    Records whose key lies outside the month (or is malformed) are dropped,
    as are items that are neither records nor dictionaries.

    Returns:
        Dictionary mapping 'YYYY-MM-DD' to entries, visits before events
    """
    _, days_in_month = calendar.monthrange(year, month)
    month_keys = {to_day_key(year, month, day) for day in range(1, days_in_month + 1)}

    index: Dict[str, List[CalendarEntry]] = defaultdict(list)
    skipped = 0

    for item in visits or []:
        booking = _coerce_booking(item)
        if booking is not None and booking.tanggal_pelaksanaan in month_keys:
            index[booking.tanggal_pelaksanaan].append(CalendarEntry(EntryKind.VISIT, booking))
        else:
            skipped += 1

    for item in events or []:
        event = _coerce_event(item)
        if event is not None and event.date in month_keys:
            index[event.date].append(CalendarEntry(EntryKind.EVENT, event))
        else:
            skipped += 1

    if skipped:
        logger.debug(
            f"{skipped} records fall outside {year}-{month:02d} or are malformed and were not bucketed"
        )

    return dict(index)


def build_month_grid(
    year: int,
    month: int,
    visits: List[Union[BookingRequest, Dict[str, Any]]],
    events: List[Union[ScheduledEvent, Dict[str, Any]]],
    today: Optional[date] = None
) -> List[CalendarDayCell]:
    """Build the ordered cells of a month calendar.

    Args:
        year: Calendar year
        month: Calendar month (1-12)
        visits: Booking requests (objects or raw CMS dicts)
        events: Scheduled events (objects or raw CMS dicts)
        today: Current local day for the "today" highlight (defaults to the
            Jakarta wall clock)

    Returns:
        Leading padding cells (day None) followed by one cell per day

    Example:
        >>> cells = build_month_grid(2025, 3, [], [], today=date(2025, 3, 5))
        >>> [c.day for c in cells[:8]]
        [None, None, None, None, None, None, 1, 2]
    """
    if today is None:
        today = get_current_datetime().date()

    index = build_day_index(year, month, visits, events)

    cells = [CalendarDayCell(day=None) for _ in range(get_leading_padding(year, month))]

    _, days_in_month = calendar.monthrange(year, month)
    for day in range(1, days_in_month + 1):
        key = to_day_key(year, month, day)
        entries = index.get(key, [])
        cells.append(CalendarDayCell(
            day=day,
            date_key=key,
            visits=[e.data for e in entries if e.kind == EntryKind.VISIT],
            events=[e.data for e in entries if e.kind == EntryKind.EVENT],
            is_today=is_today(year, month, day, today),
        ))

    return cells


def navigate_month(year: int, month: int, step: int) -> Tuple[int, int]:
    """Move the month cursor by step months (negative for backwards).

    Example:
        >>> navigate_month(2025, 1, -1)
        (2024, 12)
    """
    index = year * 12 + (month - 1) + step
    return index // 12, index % 12 + 1


def get_month_query_range(year: int, month: int) -> Tuple[str, str]:
    """Inclusive first/last day keys of a month, as used by the booking query."""
    _, days_in_month = calendar.monthrange(year, month)
    return to_day_key(year, month, 1), to_day_key(year, month, days_in_month)


def format_month_title(year: int, month: int) -> str:
    """Calendar header, e.g. 'Maret 2025'."""
    return format_month_year(year, month)

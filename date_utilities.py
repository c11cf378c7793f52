"""
Date Utilities Module

Provides unified date parsing, day-key generation and Indonesian (id-ID) display
formatting for the visit analytics modules. All calendar reasoning happens on
naive local datetimes in the business timezone (Asia/Jakarta); this module is
the only place that touches the wall clock.

Usage:
    from date_utilities import (
        parse_date,
        to_day_key,
        get_current_datetime,
        start_of_day,
        end_of_day,
        format_date_only,
        format_month_year,
        format_number_id,
        parse_date_argument,
        parse_datetime_argument,
    )
"""

import logging
import argparse
from datetime import datetime, date, time
from typing import Optional, Union
from zoneinfo import ZoneInfo

from constants import BUSINESS_TIMEZONE, MONTH_NAMES_ID, MONTH_NAMES_SHORT_ID

# Set up logging
logger = logging.getLogger(__name__)

ISO_DAY_FORMAT = '%Y-%m-%d'

# Last representable instant of a day at millisecond precision (23:59:59.999)
END_OF_DAY_TIME = time(23, 59, 59, 999000)


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse a record date into a calendar date.

    Record dates arrive either as plain ISO days ('2025-03-10') or as serialized
    timestamps ('2025-03-10T00:00:00.000Z'). Only the day part is significant;
    a time suffix is dropped rather than shifted between timezones.

    Args:
        value: The date value to parse (string, date, datetime or None).

    Returns:
        datetime.date: Parsed date if successful.
        None: If the value is empty or cannot be parsed. Never raises.

    Example:
        >>> parse_date("2025-03-10")
        datetime.date(2025, 3, 10)
        >>> parse_date("2025-03-10T17:00:00.000Z")
        datetime.date(2025, 3, 10)
        >>> parse_date("abc") is None
        True
    """
    if not value:
        return None

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        logger.debug(f"Unsupported date type encountered: {type(value).__name__}")
        return None

    cleaned = value.strip()
    day_part = cleaned.split('T', 1)[0].split(' ', 1)[0]

    try:
        return datetime.strptime(day_part, ISO_DAY_FORMAT).date()
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(cleaned).date()
    except ValueError:
        logger.debug(f"Invalid date format encountered: '{value}'. Returning None.")
        return None


def to_day_key(year: int, month: int, day: int) -> str:
    """Build the zero-padded 'YYYY-MM-DD' key used to match records to days."""
    return f"{year:04d}-{month:02d}-{day:02d}"


def get_current_datetime(tz_name: str = BUSINESS_TIMEZONE) -> datetime:
    """
    Return the current wall-clock time in the business timezone as a naive datetime.

    Args:
        tz_name: IANA timezone name. Defaults to Asia/Jakarta.

    Returns:
        datetime: Local time without tzinfo, comparable with record dates.
    """
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def start_of_day(value: Union[date, datetime]) -> datetime:
    """Return 00:00:00.000 of the given day."""
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.min)


def end_of_day(value: Union[date, datetime]) -> datetime:
    """Return 23:59:59.999 of the given day."""
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, END_OF_DAY_TIME)


def format_date_only(value: Union[str, date, datetime, None]) -> str:
    """
    Format a date for display in the id-ID short style.

    Example:
        >>> format_date_only("2025-03-10")
        '10 Mar 2025'
        >>> format_date_only("2025-08-17T00:00:00.000Z")
        '17 Agu 2025'
        >>> format_date_only("not a date")
        'Invalid date'
    """
    parsed = parse_date(value)
    if parsed is None:
        return 'Invalid date'
    return f"{parsed.day} {MONTH_NAMES_SHORT_ID[parsed.month - 1]} {parsed.year}"


def format_month_year(year: int, month: int) -> str:
    """Format a month as 'Maret 2025'."""
    return f"{MONTH_NAMES_ID[month - 1]} {year}"


def format_number_id(value: Union[int, float]) -> str:
    """Format an integer with id-ID thousands separators (1234567 -> '1.234.567')."""
    return f"{int(value):,}".replace(',', '.')


def parse_date_argument(date_str: str) -> date:
    """
    Parse a YYYY-MM-DD command-line argument.

    Raises:
        argparse.ArgumentTypeError: If the date string cannot be parsed.
    """
    if not date_str:
        raise argparse.ArgumentTypeError("Date string cannot be empty")

    try:
        return datetime.strptime(date_str.strip(), ISO_DAY_FORMAT).date()
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: '{date_str}'. Use YYYY-MM-DD format."
        )


def parse_datetime_argument(value: str) -> datetime:
    """
    Parse a reference instant given on the command line.

    Accepts 'YYYY-MM-DD' (taken as the start of that day) or any ISO 8601
    datetime such as '2025-08-31T23:37:00'. A value with a UTC offset or a
    trailing 'Z' is converted to the business time zone first.

    Raises:
        argparse.ArgumentTypeError: If the value cannot be parsed.
    """
    if not value:
        raise argparse.ArgumentTypeError("Reference instant cannot be empty")

    try:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid reference instant: '{value}'. "
            f"Use YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS format."
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(ZoneInfo(BUSINESS_TIMEZONE))
    return parsed.replace(tzinfo=None)

"""
Centralized Constants Module for the RPTRA Visit Analytics

This module provides named constants for the magic numbers and fixed vocabularies
used throughout the codebase. Centralizing them keeps the calculators, the
calendar, the HTTP client and the PDF report consistent with each other.

Categories:
- HTTP Status Codes
- Retry Configuration
- Visitor Categories
- Table Pagination
- Calendar Layout
- Locale (Asia/Jakarta, id-ID)
- Report Page Layout
"""

from enum import IntEnum


# ============================================================================
# HTTP STATUS CODES
# ============================================================================

class HTTPStatus(IntEnum):
    """Standard HTTP status codes returned by the CMS API."""
    OK = 200
    CREATED = 201
    NO_CONTENT = 204
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    TOO_MANY_REQUESTS = 429
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504


# Status codes worth retrying: rate limiting and transient server failures
RETRYABLE_STATUS_CODES = frozenset({
    HTTPStatus.TOO_MANY_REQUESTS,
    HTTPStatus.INTERNAL_SERVER_ERROR,
    HTTPStatus.BAD_GATEWAY,
    HTTPStatus.SERVICE_UNAVAILABLE,
    HTTPStatus.GATEWAY_TIMEOUT,
})


# ============================================================================
# RETRY CONFIGURATION CONSTANTS
# ============================================================================

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 30.0  # seconds
DEFAULT_EXPONENTIAL_BASE = 2
DEFAULT_REQUEST_TIMEOUT = 30  # seconds

# Environment variables read by cms_client
API_BASE_URL_ENV_VAR = "VISIT_API_BASE_URL"
API_TIMEOUT_ENV_VAR = "VISIT_API_TIMEOUT"
API_MAX_RETRIES_ENV_VAR = "VISIT_API_MAX_RETRIES"
DEFAULT_API_BASE_URL = "http://localhost:3000"

# CMS collection endpoints
VISITS_ENDPOINT = "/api/analytics"
BOOKING_REQUESTS_ENDPOINT = "/api/request"
SCHEDULED_EVENTS_ENDPOINT = "/api/events"


# ============================================================================
# VISITOR CATEGORIES
# ============================================================================

# Age categories recorded per day, in display order
VISITOR_CATEGORIES = ("balita", "anak", "remaja", "dewasa", "lansia")

VISITOR_CATEGORY_LABELS = {
    "balita": "Balita",
    "anak": "Anak",
    "remaja": "Remaja",
    "dewasa": "Dewasa",
    "lansia": "Lansia",
}

VISITOR_CATEGORY_DESCRIPTIONS = {
    "balita": "0-5 tahun",
    "anak": "6-12 tahun",
    "remaja": "13-17 tahun",
    "dewasa": "18-59 tahun",
    "lansia": "60+ tahun",
}


# ============================================================================
# TABLE PAGINATION
# ============================================================================

DEFAULT_PAGE_SIZE = 10
VISIBLE_PAGE_BUTTONS = 5


# ============================================================================
# CALENDAR LAYOUT
# ============================================================================

DAYS_IN_WEEK = 7

# Items shown verbatim in a calendar day cell before the "+N lainnya" line
MAX_VISIBLE_CELL_ITEMS = 2


# ============================================================================
# LOCALE
# ============================================================================

BUSINESS_TIMEZONE = "Asia/Jakarta"

MONTH_NAMES_ID = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)

MONTH_NAMES_SHORT_ID = (
    "Jan", "Feb", "Mar", "Apr", "Mei", "Jun",
    "Jul", "Agu", "Sep", "Okt", "Nov", "Des",
)

# Weeks start on Sunday, as in the calendar grid header
DAY_NAMES_SHORT_ID = ("Min", "Sen", "Sel", "Rab", "Kam", "Jum", "Sab")

# Fixed instant wired into the public home page for demonstrations
DEMO_REFERENCE_INSTANT = "2025-08-31T23:37:00"


# ============================================================================
# REPORT PAGE LAYOUT
# ============================================================================

class PageLayoutMM:
    """Page layout constants in millimeters for the visit report."""
    MARGIN = 15
    SECTION_SPACING = 6
    SMALL_SPACING = 3
    CALENDAR_CELL_HEIGHT = 22


class FontSizes:
    """Font sizes used by the visit report."""
    TITLE = 20
    SUBTITLE = 11
    TABLE_HEADER = 9
    TABLE_BODY = 8
    CALENDAR_DAY = 8
    CALENDAR_ENTRY = 6.5

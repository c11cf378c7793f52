"""
CMS Client Module

HTTP access to the community-center CMS collections the analytics read from:
- visit records        GET /api/analytics
- booking requests     GET /api/request?year=YYYY&month=M
- scheduled events     GET /api/events

Every collection is a JSON array. Transient failures (timeouts, connection
errors, HTTP 429 and 5xx) are retried with exponential backoff and jitter;
other client errors fail immediately. Callers that prefer "no data yet" over
an exception use the fetch_* methods, which return a FetchResult.

Configuration is read from the environment (or a .env file):
    VISIT_API_BASE_URL     Base URL of the CMS (default http://localhost:3000)
    VISIT_API_TIMEOUT      Request timeout in seconds (default 30)
    VISIT_API_MAX_RETRIES  Retries after the first attempt (default 3)

Usage:
    from cms_client import CmsClient, load_config_from_env

    with CmsClient(load_config_from_env()) as client:
        result = client.fetch_visits()
        if result:
            visits = normalize_visits(result.records)
"""

import os
import time
import random
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests
from dotenv import load_dotenv

from constants import (
    HTTPStatus,
    RETRYABLE_STATUS_CODES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_DELAY,
    DEFAULT_EXPONENTIAL_BASE,
    DEFAULT_REQUEST_TIMEOUT,
    API_BASE_URL_ENV_VAR,
    API_TIMEOUT_ENV_VAR,
    API_MAX_RETRIES_ENV_VAR,
    DEFAULT_API_BASE_URL,
    VISITS_ENDPOINT,
    BOOKING_REQUESTS_ENDPOINT,
    SCHEDULED_EVENTS_ENDPOINT,
)

# Get logger for this module
logger = logging.getLogger(__name__)

# Exceptions that should trigger a retry
RETRYABLE_EXCEPTIONS = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
)


class CmsClientError(Exception):
    """Base class for CMS access failures."""
    def __init__(self, message, endpoint=None):
        super().__init__(message)
        self.endpoint = endpoint
        self.timestamp = datetime.now()


class CmsRequestError(CmsClientError):
    """
    The CMS answered with a non-success status.

    Client errors other than 429 are raised immediately and never retried.
    """
    def __init__(self, message, status_code=None, endpoint=None):
        super().__init__(message, endpoint=endpoint)
        self.status_code = status_code

    def __str__(self):
        base_msg = super().__str__()
        parts = []
        if self.status_code:
            parts.append(f"HTTP {self.status_code}")
        if self.endpoint:
            parts.append(f"endpoint: {self.endpoint}")
        return f"{base_msg} ({', '.join(parts)})" if parts else base_msg

    @property
    def is_retryable(self) -> bool:
        return self.status_code in RETRYABLE_STATUS_CODES


class CmsTimeoutError(CmsClientError):
    """Custom exception for CMS requests that kept failing after max retries."""
    def __init__(self, message, attempts=0, last_error=None, endpoint=None):
        super().__init__(message, endpoint=endpoint)
        self.attempts = attempts
        self.last_error = last_error


class CmsResponseError(CmsClientError):
    """The CMS answered successfully but the body is not JSON."""
    def __init__(self, message, endpoint=None, body_preview=""):
        super().__init__(message, endpoint=endpoint)
        self.body_preview = body_preview


def calculate_backoff_delay(attempt, base_delay=DEFAULT_BASE_DELAY,
                            max_delay=DEFAULT_MAX_DELAY,
                            exponential_base=DEFAULT_EXPONENTIAL_BASE):
    """
    Calculate the delay for the next retry attempt using exponential backoff with jitter.

    Args:
        attempt: The current attempt number (0-based)
        base_delay: The base delay in seconds
        max_delay: The maximum delay in seconds
        exponential_base: The base for exponential calculation

    Returns:
        float: The delay in seconds before the next retry
    """
    delay = base_delay * (exponential_base ** attempt)

    # Jitter: random factor between 0.5 and 1.5
    delay = delay * random.uniform(0.5, 1.5)

    return min(delay, max_delay)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a Retry-After header given in seconds.

    Returns:
        Delay in seconds, or None when the header is absent or not numeric
        (HTTP-date values fall back to regular backoff).
    """
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        logger.debug(f"Ignoring non-numeric Retry-After header: '{value}'")
        return None
    return max(seconds, 0.0)


@dataclass
class CmsClientConfig:
    """
    Connection and retry configuration for CmsClient.

    Attributes:
        base_url (str): Base URL of the CMS, without trailing slash.
        timeout (float): Per-request timeout in seconds.
        max_retries (int): Retries after the first attempt.
        base_delay (float): Initial delay in seconds between retries.
        max_delay (float): Maximum delay in seconds between retries.

    Example:
        >>> config = CmsClientConfig(base_url="https://rptra.example.org", max_retries=5)
        >>> client = CmsClient(config)
    """
    base_url: str = DEFAULT_API_BASE_URL
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must not be negative, got {self.max_retries}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


def _read_env_number(env_var_name: str, default, cast):
    raw = os.getenv(env_var_name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning(f"Invalid {env_var_name} value '{raw}', using default {default}")
        return default


def load_config_from_env(load_env: bool = True) -> CmsClientConfig:
    """
    Build a CmsClientConfig from environment variables.

    Args:
        load_env (bool): Whether to load variables from a .env file first.

    Returns:
        CmsClientConfig: Configuration with defaults for unset variables.
    """
    if load_env:
        load_dotenv()

    base_url = os.getenv(API_BASE_URL_ENV_VAR) or DEFAULT_API_BASE_URL
    if not os.getenv(API_BASE_URL_ENV_VAR):
        logger.debug(f"{API_BASE_URL_ENV_VAR} not set, using {DEFAULT_API_BASE_URL}")

    return CmsClientConfig(
        base_url=base_url,
        timeout=_read_env_number(API_TIMEOUT_ENV_VAR, DEFAULT_REQUEST_TIMEOUT, float),
        max_retries=_read_env_number(API_MAX_RETRIES_ENV_VAR, DEFAULT_MAX_RETRIES, int),
    )


@dataclass
class FetchResult:
    """
    Result container for collection fetches.

    Attributes:
        success (bool): True if the collection was fetched.
        records (List[Any]): The JSON array, [] on failure or non-array bodies.
        endpoint (str): The endpoint that was requested.
        error (Optional[Exception]): The exception if the fetch failed.
        message (str): Human-readable status or error message.

    Example:
        >>> result = client.fetch_visits()
        >>> if not result:
        ...     logger.warning(f"Showing empty statistics: {result.message}")
    """
    success: bool
    records: List[Any] = field(default_factory=list)
    endpoint: str = ""
    error: Optional[Exception] = None
    message: str = ""

    def __bool__(self) -> bool:
        """Allow using result directly in boolean context."""
        return self.success


class CmsClient:
    """
    Read-only client for the CMS JSON collections.

    requests.Session is not safe to share between threads, so every thread
    that calls the client gets its own session from session_factory. All of
    them are closed by close().

    Args:
        config: Connection and retry configuration (defaults to CmsClientConfig()).
        session_factory: Callable creating a new requests.Session.
        sleep: Function used to wait between retries.
    """

    def __init__(
        self,
        config: Optional[CmsClientConfig] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config or CmsClientConfig()
        self._session_factory = session_factory
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self._sleep = sleep

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def session(self) -> requests.Session:
        """The calling thread's session, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.headers.setdefault("Accept", "application/json")
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    def _url(self, endpoint: str) -> str:
        return f"{self.config.base_url}/{endpoint.lstrip('/')}"

    def _wait_before_retry(self, attempt: int, endpoint: str, reason: str,
                           retry_after: Optional[float] = None) -> None:
        if retry_after is not None:
            delay = min(retry_after, self.config.max_delay)
        else:
            delay = calculate_backoff_delay(
                attempt,
                base_delay=self.config.base_delay,
                max_delay=self.config.max_delay,
            )
        logger.warning(
            f"{reason} on {endpoint} "
            f"(attempt {attempt + 1}/{self.config.max_retries + 1}). "
            f"Retrying in {delay:.2f}s..."
        )
        self._sleep(delay)

    def get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET an endpoint and decode its JSON body, retrying transient failures.

        Args:
            endpoint: Path such as "/api/analytics".
            params: Optional query parameters.

        Returns:
            The decoded JSON body.

        Raises:
            CmsRequestError: On a non-retryable error status or a request that
                cannot be sent (bad URL, redirect loop).
            CmsTimeoutError: When every attempt failed transiently.
            CmsResponseError: When the body is not JSON.
        """
        url = self._url(endpoint)
        attempts = self.config.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            is_last_attempt = attempt == attempts - 1

            try:
                response = self.session.get(url, params=params, timeout=self.config.timeout)
            except RETRYABLE_EXCEPTIONS as e:
                last_error = e
                if is_last_attempt:
                    break
                self._wait_before_retry(attempt, endpoint, type(e).__name__)
                continue
            except requests.exceptions.RequestException as e:
                logger.error(f"CMS request to {endpoint} failed: {e}")
                raise CmsRequestError(f"CMS request failed: {e}", endpoint=endpoint) from e

            if response.status_code >= HTTPStatus.BAD_REQUEST:
                error = CmsRequestError(
                    f"CMS request failed: {response.reason or 'error'}",
                    status_code=response.status_code,
                    endpoint=endpoint,
                )
                if not error.is_retryable:
                    logger.error(str(error))
                    raise error

                last_error = error
                if is_last_attempt:
                    break
                retry_after = None
                if response.status_code == HTTPStatus.TOO_MANY_REQUESTS:
                    retry_after = parse_retry_after(response.headers.get("Retry-After"))
                self._wait_before_retry(
                    attempt, endpoint, f"HTTP {response.status_code}", retry_after
                )
                continue

            try:
                return response.json()
            except ValueError as e:
                preview = (response.text or "")[:200]
                raise CmsResponseError(
                    f"CMS returned a non-JSON body for {endpoint}: {e}",
                    endpoint=endpoint,
                    body_preview=preview,
                ) from e

        logger.error(f"Max retries ({self.config.max_retries}) exceeded for {endpoint}: {last_error}")
        raise CmsTimeoutError(
            f"CMS request to {endpoint} failed after {attempts} attempts",
            attempts=attempts,
            last_error=last_error,
            endpoint=endpoint,
        )

    def fetch_collection(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> FetchResult:
        """
        Fetch a JSON array collection without raising.

        A body that is not an array (an error object, null) is treated as an
        empty collection and logged.

        Returns:
            FetchResult: success with the records, or failure with the error.
        """
        try:
            body = self.get_json(endpoint, params=params)
        except CmsClientError as e:
            return FetchResult(
                success=False,
                endpoint=endpoint,
                error=e,
                message=str(e),
            )

        if not isinstance(body, list):
            logger.warning(
                f"Expected a JSON array from {endpoint}, got {type(body).__name__}. "
                f"Treating as empty."
            )
            return FetchResult(
                success=True,
                endpoint=endpoint,
                message="Response was not an array",
            )

        logger.debug(f"Fetched {len(body)} records from {endpoint}")
        return FetchResult(
            success=True,
            records=body,
            endpoint=endpoint,
            message=f"Fetched {len(body)} records",
        )

    def fetch_visits(self) -> FetchResult:
        """Fetch all raw visit records."""
        return self.fetch_collection(VISITS_ENDPOINT)

    def fetch_booking_requests(self, year: int, month: int) -> FetchResult:
        """
        Fetch the booking requests executed in one calendar month.

        Raises:
            ValueError: If month is not in 1-12.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {month}")
        return self.fetch_collection(
            BOOKING_REQUESTS_ENDPOINT,
            params={"year": year, "month": month},
        )

    def fetch_scheduled_events(self) -> FetchResult:
        """Fetch all scheduled events."""
        return self.fetch_collection(SCHEDULED_EVENTS_ENDPOINT)

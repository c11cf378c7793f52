"""Unit tests for CmsClient."""
import threading

import pytest
import requests
import responses
from responses import matchers

from cms_client import (
    CmsClient,
    CmsClientConfig,
    CmsRequestError,
    CmsResponseError,
    CmsTimeoutError,
    FetchResult,
    calculate_backoff_delay,
    load_config_from_env,
    parse_retry_after,
)

BASE_URL = "http://cms.test"


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def client(sleeps):
    config = CmsClientConfig(base_url=BASE_URL + "/", max_retries=2, base_delay=0.01, max_delay=0.05)
    with CmsClient(config, sleep=sleeps.append) as cms:
        yield cms


class TestGetJson:
    """Test cases for CmsClient.get_json."""

    @responses.activate
    def test_success(self, client):
        responses.add(responses.GET, f"{BASE_URL}/api/analytics",
                      json=[{"_id": "1", "date": "2025-03-10"}], status=200)

        body = client.get_json("/api/analytics")

        assert body == [{"_id": "1", "date": "2025-03-10"}]
        assert len(responses.calls) == 1

    @responses.activate
    def test_retry_then_success(self, client, sleeps):
        responses.add(responses.GET, f"{BASE_URL}/api/events", status=503)
        responses.add(responses.GET, f"{BASE_URL}/api/events", status=500)
        responses.add(responses.GET, f"{BASE_URL}/api/events", json=[], status=200)

        assert client.get_json("/api/events") == []
        assert len(responses.calls) == 3
        assert len(sleeps) == 2

    @responses.activate
    def test_timeout_is_retried(self, client, sleeps):
        responses.add(responses.GET, f"{BASE_URL}/api/events",
                      body=requests.exceptions.ConnectTimeout("slow"))
        responses.add(responses.GET, f"{BASE_URL}/api/events", json=[{"title": "x"}], status=200)

        assert client.get_json("/api/events") == [{"title": "x"}]
        assert len(sleeps) == 1

    @responses.activate
    def test_retries_exhausted(self, client):
        responses.add(responses.GET, f"{BASE_URL}/api/analytics", status=502)

        with pytest.raises(CmsTimeoutError) as exc_info:
            client.get_json("/api/analytics")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, CmsRequestError)
        assert exc_info.value.last_error.status_code == 502
        assert len(responses.calls) == 3

    @responses.activate
    def test_client_error_not_retried(self, client, sleeps):
        responses.add(responses.GET, f"{BASE_URL}/api/analytics", status=404)

        with pytest.raises(CmsRequestError) as exc_info:
            client.get_json("/api/analytics")

        assert exc_info.value.status_code == 404
        assert exc_info.value.endpoint == "/api/analytics"
        assert len(responses.calls) == 1
        assert sleeps == []

    @responses.activate
    def test_rate_limit_honors_retry_after(self, client, sleeps):
        responses.add(responses.GET, f"{BASE_URL}/api/analytics",
                      status=429, headers={"Retry-After": "0.02"})
        responses.add(responses.GET, f"{BASE_URL}/api/analytics", json=[], status=200)

        assert client.get_json("/api/analytics") == []
        assert sleeps == [0.02]

    @responses.activate
    def test_non_json_body(self, client):
        responses.add(responses.GET, f"{BASE_URL}/api/analytics",
                      body="<html>oops</html>", status=200, content_type="text/html")

        with pytest.raises(CmsResponseError) as exc_info:
            client.get_json("/api/analytics")

        assert "oops" in exc_info.value.body_preview

    @responses.activate
    def test_broken_stream_is_retried(self, client, sleeps):
        responses.add(responses.GET, f"{BASE_URL}/api/analytics",
                      body=requests.exceptions.ChunkedEncodingError("broken stream"))
        responses.add(responses.GET, f"{BASE_URL}/api/analytics", json=[], status=200)

        assert client.get_json("/api/analytics") == []
        assert len(sleeps) == 1

    @responses.activate
    def test_other_request_errors_are_wrapped(self, client, sleeps):
        responses.add(responses.GET, f"{BASE_URL}/api/analytics",
                      body=requests.exceptions.TooManyRedirects("loop"))

        with pytest.raises(CmsRequestError) as exc_info:
            client.get_json("/api/analytics")

        assert isinstance(exc_info.value.__cause__, requests.exceptions.TooManyRedirects)
        assert exc_info.value.endpoint == "/api/analytics"
        assert sleeps == []


class TestFetchCollection:
    """Test cases for the non-raising fetch methods."""

    @responses.activate
    def test_fetch_visits(self, client):
        responses.add(responses.GET, f"{BASE_URL}/api/analytics",
                      json=[{"_id": "1"}, {"_id": "2"}], status=200)

        result = client.fetch_visits()

        assert result
        assert len(result.records) == 2

    @responses.activate
    def test_booking_requests_query(self, client):
        responses.add(
            responses.GET, f"{BASE_URL}/api/request",
            json=[{"tanggalPelaksanaan": "2025-03-05"}], status=200,
            match=[matchers.query_param_matcher({"year": "2025", "month": "3"})],
        )

        result = client.fetch_booking_requests(2025, 3)

        assert result.success
        assert result.records[0]["tanggalPelaksanaan"] == "2025-03-05"

    def test_booking_requests_invalid_month(self, client):
        with pytest.raises(ValueError):
            client.fetch_booking_requests(2025, 13)

    @responses.activate
    def test_non_array_body_is_empty(self, client):
        responses.add(responses.GET, f"{BASE_URL}/api/events",
                      json={"error": "Internal"}, status=200)

        result = client.fetch_scheduled_events()

        assert result.success
        assert result.records == []

    @responses.activate
    def test_failure_returns_result(self, client):
        responses.add(responses.GET, f"{BASE_URL}/api/events", status=401)

        result = client.fetch_scheduled_events()

        assert not result
        assert result.records == []
        assert isinstance(result.error, CmsRequestError)

    @responses.activate
    def test_broken_stream_returns_result(self, client):
        responses.add(responses.GET, f"{BASE_URL}/api/analytics",
                      body=requests.exceptions.ChunkedEncodingError("broken stream"))

        result = client.fetch_visits()

        assert not result
        assert isinstance(result.error, CmsTimeoutError)

    def test_malformed_base_url_returns_result(self, sleeps):
        with CmsClient(CmsClientConfig(base_url="htp//bad"), sleep=sleeps.append) as cms:
            result = cms.fetch_visits()

        assert not result
        assert isinstance(result.error, CmsRequestError)
        assert isinstance(result.error.__cause__, requests.exceptions.MissingSchema)

    def test_fetch_result_bool(self):
        assert FetchResult(success=True)
        assert not FetchResult(success=False)


class TestSessions:
    """Test cases for per-thread sessions."""

    def test_each_thread_gets_its_own_session(self):
        cms = CmsClient(CmsClientConfig(base_url=BASE_URL))
        seen = {}

        def grab(name):
            seen[name] = cms.session

        workers = [threading.Thread(target=grab, args=(name,)) for name in ("a", "b")]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        assert seen["a"] is not seen["b"]
        assert cms.session is cms.session
        assert cms.session.headers["Accept"] == "application/json"
        cms.close()

    def test_close_closes_every_session(self):
        created = []

        def factory():
            session = requests.Session()
            session.close = lambda: created.remove(session)
            created.append(session)
            return session

        cms = CmsClient(CmsClientConfig(base_url=BASE_URL), session_factory=factory)
        worker = threading.Thread(target=lambda: cms.session)
        worker.start()
        worker.join()
        _ = cms.session
        assert len(created) == 2

        cms.close()

        assert created == []


class TestConfiguration:
    """Test cases for configuration and backoff helpers."""

    def test_load_from_env(self, monkeypatch):
        monkeypatch.setenv("VISIT_API_BASE_URL", "https://rptra.example.org/")
        monkeypatch.setenv("VISIT_API_TIMEOUT", "12.5")
        monkeypatch.setenv("VISIT_API_MAX_RETRIES", "5")

        config = load_config_from_env(load_env=False)

        assert config.base_url == "https://rptra.example.org"
        assert config.timeout == 12.5
        assert config.max_retries == 5

    def test_defaults_and_invalid_values(self, monkeypatch):
        monkeypatch.delenv("VISIT_API_BASE_URL", raising=False)
        monkeypatch.delenv("VISIT_API_TIMEOUT", raising=False)
        monkeypatch.setenv("VISIT_API_MAX_RETRIES", "many")

        config = load_config_from_env(load_env=False)

        assert config.base_url == "http://localhost:3000"
        assert config.timeout == 30
        assert config.max_retries == 3

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            CmsClientConfig(max_retries=-1)
        with pytest.raises(ValueError):
            CmsClientConfig(timeout=0)

    def test_backoff_is_capped(self):
        for attempt in range(6):
            delay = calculate_backoff_delay(attempt, base_delay=1.0, max_delay=4.0)
            assert 0 < delay <= 4.0

    def test_backoff_first_attempt_has_jitter_bounds(self):
        delay = calculate_backoff_delay(0, base_delay=2.0, max_delay=100.0)

        assert 1.0 <= delay <= 3.0

    @pytest.mark.parametrize("value,expected", [
        ("10", 10.0),
        ("0", 0.0),
        (None, None),
        ("Wed, 21 Oct 2015 07:28:00 GMT", None),
    ])
    def test_parse_retry_after(self, value, expected):
        assert parse_retry_after(value) == expected

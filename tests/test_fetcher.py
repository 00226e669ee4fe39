from unittest.mock import MagicMock, patch

import pytest
import requests
from cloudscraper.exceptions import CloudflareChallengeError

from court_monitor import fetcher
from court_monitor.exceptions import FetchError


@pytest.fixture
def mock_response():
    mock = MagicMock()
    mock.status_code = 200
    mock.json.return_value = {"available_courts": []}
    return mock


@pytest.fixture
def mock_scraper_obj(mock_response):
    s = MagicMock()
    s.get.return_value = mock_response
    return s


def test_build_url():
    with patch("court_monitor.fetcher.config.AVAILABILITY_API_URL", "https://example.test/availability"):
        url = fetcher.build_url("2025-01-01")
    assert url == "https://example.test/availability?date=2025-01-01"


@patch("court_monitor.fetcher.cloudscraper.create_scraper")
def test_fetch_availability_success(mock_create_scraper, mock_scraper_obj):
    mock_create_scraper.return_value = mock_scraper_obj
    data = fetcher.fetch_availability("2025-01-01")
    assert data == {"available_courts": []}
    mock_scraper_obj.get.assert_called_once()
    assert "date=2025-01-01" in mock_scraper_obj.get.call_args[0][0]


@patch("court_monitor.fetcher.cloudscraper.create_scraper")
def test_fetch_availability_network_error(mock_create_scraper, mock_scraper_obj):
    mock_create_scraper.return_value = mock_scraper_obj
    mock_scraper_obj.get.side_effect = requests.exceptions.ConnectionError("Network error")

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch_availability("2025-01-01")
    assert excinfo.value.date == "2025-01-01"
    assert excinfo.value.status_code is None


@patch("court_monitor.fetcher.cloudscraper.create_scraper")
def test_fetch_availability_http_error(mock_create_scraper, mock_scraper_obj, mock_response):
    mock_create_scraper.return_value = mock_scraper_obj
    mock_response.status_code = 503
    mock_response.raise_for_status.side_effect = requests.exceptions.HTTPError("503 Server Error")

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch_availability("2025-01-01")
    assert excinfo.value.status_code == 503


@patch("court_monitor.fetcher.cloudscraper.create_scraper")
def test_fetch_availability_invalid_json(mock_create_scraper, mock_scraper_obj, mock_response):
    mock_create_scraper.return_value = mock_scraper_obj
    mock_response.json.side_effect = ValueError("Expecting value")

    with pytest.raises(FetchError):
        fetcher.fetch_availability("2025-01-01")


@patch("court_monitor.fetcher.fetch_availability")
def test_fetch_window_isolates_failures(mock_fetch):
    def fake_fetch(date_str):
        if date_str == "2025-01-02":
            raise FetchError(date_str, "HTTP 500", status_code=500)
        return {"available_courts": [], "date": date_str}

    mock_fetch.side_effect = fake_fetch

    results = fetcher.fetch_window(["2025-01-01", "2025-01-02"])

    assert list(results) == ["2025-01-01", "2025-01-02"]
    assert results["2025-01-01"].ok
    assert results["2025-01-01"].data == {"available_courts": [], "date": "2025-01-01"}
    assert not results["2025-01-02"].ok
    assert results["2025-01-02"].error.status_code == 500
    assert mock_fetch.call_count == 2


def test_fetch_window_empty():
    assert fetcher.fetch_window([]) == {}


@patch("court_monitor.fetcher.cloudscraper.create_scraper")
def test_fetch_window_keeps_good_date_when_cloudflare_blocks_the_other(mock_create_scraper, mock_response):
    def fake_get(url, **kwargs):
        if "date=2025-01-02" in url:
            raise CloudflareChallengeError("challenge")
        return mock_response

    mock_create_scraper.return_value.get.side_effect = fake_get

    results = fetcher.fetch_window(["2025-01-01", "2025-01-02"])

    assert results["2025-01-01"].ok
    assert results["2025-01-01"].data == {"available_courts": []}
    assert not results["2025-01-02"].ok
    assert results["2025-01-02"].error.date == "2025-01-02"
    assert "CloudflareChallengeError" in results["2025-01-02"].error.reason

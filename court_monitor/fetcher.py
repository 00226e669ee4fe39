import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import cloudscraper
import requests

from court_monitor import config
from court_monitor.exceptions import FetchError

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    date: str
    data: Any = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_url(date_str: str) -> str:
    """Constructs the availability API URL for a specific date."""
    url = f"{config.AVAILABILITY_API_URL}?{urlencode({'date': date_str})}"
    logger.debug(f"Built URL: {url}")
    return url


def fetch_availability(date_str: str) -> Any:
    """Fetches raw availability data for one date.

    Raises FetchError on network failures, non-2xx statuses and undecodable bodies.
    """
    url = build_url(date_str)
    logger.info(f"Fetching availability for {date_str} from {url}")

    scraper = cloudscraper.create_scraper()
    try:
        response = scraper.get(url, headers=config.COMMON_HEADERS, timeout=config.REQUEST_TIMEOUT)
    except requests.exceptions.RequestException as e:
        raise FetchError(date_str, f"request failed: {e}") from e

    logger.debug(f"Response status for {date_str}: {response.status_code}")
    if response.status_code == 403:
        logger.error("Cloudflare blocked the request even with cloudscraper.")
    try:
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        raise FetchError(date_str, f"HTTP {response.status_code}", status_code=response.status_code) from e

    try:
        return response.json()
    except ValueError as e:
        raise FetchError(date_str, "response is not valid JSON", status_code=response.status_code) from e


def _fetch_one(date_str: str) -> FetchResult:
    try:
        return FetchResult(date=date_str, data=fetch_availability(date_str))
    except FetchError as e:
        logger.error(f"Error fetching availability for {date_str}: {e.reason}")
        return FetchResult(date=date_str, error=e)
    except Exception as e:
        # cloudscraper challenge errors do not derive from requests exceptions
        logger.error(f"Error fetching availability for {date_str}: {e}")
        return FetchResult(date=date_str, error=FetchError(date_str, f"{type(e).__name__}: {e}"))


def fetch_window(dates: List[str]) -> Dict[str, FetchResult]:
    """Fetches every date concurrently and returns one result per date, in input order."""
    if not dates:
        return {}
    with ThreadPoolExecutor(max_workers=len(dates)) as executor:
        results = list(executor.map(_fetch_one, dates))
    return {result.date: result for result in results}

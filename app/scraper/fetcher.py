import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import requests

from app.core.errors import TransientNetworkError
from app.scraper.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-IN,en;q=0.9",
    "Referer": "https://www.google.com/",
    "Cache-Control": "no-cache",
}

ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
ACCEPT_JSON = "application/json, text/plain, */*"


@dataclass
class FetchResult:
    body: str
    status_code: int
    url: str


def backoff_delay(attempt: int, base: float = 1.0, max_backoff: float = 30.0) -> float:
    """
    Sleep before retry number `attempt` (1-based): base * 2^(attempt-1)
    plus up to 10% jitter, capped at max_backoff.
    """
    delay = min(base * (2 ** (attempt - 1)), max_backoff)
    return delay + delay * 0.1 * random.random()


class Fetcher:
    """
    GET with browser-like headers, a shared rate limiter and retries.
    Network errors and non-200 responses are both retried; after
    `max_retries` extra attempts a TransientNetworkError is raised.
    """

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        base_backoff: float = 1.0,
    ):
        self.rate_limiter = rate_limiter or RateLimiter()
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = session or requests.Session()
        self.sleep = sleep
        self.base_backoff = base_backoff

    def fetch(self, url: str, headers: Optional[Dict[str, str]] = None, accept: str = ACCEPT_HTML) -> FetchResult:
        request_headers = {**HEADERS, "Accept": accept, **(headers or {})}
        last_error = None
        last_status = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = backoff_delay(attempt, self.base_backoff)
                logger.debug("Retrying %s (attempt %d/%d) in %.2fs", url, attempt + 1, self.max_retries + 1, delay)
                self.sleep(delay)

            self.rate_limiter.wait_if_needed()
            try:
                response = self.session.get(url, headers=request_headers, timeout=self.timeout)
            except requests.RequestException as e:
                last_error = f"attempt {attempt + 1} failed with network error: {e}"
                last_status = None
                logger.warning(last_error)
                continue

            if response.status_code == 200:
                return FetchResult(body=response.text, status_code=200, url=url)

            last_status = response.status_code
            last_error = f"attempt {attempt + 1} failed with HTTP {response.status_code}"
            logger.warning("%s for %s", last_error, url)

        raise TransientNetworkError(
            f"HTTP request failed after {self.max_retries + 1} attempts: {last_error}",
            status_code=last_status,
            url=url,
        )

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Enforces a minimum delay between outbound requests.
    One instance is shared by every request of a scraping session; the
    last-request timestamp is guarded by a lock so parallel callers queue up.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = min_interval
        self.last_request = None
        self.request_count = 0
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

    def wait_if_needed(self) -> float:
        """Blocks until the interval has passed. Returns the time slept."""
        with self._lock:
            waited = 0.0
            if self.last_request is not None:
                elapsed = self._clock() - self.last_request
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.debug("Rate limit: sleeping %.2fs", waited)
                    self._sleep(waited)
            self.last_request = self._clock()
            self.request_count += 1
            return waited

    def update_interval(self, min_interval: float) -> None:
        with self._lock:
            self.min_interval = min_interval

    def reset(self) -> None:
        with self._lock:
            self.last_request = None
            self.request_count = 0

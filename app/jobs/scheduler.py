import logging
import threading
from typing import Callable, List, Optional

from app.core.config import settings
from app.core.errors import ScraperError
from app.db.repositories import GMPRepository, IPORepository
from app.db.session import SessionLocal
from app.scraper.chittorgarh import build_scraper
from app.scraper.gmp import GmpScraper
from app.services.batch import BatchOrchestrator, refresh_gmp

logger = logging.getLogger(__name__)

HOUR = 3600.0


class PeriodicJob:
    """
    Runs `func` on a background thread every `interval` seconds.
    A run that raises is logged and the schedule continues; stop() also
    signals the running job through `cancel_event`.
    """

    def __init__(self, name: str, func: Callable[[threading.Event], None], interval: float, run_at_start: bool = False):
        self.name = name
        self.func = func
        self.interval = interval
        self.run_at_start = run_at_start
        self.cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self.cancel_event.clear()
        self._thread = threading.Thread(target=self._loop, name=f"job-{self.name}", daemon=True)
        self._thread.start()
        logger.info("Started job %s (every %.0fs)", self.name, self.interval)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self.cancel_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.info("Stopped job %s", self.name)

    def run_once(self) -> None:
        self.runs += 1
        try:
            self.func(self.cancel_event)
        except ScraperError as e:
            logger.error("Job %s failed: %s", self.name, e)
        except Exception:
            logger.exception("Job %s crashed", self.name)

    def _loop(self) -> None:
        if self.run_at_start:
            self.run_once()
        while not self.cancel_event.wait(self.interval):
            self.run_once()


def run_ipo_update(cancel_event: Optional[threading.Event] = None) -> None:
    session = SessionLocal()
    try:
        orchestrator = BatchOrchestrator(build_scraper(), IPORepository(session))
        orchestrator.run(cancel_event=cancel_event, timeout=settings.BATCH_TIMEOUT_SECONDS)
    finally:
        session.close()


def run_gmp_update(cancel_event: Optional[threading.Event] = None) -> None:
    session = SessionLocal()
    try:
        refresh_gmp(GmpScraper(), GMPRepository(session))
    finally:
        session.close()


def default_jobs() -> List[PeriodicJob]:
    return [
        PeriodicJob("ipo-update", run_ipo_update, settings.IPO_JOB_INTERVAL_HOURS * HOUR),
        PeriodicJob("gmp-update", run_gmp_update, settings.GMP_JOB_INTERVAL_HOURS * HOUR, run_at_start=True),
    ]

import logging
import threading
import time
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import (
    MAX_TRACKED_ERRORS,
    BatchCancelled,
    BatchPartialFailure,
    PartialExtractionError,
    SaveFailure,
    ScraperError,
    TotalFailure,
)
from app.db.repositories import GMPRepository, IPORepository
from app.schemas.gmp import GMPBatchResult
from app.schemas.ipo import IPO, BatchReport, IPOListItem, ScrapeBatchItem
from app.scraper.chittorgarh import ChittorgarhScraper, analyze_completeness
from app.scraper.gmp import GmpScraper

logger = logging.getLogger(__name__)

ITEM_DELAY_SECONDS = 2.0
SLOW_ITEM_DELAY_SECONDS = 5.0
FULL_SUCCESS_THRESHOLD = 80.0

# May return an error for an item that extracted cleanly, e.g. a failed save
ResultHook = Callable[[IPOListItem, IPO, Optional[ScraperError]], Optional[ScraperError]]


class BatchOrchestrator:
    """
    Scrapes list entries one at a time.

    Each item is isolated: a failure yields the item's fallback record and
    a tracked error, and the loop moves on. Between items it waits 2s, or
    5s while failures outnumber successes. A set cancel_event or a passed
    deadline stops the loop before the next item; setting the event also
    cuts the current wait short.
    """

    def __init__(
        self,
        scraper: ChittorgarhScraper,
        ipo_repo: Optional[IPORepository] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        delay: float = ITEM_DELAY_SECONDS,
        slow_delay: float = SLOW_ITEM_DELAY_SECONDS,
    ):
        self.scraper = scraper
        self.ipo_repo = ipo_repo
        self.sleep = sleep
        self.clock = clock
        self.delay = delay
        self.slow_delay = slow_delay

    def _extract(self, item: IPOListItem) -> Tuple[IPO, Optional[ScraperError]]:
        try:
            return self.scraper.extract_ipo(item)
        except Exception as e:
            logger.exception("Unexpected error scraping %s", item.ipo_news_title)
            partial = self.scraper.partial_from_list_item(item)
            return partial, PartialExtractionError(f"failed to scrape IPO {item.id}: {e}", partial=partial, cause=e)

    def _cancelled(self, cancel_event: Optional[threading.Event], deadline: Optional[float]) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        return deadline is not None and self.clock() >= deadline

    def _pause(self, successes: int, failures: int, cancel_event: Optional[threading.Event] = None) -> None:
        delay = self.slow_delay if failures > successes else self.delay
        if cancel_event is not None:
            cancel_event.wait(delay)
        else:
            self.sleep(delay)

    def process_items(
        self,
        items: Sequence[IPOListItem],
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
        on_result: Optional[ResultHook] = None,
    ) -> List[IPO]:
        """
        Returns the successfully scraped records.
        Raises BatchPartialFailure when some items failed, TotalFailure when
        all of them did and BatchCancelled (with the records so far) on cancel.
        """
        results: List[IPO] = []
        partials: List[IPO] = []
        errors: List[ScraperError] = []
        error_count = 0
        total = len(items)

        for i, item in enumerate(items):
            if self._cancelled(cancel_event, deadline):
                logger.warning("Batch cancelled after %d/%d IPOs", i, total)
                raise BatchCancelled(i, total, results)

            ipo, err = self._extract(item)
            if on_result is not None:
                err = on_result(item, ipo, err) or err

            if err is None:
                results.append(ipo)
            else:
                error_count += 1
                partials.append(ipo)
                if len(errors) < MAX_TRACKED_ERRORS:
                    errors.append(err)

            if i < total - 1:
                self._pause(len(results), error_count, cancel_event)

        logger.info("Batch finished: %d succeeded, %d failed", len(results), error_count)
        if error_count:
            if not results:
                raise TotalFailure(error_count, errors[0])
            raise BatchPartialFailure(results, error_count, errors, partials)
        return results

    def run(
        self,
        limit: Optional[int] = None,
        save: bool = True,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> BatchReport:
        """
        Full update: fetch the list, scrape every entry, check completeness
        and upsert every record that scraped cleanly. List fetch failures propagate.
        """
        items = self.scraper.fetch_ipo_list()
        if limit:
            items = items[:limit]
        report = BatchReport(attempted=len(items))
        deadline = self.clock() + timeout if timeout else None

        def record(item: IPOListItem, ipo: IPO, err: Optional[ScraperError]) -> Optional[ScraperError]:
            entry = ScrapeBatchItem(stock_id=ipo.stock_id, name=ipo.name, data=ipo)
            report.items.append(entry)
            if err is not None:
                entry.error = str(err)
                report.failures += 1
                return None

            entry.completeness = analyze_completeness(ipo)
            if save and self.ipo_repo is not None:
                try:
                    self.ipo_repo.upsert(ipo)
                except SQLAlchemyError as e:
                    self.ipo_repo.session.rollback()
                    logger.error("Failed to save IPO %s: %s", ipo.name, e)
                    failure = SaveFailure(f"failed to save IPO {ipo.stock_id}: {e}", cause=e)
                    entry.error = str(failure)
                    report.failures += 1
                    return failure

            if entry.completeness.is_critical_complete and entry.completeness.completeness_pct >= FULL_SUCCESS_THRESHOLD:
                report.full_successes += 1
            else:
                report.partial_successes += 1
                logger.info(
                    "Partial data for %s (%.1f%%, missing %s)",
                    ipo.name,
                    entry.completeness.completeness_pct,
                    ", ".join(entry.completeness.missing_fields),
                )
            return None

        try:
            self.process_items(items, cancel_event=cancel_event, deadline=deadline, on_result=record)
        except BatchCancelled as e:
            report.cancelled = True
            report.error = str(e)
        except (BatchPartialFailure, TotalFailure) as e:
            report.error = str(e)

        logger.info(
            "IPO update: %d attempted, %d full, %d partial, %d failed",
            report.attempted,
            report.full_successes,
            report.partial_successes,
            report.failures,
        )
        return report


def refresh_gmp(scraper: GmpScraper, gmp_repo: GMPRepository) -> GMPBatchResult:
    """Scrapes the live GMP table and upserts every row. Scrape failures propagate."""
    snapshots = scraper.extract_gmp_batch()
    saved, errors = gmp_repo.upsert_many(snapshots)
    result = GMPBatchResult(scraped=len(snapshots), saved=saved, failed=len(errors), errors=errors[:MAX_TRACKED_ERRORS])
    logger.info("GMP update: %d scraped, %d saved, %d failed", result.scraped, result.saved, result.failed)
    return result

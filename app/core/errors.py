from typing import Any, List, Optional

# Sample errors retained per batch; only the first few reach the summary message
MAX_TRACKED_ERRORS = 10
SUMMARY_SAMPLE_SIZE = 3


class ScraperError(Exception):
    """Base class for ingestion failures."""


class TransientNetworkError(ScraperError):
    """Timeout, connection reset or non-200 response. Retryable."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ParseFailure(ScraperError):
    """Malformed HTML or embedded JSON. Not retryable for the same item."""


class PartialExtractionError(ScraperError):
    """
    An item could only be extracted partially.
    `partial` holds the fallback record assembled from list metadata.
    """

    def __init__(self, message: str, partial: Any = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.partial = partial
        self.cause = cause


class SaveFailure(ScraperError):
    """The item scraped cleanly but its record could not be stored."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class BatchPartialFailure(ScraperError):
    """`results` are the successful records; `partials` the fallback records of failed items."""

    def __init__(
        self,
        results: List[Any],
        error_count: int,
        sample_errors: List[BaseException],
        partials: Optional[List[Any]] = None,
    ):
        self.results = results
        self.error_count = error_count
        self.sample_errors = sample_errors[:MAX_TRACKED_ERRORS]
        self.partials = partials or []
        super().__init__(build_batch_error_summary(len(results), error_count, self.sample_errors))


class TotalFailure(ScraperError):
    def __init__(self, error_count: int, first_error: Optional[BaseException] = None):
        self.error_count = error_count
        self.first_error = first_error
        if first_error is not None:
            message = f"failed to scrape any IPOs: {error_count} errors occurred, first error: {first_error}"
        else:
            message = f"failed to scrape any IPOs: {error_count} errors occurred"
        super().__init__(message)


class BatchCancelled(ScraperError):
    def __init__(self, processed: int, total: int, results: List[Any]):
        self.processed = processed
        self.total = total
        self.results = results
        super().__init__(f"batch processing cancelled after {processed}/{total} IPOs")


def build_batch_error_summary(success_count: int, error_count: int, sample_errors: List[BaseException]) -> str:
    """
    'batch processing completed with 8 successes and 2 failures; e1; e2'
    Only the first three sample errors are listed, the remainder is counted.
    """
    parts = [f"batch processing completed with {success_count} successes and {error_count} failures"]
    shown = sample_errors[:SUMMARY_SAMPLE_SIZE]
    parts.extend(str(err) for err in shown)
    if error_count > len(shown):
        parts.append(f"and {error_count - len(shown)} additional errors")
    return "; ".join(parts)

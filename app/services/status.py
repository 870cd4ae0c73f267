from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional

Clock = Callable[[], datetime]


class IPOStatus(str, Enum):
    UPCOMING = "UPCOMING"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    LISTED = "LISTED"
    UNKNOWN = "UNKNOWN"


# API filter value → statuses it selects
STATUS_FILTERS = {
    "live": {IPOStatus.ACTIVE},
    "upcoming": {IPOStatus.UPCOMING},
    "closed": {IPOStatus.CLOSED},
    "listed": {IPOStatus.LISTED},
}


def system_clock() -> datetime:
    return datetime.now()


def compute_status(
    open_date: Optional[datetime],
    close_date: Optional[datetime],
    listing_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> IPOStatus:
    """
    Status of an issue at `now`. First matching rule wins:
    listed > closed > active > upcoming > unknown.
    """
    if now is None:
        now = system_clock()

    if listing_date is not None and now > listing_date:
        return IPOStatus.LISTED
    if close_date is not None and now > close_date:
        return IPOStatus.CLOSED
    # the opening instant itself counts as open
    if open_date is not None and now >= open_date:
        return IPOStatus.ACTIVE
    if open_date is not None and now < open_date:
        return IPOStatus.UPCOMING
    return IPOStatus.UNKNOWN


def refresh_status(ipo, clock: Clock = system_clock):
    """Overwrites ipo.status with the value computed for the current time."""
    ipo.status = compute_status(ipo.open_date, ipo.close_date, ipo.listing_date, clock()).value
    return ipo


def statuses_for_filter(value: Optional[str]) -> Optional[Iterable[IPOStatus]]:
    """'live' → {ACTIVE}; unknown values and 'all' → None (no filtering)."""
    if not value:
        return None
    return STATUS_FILTERS.get(value.strip().lower())

import itertools
from datetime import datetime, timedelta

import pytest

from app.schemas.ipo import IPO
from app.services.status import IPOStatus, compute_status, refresh_status, statuses_for_filter

OPEN = datetime(2025, 12, 8, 10, 0)
CLOSE = datetime(2025, 12, 10, 17, 0)
LISTING = datetime(2025, 12, 15, 10, 0)

ORDER = [IPOStatus.UPCOMING, IPOStatus.ACTIVE, IPOStatus.CLOSED, IPOStatus.LISTED]


def test_open_window_is_active():
    assert compute_status(OPEN, CLOSE, LISTING, now=datetime(2025, 12, 9, 12, 0)) == IPOStatus.ACTIVE


@pytest.mark.parametrize("now,expected", [
    (OPEN - timedelta(days=1), IPOStatus.UPCOMING),
    (OPEN, IPOStatus.ACTIVE),
    (CLOSE, IPOStatus.ACTIVE),
    (CLOSE + timedelta(seconds=1), IPOStatus.CLOSED),
    (LISTING, IPOStatus.CLOSED),
    (LISTING + timedelta(seconds=1), IPOStatus.LISTED),
])
def test_boundaries(now, expected):
    assert compute_status(OPEN, CLOSE, LISTING, now=now) == expected


def test_listing_rule_wins_even_without_other_dates():
    assert compute_status(None, None, LISTING, now=LISTING + timedelta(days=1)) == IPOStatus.LISTED


def test_no_dates_is_unknown():
    assert compute_status(None, None, None, now=OPEN) == IPOStatus.UNKNOWN


def test_only_close_date_before_close_is_unknown():
    assert compute_status(None, CLOSE, None, now=OPEN) == IPOStatus.UNKNOWN


def test_every_date_combination_yields_a_status():
    options = [None, OPEN, CLOSE, LISTING]
    nows = [OPEN - timedelta(days=1), OPEN, CLOSE + timedelta(hours=1), LISTING + timedelta(hours=1)]
    for open_date, close_date, listing_date, now in itertools.product(options, options, options, nows):
        assert compute_status(open_date, close_date, listing_date, now=now) in set(IPOStatus)


def test_status_never_moves_backwards():
    moments = [OPEN - timedelta(days=2) + timedelta(hours=6 * i) for i in range(40)]
    statuses = [compute_status(OPEN, CLOSE, LISTING, now=m) for m in moments]
    positions = [ORDER.index(s) for s in statuses]
    assert positions == sorted(positions)
    assert statuses[0] == IPOStatus.UPCOMING
    assert statuses[-1] == IPOStatus.LISTED


def test_refresh_status_uses_clock():
    ipo = IPO(name="Wakefit Innovations", open_date=OPEN, close_date=CLOSE, listing_date=LISTING, status="Open")
    refresh_status(ipo, clock=lambda: LISTING + timedelta(days=1))
    assert ipo.status == "LISTED"


@pytest.mark.parametrize("value,expected", [
    ("live", {IPOStatus.ACTIVE}),
    ("LIVE ", {IPOStatus.ACTIVE}),
    ("upcoming", {IPOStatus.UPCOMING}),
    ("closed", {IPOStatus.CLOSED}),
    ("listed", {IPOStatus.LISTED}),
    ("all", None),
    ("", None),
    (None, None),
    ("whatever", None),
])
def test_statuses_for_filter(value, expected):
    assert statuses_for_filter(value) == expected

import logging
from datetime import datetime, timedelta
from typing import List, NamedTuple, Optional, Sequence, Tuple

from app.schemas.gmp import GMPSnapshot
from app.schemas.ipo import IPO
from app.utils.normalizers import split_tokens

logger = logging.getLogger(__name__)

RANK_STOCK_ID = 1
RANK_COMPANY_CODE = 2
RANK_NAME = 3

FUZZY_SUFFIXES = (" Ltd.", " Limited", " IPO", " BSE SME", " NSE SME", " Inc.")

ACTIVE_VIEW_LIMIT = 100
RECENTLY_CLOSED_DAYS = 30

# Stand-ins for absent dates in the live-window test
_EARLIEST = datetime(1900, 1, 1)
_LATEST = datetime(2100, 1, 1)


class Match(NamedTuple):
    ipo: IPO
    gmp: Optional[GMPSnapshot]
    rank: Optional[int]


def fuzzy_name(name: Optional[str]) -> str:
    """'Wakefit Innovations Ltd. IPO' → 'wakefit innovations'"""
    text = name or ""
    for suffix in FUZZY_SUFFIXES:
        text = text.replace(suffix, "")
    return text.strip().lower()


def _exact_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def match_rank(ipo: IPO, gmp: GMPSnapshot, min_fuzzy_length: int = 0) -> Optional[int]:
    """
    How well a GMP row matches an IPO: 1 shared stock id, 2 shared company
    code, 3 name match (exact, containment or same first two words).
    None when nothing matches.
    """
    if ipo.stock_id and gmp.stock_id and ipo.stock_id == gmp.stock_id:
        return RANK_STOCK_ID

    if ipo.company_code and gmp.company_code and ipo.company_code == gmp.company_code:
        return RANK_COMPANY_CODE

    ipo_name, gmp_name = _exact_name(ipo.name), _exact_name(gmp.ipo_name)
    if ipo_name and ipo_name == gmp_name:
        return RANK_NAME

    a, b = fuzzy_name(ipo.name), fuzzy_name(gmp.ipo_name)
    # no length guard unless configured; short names can over-match
    if a and b and min(len(a), len(b)) >= min_fuzzy_length and (a in b or b in a):
        return RANK_NAME

    ipo_tokens = split_tokens(ipo_name)
    if ipo_tokens[0] and ipo_tokens == split_tokens(gmp_name):
        return RANK_NAME

    return None


def _timestamp(value: Optional[datetime]) -> float:
    return value.timestamp() if value else float("-inf")


def best_match(
    ipo: IPO,
    gmps: Sequence[GMPSnapshot],
    min_fuzzy_length: int = 0,
) -> Tuple[Optional[GMPSnapshot], Optional[int]]:
    """Lowest rank wins, then the most recently updated row, then input order."""
    best = None
    best_key = None
    for index, gmp in enumerate(gmps):
        rank = match_rank(ipo, gmp, min_fuzzy_length)
        if rank is None:
            continue
        key = (rank, -_timestamp(gmp.last_updated), index)
        if best_key is None or key < best_key:
            best, best_key = gmp, key
    if best is None:
        return None, None
    return best, best_key[0]


def match_gmp_to_ipo(
    ipos: Sequence[IPO],
    gmps: Sequence[GMPSnapshot],
    min_fuzzy_length: int = 0,
) -> List[Match]:
    """One entry per IPO; gmp and rank are None for IPOs nothing matched."""
    matches = []
    for ipo in ipos:
        gmp, rank = best_match(ipo, gmps, min_fuzzy_length)
        matches.append(Match(ipo, gmp, rank))
    logger.debug("Matched GMP for %d of %d IPOs", sum(1 for m in matches if m.gmp), len(matches))
    return matches


def match_gmp_to_ipo_inner(
    ipos: Sequence[IPO],
    gmps: Sequence[GMPSnapshot],
    min_fuzzy_length: int = 0,
) -> List[Match]:
    """Only the IPOs that have a GMP match."""
    return [m for m in match_gmp_to_ipo(ipos, gmps, min_fuzzy_length) if m.gmp is not None]


def time_bucket(ipo: IPO, now: datetime) -> int:
    """
    1 subscription window open, 2 opens in the future,
    3 closed within the last 30 days, 4 anything else.
    """
    opens = ipo.open_date or _EARLIEST
    closes = ipo.close_date or _LATEST
    if opens <= now <= closes:
        return 1
    if ipo.open_date and ipo.open_date > now:
        return 2
    if ipo.close_date and ipo.close_date >= now - timedelta(days=RECENTLY_CLOSED_DAYS):
        return 3
    return 4


def sort_for_active_view(matches: Sequence[Match], now: datetime, limit: int = ACTIVE_VIEW_LIMIT) -> List[Match]:
    """Rank, then live > upcoming > recently closed > rest, then newest GMP, then newest IPO."""
    ordered = sorted(
        matches,
        key=lambda m: (
            m.rank if m.rank is not None else RANK_NAME + 1,
            time_bucket(m.ipo, now),
            -_timestamp(m.gmp.last_updated if m.gmp else None),
            -_timestamp(m.ipo.created_at),
        ),
    )
    return ordered[:limit]

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.db.models import IPORecord
from app.db.repositories import GMPRepository, IPORepository
from app.schemas.gmp import GMPSnapshot
from app.schemas.ipo import IPO, IPOWithGMP
from app.services.matcher import (
    ACTIVE_VIEW_LIMIT,
    Match,
    best_match,
    match_gmp_to_ipo,
    match_gmp_to_ipo_inner,
    sort_for_active_view,
)
from app.services.status import Clock, IPOStatus, refresh_status, statuses_for_filter, system_clock

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = {IPOStatus.ACTIVE.value, IPOStatus.UPCOMING.value}


def _with_gmp(match: Match) -> IPOWithGMP:
    return IPOWithGMP(**match.ipo.model_dump(), gmp=match.gmp, match_rank=match.rank)


class IPOService:
    """Read side. Every IPO leaves here with its status recomputed for now."""

    def __init__(self, session: Session, clock: Clock = system_clock):
        self.clock = clock
        self.ipos = IPORepository(session, clock)
        self.gmps = GMPRepository(session)

    def _to_ipo(self, record: IPORecord) -> IPO:
        return refresh_status(IPO.model_validate(record), self.clock)

    def _all_ipos(self) -> List[IPO]:
        return [self._to_ipo(r) for r in self.ipos.list_all()]

    def _all_gmp(self) -> List[GMPSnapshot]:
        return [GMPSnapshot.model_validate(r) for r in self.gmps.list_all()]

    def _find_record(self, ipo_id: str) -> Optional[IPORecord]:
        return self.ipos.get(ipo_id) or self.ipos.get_by_stock_id(ipo_id)

    def list_ipos(self, status: Optional[str] = None) -> List[IPO]:
        """status: live | upcoming | closed | listed; anything else returns all."""
        ipos = self._all_ipos()
        wanted = statuses_for_filter(status)
        if wanted is None:
            return ipos
        values = {s.value for s in wanted}
        return [i for i in ipos if i.status in values]

    def active_ipos(self) -> List[IPO]:
        return [i for i in self._all_ipos() if i.status in ACTIVE_STATUSES]

    def get_ipo(self, ipo_id: str) -> Optional[IPO]:
        record = self._find_record(ipo_id)
        return self._to_ipo(record) if record else None

    def get_ipo_with_gmp(self, ipo_id: str) -> Optional[IPOWithGMP]:
        ipo = self.get_ipo(ipo_id)
        if ipo is None:
            return None
        gmp, rank = best_match(ipo, self._all_gmp())
        return _with_gmp(Match(ipo, gmp, rank))

    def list_ipos_with_gmp(self) -> List[IPOWithGMP]:
        return [_with_gmp(m) for m in match_gmp_to_ipo(self._all_ipos(), self._all_gmp())]

    def active_ipos_with_gmp(self, limit: int = ACTIVE_VIEW_LIMIT) -> List[IPOWithGMP]:
        matches = match_gmp_to_ipo_inner(self._all_ipos(), self._all_gmp())
        return [_with_gmp(m) for m in sort_for_active_view(matches, self.clock(), limit)]

    def gmp_for_ipo(self, ipo_id: str) -> Optional[GMPSnapshot]:
        ipo = self.get_ipo(ipo_id)
        if ipo is None:
            return None
        gmp, _ = best_match(ipo, self._all_gmp())
        return gmp

    def all_gmp(self) -> List[GMPSnapshot]:
        return self._all_gmp()

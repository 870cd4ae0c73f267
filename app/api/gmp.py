import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.ipo import error_response, get_ipo_service
from app.core.errors import ScraperError
from app.db.repositories import GMPRepository
from app.db.session import get_db
from app.schemas.gmp import GMPBatchResult, GMPSnapshot
from app.schemas.ipo import APIResponse
from app.scraper.gmp import GmpScraper
from app.services.batch import refresh_gmp
from app.services.ipo_service import IPOService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gmp", tags=["GMP"])


def get_gmp_scraper() -> GmpScraper:
    return GmpScraper()


@router.get("", response_model=APIResponse[List[GMPSnapshot]])
def list_gmp(service: IPOService = Depends(get_ipo_service)):
    rows = service.all_gmp()
    return APIResponse(data=rows, count=len(rows))


@router.get("/ipo/{ipo_id}", response_model=APIResponse[Optional[GMPSnapshot]])
def get_gmp_for_ipo(ipo_id: str, service: IPOService = Depends(get_ipo_service)):
    if service.get_ipo(ipo_id) is None:
        return error_response(404, f"IPO not found: {ipo_id}")
    return APIResponse(data=service.gmp_for_ipo(ipo_id))


@router.post("/refresh", response_model=APIResponse[GMPBatchResult])
def refresh_gmp_api(scraper: GmpScraper = Depends(get_gmp_scraper), db: Session = Depends(get_db)):
    """Scrape the live GMP table now and upsert every row."""
    try:
        result = refresh_gmp(scraper, GMPRepository(db))
    except ScraperError as e:
        logger.error("GMP refresh failed: %s", e)
        return error_response(502, str(e))
    return APIResponse(data=result, count=result.saved)

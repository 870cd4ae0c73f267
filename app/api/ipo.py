import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.errors import ScraperError
from app.db.repositories import IPORepository
from app.db.session import get_db
from app.schemas.ipo import (
    IPO,
    APIResponse,
    BatchReport,
    IPOListItem,
    IPOWithGMP,
    ScrapeBatchItem,
    ScrapeBatchRequest,
)
from app.scraper.chittorgarh import ChittorgarhScraper, analyze_completeness, build_scraper
from app.services.batch import BatchOrchestrator
from app.services.ipo_service import IPOService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ipo", tags=["IPO"])


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def get_ipo_service(db: Session = Depends(get_db)) -> IPOService:
    return IPOService(db)


def get_scraper() -> ChittorgarhScraper:
    return build_scraper()


@router.get("", response_model=APIResponse[List[IPO]])
def list_ipos(
    status: Optional[str] = Query(None, description="live | upcoming | closed | listed | all"),
    service: IPOService = Depends(get_ipo_service),
):
    """All IPOs, optionally filtered by their current status."""
    ipos = service.list_ipos(status)
    return APIResponse(data=ipos, count=len(ipos))


@router.get("/gmp", response_model=APIResponse[List[IPOWithGMP]])
def list_ipos_with_gmp(service: IPOService = Depends(get_ipo_service)):
    """Every IPO with its best GMP match; `gmp` and `match_rank` are null when none matched."""
    ipos = service.list_ipos_with_gmp()
    return APIResponse(data=ipos, count=len(ipos))


@router.get("/active", response_model=APIResponse[List[IPO]])
def list_active_ipos(service: IPOService = Depends(get_ipo_service)):
    ipos = service.active_ipos()
    return APIResponse(data=ipos, count=len(ipos))


@router.get("/active/gmp", response_model=APIResponse[List[IPOWithGMP]])
def list_active_ipos_with_gmp(
    limit: int = Query(100, ge=1, le=100),
    service: IPOService = Depends(get_ipo_service),
):
    """
    IPOs that have GMP data: live first, then upcoming, then closed in the
    last 30 days, newest GMP first within each group.
    """
    ipos = service.active_ipos_with_gmp(limit)
    return APIResponse(data=ipos, count=len(ipos))


@router.get("/{ipo_id}", response_model=APIResponse[IPO])
def get_ipo(ipo_id: str, service: IPOService = Depends(get_ipo_service)):
    ipo = service.get_ipo(ipo_id)
    if ipo is None:
        return error_response(404, f"IPO not found: {ipo_id}")
    return APIResponse(data=ipo)


@router.get("/{ipo_id}/gmp", response_model=APIResponse[IPOWithGMP])
def get_ipo_with_gmp(ipo_id: str, service: IPOService = Depends(get_ipo_service)):
    """The IPO with its best GMP match; `gmp` is null when none matched."""
    ipo = service.get_ipo_with_gmp(ipo_id)
    if ipo is None:
        return error_response(404, f"IPO not found: {ipo_id}")
    return APIResponse(data=ipo)


@router.post("/scrape", response_model=APIResponse[ScrapeBatchItem])
def scrape_ipo_api(
    item: IPOListItem,
    save: bool = Query(True, description="Upsert the record when it scraped cleanly"),
    scraper: ChittorgarhScraper = Depends(get_scraper),
    db: Session = Depends(get_db),
):
    """
    Scrape one IPO from its list entry. A failed scrape still answers 200
    with the fallback record and the error, so callers can judge completeness.
    """
    ipo, err = scraper.extract_ipo(item)
    result = ScrapeBatchItem(stock_id=ipo.stock_id, name=ipo.name, data=ipo, completeness=analyze_completeness(ipo))
    if err is not None:
        result.error = str(err)
    elif save:
        IPORepository(db).upsert(ipo)
    return APIResponse(success=err is None, data=result, error=result.error)


@router.post("/scrape/batch", response_model=APIResponse[BatchReport])
def scrape_ipo_batch(
    body: ScrapeBatchRequest,
    scraper: ChittorgarhScraper = Depends(get_scraper),
    db: Session = Depends(get_db),
):
    """
    Run the IPO update now: fetch the list, scrape each entry (optionally the
    first `limit` only) and upsert. Answers 502 when nothing could be scraped.
    """
    orchestrator = BatchOrchestrator(scraper, IPORepository(db))
    try:
        report = orchestrator.run(limit=body.limit, save=body.save)
    except ScraperError as e:
        logger.error("IPO list fetch failed: %s", e)
        return error_response(502, str(e))

    if report.attempted and report.success_count == 0:
        return error_response(502, report.error or "failed to scrape any IPOs")
    return APIResponse(data=report, error=report.error)

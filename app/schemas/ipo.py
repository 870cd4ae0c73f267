from pydantic import BaseModel, Field
from typing import Generic, List, Optional, TypeVar, Union
from datetime import datetime

from app.schemas.gmp import GMPSnapshot

T = TypeVar("T")


# --- Source list models ---

class IPOListItem(BaseModel):
    """One entry of the Chittorgarh list API (ipoDropDownList)."""
    id: int
    ipo_news_title: str
    urlrewrite_folder_name: str = ""
    logo_url: Optional[str] = None


class IPOListResponse(BaseModel):
    status: int = 0
    msg: Optional[Union[int, str]] = None
    ipoDropDownList: List[IPOListItem] = Field(default_factory=list)


# --- MAIN IPO MODEL ---

class IPO(BaseModel):
    id: Optional[str] = None
    stock_id: Optional[str] = None
    company_code: Optional[str] = None
    slug: Optional[str] = None

    name: str
    symbol: Optional[str] = None
    registrar: Optional[str] = None
    logo_url: Optional[str] = None
    description: Optional[str] = None
    about: Optional[str] = None
    strengths: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)

    open_date: Optional[datetime] = None
    close_date: Optional[datetime] = None
    result_date: Optional[datetime] = None
    listing_date: Optional[datetime] = None

    price_band_low: Optional[float] = None
    price_band_high: Optional[float] = None
    issue_size: Optional[str] = None
    min_qty: Optional[int] = None
    min_amount: Optional[int] = None

    status: Optional[str] = None
    subscription_status: Optional[str] = None
    listing_gain: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IPOWithGMP(IPO):
    """IPO plus its best GMP match; gmp is None when nothing matched."""
    gmp: Optional[GMPSnapshot] = None
    match_rank: Optional[int] = None


# --- Ingestion reporting ---

class DataCompleteness(BaseModel):
    total_fields: int
    extracted_fields: int
    missing_fields: List[str] = Field(default_factory=list)
    critical_missing: List[str] = Field(default_factory=list)
    completeness_pct: float = 0.0

    @property
    def is_critical_complete(self) -> bool:
        return not self.critical_missing


class ScrapeBatchItem(BaseModel):
    stock_id: Optional[str] = None
    name: str
    data: Optional[IPO] = None
    completeness: Optional[DataCompleteness] = None
    error: Optional[str] = None


class ScrapeBatchRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1, description="Only process the first N list entries")
    save: bool = True


class BatchReport(BaseModel):
    attempted: int = 0
    full_successes: int = 0
    partial_successes: int = 0
    failures: int = 0
    cancelled: bool = False
    error: Optional[str] = None
    items: List[ScrapeBatchItem] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return self.full_successes + self.partial_successes


# --- Response envelope ---

class APIResponse(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    count: Optional[int] = None
    error: Optional[str] = None

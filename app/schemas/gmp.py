from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class ExtractionMetadata(BaseModel):
    extracted_fields: List[str] = Field(default_factory=list)
    failed_fields: List[str] = Field(default_factory=list)
    confidence_score: int = 0
    table_structure: str = "investorgain_standard"
    extraction_time: Optional[datetime] = None
    data_source: str = "investorgain.com"


class GMPSnapshot(BaseModel):
    """
    One row of the live GMP table.
    Numeric fields stay None when the cell had no number, so a quoted
    GMP of 0 is distinguishable from a missing one.
    """
    id: Optional[int] = None
    ipo_name: str
    company_code: Optional[str] = None
    stock_id: Optional[str] = None

    gmp_value: Optional[float] = None
    gain_percent: Optional[float] = None
    ipo_price: Optional[float] = None
    estimated_listing: Optional[float] = None
    gmp_low: Optional[float] = None
    gmp_high: Optional[float] = None

    subscription_status: Optional[str] = None
    listing_gain: Optional[str] = None
    rating: int = 0
    ipo_status: Optional[str] = None
    exchange: Optional[str] = None
    sub2: Optional[float] = None
    kostak: Optional[float] = None

    data_source: str = "investorgain.com"
    extraction_metadata: Optional[ExtractionMetadata] = None
    updated_on: Optional[str] = None
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class GMPBatchResult(BaseModel):
    scraped: int
    saved: int
    failed: int
    errors: List[str] = Field(default_factory=list)

import uuid

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class IPORecord(Base):
    __tablename__ = "ipo_list"

    id = Column(String(36), primary_key=True, default=_new_id)
    stock_id = Column(String(50), unique=True, nullable=True)
    company_code = Column(String(255), index=True)
    slug = Column(String(255))

    name = Column(String(255), nullable=False)
    symbol = Column(String(50))
    registrar = Column(String(255))
    logo_url = Column(String(500))
    description = Column(Text)
    about = Column(Text)
    strengths = Column(JSON, default=list)
    risks = Column(JSON, default=list)

    open_date = Column(DateTime)
    close_date = Column(DateTime)
    result_date = Column(DateTime)
    listing_date = Column(DateTime)

    price_band_low = Column(Float)
    price_band_high = Column(Float)
    issue_size = Column(String(100))
    min_qty = Column(Integer)
    min_amount = Column(Integer)

    # advisory only, recomputed on read
    status = Column(String(20))
    subscription_status = Column(String(255))
    listing_gain = Column(String(100))

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class GMPRecord(Base):
    __tablename__ = "ipo_gmp"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ipo_name = Column(String(255), unique=True, nullable=False)
    company_code = Column(String(255), index=True)
    stock_id = Column(String(50), nullable=True)

    gmp_value = Column(Float)
    gain_percent = Column(Float)
    ipo_price = Column(Float)
    estimated_listing = Column(Float)
    gmp_low = Column(Float)
    gmp_high = Column(Float)
    sub2 = Column(Float)
    kostak = Column(Float)

    subscription_status = Column(String(100))
    listing_gain = Column(String(50))
    rating = Column(Integer, default=0)
    ipo_status = Column(String(20))
    exchange = Column(String(20))

    data_source = Column(String(100), default="investorgain.com")
    extraction_metadata = Column(JSON)
    updated_on = Column(String(255))
    last_updated = Column(DateTime, server_default=func.now())

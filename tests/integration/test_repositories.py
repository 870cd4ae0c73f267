from datetime import datetime

import pytest

from app.db.models import GMPRecord, IPORecord
from app.db.repositories import GMPRepository, IPORepository
from app.schemas.gmp import ExtractionMetadata, GMPSnapshot
from app.schemas.ipo import IPO

NOW = datetime(2025, 12, 9, 12, 0)


def wakefit(**kw):
    values = dict(
        stock_id="1234",
        name="Wakefit Innovations Ltd.",
        registrar="KFin Technologies Ltd.",
        open_date=datetime(2025, 12, 8),
        close_date=datetime(2025, 12, 10),
        listing_date=datetime(2025, 12, 15),
        price_band_low=185.0,
        price_band_high=195.0,
        strengths=["Strong brand"],
    )
    values.update(kw)
    return IPO(**values)


# --- IPO ---

def test_upsert_inserts_with_derived_fields(db_session):
    repo = IPORepository(db_session, clock=lambda: NOW)
    record = repo.upsert(wakefit())

    assert record.id
    assert record.company_code == "wakefit-innovations"
    assert record.slug == "wakefit-innovations"
    assert record.status == "ACTIVE"
    assert record.strengths == ["Strong brand"]
    assert record.risks == []
    assert record.created_at is not None


def test_upsert_updates_by_stock_id(db_session):
    repo = IPORepository(db_session, clock=lambda: NOW)
    first = repo.upsert(wakefit())
    first_id, created_at = first.id, first.created_at

    second = repo.upsert(wakefit(name="Wakefit Innovations Limited", price_band_high=200.0, registrar=None))

    assert db_session.query(IPORecord).count() == 1
    assert second.id == first_id
    assert second.created_at == created_at
    assert second.name == "Wakefit Innovations Limited"
    assert second.price_band_high == pytest.approx(200.0)
    assert second.registrar == "Unknown"


def test_upsert_without_stock_id_uses_company_code(db_session):
    repo = IPORepository(db_session, clock=lambda: NOW)
    first = repo.upsert(wakefit(stock_id=None))
    second = repo.upsert(wakefit(stock_id=None, name="Wakefit Innovations Limited", symbol="WAKEFIT"))

    assert db_session.query(IPORecord).count() == 1
    assert second.id == first.id
    assert second.symbol == "WAKEFIT"
    assert repo.get_by_company_code("wakefit-innovations") is not None


def test_distinct_stock_ids_are_distinct_rows(db_session):
    repo = IPORepository(db_session, clock=lambda: NOW)
    repo.upsert(wakefit())
    repo.upsert(wakefit(stock_id="5678", name="Meesho Ltd"))
    assert db_session.query(IPORecord).count() == 2
    assert repo.get_by_stock_id("5678").company_code == "meesho"


def test_list_all_orders_by_open_date(db_session):
    repo = IPORepository(db_session, clock=lambda: NOW)
    repo.upsert(wakefit())
    repo.upsert(wakefit(stock_id="5678", name="Meesho Ltd", open_date=datetime(2025, 12, 12)))
    assert [r.stock_id for r in repo.list_all()] == ["5678", "1234"]


# --- GMP ---

def snapshot(**kw):
    values = dict(
        ipo_name="Wakefit Innovations",
        gmp_value=25.0,
        gain_percent=30.86,
        rating=3,
        last_updated=NOW,
        extraction_metadata=ExtractionMetadata(extracted_fields=["ipo_name"], confidence_score=55, extraction_time=NOW),
    )
    values.update(kw)
    return GMPSnapshot(**values)


def test_gmp_upsert_by_name(db_session):
    repo = GMPRepository(db_session)
    repo.upsert(snapshot())
    record = repo.upsert(snapshot(gmp_value=0.0, gain_percent=0.0))

    assert db_session.query(GMPRecord).count() == 1
    assert record.gmp_value == 0.0
    assert record.company_code == "wakefit-innovations"
    assert record.extraction_metadata["confidence_score"] == 55


def test_gmp_refresh_keeps_stored_stock_id(db_session):
    repo = GMPRepository(db_session)
    repo.upsert(snapshot(stock_id="1234"))
    record = repo.upsert(snapshot(gmp_value=30.0))

    assert record.stock_id == "1234"
    assert record.gmp_value == 30.0

    record = repo.upsert(snapshot(stock_id="5678"))
    assert record.stock_id == "5678"


def test_gmp_record_reads_back_as_snapshot(db_session):
    repo = GMPRepository(db_session)
    repo.upsert(snapshot())
    restored = GMPSnapshot.model_validate(repo.get_by_name("Wakefit Innovations"))
    assert restored.gmp_value == pytest.approx(25.0)
    assert restored.extraction_metadata.confidence_score == 55
    assert restored.last_updated == NOW


def test_gmp_upsert_many(db_session):
    repo = GMPRepository(db_session)
    saved, errors = repo.upsert_many([snapshot(), snapshot(ipo_name="Meesho", gmp_value=None)])
    assert saved == 2
    assert errors == []
    assert {r.ipo_name for r in repo.list_all()} == {"Wakefit Innovations", "Meesho"}
    assert repo.get_by_name("Meesho").gmp_value is None

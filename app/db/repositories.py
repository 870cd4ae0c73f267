import logging
from typing import Any, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models import Base, GMPRecord, IPORecord
from app.schemas.gmp import GMPSnapshot
from app.schemas.ipo import IPO
from app.services.status import Clock, compute_status, system_clock
from app.utils.normalizers import generate_company_code, generate_slug

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)

UNKNOWN_REGISTRAR = "Unknown"

IPO_FIELDS = (
    "stock_id",
    "company_code",
    "slug",
    "name",
    "symbol",
    "registrar",
    "logo_url",
    "description",
    "about",
    "strengths",
    "risks",
    "open_date",
    "close_date",
    "result_date",
    "listing_date",
    "price_band_low",
    "price_band_high",
    "issue_size",
    "min_qty",
    "min_amount",
    "status",
    "subscription_status",
    "listing_gain",
)

GMP_UPDATE_FIELDS = (
    "company_code",
    "stock_id",
    "gmp_value",
    "gain_percent",
    "ipo_price",
    "estimated_listing",
    "gmp_low",
    "gmp_high",
    "sub2",
    "kostak",
    "subscription_status",
    "listing_gain",
    "rating",
    "ipo_status",
    "exchange",
    "data_source",
    "extraction_metadata",
    "updated_on",
    "last_updated",
)


def gmp_update_set(stmt) -> dict:
    """Conflict updates for a GMP row; a refresh without stock_id keeps the stored one."""
    set_ = {f: stmt.excluded[f] for f in GMP_UPDATE_FIELDS}
    set_["stock_id"] = func.coalesce(stmt.excluded.stock_id, GMPRecord.stock_id)
    return set_


def dialect_insert(session: Session):
    """The dialect-specific insert() that supports ON CONFLICT."""
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise ValueError(f"upsert is not supported on {name}")


class BaseRepository(Generic[ModelType]):
    def __init__(self, session: Session, model: Type[ModelType]):
        self.session = session
        self.model = model

    def get(self, id: Any) -> Optional[ModelType]:
        return self.session.get(self.model, id)


class IPORepository(BaseRepository[IPORecord]):
    def __init__(self, session: Session, clock: Clock = system_clock):
        super().__init__(session, IPORecord)
        self.clock = clock

    def get_by_stock_id(self, stock_id: str) -> Optional[IPORecord]:
        return self.session.query(IPORecord).filter(IPORecord.stock_id == stock_id).first()

    def get_by_company_code(self, company_code: str) -> Optional[IPORecord]:
        return (
            self.session.query(IPORecord)
            .filter(IPORecord.company_code == company_code)
            .order_by(IPORecord.created_at.desc())
            .first()
        )

    def list_all(self) -> List[IPORecord]:
        return self.session.query(IPORecord).order_by(IPORecord.open_date.desc(), IPORecord.created_at.desc()).all()

    def prepare(self, ipo: IPO) -> dict:
        """
        Column values for a write. company_code / slug are derived from the
        name when missing; registrar and status get defaults.
        """
        values = {f: getattr(ipo, f) for f in IPO_FIELDS}
        values["company_code"] = values["company_code"] or generate_company_code(ipo.name)
        values["slug"] = values["slug"] or generate_slug(ipo.name)
        values["strengths"] = list(values["strengths"] or [])
        values["risks"] = list(values["risks"] or [])
        if not values["registrar"]:
            values["registrar"] = UNKNOWN_REGISTRAR
        if not values["status"]:
            values["status"] = compute_status(ipo.open_date, ipo.close_date, ipo.listing_date, self.clock()).value
        return values

    def upsert(self, ipo: IPO, commit: bool = True) -> IPORecord:
        values = self.prepare(ipo)

        if not values["stock_id"]:
            return self._upsert_by_company_code(values, commit)

        insert = dialect_insert(self.session)
        stmt = insert(IPORecord).values(**values, updated_at=func.now())
        stmt = stmt.on_conflict_do_update(
            index_elements=[IPORecord.stock_id],
            set_={
                **{f: stmt.excluded[f] for f in IPO_FIELDS if f != "stock_id"},
                "updated_at": func.now(),
            },
        )
        self.session.execute(stmt)
        if commit:
            self.session.commit()
        else:
            self.session.flush()

        record = self.get_by_stock_id(values["stock_id"])
        if record is not None:
            self.session.refresh(record)
        return record

    def _upsert_by_company_code(self, values: dict, commit: bool) -> IPORecord:
        record = self.get_by_company_code(values["company_code"])
        if record is None:
            record = IPORecord(**values)
            self.session.add(record)
        else:
            for key, value in values.items():
                setattr(record, key, value)
            record.updated_at = func.now()
        if commit:
            self.session.commit()
        else:
            self.session.flush()
        self.session.refresh(record)
        return record


class GMPRepository(BaseRepository[GMPRecord]):
    def __init__(self, session: Session):
        super().__init__(session, GMPRecord)

    def list_all(self) -> List[GMPRecord]:
        return self.session.query(GMPRecord).order_by(GMPRecord.last_updated.desc(), GMPRecord.id).all()

    def get_by_name(self, ipo_name: str) -> Optional[GMPRecord]:
        return self.session.query(GMPRecord).filter(GMPRecord.ipo_name == ipo_name).first()

    def upsert(self, snapshot: GMPSnapshot, commit: bool = True) -> GMPRecord:
        metadata = snapshot.extraction_metadata.model_dump(mode="json") if snapshot.extraction_metadata else None
        values = {f: getattr(snapshot, f) for f in GMP_UPDATE_FIELDS}
        values["extraction_metadata"] = metadata
        values["company_code"] = values["company_code"] or generate_company_code(snapshot.ipo_name)
        values["last_updated"] = values["last_updated"] or func.now()

        insert = dialect_insert(self.session)
        stmt = insert(GMPRecord).values(ipo_name=snapshot.ipo_name, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[GMPRecord.ipo_name],
            set_=gmp_update_set(stmt),
        )
        self.session.execute(stmt)
        if commit:
            self.session.commit()
        else:
            self.session.flush()

        record = self.get_by_name(snapshot.ipo_name)
        if record is not None:
            self.session.refresh(record)
        return record

    def upsert_many(self, snapshots: Sequence[GMPSnapshot]) -> Tuple[int, List[str]]:
        """Writes each snapshot on its own; a failing row is rolled back, skipped and reported."""
        saved = 0
        errors = []
        for snapshot in snapshots:
            try:
                self.upsert(snapshot)
                saved += 1
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.warning("Failed to save GMP row for %s: %s", snapshot.ipo_name, e)
                errors.append(f"{snapshot.ipo_name}: {e}")
        logger.info("Saved %d/%d GMP rows", saved, len(snapshots))
        return saved, errors

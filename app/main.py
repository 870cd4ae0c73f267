import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.gmp import router as gmp_router
from app.api.ipo import router as ipo_router
from app.core.config import settings
from app.core.logging import get_log_config
from app.db.session import init_db
from app.jobs.scheduler import default_jobs

logging.config.dictConfig(get_log_config())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    jobs = default_jobs() if settings.ENABLE_JOBS else []
    for job in jobs:
        job.start()
    logger.info("%s started (%d background jobs)", settings.PROJECT_NAME, len(jobs))
    yield
    for job in jobs:
        job.stop()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(ipo_router)
app.include_router(gmp_router)


@app.get("/health", tags=["Health"])
def health():
    return {"success": True, "data": {"status": "ok"}}

import os
from pydantic import BaseModel


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "IPO GMP Tracker")

    # Default to SQLite for local development if Postgres is unavailable
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./ipo_gmp.db")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    CHITTORGARH_BASE_URL: str = os.getenv("CHITTORGARH_BASE_URL", "https://www.chittorgarh.com")
    CHITTORGARH_LIST_URL: str = os.getenv(
        "CHITTORGARH_LIST_URL", "https://webnodejs.chittorgarh.com/cloud/ipo/list-read"
    )
    GMP_URL: str = os.getenv("GMP_URL", "https://www.investorgain.com/report/live-ipo-gmp/331/all/")

    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "30"))
    RATE_LIMIT_SECONDS: float = float(os.getenv("RATE_LIMIT_SECONDS", "1.0"))
    MAX_RETRY_ATTEMPTS: int = int(os.getenv("MAX_RETRY_ATTEMPTS", "3"))
    BATCH_TIMEOUT_SECONDS: float = float(os.getenv("BATCH_TIMEOUT_SECONDS", "900"))

    IPO_JOB_INTERVAL_HOURS: float = float(os.getenv("IPO_JOB_INTERVAL_HOURS", "8"))
    GMP_JOB_INTERVAL_HOURS: float = float(os.getenv("GMP_JOB_INTERVAL_HOURS", "1"))
    ENABLE_JOBS: bool = _bool_env("ENABLE_JOBS")


class ScraperConfig(BaseModel):
    """Tunables shared by the Chittorgarh and GMP scrapers."""
    base_url: str = "https://www.chittorgarh.com"
    list_url: str = "https://webnodejs.chittorgarh.com/cloud/ipo/list-read"
    gmp_url: str = "https://www.investorgain.com/report/live-ipo-gmp/331/all/"
    timeout: float = 30.0
    rate_limit: float = 1.0
    retry_count: int = 3

    @classmethod
    def from_settings(cls, s: "Settings") -> "ScraperConfig":
        return cls(
            base_url=s.CHITTORGARH_BASE_URL,
            list_url=s.CHITTORGARH_LIST_URL,
            gmp_url=s.GMP_URL,
            timeout=s.REQUEST_TIMEOUT,
            rate_limit=s.RATE_LIMIT_SECONDS,
            retry_count=s.MAX_RETRY_ATTEMPTS,
        )


settings = Settings()

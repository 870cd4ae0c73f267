from app.core.config import settings


def get_log_config(level: str = None) -> dict:
    level = (level or settings.LOG_LEVEL).upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "app": {"handlers": ["console"], "level": level, "propagate": False},
            # urllib3 logs every retry at DEBUG
            "urllib3": {"level": "WARNING"},
        },
        "root": {"handlers": ["console"], "level": "WARNING"},
    }

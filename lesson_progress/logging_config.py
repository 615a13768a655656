import os
from logging.config import dictConfig
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(threadName)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Route service and uvicorn logs through one stderr handler.

    ``LESSON_LOG_LEVEL`` sets the level when none is passed. Progress events
    stay at INFO unless ``LESSON_QUIET_EVENTS=1``; ``LESSON_DEBUG_HTTP=1``
    turns on per-request access logs and SQL echo.
    """
    root_level = (level or os.getenv("LESSON_LOG_LEVEL", "INFO")).upper()
    debug_http = os.getenv("LESSON_DEBUG_HTTP", "0") == "1"
    quiet_events = os.getenv("LESSON_QUIET_EVENTS", "0") == "1"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"service": {"format": LOG_FORMAT}},
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "service",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                "lesson_progress.telemetry": {"level": "WARNING" if quiet_events else "INFO"},
                "uvicorn.access": {"level": "DEBUG" if debug_http else "WARNING"},
                "sqlalchemy.engine": {"level": "INFO" if debug_http else "WARNING"},
            },
            "root": {"handlers": ["stderr"], "level": root_level},
        }
    )

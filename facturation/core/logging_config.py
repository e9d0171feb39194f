from __future__ import annotations

import logging
import logging.config
from collections.abc import Iterable
from pathlib import Path

from facturation.core.config import settings

PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = PROJECT_ROOT / "logs"

ACCESS_LOG_EXCLUDED_PATHS: tuple[str, ...] = ("/health",)


class AccessPathExcludeFilter(logging.Filter):
    """Drop uvicorn access records for the configured request paths."""

    def __init__(self, paths: Iterable[str]) -> None:
        super().__init__()
        self._paths = {path.rstrip("/") or "/" for path in paths}

    def filter(self, record: logging.LogRecord) -> bool:
        args = record.args
        if not isinstance(args, tuple) or len(args) < 3:
            return True
        path = str(args[2]).split("?", 1)[0].rstrip("/") or "/"
        return path not in self._paths


def configure_logging() -> None:
    """Configure application-wide logging with rotating file handlers."""

    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logging.captureWarnings(True)
    console_level = "DEBUG" if settings.DEBUG else "INFO"

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
        "filters": {
            "access_exclude": {
                "()": AccessPathExcludeFilter,
                "paths": list(ACCESS_LOG_EXCLUDED_PATHS),
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": console_level,
                "formatter": "verbose",
            },
            "backend_file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "DEBUG",
                "formatter": "verbose",
                "filename": str(LOG_DIR / "backend.log"),
                "maxBytes": 5 * 1024 * 1024,
                "backupCount": 5,
                "encoding": "utf-8",
            },
        },
        "loggers": {
            "": {
                "handlers": ["console", "backend_file"],
                "level": "DEBUG",
            },
            "uvicorn": {
                "handlers": ["console", "backend_file"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["console", "backend_file"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["console", "backend_file"],
                "filters": ["access_exclude"],
                "level": "INFO",
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)


__all__ = ["AccessPathExcludeFilter", "configure_logging", "LOG_DIR"]

"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
import re
from pathlib import Path
from typing import Iterable

import structlog

_LOGGING_INITIALISED = False
_LOG_DIR: Path | None = None


def _default_log_dir() -> Path:
    if _LOG_DIR is not None:
        return _LOG_DIR
    env_root = os.environ.get("SYNDICATOR_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "unnamed"


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED, _LOG_DIR
    if log_dir is not None and not _LOGGING_INITIALISED:
        _LOG_DIR = Path(log_dir)
    log_dir = _default_log_dir()
    error_log = log_dir / "error.log"
    main_log = log_dir / "syndicator.log"
    sites_dir = log_dir / "sites"
    sites_dir.mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    main_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "plain": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "plain",
                    },
                    "main_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(main_log),
                        "formatter": "plain",
                        "encoding": "utf-8",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                        "encoding": "utf-8",
                    },
                },
                "loggers": {
                    "syndicator": {
                        "handlers": ["console", "main_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("syndicator")


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Module level logger under the ``syndicator`` namespace."""

    if name and name != "syndicator" and not name.startswith("syndicator."):
        name = f"syndicator.{name}"
    return structlog.get_logger(name or "syndicator")


def site_logger(site_id: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return a logger bound to a specific site and ensure its file handler exists."""

    configure_logging(verbose)
    safe = _safe_name(site_id)
    site_log_path = _default_log_dir() / "sites" / f"{safe}.log"
    site_log_path.parent.mkdir(parents=True, exist_ok=True)

    logger_name = f"syndicator.site.{safe}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(site_log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(site_log_path, encoding="utf-8")
        global_logger = logging.getLogger("syndicator")
        if global_logger.handlers:
            file_handler.setFormatter(global_logger.handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(logger_name).bind(site_id=site_id)


def site_log_path(site_id: str) -> Path:
    return _default_log_dir() / "sites" / f"{_safe_name(site_id)}.log"


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_site_logs() -> Iterable[Path]:
    sites_dir = _default_log_dir() / "sites"
    if not sites_dir.exists():
        return []
    return sorted(p for p in sites_dir.glob("*.log"))


__all__ = [
    "available_site_logs",
    "configure_logging",
    "get_logger",
    "site_log_path",
    "site_logger",
    "tail_log",
]

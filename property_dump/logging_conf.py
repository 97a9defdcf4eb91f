"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path

import structlog

from .config.loader import ConfigLocator

_LOGGING_INITIALISED = False


def _default_log_dir() -> Path:
    return ConfigLocator().logs_dir


def _file_handler(path: Path, level: str) -> dict[str, str]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "formatter": "json",
        "encoding": "utf-8",
    }


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return the application logger.

    Only the first call takes effect; later calls just hand back the logger.
    """

    global _LOGGING_INITIALISED
    if _LOGGING_INITIALISED:
        return structlog.get_logger("property_dump")

    log_dir = log_dir or _default_log_dir()
    (log_dir / "locales").mkdir(parents=True, exist_ok=True)
    level = "DEBUG" if verbose else "INFO"
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            # one JSON line per event, on the console and in every file
            "formatters": {
                "json": {
                    "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                    "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                }
            },
            "handlers": {
                "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
                "harvest_file": _file_handler(log_dir / "harvest.log", "INFO"),
                # failures only, for quick triage after a long run
                "error_file": _file_handler(log_dir / "error.log", "ERROR"),
            },
            "loggers": {
                "property_dump": {
                    "handlers": ["console", "harvest_file", "error_file"],
                    "level": level,
                    "propagate": False,
                },
            },
        }
    )

    # structlog only builds the event dict; rendering happens in the stdlib formatter
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
    return structlog.get_logger("property_dump")


def locale_logger(locale: str, verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Return a logger bound to one locale, mirrored into its own log file."""

    configure_logging(verbose, log_dir)
    log_path = (log_dir or _default_log_dir()) / "locales" / f"{locale}.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # child of "property_dump", so console and harvest.log still receive the events
    logger_name = f"property_dump.locale.{locale}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        # same JSON formatter as the shared handlers
        root_logger = logging.getLogger("property_dump")
        if root_logger.handlers:
            file_handler.setFormatter(root_logger.handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(logger_name).bind(locale=locale)


__all__ = ["configure_logging", "locale_logger"]

"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable

import structlog

LOGGER_NAME = "clerk_trades"
_LOGGING_INITIALISED = False


def _default_log_dir() -> Path:
    env_root = os.environ.get("CLERK_TRADES_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def run_log_path(now: datetime | None = None) -> Path:
    """Return the per-run log file name used by ``--log`` (MMDDHHMM.log)."""

    stamp = (now or datetime.now()).strftime("%m%d%H%M")
    return _default_log_dir() / f"{stamp}.log"


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = _default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    error_log = log_dir / "error.log"
    app_log = log_dir / "clerk_trades.log"
    error_log.touch(exist_ok=True)
    app_log.touch(exist_ok=True)
    level = "DEBUG" if verbose else "INFO"

    if not _LOGGING_INITIALISED:
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
                    "app_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(app_log),
                        "formatter": "plain",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                    },
                },
                "loggers": {
                    LOGGER_NAME: {
                        "handlers": ["console", "app_file", "error_file"],
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
    elif verbose:
        # Components may have configured logging before the CLI parsed --verbose.
        py_logger = logging.getLogger(LOGGER_NAME)
        py_logger.setLevel(logging.DEBUG)
        for handler in py_logger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(
                handler, logging.FileHandler
            ):
                handler.setLevel(logging.DEBUG)

    if log_file is not None:
        _attach_file_handler(log_file)
    return structlog.get_logger(LOGGER_NAME)


def _attach_file_handler(path: Path) -> None:
    py_logger = logging.getLogger(LOGGER_NAME)
    path.parent.mkdir(parents=True, exist_ok=True)
    if any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(path)
        for handler in py_logger.handlers
    ):
        return
    file_handler = logging.FileHandler(path, encoding="utf-8")
    if py_logger.handlers:
        file_handler.setFormatter(py_logger.handlers[0].formatter)
    file_handler.setLevel(py_logger.level or logging.INFO)
    py_logger.addHandler(file_handler)


def component_logger(component: str) -> structlog.BoundLogger:
    """Return the application logger bound to a pipeline component."""

    return configure_logging().bind(component=component)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_logs() -> Iterable[Path]:
    """Yield available log file paths."""

    log_dir = _default_log_dir()
    if not log_dir.exists():
        return []
    return sorted(p for p in log_dir.glob("*.log"))


__all__ = [
    "available_logs",
    "component_logger",
    "configure_logging",
    "run_log_path",
    "tail_log",
]

"""Centralized logging configuration."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import ConfigurationError

if TYPE_CHECKING:
    from .config import AppConfig

LOGGER = logging.getLogger(__name__)

LOG_FILENAME = "ndt7_exporter.log"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def resolve_level(name: str) -> int:
    level = str(name).upper()
    if level not in LEVELS:
        raise ConfigurationError(f"Unknown logging.level {name!r}, expected one of {', '.join(LEVELS)}")
    return getattr(logging, level)


def configure_logging(config: AppConfig) -> Path:
    """Send records to a rotating file under ``paths.logs_dir`` and to stderr.

    Test progress lines go to stdout through the emitter chain, so stderr only
    carries log records. Returns the log file path.
    """

    level = resolve_level(config.logging.level)
    log_dir = config.paths.logs_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    file_handler = RotatingFileHandler(
        log_path, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # APScheduler reports every job submission at INFO, once per test cycle
    scheduler_level = logging.INFO if level == logging.DEBUG else logging.WARNING
    logging.getLogger("apscheduler.executors").setLevel(scheduler_level)

    LOGGER.info("Logging to %s at %s", log_path, logging.getLevelName(level))
    return log_path

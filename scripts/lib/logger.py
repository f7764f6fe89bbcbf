"""
Logging setup shared by the Solar Ops Hub API, the aggregation engine and
the CLI scripts.

Every named logger writes to stdout and, unless LOG_TO_FILE=false, to one
log file per day under logs/.

Usage:
    from scripts.lib.logger import setup_logger
    logger = setup_logger(__name__)
    logger.info("Dashboard refresh #%d started", cycle_id)
"""
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

# Project root (solar-ops-hub/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOG_DIR = PROJECT_ROOT / "logs"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _daily_file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / f"{datetime.now():%Y%m%d}_solar_hub.log"
    return logging.FileHandler(path, encoding="utf-8")


def setup_logger(
    name: str,
    level: str = None,
    log_to_file: bool = None,
    log_dir: Path = None,
) -> logging.Logger:
    """
    Return the logger called ``name``, attaching handlers on first use only.

    Args:
        name: Logger name, usually the module's ``__name__``.
        level: Level name; falls back to LOG_LEVEL, then INFO.
        log_to_file: Add the daily file handler; falls back to LOG_TO_FILE (default on).
        log_dir: Where daily files go (default: <project root>/logs).
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if log_to_file is None:
        log_to_file = _env_flag("LOG_TO_FILE", "true")

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_to_file:
        handlers.append(_daily_file_handler(Path(log_dir) if log_dir else LOG_DIR))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger

"""Logging configuration with optional daily rotating JSON logs."""

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .settings import get_log_dir, get_log_level

LOGGER_NAME = "manasim"


class JSONFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs."""

    def format(self, record):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "deck_id": getattr(record, "deck_id", None),
            "iterations": getattr(record, "iterations", None),
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["error"] = self.formatException(record.exc_info)

        # Remove None values to keep logs clean
        log_data = {k: v for k, v in log_data.items() if v is not None}

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(
    level: Optional[str] = None, log_dir: Optional[Path] = None
) -> logging.Logger:
    """
    Configure the package logger: console output, plus a daily rotating
    JSON file in ``log_dir`` (or MANASIM_LOG_DIR) when one is set.
    """
    level = (level or get_log_level()).upper()
    log_dir = log_dir or get_log_dir()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    logger.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.TimedRotatingFileHandler(
            filename=str(log_dir / "manasim.log"),
            when="midnight",
            interval=1,
            backupCount=30,  # Keep 30 days of logs
            encoding="utf-8",
            utc=True,
        )
        # Rotated files are suffixed YYYY-MM-DD
        handler.suffix = "%Y-%m-%d"
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)

    # Prevent duplicate logs from propagating to root logger
    logger.propagate = False

    return logger

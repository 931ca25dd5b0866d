"""Logging Utilities for Barback
=============================

One dictConfig for the panel, the huey worker and the batch CLI.

Usage:
    from tools.logging_utils import get_logger, get_job_logger

    logger = get_logger(__name__)
    logger.info("Preview built")

    log = get_job_logger(__name__, job_id)
    log.info("Chunk committed")        # -> "[job 3f2a...] Chunk committed"

Standards:
    - Server and worker code: logger only
    - CLI output: print()/rich, mirrored to the log with log_with_emoji
    - Configuration: config.LOGGING_CONFIG
    - Location: <data dir>/logs/barback.log (10MB rotation, 5 backups)
"""

import os
import logging
import logging.config
import threading

from config import LOGGING_CONFIG, DATA_DIR

_setup_lock = threading.Lock()
_configured = False


def setup_logging():
    """
    Apply LOGGING_CONFIG once per process.

    Flask request threads and the huey consumer can race on first use, so the
    flag is guarded by a lock.
    """
    global _configured
    with _setup_lock:
        if _configured:
            return
        try:
            os.makedirs(str(DATA_DIR / "logs"), exist_ok=True)
            logging.config.dictConfig(LOGGING_CONFIG)
        except (OSError, ValueError) as e:
            print(f"Warning: Logging setup failed: {e}")
        _configured = True


def get_logger(name: str) -> logging.Logger:
    """Configured logger for a module (pass __name__)."""
    setup_logging()
    return logging.getLogger(name)


class JobLogAdapter(logging.LoggerAdapter):
    """Prefixes every record with the batch job id it belongs to."""

    def process(self, msg, kwargs):
        return f"[job {self.extra['job_id']}] {msg}", kwargs


def get_job_logger(name: str, job_id: str) -> JobLogAdapter:
    return JobLogAdapter(get_logger(name), {"job_id": job_id})


# Emoji prefix -> level, so CLI messages land in the log at a sensible level
LOG_LEVEL_MAPPING = {
    "✅": logging.INFO,
    "⚠️": logging.WARNING,
    "❌": logging.ERROR,
    "🔍": logging.DEBUG,
    "📊": logging.INFO,
    "🚀": logging.INFO,
    "💾": logging.DEBUG,
}


def log_with_emoji(logger: logging.Logger, message: str):
    """
    Log `message` at the level its emoji prefix maps to (INFO otherwise).

    "⚠️" is two code points, the others are one.
    """
    for prefix in (message[:2], message[:1]):
        if prefix in LOG_LEVEL_MAPPING:
            logger.log(LOG_LEVEL_MAPPING[prefix], message)
            return
    logger.log(logging.INFO, message)

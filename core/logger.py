"""
Shared `logger` for the campus API: stdout always, plus a rotating file
when LOG_FILE is writable.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _file_handler(log_file: Path, max_bytes: int, backup_count: int) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")


def setup_logger(
    name: str = "campus",
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure `name` with a stdout handler and, if given, a rotating file.

    Calling it again replaces the handlers rather than stacking them.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    file_error = None
    if log_file:
        try:
            handlers.append(_file_handler(log_file, max_bytes, backup_count))
        except OSError as e:
            file_error = e

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    log = logging.getLogger(name)
    log.setLevel(level)
    log.handlers.clear()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        log.addHandler(handler)

    if file_error is not None:
        # Read-only containers
        log.warning(f"Cannot open log file {log_file} ({file_error}); logging to stdout only")
    return log


logger = setup_logger(
    log_file=config.LOG_FILE,
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
)

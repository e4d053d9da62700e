"""Logging setup for the command line tool.

configure_logging() sets the root logger level and format and optionally adds
a rotating file handler. LOG_LEVEL and LOG_FILE are read from the environment.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_DEFAULT_LEVEL = "INFO"
_MAX_BYTES = 2 * 1024 * 1024  # 2 MB
_BACKUP_COUNT = 3


def get_log_level(raw: Optional[str] = None) -> int:
    if raw is None:
        raw = os.environ.get("LOG_LEVEL", _DEFAULT_LEVEL)
    level = getattr(logging, raw.strip().upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[int] = None, log_file: Optional[str] = None) -> None:
    """Configure process-wide logging. Call once at startup."""
    if level is None:
        level = get_log_level()
    if log_file is None:
        log_file = os.environ.get("LOG_FILE", "").strip() or None

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    root = logging.getLogger()
    root.setLevel(level)
    # Drop handlers from earlier calls so lines are not duplicated.
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=_MAX_BYTES,
                backupCount=_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
        except OSError as e:
            root.warning("Could not open log file %s: %s; logging to stderr only", log_file, e)

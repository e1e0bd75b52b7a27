"""Logging configuration for ComicTrackr.

Provides centralized logging setup with:
- File handler with rotation (10MB, 5 backups)
- Rich console handler on stderr, so command output on stdout stays clean
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

LOG_FORMAT = "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s"

_logging_initialized = False


def _file_handler(log_file: Path) -> RotatingFileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Initialize logging once per process.

    Args:
        log_level: Console level (DEBUG, INFO, WARNING, ERROR)
        log_file: Rotating log file; usually `TrackrConfig.log_path`.
            Without one only the console handler is installed.
    """
    global _logging_initialized

    if _logging_initialized:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if log_file is not None:
        root_logger.addHandler(_file_handler(log_file))

    console = Console(stderr=True, theme=Theme({"logging.level.info": "bold cyan"}))
    console_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

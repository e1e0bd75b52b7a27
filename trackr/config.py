"""Config management for ComicTrackr.

Reads `config.ini` from the data directory (project root by default, or the
directory named by the DATA_DIR environment variable).
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
import sys
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)

MAX_COVER_BYTES = 2 * 1024 * 1024
# Browsers give local storage roughly 5MB per origin
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"


@dataclasses.dataclass
class StorageConfig:
    database: str = "trackr.db"
    quota_bytes: int = DEFAULT_QUOTA_BYTES


@dataclasses.dataclass
class ImagesConfig:
    max_bytes: int = MAX_COVER_BYTES


@dataclasses.dataclass
class SeriesConfig:
    """Optional JSON file of reference issue lists. Empty uses the built-in set."""

    reference: str = ""


@dataclasses.dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = "trackr.log"


@dataclasses.dataclass
class TrackrConfig:
    storage: StorageConfig
    images: ImagesConfig
    series: SeriesConfig
    logging: LoggingConfig

    @property
    def database_path(self) -> pathlib.Path:
        path = pathlib.Path(self.storage.database).expanduser()
        return path if path.is_absolute() else DATA_DIR / path

    @property
    def log_path(self) -> pathlib.Path:
        path = pathlib.Path(self.logging.file).expanduser()
        return path if path.is_absolute() else DATA_DIR / path

    @property
    def series_reference_path(self) -> Optional[pathlib.Path]:
        if not self.series.reference.strip():
            return None
        path = pathlib.Path(self.series.reference.strip()).expanduser()
        return path if path.is_absolute() else DATA_DIR / path


def default_config() -> TrackrConfig:
    return TrackrConfig(
        storage=StorageConfig(),
        images=ImagesConfig(),
        series=SeriesConfig(),
        logging=LoggingConfig(),
    )


def load_config(config_path: Optional[pathlib.Path] = None) -> TrackrConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in the data directory.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    storage = StorageConfig(
        database=parser.get("storage", "database", fallback="trackr.db"),
        quota_bytes=parser.getint(
            "storage", "quota_bytes", fallback=DEFAULT_QUOTA_BYTES
        ),
    )
    images = ImagesConfig(
        max_bytes=parser.getint("images", "max_bytes", fallback=MAX_COVER_BYTES),
    )
    series = SeriesConfig(
        reference=parser.get("series", "reference", fallback="").strip(),
    )
    log = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO").strip() or "INFO",
        file=parser.get("logging", "file", fallback="trackr.log").strip() or "trackr.log",
    )

    return TrackrConfig(storage=storage, images=images, series=series, logging=log)


def write_default_config(config_path: Optional[pathlib.Path] = None) -> pathlib.Path:
    """Write a config.ini with default settings and return its path."""
    path = config_path or DEFAULT_CONFIG_PATH
    config = default_config()

    parser = configparser.ConfigParser()
    parser["storage"] = {
        "database": config.storage.database,
        "quota_bytes": str(config.storage.quota_bytes),
    }
    parser["images"] = {
        "max_bytes": str(config.images.max_bytes),
    }
    parser["series"] = {
        "reference": config.series.reference,
    }
    parser["logging"] = {
        "level": config.logging.level,
        "file": config.logging.file,
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        parser.write(handle)
    logger.debug(f"Wrote default config to {path}")
    return path


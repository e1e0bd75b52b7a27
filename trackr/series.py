"""Reference issue lists per series.

Used only to build series views. A title missing from the reference is not
an error: the view falls back to the owned and wanted issues.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from .logging_config import get_logger
from .models import title_key

logger = get_logger(__name__)

DEFAULT_SERIES: Dict[str, List[int]] = {
    "Amazing Spider-Man": [1, 2, 3, 4, 5, 298, 299, 300, 600, 700, 800, 801],
    "Batman": [1, 2, 3, 404, 405, 406, 407, 608, 609, 610, 1000],
    "Saga": [1, 2, 3, 4, 5, 6, 50, 51, 52, 53, 54],
    "Invincible": [1, 2, 3, 100, 144],
}


class SeriesReference:
    """Case-insensitive lookup of title -> issue labels."""

    def __init__(self, series: Mapping[str, Sequence[object]]):
        self._titles: Dict[str, str] = {}
        self._issues: Dict[str, List[str]] = {}
        for title, issues in series.items():
            key = title_key(title)
            self._titles[key] = title.strip()
            self._issues[key] = [str(issue).strip() for issue in issues]

    def __len__(self) -> int:
        return len(self._issues)

    def __contains__(self, title: str) -> bool:
        return title_key(title) in self._issues

    def lookup(self, title: str) -> Optional[List[str]]:
        issues = self._issues.get(title_key(title))
        return list(issues) if issues is not None else None

    def titles(self) -> List[str]:
        return sorted(self._titles.values(), key=str.casefold)

    @classmethod
    def default(cls) -> "SeriesReference":
        return cls(DEFAULT_SERIES)

    @classmethod
    def from_file(cls, path: Path) -> "SeriesReference":
        """Load a JSON object of title -> issue list. Falls back to the built-in set."""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(f"Unable to read series reference {path}: {exc}")
            return cls.default()

        if not isinstance(data, dict):
            logger.error(f"Series reference {path} must be a JSON object")
            return cls.default()

        series: Dict[str, List[object]] = {}
        for title, issues in data.items():
            if not isinstance(issues, list) or not str(title).strip():
                logger.warning(f"Ignoring malformed series entry {title!r} in {path}")
                continue
            series[str(title)] = [i for i in issues if isinstance(i, (int, float, str))]
        logger.info(f"Loaded {len(series)} reference series from {path}")
        return cls(series)


def load_reference(path: Optional[Path]) -> SeriesReference:
    if path is None:
        return SeriesReference.default()
    return SeriesReference.from_file(path)

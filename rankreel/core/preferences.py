"""Small JSON key-value store for user preferences.

Only the default top-3 number colours are persisted, under the key
``ranking-default-colors`` as a list of three colour strings.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .ranking import DEFAULT_TOP_COLORS

logger = logging.getLogger(__name__)

DEFAULT_COLORS_KEY = "ranking-default-colors"


class PreferenceStore:
    """Key-value pairs kept in a single JSON object on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning("ignoring unreadable preferences %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))

    def load_default_colors(self) -> tuple[str, str, str]:
        value = self.get(DEFAULT_COLORS_KEY)
        if (
            isinstance(value, list)
            and len(value) == 3
            and all(isinstance(c, str) and c for c in value)
        ):
            return (value[0], value[1], value[2])
        return DEFAULT_TOP_COLORS

    def save_default_colors(self, colors: tuple[str, str, str]) -> None:
        self.set(DEFAULT_COLORS_KEY, list(colors))


class MemoryPreferenceStore(PreferenceStore):
    """Non-persistent variant, used when no preferences file is wanted."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    def _read(self) -> dict[str, Any]:
        return dict(self._data)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


__all__ = ["PreferenceStore", "MemoryPreferenceStore", "DEFAULT_COLORS_KEY"]

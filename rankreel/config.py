"""Runtime settings, overridable through ``RANKREEL_*`` environment variables.

Variables:
    RANKREEL_RESOLVE_ATTEMPTS     polls per linkage resolution (5)
    RANKREEL_RESOLVE_DELAY        base backoff delay in seconds (0.05)
    RANKREEL_DEFAULT_DURATION     duration of a new ranking item (5)
    RANKREEL_TIKTOK_API           TikTok picker endpoint
    RANKREEL_HTTP_TIMEOUT         remote fetch timeout in seconds (60)
    RANKREEL_DOWNLOAD_DIR         where fetched videos are stored
    RANKREEL_PREFERENCES          JSON file holding user preferences
    RANKREEL_LOG_LEVEL            logging level name (INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

_CONFIG_HOME = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config")) / "rankreel"


@dataclass
class Settings:
    resolve_attempts: int = 5
    resolve_delay: float = 0.05
    default_duration: float = 5.0
    min_duration: float = 1.0
    text_span: float = 120.0  # labels stay on screen for the whole video
    tiktok_api: str = "https://api.twitterpicker.com/tiktok/mediav2"
    http_timeout: float = 60.0
    download_dir: Path = field(default_factory=lambda: _CONFIG_HOME / "downloads")
    preferences_path: Path = field(default_factory=lambda: _CONFIG_HOME / "preferences.json")
    log_level: str = "INFO"

    # Label layout, in canvas units relative to the frame centre.
    number_x: float = -400.0
    title_x: float = -370.0
    first_row_y: float = -500.0
    row_spacing: float = 100.0
    header_y: float = -830.0

    def row_y(self, rank: int) -> float:
        return self.first_row_y + (rank - 1) * self.row_spacing

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        s = cls()
        s.resolve_attempts = max(1, _int(env.get("RANKREEL_RESOLVE_ATTEMPTS"), s.resolve_attempts))
        s.resolve_delay = max(0.0, _float(env.get("RANKREEL_RESOLVE_DELAY"), s.resolve_delay))
        s.default_duration = max(s.min_duration, _float(env.get("RANKREEL_DEFAULT_DURATION"), s.default_duration))
        s.tiktok_api = env.get("RANKREEL_TIKTOK_API") or s.tiktok_api
        s.http_timeout = _float(env.get("RANKREEL_HTTP_TIMEOUT"), s.http_timeout)
        if env.get("RANKREEL_DOWNLOAD_DIR"):
            s.download_dir = Path(env["RANKREEL_DOWNLOAD_DIR"])
        if env.get("RANKREEL_PREFERENCES"):
            s.preferences_path = Path(env["RANKREEL_PREFERENCES"])
        s.log_level = (env.get("RANKREEL_LOG_LEVEL") or s.log_level).upper()
        return s


def _int(raw: Optional[str], default: int) -> int:
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default


def _float(raw: Optional[str], default: float) -> float:
    try:
        return float(raw) if raw is not None else default
    except ValueError:
        return default


__all__ = ["Settings"]

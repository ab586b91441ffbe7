"""Rankreel: ranked countdown videos assembled on a multi-track timeline.

Public API surface (keep minimal):
 - SequenceEngine: ordered ranking items and their timeline projection
 - VideoAttachment: fetch/drop a video onto a ranking item
 - LinkageResolver, cap_duration, Settings

The Qt application itself lives in ``rankreel.app`` (``python -m rankreel``).
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Settings  # noqa: F401
from .core.capping import cap_duration  # noqa: F401
from .core.linkage import LinkageResolver, MatchCriteria  # noqa: F401
from .core.sequence import SequenceEngine  # noqa: F401
from .core.attachment import VideoAttachment  # noqa: F401

__all__ = [
    "__version__",
    "Settings",
    "SequenceEngine",
    "VideoAttachment",
    "LinkageResolver",
    "MatchCriteria",
    "cap_duration",
]

"""Media acquisition: turn a platform URL or a dropped file into a playable reference.

``validate_source`` is the synchronous input check run before an attachment
starts; the ``MediaAcquisitionService`` methods do the blocking work (network,
disk, ffmpeg probing) and are meant to run off the GUI thread.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from ..config import Settings
from ..core.errors import AcquisitionFailure, ValidationError
from ..core.ranking import Platform
from ..services.tiktok import TikTokClient, extract_video_id
from .clip_adapter import probe_duration

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = frozenset({Platform.TIKTOK})


@dataclass(frozen=True)
class MediaReference:
    ref: str  # local path of the playable file
    duration: float  # seconds


@dataclass(frozen=True)
class UrlSource:
    platform: Platform
    url: str


@dataclass(frozen=True)
class FileSource:
    path: Path


MediaSource = Union[UrlSource, FileSource]


def validate_source(source: MediaSource) -> None:
    """Reject sources that can never be acquired. Raises ``ValidationError``."""
    if isinstance(source, UrlSource):
        if not source.url.strip():
            raise ValidationError("video URL is empty")
        if source.platform not in SUPPORTED_PLATFORMS:
            raise ValidationError(f"platform {source.platform.value} is not supported yet")
        if source.platform is Platform.TIKTOK and extract_video_id(source.url) is None:
            raise ValidationError("could not extract TikTok video id from URL")
    elif isinstance(source, FileSource):
        mime, _ = mimetypes.guess_type(str(source.path))
        if mime is None or not mime.startswith("video/"):
            raise ValidationError("only video files can be attached")
        if not source.path.is_file():
            raise ValidationError(f"no such file: {source.path}")
    else:
        raise ValidationError(f"unknown media source: {source!r}")


class MediaAcquisitionService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        tiktok: Optional[TikTokClient] = None,
        probe: Callable[[Path], float] = probe_duration,
    ):
        self.settings = settings or Settings()
        self._tiktok = tiktok
        self._probe = probe

    @property
    def tiktok(self) -> TikTokClient:
        if self._tiktok is None:
            self._tiktok = TikTokClient(
                self.settings.tiktok_api,
                self.settings.download_dir,
                timeout=self.settings.http_timeout,
            )
        return self._tiktok

    def acquire(self, source: MediaSource) -> MediaReference:
        if isinstance(source, UrlSource):
            return self.fetch_by_url(source.platform, source.url)
        return self.ingest_local_file(source.path)

    def fetch_by_url(self, platform: Platform, url: str) -> MediaReference:
        if platform is not Platform.TIKTOK:
            raise AcquisitionFailure(f"platform {platform.value} is not supported yet")
        video_id = extract_video_id(url)
        if video_id is None:
            raise AcquisitionFailure("could not extract TikTok video id from URL")
        path = self.tiktok.download(video_id)
        return MediaReference(ref=str(path), duration=self._probe(path))

    def ingest_local_file(self, path: str | Path) -> MediaReference:
        p = Path(path)
        if not p.is_file():
            raise AcquisitionFailure(f"no such file: {p}")
        duration = self._probe(p)
        logger.info("ingested %s (%.3fs)", p.name, duration)
        return MediaReference(ref=str(p.resolve()), duration=duration)


__all__ = [
    "MediaReference",
    "UrlSource",
    "FileSource",
    "MediaSource",
    "MediaAcquisitionService",
    "validate_source",
    "SUPPORTED_PLATFORMS",
]

"""TikTok download client.

Resolves a TikTok video id to a watermark-free download URL through the
picker API, then downloads the video into the configured download directory.
Runs on a worker thread, so it uses the synchronous httpx client.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

import httpx

from ..core.errors import AcquisitionFailure

logger = logging.getLogger(__name__)

VIDEO_ID_PATTERN = re.compile(r"/video/(\d+)")

# The picker API only answers requests that look like they come from a browser.
REQUEST_HEADERS = {
    "Origin": "http://localhost:3000",
    "Referer": "http://localhost:3000/",
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
}


def extract_video_id(url: str) -> Optional[str]:
    match = VIDEO_ID_PATTERN.search(url)
    return match.group(1) if match else None


class TikTokClient:
    def __init__(
        self,
        api_url: str,
        download_dir: str | Path,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        self.api_url = api_url
        self.download_dir = Path(download_dir)
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def close(self) -> None:
        self._client.close()

    def video_url(self, video_id: str) -> str:
        """Ask the picker API for the watermark-free video URL."""
        logger.info("fetching TikTok metadata for %s", video_id)
        try:
            response = self._client.get(
                self.api_url, params={"id": video_id}, headers=REQUEST_HEADERS
            )
        except httpx.HTTPError as e:
            raise AcquisitionFailure(f"TikTok API request failed: {e}") from e
        if response.status_code != 200:
            logger.error("TikTok API error %s: %s", response.status_code, response.text[:200])
            raise AcquisitionFailure(f"TikTok API error: {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise AcquisitionFailure("TikTok API returned invalid JSON") from e
        url = (data.get("video_no_watermark") or {}).get("url") if isinstance(data, dict) else None
        if not url:
            raise AcquisitionFailure("No video URL found in response")
        return url

    def download(self, video_id: str) -> Path:
        """Download the video and return the local file path."""
        url = self.video_url(video_id)
        self.download_dir.mkdir(parents=True, exist_ok=True)
        target = self.download_dir / f"tiktok-{video_id}.mp4"
        try:
            with self._client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise AcquisitionFailure(f"video download failed: {response.status_code}")
                with target.open("wb") as fh:
                    for chunk in response.iter_bytes():
                        fh.write(chunk)
        except httpx.HTTPError as e:
            target.unlink(missing_ok=True)
            raise AcquisitionFailure(f"video download failed: {e}") from e
        except AcquisitionFailure:
            target.unlink(missing_ok=True)
            raise
        logger.info("downloaded TikTok video %s to %s", video_id, target)
        return target


__all__ = ["TikTokClient", "extract_video_id", "VIDEO_ID_PATTERN"]

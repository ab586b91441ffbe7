"""Thin adapter around MoviePy ``VideoFileClip`` used to probe attached media.

The ranking core only needs the natural length of a video; the adapter keeps
the clip open for as long as the caller needs it and closes the ffmpeg
readers afterwards.
"""

from __future__ import annotations

from pathlib import Path

from moviepy import VideoFileClip

from ..core.errors import AcquisitionFailure


class ClipAdapter:
    def __init__(self, clip):
        self._clip = clip

    @property
    def duration(self) -> float:
        return float(getattr(self._clip, "duration", 0.0) or 0.0)

    def close(self) -> None:
        self._clip.close()

    def __enter__(self) -> "ClipAdapter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @classmethod
    def from_path(cls, path: str | Path) -> "ClipAdapter":
        try:
            clip = VideoFileClip(str(path))
        except (OSError, ValueError) as e:
            raise AcquisitionFailure(f"cannot read video {path}: {e}") from e
        return cls(clip)


def probe_duration(path: str | Path) -> float:
    """Return the length of the video at ``path`` in seconds."""
    with ClipAdapter.from_path(path) as adapter:
        duration = adapter.duration
    if duration <= 0:
        raise AcquisitionFailure(f"video {path} has no playable duration")
    return duration


__all__ = ["ClipAdapter", "probe_duration"]

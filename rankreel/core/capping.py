"""Duration capping against the natural length of attached media."""

from __future__ import annotations

from typing import Optional

__all__ = ["cap_duration"]


def cap_duration(requested: float, media_duration: Optional[float]) -> float:
    """Return the shorter of the requested duration and the media length.

    Pure and idempotent: ``cap_duration(cap_duration(x, m), m) == cap_duration(x, m)``.
    With no media attached (``media_duration is None``) the request is returned as-is.
    """
    if media_duration is None:
        return requested
    return min(requested, media_duration)

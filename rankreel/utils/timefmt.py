"""Time labels for the rankings panel.

``format_offset`` renders a timeline position as ``m:ss.d``; ``format_duration``
renders an item length compactly (``5s``, ``2.5s``, ``1m 30s``).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

__all__ = ["format_offset", "format_duration"]


def _tenths(seconds: float) -> int:
    # ROUND_HALF_UP so 0.25 -> 0.3 instead of banker's rounding to 0.2
    return int(
        (Decimal(str(max(0.0, seconds))) * 10).to_integral_value(rounding=ROUND_HALF_UP)
    )


def format_offset(seconds: float) -> str:
    """Return ``m:ss.d`` for a start offset. Negative values clamp to zero."""
    m, rem = divmod(_tenths(seconds), 600)
    s, d = divmod(rem, 10)
    return f"{m}:{s:02d}.{d}"


def format_duration(seconds: float) -> str:
    tenths = _tenths(seconds)
    m, rem = divmod(tenths, 600)
    s = Decimal(rem) / 10
    text = f"{s.normalize():f}s"
    return f"{m}m {text}" if m else text

"""Error kinds raised (or reported) by the ranking core.

Only ``ValidationError`` and ``UnknownItemError`` ever reach a caller as an
exception. Acquisition and linkage failures are absorbed at the flow boundary
and surface through item state flags and callbacks.
"""

from __future__ import annotations


class RankingError(Exception):
    """Base class for all ranking core errors."""


class ValidationError(RankingError, ValueError):
    """Invalid input, rejected before any state is mutated."""


class UnknownItemError(RankingError, KeyError):
    """No ranking item with the given id exists in the sequence."""

    def __init__(self, item_id: str):
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self) -> str:
        return f"unknown ranking item: {self.item_id}"


class AcquisitionFailure(RankingError):
    """Remote fetch or local ingest of a video failed."""


class LinkageTimeout(RankingError):
    """The linkage resolver exhausted its attempts without a match.

    Never raised; handed to ``on_exhausted`` callbacks and logged.
    """

    def __init__(self, item_id: str, attempts: int):
        super().__init__(f"no timeline entities found for {item_id} after {attempts} attempts")
        self.item_id = item_id
        self.attempts = attempts


__all__ = [
    "RankingError",
    "ValidationError",
    "UnknownItemError",
    "AcquisitionFailure",
    "LinkageTimeout",
]

"""Video attachment flow: acquire a video and bind it to a ranking item.

Steps: validate -> ``loading=True`` -> acquire (suspends) -> compute the
item's offset from the sequence as it is now -> place a media entity ->
resolve its id -> merge into the item's record -> cap the duration to the
media length -> ``loading=False``.

Acquisition or placement failures abort the flow: ``loading`` is cleared,
nothing else about the item changes and ``on_failed(item_id, reason)`` is
called. Only input validation raises.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Protocol

from ..media.acquisition import FileSource, MediaReference, MediaSource, UrlSource, validate_source
from .capping import cap_duration
from .errors import LinkageTimeout, ValidationError
from .linkage import MatchCriteria
from .ranking import PartialLink
from .sequence import SequenceEngine
from .timeline_store import MEDIA_TRACK, Placement

logger = logging.getLogger(__name__)


class Acquirer(Protocol):
    def acquire(
        self,
        source: MediaSource,
        on_done: Callable[[MediaReference], None],
        on_failed: Callable[[str], None],
    ) -> None: ...


class VideoAttachment:
    def __init__(
        self,
        engine: SequenceEngine,
        acquirer: Acquirer,
        *,
        on_failed: Optional[Callable[[str, str], None]] = None,
        on_attached: Optional[Callable[[str, MediaReference], None]] = None,
    ):
        self._engine = engine
        self._acquirer = acquirer
        self._on_failed = on_failed
        self._on_attached = on_attached

    def fetch(self, item_id: str) -> None:
        """Fetch the video behind the item's ``source_url`` on its platform."""
        item = self._engine.get(item_id)
        self.start(item_id, UrlSource(item.platform, item.source_url))

    def drop(self, item_id: str, path: str | Path) -> None:
        """Attach a local video file dropped onto the item."""
        self.start(item_id, FileSource(Path(path)))

    def start(self, item_id: str, source: MediaSource) -> None:
        item = self._engine.get(item_id)
        validate_source(source)
        if item.loading:
            raise ValidationError(f"{item_id} is already loading a video")
        self._engine.update(item_id, loading=True)
        self._acquirer.acquire(
            source,
            lambda ref: self._acquired(item_id, ref),
            lambda reason: self._failed(item_id, reason),
        )

    # --- flow steps ---
    def _acquired(self, item_id: str, ref: MediaReference) -> None:
        if item_id not in self._engine:
            logger.info("%s was removed while its video was loading; dropping %s", item_id, ref.ref)
            return
        item = self._engine.get(item_id)
        offset = self._engine.offset_of(item_id)
        try:
            self._engine.store.create_entity(
                MEDIA_TRACK,
                Placement(
                    name=Path(ref.ref).name,
                    content=ref.ref,
                    duration=cap_duration(item.duration, ref.duration),
                ),
                offset,
            )
        except Exception as e:  # external store; abort the flow instead of leaving loading set
            self._failed(item_id, f"could not place video on the timeline: {e}")
            return
        logger.info("placed %s for %s at %.3fs", Path(ref.ref).name, item_id, offset)
        self._engine.resolver.resolve(
            item_id,
            MatchCriteria.for_media(ref.ref),
            on_resolved=lambda link: self._linked(item_id, ref, link),
            on_exhausted=lambda timeout: self._unlinked(item_id, timeout),
        )

    def _linked(self, item_id: str, ref: MediaReference, link: PartialLink) -> None:
        if item_id not in self._engine:
            self._engine.link_video(item_id, link)  # recorded as an orphan
            return
        # cap first so the merge places the video at its final length
        self._engine.attach_media(item_id, ref.duration)
        self._engine.link_video(item_id, link)
        self._engine.update(item_id, loading=False)
        if self._on_attached is not None:
            self._on_attached(item_id, ref)

    def _unlinked(self, item_id: str, timeout: LinkageTimeout) -> None:
        if item_id in self._engine:
            self._engine.update(item_id, loading=False)

    def _failed(self, item_id: str, reason: str) -> None:
        logger.warning("video attachment for %s failed: %s", item_id, reason)
        if item_id in self._engine:
            self._engine.update(item_id, loading=False)
        if self._on_failed is not None:
            self._on_failed(item_id, reason)


__all__ = ["Acquirer", "VideoAttachment"]

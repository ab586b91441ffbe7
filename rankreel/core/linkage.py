"""Linkage resolver: discovers timeline entity ids after deferred creation.

The timeline store does not hand back ids for the entities it creates, so the
resolver polls ``list_entities()`` and matches entities by name and content:

- number label: text entity named ``Ranking <item id> Number`` whose content
  looks like a rank label (``"3."``),
- title label: text entity named ``Ranking <item id> Title``,
- video: media entity whose content is the media reference that was placed.

Polling is bounded: ``attempts`` polls with linearly increasing waits
(``attempt * base_delay``). Giving up is logged and reported through
``on_exhausted``; nothing is raised. Entities already claimed by another
item are skipped, so two items can never be bound to the same entity.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .errors import LinkageTimeout
from .ranking import PartialLink, number_entity_name, title_entity_name
from .scheduling import Scheduler, retry_with_backoff
from .timeline_store import MEDIA_TRACK, TEXT_TRACK, Entity, TimelineStore

logger = logging.getLogger(__name__)

RANK_LABEL = re.compile(r"^\d+\.$")


@dataclass(frozen=True)
class MatchCriteria:
    number_name: Optional[str] = None
    title_name: Optional[str] = None
    media_ref: Optional[str] = None

    @classmethod
    def for_item(cls, item_id: str) -> "MatchCriteria":
        return cls(number_name=number_entity_name(item_id), title_name=title_entity_name(item_id))

    @classmethod
    def for_media(cls, media_ref: str) -> "MatchCriteria":
        return cls(media_ref=media_ref)

    @property
    def wants_labels(self) -> bool:
        return self.number_name is not None or self.title_name is not None


class LinkageResolver:
    def __init__(
        self,
        store: TimelineStore,
        scheduler: Scheduler,
        *,
        attempts: int = 5,
        base_delay: float = 0.05,
        initial_delay: Optional[float] = None,
    ):
        self._store = store
        self._scheduler = scheduler
        self.attempts = attempts
        self.base_delay = base_delay
        self.initial_delay = initial_delay
        self._is_claimed: Callable[[str, str], bool] = lambda item_id, entity_id: False

    def set_claim_check(self, is_claimed: Callable[[str, str], bool]) -> None:
        """Install ``is_claimed(item_id, entity_id)``: True when the entity may not be bound to the item."""
        self._is_claimed = is_claimed

    # --- single poll ---
    def find(self, item_id: str, criteria: MatchCriteria) -> Optional[PartialLink]:
        """Poll the store once. Returns the link only when every wanted entity is present."""
        entities = [e for e in self._store.list_entities() if not self._is_claimed(item_id, e.id)]
        found: dict[str, str] = {}
        if criteria.wants_labels:
            number = _first(entities, TEXT_TRACK, criteria.number_name, RANK_LABEL)
            title = _first(entities, TEXT_TRACK, criteria.title_name)
            if number is None or title is None:
                return None
            found.update(
                number_element_id=number.id,
                number_track_id=number.track_id,
                title_element_id=title.id,
                title_track_id=title.track_id,
            )
        if criteria.media_ref is not None:
            video = next(
                (e for e in entities if e.kind == MEDIA_TRACK and e.content == criteria.media_ref),
                None,
            )
            if video is None:
                return None
            found.update(video_element_id=video.id, video_track_id=video.track_id)
        return PartialLink(**found) if found else None

    # --- bounded polling ---
    def resolve(
        self,
        item_id: str,
        criteria: MatchCriteria,
        on_resolved: Optional[Callable[[PartialLink], None]] = None,
        on_exhausted: Optional[Callable[[LinkageTimeout], None]] = None,
        attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
    ) -> None:
        budget = self.attempts if attempts is None else attempts

        def probe(attempt: int) -> Optional[PartialLink]:
            logger.debug("resolve %s attempt %d/%d", item_id, attempt, budget)
            return self.find(item_id, criteria)

        def success(link: PartialLink) -> None:
            logger.info("linked %s -> %s", item_id, _describe(link))
            if on_resolved is not None:
                on_resolved(link)

        def exhausted(count: int) -> None:
            timeout = LinkageTimeout(item_id, count)
            logger.warning("%s", timeout)
            if on_exhausted is not None:
                on_exhausted(timeout)

        retry_with_backoff(
            self._scheduler,
            probe,
            attempts=budget,
            base_delay=self.base_delay,
            initial_delay=self.initial_delay if initial_delay is None else initial_delay,
            on_success=success,
            on_exhausted=exhausted,
        )

    def resolve_named(
        self,
        name: str,
        on_resolved: Callable[[Entity], None],
        on_exhausted: Optional[Callable[[int], None]] = None,
        kind: str = TEXT_TRACK,
    ) -> None:
        """Locate a single entity by name (used for the rankings header)."""

        def probe(attempt: int) -> Optional[Entity]:
            return _first(self._store.list_entities(), kind, name)

        def exhausted(count: int) -> None:
            logger.warning("no %s entity named %r after %d attempts", kind, name, count)
            if on_exhausted is not None:
                on_exhausted(count)

        retry_with_backoff(
            self._scheduler,
            probe,
            attempts=self.attempts,
            base_delay=self.base_delay,
            initial_delay=self.initial_delay,
            on_success=on_resolved,
            on_exhausted=exhausted,
        )


def _first(
    entities: Sequence[Entity],
    kind: str,
    name: Optional[str],
    content: Optional[re.Pattern] = None,
) -> Optional[Entity]:
    for e in entities:
        if e.kind != kind or e.name != name:
            continue
        if content is not None and not content.match(e.content):
            continue
        return e
    return None


def _describe(link: PartialLink) -> str:
    parts = []
    if link.number_element_id:
        parts.append(f"number={link.number_element_id}")
    if link.title_element_id:
        parts.append(f"title={link.title_element_id}")
    if link.video_element_id:
        parts.append(f"video={link.video_element_id}")
    return " ".join(parts)


__all__ = ["MatchCriteria", "LinkageResolver", "RANK_LABEL"]

"""Timeline store contract and an in-memory reference store.

The ranking core talks to the timeline only through ``TimelineStore``. A
store does not return ids from ``create_entity``: the entity shows up in
``list_entities()`` some time later, with ids the store assigned itself.

``InMemoryTimelineStore`` reproduces that behaviour: created entities are
realised on a later scheduler tick, each on a new track of its kind.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Protocol, Sequence

from .scheduling import Scheduler

logger = logging.getLogger(__name__)

TEXT_TRACK = "text"
MEDIA_TRACK = "media"


@dataclass(frozen=True)
class Placement:
    """What to create: display name, content and span, plus free-form style."""

    name: str
    content: str
    duration: float
    style: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Entity:
    id: str
    track_id: str
    kind: str
    name: str
    content: str
    start_offset: float
    duration: float
    style: Mapping[str, Any] = field(default_factory=dict)


class TimelineStore(Protocol):
    def create_entity(self, track_kind: str, placement: Placement, start_offset: float) -> None: ...

    def list_entities(self) -> Sequence[Entity]: ...

    def update_entity_content(self, track_id: str, entity_id: str, fields: Mapping[str, Any]) -> None: ...

    def update_entity_start_offset(self, track_id: str, entity_id: str, offset: float) -> None: ...

    def update_entity_duration(self, track_id: str, entity_id: str, duration: float) -> None: ...


class InMemoryTimelineStore:
    """Track/entity storage with deferred creation.

    ``history`` records every mutating command as ``(operation, entity_id, value)``
    so callers can check which commands were actually issued.
    """

    def __init__(self, scheduler: Scheduler, latency: float = 0.0):
        self._scheduler = scheduler
        self._latency = latency
        self._tracks: dict[str, list[Entity]] = {}
        self._ids = itertools.count(1)
        self.history: list[tuple[str, str, Any]] = []

    # --- TimelineStore contract ---
    def create_entity(self, track_kind: str, placement: Placement, start_offset: float) -> None:
        self._scheduler.call_later(
            self._latency, lambda: self._realise(track_kind, placement, start_offset)
        )

    def list_entities(self) -> list[Entity]:
        return [e for elements in self._tracks.values() for e in elements]

    def update_entity_content(self, track_id: str, entity_id: str, fields: Mapping[str, Any]) -> None:
        entity = self._find(track_id, entity_id)
        style = dict(entity.style)
        content = entity.content
        for key, value in fields.items():
            if key == "content":
                content = str(value)
            else:
                style[key] = value
        self._replace(track_id, replace(entity, content=content, style=style))
        self.history.append(("content", entity_id, dict(fields)))

    def update_entity_start_offset(self, track_id: str, entity_id: str, offset: float) -> None:
        entity = self._find(track_id, entity_id)
        self._replace(track_id, replace(entity, start_offset=max(0.0, float(offset))))
        self.history.append(("start_offset", entity_id, offset))

    def update_entity_duration(self, track_id: str, entity_id: str, duration: float) -> None:
        if duration <= 0:
            raise ValueError("entity duration must be positive")
        entity = self._find(track_id, entity_id)
        self._replace(track_id, replace(entity, duration=float(duration)))
        self.history.append(("duration", entity_id, duration))

    # --- helpers ---
    def entity(self, entity_id: str) -> Optional[Entity]:
        for e in self.list_entities():
            if e.id == entity_id:
                return e
        return None

    def _realise(self, track_kind: str, placement: Placement, start_offset: float) -> None:
        track_id = f"track-{next(self._ids)}"
        entity = Entity(
            id=f"element-{next(self._ids)}",
            track_id=track_id,
            kind=track_kind,
            name=placement.name,
            content=placement.content,
            start_offset=max(0.0, float(start_offset)),
            duration=float(placement.duration),
            style=dict(placement.style),
        )
        self._tracks[track_id] = [entity]
        self.history.append(("create", entity.id, placement.name))
        logger.debug("created %s entity %s on %s at %.3fs", track_kind, entity.id, track_id, start_offset)

    def _find(self, track_id: str, entity_id: str) -> Entity:
        for e in self._tracks.get(track_id, []):
            if e.id == entity_id:
                return e
        raise KeyError(f"no entity {entity_id} on track {track_id}")

    def _replace(self, track_id: str, entity: Entity) -> None:
        self._tracks[track_id] = [entity if e.id == entity.id else e for e in self._tracks[track_id]]


__all__ = [
    "TEXT_TRACK",
    "MEDIA_TRACK",
    "Placement",
    "Entity",
    "TimelineStore",
    "InMemoryTimelineStore",
]

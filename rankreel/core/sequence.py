"""Sequence engine: the ordered ranking list and its timeline projection.

The engine owns two pieces of state:

- ``_items``: the ordered ranking items. Rank is ``index + 1`` and the start
  offset of item ``i`` is the sum of the durations of items ``0..i-1``.
- ``_records``: LinkageRecords mapping item ids to timeline entity ids, filled
  in asynchronously by the linkage resolver.

Every change that can move an item in time (duration, removal, reordering,
attached media) goes through ``_reposition``, a single pass over the ordered
list and the only place start offsets are written to the store. Items without
a record are skipped and remembered in ``_pending``; once their record
resolves the engine replays their full state from the current sequence.

Physical entities are never deleted: the store contract has no delete, so a
removed item's entities are reported through ``orphans()`` instead.
"""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Any, Callable, Optional

from ..config import Settings
from .capping import cap_duration
from .errors import UnknownItemError, ValidationError
from .linkage import LinkageResolver, MatchCriteria
from .preferences import MemoryPreferenceStore, PreferenceStore
from .ranking import (
    EDITABLE_FIELDS,
    NEUTRAL_COLOR,
    READ_ONLY_FIELDS,
    ItemView,
    LinkageRecord,
    LinkStatus,
    OrphanReference,
    PartialLink,
    Platform,
    RankingItem,
    number_entity_name,
    number_label,
    title_entity_name,
)
from .scheduling import Scheduler
from .timeline_store import TEXT_TRACK, Entity, Placement, TimelineStore

logger = logging.getLogger(__name__)

HEADER_NAME = "Rankings Header"
TEXT_SHADOW = "4px 4px 4px rgba(0, 0, 0, 1)"
LABEL_FIELDS = frozenset(
    {"title", "title_color", "title_background", "number_color", "number_background"}
)

Observer = Callable[["SequenceEngine"], None]


class SequenceEngine:
    def __init__(
        self,
        store: TimelineStore,
        scheduler: Scheduler,
        *,
        resolver: Optional[LinkageResolver] = None,
        preferences: Optional[PreferenceStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self._store = store
        self._scheduler = scheduler
        self._resolver = resolver or LinkageResolver(
            store,
            scheduler,
            attempts=self.settings.resolve_attempts,
            base_delay=self.settings.resolve_delay,
        )
        self._resolver.set_claim_check(self._is_claimed)
        self._preferences = preferences or MemoryPreferenceStore()
        self._default_colors = self._preferences.load_default_colors()

        self._items: list[RankingItem] = []
        self._records: dict[str, LinkageRecord] = {}
        self._pending: set[str] = set()
        self._pending_video: dict[str, PartialLink] = {}
        self._orphans: list[OrphanReference] = []
        self._observers: list[Observer] = []

        self._header_text = ""
        self._header: Optional[tuple[str, str]] = None  # (track_id, entity_id)
        self._header_requested = False

    # --- collaborators ---
    @property
    def store(self) -> TimelineStore:
        return self._store

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def resolver(self) -> LinkageResolver:
        return self._resolver

    # --- read-only views ---
    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return any(item.id == item_id for item in self._items)

    def items(self) -> list[RankingItem]:
        return [item.copy() for item in self._items]

    def get(self, item_id: str) -> RankingItem:
        return self._item(item_id).copy()

    def rank_of(self, item_id: str) -> int:
        return self._index(item_id) + 1

    def offsets(self) -> list[float]:
        offsets, total = [], 0.0
        for item in self._items:
            offsets.append(total)
            total += item.duration
        return offsets

    def offset_of(self, item_id: str) -> float:
        index = self._index(item_id)
        return sum(item.duration for item in self._items[:index])

    def total_duration(self) -> float:
        return sum(item.duration for item in self._items)

    def record_for(self, item_id: str) -> Optional[LinkageRecord]:
        return self._records.get(item_id)

    def link_status(self, item_id: str) -> LinkStatus:
        self._index(item_id)
        record = self._records.get(item_id)
        return LinkStatus.UNLINKED if record is None else record.status

    def snapshot(self) -> tuple[ItemView, ...]:
        return tuple(
            ItemView(
                item=item.copy(),
                rank=index + 1,
                offset=offset,
                link_status=self.link_status(item.id),
            )
            for index, (item, offset) in enumerate(zip(self._items, self.offsets()))
        )

    def orphans(self) -> list[OrphanReference]:
        return list(self._orphans)

    @property
    def default_colors(self) -> tuple[str, str, str]:
        return self._default_colors

    @property
    def header_text(self) -> str:
        return self._header_text

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)
        return lambda: self._observers.remove(observer)

    # --- mutations ---
    def append(self) -> RankingItem:
        rank = len(self._items) + 1
        start = self.total_duration()
        item = RankingItem(
            number_color=self._default_colors[rank - 1] if rank <= 3 else NEUTRAL_COLOR,
            duration=self.settings.default_duration,
        )
        self._items.append(item)

        y = self.settings.row_y(rank)
        span = self.settings.text_span
        self._store.create_entity(
            TEXT_TRACK,
            Placement(
                name=number_entity_name(item.id),
                content=number_label(rank),
                duration=span,
                style={
                    "color": item.number_color,
                    "background_color": item.number_background,
                    "font_weight": "bold",
                    "font_size": 48,
                    "x": self.settings.number_x,
                    "y": y,
                    "text_shadow": TEXT_SHADOW,
                },
            ),
            0.0,
        )
        self._store.create_entity(
            TEXT_TRACK,
            Placement(
                name=title_entity_name(item.id),
                content=" ",  # blank titles still need a visible entity
                duration=span,
                style={
                    "color": item.title_color,
                    "background_color": item.title_background,
                    "font_size": 48,
                    "text_align": "left",
                    "x": self.settings.title_x,
                    "y": y,
                    "text_shadow": TEXT_SHADOW,
                },
            ),
            start,
        )
        logger.debug("appended %s as rank %d, title at %.3fs", item.id, rank, start)
        self._resolver.resolve(
            item.id,
            MatchCriteria.for_item(item.id),
            on_resolved=lambda link, item_id=item.id: self._on_linked(item_id, link),
        )
        self._notify()
        return item.copy()

    def update(self, item_id: str, **fields: Any) -> RankingItem:
        item = self._item(item_id)
        changes = self._validate(item, fields)
        changed = {k: v for k, v in changes.items() if getattr(item, k) != v}
        for key, value in changed.items():
            setattr(item, key, value)
        if not changed:
            return item.copy()

        record = self._records.get(item_id)
        if record is None:
            self._pending.add(item_id)
        elif LABEL_FIELDS & changed.keys():
            self._push_labels(item, self._index(item_id) + 1, record)
        if "duration" in changed:
            self._reposition()
        self._notify()
        return item.copy()

    def remove(self, item_id: str) -> RankingItem:
        index = self._index(item_id)
        item = self._items.pop(index)
        self._pending.discard(item_id)
        held = self._pending_video.pop(item_id, None)
        if held is not None:
            self._orphans.append(OrphanReference(item_id, (held.video_element_id,)))
        record = self._records.pop(item_id, None)
        if record is not None:
            self._orphans.append(OrphanReference(item_id, tuple(record.element_ids())))
            logger.info("removed %s; %d timeline entities left in place", item_id, len(record.element_ids()))
        self._relabel(index, len(self._items))
        self._reposition()
        self._notify()
        return item.copy()

    def move(self, item_id: str, new_index: int) -> None:
        old_index = self._index(item_id)
        new_index = max(0, min(new_index, len(self._items) - 1))
        if new_index == old_index:
            return
        self._items.insert(new_index, self._items.pop(old_index))
        self._relabel(min(old_index, new_index), max(old_index, new_index) + 1)
        self._reposition()
        self._notify()

    def attach_media(
        self,
        item_id: str,
        media_duration: float,
        desired_duration: Optional[float] = None,
    ) -> RankingItem:
        item = self._item(item_id)
        if not _is_number(media_duration) or media_duration <= 0:
            raise ValidationError(f"media duration must be positive, got {media_duration!r}")
        desired = item.duration if desired_duration is None else desired_duration
        self._check_duration(desired)
        item.max_duration = float(media_duration)
        item.duration = cap_duration(float(desired), item.max_duration)
        self._reposition()  # unlinked items are queued by the pass itself
        self._notify()
        return item.copy()

    def link_video(self, item_id: str, link: PartialLink) -> bool:
        """Merge a resolved video entity into the item's record.

        Returns False when the item's labels are not linked yet; the video link
        is then held back and merged as soon as they are.
        """
        if item_id not in self:
            self._orphans.append(OrphanReference(item_id, (link.video_element_id,)))
            logger.info("video %s resolved for removed item %s", link.video_element_id, item_id)
            return False
        record = self._records.get(item_id)
        if record is None:
            held = self._pending_video.get(item_id)
            if held is not None and held.video_element_id != link.video_element_id:
                self._orphans.append(OrphanReference(item_id, (held.video_element_id,)))
            self._pending_video[item_id] = link
            self._pending.add(item_id)
            return False
        replaced = record.video_element_id
        if replaced is not None and link.video_element_id not in (None, replaced):
            self._orphans.append(OrphanReference(item_id, (replaced,)))
            logger.info("video %s of %s replaced by %s", replaced, item_id, link.video_element_id)
        self._records[item_id] = link.merge_into(record)
        self._sync_item(item_id)
        self._notify()
        return True

    def set_default_color(self, index: int, color: str) -> None:
        if index not in (0, 1, 2):
            raise ValidationError("default colours exist for ranks 1-3 only")
        if not isinstance(color, str) or not color.strip():
            raise ValidationError("colour must be a non-empty string")
        colors = list(self._default_colors)
        colors[index] = color
        self._default_colors = (colors[0], colors[1], colors[2])
        self._preferences.save_default_colors(self._default_colors)
        self._notify()

    def set_header(self, text: str) -> None:
        self._header_text = text
        if self._header is not None:
            track_id, entity_id = self._header
            self._store.update_entity_content(track_id, entity_id, {"content": text or " "})
        elif text.strip() and not self._header_requested:
            self._header_requested = True
            self._store.create_entity(
                TEXT_TRACK,
                Placement(
                    name=HEADER_NAME,
                    content=text,
                    duration=self.settings.text_span,
                    style={
                        "color": NEUTRAL_COLOR,
                        "background_color": "transparent",
                        "font_size": 48,
                        "font_weight": "bold",
                        "text_align": "center",
                        "x": 0.0,
                        "y": self.settings.header_y,
                        "text_shadow": "6px 6px 4px rgba(0, 0, 0, 1)",
                    },
                ),
                0.0,
            )
            self._resolver.resolve_named(
                HEADER_NAME, self._on_header_linked, on_exhausted=self._on_header_lost
            )
        self._notify()

    # --- linkage callbacks ---
    def _on_linked(self, item_id: str, link: PartialLink) -> None:
        if item_id not in self:
            self._orphans.append(
                OrphanReference(item_id, (link.number_element_id, link.title_element_id))
            )
            logger.info("entities for removed item %s resolved; left in place", item_id)
            return
        record = link.merge_into(self._records.get(item_id))
        if record is None:
            return
        video = self._pending_video.pop(item_id, None)
        if video is not None:
            record = video.merge_into(record)
        self._records[item_id] = record
        if item_id in self._pending or video is not None:
            self._sync_item(item_id)
        self._notify()

    def _on_header_linked(self, entity: Entity) -> None:
        self._header = (entity.track_id, entity.id)
        if entity.content != (self._header_text or " "):
            self._store.update_entity_content(
                entity.track_id, entity.id, {"content": self._header_text or " "}
            )

    def _on_header_lost(self, attempts: int) -> None:
        self._header_requested = False

    def _is_claimed(self, item_id: str, entity_id: str) -> bool:
        """True when ``item_id`` must not bind ``entity_id``.

        Entities of other items, orphans and held videos are taken. A video
        resolution always looks for a newly placed entity, so the item's own
        linked video is never matched again.
        """
        own = self._records.get(item_id)
        if own is not None and entity_id == own.video_element_id:
            return True
        if any(link.video_element_id == entity_id for link in self._pending_video.values()):
            return True
        for other_id, record in self._records.items():
            if other_id != item_id and entity_id in record.element_ids():
                return True
        return any(entity_id in orphan.element_ids for orphan in self._orphans)

    # --- propagation ---
    def _reposition(self) -> None:
        """Write every item's start offset (and video duration) from the current order."""
        entities = {e.id: e for e in self._store.list_entities()}
        offset = 0.0
        for item in self._items:
            record = self._records.get(item.id)
            if record is None:
                self._pending.add(item.id)
            else:
                self._place(item, record, offset, entities)
            offset += item.duration

    def _place(
        self,
        item: RankingItem,
        record: LinkageRecord,
        offset: float,
        entities: dict[str, Entity],
    ) -> None:
        title = entities.get(record.title_element_id)
        if title is None:
            logger.debug("title entity %s of %s not on the timeline", record.title_element_id, item.id)
        elif not math.isclose(title.start_offset, offset):
            self._store.update_entity_start_offset(record.title_track_id, record.title_element_id, offset)
        if not record.has_video:
            return
        video = entities.get(record.video_element_id)
        if video is None:
            logger.debug("video entity %s of %s not on the timeline", record.video_element_id, item.id)
            return
        if not math.isclose(video.start_offset, offset):
            self._store.update_entity_start_offset(record.video_track_id, record.video_element_id, offset)
        if not math.isclose(video.duration, item.duration):
            self._store.update_entity_duration(record.video_track_id, record.video_element_id, item.duration)

    def _push_labels(self, item: RankingItem, rank: int, record: LinkageRecord) -> None:
        self._store.update_entity_content(
            record.number_track_id,
            record.number_element_id,
            {
                "content": number_label(rank),
                "color": item.number_color,
                "background_color": item.number_background,
                "y": self.settings.row_y(rank),
            },
        )
        self._store.update_entity_content(
            record.title_track_id,
            record.title_element_id,
            {
                "content": item.title or " ",
                "color": item.title_color,
                "background_color": item.title_background,
                "y": self.settings.row_y(rank),
            },
        )

    def _relabel(self, start: int, stop: int) -> None:
        for index in range(start, stop):
            item = self._items[index]
            record = self._records.get(item.id)
            if record is None:
                self._pending.add(item.id)
            else:
                self._push_labels(item, index + 1, record)

    def _sync_item(self, item_id: str) -> None:
        """Replay the item's current state onto its entities."""
        self._pending.discard(item_id)
        index = self._index(item_id)
        item = self._items[index]
        record = self._records[item_id]
        self._push_labels(item, index + 1, record)
        entities = {e.id: e for e in self._store.list_entities()}
        self._place(item, record, self.offset_of(item_id), entities)

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self)

    # --- validation / lookup ---
    def _validate(self, item: RankingItem, fields: dict[str, Any]) -> dict[str, Any]:
        clean: dict[str, Any] = {}
        for key, value in fields.items():
            if key in READ_ONLY_FIELDS:
                logger.debug("ignoring read-only field %r for %s", key, item.id)
                continue
            if key not in EDITABLE_FIELDS:
                raise ValidationError(f"unknown ranking field: {key!r}")
            if key == "duration":
                self._check_duration(value)
                clean[key] = cap_duration(float(value), item.max_duration)
            elif key == "platform":
                try:
                    clean[key] = Platform(value)
                except ValueError:
                    raise ValidationError(f"unsupported platform: {value!r}") from None
            elif key == "loading":
                if not isinstance(value, bool):
                    raise ValidationError("loading must be a bool")
                clean[key] = value
            elif key in ("title", "source_url"):
                if not isinstance(value, str):
                    raise ValidationError(f"{key} must be a string")
                clean[key] = value
            else:
                if not isinstance(value, str) or not value.strip():
                    raise ValidationError(f"{key} must be a non-empty colour value")
                clean[key] = value
        return clean

    def _check_duration(self, value: Any) -> None:
        if not _is_number(value):
            raise ValidationError(f"duration must be a number, got {value!r}")
        if value < self.settings.min_duration:
            raise ValidationError(
                f"duration must be at least {self.settings.min_duration:g}s, got {value!r}"
            )

    def _index(self, item_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        raise UnknownItemError(item_id)

    def _item(self, item_id: str) -> RankingItem:
        return self._items[self._index(item_id)]


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


__all__ = ["SequenceEngine", "HEADER_NAME"]

"""Ranking data model: logical ranking items and their timeline linkage.

A ``RankingItem`` never stores its rank. Rank is always ``index + 1`` in the
owning sequence and is attached only to read-only ``ItemView`` snapshots.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Optional


class Platform(str, Enum):
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"


class LinkStatus(str, Enum):
    UNLINKED = "unlinked"
    PARTIALLY_LINKED = "partially-linked"
    FULLY_LINKED = "fully-linked"


TRANSPARENT = "transparent"
NEUTRAL_COLOR = "#FFFFFF"
DEFAULT_TOP_COLORS: tuple[str, str, str] = ("#FFD700", "#C0C0C0", "#CD7F32")  # gold, silver, bronze


def new_item_id() -> str:
    return f"ranking-{uuid.uuid4().hex[:12]}"


def number_entity_name(item_id: str) -> str:
    return f"Ranking {item_id} Number"


def title_entity_name(item_id: str) -> str:
    return f"Ranking {item_id} Title"


def number_label(rank: int) -> str:
    return f"{rank}."


@dataclass
class RankingItem:
    id: str = field(default_factory=new_item_id)
    title: str = ""
    title_color: str = NEUTRAL_COLOR
    title_background: str = TRANSPARENT
    number_color: str = NEUTRAL_COLOR
    number_background: str = TRANSPARENT
    platform: Platform = Platform.TIKTOK
    source_url: str = ""
    loading: bool = False
    duration: float = 5.0  # seconds
    max_duration: Optional[float] = None  # natural length of attached media

    def copy(self) -> "RankingItem":
        return replace(self)


# Fields a caller may set through SequenceEngine.update(); everything else is
# derived (rank), identity (id) or owned by the attachment flow (max_duration).
EDITABLE_FIELDS = frozenset(
    {
        "title",
        "title_color",
        "title_background",
        "number_color",
        "number_background",
        "platform",
        "source_url",
        "loading",
        "duration",
    }
)
READ_ONLY_FIELDS = frozenset({"id", "rank", "max_duration"})


@dataclass
class LinkageRecord:
    """Physical entity ids for one ranking item.

    Number and title ids are always present together; a record without video
    ids means no video has been attached yet.
    """

    number_element_id: str
    number_track_id: str
    title_element_id: str
    title_track_id: str
    video_element_id: Optional[str] = None
    video_track_id: Optional[str] = None

    @property
    def has_video(self) -> bool:
        return self.video_element_id is not None and self.video_track_id is not None

    @property
    def status(self) -> LinkStatus:
        return LinkStatus.FULLY_LINKED if self.has_video else LinkStatus.PARTIALLY_LINKED

    def element_ids(self) -> list[str]:
        ids = [self.number_element_id, self.title_element_id]
        if self.video_element_id is not None:
            ids.append(self.video_element_id)
        return ids


@dataclass(frozen=True)
class PartialLink:
    """Fields discovered by one resolution pass, merged into a LinkageRecord."""

    number_element_id: Optional[str] = None
    number_track_id: Optional[str] = None
    title_element_id: Optional[str] = None
    title_track_id: Optional[str] = None
    video_element_id: Optional[str] = None
    video_track_id: Optional[str] = None

    def merge_into(self, record: Optional[LinkageRecord]) -> Optional[LinkageRecord]:
        """Return ``record`` extended with the fields found here.

        Returns ``None`` when there is no record yet and this pass did not find
        both the number and the title entity: video fields alone never create
        a record.
        """
        found = {k: v for k, v in asdict(self).items() if v is not None}
        if record is not None:
            return replace(record, **found)
        required = ("number_element_id", "number_track_id", "title_element_id", "title_track_id")
        if not all(k in found for k in required):
            return None
        return LinkageRecord(**found)


@dataclass(frozen=True)
class ItemView:
    """Read-only row of a sequence snapshot."""

    item: RankingItem
    rank: int
    offset: float
    link_status: LinkStatus


@dataclass(frozen=True)
class OrphanReference:
    """Entities left on the timeline after their ranking item was removed."""

    item_id: str
    element_ids: tuple[str, ...]


__all__ = [
    "Platform",
    "LinkStatus",
    "RankingItem",
    "LinkageRecord",
    "PartialLink",
    "ItemView",
    "OrphanReference",
    "DEFAULT_TOP_COLORS",
    "NEUTRAL_COLOR",
    "TRANSPARENT",
    "EDITABLE_FIELDS",
    "READ_ONLY_FIELDS",
    "new_item_id",
    "number_entity_name",
    "title_entity_name",
    "number_label",
]

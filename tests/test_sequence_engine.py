import pytest

from rankreel.config import Settings
from rankreel.core.errors import UnknownItemError, ValidationError
from rankreel.core.linkage import MatchCriteria
from rankreel.core.preferences import PreferenceStore
from rankreel.core.ranking import DEFAULT_TOP_COLORS, NEUTRAL_COLOR, LinkStatus, Platform
from rankreel.core.scheduling import ManualScheduler
from rankreel.core.sequence import HEADER_NAME, SequenceEngine
from rankreel.core.timeline_store import MEDIA_TRACK, InMemoryTimelineStore, Placement


def _engine(preferences=None, **settings):
    scheduler = ManualScheduler()
    store = InMemoryTimelineStore(scheduler)
    engine = SequenceEngine(store, scheduler, preferences=preferences, settings=Settings(**settings))
    return engine, store, scheduler


def _title_offsets(engine, store, ids):
    return [store.entity(engine.record_for(i).title_element_id).start_offset for i in ids]


def _number_text(engine, store, item_id):
    return store.entity(engine.record_for(item_id).number_element_id).content


def test_append_places_labels_back_to_back():
    engine, store, scheduler = _engine()
    ids = [engine.append().id for _ in range(3)]
    scheduler.run_until_idle()
    assert engine.offsets() == [0, 5, 10]
    assert _title_offsets(engine, store, ids) == [0, 5, 10]
    assert [_number_text(engine, store, i) for i in ids] == ["1.", "2.", "3."]
    assert all(engine.link_status(i) is LinkStatus.PARTIALLY_LINKED for i in ids)


def test_duration_change_cascades_to_following_items():
    engine, store, scheduler = _engine()
    ids = [engine.append().id for _ in range(3)]
    scheduler.run_until_idle()
    engine.update(ids[0], duration=8)
    assert engine.offsets() == [0, 8, 13]
    assert _title_offsets(engine, store, ids) == [0, 8, 13]


def test_update_before_linkage_is_replayed():
    engine, store, scheduler = _engine()
    ids = [engine.append().id for _ in range(3)]
    engine.update(ids[0], duration=8)
    engine.update(ids[1], title="Best goal")
    assert engine.link_status(ids[0]) is LinkStatus.UNLINKED
    scheduler.run_until_idle()
    assert _title_offsets(engine, store, ids) == [0, 8, 13]
    assert store.entity(engine.record_for(ids[1]).title_element_id).content == "Best goal"


def test_unchanged_offsets_are_not_reissued():
    engine, store, scheduler = _engine()
    ids = [engine.append().id for _ in range(3)]
    scheduler.run_until_idle()
    before = len(store.history)
    engine.update(ids[2], duration=9)  # last item; nothing after it moves
    assert store.history[before:] == []
    engine.update(ids[1], duration=5)  # same value
    assert store.history[before:] == []


def test_remove_rederives_ranks_and_offsets():
    engine, store, scheduler = _engine()
    ids = [engine.append().id for _ in range(3)]
    scheduler.run_until_idle()
    removed = engine.remove(ids[1])
    assert removed.id == ids[1]
    assert [v.rank for v in engine.snapshot()] == [1, 2]
    assert _number_text(engine, store, ids[2]) == "2."
    assert _title_offsets(engine, store, [ids[0], ids[2]]) == [0, 5]
    orphans = engine.orphans()
    assert [o.item_id for o in orphans] == [ids[1]]
    assert len(orphans[0].element_ids) == 2
    assert ids[1] not in engine


def test_remove_before_linkage_reports_orphans_later():
    engine, store, scheduler = _engine()
    first = engine.append().id
    second = engine.append().id
    engine.remove(first)
    scheduler.run_until_idle()
    assert engine.record_for(first) is None
    assert [o.item_id for o in engine.orphans()] == [first]
    # the surviving item was pulled forward once linked
    assert _title_offsets(engine, store, [second]) == [0]
    assert _number_text(engine, store, second) == "1."


def test_move_reorders_labels_and_offsets():
    engine, store, scheduler = _engine()
    a, b, c = (engine.append().id for _ in range(3))
    scheduler.run_until_idle()
    engine.update(b, duration=8)
    engine.move(c, 0)
    assert [item.id for item in engine.items()] == [c, a, b]
    assert _title_offsets(engine, store, [c, a, b]) == [0, 5, 10]
    assert [_number_text(engine, store, i) for i in (c, a, b)] == ["1.", "2.", "3."]


def test_top_three_get_default_colors():
    engine, store, scheduler = _engine()
    ids = [engine.append().id for _ in range(5)]
    colors = [engine.get(i).number_color for i in ids]
    assert colors == list(DEFAULT_TOP_COLORS) + [NEUTRAL_COLOR, NEUTRAL_COLOR]
    scheduler.run_until_idle()
    assert store.entity(engine.record_for(ids[0]).number_element_id).style["color"] == DEFAULT_TOP_COLORS[0]


def test_default_colors_persist(tmp_path):
    prefs = PreferenceStore(tmp_path / "prefs.json")
    engine, _, _ = _engine(preferences=prefs)
    engine.set_default_color(0, "#FF0000")
    reopened, _, _ = _engine(preferences=PreferenceStore(tmp_path / "prefs.json"))
    assert reopened.default_colors[0] == "#FF0000"
    assert reopened.append().number_color == "#FF0000"
    with pytest.raises(ValidationError):
        reopened.set_default_color(3, "#000000")


@pytest.mark.parametrize("bad", [0, 0.5, -1, "5", float("nan"), True])
def test_invalid_duration_rejected(bad):
    engine, _, _ = _engine()
    item_id = engine.append().id
    with pytest.raises(ValidationError):
        engine.update(item_id, duration=bad)
    assert engine.get(item_id).duration == 5


def test_validation_is_all_or_nothing():
    engine, _, _ = _engine()
    item_id = engine.append().id
    with pytest.raises(ValidationError):
        engine.update(item_id, title="New", duration=0)
    assert engine.get(item_id).title == ""
    with pytest.raises(ValidationError):
        engine.update(item_id, colour="#000")
    with pytest.raises(ValidationError):
        engine.update(item_id, platform="myspace")
    with pytest.raises(ValidationError):
        engine.update(item_id, title_color="  ")


def test_read_only_fields_are_ignored():
    engine, _, _ = _engine()
    item_id = engine.append().id
    item = engine.update(item_id, rank=7, id="other", max_duration=2)
    assert item.id == item_id
    assert item.max_duration is None
    assert engine.rank_of(item_id) == 1


def test_platform_accepts_enum_or_value():
    engine, _, _ = _engine()
    item_id = engine.append().id
    assert engine.update(item_id, platform="youtube").platform is Platform.YOUTUBE
    assert engine.update(item_id, platform=Platform.TIKTOK).platform is Platform.TIKTOK


def test_unknown_item():
    engine, _, _ = _engine()
    with pytest.raises(UnknownItemError) as info:
        engine.update("ranking-nope", title="x")
    assert isinstance(info.value, KeyError)
    with pytest.raises(UnknownItemError):
        engine.remove("ranking-nope")


def test_attach_media_caps_duration():
    engine, _, scheduler = _engine()
    a = engine.append().id
    b = engine.append().id
    scheduler.run_until_idle()
    item = engine.attach_media(a, 3.0, desired_duration=10)
    assert (item.duration, item.max_duration) == (3.0, 3.0)
    assert engine.offsets() == [0, 3]
    assert engine.update(a, duration=10).duration == 3.0
    assert engine.update(a, duration=2).duration == 2.0
    with pytest.raises(ValidationError):
        engine.attach_media(b, 0)


def test_linked_video_follows_its_item():
    engine, store, scheduler = _engine()
    a = engine.append().id
    b = engine.append().id
    scheduler.run_until_idle()
    store.create_entity(MEDIA_TRACK, Placement(name="clip.mp4", content="/v/clip.mp4", duration=5), 5.0)
    engine.resolver.resolve(b, MatchCriteria.for_media("/v/clip.mp4"), on_resolved=lambda link: engine.link_video(b, link))
    scheduler.run_until_idle()
    assert engine.link_status(b) is LinkStatus.FULLY_LINKED

    engine.attach_media(b, 4.0)
    engine.update(a, duration=2)
    video = store.entity(engine.record_for(b).video_element_id)
    assert (video.start_offset, video.duration) == (2.0, 4.0)
    record = engine.record_for(b)
    assert record.number_element_id is not None and record.has_video


def test_entities_are_not_shared_between_items():
    engine, _, scheduler = _engine()
    a = engine.append().id
    b = engine.append().id
    scheduler.run_until_idle()
    assert engine.resolver.find(a, MatchCriteria.for_item(a)) is not None
    assert engine.resolver.find(b, MatchCriteria.for_item(a)) is None


def test_header_created_once_then_updated():
    engine, store, scheduler = _engine()
    engine.set_header("Top plays")
    engine.set_header("Top plays of the week")  # before the header resolved
    scheduler.run_until_idle()
    headers = [e for e in store.list_entities() if e.name == HEADER_NAME]
    assert len(headers) == 1
    assert headers[0].content == "Top plays of the week"
    engine.set_header("")
    assert store.entity(headers[0].id).content == " "


def test_unlinked_item_never_raises(caplog):
    class SilentStore(InMemoryTimelineStore):
        def create_entity(self, track_kind, placement, start_offset):
            pass

    scheduler = ManualScheduler()
    engine = SequenceEngine(SilentStore(scheduler), scheduler, settings=Settings(resolve_attempts=3))
    item_id = engine.append().id
    engine.update(item_id, duration=7)
    with caplog.at_level("WARNING"):
        scheduler.run_until_idle()
    assert engine.link_status(item_id) is LinkStatus.UNLINKED
    assert engine.get(item_id).duration == 7
    assert any("after 3" in r.getMessage() for r in caplog.records)


def test_observers_are_notified():
    engine, _, _ = _engine()
    seen = []
    unsubscribe = engine.subscribe(lambda e: seen.append(len(e)))
    engine.append()
    engine.append()
    unsubscribe()
    engine.append()
    assert seen == [1, 2]


class DroppingStore(InMemoryTimelineStore):
    """Ignores the first ``drop`` creation commands."""

    def __init__(self, scheduler, drop):
        super().__init__(scheduler)
        self._drop = drop

    def create_entity(self, track_kind, placement, start_offset):
        if self._drop > 0:
            self._drop -= 1
            return
        super().create_entity(track_kind, placement, start_offset)


def test_attach_media_on_unlinked_item_moves_following_items():
    scheduler = ManualScheduler()
    store = DroppingStore(scheduler, drop=2)
    engine = SequenceEngine(store, scheduler, settings=Settings(resolve_attempts=3))
    a = engine.append().id
    b = engine.append().id
    scheduler.run_until_idle()
    assert engine.link_status(a) is LinkStatus.UNLINKED
    assert engine.link_status(b) is LinkStatus.PARTIALLY_LINKED

    engine.attach_media(a, 3.0, desired_duration=10)
    assert engine.offsets() == [0, 3]
    assert _title_offsets(engine, store, [b]) == [3]


def test_remove_returns_a_detached_copy():
    engine, _, _ = _engine()
    item_id = engine.append().id
    internal = engine._items[0]
    removed = engine.remove(item_id)
    assert removed == internal
    assert removed is not internal

import pytest

from milighthub.fields import BulbId, BulbMode, MiLightStatus, RemoteType
from milighthub.group_state import GroupState
from milighthub.persistence import GroupStatePersistence
from milighthub.store import GroupStateStore

GROUP_COUNTS = {RemoteType.FUT089: 8, RemoteType.RGB: 0}

GROUP0 = BulbId(1, 0, RemoteType.FUT089)
ID1 = BulbId(1, 1, RemoteType.FUT089)
ID2 = BulbId(1, 2, RemoteType.FUT089)


def color() -> GroupState:
    s = GroupState()
    s.set_state(MiLightStatus.ON)
    s.set_bulb_mode(BulbMode.COLOR)
    s.set_hue(1)
    s.set_saturation(10)
    s.set_brightness(100)
    return s


def make_store(tmp_path, max_size, flush_rate=0):
    persistence = GroupStatePersistence(tmp_path)
    return GroupStateStore(max_size, flush_rate, persistence, GROUP_COUNTS), persistence


def test_store_from_source(tmp_path):
    store, persistence = make_store(tmp_path, 4)
    persistence.clear(ID1)
    persistence.clear(ID2)

    init_state = color()
    default = GroupState.default_state(RemoteType.FUT089)

    stored = store.get(ID2)
    assert stored == default

    store.set(ID1, init_state)
    stored = store.get(ID1)
    assert stored.is_equal_ignore_dirty(init_state)

    store.flush()
    stored = store.get(ID1)
    assert not stored.is_dirty()
    assert stored.is_equal_ignore_dirty(init_state)

    store.set(ID2, default)
    stored = store.get(ID2)
    assert stored.is_equal_ignore_dirty(default)

    stored = store.get(ID1)
    assert stored.is_equal_ignore_dirty(init_state)


def test_group_0_from_source(tmp_path):
    store, persistence = make_store(tmp_path, 10)
    persistence.clear(ID1)
    persistence.clear(ID2)

    init_state = color()
    init_state2 = color()
    group0_state = GroupState()

    init_state2.set_brightness(255)
    group0_state.set_hue(100)

    store.set(ID1, init_state)
    store.set(ID2, init_state2)

    assert not group0_state.is_equal_ignore_dirty(init_state)
    assert not group0_state.is_equal_ignore_dirty(init_state2)

    assert store.get(ID1).copy().is_equal_ignore_dirty(init_state)
    assert store.get(ID2).copy().is_equal_ignore_dirty(init_state2)

    store.set(GROUP0, group0_state)

    expected = init_state.copy()
    expected.set_hue(group0_state.get_hue())
    assert store.get(ID1).is_equal_ignore_dirty(expected)

    expected = init_state2.copy()
    expected.set_hue(group0_state.get_hue())
    assert store.get(ID2).is_equal_ignore_dirty(expected)

    assert store.get(GROUP0).is_equal_ignore_dirty(group0_state)

    init_state.set_hue(0)
    init_state2.set_hue(100)
    init_state.set_brightness(50)
    init_state2.set_brightness(70)
    store.set(ID1, init_state)
    store.set(ID2, init_state2)

    stored = store.get(GROUP0).copy()
    stored.set_hue(200)
    assert not stored.is_set_brightness()

    store.set(GROUP0, stored)

    stored = store.get(ID1)
    assert stored.get_brightness() == 50
    assert stored.get_hue() == 200

    stored = store.get(ID2)
    assert stored.get_brightness() == 70
    assert stored.get_hue() == 200

    rgb_id = BulbId(1, 0, RemoteType.RGB)
    rgb_state = GroupState.default_state(RemoteType.RGB)
    rgb_state.set_hue(100)
    rgb_state.set_brightness(100)

    store.set(rgb_id, rgb_state)
    store.flush()

    assert store.get(rgb_id).is_equal_ignore_dirty(rgb_state)


def test_unsupported_remote_type(tmp_path):
    store, _ = make_store(tmp_path, 4)
    unknown = BulbId(1, 1, RemoteType.CCT)
    assert store.get(unknown) is None
    with pytest.raises(KeyError):
        store.set(unknown, color())


def test_flush_writes_to_persistence(tmp_path):
    store, persistence = make_store(tmp_path, 4)
    store.set(ID1, color())
    store.get(ID1)
    assert store.flush() is True

    loaded = GroupState()
    persistence.get(ID1, loaded)
    assert loaded.is_equal_ignore_dirty(color())


def test_flush_clears_evicted_ids(tmp_path):
    store, persistence = make_store(tmp_path, 1)
    persistence.set(ID1, color())

    assert store.get(ID1).is_equal_ignore_dirty(color())
    store.get(ID2)

    assert store.flush() is True
    assert persistence.path_for(ID2).exists()
    assert persistence.path_for(ID1).exists()

    assert store.flush() is True
    assert not persistence.path_for(ID1).exists()

    assert store.flush() is False


def test_clear_resets_to_default(tmp_path):
    store, _ = make_store(tmp_path, 4)
    store.set(ID1, color())
    store.clear(ID1)
    stored = store.get(ID1)
    assert not stored.is_set_hue()
    assert stored.is_equal_ignore_dirty(GroupState.default_state(RemoteType.FUT089))


def test_limited_flush_respects_rate(tmp_path):
    store, persistence = make_store(tmp_path, 4, flush_rate=100)
    store.get(ID1)

    store.limited_flush(50)
    assert not persistence.path_for(ID1).exists()
    assert store.get(ID1).is_dirty()

    store.limited_flush(200)
    assert persistence.path_for(ID1).exists()
    assert not store.get(ID1).is_dirty()
    assert store.last_flush == 200
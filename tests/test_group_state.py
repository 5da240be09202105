import pytest

from milighthub.fields import (
    BulbMode,
    GroupStateField,
    IncrementDirection,
    MiLightStatus,
    RemoteType,
)
from milighthub.group_state import GroupState

F = GroupStateField


def color():
    s = GroupState()
    s.set_state(MiLightStatus.ON)
    s.set_bulb_mode(BulbMode.COLOR)
    s.set_hue(1)
    s.set_saturation(10)
    s.set_brightness(100)
    return s


def _merge(target, source):
    """Merge the set fields of ``source`` into ``target``."""
    merge_into = target.patch
    merge_into(source)
    return target


def test_init_state():
    s = GroupState()
    assert s.get_bulb_mode() is BulbMode.WHITE
    assert s.is_set_brightness() is False


def test_state_updates():
    s = color()
    assert s.get_bulb_mode() is BulbMode.COLOR
    assert s.get_brightness() == 100
    assert s.get_hue() == 1
    assert s.get_saturation() == 10

    s.set_bulb_mode(BulbMode.WHITE)
    s.set_brightness(0)
    assert s.get_bulb_mode() is BulbMode.WHITE
    assert s.get_brightness() == 0

    s.set_bulb_mode(BulbMode.COLOR)
    assert s.get_brightness() == 100


@pytest.mark.parametrize("hue", [0, 1, 100, 200])
def test_hue_round_trip(hue):
    s = GroupState()
    s.set_hue(hue)
    assert s.get_hue() == hue


def test_setters_report_no_change():
    s = color()
    assert s.set_hue(1) is False
    assert s.set_saturation(10) is False
    assert s.set_brightness(100) is False
    assert s.set_state(MiLightStatus.ON) is False
    assert s.set_bulb_mode(BulbMode.COLOR) is False
    assert s.set_saturation(20) is True


def test_brightness_is_seven_bits():
    s = GroupState()
    s.set_brightness(255)
    assert s.get_brightness() == 127


def test_scene_brightness_stored_but_reports_false():
    s = GroupState()
    s.set_bulb_mode(BulbMode.SCENE)
    assert s.set_brightness(40) is False
    assert s.is_set_brightness() is True
    assert s.get_brightness() == 40


def test_night_mode_cleared_by_state():
    s = color()
    assert s.set_bulb_mode(BulbMode.NIGHT) is True
    assert s.get_bulb_mode() is BulbMode.NIGHT
    assert s.is_on() is False
    s.set_state(MiLightStatus.ON)
    assert s.is_night_mode() is False
    assert s.get_bulb_mode() is BulbMode.COLOR
    assert s.is_on() is True


def test_is_on_when_state_unknown():
    s = GroupState()
    assert s.is_on() is True
    s.set_state(MiLightStatus.OFF)
    assert s.is_on() is False


def test_clear_always_set_fields():
    s = color()
    assert s.clear_field(F.DEVICE_ID) is False
    assert s.is_set_field(F.COMPUTED_COLOR) is True
    assert s.clear_field(F.SATURATION) is True
    assert s.clear_field(F.SATURATION) is False


def test_effect_set_only_outside_color_mode():
    s = color()
    assert s.is_set_effect() is False
    s.set_bulb_mode(BulbMode.WHITE)
    assert s.is_set_field(F.EFFECT) is True


def test_field_value_errors():
    s = GroupState()
    with pytest.raises(ValueError):
        s.get_field_value(F.COLOR)
    with pytest.raises(ValueError):
        s.set_field_value(F.DEVICE_ID, 1)
    with pytest.raises(ValueError):
        s.get_scratch_field_value(F.HUE)


def test_set_field_value_dispatch():
    s = GroupState()
    s.set_field_value(F.BULB_MODE, BulbMode.SCENE)
    s.set_field_value(F.MODE, 3)
    s.set_field_value(F.STATE, MiLightStatus.OFF)
    assert s.get_field_value(F.BULB_MODE) is BulbMode.SCENE
    assert s.get_field_value(F.MODE) == 3
    assert s.get_field_value(F.STATUS) is MiLightStatus.OFF


def test_parsed_brightness_and_level():
    s = color()
    assert s.get_parsed_field_value(F.LEVEL) == 100
    assert s.get_parsed_field_value(F.BRIGHTNESS) == 255


@pytest.mark.parametrize("mireds, kelvin", [(153, 0), (370, 100)])
def test_mireds_extremes(mireds, kelvin):
    s = GroupState()
    s.set_mireds(mireds)
    assert s.get_kelvin() == kelvin
    assert s.get_mireds() == mireds
    assert s.get_parsed_field_value(F.COLOR_TEMP) == mireds


def test_mireds_clamped():
    s = GroupState()
    s.set_mireds(1000)
    assert s.get_mireds() == 370
    s.set_mireds(10)
    assert s.get_mireds() == 153


def test_dirty_flags():
    s = GroupState()
    assert s.is_dirty() is True
    assert s.is_mqtt_dirty() is False
    s.clear_dirty()
    s.set_hue(10)
    assert s.is_dirty() and s.is_mqtt_dirty()
    s.clear_dirty()
    s.clear_mqtt_dirty()
    assert not s.is_dirty() and not s.is_mqtt_dirty()


def test_equality_and_ignore_dirty():
    a = color()
    b = color()
    assert a == b
    b.clear_dirty()
    assert a != b
    assert a.is_equal_ignore_dirty(b)
    b.set_hue(100)
    assert not a.is_equal_ignore_dirty(b)


def test_copy_is_independent():
    s = color()
    c = s.copy()
    assert c == s
    assert c.previous_state is None
    c.set_hue(200)
    assert s.get_hue() == 1


def test_fresh_state_bytes():
    assert GroupState().to_bytes() == b"\x00\x00\x00\x00\x00\x00\x00\x10"


def test_bytes_round_trip():
    s = color()
    s.set_bulb_mode(BulbMode.WHITE)
    s.set_brightness(255)
    s.set_mireds(200)
    loaded = GroupState()
    loaded.load_bytes(s.to_bytes())
    assert loaded.is_dirty() is False
    assert loaded.is_equal_ignore_dirty(s)
    assert loaded.to_bytes()[:4] == s.to_bytes()[:4]


def test_load_bytes_wrong_length():
    with pytest.raises(ValueError):
        GroupState().load_bytes(b"\x00" * 7)


def test_reset():
    s = color()
    s.set_scratch_field_value(F.KELVIN, 3)
    s.reset()
    assert s == GroupState()
    assert s.is_set_scratch_field(F.KELVIN) is False


def test_default_states():
    rgb = GroupState.default_state(RemoteType.RGB)
    assert rgb.is_set_bulb_mode() and rgb.get_bulb_mode() is BulbMode.COLOR
    cct = GroupState.default_state(RemoteType.CCT)
    assert cct.is_set_bulb_mode() and cct.get_bulb_mode() is BulbMode.WHITE
    assert GroupState.default_state(RemoteType.FUT091).is_set_bulb_mode()
    assert GroupState.default_state(RemoteType.FUT089) == GroupState()


def test_is_physical_field():
    assert GroupState.is_physical_field(F.BRIGHTNESS)
    assert GroupState.is_physical_field(F.BULB_MODE)
    assert not GroupState.is_physical_field(F.COLOR_TEMP)
    assert not GroupState.is_physical_field(F.DEVICE_ID)


@pytest.mark.parametrize(
    "direction, final",
    [(IncrementDirection.INCREASE, 100), (IncrementDirection.DECREASE, 0)],
)
def test_increment_scratch_reaches_extreme(direction, final):
    s = GroupState()
    results = [s.apply_increment_command(F.BRIGHTNESS, direction) for _ in range(10)]
    assert results == [False] * 9 + [True]
    assert s.is_set_brightness()
    assert s.get_brightness() == final


def test_increment_scratch_counts():
    s = GroupState()
    s.apply_increment_command(F.KELVIN, IncrementDirection.DECREASE)
    assert s.get_scratch_field_value(F.KELVIN) == 9
    s.apply_increment_command(F.KELVIN, IncrementDirection.DECREASE)
    assert s.get_scratch_field_value(F.KELVIN) == 8
    assert s.is_set_kelvin() is False


@pytest.mark.parametrize(
    "start, direction, expected",
    [
        (50, IncrementDirection.INCREASE, 60),
        (95, IncrementDirection.INCREASE, 100),
        (5, IncrementDirection.DECREASE, 0),
    ],
)
def test_increment_with_known_previous(start, direction, expected):
    prev = GroupState()
    prev.set_brightness(start)
    s = GroupState(prev)
    assert s.apply_increment_command(F.BRIGHTNESS, direction) is True
    assert s.get_brightness() == expected


def test_increment_unsupported_field():
    with pytest.raises(ValueError):
        GroupState().apply_increment_command(F.HUE, IncrementDirection.INCREASE)


def test_scratch_taken_from_previous_state():
    prev = GroupState()
    prev.set_scratch_field_value(F.BRIGHTNESS, 4)
    s = GroupState(prev)
    assert s.get_scratch_field_value(F.BRIGHTNESS) == 4
    s.set_scratch_field_value(F.BRIGHTNESS, 5)
    assert prev.get_scratch_field_value(F.BRIGHTNESS) == 4


def test_patch_skips_fields_while_off():
    s = GroupState()
    s.set_state(MiLightStatus.OFF)
    other = GroupState()
    other.set_brightness(50)
    _merge(s, other)
    assert s.is_set_brightness() is False


def test_patch_turns_on_then_applies_brightness():
    s = GroupState()
    s.set_state(MiLightStatus.OFF)
    other = GroupState()
    other.set_state(MiLightStatus.ON)
    other.set_brightness(50)
    other.set_hue(100)
    _merge(s, other)
    assert s.is_on()
    assert s.get_brightness() == 50
    assert s.is_set_hue() is False


def test_patch_night_mode_always_applied():
    s = GroupState()
    s.set_state(MiLightStatus.OFF)
    other = GroupState()
    other.set_bulb_mode(BulbMode.NIGHT)
    _merge(s, other)
    assert s.get_bulb_mode() is BulbMode.NIGHT


def test_patch_scratch_fields():
    s = GroupState()
    other = GroupState()
    other.set_scratch_field_value(F.KELVIN, 6)
    _merge(s, other)
    assert s.get_scratch_field_value(F.KELVIN) == 6


def test_clear_non_matching_fields():
    a = color()
    b = color()
    b.set_hue(100)
    assert a.clear_non_matching_fields(b) is True
    assert a.is_set_hue() is False
    assert a.is_set_saturation() is True
    assert a.clear_non_matching_fields(b) is False
"""Compact record of what is known about one group of bulbs."""

from __future__ import annotations

import math
import struct
from dataclasses import astuple, dataclass, replace

from milighthub.fields import (
    BulbMode,
    GroupStateField,
    IncrementDirection,
    MiLightStatus,
    RemoteType,
)

COLOR_TEMP_MIN_MIREDS = 153
COLOR_TEMP_MAX_MIREDS = 370
INCREMENT_COMMAND_VALUE = 10
DATA_LENGTH = 8

_WORD_LAYOUT = (
    (
        ("state", 1),
        ("brightness", 7),
        ("hue", 8),
        ("saturation", 7),
        ("mode", 4),
        ("bulb_mode", 3),
        ("is_set_state", 1),
        ("is_set_hue", 1),
    ),
    (
        ("kelvin", 7),
        ("is_set_brightness", 1),
        ("is_set_saturation", 1),
        ("is_set_mode", 1),
        ("is_set_kelvin", 1),
        ("is_set_bulb_mode", 1),
        ("brightness_color", 7),
        ("brightness_mode", 7),
        ("is_set_brightness_color", 1),
        ("is_set_brightness_mode", 1),
        ("dirty", 1),
        ("mqtt_dirty", 1),
        ("is_set_night_mode", 1),
        ("is_night_mode", 1),
    ),
)
_WIDTHS = {name: width for word in _WORD_LAYOUT for name, width in word}

_SCRATCH_WIDTHS = {GroupStateField.KELVIN: 7, GroupStateField.BRIGHTNESS: 8}


@dataclass
class _Bits:
    state: int = 0
    brightness: int = 0
    hue: int = 0
    saturation: int = 0
    mode: int = 0
    bulb_mode: int = 0
    is_set_state: int = 0
    is_set_hue: int = 0
    kelvin: int = 0
    is_set_brightness: int = 0
    is_set_saturation: int = 0
    is_set_mode: int = 0
    is_set_kelvin: int = 0
    is_set_bulb_mode: int = 0
    brightness_color: int = 0
    brightness_mode: int = 0
    is_set_brightness_color: int = 0
    is_set_brightness_mode: int = 0
    dirty: int = 1
    mqtt_dirty: int = 0
    is_set_night_mode: int = 0
    is_night_mode: int = 0


def _c_round(value: float) -> int:
    return math.floor(value + 0.5)


def _rescale(value: int, new_max: float, old_max: float, bits: int = 16) -> int:
    return _c_round(value * (new_max / old_max)) & ((1 << bits) - 1)


def _int8(value: int) -> int:
    value &= 0xFF
    return value - 256 if value >= 128 else value


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _white_val_to_mireds(value: int, max_value: int) -> int:
    span = COLOR_TEMP_MAX_MIREDS - COLOR_TEMP_MIN_MIREDS
    return COLOR_TEMP_MIN_MIREDS + _rescale(value, span, max_value)


def _mireds_to_white_val(mireds: int, max_value: int) -> int:
    span = COLOR_TEMP_MAX_MIREDS - COLOR_TEMP_MIN_MIREDS
    clamped = _clamp(mireds, COLOR_TEMP_MIN_MIREDS, COLOR_TEMP_MAX_MIREDS)
    return _rescale(clamped - COLOR_TEMP_MIN_MIREDS, max_value, span) & 0xFF


class GroupState:
    """Known state of a bulb group, packed as the device stores it.

    Every field has an "is set" flag: a field that was never observed is
    unknown rather than zero. A transient scratchpad tracks relative
    brightness and temperature commands until an absolute value is known.
    """

    PHYSICAL_FIELDS = (
        GroupStateField.BULB_MODE,
        GroupStateField.HUE,
        GroupStateField.KELVIN,
        GroupStateField.MODE,
        GroupStateField.SATURATION,
        GroupStateField.STATE,
        GroupStateField.BRIGHTNESS,
    )
    SCRATCH_FIELDS = (GroupStateField.BRIGHTNESS, GroupStateField.KELVIN)

    __hash__ = None  # mutable

    def __init__(self, previous_state: GroupState | None = None) -> None:
        self.previous_state = previous_state
        self._bits = _Bits()
        self._scratch: dict[GroupStateField, int | None] = {f: None for f in self.SCRATCH_FIELDS}
        if previous_state is not None:
            self._scratch = dict(previous_state._scratch)

    def _put(self, name: str, value: int) -> None:
        setattr(self._bits, name, int(value) & ((1 << _WIDTHS[name]) - 1))

    def copy(self) -> GroupState:
        """A copy of the state and scratchpad, without a previous state."""
        other = GroupState()
        other._bits = replace(self._bits)
        other._scratch = dict(self._scratch)
        return other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GroupState):
            return NotImplemented
        return self._bits == other._bits

    def is_equal_ignore_dirty(self, other: GroupState) -> bool:
        """Compare states, disregarding both dirty flags."""
        mine = replace(self._bits, dirty=0, mqtt_dirty=0)
        theirs = replace(other._bits, dirty=0, mqtt_dirty=0)
        return mine == theirs

    def __repr__(self) -> str:
        first, second = struct.unpack("<II", self.to_bytes())
        return f"GroupState({first:08X} {second:08X})"

    # generic field access

    def is_set_field(self, field: GroupStateField) -> bool:
        F = GroupStateField
        if field in (F.COMPUTED_COLOR, F.DEVICE_ID, F.GROUP_ID, F.DEVICE_TYPE):
            return True
        if field in (F.STATE, F.STATUS):
            return self.is_set_state()
        if field in (F.BRIGHTNESS, F.LEVEL):
            return self.is_set_brightness()
        if field in (F.COLOR, F.HUE, F.OH_COLOR, F.HEX_COLOR):
            return self.is_set_hue()
        if field is F.SATURATION:
            return self.is_set_saturation()
        if field is F.MODE:
            return self.is_set_mode()
        if field is F.EFFECT:
            return self.is_set_effect()
        if field in (F.KELVIN, F.COLOR_TEMP):
            return self.is_set_kelvin()
        if field is F.BULB_MODE:
            return self.is_set_bulb_mode()
        raise ValueError(f"unknown field: {field!r}")

    def get_field_value(self, field: GroupStateField) -> int:
        F = GroupStateField
        if field in (F.STATE, F.STATUS):
            return self.get_state()
        if field is F.BRIGHTNESS:
            return self.get_brightness()
        if field is F.HUE:
            return self.get_hue()
        if field is F.SATURATION:
            return self.get_saturation()
        if field is F.MODE:
            return self.get_mode()
        if field is F.KELVIN:
            return self.get_kelvin()
        if field is F.BULB_MODE:
            return self.get_bulb_mode()
        raise ValueError(f"field has no raw value: {field!r}")

    def get_parsed_field_value(self, field: GroupStateField) -> int:
        """Field value in the units used by the JSON interface."""
        if field is GroupStateField.LEVEL:
            return self.get_brightness()
        if field is GroupStateField.BRIGHTNESS:
            return _rescale(self.get_brightness(), 255, 100, bits=8)
        if field is GroupStateField.COLOR_TEMP:
            return self.get_mireds()
        return self.get_field_value(field)

    def set_field_value(self, field: GroupStateField, value: int) -> None:
        F = GroupStateField
        if field in (F.STATE, F.STATUS):
            self.set_state(MiLightStatus(value))
        elif field is F.BRIGHTNESS:
            self.set_brightness(value)
        elif field is F.HUE:
            self.set_hue(value)
        elif field is F.SATURATION:
            self.set_saturation(value)
        elif field is F.MODE:
            self.set_mode(value)
        elif field is F.KELVIN:
            self.set_kelvin(value)
        elif field is F.BULB_MODE:
            self.set_bulb_mode(BulbMode(value))
        else:
            raise ValueError(f"field cannot be set: {field!r}")

    def clear_field(self, field: GroupStateField) -> bool:
        """Mark a field unknown; return True if it was set before."""
        F = GroupStateField
        if field in (F.COMPUTED_COLOR, F.DEVICE_ID, F.GROUP_ID, F.DEVICE_TYPE):
            return False
        if field in (F.STATE, F.STATUS):
            cleared = self.is_set_state()
            self._bits.is_set_state = 0
            return cleared
        if field in (F.BRIGHTNESS, F.LEVEL):
            return self.clear_brightness()
        if field in (F.COLOR, F.HUE, F.OH_COLOR, F.HEX_COLOR):
            cleared = self.is_set_hue()
            self._bits.is_set_hue = 0
            return cleared
        if field is F.SATURATION:
            cleared = self.is_set_saturation()
            self._bits.is_set_saturation = 0
            return cleared
        if field in (F.MODE, F.EFFECT):
            cleared = self.is_set_mode()
            self._bits.is_set_mode = 0
            return cleared
        if field in (F.KELVIN, F.COLOR_TEMP):
            cleared = self.is_set_kelvin()
            self._bits.is_set_kelvin = 0
            return cleared
        if field is F.BULB_MODE:
            cleared = self.is_set_bulb_mode()
            self._bits.is_set_bulb_mode = 0
            return self.clear_brightness() or cleared
        raise ValueError(f"unknown field: {field!r}")

    # scratchpad

    def _check_scratch(self, field: GroupStateField) -> None:
        if field not in _SCRATCH_WIDTHS:
            raise ValueError(f"not a scratch field: {field!r}")

    def is_set_scratch_field(self, field: GroupStateField) -> bool:
        self._check_scratch(field)
        return self._scratch[field] is not None

    def get_scratch_field_value(self, field: GroupStateField) -> int:
        self._check_scratch(field)
        value = self._scratch[field]
        return 0 if value is None else value

    def set_scratch_field_value(self, field: GroupStateField, value: int) -> None:
        self._check_scratch(field)
        self._scratch[field] = int(value) & ((1 << _SCRATCH_WIDTHS[field]) - 1)

    # state

    def is_set_state(self) -> bool:
        return bool(self._bits.is_set_state)

    def get_state(self) -> MiLightStatus:
        return MiLightStatus.ON if self._bits.state else MiLightStatus.OFF

    def is_on(self) -> bool:
        """True unless in night mode or known to be off."""
        return not self.is_night_mode() and (
            not self.is_set_state() or self.get_state() is MiLightStatus.ON
        )

    def set_state(self, status: MiLightStatus) -> bool:
        status = MiLightStatus(status)
        if not self.is_night_mode() and self.is_set_state() and self.get_state() is status:
            return False
        self._set_dirty()
        self._bits.is_set_state = 1
        self._bits.state = 1 if status is MiLightStatus.ON else 0
        self.set_night_mode(False)
        return True

    # brightness, kept separately for each bulb mode

    def is_set_brightness(self) -> bool:
        bits = self._bits
        if not self.is_set_bulb_mode():
            return bool(bits.is_set_brightness)
        if bits.bulb_mode == BulbMode.WHITE:
            return bool(bits.is_set_brightness)
        if bits.bulb_mode == BulbMode.COLOR:
            return bool(bits.is_set_brightness_color)
        if bits.bulb_mode == BulbMode.SCENE:
            return bool(bits.is_set_brightness_mode)
        return False

    def clear_brightness(self) -> bool:
        bits = self._bits
        if not bits.is_set_bulb_mode or bits.bulb_mode == BulbMode.WHITE:
            cleared = bool(bits.is_set_brightness)
            bits.is_set_brightness = 0
        elif bits.bulb_mode == BulbMode.COLOR:
            cleared = bool(bits.is_set_brightness_color)
            bits.is_set_brightness_color = 0
        elif bits.bulb_mode == BulbMode.SCENE:
            cleared = bool(bits.is_set_brightness_mode)
            bits.is_set_brightness_mode = 0
        else:
            cleared = False
        return cleared

    def get_brightness(self) -> int:
        bits = self._bits
        if bits.bulb_mode == BulbMode.WHITE:
            return bits.brightness
        if bits.bulb_mode == BulbMode.COLOR:
            return bits.brightness_color
        if bits.bulb_mode == BulbMode.SCENE:
            return bits.brightness_mode
        return 0

    def set_brightness(self, brightness: int) -> bool:
        brightness = int(brightness) & 0xFF
        if self.is_set_brightness() and self.get_brightness() == brightness:
            return False
        self._set_dirty()
        mode = self._bits.bulb_mode if self._bits.is_set_bulb_mode else BulbMode.WHITE
        if mode == BulbMode.WHITE:
            self._bits.is_set_brightness = 1
            self._put("brightness", brightness)
        elif mode == BulbMode.COLOR:
            self._bits.is_set_brightness_color = 1
            self._put("brightness_color", brightness)
        elif mode == BulbMode.SCENE:
            self._bits.is_set_brightness_mode = 1
            self._put("brightness_mode", brightness)
            return False
        else:
            return False
        return True

    # hue, stored in 8 bits and exposed in degrees

    def is_set_hue(self) -> bool:
        return bool(self._bits.is_set_hue)

    def get_hue(self) -> int:
        return _rescale(self._bits.hue, 360, 255)

    def set_hue(self, hue: int) -> bool:
        hue = int(hue) & 0xFFFF
        if self.is_set_hue() and self.get_hue() == hue:
            return False
        self._set_dirty()
        self._bits.is_set_hue = 1
        self._put("hue", _rescale(hue, 255, 360))
        return True

    def is_set_saturation(self) -> bool:
        return bool(self._bits.is_set_saturation)

    def get_saturation(self) -> int:
        return self._bits.saturation

    def set_saturation(self, saturation: int) -> bool:
        saturation = int(saturation) & 0xFF
        if self.is_set_saturation() and self.get_saturation() == saturation:
            return False
        self._set_dirty()
        self._bits.is_set_saturation = 1
        self._put("saturation", saturation)
        return True

    def is_set_mode(self) -> bool:
        return bool(self._bits.is_set_mode)

    def is_set_effect(self) -> bool:
        """Every known bulb mode except colour has an effect."""
        return self.is_set_bulb_mode() and self.get_bulb_mode() != BulbMode.COLOR

    def get_mode(self) -> int:
        return self._bits.mode

    def set_mode(self, mode: int) -> bool:
        mode = int(mode) & 0xFF
        if self.is_set_mode() and self.get_mode() == mode:
            return False
        self._set_dirty()
        self._bits.is_set_mode = 1
        self._put("mode", mode)
        return True

    # colour temperature, stored on a 0..100 scale

    def is_set_kelvin(self) -> bool:
        return bool(self._bits.is_set_kelvin)

    def get_kelvin(self) -> int:
        return self._bits.kelvin

    def get_mireds(self) -> int:
        return _white_val_to_mireds(self.get_kelvin(), 100)

    def set_kelvin(self, kelvin: int) -> bool:
        kelvin = int(kelvin) & 0xFF
        if self.is_set_kelvin() and self.get_kelvin() == kelvin:
            return False
        self._set_dirty()
        self._bits.is_set_kelvin = 1
        self._put("kelvin", kelvin)
        return True

    def set_mireds(self, mireds: int) -> bool:
        return self.set_kelvin(_mireds_to_white_val(int(mireds) & 0xFFFF, 100))

    # bulb mode; night mode is transient and kept apart from it

    def is_set_bulb_mode(self) -> bool:
        night = self.is_set_night_mode() and self.is_night_mode()
        return night or bool(self._bits.is_set_bulb_mode)

    def get_bulb_mode(self) -> BulbMode:
        if self.is_set_night_mode() and self.is_night_mode():
            return BulbMode.NIGHT
        return BulbMode(self._bits.bulb_mode)

    def set_bulb_mode(self, bulb_mode: BulbMode) -> bool:
        bulb_mode = BulbMode(bulb_mode)
        if self.is_set_bulb_mode() and self.get_bulb_mode() is bulb_mode:
            return False
        self._set_dirty()
        if bulb_mode is BulbMode.NIGHT:
            self.set_night_mode(True)
        else:
            self._bits.is_set_bulb_mode = 1
            self._put("bulb_mode", bulb_mode)
        return True

    def is_set_night_mode(self) -> bool:
        return bool(self._bits.is_set_night_mode)

    def is_night_mode(self) -> bool:
        return bool(self._bits.is_night_mode)

    def set_night_mode(self, night_mode: bool) -> bool:
        night_mode = bool(night_mode)
        if self.is_set_night_mode() and self.is_night_mode() == night_mode:
            return False
        self._set_dirty()
        self._bits.is_set_night_mode = 1
        self._bits.is_night_mode = int(night_mode)
        return True

    # dirty tracking

    def is_dirty(self) -> bool:
        return bool(self._bits.dirty)

    def _set_dirty(self) -> None:
        self._bits.dirty = 1
        self._bits.mqtt_dirty = 1

    def clear_dirty(self) -> None:
        self._bits.dirty = 0

    def is_mqtt_dirty(self) -> bool:
        return bool(self._bits.mqtt_dirty)

    def clear_mqtt_dirty(self) -> None:
        self._bits.mqtt_dirty = 0

    def reset(self) -> None:
        """Forget every field and the scratchpad; the state becomes dirty."""
        self._bits = _Bits()
        self._scratch = {f: None for f in self.SCRATCH_FIELDS}

    # combining states

    def apply_increment_command(
        self, field: GroupStateField, direction: IncrementDirection
    ) -> bool:
        """Track a relative brightness or temperature command.

        With a known previous value, the value moves by ten units. Otherwise
        the scratchpad counts steps from the extreme opposite the command
        until a known extreme is reached. Returns True when a real (not
        scratch) field changed.
        """
        if field not in (GroupStateField.KELVIN, GroupStateField.BRIGHTNESS):
            raise ValueError(f"increment not supported for field: {field!r}")
        direction = IncrementDirection(direction)
        step = int(direction)

        previous = self.previous_state
        if previous is not None and previous.is_set_field(field):
            current = _int8(previous.get_field_value(field))
            new_value = _int8(current + step * INCREMENT_COMMAND_VALUE)
            self.set_field_value(field, _clamp(new_value, 0, 100))
            return True

        if self.is_set_scratch_field(field):
            new_value = _int8(self.get_scratch_field_value(field) + step)
            if new_value in (0, 10):
                self.set_field_value(field, new_value * INCREMENT_COMMAND_VALUE)
                return True
            self.set_scratch_field_value(field, new_value)
        elif direction is IncrementDirection.DECREASE:
            self.set_scratch_field_value(field, 9)
        else:
            self.set_scratch_field_value(field, 1)
        return False

    def clear_non_matching_fields(self, other: GroupState) -> bool:
        """Clear every physical field whose known value differs from ``other``'s."""
        cleared_any = False
        for field in self.PHYSICAL_FIELDS:
            if (
                other.is_set_field(field)
                and self.is_set_field(field)
                and self.get_field_value(field) != other.get_field_value(field)
            ):
                if self.clear_field(field):
                    cleared_any = True
        return cleared_any

    def patch(self, other: GroupState) -> None:
        """Copy the set fields of ``other`` onto this state.

        Only the power state changes while the bulb is off; night mode is
        always taken over.
        """
        for field in self.PHYSICAL_FIELDS:
            if field is GroupStateField.BULB_MODE and other.is_night_mode():
                self.set_field_value(field, other.get_field_value(field))
            elif other.is_set_field(field) and (
                field is GroupStateField.STATE or self.is_on()
            ):
                self.set_field_value(field, other.get_field_value(field))

        for field in self.SCRATCH_FIELDS:
            if self.is_on() and other.is_set_scratch_field(field):
                self.set_scratch_field_value(field, other.get_scratch_field_value(field))

    # persistence

    def to_bytes(self) -> bytes:
        """The persistent part of the state as 8 bytes; the scratchpad is not included."""
        words = []
        for layout in _WORD_LAYOUT:
            word = 0
            shift = 0
            for name, width in layout:
                word |= (getattr(self._bits, name) & ((1 << width) - 1)) << shift
                shift += width
            words.append(word)
        return struct.pack("<II", *words)

    def load_bytes(self, data: bytes) -> None:
        """Replace the persistent state with ``data`` and mark it clean."""
        if len(data) != DATA_LENGTH:
            raise ValueError(f"expected {DATA_LENGTH} bytes, got {len(data)}")
        values = {}
        for layout, word in zip(_WORD_LAYOUT, struct.unpack("<II", bytes(data))):
            shift = 0
            for name, width in layout:
                values[name] = (word >> shift) & ((1 << width) - 1)
                shift += width
        self._bits = _Bits(**values)
        self.clear_dirty()

    @classmethod
    def default_state(cls, remote_type: RemoteType) -> GroupState:
        """A fresh state with the bulb mode implied by the remote type."""
        state = cls()
        remote_type = RemoteType(remote_type)
        if remote_type is RemoteType.RGB:
            state.set_bulb_mode(BulbMode.COLOR)
        elif remote_type in (RemoteType.CCT, RemoteType.FUT091):
            state.set_bulb_mode(BulbMode.WHITE)
        return state

    @staticmethod
    def is_physical_field(field: GroupStateField) -> bool:
        return field in GroupState.PHYSICAL_FIELDS

    def _raw(self) -> tuple:
        return astuple(self._bits)
"""Conversion between group states and their JSON representation."""

from __future__ import annotations

import colorsys
import math
from collections.abc import Iterable, Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any

from milighthub.fields import (
    BulbId,
    BulbMode,
    GroupStateField,
    IncrementDirection,
    MiLightStatus,
    RemoteType,
)
from milighthub.group_state import GroupState

COMMAND_KEY = "command"

SET_WHITE = "set_white"
NIGHT_MODE = "night_mode"
TEMPERATURE_UP = "temperature_up"
TEMPERATURE_DOWN = "temperature_down"
BRIGHTNESS_UP = "brightness_up"
BRIGHTNESS_DOWN = "brightness_down"

WHITE_MODE_EFFECT = "white_mode"

BULB_MODE_NAMES = {
    BulbMode.WHITE: "white",
    BulbMode.COLOR: "color",
    BulbMode.SCENE: "scene",
    BulbMode.NIGHT: "night",
}

_COLOR_KEY = GroupStateField.COLOR.value


@dataclass(frozen=True)
class ParsedColor:
    """An RGB colour together with the hue and saturation it came from."""

    success: bool
    hue: int
    r: int
    g: int
    b: int
    saturation: int

    @property
    def rgb(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


def _rescale(value: int, new_max: float, old_max: float) -> int:
    return math.floor(value * (new_max / old_max) + 0.5) & 0xFF


def color_of(state: GroupState) -> ParsedColor:
    """The RGB colour of ``state`` at full value; saturation defaults to 100."""
    hue = state.get_hue()
    saturation = state.get_saturation() if state.is_set_saturation() else 100
    red, green, blue = colorsys.hsv_to_rgb(hue / 360.0, saturation / 100.0, 1.0)
    return ParsedColor(
        success=True,
        hue=hue,
        r=int(red * 255) & 0xFF,
        g=int(green * 255) & 0xFF,
        b=int(blue * 255) & 0xFF,
        saturation=saturation,
    )


def patch_from_json(state: GroupState, obj: Mapping[str, Any]) -> bool:
    """Apply the fields of a JSON command object to ``state``.

    Bulbs that are off ignore everything except power and night mode.
    Returns True if the state changed.
    """
    F = GroupStateField
    changes = False

    if F.STATE.value in obj:
        status = MiLightStatus.ON if obj[F.STATE.value] == "ON" else MiLightStatus.OFF
        changes |= state.set_state(status)

    if state.is_on() and F.BRIGHTNESS.value in obj:
        raw = int(obj[F.BRIGHTNESS.value]) & 0xFF
        changes |= state.set_brightness(_rescale(raw, 100, 255))
    if state.is_on() and F.HUE.value in obj:
        changes |= state.set_hue(int(obj[F.HUE.value]))
        changes |= state.set_bulb_mode(BulbMode.COLOR)
    if state.is_on() and F.SATURATION.value in obj:
        changes |= state.set_saturation(int(obj[F.SATURATION.value]))
    if state.is_on() and F.MODE.value in obj:
        changes |= state.set_mode(int(obj[F.MODE.value]))
        changes |= state.set_bulb_mode(BulbMode.SCENE)
    if state.is_on() and F.COLOR_TEMP.value in obj:
        changes |= state.set_mireds(int(obj[F.COLOR_TEMP.value]))
        changes |= state.set_bulb_mode(BulbMode.WHITE)

    if COMMAND_KEY in obj:
        command = obj[COMMAND_KEY]
        if state.is_on() and command == SET_WHITE:
            changes |= state.set_bulb_mode(BulbMode.WHITE)
        elif command == NIGHT_MODE:
            changes |= state.set_bulb_mode(BulbMode.NIGHT)
        elif state.is_on() and command == BRIGHTNESS_UP:
            changes |= state.apply_increment_command(F.BRIGHTNESS, IncrementDirection.INCREASE)
        elif state.is_on() and command == BRIGHTNESS_DOWN:
            changes |= state.apply_increment_command(F.BRIGHTNESS, IncrementDirection.DECREASE)
        elif state.is_on() and command == TEMPERATURE_UP:
            changes |= state.apply_increment_command(F.KELVIN, IncrementDirection.INCREASE)
            changes |= state.set_bulb_mode(BulbMode.WHITE)
        elif state.is_on() and command == TEMPERATURE_DOWN:
            changes |= state.apply_increment_command(F.KELVIN, IncrementDirection.DECREASE)
            changes |= state.set_bulb_mode(BulbMode.WHITE)

    return changes


def state_from_json(previous_state: GroupState | None, obj: Mapping[str, Any]) -> GroupState:
    """Build a state from a JSON command, carrying over ``previous_state``'s scratchpad."""
    state = GroupState(previous_state)
    patch_from_json(state, obj)
    return state


def _put_rgb(partial: MutableMapping[str, Any], r: int, g: int, b: int) -> None:
    partial[_COLOR_KEY] = {"r": r, "g": g, "b": b}


def _device_type_name(device_type: RemoteType) -> str | None:
    if device_type is RemoteType.UNKNOWN:
        return None
    return device_type.name.lower()


def apply_field(
    state: GroupState,
    partial: MutableMapping[str, Any],
    bulb_id: BulbId,
    field: GroupStateField,
) -> None:
    """Write one field of ``state`` into ``partial`` if it is known and relevant."""
    F = GroupStateField
    if not state.is_set_field(field):
        return

    mode = state.get_bulb_mode()
    is_color = mode is BulbMode.COLOR
    known_white = state.is_set_bulb_mode() and mode is BulbMode.WHITE

    if field in (F.STATE, F.STATUS):
        partial[field.value] = "ON" if state.get_state() is MiLightStatus.ON else "OFF"
    elif field is F.BRIGHTNESS:
        partial[F.BRIGHTNESS.value] = state.get_parsed_field_value(F.BRIGHTNESS)
    elif field is F.LEVEL:
        partial[F.LEVEL.value] = state.get_brightness()
    elif field is F.BULB_MODE:
        partial[F.BULB_MODE.value] = BULB_MODE_NAMES[mode]
    elif field is F.COLOR:
        if is_color:
            _put_rgb(partial, *color_of(state).rgb)
    elif field is F.OH_COLOR:
        if is_color:
            color = color_of(state)
            partial[_COLOR_KEY] = f"{color.r},{color.g},{color.b}"
    elif field is F.HEX_COLOR:
        if is_color:
            color = color_of(state)
            partial[_COLOR_KEY] = f"#{color.r:02X}{color.g:02X}{color.b:02X}"
    elif field is F.COMPUTED_COLOR:
        if is_color:
            _put_rgb(partial, *color_of(state).rgb)
        else:
            _put_rgb(partial, 255, 255, 255)
    elif field is F.HUE:
        if is_color:
            partial[F.HUE.value] = state.get_hue()
    elif field is F.SATURATION:
        if is_color:
            partial[F.SATURATION.value] = state.get_saturation()
    elif field is F.MODE:
        if mode is BulbMode.SCENE:
            partial[F.MODE.value] = state.get_mode()
    elif field is F.EFFECT:
        if mode is BulbMode.SCENE:
            partial[F.EFFECT.value] = str(state.get_mode())
        elif known_white:
            partial[F.EFFECT.value] = WHITE_MODE_EFFECT
        elif mode is BulbMode.NIGHT:
            partial[F.EFFECT.value] = NIGHT_MODE
    elif field is F.COLOR_TEMP:
        if known_white:
            partial[F.COLOR_TEMP.value] = state.get_mireds()
    elif field is F.KELVIN:
        if known_white:
            partial[F.KELVIN.value] = state.get_kelvin()
    elif field is F.DEVICE_ID:
        partial[F.DEVICE_ID.value] = bulb_id.device_id
    elif field is F.GROUP_ID:
        partial[F.GROUP_ID.value] = bulb_id.group_id
    elif field is F.DEVICE_TYPE:
        name = _device_type_name(bulb_id.device_type)
        if name is not None:
            partial[F.DEVICE_TYPE.value] = name
    else:
        raise ValueError(f"unknown field: {field!r}")


def apply_state(
    state: GroupState,
    partial: MutableMapping[str, Any],
    bulb_id: BulbId,
    fields: Iterable[GroupStateField],
) -> None:
    """Write each of ``fields`` of ``state`` into ``partial``, in order."""
    for field in fields:
        apply_field(state, partial, bulb_id, field)
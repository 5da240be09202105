"""Enumerations and identifiers shared by the group state code."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class GroupStateField(Enum):
    """A named aspect of a bulb group's state, as exposed to users."""

    STATE = "state"
    STATUS = "status"
    BRIGHTNESS = "brightness"
    LEVEL = "level"
    HUE = "hue"
    SATURATION = "saturation"
    COLOR = "color"
    MODE = "mode"
    KELVIN = "kelvin"
    COLOR_TEMP = "color_temp"
    BULB_MODE = "bulb_mode"
    COMPUTED_COLOR = "computed_color"
    EFFECT = "effect"
    DEVICE_ID = "device_id"
    GROUP_ID = "group_id"
    DEVICE_TYPE = "device_type"
    OH_COLOR = "oh_color"
    HEX_COLOR = "hex_color"

    @classmethod
    def from_name(cls, name: str) -> GroupStateField:
        """Look a field up by its name; raise ValueError if there is none."""
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"unknown group state field: {name!r}") from None


class BulbMode(IntEnum):
    """The mode a bulb is operating in."""

    WHITE = 0
    COLOR = 1
    SCENE = 2
    NIGHT = 3


class IncrementDirection(IntEnum):
    """Direction of a relative (up/down) command."""

    INCREASE = 1
    DECREASE = -1


class MiLightStatus(IntEnum):
    """Power status of a bulb."""

    ON = 0
    OFF = 1


class RemoteType(IntEnum):
    """Family of remote (and therefore protocol) a bulb is paired with."""

    RGBW = 0
    CCT = 1
    RGB_CCT = 2
    RGB = 3
    FUT089 = 4
    FUT091 = 5
    FUT020 = 6
    UNKNOWN = 255


@dataclass(frozen=True)
class BulbId:
    """Identifies one group of bulbs: device id, group number and remote type."""

    device_id: int = 0
    group_id: int = 0
    device_type: RemoteType = RemoteType.UNKNOWN

    def __post_init__(self) -> None:
        if not 0 <= self.device_id <= 0xFFFF:
            raise ValueError(f"device id must fit in 16 bits: {self.device_id}")
        if not 0 <= self.group_id <= 0xFF:
            raise ValueError(f"group id must fit in 8 bits: {self.group_id}")
        object.__setattr__(self, "device_type", RemoteType(self.device_type))

    def compact_id(self) -> int:
        """Pack the three parts into one 32-bit number."""
        return (self.device_id << 16) | (int(self.device_type) << 8) | self.group_id
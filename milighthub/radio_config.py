"""Radio parameters for each family of MiLight remotes."""

from __future__ import annotations

from dataclasses import dataclass, field

from milighthub.radio_utils import reverse_bits

NUM_CHANNELS = 3
SYNCWORD_LENGTH = 5
MAX_PACKET_LENGTH = 9


@dataclass(frozen=True)
class RadioConfig:
    """Syncwords, packet length and channels used by one remote protocol."""

    syncword0: int
    syncword3: int
    packet_length: int
    channels: tuple[int, ...]
    preamble: int = field(default=0xAA)
    trailer: int = field(default=0x05)

    def __post_init__(self) -> None:
        channels = tuple(self.channels)
        if len(channels) != NUM_CHANNELS:
            raise ValueError(f"expected {NUM_CHANNELS} channels, got {len(channels)}")
        for name in ("syncword0", "syncword3"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFFFF:
                raise ValueError(f"{name} must fit in 16 bits: {value}")
        for name in ("preamble", "trailer"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFF:
                raise ValueError(f"{name} must fit in 8 bits: {value}")
        for channel in channels:
            if not 0 <= channel <= 0xFF:
                raise ValueError(f"channel must fit in 8 bits: {channel}")
        if self.packet_length < 0:
            raise ValueError(f"negative packet length: {self.packet_length}")
        object.__setattr__(self, "channels", channels)

    def syncword_bytes(self) -> bytes:
        """The nRF24 address for this protocol.

        The fixed preamble nibble and the 4-bit trailer are folded into the
        address so that received packet data stays byte-aligned.
        """
        sw0, sw3 = self.syncword0, self.syncword3
        raw = (
            ((sw3 >> 12) & 0x0F) | ((self.trailer << 4) & 0xF0),
            (sw3 >> 4) & 0xFF,
            ((sw0 >> 12) & 0x0F) | ((sw3 << 4) & 0xF0),
            (sw0 >> 4) & 0xFF,
            ((sw0 << 4) & 0xF0) | (self.preamble & 0x0F),
        )
        return bytes(reverse_bits(b) for b in raw)


_ALL_CONFIGS = (
    RadioConfig(0x147A, 0x258B, 7, (9, 40, 71), 0xAA, 0x05),  # rgbw
    RadioConfig(0x050A, 0x55AA, 7, (4, 39, 74), 0xAA, 0x05),  # cct
    RadioConfig(0x7236, 0x1809, 9, (8, 39, 70), 0xAA, 0x05),  # rgb+cct, fut089
    RadioConfig(0x9AAB, 0xBCCD, 6, (3, 38, 73), 0x55, 0x0A),  # rgb
    RadioConfig(0x50A0, 0xAA55, 6, (6, 41, 76), 0xAA, 0x0A),  # fut020
)


def all_configs() -> tuple[RadioConfig, ...]:
    """Every known radio configuration, in protocol order."""
    return _ALL_CONFIGS
"""Bit-level helpers for the PL1167 over-the-air frame format.

A PL1167 frame on the air looks like this (lengths in bits)::

    Preamble (8) | Syncword (32) | Trailer (4) | Packet Len (8) | Packet (...)

Bytes are sent least significant bit first, so every byte is bit-reversed
before it is handed to an nRF24 radio. Packets end with a 16-bit CRC stored
low byte first.
"""

from __future__ import annotations

CRC_POLY = 0x8408
MAX_FRAME_LENGTH = 32
CRC_LENGTH = 2


class FrameError(ValueError):
    """Raised when a received frame is too short or fails its CRC check."""


def reverse_bits(byte: int) -> int:
    """Return ``byte`` with its eight bits in reverse order."""
    if not 0 <= byte <= 0xFF:
        raise ValueError(f"not a byte: {byte}")
    result = 0
    for _ in range(8):
        result = (result << 1) | (byte & 1)
        byte >>= 1
    return result


def calc_crc(data: bytes) -> int:
    """Compute the reflected CRC-16 (polynomial 0x8408, initial value 0)."""
    state = 0
    for byte in data:
        for _ in range(8):
            if (byte ^ state) & 0x01:
                state = (state >> 1) ^ CRC_POLY
            else:
                state >>= 1
            byte >>= 1
    return state


def encode_frame(packet: bytes) -> bytes:
    """Append the CRC to ``packet`` and bit-reverse everything for transmission.

    ``packet`` normally starts with its own length byte. Anything beyond the
    radio's 32-byte FIFO is dropped, as the radio would.
    """
    packet = bytes(packet[:MAX_FRAME_LENGTH])
    crc = calc_crc(packet)
    body = packet + crc.to_bytes(CRC_LENGTH, "little")
    return bytes(reverse_bits(b) for b in body)


def decode_frame(raw: bytes) -> bytes:
    """Undo the bit reversal of a received frame, check and strip its CRC.

    Raises :class:`FrameError` if the frame is shorter than a CRC or the CRC
    does not match.
    """
    data = bytes(reverse_bits(b) for b in raw)
    if len(data) < CRC_LENGTH:
        raise FrameError(f"frame of {len(data)} bytes is too short to hold a CRC")
    payload, trailer = data[:-CRC_LENGTH], data[-CRC_LENGTH:]
    expected = calc_crc(payload)
    received = int.from_bytes(trailer, "little")
    if expected != received:
        raise FrameError(f"CRC mismatch: expected {expected:04X}, got {received:04X}")
    return payload
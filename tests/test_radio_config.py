import pytest

from milighthub.radio_config import (
    NUM_CHANNELS,
    SYNCWORD_LENGTH,
    RadioConfig,
    all_configs,
)
from milighthub.radio_utils import reverse_bits


def _unpack(syncword_bytes):
    rb = [reverse_bits(b) for b in syncword_bytes]
    sw0 = (rb[4] >> 4) | (rb[3] << 4) | ((rb[2] & 0x0F) << 12)
    sw3 = (rb[2] >> 4) | (rb[1] << 4) | ((rb[0] & 0x0F) << 12)
    preamble_nibble = rb[4] & 0x0F
    trailer_nibble = rb[0] >> 4
    return sw0, sw3, preamble_nibble, trailer_nibble


def test_known_configs():
    configs = all_configs()
    assert len(configs) == 5
    rgbw = configs[0]
    assert rgbw.syncword0 == 0x147A
    assert rgbw.syncword3 == 0x258B
    assert rgbw.packet_length == 7
    assert rgbw.channels == (9, 40, 71)
    assert configs[2].packet_length == 9
    assert configs[3].preamble == 0x55


@pytest.mark.parametrize("config", all_configs())
def test_syncword_bytes_encode_syncwords(config):
    data = config.syncword_bytes()
    assert len(data) == SYNCWORD_LENGTH
    sw0, sw3, preamble, trailer = _unpack(data)
    assert sw0 == config.syncword0
    assert sw3 == config.syncword3
    assert preamble == config.preamble & 0x0F
    assert trailer == config.trailer & 0x0F


def test_configs_have_three_channels():
    assert {len(config.channels) for config in all_configs()} == {NUM_CHANNELS}


def test_channels_become_tuple():
    config = RadioConfig(0x1234, 0x5678, 7, [1, 2, 3], 0xAA, 0x05)
    assert config.channels == (1, 2, 3)


def test_wrong_channel_count_rejected():
    with pytest.raises(ValueError):
        RadioConfig(0x1234, 0x5678, 7, (1, 2), 0xAA, 0x05)


def test_syncword_out_of_range_rejected():
    with pytest.raises(ValueError):
        RadioConfig(0x10000, 0x5678, 7, (1, 2, 3), 0xAA, 0x05)


def test_configs_are_immutable():
    with pytest.raises(AttributeError):
        all_configs()[0].packet_length = 3
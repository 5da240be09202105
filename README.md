# milighthub

A library for the bookkeeping side of a MiLight bulb hub: what each bulb group is
known to be doing, where that knowledge is stored, how radio frames are checked,
how the hub is configured, and how it announces itself on the local network.

It has no dependencies beyond the standard library.

## Modules

- `milighthub.radio_utils`: `reverse_bits`, the reflected CRC-16 `calc_crc`
  (polynomial 0x8408), and `encode_frame` / `decode_frame`, which add or check and
  strip the CRC and bit-reverse every byte. `decode_frame` raises `FrameError` for a
  frame that is too short or fails its CRC.
- `milighthub.radio_config`: `RadioConfig` holds the syncwords, packet length,
  three channels, preamble and trailer for one remote family; `syncword_bytes()`
  gives the 5-byte nRF24 address. `all_configs()` returns the five built-in
  configurations.
- `milighthub.fields`: the enums `GroupStateField`, `BulbMode`,
  `IncrementDirection`, `MiLightStatus` and `RemoteType`, and the frozen
  `BulbId(device_id, group_id, device_type)` with `compact_id()`.
- `milighthub.group_state`: `GroupState`, the state of one bulb group. Every field
  has an "is set" flag, brightness is kept separately for white, colour and scene
  mode, night mode is tracked apart from the bulb mode, and dirty / MQTT-dirty flags
  record changes. A scratchpad follows relative brightness and temperature commands
  (`apply_increment_command`). `patch`, `clear_non_matching_fields`,
  `default_state(remote_type)`, and `to_bytes()` / `load_bytes()` (8 bytes) are
  provided.
- `milighthub.state_json`: `patch_from_json` and `state_from_json` apply a
  JSON-style command dict (`state`, `brightness`, `hue`, `saturation`, `mode`,
  `color_temp`, `command`) to a state; `apply_field` and `apply_state` render chosen
  fields into a dict; `color_of` returns a `ParsedColor`.
- `milighthub.cache`: `GroupStateCache`, an LRU cache of states keyed by `BulbId`.
- `milighthub.persistence`: `GroupStatePersistence(root)` stores each state as an
  8-byte file under `root/group_states/<compact id in hex>`.
- `milighthub.store`: `GroupStateStore` combines the cache and persistence. Setting
  group 0 patches every group of the device; setting another group makes the
  differing fields of group 0 unknown. `flush()` does one unit of storage work;
  `limited_flush(now)` does so at most once per `flush_rate` milliseconds.
- `milighthub.settings`: `Settings`, a dataclass of every hub option with its
  default, plus `patch`, `to_dict`, `to_json`, `save(path)` and `Settings.load(path)`
  (a missing file is created with the defaults).
- `milighthub.ssdp`: `parse_request`, `make_uuid`, `SsdpService` (builds search
  responses, alive notifications and the UPnP device description, and decides when
  to send them), and `SsdpProtocol`, an `asyncio.DatagramProtocol` around it.

## Examples

Tracking and storing state:

```python
from milighthub.fields import BulbId, BulbMode, MiLightStatus, RemoteType
from milighthub.group_state import GroupState
from milighthub.persistence import GroupStatePersistence
from milighthub.store import GroupStateStore

state = GroupState()
state.set_state(MiLightStatus.ON)
state.set_bulb_mode(BulbMode.COLOR)
state.set_hue(120)
state.set_brightness(100)

store = GroupStateStore(
    10, 0, GroupStatePersistence("data"), {RemoteType.FUT089: 8}
)
store.set(BulbId(1, 1, RemoteType.FUT089), state)
store.flush()
```

Applying a JSON command and rendering the result:

```python
from milighthub.fields import BulbId, GroupStateField, RemoteType
from milighthub.state_json import apply_state, state_from_json

state = state_from_json(None, {"state": "ON", "hue": 240, "brightness": 50})
out = {}
apply_state(
    state,
    out,
    BulbId(1, 1, RemoteType.RGB_CCT),
    [GroupStateField.STATE, GroupStateField.BRIGHTNESS, GroupStateField.COLOR],
)
```

Framing:

```python
from milighthub.radio_utils import decode_frame, encode_frame

frame = encode_frame(bytes([3, 0x10, 0x20, 0x30]))
assert decode_frame(frame) == bytes([3, 0x10, 0x20, 0x30])
```

## What it does not do

- It does not drive any radio module: there is no nRF24 or LT8900 driver, so frames
  are built and checked here but sent and received elsewhere.
- It has no command-line program, web server or MQTT client.
- `SsdpProtocol` does not open or configure the socket beyond setting the multicast
  TTL; binding to port 1900 and joining the multicast group is left to the caller,
  as is calling `tick()` about once a second.

## Running the tests

```
pip install .[test]
pytest
```
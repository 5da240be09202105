"""Hub configuration: defaults, JSON patching and persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Callable, Mapping

from milighthub.fields import BulbId, GroupStateField, RemoteType

log = logging.getLogger(__name__)

SETTINGS_FILE = "config.json"
MINIMUM_RESTART_PERIOD = 1
DEFAULT_MQTT_PORT = 1883

DEFAULT_GROUP_STATE_FIELDS = (
    GroupStateField.STATE,
    GroupStateField.BRIGHTNESS,
    GroupStateField.COMPUTED_COLOR,
    GroupStateField.MODE,
    GroupStateField.COLOR_TEMP,
    GroupStateField.BULB_MODE,
)

DEFAULT_RF24_CHANNELS = ("LOW", "MID", "HIGH")


class RadioInterfaceType(IntEnum):
    """The kind of radio module the hub drives."""

    NRF24 = 0
    LT8900 = 1

    @classmethod
    def from_string(cls, text: str) -> RadioInterfaceType:
        """``lt8900`` (any case) selects the LT8900; anything else the nRF24."""
        return cls.LT8900 if str(text).lower() == "lt8900" else cls.NRF24

    def __str__(self) -> str:
        return "LT8900" if self is RadioInterfaceType.LT8900 else "nRF24"


class WifiMode(Enum):
    """802.11 physical mode."""

    B = "b"
    G = "g"
    N = "n"

    @classmethod
    def from_string(cls, text: str) -> WifiMode:
        """``b`` or ``g`` (any case) select those modes; anything else is ``n``."""
        lowered = str(text).lower()
        if lowered == "b":
            return cls.B
        if lowered == "g":
            return cls.G
        return cls.N


@dataclass(frozen=True)
class GatewayConfig:
    """A UDP gateway emulating a MiLight bridge for one device id."""

    device_id: int
    port: int
    protocol_version: int


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_int(value: Any) -> int:
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip(), 0)
        except ValueError:
            return 0
    return 0


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _atoi(text: str) -> int:
    text = text.lstrip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    digits = ""
    for ch in text:
        if not ch.isdigit():
            break
        digits += ch
    return sign * int(digits) if digits else 0


def _remote_type_from_string(name: str) -> RemoteType:
    try:
        return RemoteType[str(name).upper()]
    except KeyError:
        return RemoteType.UNKNOWN


def _remote_type_to_string(remote_type: RemoteType) -> str:
    return RemoteType(remote_type).name.lower()


_SIMPLE_KEYS: tuple[tuple[str, str, Callable[[Any], Any]], ...] = (
    ("admin_username", "admin_username", _as_str),
    ("admin_password", "admin_password", _as_str),
    ("ce_pin", "ce_pin", _as_int),
    ("csn_pin", "csn_pin", _as_int),
    ("reset_pin", "reset_pin", _as_int),
    ("led_pin", "led_pin", _as_int),
    ("packet_repeats", "packet_repeats", _as_int),
    ("http_repeat_factor", "http_repeat_factor", _as_int),
    ("auto_restart_period", "restart_period", _as_int),
    ("mqtt_server", "mqtt_server_setting", _as_str),
    ("mqtt_username", "mqtt_username", _as_str),
    ("mqtt_password", "mqtt_password", _as_str),
    ("mqtt_topic_pattern", "mqtt_topic_pattern", _as_str),
    ("mqtt_update_topic_pattern", "mqtt_update_topic_pattern", _as_str),
    ("mqtt_state_topic_pattern", "mqtt_state_topic_pattern", _as_str),
    ("mqtt_client_status_topic", "mqtt_client_status_topic", _as_str),
    ("simple_mqtt_client_status", "simple_mqtt_client_status", _as_bool),
    ("discovery_port", "discovery_port", _as_int),
    ("listen_repeats", "listen_repeats", _as_int),
    ("state_flush_interval", "state_flush_interval", _as_int),
    ("mqtt_state_rate_limit", "mqtt_state_rate_limit", _as_int),
    ("mqtt_debounce_delay", "mqtt_debounce_delay", _as_int),
    ("packet_repeat_throttle_threshold", "packet_repeat_throttle_threshold", _as_int),
    ("packet_repeat_throttle_sensitivity", "packet_repeat_throttle_sensitivity", _as_int),
    ("packet_repeat_minimum", "packet_repeat_minimum", _as_int),
    ("enable_automatic_mode_switching", "enable_automatic_mode_switching", _as_bool),
    ("led_mode_packet_count", "led_mode_packet_count", _as_int),
    ("hostname", "hostname", _as_str),
    ("wifi_static_ip", "wifi_static_ip", _as_str),
    ("wifi_static_ip_gateway", "wifi_static_ip_gateway", _as_str),
    ("wifi_static_ip_netmask", "wifi_static_ip_netmask", _as_str),
    ("packet_repeats_per_loop", "packet_repeats_per_loop", _as_int),
    ("home_assistant_discovery_prefix", "home_assistant_discovery_prefix", _as_str),
    ("default_transition_period", "default_transition_period", _as_int),
    ("rf24_listen_channel", "rf24_listen_channel", _as_str),
    ("rf24_power_level", "rf24_power_level", _as_str),
    ("led_mode_wifi_config", "led_mode_wifi_config", _as_str),
    ("led_mode_wifi_failed", "led_mode_wifi_failed", _as_str),
    ("led_mode_operating", "led_mode_operating", _as_str),
    ("led_mode_packet", "led_mode_packet", _as_str),
)


@dataclass
class Settings:
    """Every configurable option of the hub, with its default."""

    admin_username: str = ""
    admin_password: str = ""
    ce_pin: int = 4
    csn_pin: int = 15
    reset_pin: int = 0
    led_pin: int = -2
    radio_interface_type: RadioInterfaceType = RadioInterfaceType.NRF24
    packet_repeats: int = 50
    http_repeat_factor: int = 1
    listen_repeats: int = 3
    discovery_port: int = 48899
    mqtt_server_setting: str = ""
    mqtt_username: str = ""
    mqtt_password: str = ""
    mqtt_topic_pattern: str = ""
    mqtt_update_topic_pattern: str = ""
    mqtt_state_topic_pattern: str = ""
    mqtt_client_status_topic: str = ""
    simple_mqtt_client_status: bool = False
    state_flush_interval: int = 10000
    mqtt_state_rate_limit: int = 500
    mqtt_debounce_delay: int = 500
    packet_repeat_throttle_threshold: int = 200
    packet_repeat_throttle_sensitivity: int = 0
    packet_repeat_minimum: int = 3
    enable_automatic_mode_switching: bool = False
    led_mode_wifi_config: str = "FastToggle"
    led_mode_wifi_failed: str = "On"
    led_mode_operating: str = "SlowBlip"
    led_mode_packet: str = "Flicker"
    led_mode_packet_count: int = 3
    hostname: str = "milight-hub"
    rf24_power_level: str = "MAX"
    device_ids: list[int] = field(default_factory=list)
    rf24_channels: list[str] = field(default_factory=lambda: list(DEFAULT_RF24_CHANNELS))
    group_state_fields: list[GroupStateField] = field(
        default_factory=lambda: list(DEFAULT_GROUP_STATE_FIELDS)
    )
    gateway_configs: list[GatewayConfig] = field(default_factory=list)
    rf24_listen_channel: str = "LOW"
    wifi_static_ip: str = ""
    wifi_static_ip_netmask: str = ""
    wifi_static_ip_gateway: str = ""
    packet_repeats_per_loop: int = 10
    group_id_aliases: dict[str, BulbId] = field(default_factory=dict)
    deleted_group_id_aliases: dict[int, BulbId] = field(default_factory=dict)
    home_assistant_discovery_prefix: str = ""
    wifi_mode: WifiMode = WifiMode.N
    default_transition_period: int = 500
    restart_period: int = 0

    def is_authentication_enabled(self) -> bool:
        return bool(self.admin_username) and bool(self.admin_password)

    def is_auto_restart_enabled(self) -> bool:
        return self.restart_period > 0

    def auto_restart_period(self) -> int:
        """The restart period, never below the minimum; 0 means disabled."""
        if self.restart_period == 0:
            return 0
        return max(self.restart_period, MINIMUM_RESTART_PERIOD)

    def mqtt_server(self) -> str:
        """The MQTT host, without any ``:port`` suffix."""
        host, _, _ = self.mqtt_server_setting.partition(":")
        return host

    def mqtt_port(self) -> int:
        """The port after ``:`` in the server setting, or the MQTT default."""
        host, sep, port = self.mqtt_server_setting.partition(":")
        if not sep:
            return DEFAULT_MQTT_PORT
        return _atoi(port)

    def update_device_ids(self, values: list[Any]) -> None:
        self.device_ids = [_as_int(v) for v in values]

    def update_gateway_configs(self, values: list[Any]) -> None:
        """Replace gateway configs; entries that are not triples are skipped."""
        configs = []
        for index, params in enumerate(values):
            if isinstance(params, (list, tuple)) and len(params) == 3:
                configs.append(
                    GatewayConfig(_as_int(params[0]), _as_int(params[1]), _as_int(params[2]))
                )
            else:
                log.warning("skipped parsing gateway config element #%d", index)
        self.gateway_configs = configs

    def patch(self, obj: Mapping[str, Any] | None) -> None:
        """Overwrite the options present in ``obj``; others keep their values."""
        if obj is None:
            log.warning("skipping patching settings: parsed settings was null")
            return

        for key, attr, convert in _SIMPLE_KEYS:
            if key in obj:
                setattr(self, attr, convert(obj[key]))

        if "wifi_mode" in obj:
            self.wifi_mode = WifiMode.from_string(_as_str(obj["wifi_mode"]))
        if "rf24_channels" in obj:
            self.rf24_channels = [_as_str(v) for v in obj["rf24_channels"] or []]
        if "radio_interface_type" in obj:
            self.radio_interface_type = RadioInterfaceType.from_string(
                _as_str(obj["radio_interface_type"])
            )
        if "device_ids" in obj:
            self.update_device_ids(obj["device_ids"] or [])
        if "gateway_configs" in obj:
            self.update_gateway_configs(obj["gateway_configs"] or [])
        if "group_state_fields" in obj:
            fields = []
            for name in obj["group_state_fields"] or []:
                try:
                    fields.append(GroupStateField.from_name(_as_str(name)))
                except ValueError:
                    log.warning("skipped unknown group state field %r", name)
            self.group_state_fields = fields
        if "group_id_aliases" in obj:
            self._parse_group_id_aliases(obj["group_id_aliases"] or {})

    def _parse_group_id_aliases(self, aliases: Mapping[str, Any]) -> None:
        for bulb_id in self.group_id_aliases.values():
            self.deleted_group_id_aliases[bulb_id.compact_id()] = bulb_id

        self.group_id_aliases = {}
        for name, props in aliases.items():
            bulb_id = BulbId(
                _as_int(props[1]) & 0xFFFF,
                _as_int(props[2]) & 0xFF,
                _remote_type_from_string(_as_str(props[0])),
            )
            self.group_id_aliases[str(name)] = bulb_id
            self.deleted_group_id_aliases.pop(bulb_id.compact_id(), None)

    def find_alias(
        self, device_type: RemoteType, device_id: int, group_id: int
    ) -> tuple[str, BulbId] | None:
        """The alias naming this bulb group, as ``(name, bulb_id)``, or None."""
        wanted = BulbId(device_id, group_id, device_type)
        for name, bulb_id in self.group_id_aliases.items():
            if bulb_id == wanted:
                return name, bulb_id
        return None

    def to_dict(self) -> dict[str, Any]:
        """The settings as a JSON-compatible dict, in the saved key order."""
        return {
            "admin_username": self.admin_username,
            "admin_password": self.admin_password,
            "ce_pin": self.ce_pin,
            "csn_pin": self.csn_pin,
            "reset_pin": self.reset_pin,
            "led_pin": self.led_pin,
            "radio_interface_type": str(self.radio_interface_type),
            "packet_repeats": self.packet_repeats,
            "http_repeat_factor": self.http_repeat_factor,
            "auto_restart_period": self.restart_period,
            "mqtt_server": self.mqtt_server_setting,
            "mqtt_username": self.mqtt_username,
            "mqtt_password": self.mqtt_password,
            "mqtt_topic_pattern": self.mqtt_topic_pattern,
            "mqtt_update_topic_pattern": self.mqtt_update_topic_pattern,
            "mqtt_state_topic_pattern": self.mqtt_state_topic_pattern,
            "mqtt_client_status_topic": self.mqtt_client_status_topic,
            "simple_mqtt_client_status": self.simple_mqtt_client_status,
            "discovery_port": self.discovery_port,
            "listen_repeats": self.listen_repeats,
            "state_flush_interval": self.state_flush_interval,
            "mqtt_state_rate_limit": self.mqtt_state_rate_limit,
            "mqtt_debounce_delay": self.mqtt_debounce_delay,
            "packet_repeat_throttle_sensitivity": self.packet_repeat_throttle_sensitivity,
            "packet_repeat_throttle_threshold": self.packet_repeat_throttle_threshold,
            "packet_repeat_minimum": self.packet_repeat_minimum,
            "enable_automatic_mode_switching": self.enable_automatic_mode_switching,
            "led_mode_wifi_config": self.led_mode_wifi_config,
            "led_mode_wifi_failed": self.led_mode_wifi_failed,
            "led_mode_operating": self.led_mode_operating,
            "led_mode_packet": self.led_mode_packet,
            "led_mode_packet_count": self.led_mode_packet_count,
            "hostname": self.hostname,
            "rf24_power_level": self.rf24_power_level,
            "rf24_listen_channel": self.rf24_listen_channel,
            "wifi_static_ip": self.wifi_static_ip,
            "wifi_static_ip_gateway": self.wifi_static_ip_gateway,
            "wifi_static_ip_netmask": self.wifi_static_ip_netmask,
            "packet_repeats_per_loop": self.packet_repeats_per_loop,
            "home_assistant_discovery_prefix": self.home_assistant_discovery_prefix,
            "wifi_mode": self.wifi_mode.value,
            "default_transition_period": self.default_transition_period,
            "rf24_channels": list(self.rf24_channels),
            "device_ids": list(self.device_ids),
            "gateway_configs": [
                [g.device_id, g.port, g.protocol_version] for g in self.gateway_configs
            ],
            "group_state_fields": [f.value for f in self.group_state_fields],
            "group_id_aliases": {
                name: [_remote_type_to_string(b.device_type), b.device_id, b.group_id]
                for name, b in self.group_id_aliases.items()
            },
        }

    def to_json(self, pretty: bool = True) -> str:
        if pretty:
            return json.dumps(self.to_dict(), indent=2)
        return json.dumps(self.to_dict(), separators=(",", ":"))

    def save(self, path: str | os.PathLike[str] = SETTINGS_FILE) -> None:
        """Write the settings as compact JSON."""
        Path(path).write_text(self.to_json(pretty=False), encoding="utf-8")

    @classmethod
    def load(cls, path: str | os.PathLike[str] = SETTINGS_FILE) -> Settings:
        """Read settings from ``path``.

        A missing file is created with the defaults. A file that cannot be
        parsed is reported and the defaults are returned.
        """
        path = Path(path)
        settings = cls()
        if not path.exists():
            settings.save(path)
            return settings
        try:
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, UnicodeDecodeError) as exc:
            log.error("error parsing saved settings file: %s", exc)
            return settings
        settings.patch(parsed if isinstance(parsed, dict) else None)
        return settings
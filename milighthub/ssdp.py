"""Simple Service Discovery Protocol responder announcing the hub on the LAN."""

from __future__ import annotations

import asyncio
import random
import socket
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

SSDP_INTERVAL = 1200
SSDP_PORT = 1900
SSDP_MULTICAST_ADDR = "239.255.255.250"
SSDP_MULTICAST_TTL = 2
SSDP_METHOD_SIZE = 10
SSDP_URI_SIZE = 2
SSDP_BUFFER_SIZE = 64

DEFAULT_DEVICE_TYPE = "urn:schemas-upnp-org:device:Basic:1"
DEFAULT_SCHEMA_URL = "ssdp/schema.xml"

_RESPONSE_TEMPLATE = "HTTP/1.1 200 OK\r\nEXT:\r\n"

_NOTIFY_TEMPLATE = (
    "NOTIFY * HTTP/1.1\r\n"
    "HOST: 239.255.255.250:1900\r\n"
    "NTS: ssdp:alive\r\n"
)

_PACKET_TEMPLATE = (
    "{prefix}"
    "CACHE-CONTROL: max-age={interval}\r\n"
    "SERVER: Arduino/1.0 UPNP/1.1 {model_name}/{model_number}\r\n"
    "USN: uuid:{uuid}\r\n"
    "{target_key}: {device_type}\r\n"
    "LOCATION: http://{ip}:{port}/{schema_url}\r\n"
    "\r\n"
)

_SCHEMA_TEMPLATE = (
    "HTTP/1.1 200 OK\r\n"
    "Content-Type: text/xml\r\n"
    "Connection: close\r\n"
    "Access-Control-Allow-Origin: *\r\n"
    "\r\n"
    '<?xml version="1.0"?>'
    '<root xmlns="urn:schemas-upnp-org:device-1-0">'
    "<specVersion>"
    "<major>1</major>"
    "<minor>0</minor>"
    "</specVersion>"
    "<URLBase>http://{ip}:{port}/</URLBase>"
    "<device>"
    "<deviceType>{device_type}</deviceType>"
    "<friendlyName>{name}</friendlyName>"
    "<presentationURL>{url}</presentationURL>"
    "<serialNumber>{serial_number}</serialNumber>"
    "<modelName>{model_name}</modelName>"
    "<modelNumber>{model_number}</modelNumber>"
    "<modelURL>{model_url}</modelURL>"
    "<manufacturer>{manufacturer}</manufacturer>"
    "<manufacturerURL>{manufacturer_url}</manufacturerURL>"
    "<UDN>uuid:{uuid}</UDN>"
    "</device>"
    "</root>\r\n"
    "\r\n"
)

# Longest value, in bytes, that each descriptive field keeps.
_FIELD_LIMITS = {
    "schema_url": 63,
    "uuid": 36,
    "device_type": 63,
    "name": 63,
    "serial_number": 31,
    "url": 127,
    "manufacturer": 63,
    "manufacturer_url": 127,
    "model_name": 63,
    "model_url": 127,
    "model_number": 31,
}

Address = tuple[str, int]


class SsdpMethod(Enum):
    """Kind of message: a search response (NONE), a search, or a notification."""

    NONE = 0
    SEARCH = 1
    NOTIFY = 2


class _State(Enum):
    METHOD = 0
    URI = 1
    PROTO = 2
    KEY = 3
    VALUE = 4
    ABORT = 5


class _Header(Enum):
    START = 0
    MAN = 1
    ST = 2
    MX = 3


@dataclass(frozen=True)
class SsdpRequest:
    """Outcome of parsing one incoming datagram."""

    method: SsdpMethod
    respond: bool
    mx: int | None
    aborted: bool


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


def _truncate(value: str, limit: int) -> str:
    return value.encode("utf-8")[:limit].decode("utf-8", errors="ignore")


def make_uuid(chip_id: int) -> str:
    """The device UUID derived from the low 24 bits of a chip id."""
    return "38323636-4558-4dda-9188-cda0e6{:02x}{:02x}{:02x}".format(
        (chip_id >> 16) & 0xFF, (chip_id >> 8) & 0xFF, chip_id & 0xFF
    )


def parse_request(data: bytes | str, device_type: str) -> SsdpRequest:
    """Parse an SSDP datagram the way the hub's small state machine does.

    Only ``M-SEARCH`` and ``NOTIFY`` requests for ``*`` are considered. A
    search target other than ``ssdp:all`` or ``device_type`` aborts the
    request; otherwise the end of the headers asks for a response.
    """
    text = data.decode("latin-1") if isinstance(data, (bytes, bytearray)) else data

    method = SsdpMethod.NONE
    state = _State.METHOD
    header = _Header.START
    cursor = 0
    cr = 0
    buffer = ""
    respond = False
    mx: int | None = None
    aborted = False

    def put(c: str) -> None:
        nonlocal buffer, cursor
        buffer = buffer[:cursor] + c
        cursor += 1

    for c in text:
        cr = cr + 1 if c in "\r\n" else 0

        if state is _State.METHOD:
            if c == " ":
                if buffer == "M-SEARCH":
                    method = SsdpMethod.SEARCH
                elif buffer == "NOTIFY":
                    method = SsdpMethod.NOTIFY
                state = _State.ABORT if method is SsdpMethod.NONE else _State.URI
                cursor = 0
            elif cursor < SSDP_METHOD_SIZE - 1:
                put(c)
        elif state is _State.URI:
            if c == " ":
                state = _State.PROTO if buffer == "*" else _State.ABORT
                cursor = 0
            elif cursor < SSDP_URI_SIZE - 1:
                put(c)
        elif state is _State.PROTO:
            if cr == 2:
                state = _State.KEY
                cursor = 0
        elif state is _State.KEY:
            if cr == 4:
                respond = True
            elif c == " ":
                cursor = 0
                state = _State.VALUE
            elif c not in "\r\n:" and cursor < SSDP_BUFFER_SIZE - 1:
                put(c)
        elif state is _State.VALUE:
            if cr == 2:
                if header is _Header.ST:
                    if buffer != "ssdp:all":
                        state = _State.ABORT
                    if buffer == device_type:
                        respond = True
                        state = _State.KEY
                elif header is _Header.MX:
                    mx = _atoi(buffer)
                if state is not _State.ABORT:
                    state = _State.KEY
                    header = _Header.START
                    cursor = 0
            elif c not in "\r\n":
                if header is _Header.START:
                    if buffer.startswith("MA"):
                        header = _Header.MAN
                    elif buffer == "ST":
                        header = _Header.ST
                    elif buffer == "MX":
                        header = _Header.MX
                if cursor < SSDP_BUFFER_SIZE - 1:
                    put(c)
        else:
            respond = False
            mx = None
            aborted = True

    return SsdpRequest(method=method, respond=respond, mx=mx, aborted=aborted)


@dataclass
class SsdpService:
    """Description of the announced device plus the responder's timing state.

    Times are in milliseconds. ``handle_datagram`` and ``poll`` return the
    messages to send as ``(method, address)`` pairs.
    """

    device_type: str = DEFAULT_DEVICE_TYPE
    name: str = ""
    url: str = ""
    schema_url: str = DEFAULT_SCHEMA_URL
    serial_number: str = ""
    model_name: str = ""
    model_number: str = ""
    model_url: str = ""
    manufacturer: str = ""
    manufacturer_url: str = ""
    uuid: str = ""
    port: int = 80
    ttl: int = SSDP_MULTICAST_TTL
    pending: bool = field(default=False, init=False)
    delay: int = field(default=0, init=False)
    process_time: float = field(default=0, init=False)
    notify_time: float | None = field(default=None, init=False)
    respond_to: Address | None = field(default=None, init=False)
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        limit = _FIELD_LIMITS.get(name)
        if limit is not None:
            value = _truncate(str(value), limit)
        elif name == "ttl":
            value = int(value) & 0xFF
        elif name == "port":
            value = int(value) & 0xFFFF
        super().__setattr__(name, value)

    def set_serial_number(self, serial: int | str) -> None:
        """Set the serial number; integers are written as eight hex digits."""
        if isinstance(serial, int):
            self.serial_number = f"{serial & 0xFFFFFFFF:08X}"
        else:
            self.serial_number = serial

    def build_packet(self, method: SsdpMethod, ip: str) -> bytes:
        """A search response (``NONE``) or an alive notification."""
        is_response = method is SsdpMethod.NONE
        return _PACKET_TEMPLATE.format(
            prefix=_RESPONSE_TEMPLATE if is_response else _NOTIFY_TEMPLATE,
            interval=SSDP_INTERVAL,
            model_name=self.model_name,
            model_number=self.model_number,
            uuid=self.uuid,
            target_key="ST" if is_response else "NT",
            device_type=self.device_type,
            ip=ip,
            port=self.port,
            schema_url=self.schema_url,
        ).encode("utf-8")

    def schema(self, ip: str) -> str:
        """The HTTP response carrying the UPnP device description."""
        return _SCHEMA_TEMPLATE.format(
            ip=ip,
            port=self.port,
            device_type=self.device_type,
            name=self.name,
            url=self.url,
            serial_number=self.serial_number,
            model_name=self.model_name,
            model_number=self.model_number,
            model_url=self.model_url,
            manufacturer=self.manufacturer,
            manufacturer_url=self.manufacturer_url,
            uuid=self.uuid,
        )

    def handle_datagram(
        self, data: bytes, addr: Address, now: float
    ) -> list[tuple[SsdpMethod, Address]]:
        """Take in one datagram, then run the send logic.

        Datagrams arriving while a response is pending are dropped.
        """
        if not self.pending:
            self.respond_to = addr
            request = parse_request(data, self.device_type)
            if request.respond:
                self.pending = True
                self.process_time = now
            if request.mx is not None:
                steps = self.rng.randrange(request.mx) if request.mx > 0 else 0
                self.delay = (steps * 1000) & 0xFFFF
            if request.aborted:
                self.pending = False
                self.delay = 0
        return self.poll(now)

    def poll(self, now: float) -> list[tuple[SsdpMethod, Address]]:
        """Send a due response, or a periodic notification."""
        if self.pending and (now - self.process_time) > self.delay:
            self.pending = False
            self.delay = 0
            if self.respond_to is None:
                return []
            return [(SsdpMethod.NONE, self.respond_to)]
        if self.notify_time is None or (now - self.notify_time) > SSDP_INTERVAL * 1000:
            self.notify_time = now
            return [(SsdpMethod.NOTIFY, (SSDP_MULTICAST_ADDR, SSDP_PORT))]
        return []


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class SsdpProtocol(asyncio.DatagramProtocol):
    """Connects an :class:`SsdpService` to a UDP endpoint.

    ``tick`` should be called about once a second to drive notifications
    and delayed responses.
    """

    def __init__(
        self,
        service: SsdpService,
        ip: str,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self.service = service
        self.ip = ip
        self.clock = clock
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]
        sock = transport.get_extra_info("socket")
        if sock is not None:
            try:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, self.service.ttl)
            except OSError:
                pass

    def datagram_received(self, data: bytes, addr: Address) -> None:
        self._send(self.service.handle_datagram(data, addr, self.clock()))

    def tick(self) -> None:
        self._send(self.service.poll(self.clock()))

    def _send(self, actions: list[tuple[SsdpMethod, Address]]) -> None:
        if self.transport is None:
            return
        for method, addr in actions:
            self.transport.sendto(self.service.build_packet(method, self.ip), addr)
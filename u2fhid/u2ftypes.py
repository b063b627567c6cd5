"""U2F HID framing, APDU headers and device descriptions."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .errors import DeviceError, io_err

logger = logging.getLogger(__name__)

CID_BROADCAST = b"\xff\xff\xff\xff"
MAX_HID_RPT_SIZE = 64
INIT_HEADER_SIZE = 7
CONT_HEADER_SIZE = 5
INIT_NONCE_SIZE = 8
U2FAPDUHEADER_SIZE = 7
PARAMETER_SIZE = 32

U2FHID_PING = 0x81
U2FHID_MSG = 0x83
U2FHID_INIT = 0x86

U2F_REGISTER = 0x01
U2F_AUTHENTICATE = 0x02
U2F_VERSION = 0x03

U2F_REQUEST_USER_PRESENCE = 0x03
U2F_CHECK_IS_REGISTERED = 0x07

SW_NO_ERROR = b"\x90\x00"
SW_WRONG_DATA = b"\x6a\x80"
SW_WRONG_LENGTH = b"\x67\x00"
SW_CONDITIONS_NOT_SATISFIED = b"\x69\x85"


def to_hex(data: bytes, joiner: str = "") -> str:
    """Render bytes as lower-case hex pairs separated by ``joiner``."""
    return joiner.join(f"{byte:02x}" for byte in data)


def trace_hex(data: bytes) -> None:
    """Log outgoing frames at debug level."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("USB send: %s", to_hex(data))


@dataclass
class U2FDeviceInfo:
    """Identity and firmware details reported by a token."""

    vendor_name: bytes
    device_name: bytes
    version_interface: int
    version_major: int
    version_minor: int
    version_build: int
    cap_flags: int

    def __str__(self) -> str:
        return (
            f"Vendor: {self.vendor_name.decode('utf-8')}, "
            f"Device: {self.device_name.decode('utf-8')}, "
            f"Interface: {self.version_interface}, "
            f"Firmware: v{self.version_major}.{self.version_minor}.{self.version_build}, "
            f"Capabilities: {to_hex(bytes([self.cap_flags]), ':')}"
        )


class U2FDevice(ABC):
    """A U2F HID device: raw report I/O plus the channel in use."""

    in_rpt_size: int = MAX_HID_RPT_SIZE
    out_rpt_size: int = MAX_HID_RPT_SIZE

    def __init__(self) -> None:
        self.cid: bytes = CID_BROADCAST
        self.device_info: U2FDeviceInfo | None = None
        self.properties: dict[str, str] = {}

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Read one report of at most ``size`` bytes."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write one report, prefixed by its report number; return bytes written."""

    def get_property(self, name: str) -> str:
        """Return a named device property such as ``Manufacturer``."""
        value = self.properties.get(name)
        if value is None:
            raise DeviceError("Not implemented")
        return value

    def in_init_data_size(self) -> int:
        return self.in_rpt_size - INIT_HEADER_SIZE

    def in_cont_data_size(self) -> int:
        return self.in_rpt_size - CONT_HEADER_SIZE

    def out_init_data_size(self) -> int:
        return self.out_rpt_size - INIT_HEADER_SIZE

    def out_cont_data_size(self) -> int:
        return self.out_rpt_size - CONT_HEADER_SIZE


def _read_own_frame(dev: U2FDevice) -> bytes:
    """Read reports until one addressed to the device's channel arrives."""
    while True:
        frame = bytes(dev.read(dev.in_rpt_size))
        if frame[:4] == bytes(dev.cid):
            return frame


def _send_frame(dev: U2FDevice, frame: bytearray) -> None:
    trace_hex(frame)
    if dev.write(bytes(frame)) != len(frame):
        raise io_err("device write failed")


def read_init_packet(dev: U2FDevice) -> tuple[bytes, int]:
    """Read an initialisation packet.

    Returns the payload it carries and the total message length it announces.
    """
    frame = _read_own_frame(dev)
    if len(frame) != dev.in_rpt_size:
        raise io_err("invalid init packet")

    total = frame[5] << 8 | frame[6]
    length = min(total, dev.in_init_data_size())
    return frame[7 : 7 + length], total


def write_init_packet(dev: U2FDevice, cmd: int, data: bytes) -> int:
    """Send an initialisation packet; return how many payload bytes it took."""
    if len(data) > 0xFFFF:
        raise io_err("payload length > 2^16")

    frame = bytearray(dev.out_rpt_size + 1)
    frame[1:5] = dev.cid
    frame[5] = cmd
    frame[6] = (len(data) >> 8) & 0xFF
    frame[7] = len(data) & 0xFF

    count = min(len(data), dev.out_init_data_size())
    frame[8 : 8 + count] = data[:count]
    _send_frame(dev, frame)
    return count


def read_cont_packet(dev: U2FDevice, seq: int, max_len: int) -> bytes:
    """Read a continuation packet with sequence number ``seq``."""
    frame = _read_own_frame(dev)
    if len(frame) != dev.in_rpt_size:
        raise io_err("invalid cont packet")
    if frame[4] != seq:
        raise io_err("invalid sequence number")

    length = min(max_len, dev.in_cont_data_size())
    return frame[5 : 5 + length]


def write_cont_packet(dev: U2FDevice, seq: int, data: bytes) -> int:
    """Send a continuation packet; return how many payload bytes it took."""
    frame = bytearray(dev.out_rpt_size + 1)
    frame[1:5] = dev.cid
    frame[5] = seq & 0xFF

    count = min(len(data), dev.out_cont_data_size())
    frame[6 : 6 + count] = data[:count]
    _send_frame(dev, frame)
    return count


@dataclass(frozen=True)
class U2FHIDInitResp:
    """Reply to U2FHID_INIT: the allocated channel and version details."""

    cid: bytes
    version_interface: int
    version_major: int
    version_minor: int
    version_build: int
    cap_flags: int

    @classmethod
    def parse(cls, data: bytes, nonce: bytes) -> "U2FHIDInitResp":
        if len(nonce) != INIT_NONCE_SIZE:
            raise ValueError(f"nonce must be {INIT_NONCE_SIZE} bytes")
        if len(data) != INIT_NONCE_SIZE + 9:
            raise io_err("invalid init response")
        if bytes(data[:INIT_NONCE_SIZE]) != bytes(nonce):
            raise io_err("invalid nonce")

        rest = data[INIT_NONCE_SIZE:]
        return cls(
            cid=bytes(rest[:4]),
            version_interface=rest[4],
            version_major=rest[5],
            version_minor=rest[6],
            version_build=rest[7],
            cap_flags=rest[8],
        )


def serialize_apdu(ins: int, p1: int, data: bytes) -> bytes:
    """Build an extended-length APDU with CLA and P2 of zero."""
    if len(data) > 0xFFFF:
        raise io_err("payload length > 2^16")

    header = bytes([0, ins, p1, 0, 0, (len(data) >> 8) & 0xFF, len(data) & 0xFF])
    return header + bytes(data) + b"\x00\x00"
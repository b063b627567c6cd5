"""U2F commands carried over the HID framing layer."""

from __future__ import annotations

import secrets
from typing import TypeVar

from .errors import DeviceError, InvalidDataError, InvalidInputError, io_err
from .u2ftypes import (
    INIT_NONCE_SIZE,
    PARAMETER_SIZE,
    SW_CONDITIONS_NOT_SATISFIED,
    SW_NO_ERROR,
    SW_WRONG_DATA,
    SW_WRONG_LENGTH,
    U2F_AUTHENTICATE,
    U2F_CHECK_IS_REGISTERED,
    U2F_REGISTER,
    U2F_REQUEST_USER_PRESENCE,
    U2F_VERSION,
    U2FHID_INIT,
    U2FHID_MSG,
    U2FDevice,
    U2FDeviceInfo,
    U2FHIDInitResp,
    read_cont_packet,
    read_init_packet,
    serialize_apdu,
    write_cont_packet,
    write_init_packet,
)

T = TypeVar("T")

MAX_KEY_HANDLE_SIZE = 256


def _check_parameters(challenge: bytes, application: bytes) -> None:
    if len(challenge) != PARAMETER_SIZE or len(application) != PARAMETER_SIZE:
        raise InvalidInputError("Invalid parameter sizes")


def _authenticate_payload(
    challenge: bytes, application: bytes, key_handle: bytes
) -> bytes:
    _check_parameters(challenge, application)
    if len(key_handle) > MAX_KEY_HANDLE_SIZE:
        raise InvalidInputError("Key handle too large")
    return (
        bytes(challenge)
        + bytes(application)
        + bytes([len(key_handle) & 0xFF])
        + bytes(key_handle)
    )


def u2f_init_device(dev: U2FDevice) -> bool:
    """Open a channel on ``dev`` and check that it speaks U2F_V2."""
    nonce = secrets.token_bytes(INIT_NONCE_SIZE)
    try:
        init_device(dev, nonce)
        return is_v2_device(dev)
    except DeviceError:
        return False


def u2f_register(dev: U2FDevice, challenge: bytes, application: bytes) -> bytes:
    """Ask the token to register; return the raw registration response."""
    _check_parameters(challenge, application)
    payload = bytes(challenge) + bytes(application)
    resp, status = send_apdu(dev, U2F_REGISTER, U2F_REQUEST_USER_PRESENCE, payload)
    return status_word_to_result(status, resp)


def u2f_sign(
    dev: U2FDevice, challenge: bytes, application: bytes, key_handle: bytes
) -> bytes:
    """Ask the token to sign with ``key_handle``; return the raw response."""
    payload = _authenticate_payload(challenge, application, key_handle)
    resp, status = send_apdu(
        dev, U2F_AUTHENTICATE, U2F_REQUEST_USER_PRESENCE, payload
    )
    return status_word_to_result(status, resp)


def u2f_is_keyhandle_valid(
    dev: U2FDevice, challenge: bytes, application: bytes, key_handle: bytes
) -> bool:
    """Check whether ``key_handle`` belongs to the token for ``application``."""
    payload = _authenticate_payload(challenge, application, key_handle)
    _, status = send_apdu(dev, U2F_AUTHENTICATE, U2F_CHECK_IS_REGISTERED, payload)
    return status == SW_CONDITIONS_NOT_SATISFIED


def init_device(dev: U2FDevice, nonce: bytes) -> None:
    """Run U2FHID_INIT, adopting the new channel and recording device info."""
    if len(nonce) != INIT_NONCE_SIZE:
        raise ValueError(f"nonce must be {INIT_NONCE_SIZE} bytes")

    raw = sendrecv(dev, U2FHID_INIT, nonce)
    rsp = U2FHIDInitResp.parse(raw, nonce)
    dev.cid = rsp.cid

    try:
        vendor = dev.get_property("Manufacturer")
    except DeviceError:
        vendor = "Unknown Vendor"
    try:
        product = dev.get_property("Product")
    except DeviceError:
        product = "Unknown Device"

    dev.device_info = U2FDeviceInfo(
        vendor_name=vendor.encode("utf-8"),
        device_name=product.encode("utf-8"),
        version_interface=rsp.version_interface,
        version_major=rsp.version_major,
        version_minor=rsp.version_minor,
        version_build=rsp.version_build,
        cap_flags=rsp.cap_flags,
    )


def is_v2_device(dev: U2FDevice) -> bool:
    """Query the protocol version and compare it with ``U2F_V2``."""
    data, status = send_apdu(dev, U2F_VERSION, 0x00, b"")
    if b"\x00" in data:
        raise InvalidInputError("version string contains a nul byte")
    return status_word_to_result(status, data == b"U2F_V2")


def status_word_to_result(status: bytes, value: T) -> T:
    """Return ``value`` when ``status`` signals success, else raise."""
    status = bytes(status)
    if status == SW_NO_ERROR:
        return value
    if status == SW_WRONG_DATA:
        raise InvalidDataError("wrong data")
    if status == SW_WRONG_LENGTH:
        raise InvalidInputError("wrong length")
    if status == SW_CONDITIONS_NOT_SATISFIED:
        raise io_err("conditions not satisfied")
    raise io_err(f"failed with status [{', '.join(str(b) for b in status)}]")


def sendrecv(dev: U2FDevice, cmd: int, data: bytes) -> bytes:
    """Send a full HID message and return the full reply."""
    data = bytes(data)
    count = write_init_packet(dev, cmd, data)
    sequence = 0
    while count < len(data):
        count += write_cont_packet(dev, sequence, data[count:])
        sequence += 1

    payload, total = read_init_packet(dev)
    received = bytearray(payload)
    sequence = 0
    while len(received) < total:
        received += read_cont_packet(dev, sequence & 0xFF, total - len(received))
        sequence += 1
    return bytes(received)


def send_apdu(dev: U2FDevice, cmd: int, p1: int, data: bytes) -> tuple[bytes, bytes]:
    """Send an APDU; return the response body and its two-byte status word."""
    apdu = serialize_apdu(cmd, p1, data)
    reply = sendrecv(dev, U2FHID_MSG, apdu)
    if len(reply) < 2:
        raise io_err("unexpected response")
    return reply[:-2], reply[-2:]
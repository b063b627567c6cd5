"""Register and sign operations driven over every attached token."""

from __future__ import annotations

import enum
import functools
import logging
import operator
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterable, Optional, Sequence

from .errors import AuthenticatorError, U2FTokenError
from .statecallback import StateCallback
from .transaction import DeviceEnumerator, Transaction
from .u2fprotocol import (
    u2f_init_device,
    u2f_is_keyhandle_valid,
    u2f_register,
    u2f_sign,
)
from .u2ftypes import PARAMETER_SIZE, U2FDevice, U2FDeviceInfo

logger = logging.getLogger(__name__)

RETRY_INTERVAL = 0.1

DeviceOpener = Callable[[Hashable], Optional[U2FDevice]]


class AuthenticatorTransports(enum.Flag):
    """Transports a credential may be used over."""

    USB = 1
    NFC = 2
    BLE = 4


class RegisterFlags(enum.Flag):
    """Authenticator selection criteria for registration."""

    REQUIRE_RESIDENT_KEY = 1
    REQUIRE_USER_VERIFICATION = 2


class SignFlags(enum.Flag):
    """Options for signing."""

    REQUIRE_USER_VERIFICATION = 1


@dataclass(frozen=True)
class KeyHandle:
    """A credential id together with the transports it is known to use."""

    credential: bytes
    transports: AuthenticatorTransports = AuthenticatorTransports(0)


class StatusKind(enum.Enum):
    DEVICE_AVAILABLE = "device available"
    DEVICE_UNAVAILABLE = "device unavailable"
    SUCCESS = "success"


@dataclass(frozen=True)
class StatusUpdate:
    """Progress report about one device."""

    kind: StatusKind
    dev_info: U2FDeviceInfo


def is_valid_transport(transports: AuthenticatorTransports) -> bool:
    """Only USB is supported; no transports at all means "any"."""
    return not transports or AuthenticatorTransports.USB in transports


def find_valid_key_handles(
    app_ids: Sequence[bytes],
    key_handles: Iterable[KeyHandle],
    is_valid: Callable[[bytes, KeyHandle], bool],
) -> tuple[bytes, list[KeyHandle]]:
    """Return the first app id with any valid key handle, and those handles.

    Falls back to the first app id with no handles.
    """
    key_handles = list(key_handles)
    for app_id in app_ids:
        valid = [kh for kh in key_handles if is_valid(app_id, kh)]
        if valid:
            return app_id, valid
    return app_ids[0], []


def _send_status(status: Any, kind: StatusKind, dev: U2FDevice) -> None:
    try:
        status.put(StatusUpdate(kind, dev.device_info))
    except Exception as exc:  # a broken status channel must not stop the token
        logger.error("Couldn't send status: %r", exc)


def _keyhandle_matches(
    dev: U2FDevice, challenge: bytes, application: bytes, credential: bytes
) -> bool:
    try:
        return u2f_is_keyhandle_valid(dev, challenge, application, credential)
    except OSError:
        return False


class StateMachine:
    """Runs at most one register or sign transaction at a time.

    ``open_device(info)`` returns a device, or ``None`` when ``info`` is not
    a U2F token, and raises ``OSError`` when it cannot be opened.
    ``enumerate_devices()`` lists the device identifiers currently present;
    without it the platform has no token support.

    Callbacks receive either the operation's result or an
    ``AuthenticatorError`` instance. ``status`` is any object with ``put``.
    """

    def __init__(
        self,
        open_device: DeviceOpener,
        enumerate_devices: Optional[DeviceEnumerator] = None,
    ) -> None:
        self._open_device = open_device
        self._enumerate_devices = enumerate_devices
        self._transaction: Optional[Transaction] = None

    def _open_u2f(self, info: Hashable) -> Optional[U2FDevice]:
        try:
            dev = self._open_device(info)
        except OSError:
            return None
        if dev is None or not u2f_init_device(dev):
            return None
        return dev

    def _start(self, timeout: int, callback: StateCallback, worker) -> None:
        cbc = callback.clone()
        try:
            self._transaction = Transaction(
                timeout, cbc.clone(), worker, self._enumerate_devices
            )
        except AuthenticatorError as exc:
            cbc.call(exc)

    def register(
        self,
        flags: RegisterFlags,
        timeout: int,
        challenge: bytes,
        application: bytes,
        key_handles: Sequence[KeyHandle],
        status: Any,
        callback: StateCallback,
    ) -> None:
        """Start registration; the callback gets ``(response, dev_info)``."""
        self.cancel()
        key_handles = list(key_handles)

        def worker(info: Hashable, alive: Callable[[], bool]) -> None:
            dev = self._open_u2f(info)
            if dev is None:
                return
            # Selection criteria cannot be queried from U2F tokens.
            if flags:
                return

            _send_status(status, StatusKind.DEVICE_AVAILABLE, dev)

            excluded = any(
                is_valid_transport(kh.transports)
                and _keyhandle_matches(dev, challenge, application, kh.credential)
                for kh in key_handles
            )

            blank = bytes(PARAMETER_SIZE)
            while alive():
                if excluded:
                    try:
                        u2f_register(dev, blank, blank)
                    except OSError:
                        pass
                    else:
                        callback.call(AuthenticatorError(U2FTokenError.INVALID_STATE))
                        break
                else:
                    try:
                        response = u2f_register(dev, challenge, application)
                    except OSError:
                        pass
                    else:
                        dev_info = dev.device_info
                        _send_status(status, StatusKind.SUCCESS, dev)
                        callback.call((response, dev_info))
                        break
                time.sleep(RETRY_INTERVAL)

            _send_status(status, StatusKind.DEVICE_UNAVAILABLE, dev)

        self._start(timeout, callback, worker)

    def sign(
        self,
        flags: SignFlags,
        timeout: int,
        challenge: bytes,
        app_ids: Sequence[bytes],
        key_handles: Sequence[KeyHandle],
        status: Any,
        callback: StateCallback,
    ) -> None:
        """Start signing; the callback gets ``(app_id, credential, response, dev_info)``."""
        self.cancel()
        app_ids = list(app_ids)
        key_handles = list(key_handles)

        def worker(info: Hashable, alive: Callable[[], bool]) -> None:
            dev = self._open_u2f(info)
            if dev is None:
                return
            # User verification cannot be queried from U2F tokens.
            if flags:
                return

            app_id, valid_handles = find_valid_key_handles(
                app_ids,
                key_handles,
                lambda app, kh: _keyhandle_matches(dev, challenge, app, kh.credential),
            )

            transports = functools.reduce(
                operator.or_,
                (kh.transports for kh in key_handles),
                AuthenticatorTransports(0),
            )
            if not is_valid_transport(transports):
                return

            _send_status(status, StatusKind.DEVICE_AVAILABLE, dev)

            blank = bytes(PARAMETER_SIZE)
            done = False
            while not done and alive():
                if not valid_handles:
                    # No match: make the token blink so the user can react.
                    try:
                        u2f_register(dev, blank, blank)
                    except OSError:
                        pass
                    else:
                        callback.call(AuthenticatorError(U2FTokenError.INVALID_STATE))
                        break
                else:
                    for kh in valid_handles:
                        try:
                            response = u2f_sign(dev, challenge, app_id, kh.credential)
                        except OSError:
                            continue
                        dev_info = dev.device_info
                        _send_status(status, StatusKind.SUCCESS, dev)
                        callback.call((app_id, kh.credential, response, dev_info))
                        done = True
                        break
                if not done:
                    time.sleep(RETRY_INTERVAL)

            _send_status(status, StatusKind.DEVICE_UNAVAILABLE, dev)

        self._start(timeout, callback, worker)

    def cancel(self) -> None:
        """Abort the running operation, if any; this blocks."""
        transaction, self._transaction = self._transaction, None
        if transaction is not None:
            transaction.cancel()
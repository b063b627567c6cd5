"""A software stand-in for a U2F token that answers instantly."""

from __future__ import annotations

from typing import Sequence

from .statemachine import KeyHandle, RegisterFlags, SignFlags
from .u2ftypes import U2FDeviceInfo


class SoftwareU2FToken:
    """Token that needs no hardware and returns fixed, empty responses."""

    def register(
        self,
        flags: RegisterFlags,
        timeout: int,
        challenge: bytes,
        application: bytes,
        key_handles: Sequence[KeyHandle],
    ) -> tuple[bytes, U2FDeviceInfo]:
        """Return a blank registration response and this token's details."""
        return bytes(16), self.dev_info()

    def sign(
        self,
        flags: SignFlags,
        timeout: int,
        challenge: bytes,
        app_ids: Sequence[bytes],
        key_handles: Sequence[KeyHandle],
    ) -> tuple[bytes, bytes, bytes, U2FDeviceInfo]:
        """Return an empty app id, credential and signature with this token's details."""
        return b"", b"", b"", self.dev_info()

    def dev_info(self) -> U2FDeviceInfo:
        """Describe this token."""
        return U2FDeviceInfo(
            vendor_name=b"Mozilla",
            device_name=b"Authenticator Webdriver Token",
            version_interface=0,
            version_major=1,
            version_minor=2,
            version_build=3,
            cap_flags=0,
        )
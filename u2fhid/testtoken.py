"""Virtual tokens driven by an automation client."""

from __future__ import annotations

import bisect
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from .errors import AuthenticatorError, U2FTokenError
from .software_u2f import SoftwareU2FToken
from .statemachine import RegisterFlags, SignFlags
from .u2ftypes import U2FDeviceInfo

logger = logging.getLogger(__name__)


class TestWireProtocol(enum.Enum):
    """Wire protocol a virtual token speaks."""

    CTAP1 = "ctap1"
    CTAP2 = "ctap2"

    def to_webdriver_string(self) -> str:
        """Name of the protocol as used by the automation interface."""
        if self is TestWireProtocol.CTAP1:
            return "ctap1/u2f"
        return "ctap2"


@dataclass
class TestTokenCredential:
    """A credential stored on a virtual token."""

    __test__ = False

    credential: bytes
    privkey: bytes
    user_handle: bytes
    sign_count: int
    is_resident_credential: bool
    rp_id: str


class TestToken:
    """A virtual token with a credential store kept sorted by credential id."""

    __test__ = False

    def __init__(
        self,
        id: int,
        protocol: TestWireProtocol,
        transport: str,
        is_user_consenting: bool,
        has_user_verification: bool,
        is_user_verified: bool,
        has_resident_key: bool,
    ) -> None:
        if protocol is not TestWireProtocol.CTAP1:
            raise ValueError(f"unsupported protocol: {protocol.to_webdriver_string()}")
        self.id = id
        self.protocol = protocol
        self.transport = transport
        self.is_user_consenting = is_user_consenting
        self.has_user_verification = has_user_verification
        self.is_user_verified = is_user_verified
        self.has_resident_key = has_resident_key
        self.u2f_impl: Optional[SoftwareU2FToken] = SoftwareU2FToken()
        self.credentials: list[TestTokenCredential] = []

    def _find(self, credential: bytes) -> tuple[int, bool]:
        credential = bytes(credential)
        idx = bisect.bisect_left(
            self.credentials, credential, key=lambda c: c.credential
        )
        found = (
            idx < len(self.credentials)
            and self.credentials[idx].credential == credential
        )
        return idx, found

    def insert_credential(
        self,
        credential: bytes,
        privkey: bytes,
        rp_id: str,
        is_resident_credential: bool,
        user_handle: bytes,
        sign_count: int,
    ) -> None:
        """Store a credential unless one with the same id is already present."""
        idx, found = self._find(credential)
        if found:
            return
        self.credentials.insert(
            idx,
            TestTokenCredential(
                credential=bytes(credential),
                privkey=bytes(privkey),
                user_handle=bytes(user_handle),
                sign_count=sign_count,
                is_resident_credential=is_resident_credential,
                rp_id=rp_id,
            ),
        )

    def delete_credential(self, credential: bytes) -> bool:
        """Remove the credential with this id; return whether one was removed."""
        logger.debug("Asking to delete credential")
        idx, found = self._find(credential)
        if not found:
            return False
        logger.debug("Asking to delete credential from idx %d", idx)
        del self.credentials[idx]
        return True

    def register(self) -> tuple[bytes, U2FDeviceInfo]:
        """Register through the token's U2F implementation."""
        if self.u2f_impl is None:
            raise AuthenticatorError(U2FTokenError.UNKNOWN)
        return self.u2f_impl.register(
            RegisterFlags(0), 10_000, bytes(32), bytes(32), []
        )

    def sign(self) -> tuple[bytes, bytes, bytes, U2FDeviceInfo]:
        """Sign through the token's U2F implementation."""
        if self.u2f_impl is None:
            raise AuthenticatorError(U2FTokenError.UNKNOWN)
        return self.u2f_impl.sign(SignFlags(0), 10_000, bytes(32), [bytes(32)], [])
"""Error types raised by the U2F HID stack."""

from __future__ import annotations

from enum import Enum


class U2FTokenError(Enum):
    """Reasons a token operation can fail."""

    UNKNOWN = "unknown"
    NOT_SUPPORTED = "not supported"
    INVALID_STATE = "invalid state"
    CONSTRAINT = "constraint"
    NOT_ALLOWED = "not allowed"


class AuthenticatorError(Exception):
    """Failure of a register or sign operation.

    A ``token_error`` of ``None`` denotes a platform failure.
    """

    def __init__(
        self,
        token_error: U2FTokenError | None = None,
        message: str | None = None,
    ) -> None:
        if message is None:
            if token_error is None:
                message = "platform error"
            else:
                message = f"U2F token error: {token_error.value}"
        super().__init__(message)
        self.token_error = token_error
        self.message = message

    @property
    def is_platform(self) -> bool:
        return self.token_error is None

    @classmethod
    def platform(cls, message: str | None = None) -> "AuthenticatorError":
        return cls(None, message)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthenticatorError):
            return NotImplemented
        return self.token_error == other.token_error

    def __hash__(self) -> int:
        return hash(self.token_error)


class DeviceError(OSError):
    """Communication with a device failed."""


class InvalidInputError(DeviceError):
    """A request carried malformed input."""


class InvalidDataError(DeviceError):
    """A device reported or returned invalid data."""


def io_err(msg: str) -> DeviceError:
    """Build a generic device error carrying ``msg``."""
    return DeviceError(msg)
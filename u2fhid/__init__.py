"""U2F HID framing and commands, a device-polling state machine, and in-memory tokens."""

__version__ = "0.1.0"
__all__ = [
    "errors",
    "statecallback",
    "u2ftypes",
    "u2fprotocol",
    "transaction",
    "statemachine",
    "software_u2f",
    "testtoken",
]
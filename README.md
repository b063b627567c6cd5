# u2fhid

A pure-Python implementation of the U2F HID transport: packet framing,
APDU encoding, the U2F register/sign/version commands, and a polling
state machine that drives every attached token in its own thread until
one of them answers or the operation times out.

The package has no dependencies outside the standard library.

## Installation

    pip install u2fhid

To run the test suite:

    pip install "u2fhid[test]"
    pytest

## Modules

- `u2fhid.u2ftypes`: the abstract `U2FDevice` base class. A concrete
  device subclasses it and implements `read(size)` and `write(data)`
  (writes carry a leading report-number byte). `get_property(name)`
  looks names up in the device's `properties` dict and raises
  `DeviceError` when missing. Also here: `read_init_packet`,
  `write_init_packet`, `read_cont_packet`, `write_cont_packet`,
  `serialize_apdu`, `U2FHIDInitResp.parse`, `U2FDeviceInfo` (whose `str()`
  gives a one-line summary), `to_hex` and the protocol constants.
- `u2fhid.u2fprotocol`: `u2f_init_device`, `u2f_register`, `u2f_sign`,
  `u2f_is_keyhandle_valid`, and the lower-level `init_device`,
  `is_v2_device`, `sendrecv`, `send_apdu` and `status_word_to_result`.
- `u2fhid.statecallback`: `StateCallback`, a thread-safe callback that
  runs at most once across all its `clone()`s. Each handle can carry an
  observer (`add_uncloneable_observer`) that clones do not inherit;
  `wait(timeout)` blocks until some handle has been called and returns
  `False` on timeout.
- `u2fhid.transaction`: `RunLoop` (a thread with a cancel flag and an
  optional deadline in milliseconds), `Monitor` (polls a device
  enumerator and starts a run loop per new device) and `Transaction`.
- `u2fhid.statemachine`: `StateMachine` with `register`, `sign` and
  `cancel`, plus `KeyHandle`, `AuthenticatorTransports`, `RegisterFlags`,
  `SignFlags`, `StatusUpdate`/`StatusKind`, `is_valid_transport` and
  `find_valid_key_handles`.
- `u2fhid.software_u2f`: `SoftwareU2FToken`, which answers at once with
  fixed blank responses.
- `u2fhid.testtoken`: `TestToken`, a virtual CTAP1 token with a
  credential store kept sorted by credential id, and `TestWireProtocol`.
- `u2fhid.errors`: `AuthenticatorError`, `U2FTokenError`, and the device
  exceptions `DeviceError`, `InvalidInputError`, `InvalidDataError`.

## Example

```python
import queue

from u2fhid.statecallback import StateCallback
from u2fhid.statemachine import RegisterFlags, StateMachine

results = []
callback = StateCallback(results.append)
status = queue.Queue()

machine = StateMachine(open_device=my_open_device, enumerate_devices=my_enumerate)
machine.register(
    RegisterFlags(0),
    timeout=10_000,
    challenge=bytes(32),
    application=bytes(32),
    key_handles=[],
    status=status,
    callback=callback,
)
callback.wait(None)
print(results[0])
```

`my_enumerate()` returns the identifiers of the devices currently
present, and `my_open_device(identifier)` returns a `U2FDevice` for one
of them, or `None` if it is not a U2F token.

On success a register callback receives `(response, dev_info)` and a
sign callback `(app_id, credential, response, dev_info)`. Failure of a
whole operation is delivered to the callback as an `AuthenticatorError`
instance: `NOT_ALLOWED` when the timeout passes or the operation is
cancelled, `INVALID_STATE` when an excluded (register) or unknown (sign)
token is touched, and `NOT_SUPPORTED` when no `enumerate_devices` was
given. Progress is reported by calling `status.put(StatusUpdate(...))`.

Errors on a single device surface as `DeviceError` and its subclasses.

## What this package does not do

- It does not find or open HID devices on any operating system. You
  supply `enumerate_devices` and `open_device`, and the `U2FDevice`
  subclass that does the actual report I/O.
- `SoftwareU2FToken` and `TestToken` perform no cryptography: they return
  fixed, zero-filled or empty responses.
- There is no automation server or command-line tool; `TestToken` is a
  plain in-memory object.
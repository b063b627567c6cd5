"""Background polling for tokens and the transactions built on it."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Hashable, Iterable, Optional

from .errors import AuthenticatorError, U2FTokenError
from .statecallback import StateCallback

logger = logging.getLogger(__name__)

Alive = Callable[[], bool]
NewDeviceCallback = Callable[[Hashable, Alive], None]
DeviceEnumerator = Callable[[], Iterable[Hashable]]

DEFAULT_POLL_INTERVAL = 0.1


class RunLoop:
    """Run ``target(alive)`` on a thread until cancelled or timed out.

    ``timeout`` is in milliseconds; ``None`` means no deadline.
    """

    def __init__(
        self, target: Callable[[Alive], None], timeout: Optional[int] = None
    ) -> None:
        self._cancelled = threading.Event()
        self._deadline = (
            None if timeout is None else time.monotonic() + timeout / 1000.0
        )
        self._thread = threading.Thread(target=target, args=(self.alive,), daemon=True)
        self._thread.start()

    def alive(self) -> bool:
        """True until the loop is cancelled or its deadline has passed."""
        if self._cancelled.is_set():
            return False
        return self._deadline is None or time.monotonic() < self._deadline

    def cancel(self) -> None:
        """Signal the target to stop and wait for its thread to finish."""
        self._cancelled.set()
        if threading.current_thread() is not self._thread:
            self._thread.join()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread; return whether it has finished."""
        self._thread.join(timeout)
        return not self._thread.is_alive()


class Monitor:
    """Poll for devices and run ``new_device_cb`` for each one that appears.

    Each device gets its own run loop, cancelled when the device disappears
    or when monitoring stops.
    """

    def __init__(
        self,
        enumerate_devices: DeviceEnumerator,
        new_device_cb: NewDeviceCallback,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._enumerate = enumerate_devices
        self._new_device_cb = new_device_cb
        self._poll_interval = poll_interval
        self._runloops: dict[Hashable, RunLoop] = {}

    def run(self, alive: Alive) -> None:
        """Poll until ``alive()`` turns false; errors from enumeration propagate."""
        stored: set[Hashable] = set()
        try:
            while alive():
                devices = set(self._enumerate())
                for path in stored - devices:
                    self._remove_device(path)
                for path in devices - stored:
                    self._add_device(path)
                stored = devices
                time.sleep(self._poll_interval)
        finally:
            self._remove_all_devices()

    def _add_device(self, path: Hashable) -> None:
        callback = self._new_device_cb

        def target(alive: Alive) -> None:
            if alive():
                callback(path, alive)

        try:
            self._runloops[path] = RunLoop(target)
        except RuntimeError as exc:
            logger.error("Couldn't start a thread for %r: %s", path, exc)

    def _remove_device(self, path: Hashable) -> None:
        runloop = self._runloops.pop(path, None)
        if runloop is not None:
            runloop.cancel()

    def _remove_all_devices(self) -> None:
        while self._runloops:
            self._remove_device(next(iter(self._runloops)))


class Transaction:
    """One register or sign operation, polling for devices until it ends.

    Without a device enumerator the platform has no token support: the
    callback receives a not-supported error, which is also raised.
    """

    def __init__(
        self,
        timeout: int,
        callback: StateCallback,
        new_device_cb: NewDeviceCallback,
        enumerate_devices: Optional[DeviceEnumerator] = None,
    ) -> None:
        if enumerate_devices is None:
            error = AuthenticatorError(U2FTokenError.NOT_SUPPORTED)
            callback.call(error)
            raise AuthenticatorError(U2FTokenError.NOT_SUPPORTED)

        def target(alive: Alive) -> None:
            monitor = Monitor(enumerate_devices, new_device_cb)
            try:
                monitor.run(alive)
            except OSError:
                callback.call(AuthenticatorError.platform())
                return
            # Reached on timeout or cancellation if no device answered.
            callback.call(AuthenticatorError(U2FTokenError.NOT_ALLOWED))

        try:
            self._thread: Optional[RunLoop] = RunLoop(target, timeout)
        except RuntimeError as exc:
            raise AuthenticatorError.platform() from exc

    def cancel(self) -> None:
        """Stop the transaction, blocking until its threads have ended."""
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.cancel()
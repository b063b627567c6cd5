"""A single-use, shareable result callback."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class _SharedState(Generic[T]):
    def __init__(self, callback: Callable[[T], None]) -> None:
        self.lock = threading.Lock()
        self.callback: Optional[Callable[[T], None]] = callback
        self.condition = threading.Condition()
        self.pending = True


class StateCallback(Generic[T]):
    """Callback that runs at most once across all of its clones.

    Each clone may carry its own observer, which runs only if that clone's
    call is the one that actually invokes the callback.
    """

    def __init__(self, callback: Callable[[T], None]) -> None:
        self._shared: _SharedState[T] = _SharedState(callback)
        self._observer: Optional[Callable[[], None]] = None
        self._observer_lock = threading.Lock()

    def add_uncloneable_observer(self, observer: Callable[[], None]) -> None:
        """Set the observer of this instance; clones do not inherit it."""
        with self._observer_lock:
            if self._observer is not None:
                logger.error("Replacing an already-set observer.")
            self._observer = observer

    def has_observer(self) -> bool:
        with self._observer_lock:
            return self._observer is not None

    def call(self, value: T) -> None:
        """Invoke the callback if no clone has done so yet, then wake waiters."""
        shared = self._shared
        with shared.lock:
            callback, shared.callback = shared.callback, None
            if callback is not None:
                callback(value)
                with self._observer_lock:
                    observer, self._observer = self._observer, None
                if observer is not None:
                    observer()

        with shared.condition:
            shared.pending = False
            shared.condition.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until some clone has been called; False on timeout."""
        shared = self._shared
        with shared.condition:
            return shared.condition.wait_for(lambda: not shared.pending, timeout)

    def clone(self) -> "StateCallback[T]":
        """Return a handle sharing the callback but with no observer."""
        other: StateCallback[T] = StateCallback.__new__(StateCallback)
        other._shared = self._shared
        other._observer = None
        other._observer_lock = threading.Lock()
        return other
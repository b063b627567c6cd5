import threading
import time

import pytest

from u2fhid.errors import AuthenticatorError, U2FTokenError
from u2fhid.statecallback import StateCallback
from u2fhid.transaction import Monitor, RunLoop, Transaction


def _spin(alive, seen):
    seen.append(alive())
    while alive():
        time.sleep(0.005)


def test_runloop_passes_alive_and_cancel_stops_it():
    seen = []
    loop = RunLoop(lambda alive: _spin(alive, seen))
    assert loop.alive() is True
    loop.cancel()
    assert loop.alive() is False
    assert loop.join(1) is True
    assert seen in ([True], [False])


def test_runloop_timeout_ends_target():
    seen = []
    loop = RunLoop(lambda alive: _spin(alive, seen), timeout=50)
    assert loop.join(5) is True
    assert loop.alive() is False
    assert seen == [True]


def _limited_alive(count):
    calls = {"n": 0}

    def alive():
        calls["n"] += 1
        return calls["n"] <= count

    return alive


def test_monitor_adds_and_removes_devices():
    snapshots = iter([["a", "b"], ["b"]])
    last = {"value": []}
    enumerations = []

    def enumerate_devices():
        try:
            last["value"] = next(snapshots)
        except StopIteration:
            pass
        enumerations.append(list(last["value"]))
        return last["value"]

    events = []
    lock = threading.Lock()

    def on_device(path, alive):
        with lock:
            events.append(path)
        while alive():
            time.sleep(0.005)
        with lock:
            events.append(f"{path} gone")

    monitor = Monitor(enumerate_devices, on_device, poll_interval=0.05)
    result = monitor.run(_limited_alive(3))

    assert result is None
    assert enumerations[:2] == [["a", "b"], ["b"]]
    assert sorted(events[:2]) == ["a", "b"]
    assert events[2:] == ["a gone", "b gone"]


def test_monitor_propagates_enumeration_errors():
    def enumerate_devices():
        raise OSError("enumeration failed")

    monitor = Monitor(enumerate_devices, lambda path, alive: None)
    with pytest.raises(OSError, match="enumeration failed"):
        monitor.run(lambda: True)


def test_transaction_without_enumerator_is_not_supported():
    got = []
    callback = StateCallback(got.append)
    with pytest.raises(AuthenticatorError) as info:
        Transaction(1000, callback, lambda path, alive: None)
    assert info.value.token_error is U2FTokenError.NOT_SUPPORTED
    assert got == [AuthenticatorError(U2FTokenError.NOT_SUPPORTED)]


def test_transaction_timeout_reports_not_allowed():
    got = []
    callback = StateCallback(got.append)
    transaction = Transaction(100, callback, lambda path, alive: None, lambda: [])
    assert callback.wait(5) is True
    transaction.cancel()
    assert got == [AuthenticatorError(U2FTokenError.NOT_ALLOWED)]


def test_transaction_enumeration_failure_is_platform_error():
    def enumerate_devices():
        raise OSError("no bus")

    got = []
    callback = StateCallback(got.append)
    transaction = Transaction(5000, callback, lambda path, alive: None, enumerate_devices)
    assert callback.wait(5) is True
    transaction.cancel()
    assert len(got) == 1
    assert got[0].is_platform


def test_transaction_cancel_stops_device_threads():
    started = threading.Event()
    seen = []

    def on_device(path, alive):
        seen.append(path)
        started.set()
        while alive():
            time.sleep(0.005)
        seen.append("stopped")

    got = []
    callback = StateCallback(got.append)
    transaction = Transaction(60000, callback, on_device, lambda: ["dev0"])
    assert started.wait(5)
    transaction.cancel()
    assert seen == ["dev0", "stopped"]
    assert got == [AuthenticatorError(U2FTokenError.NOT_ALLOWED)]
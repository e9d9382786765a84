"""Pytest configuration and shared fakes for FurComs tests."""

from __future__ import annotations

import logging
import queue
import sys
import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from paho.mqtt.client import topic_matches_sub

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from furcoms.transport.serial import SerialTransport  # noqa: E402


class FakeSerialPort:
    """In-memory stand-in for :class:`serial.Serial`.

    ``read`` blocks briefly on a queue so the transport's reader thread
    behaves as it would against a real line with a read timeout.
    """

    def __init__(self, port: str = "/dev/ttyACM0", slow_writes: bool = False) -> None:
        self.port = port
        self.slow_writes = slow_writes
        self.written = bytearray()
        self.write_calls = 0
        self.flush_calls = 0
        self.close_calls = 0
        self.closed = False
        self.write_error: BaseException | None = None
        self._rx: queue.Queue[bytes | BaseException] = queue.Queue()

    def inject(self, data: bytes) -> None:
        for byte in data:
            self._rx.put(bytes([byte]))

    def fail(self, exc: BaseException) -> None:
        self._rx.put(exc)

    def read(self, size: int = 1) -> bytes:
        if self.closed:
            return b""
        try:
            item = self._rx.get(timeout=0.02)
        except queue.Empty:
            return b""
        if isinstance(item, BaseException):
            raise item
        return item

    def write(self, data: bytes) -> int:
        if self.write_error is not None:
            raise self.write_error
        self.write_calls += 1
        if self.slow_writes:
            for byte in data:
                self.written.append(byte)
                time.sleep(0)
        else:
            self.written.extend(data)
        return len(data)

    def flush(self) -> None:
        self.flush_calls += 1

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakeBrokerClient:
    """Records publishes and routes injected messages like a broker would."""

    def __init__(self) -> None:
        self.subscriptions: list[tuple[str, Callable[[bytes, str], object]]] = []
        self.published: list[tuple[str, bytes]] = []
        self.publish_error: BaseException | None = None
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._lock = threading.Lock()

    def connect(self) -> None:
        self.connect_calls += 1

    def disconnect(self) -> None:
        self.disconnect_calls += 1

    def subscribe(self, topic_pattern: str, callback: Callable[[bytes, str], object]) -> None:
        self.subscriptions.append((topic_pattern, callback))

    def publish(self, topic: str, payload: bytes) -> None:
        if self.publish_error is not None:
            raise self.publish_error
        with self._lock:
            self.published.append((topic, bytes(payload)))

    def deliver(self, topic: str, payload: bytes) -> None:
        for pattern, callback in list(self.subscriptions):
            if topic_matches_sub(pattern, topic):
                callback(payload, topic)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "fuzz: seeded random input tests")


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture(autouse=True)
def reset_logging_handlers() -> Iterator[None]:
    """Close and remove all logging handlers after each test to prevent ResourceWarnings."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except (OSError, RuntimeError):
            pass
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)


@pytest.fixture()
def fake_port() -> FakeSerialPort:
    return FakeSerialPort()


@pytest.fixture()
def serial_transport(fake_port: FakeSerialPort) -> Iterator[SerialTransport]:
    transport = SerialTransport(fake_port)
    yield transport
    transport.close()


@pytest.fixture()
def broker_client() -> FakeBrokerClient:
    return FakeBrokerClient()

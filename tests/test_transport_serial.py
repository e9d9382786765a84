"""Tests for the threaded serial transport."""

from __future__ import annotations

import threading
from unittest.mock import patch

import pytest
import serial

from conftest import FakeSerialPort, wait_for
from furcoms import metrics
from furcoms.errors import FatalReaderError, TransportError
from furcoms.protocol.frame import FrameDecoder, encode_frame
from furcoms.transport.serial import SerialTransport, open_serial_port


def test_send_writes_single_frame(serial_transport: SerialTransport, fake_port: FakeSerialPort) -> None:
    serial_transport.send_message("lights/on", b"1", priority=1, source_id=2)

    assert bytes(fake_port.written) == encode_frame("lights/on", b"1", 1, 2)
    assert fake_port.write_calls == 1
    assert fake_port.flush_calls == 1


def test_port_name_comes_from_handle(serial_transport: SerialTransport) -> None:
    assert serial_transport.port_name == "/dev/ttyACM0"
    assert "ttyACM0" in repr(serial_transport)


def test_received_frame_is_dispatched(serial_transport: SerialTransport, fake_port: FakeSerialPort) -> None:
    received: list[tuple[str, bytes, str]] = []
    serial_transport.subscribe(
        "sensors/temp",
        lambda payload, topic: received.append((topic, payload, threading.current_thread().name)),
    )

    fake_port.inject(encode_frame("sensors/temp", b"21.5"))

    assert wait_for(lambda: len(received) == 1)
    topic, payload, thread_name = received[0]
    assert (topic, payload) == ("sensors/temp", b"21.5")
    assert thread_name == "furcoms-rx:/dev/ttyACM0"


def test_malformed_frames_are_skipped(serial_transport: SerialTransport, fake_port: FakeSerialPort) -> None:
    received: list[str] = []
    serial_transport.subscribe(None, lambda payload, topic: received.append(topic))
    labels = {"transport": "serial", "reason": "malformed"}
    before = metrics.sample("furcoms_frames_dropped_total", labels)

    fake_port.inject(encode_frame("bad-topic", b"x"))
    fake_port.inject(b"\x00\x81\x01\x00")
    fake_port.inject(encode_frame("sensors/#", b"wild"))
    fake_port.inject(encode_frame("good", b"y"))

    assert wait_for(lambda: received == ["good"])
    assert metrics.sample("furcoms_frames_dropped_total", labels) == before + 3


def test_concurrent_sends_do_not_interleave() -> None:
    port = FakeSerialPort(slow_writes=True)
    transport = SerialTransport(port)
    threads = [
        threading.Thread(
            target=lambda n=n: [transport.send_message(f"node{n}/value", bytes([n]) * 10) for _ in range(20)]
        )
        for n in range(8)
    ]
    try:
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
    finally:
        transport.close()

    messages = FrameDecoder().feed_bytes(bytes(port.written))
    assert len(messages) == 160
    for topic, payload in messages:
        n = int(topic[len("node") : -len("/value")])
        assert payload == bytes([n]) * 10


def test_reader_failure_is_fatal(
    serial_transport: SerialTransport, fake_port: FakeSerialPort, caplog: pytest.LogCaptureFixture
) -> None:
    error = serial.SerialException("device unplugged")
    fake_port.fail(error)

    assert wait_for(lambda: serial_transport.link_state == SerialTransport.STATE_FAILED)
    assert serial_transport.join(1.0)
    assert not serial_transport.is_usable
    assert not serial_transport.reader_alive
    assert serial_transport.failure is error

    with pytest.raises(FatalReaderError) as excinfo:
        serial_transport.send_message("lights/on", b"1")
    assert excinfo.value.__cause__ is error
    assert isinstance(excinfo.value, TransportError)
    assert fake_port.written == bytearray()
    assert "transport is unusable" in caplog.text


def test_write_failure_raises_transport_error(
    serial_transport: SerialTransport, fake_port: FakeSerialPort
) -> None:
    fake_port.write_error = OSError("EIO")

    with pytest.raises(TransportError) as excinfo:
        serial_transport.send_message("lights/on", b"1")

    assert not isinstance(excinfo.value, FatalReaderError)
    assert serial_transport.is_usable


def test_close_is_idempotent(fake_port: FakeSerialPort) -> None:
    transport = SerialTransport(fake_port)
    transport.subscribe(None, lambda payload, topic: None)

    transport.close()
    transport.close()

    assert fake_port.closed
    assert transport.link_state == SerialTransport.STATE_CLOSED
    assert transport.join(1.0)
    assert transport.subscriptions == ()
    with pytest.raises(TransportError) as excinfo:
        transport.send_message("a", b"")
    assert not isinstance(excinfo.value, FatalReaderError)


def test_concurrent_close_releases_port_once(fake_port: FakeSerialPort) -> None:
    transport = SerialTransport(fake_port)
    barrier = threading.Barrier(8)

    def closer() -> None:
        barrier.wait()
        transport.close()

    threads = [threading.Thread(target=closer) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5.0)

    assert fake_port.close_calls == 1
    assert transport.link_state == SerialTransport.STATE_CLOSED


def test_loopback_url_echoes_frames() -> None:
    transport = SerialTransport("loop://", read_timeout=0.05)
    received: list[tuple[str, bytes]] = []
    transport.subscribe(None, lambda payload, topic: received.append((topic, payload)))
    try:
        transport.send_message("echo/test", b"\x00\xdbdata")
        assert wait_for(lambda: received == [("echo/test", b"\x00\xdbdata")])
    finally:
        transport.close()


def test_open_serial_port_wraps_errors() -> None:
    with patch(
        "furcoms.transport.serial.serial.serial_for_url",
        side_effect=serial.SerialException("no such device"),
    ):
        with pytest.raises(TransportError, match="/dev/ttyNOPE"):
            open_serial_port("/dev/ttyNOPE")


def test_open_serial_port_passes_settings() -> None:
    with patch("furcoms.transport.serial.serial.serial_for_url") as serial_for_url:
        open_serial_port("/dev/ttyUSB0", 115200, 0.25)

    serial_for_url.assert_called_once_with("/dev/ttyUSB0", baudrate=115200, timeout=0.25)

"""Serial transport for a FurComs bus.

One daemon thread per transport reads the line byte by byte, rebuilds
frames with :class:`~furcoms.protocol.frame.FrameDecoder` and dispatches
them synchronously. Callbacks therefore run on the reader thread: slow
work should be handed off to another worker so the reader keeps up with
the wire.

A reader I/O failure is terminal. The transport moves to ``failed`` and
every later send raises :class:`~furcoms.errors.FatalReaderError`; there is
no automatic reconnect, the owner has to build a new transport.
"""

from __future__ import annotations

import logging
import threading
from typing import Final, Protocol

import serial
from transitions.extensions import LockedMachine

from furcoms import metrics
from furcoms.bus import Bus
from furcoms.const import (
    DEFAULT_READER_JOIN_TIMEOUT,
    DEFAULT_SERIAL_BAUD,
    DEFAULT_SERIAL_PORT,
    DEFAULT_SERIAL_READ_TIMEOUT,
)
from furcoms.errors import FatalReaderError, TransportError
from furcoms.protocol.frame import FrameDecoder, encode_message
from furcoms.protocol.message import Message
from furcoms.util import log_hexdump

logger = logging.getLogger("furcoms.transport.serial")


class SerialPort(Protocol):
    """The subset of :class:`serial.Serial` used by the transport."""

    def read(self, size: int = 1) -> bytes: ...

    def write(self, data: bytes) -> int | None: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


def open_serial_port(
    port: str,
    baudrate: int = DEFAULT_SERIAL_BAUD,
    read_timeout: float | None = DEFAULT_SERIAL_READ_TIMEOUT,
) -> serial.SerialBase:
    """Open *port* (a device path or pyserial URL) in raw 8N1 mode."""
    try:
        return serial.serial_for_url(port, baudrate=baudrate, timeout=read_timeout)
    except (serial.SerialException, OSError, ValueError) as exc:
        raise TransportError(f"Could not open serial port {port}: {exc}") from exc


class SerialTransport(Bus):
    """FurComs endpoint backed by a byte-stream connection."""

    transport_name = "serial"

    STATE_RUNNING: Final[str] = "running"
    STATE_FAILED: Final[str] = "failed"
    STATE_CLOSED: Final[str] = "closed"

    def __init__(
        self,
        port: str | SerialPort = DEFAULT_SERIAL_PORT,
        *,
        baudrate: int = DEFAULT_SERIAL_BAUD,
        read_timeout: float | None = DEFAULT_SERIAL_READ_TIMEOUT,
    ) -> None:
        super().__init__()

        if isinstance(port, str):
            self.port_name = port
            self._port: SerialPort = open_serial_port(port, baudrate, read_timeout)
        else:
            self.port_name = str(getattr(port, "port", None) or getattr(port, "name", None) or "<serial>")
            self._port = port

        self.link_state = self.STATE_RUNNING
        self.failure: BaseException | None = None
        self._decoder = FrameDecoder()
        self._write_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._stop_event = threading.Event()

        self.machine = LockedMachine(
            model=self,
            states=[self.STATE_RUNNING, self.STATE_FAILED, self.STATE_CLOSED],
            initial=self.STATE_RUNNING,
            model_attribute="link_state",
            ignore_invalid_triggers=True,
        )
        self.machine.add_transition("reader_failed", self.STATE_RUNNING, self.STATE_FAILED)
        self.machine.add_transition("shutdown", [self.STATE_RUNNING, self.STATE_FAILED], self.STATE_CLOSED)

        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"furcoms-rx:{self.port_name}",
            daemon=True,
        )
        self._reader.start()
        logger.info("FurComs serial transport ready on %s", self.port_name)

    # --- State ---

    @property
    def is_usable(self) -> bool:
        return self.link_state == self.STATE_RUNNING

    @property
    def reader_alive(self) -> bool:
        return self._reader.is_alive()

    def _ensure_usable(self) -> None:
        if self.link_state == self.STATE_FAILED:
            raise FatalReaderError(
                f"Serial reader on {self.port_name} failed: {self.failure}"
            ) from self.failure
        if self.link_state == self.STATE_CLOSED:
            raise TransportError(f"Serial transport on {self.port_name} is closed")

    # --- Outbound ---

    def _send(self, message: Message) -> None:
        self._ensure_usable()
        frame = encode_message(message)

        with self._write_lock:
            try:
                self._port.write(frame)
                self._port.flush()
            except (serial.SerialException, OSError) as exc:
                logger.error("Serial write to %s failed: %s", self.port_name, exc)
                raise TransportError(f"Serial write to {self.port_name} failed: {exc}") from exc

        if logger.isEnabledFor(logging.DEBUG):
            log_hexdump(logger, logging.DEBUG, f"WIRE > {message.topic}", frame)

    # --- Inbound ---

    def _read_loop(self) -> None:
        decoder = self._decoder
        dropped = decoder.frames_dropped

        try:
            while not self._stop_event.is_set():
                chunk = self._port.read(1)
                if not chunk:
                    continue

                decoded = decoder.feed(chunk[0])
                if decoded is not None:
                    self.dispatch(*decoded)
                elif decoder.frames_dropped != dropped:
                    metrics.FRAMES_DROPPED.labels(transport=self.transport_name, reason="malformed").inc(
                        decoder.frames_dropped - dropped
                    )
                    dropped = decoder.frames_dropped
        except (serial.SerialException, OSError) as exc:
            if self._stop_event.is_set():
                logger.debug("Serial reader on %s stopped: %s", self.port_name, exc)
                return
            self._mark_failed(exc)
        except Exception as exc:
            self._mark_failed(exc)
        else:
            logger.debug("Serial reader on %s exited.", self.port_name)

    def _mark_failed(self, exc: BaseException) -> None:
        self.failure = exc
        self.trigger("reader_failed")  # type: ignore[attr-defined]
        logger.critical(
            "Serial reader on %s failed; transport is unusable until restarted: %s",
            self.port_name,
            exc,
            exc_info=exc,
        )

    # --- Lifecycle ---

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the reader thread; return ``True`` once it has exited."""
        self._reader.join(timeout)
        return not self._reader.is_alive()

    def close(self) -> None:
        with self._close_lock:
            if self.link_state == self.STATE_CLOSED:
                return
            self._stop_event.set()
            self.trigger("shutdown")  # type: ignore[attr-defined]
        try:
            self._port.close()
        except (serial.SerialException, OSError) as exc:
            logger.warning("Error closing serial port %s: %s", self.port_name, exc)
        if threading.current_thread() is not self._reader:
            self._reader.join(DEFAULT_READER_JOIN_TIMEOUT)
            if self._reader.is_alive():
                logger.warning("Serial reader on %s did not stop within %.1fs", self.port_name, DEFAULT_READER_JOIN_TIMEOUT)
        super().close()
        logger.info("FurComs serial transport on %s closed", self.port_name)

    def __repr__(self) -> str:
        return f"SerialTransport(port={self.port_name!r}, state={self.link_state!r})"


__all__ = ["SerialPort", "SerialTransport", "open_serial_port"]

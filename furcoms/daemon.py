"""FurComs bridge daemon: one serial bus relayed onto an MQTT broker."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from collections.abc import Callable, Sequence
from types import FrameType
from typing import NoReturn

from furcoms import metrics
from furcoms.bridge import Bridge
from furcoms.config.logging import configure_logging
from furcoms.config.model import RuntimeConfig
from furcoms.config.settings import load_runtime_config
from furcoms.errors import FurComsError
from furcoms.mqtt.client import PahoBrokerClient
from furcoms.transport.broker import BrokerClient
from furcoms.transport.serial import SerialTransport

logger = logging.getLogger("furcoms.daemon")

READER_POLL_INTERVAL = 0.5


def _build_client(config: RuntimeConfig) -> PahoBrokerClient:
    return PahoBrokerClient(
        config.mqtt_host,
        config.mqtt_port,
        username=config.mqtt_user,
        password=config.mqtt_pass,
        tls=config.tls_enabled,
        cafile=config.mqtt_cafile,
        connect_attempts=config.mqtt_connect_attempts,
    )


def _build_serial(config: RuntimeConfig) -> SerialTransport:
    return SerialTransport(config.serial_port, baudrate=config.serial_baud)


class BridgeDaemon:
    """Owns the broker client, the serial transport and the bridge."""

    def __init__(
        self,
        config: RuntimeConfig,
        client_factory: Callable[[RuntimeConfig], BrokerClient] = _build_client,
        serial_factory: Callable[[RuntimeConfig], SerialTransport] = _build_serial,
    ) -> None:
        self.config = config
        self._client_factory = client_factory
        self._serial_factory = serial_factory
        self._stop_event = threading.Event()
        self.client: BrokerClient | None = None
        self.bridge: Bridge | None = None

    def start(self) -> Bridge:
        client = self._client_factory(self.config)
        connect = getattr(client, "connect", None)
        if callable(connect):
            connect()
        self.client = client

        serial_transport = self._serial_factory(self.config)
        bridge = Bridge(serial_transport, client, self.config.topic_prefix)
        self.bridge = bridge

        if self.config.metrics_enabled:
            metrics.start_exporter(self.config.metrics_host, self.config.metrics_port)
        return bridge

    def run(self) -> int:
        """Block until stopped or until the serial reader dies.

        Returns the process exit code.
        """
        bridge = self.bridge if self.bridge is not None else self.start()
        serial_transport = bridge.serial
        try:
            while not self._stop_event.is_set():
                if serial_transport.join(READER_POLL_INTERVAL):
                    break
        finally:
            failed = serial_transport.failure is not None
            self.shutdown()

        if failed:
            logger.critical("Serial reader on %s died; exiting.", serial_transport.port_name)
            return 1
        return 0

    def stop(self) -> None:
        self._stop_event.set()

    def shutdown(self) -> None:
        if self.bridge is not None:
            self.bridge.close()
        disconnect = getattr(self.client, "disconnect", None)
        if callable(disconnect):
            disconnect()


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="furcoms-bridge",
        description="Relay a FurComs serial bus onto an MQTT broker.",
    )
    parser.add_argument("--config", default=None, help="Path to the TOML configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> NoReturn:
    args = _parse_args(argv)

    try:
        config = load_runtime_config(args.config)
    except FurComsError as exc:
        print(f"furcoms-bridge: {exc}", file=sys.stderr)
        sys.exit(1)
    if args.debug:
        config.debug_logging = True
    configure_logging(config)

    logger.info(
        "Starting FurComs bridge. Serial: %s@%d MQTT: %s:%d prefix %s",
        config.serial_port,
        config.serial_baud,
        config.mqtt_host,
        config.mqtt_port,
        config.topic_prefix,
    )

    daemon = BridgeDaemon(config)

    def _handle_signal(signum: int, frame: FrameType | None) -> None:
        logger.info("Received signal %d; shutting down.", signum)
        daemon.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        daemon.start()
    except FurComsError as exc:
        logger.critical("Startup aborted: %s", exc)
        daemon.shutdown()
        sys.exit(1)
    except OSError as exc:
        logger.critical("System/OS error during startup: %s", exc, exc_info=True)
        daemon.shutdown()
        sys.exit(1)

    sys.exit(daemon.run())


if __name__ == "__main__":
    main()

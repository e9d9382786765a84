"""Typed runtime configuration for the FurComs bridge daemon."""

from __future__ import annotations

from dataclasses import dataclass

from ..const import (
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_METRICS_ENABLED,
    DEFAULT_METRICS_HOST,
    DEFAULT_METRICS_PORT,
    DEFAULT_MQTT_CONNECT_ATTEMPTS,
    DEFAULT_MQTT_HOST,
    DEFAULT_MQTT_PORT,
    DEFAULT_SERIAL_BAUD,
    DEFAULT_SERIAL_PORT,
)
from ..protocol.topics import prefix_for_port


@dataclass(slots=True)
class RuntimeConfig:
    """Strongly typed configuration for the daemon."""

    serial_port: str = DEFAULT_SERIAL_PORT
    serial_baud: int = DEFAULT_SERIAL_BAUD
    mqtt_host: str = DEFAULT_MQTT_HOST
    mqtt_port: int = DEFAULT_MQTT_PORT
    mqtt_user: str | None = None
    mqtt_pass: str | None = None
    mqtt_tls: bool = False
    mqtt_cafile: str | None = None
    mqtt_topic: str | None = None
    mqtt_connect_attempts: int = DEFAULT_MQTT_CONNECT_ATTEMPTS
    debug_logging: bool = DEFAULT_DEBUG_LOGGING
    metrics_enabled: bool = DEFAULT_METRICS_ENABLED
    metrics_host: str = DEFAULT_METRICS_HOST
    metrics_port: int = DEFAULT_METRICS_PORT

    @property
    def tls_enabled(self) -> bool:
        return self.mqtt_tls

    @property
    def topic_prefix(self) -> str:
        """Broker prefix, derived from the serial port when not configured."""
        return self.mqtt_topic or prefix_for_port(self.serial_port)

"""Marshmallow schema for RuntimeConfig validation."""

from __future__ import annotations

import logging
from typing import Any, Dict

from marshmallow import Schema, fields, post_load, pre_load, validate

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
from .model import RuntimeConfig

logger = logging.getLogger("furcoms.config")


class RuntimeConfigSchema(Schema):
    """Declarative validation schema for FurComs bridge configuration."""

    # Serial
    serial_port = fields.Str(load_default=DEFAULT_SERIAL_PORT, validate=validate.Length(min=1))
    serial_baud = fields.Int(load_default=DEFAULT_SERIAL_BAUD, validate=validate.Range(min=300))

    # MQTT
    mqtt_host = fields.Str(load_default=DEFAULT_MQTT_HOST, validate=validate.Length(min=1))
    mqtt_port = fields.Int(load_default=DEFAULT_MQTT_PORT, validate=validate.Range(min=1, max=65535))
    mqtt_user = fields.Str(load_default=None, allow_none=True)
    mqtt_pass = fields.Str(load_default=None, allow_none=True)
    mqtt_tls = fields.Bool(load_default=False)
    mqtt_cafile = fields.Str(load_default=None, allow_none=True)
    mqtt_topic = fields.Str(load_default=None, allow_none=True)
    mqtt_connect_attempts = fields.Int(
        load_default=DEFAULT_MQTT_CONNECT_ATTEMPTS, validate=validate.Range(min=1)
    )

    # System
    debug_logging = fields.Bool(load_default=DEFAULT_DEBUG_LOGGING)
    metrics_enabled = fields.Bool(load_default=DEFAULT_METRICS_ENABLED)
    metrics_host = fields.Str(load_default=DEFAULT_METRICS_HOST)
    metrics_port = fields.Int(load_default=DEFAULT_METRICS_PORT, validate=validate.Range(min=0, max=65535))

    @pre_load
    def normalize_topic(self, data: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        prefix = data.get("mqtt_topic")
        if isinstance(prefix, str):
            segments = [segment for segment in prefix.split("/") if segment]
            # An empty prefix falls back to the port-derived one.
            data["mqtt_topic"] = "/".join(segments) + "/" if segments else None
        return data

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> RuntimeConfig:
        if data["serial_baud"] != DEFAULT_SERIAL_BAUD:
            logger.warning(
                "FurComs devices only talk at %d baud; ignoring serial_baud=%d",
                DEFAULT_SERIAL_BAUD,
                data["serial_baud"],
            )
            data["serial_baud"] = DEFAULT_SERIAL_BAUD
        return RuntimeConfig(**data)

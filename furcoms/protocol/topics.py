"""Broker topic helpers for the FurComs relay namespace.

Layout under a prefix ending in ``/``::

    {prefix}Send/{topic}       requests to put a message on the wire
    {prefix}Received/{topic}   messages seen on the wire
"""

from __future__ import annotations

import logging

from furcoms.const import BROKER_RECEIVED, BROKER_ROOT, BROKER_SEND

logger = logging.getLogger("furcoms.protocol.topics")


def normalise_prefix(prefix: str) -> str:
    """Return *prefix* with exactly one trailing ``/``."""
    if not prefix:
        raise ValueError("broker topic prefix cannot be empty")
    if not prefix.endswith("/"):
        logger.warning("Broker prefix %r does not end with '/'; appending it.", prefix)
        prefix += "/"
    return prefix


def prefix_for_port(port: str) -> str:
    """Derive the default bridge prefix from a serial device path.

    ``/dev/ttyACM0`` becomes ``FurComs/ttyACM0/``.
    """
    device = port[len("/dev/"):] if port.startswith("/dev/") else port
    device = device.strip("/")
    if not device:
        raise ValueError(f"cannot derive broker prefix from port {port!r}")
    return f"{BROKER_ROOT}/{device}/"


def send_topic(prefix: str, topic: str) -> str:
    return f"{prefix}{BROKER_SEND}/{topic}"


def received_topic(prefix: str, topic: str) -> str:
    return f"{prefix}{BROKER_RECEIVED}/{topic}"


def send_filter(prefix: str) -> str:
    return f"{prefix}{BROKER_SEND}/#"


def received_filter(prefix: str) -> str:
    return f"{prefix}{BROKER_RECEIVED}/#"


def strip_namespace(prefix: str, namespace: str, broker_topic: str) -> str | None:
    """Return the bus topic below ``{prefix}{namespace}/`` or ``None``."""
    head = f"{prefix}{namespace}/"
    if not broker_topic.startswith(head):
        return None
    return broker_topic[len(head):]


__all__ = [
    "normalise_prefix",
    "prefix_for_port",
    "received_filter",
    "received_topic",
    "send_filter",
    "send_topic",
    "strip_namespace",
]

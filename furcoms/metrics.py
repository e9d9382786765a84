"""Prometheus counters for FurComs transports and the bridge."""

from __future__ import annotations

import logging
from typing import Final

from prometheus_client import CollectorRegistry, Counter, start_http_server

logger = logging.getLogger("furcoms.metrics")

REGISTRY: Final[CollectorRegistry] = CollectorRegistry(auto_describe=True)

FRAMES_SENT: Final[Counter] = Counter(
    "furcoms_frames_sent",
    "Messages handed to a transport for sending",
    ["transport"],
    registry=REGISTRY,
)
FRAMES_RECEIVED: Final[Counter] = Counter(
    "furcoms_frames_received",
    "Messages received from a transport and dispatched",
    ["transport"],
    registry=REGISTRY,
)
FRAMES_DROPPED: Final[Counter] = Counter(
    "furcoms_frames_dropped",
    "Inbound frames or broker messages discarded",
    ["transport", "reason"],
    registry=REGISTRY,
)
CALLBACK_ERRORS: Final[Counter] = Counter(
    "furcoms_callback_errors",
    "Exceptions raised by subscriber callbacks",
    registry=REGISTRY,
)
BRIDGE_RELAYED: Final[Counter] = Counter(
    "furcoms_bridge_relayed",
    "Messages relayed by the serial/broker bridge",
    ["direction"],
    registry=REGISTRY,
)


def sample(name: str, labels: dict[str, str] | None = None) -> float:
    """Return the current value of a counter sample (0.0 when unset)."""
    value = REGISTRY.get_sample_value(name, labels or {})
    return value if value is not None else 0.0


def start_exporter(host: str, port: int) -> None:
    """Serve :data:`REGISTRY` over HTTP in a background thread."""
    start_http_server(port, addr=host, registry=REGISTRY)
    logger.info("Prometheus exporter listening on %s:%d", host, port)


__all__ = [
    "BRIDGE_RELAYED",
    "CALLBACK_ERRORS",
    "FRAMES_DROPPED",
    "FRAMES_RECEIVED",
    "FRAMES_SENT",
    "REGISTRY",
    "sample",
    "start_exporter",
]

"""Broker-backed FurComs transport.

The transport never touches the wire. It listens on ``{prefix}Received/#``
for frames a bridge has seen on the bus and publishes outgoing messages to
``{prefix}Send/{topic}``. If no bridge is subscribed to the Send namespace
the message is lost; the broker is fire-and-forget.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from furcoms import metrics
from furcoms.bus import Bus
from furcoms.const import BROKER_RECEIVED, DEFAULT_BROKER_PREFIX
from furcoms.errors import FurComsError, TransportError
from furcoms.protocol.message import Message, is_valid_topic
from furcoms.protocol.topics import normalise_prefix, received_filter, send_topic, strip_namespace

logger = logging.getLogger("furcoms.transport.broker")

BrokerCallback = Callable[[bytes, str], object]


class BrokerClient(Protocol):
    """Minimal publish/subscribe surface expected from a broker client."""

    def subscribe(self, topic_pattern: str, callback: BrokerCallback) -> object: ...

    def publish(self, topic: str, payload: bytes) -> object: ...


class BrokerTransport(Bus):
    """FurComs endpoint reached through a broker and a remote bridge."""

    transport_name = "broker"

    def __init__(self, client: BrokerClient, prefix: str = DEFAULT_BROKER_PREFIX) -> None:
        super().__init__()
        self.client = client
        self.prefix = normalise_prefix(prefix)

        self.client.subscribe(received_filter(self.prefix), self._on_received)
        logger.info("FurComs broker transport listening on %s", received_filter(self.prefix))

    def _on_received(self, payload: bytes, broker_topic: str) -> None:
        topic = strip_namespace(self.prefix, BROKER_RECEIVED, broker_topic)
        if topic is None or not is_valid_topic(topic):
            metrics.FRAMES_DROPPED.labels(transport=self.transport_name, reason="topic").inc()
            logger.debug("Ignoring broker message on unexpected topic %r", broker_topic)
            return
        self.dispatch(topic, bytes(payload))

    def _send(self, message: Message) -> None:
        target = send_topic(self.prefix, message.topic)
        try:
            self.client.publish(target, message.payload)
        except FurComsError:
            raise
        except Exception as exc:
            logger.error("Broker publish to %s failed: %s", target, exc)
            raise TransportError(f"Broker publish to {target} failed: {exc}") from exc

    def __repr__(self) -> str:
        return f"BrokerTransport(prefix={self.prefix!r})"


__all__ = ["BrokerCallback", "BrokerClient", "BrokerTransport"]

"""Serial <-> broker bridge.

The bridge owns a :class:`SerialTransport` and a broker client and joins
them under one :class:`Bus` identity:

* ``{prefix}Send/#`` broker messages are written to the serial line, and
  only to the serial line.
* Every frame read from the serial line is dispatched to the bridge's own
  subscribers and then published to ``{prefix}Received/{topic}``.

Nothing received from the broker is ever published back to it, so two
bridges or a bridge plus a :class:`BrokerTransport` cannot form a loop.

The broker side is a plain :class:`BrokerClient` rather than a
:class:`BrokerTransport`: the bridge consumes ``Send/`` and produces
``Received/``, the mirror image of what a broker transport does.
"""

from __future__ import annotations

import logging

from furcoms import metrics
from furcoms.bus import Bus
from furcoms.const import BROKER_SEND
from furcoms.errors import FurComsError
from furcoms.protocol.message import Message, fits_frame, is_valid_topic
from furcoms.protocol.topics import (
    normalise_prefix,
    prefix_for_port,
    received_topic,
    send_filter,
    strip_namespace,
)
from furcoms.transport.broker import BrokerClient
from furcoms.transport.serial import SerialTransport

logger = logging.getLogger("furcoms.bridge")


class Bridge(Bus):
    """Relay FurComs traffic between a serial line and a broker."""

    transport_name = "bridge"

    def __init__(
        self,
        serial_transport: SerialTransport,
        client: BrokerClient,
        prefix: str | None = None,
    ) -> None:
        super().__init__()
        self.serial = serial_transport
        self.client = client
        self.prefix = normalise_prefix(prefix) if prefix else prefix_for_port(serial_transport.port_name)
        self._closed = False

        self._relay = self.serial.subscribe(None, self._on_wire_message)
        self.client.subscribe(send_filter(self.prefix), self._on_send_request)
        logger.info("FurComs bridge %s <-> %s", self.serial.port_name, self.prefix)

    # --- Broker -> wire ---

    def _on_send_request(self, payload: bytes, broker_topic: str) -> None:
        if self._closed:
            return
        topic = strip_namespace(self.prefix, BROKER_SEND, broker_topic)
        data = bytes(payload)
        if topic is None or not is_valid_topic(topic) or not fits_frame(topic, data):
            metrics.FRAMES_DROPPED.labels(transport=self.transport_name, reason="send_request").inc()
            logger.debug("Dropping send request on %r (%d bytes)", broker_topic, len(data))
            return

        try:
            self.serial.send_message(topic, data)
        except FurComsError as exc:
            logger.error("Could not relay %s onto %s: %s", topic, self.serial.port_name, exc)
            return
        metrics.BRIDGE_RELAYED.labels(direction="broker_to_serial").inc()

    # --- Wire -> local subscribers + broker ---

    def _on_wire_message(self, payload: bytes, topic: str) -> None:
        self.dispatch(topic, payload)

    def dispatch(self, topic: str, payload: bytes) -> None:
        super().dispatch(topic, payload)
        target = received_topic(self.prefix, topic)
        try:
            self.client.publish(target, payload)
        except Exception as exc:
            metrics.FRAMES_DROPPED.labels(transport=self.transport_name, reason="publish").inc()
            logger.error("Broker publish to %s failed: %s", target, exc)
            return
        metrics.BRIDGE_RELAYED.labels(direction="serial_to_broker").inc()

    # --- Local senders ---

    def _send(self, message: Message) -> None:
        # Already validated and counted by Bus.send_message under this bridge.
        self.serial._send(message)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.serial.unsubscribe(self._relay)
        self.serial.close()
        super().close()

    def __repr__(self) -> str:
        return f"Bridge(serial={self.serial!r}, prefix={self.prefix!r})"


__all__ = ["Bridge"]

"""paho-mqtt adapter implementing the FurComs broker client surface."""

from __future__ import annotations

import logging
import threading
from typing import Any

import paho.mqtt.client as mqtt
import tenacity
from paho.mqtt.enums import CallbackAPIVersion

from furcoms.const import (
    DEFAULT_MQTT_CONNECT_ATTEMPTS,
    DEFAULT_MQTT_CONNECT_MAX_BACKOFF,
    DEFAULT_MQTT_KEEPALIVE,
    DEFAULT_MQTT_PORT,
)
from furcoms.errors import TransportError
from furcoms.transport.broker import BrokerCallback

logger = logging.getLogger("furcoms.mqtt")


def _log_connect_retry(retry_state: tenacity.RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "MQTT connect attempt %d failed (%s); retrying in %.2fs",
        retry_state.attempt_number,
        outcome.exception() if outcome is not None else "unknown",
        retry_state.next_action.sleep if retry_state.next_action else 0,
    )


class PahoBrokerClient:
    """Thread-backed paho client with persistent subscriptions.

    Subscriptions are remembered so that a reconnect performed by paho's
    network loop restores them from ``on_connect``. Incoming messages are
    routed on the paho network thread.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_MQTT_PORT,
        username: str | None = None,
        password: str | None = None,
        tls: bool = False,
        cafile: str | None = None,
        client_id: str = "",
        keepalive: int = DEFAULT_MQTT_KEEPALIVE,
        connect_attempts: int = DEFAULT_MQTT_CONNECT_ATTEMPTS,
    ) -> None:
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self.connect_attempts = max(1, connect_attempts)
        self.connected = threading.Event()

        self._subscriptions: list[tuple[str, BrokerCallback]] = []
        self._lock = threading.Lock()

        self._client = mqtt.Client(CallbackAPIVersion.VERSION2, client_id=client_id)
        if username:
            self._client.username_pw_set(username, password)
        if tls:
            tls_kwargs: dict[str, Any] = {}
            if cafile:
                tls_kwargs["ca_certs"] = cafile
            self._client.tls_set(**tls_kwargs)

        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

    # --- Connection ---

    def connect(self) -> None:
        retryer = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(self.connect_attempts),
            wait=tenacity.wait_exponential(multiplier=0.5, max=DEFAULT_MQTT_CONNECT_MAX_BACKOFF)
            + tenacity.wait_random(0, 0.5),
            retry=tenacity.retry_if_exception_type(OSError),
            before_sleep=_log_connect_retry,
            reraise=True,
        )
        try:
            for attempt in retryer:
                with attempt:
                    self._client.connect(self.host, self.port, self.keepalive)
        except OSError as exc:
            raise TransportError(f"Could not connect to MQTT broker {self.host}:{self.port}: {exc}") from exc

        self._client.loop_start()
        logger.info("MQTT client connected to %s:%d", self.host, self.port)

    def disconnect(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()
        self.connected.clear()
        logger.info("MQTT client disconnected from %s:%d", self.host, self.port)

    # --- BrokerClient surface ---

    def subscribe(self, topic_pattern: str, callback: BrokerCallback) -> None:
        with self._lock:
            self._subscriptions.append((topic_pattern, callback))
        result, _mid = self._client.subscribe(topic_pattern)
        if result != mqtt.MQTT_ERR_SUCCESS:
            # Restored from on_connect once the link is back.
            logger.debug("Deferred MQTT subscribe to %s (rc=%s)", topic_pattern, result)

    def publish(self, topic: str, payload: bytes) -> None:
        info = self._client.publish(topic, bytes(payload))
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"MQTT publish to {topic} failed: {mqtt.error_string(info.rc)}")

    # --- paho callbacks ---

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        if getattr(reason_code, "is_failure", False):
            logger.error("MQTT broker refused connection: %s", reason_code)
            return
        with self._lock:
            patterns = [pattern for pattern, _ in self._subscriptions]
        for pattern in dict.fromkeys(patterns):
            client.subscribe(pattern)
        self.connected.set()
        logger.debug("MQTT session ready; %d subscription(s) restored", len(patterns))

    def _on_disconnect(
        self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any
    ) -> None:
        self.connected.clear()
        logger.warning("MQTT connection to %s:%d lost: %s", self.host, self.port, reason_code)

    def _on_message(self, client: mqtt.Client, userdata: Any, message: mqtt.MQTTMessage) -> None:
        with self._lock:
            subscriptions = tuple(self._subscriptions)
        for pattern, callback in subscriptions:
            if not mqtt.topic_matches_sub(pattern, message.topic):
                continue
            try:
                callback(bytes(message.payload), message.topic)
            except Exception:
                logger.exception("Error handling MQTT message on %s", message.topic)


__all__ = ["PahoBrokerClient"]

"""Publish/subscribe dispatch core shared by every FurComs transport.

A :class:`Bus` is one logical endpoint on a FurComs network. It keeps an
ordered list of subscriptions, validates outgoing messages and hands
incoming ones to matching callbacks. Concrete transports only implement
:meth:`Bus._send`.

Dispatch may run on a serial reader thread or a broker client thread while
other threads subscribe, so the subscription list is copied under a lock
and iterated without holding it.
"""

from __future__ import annotations

import logging
import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from types import TracebackType
from typing import TypeAlias

from furcoms import metrics
from furcoms.protocol.message import Message, PayloadLike, build_message
from furcoms.util import log_hexdump

logger = logging.getLogger("furcoms.bus")

MessageCallback: TypeAlias = Callable[[bytes, str], object]
TopicFilter: TypeAlias = str | re.Pattern[str] | None


class Subscription:
    """A registered callback with an optional topic filter.

    Instances double as the handle returned by :meth:`Bus.subscribe`.
    """

    __slots__ = ("filter", "callback", "_bus")

    def __init__(self, bus: Bus, topic_filter: TopicFilter, callback: MessageCallback) -> None:
        self.filter = topic_filter
        self.callback = callback
        self._bus = bus

    def matches(self, topic: str) -> bool:
        if self.filter is None:
            return True
        if isinstance(self.filter, str):
            return topic == self.filter
        return self.filter.search(topic) is not None

    def cancel(self) -> bool:
        """Remove this subscription from its bus."""
        return self._bus.unsubscribe(self)

    def __repr__(self) -> str:
        return f"Subscription(filter={self.filter!r}, callback={self.callback!r})"


SubscriptionHandle: TypeAlias = Subscription


class Bus(ABC):
    """Abstract FurComs endpoint."""

    transport_name = "bus"

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._subscriptions_lock = threading.Lock()
        self.callback_errors = 0

    # --- Outbound ---

    def send_message(
        self,
        topic: str,
        payload: PayloadLike = b"",
        priority: int = 0,
        source_id: int = 0,
    ) -> None:
        """Validate and send a message on this bus.

        Raises:
            FurComsValidationError: invalid topic or oversized message.
            TransportError: the underlying transport failed.
        """
        message = build_message(topic, payload, priority, source_id)
        if logger.isEnabledFor(logging.DEBUG):
            log_hexdump(logger, logging.DEBUG, f"{self.transport_name} > {message.topic}", message.payload)
        self._send(message)
        metrics.FRAMES_SENT.labels(transport=self.transport_name).inc()

    @abstractmethod
    def _send(self, message: Message) -> None:
        """Put an already validated message on the transport."""

    # --- Subscriptions ---

    def subscribe(self, topic_filter: TopicFilter, callback: MessageCallback) -> SubscriptionHandle:
        """Register *callback* for messages whose topic matches *topic_filter*.

        *topic_filter* is ``None`` (every message), a string (exact match) or
        a compiled regular expression (``search`` semantics).
        """
        if topic_filter is not None and not isinstance(topic_filter, (str, re.Pattern)):
            raise TypeError(f"topic filter must be str, re.Pattern or None, not {type(topic_filter).__name__}")
        if not callable(callback):
            raise TypeError("callback must be callable")

        subscription = Subscription(self, topic_filter, callback)
        with self._subscriptions_lock:
            self._subscriptions.append(subscription)
        return subscription

    def on_message(self, topic_filter: TopicFilter = None) -> Callable[[MessageCallback], MessageCallback]:
        """Decorator form of :meth:`subscribe`."""

        def register(callback: MessageCallback) -> MessageCallback:
            self.subscribe(topic_filter, callback)
            return callback

        return register

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        with self._subscriptions_lock:
            try:
                self._subscriptions.remove(handle)
            except ValueError:
                return False
        return True

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        with self._subscriptions_lock:
            return tuple(self._subscriptions)

    # --- Inbound ---

    def dispatch(self, topic: str, payload: bytes) -> None:
        """Deliver a received message to every matching subscription in order.

        A callback that raises is logged and skipped; delivery to the
        remaining subscriptions continues.
        """
        if logger.isEnabledFor(logging.DEBUG):
            log_hexdump(logger, logging.DEBUG, f"{self.transport_name} < {topic}", payload)
        metrics.FRAMES_RECEIVED.labels(transport=self.transport_name).inc()

        for subscription in self.subscriptions:
            if not subscription.matches(topic):
                continue
            try:
                subscription.callback(payload, topic)
            except Exception:
                self.callback_errors += 1
                metrics.CALLBACK_ERRORS.inc()
                logger.exception("Error in callback %r for topic %s", subscription.callback, topic)

    # --- Lifecycle ---

    def close(self) -> None:
        with self._subscriptions_lock:
            self._subscriptions.clear()

    def __enter__(self) -> Bus:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["Bus", "MessageCallback", "Subscription", "SubscriptionHandle", "TopicFilter"]

"""FurComs message value object and validation helpers."""

from __future__ import annotations

import re
from typing import Final

import msgspec

from furcoms.const import MAX_MESSAGE_SIZE, TOPIC_PATTERN
from furcoms.errors import FurComsValidationError

# Bus nodes match topics byte-wise, so \w and \s are ASCII-only here.
TOPIC_RE: Final[re.Pattern[str]] = re.compile(TOPIC_PATTERN, re.ASCII)

PayloadLike = bytes | bytearray | memoryview | str


class Message(msgspec.Struct, frozen=True, kw_only=True):
    """A single topic-addressed message on the bus.

    Attributes:
        topic: ``/``-delimited topic, restricted to word characters,
            whitespace and ``/``.
        payload: Opaque binary payload; NUL bytes are allowed.
        priority: Bus priority, clamped to [-60, 60] on the wire.
        source_id: Originating chip/node identifier.
    """

    topic: str
    payload: bytes = b""
    priority: int = 0
    source_id: int = 0

    @property
    def size(self) -> int:
        return len(self.topic) + len(self.payload)


def is_valid_topic(topic: str) -> bool:
    return TOPIC_RE.fullmatch(topic) is not None


def coerce_payload(payload: PayloadLike) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, (bytearray, memoryview)):
        return bytes(payload)
    raise TypeError(f"payload must be bytes-like or str, not {type(payload).__name__}")


def fits_frame(topic: str, payload: bytes) -> bool:
    return len(topic) + len(payload) <= MAX_MESSAGE_SIZE


def build_message(
    topic: str,
    payload: PayloadLike,
    priority: int = 0,
    source_id: int = 0,
) -> Message:
    """Validate the arguments of a send and return the resulting :class:`Message`.

    Raises:
        FurComsValidationError: topic contains characters outside
            ``[\\w\\s/]`` or ``topic + payload`` exceeds the frame limit.
    """
    if not isinstance(topic, str):
        raise FurComsValidationError(f"Topic must be a string, not {type(topic).__name__}")
    if not is_valid_topic(topic):
        raise FurComsValidationError(f"Topic includes invalid characters: {topic!r}")
    data = coerce_payload(payload)
    if not fits_frame(topic, data):
        raise FurComsValidationError(
            f"Message packet length exceeded: {len(topic) + len(data)} > {MAX_MESSAGE_SIZE}"
        )
    return Message(topic=topic, payload=data, priority=int(priority), source_id=int(source_id))


__all__ = [
    "Message",
    "PayloadLike",
    "TOPIC_RE",
    "build_message",
    "coerce_payload",
    "fits_frame",
    "is_valid_topic",
]

"""FurComs frame building and parsing.

Frame Structure (on wire):
    [0x00 START] [Header (8 bytes)] [SLIP(topic NUL payload)] [0x00 STOP]

Header Format (little-endian):
    - priority (1 byte): ``(clamp(p, -60, 60) + 64) * 2 + 1``, always odd
    - originator (2 bytes): interleaved chip id bits, see :func:`encode_originator`
    - arbitration (5 bytes): ``FF FE FF FF FF`` placeholder reserved for the
      hardware collision map; sent verbatim and ignored on receive

The header is never SLIP-stuffed. The priority byte is odd and both
originator bytes have bit 0 set, so none of them can be a delimiter.

A receiver sees the START byte as the end of an (empty) previous frame, so
every frame is reconstructed from the bytes between two delimiters.
"""

from __future__ import annotations

import logging
from typing import Any

import msgspec
from construct import (  # type: ignore
    Bytes,
    ConstructError,
    Default,
    Int8ul,
    Int16ul,
    Struct as BinStruct,
)

from furcoms.const import (
    ARBITRATION_PLACEHOLDER,
    FRAME_DELIMITER,
    FRAME_END,
    HEADER_SIZE,
    MAX_FRAME_BODY,
    MIN_FRAME_SIZE,
    ORIGINATOR_BASE,
    ORIGINATOR_ID_MASK,
    PRIORITY_MAX,
    PRIORITY_MIN,
    PRIORITY_OFFSET,
    TOPIC_SEPARATOR,
    UINT16_MASK,
)

from .message import Message, is_valid_topic
from .slip import SlipDecoder, slip_decode, slip_encode

logger = logging.getLogger("furcoms.protocol.frame")

HEADER_STRUCT: Any = BinStruct(
    "priority" / Int8ul,
    "originator" / Int16ul,
    "arbitration" / Default(Bytes(len(ARBITRATION_PLACEHOLDER)), ARBITRATION_PLACEHOLDER),
)


class FrameHeader(msgspec.Struct, frozen=True):
    """Raw header fields of a received frame."""

    priority_byte: int
    originator: int
    arbitration: bytes

    @property
    def priority(self) -> int:
        return decode_priority(self.priority_byte)


def encode_priority(priority: int) -> int:
    clamped = max(PRIORITY_MIN, min(PRIORITY_MAX, int(priority)))
    return (clamped + PRIORITY_OFFSET) * 2 + 1


def decode_priority(priority_byte: int) -> int:
    return (priority_byte - 1) // 2 - PRIORITY_OFFSET


def encode_originator(source_id: int) -> int:
    """Spread *source_id* over the 16-bit originator field.

    The bit layout is what the bus firmware expects. The unmasked value
    overflows 16 bits for large ids and is truncated the same way a
    little-endian short would be.
    """
    source_id = int(source_id)
    packed = (
        ORIGINATOR_BASE
        | ((source_id & ORIGINATOR_ID_MASK) << 9)
        | ((source_id >> 6) & ORIGINATOR_ID_MASK)
    )
    return packed & UINT16_MASK


def build_header(priority: int = 0, source_id: int = 0) -> bytes:
    return HEADER_STRUCT.build(
        {
            "priority": encode_priority(priority),
            "originator": encode_originator(source_id),
        }
    )


def parse_header(raw_frame: bytes | bytearray | memoryview) -> FrameHeader | None:
    """Parse the 8 header bytes at the start of *raw_frame*."""
    data = bytes(raw_frame)
    if len(data) < HEADER_SIZE:
        return None
    try:
        container = HEADER_STRUCT.parse(data[:HEADER_SIZE])
    except ConstructError:
        return None
    return FrameHeader(
        priority_byte=container.priority,
        originator=container.originator,
        arbitration=bytes(container.arbitration),
    )


def encode_frame(
    topic: str,
    payload: bytes = b"",
    priority: int = 0,
    source_id: int = 0,
) -> bytes:
    """Build the complete wire representation of a message, delimiters included.

    No validation is performed here; :meth:`furcoms.bus.Bus.send_message`
    rejects bad topics and oversized messages before a frame is built.
    """
    body = topic.encode("utf-8") + TOPIC_SEPARATOR + bytes(payload)
    return FRAME_DELIMITER + build_header(priority, source_id) + slip_encode(body) + FRAME_DELIMITER


def encode_message(message: Message) -> bytes:
    return encode_frame(message.topic, message.payload, message.priority, message.source_id)


def _split_body(body: bytes) -> tuple[str, bytes] | None:
    topic_bytes, _sep, payload = body.partition(TOPIC_SEPARATOR)
    try:
        topic = topic_bytes.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if not is_valid_topic(topic):
        return None
    return topic, payload


def decode_frame(raw_frame: bytes | bytearray | memoryview) -> tuple[str, bytes] | None:
    """Decode a single frame.

    Accepts the output of :func:`encode_frame`, a STOP-terminated frame or the
    bare bytes between two delimiters: one leading START and one trailing STOP
    byte are stripped. Returns ``(topic, payload)`` or ``None`` when the frame
    is too short, holds a stray delimiter or its topic is not acceptable.
    Malformed frames never raise.
    """
    data = bytes(raw_frame)
    if data[:1] == FRAME_DELIMITER:
        data = data[1:]
    if data[-1:] == FRAME_DELIMITER:
        data = data[:-1]
    if len(data) < MIN_FRAME_SIZE or FRAME_END in data:
        return None
    body = slip_decode(data[HEADER_SIZE:])
    if not body:
        return None
    return _split_body(body)


class FrameDecoder:
    """Incremental receiver turning a byte stream into ``(topic, payload)`` pairs.

    The first 8 bytes after a delimiter are collected raw as the header; the
    remaining bytes run through a :class:`SlipDecoder`. Bodies longer than
    *max_body* stuffed bytes are discarded up to the next delimiter.
    """

    def __init__(self, max_body: int = MAX_FRAME_BODY) -> None:
        self._max_body = max_body
        self._header = bytearray()
        self._slip = SlipDecoder()
        self._body_len = 0
        self._discarding = False
        self.frames_decoded = 0
        self.frames_dropped = 0
        self.last_header: FrameHeader | None = None

    @property
    def invalid_escapes(self) -> int:
        return self._slip.invalid_escapes

    def feed(self, byte: int) -> tuple[str, bytes] | None:
        """Consume one wire byte; return a message when it completes a frame."""
        if byte == FRAME_END:
            return self._finish()
        if self._discarding:
            return None
        if len(self._header) < HEADER_SIZE:
            self._header.append(byte)
            return None
        self._body_len += 1
        if self._body_len > self._max_body:
            self._discarding = True
            self.frames_dropped += 1
            logger.warning("FurComs frame exceeds %d bytes; discarding until next delimiter.", self._max_body)
            return None
        self._slip.feed(byte)
        return None

    def feed_bytes(self, data: bytes | bytearray | memoryview) -> list[tuple[str, bytes]]:
        messages: list[tuple[str, bytes]] = []
        for byte in bytes(data):
            decoded = self.feed(byte)
            if decoded is not None:
                messages.append(decoded)
        return messages

    def reset(self) -> None:
        self._header.clear()
        self._slip.reset()
        self._body_len = 0
        self._discarding = False

    def _finish(self) -> tuple[str, bytes] | None:
        if self._discarding:
            self.reset()
            return None
        if not self._header:
            # Back-to-back delimiters (STOP followed by START).
            self.reset()
            return None

        header = bytes(self._header)
        body = self._slip.take()
        self.reset()

        if len(header) < HEADER_SIZE or not body:
            self.frames_dropped += 1
            logger.debug("Dropping short frame (%d header, %d body bytes).", len(header), len(body))
            return None

        decoded = _split_body(body)
        if decoded is None:
            self.frames_dropped += 1
            logger.debug("Dropping frame with invalid topic.")
            return None

        self.last_header = parse_header(header)
        self.frames_decoded += 1
        return decoded


__all__ = [
    "FrameDecoder",
    "FrameHeader",
    "HEADER_STRUCT",
    "build_header",
    "decode_frame",
    "decode_priority",
    "encode_frame",
    "encode_message",
    "encode_originator",
    "encode_priority",
    "parse_header",
]

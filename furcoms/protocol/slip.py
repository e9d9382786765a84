"""
SLIP-style byte stuffing for the FurComs wire.

The frame delimiter (0x00) must never appear inside a frame body, so it is
escaped together with the escape byte itself:

  0x00 -> 0xDB 0xDC
  0xDB -> 0xDB 0xDD

Every other byte is sent unchanged.

Decoding is incremental: the serial reader feeds one byte at a time into a
:class:`SlipDecoder`. An escape byte followed by anything other than 0xDC or
0xDD is dropped and the decoder returns to NORMAL. This matches the bus
firmware, which silently ignores the pair; it is not a protocol guarantee.
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Final

from furcoms.const import FRAME_END, SLIP_ESC_END, SLIP_ESC_ESC, SLIP_ESCAPE

logger = logging.getLogger("furcoms.protocol.slip")

_ESCAPED_END: Final[bytes] = bytes([SLIP_ESCAPE, SLIP_ESC_END])
_ESCAPED_ESC: Final[bytes] = bytes([SLIP_ESCAPE, SLIP_ESC_ESC])


class SlipState(IntEnum):
    NORMAL = 0
    ESCAPED = 1


def slip_encode(data: bytes | bytearray | memoryview) -> bytes:
    """
    Stuff *data* so that it contains no frame delimiter.

    Args:
        data: Raw bytes, any value allowed.

    Returns:
        Stuffed bytes (at most twice the input length).
    """
    result = bytearray()
    for byte in bytes(data):
        if byte == FRAME_END:
            result += _ESCAPED_END
        elif byte == SLIP_ESCAPE:
            result += _ESCAPED_ESC
        else:
            result.append(byte)
    return bytes(result)


class SlipDecoder:
    """Byte-at-a-time SLIP decoder with a single escape flag."""

    __slots__ = ("state", "invalid_escapes", "_buffer")

    def __init__(self) -> None:
        self.state = SlipState.NORMAL
        self.invalid_escapes = 0
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, byte: int) -> None:
        """Consume one stuffed byte (never the frame delimiter)."""
        if self.state is SlipState.ESCAPED:
            if byte == SLIP_ESC_END:
                self._buffer.append(FRAME_END)
            elif byte == SLIP_ESC_ESC:
                self._buffer.append(SLIP_ESCAPE)
            else:
                self.invalid_escapes += 1
                logger.debug("Dropping invalid escape sequence 0xDB 0x%02X", byte)
            self.state = SlipState.NORMAL
        elif byte == SLIP_ESCAPE:
            self.state = SlipState.ESCAPED
        else:
            self._buffer.append(byte)

    def take(self) -> bytes:
        """Return the decoded bytes and reset for the next frame."""
        decoded = bytes(self._buffer)
        self.reset()
        return decoded

    def reset(self) -> None:
        self._buffer.clear()
        self.state = SlipState.NORMAL


def slip_decode(data: bytes | bytearray | memoryview) -> bytes:
    """Decode a complete stuffed body in one call."""
    decoder = SlipDecoder()
    for byte in bytes(data):
        decoder.feed(byte)
    return decoder.take()


__all__ = ["SlipDecoder", "SlipState", "slip_decode", "slip_encode"]

"""FurComs wire protocol: SLIP stuffing, frame header, messages and topics."""

from .frame import (
    FrameDecoder,
    FrameHeader,
    decode_frame,
    decode_priority,
    encode_frame,
    encode_message,
    encode_originator,
    encode_priority,
    parse_header,
)
from .message import Message, build_message, is_valid_topic
from .slip import SlipDecoder, slip_decode, slip_encode

__all__ = [
    "FrameDecoder",
    "FrameHeader",
    "Message",
    "SlipDecoder",
    "build_message",
    "decode_frame",
    "decode_priority",
    "encode_frame",
    "encode_message",
    "encode_originator",
    "encode_priority",
    "is_valid_topic",
    "parse_header",
    "slip_decode",
    "slip_encode",
]

"""Frame inspection utility for FurComs developers.

``encode`` builds the exact bytes a transport would put on the wire and
breaks the header down; ``decode`` runs captured wire bytes through the
same incremental receiver the serial transport uses.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from dataclasses import dataclass

from furcoms.const import HEADER_SIZE, TOPIC_SEPARATOR
from furcoms.errors import FurComsValidationError
from furcoms.protocol.frame import FrameDecoder, FrameHeader, encode_message, parse_header
from furcoms.protocol.message import build_message
from furcoms.protocol.slip import slip_encode
from furcoms.util import format_hexdump


@dataclass(slots=True)
class FrameDebugSnapshot:
    topic: str
    payload: bytes
    priority: int
    source_id: int
    header: FrameHeader
    body_length: int
    encoded_packet: bytes

    def render(self) -> str:
        return (
            "[FrameDebug] --- Snapshot ---\n"
            f"topic={self.topic}\n"
            f"payload_len={len(self.payload)}\n"
            f"priority={self.priority} (byte=0x{self.header.priority_byte:02X})\n"
            f"source_id={self.source_id} (originator=0x{self.header.originator:04X})\n"
            f"arbitration={_hex_with_spacing(self.header.arbitration)}\n"
            f"body_len={self.body_length}\n"
            f"wire_len={len(self.encoded_packet)}\n"
            f"encoded={_hex_with_spacing(self.encoded_packet)}"
        )


def _hex_with_spacing(data: bytes) -> str:
    return " ".join(f"{byte:02X}" for byte in data)


def _parse_hex(hex_string: str | None) -> bytes:
    if not hex_string:
        return b""
    compact = "".join(hex_string.split())
    if compact.startswith("0x") or compact.startswith("0X"):
        compact = compact[2:]
    if len(compact) % 2:
        raise ValueError("hex input must contain an even number of digits")
    try:
        return bytes.fromhex(compact)
    except ValueError as exc:
        raise ValueError(f"Invalid hex '{hex_string}': {exc}") from exc


def build_snapshot(topic: str, payload: bytes, priority: int = 0, source_id: int = 0) -> FrameDebugSnapshot:
    message = build_message(topic, payload, priority, source_id)
    encoded_packet = encode_message(message)
    header = parse_header(encoded_packet[1 : 1 + HEADER_SIZE])
    if header is None:
        raise ValueError(f"Could not parse header of {_hex_with_spacing(encoded_packet)}")
    body = slip_encode(message.topic.encode("utf-8") + TOPIC_SEPARATOR + message.payload)
    return FrameDebugSnapshot(
        topic=message.topic,
        payload=message.payload,
        priority=message.priority,
        source_id=message.source_id,
        header=header,
        body_length=len(body),
        encoded_packet=encoded_packet,
    )


def render_decoded(data: bytes) -> str:
    """Describe every frame found in *data*, or report that it was dropped."""
    decoder = FrameDecoder()
    # Captures often start mid-stream or lack the trailing delimiter.
    messages = decoder.feed_bytes(b"\x00" + data + b"\x00")
    if not messages:
        return "[FrameDebug] dropped"

    lines: list[str] = []
    for topic, payload in messages:
        lines.append("[FrameDebug] --- Decoded ---")
        lines.append(f"topic={topic}")
        lines.append(f"payload_len={len(payload)}")
        lines.append(f"payload={_hex_with_spacing(payload) or '<empty>'}")
    header = decoder.last_header
    if header is not None and len(messages) == 1:
        lines.append(f"priority={header.priority}")
        lines.append(f"originator=0x{header.originator:04X}")
    return "\n".join(lines)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="furcoms-frame-debug",
        description="Build or decode FurComs wire frames.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    encode = commands.add_parser("encode", help="Print the wire bytes for a message.")
    encode.add_argument("topic", help="Bus topic, e.g. lights/on")
    encode.add_argument("--payload-hex", help="Payload as hex string (spaces allowed).")
    encode.add_argument("--priority", type=int, default=0, help="Priority, -60..60 (default: 0).")
    encode.add_argument("--source-id", type=int, default=0, help="Originator chip id (default: 0).")
    encode.add_argument("--hexdump", action="store_true", help="Also print an offset/ASCII dump of the frame.")

    decode = commands.add_parser("decode", help="Decode captured wire bytes.")
    decode.add_argument("hex", help="Wire bytes as hex string (spaces allowed).")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "encode":
            payload = _parse_hex(args.payload_hex)
            snapshot = build_snapshot(args.topic, payload, args.priority, args.source_id)
            print(snapshot.render())
            if args.hexdump:
                print(format_hexdump(snapshot.encoded_packet, prefix="  "))
        else:
            print(render_decoded(_parse_hex(args.hex)))
    except (ValueError, FurComsValidationError) as exc:
        parser.error(str(exc))
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())

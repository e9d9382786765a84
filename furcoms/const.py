"""Protocol constants and runtime defaults for FurComs."""

from __future__ import annotations

from typing import Final

# --- Framing bytes ---
FRAME_END: Final[int] = 0x00
SLIP_ESCAPE: Final[int] = 0xDB
SLIP_ESC_END: Final[int] = 0xDC
SLIP_ESC_ESC: Final[int] = 0xDD
FRAME_DELIMITER: Final[bytes] = bytes([FRAME_END])
TOPIC_SEPARATOR: Final[bytes] = b"\x00"

# --- Header ---
# priority (1) + originator (2) + arbitration placeholder (5)
HEADER_SIZE: Final[int] = 8
ARBITRATION_PLACEHOLDER: Final[bytes] = bytes([0xFF, 0xFE, 0xFF, 0xFF, 0xFF])
MIN_FRAME_SIZE: Final[int] = HEADER_SIZE + 1

PRIORITY_MIN: Final[int] = -60
PRIORITY_MAX: Final[int] = 60
PRIORITY_OFFSET: Final[int] = 64

ORIGINATOR_BASE: Final[int] = 0x1 | 0x100
ORIGINATOR_ID_MASK: Final[int] = 0xEF
UINT16_MASK: Final[int] = 0xFFFF

# --- Message limits ---
MAX_MESSAGE_SIZE: Final[int] = 250
# Worst case: every byte of topic + NUL + payload stuffed to two bytes.
MAX_FRAME_BODY: Final[int] = 2 * (MAX_MESSAGE_SIZE + 1)
TOPIC_PATTERN: Final[str] = r"^[\w\s/]*$"

# --- Broker namespace ---
BROKER_ROOT: Final[str] = "FurComs"
BROKER_SEND: Final[str] = "Send"
BROKER_RECEIVED: Final[str] = "Received"

# --- Runtime defaults ---
DEFAULT_SERIAL_PORT: Final[str] = "/dev/ttyACM0"
DEFAULT_SERIAL_BAUD: Final[int] = 115200
DEFAULT_SERIAL_READ_TIMEOUT: Final[float] = 0.5
DEFAULT_READER_JOIN_TIMEOUT: Final[float] = 2.0
DEFAULT_BROKER_PREFIX: Final[str] = f"{BROKER_ROOT}/ttyACM0/"
DEFAULT_MQTT_HOST: Final[str] = "localhost"
DEFAULT_MQTT_PORT: Final[int] = 1883
DEFAULT_MQTT_KEEPALIVE: Final[int] = 60
DEFAULT_MQTT_CONNECT_ATTEMPTS: Final[int] = 5
DEFAULT_MQTT_CONNECT_MAX_BACKOFF: Final[float] = 30.0
DEFAULT_METRICS_ENABLED: Final[bool] = False
DEFAULT_METRICS_HOST: Final[str] = "127.0.0.1"
DEFAULT_METRICS_PORT: Final[int] = 9131
DEFAULT_DEBUG_LOGGING: Final[bool] = False
DEFAULT_CONFIG_PATH: Final[str] = "/etc/furcoms/bridge.toml"
CONFIG_SECTION: Final[str] = "furcoms"

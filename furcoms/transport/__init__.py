"""Transport implementations (serial line, MQTT broker) for FurComs."""

from .broker import BrokerClient, BrokerTransport
from .serial import SerialPort, SerialTransport, open_serial_port

__all__ = [
    "BrokerClient",
    "BrokerTransport",
    "SerialPort",
    "SerialTransport",
    "open_serial_port",
]

"""FurComs: topic/payload messaging over a shared serial bus, with an MQTT relay."""

__version__ = "1.0.0"

from .bridge import Bridge
from .bus import Bus, Subscription, SubscriptionHandle
from .errors import (
    ConfigurationError,
    FatalReaderError,
    FurComsError,
    FurComsValidationError,
    TransportError,
)
from .protocol.message import Message
from .transport.broker import BrokerClient, BrokerTransport
from .transport.serial import SerialTransport

__all__ = [
    "Bridge",
    "BrokerClient",
    "BrokerTransport",
    "Bus",
    "ConfigurationError",
    "FatalReaderError",
    "FurComsError",
    "FurComsValidationError",
    "Message",
    "SerialTransport",
    "Subscription",
    "SubscriptionHandle",
    "TransportError",
    "__version__",
]

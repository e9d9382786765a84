"""Exception hierarchy for FurComs.

Outbound failures are raised to the caller of ``send_message``. Inbound
problems (malformed frames, failing subscriber callbacks) never surface as
exceptions; they are logged and counted where they happen.
"""

from __future__ import annotations


class FurComsError(Exception):
    """Base class for all FurComs errors."""


class FurComsValidationError(FurComsError, ValueError):
    """Topic charset or message size rejected before reaching a transport."""


class TransportError(FurComsError):
    """Writing to the serial line or publishing to the broker failed."""


class FatalReaderError(TransportError):
    """The serial reader thread died; the transport is no longer usable."""


class ConfigurationError(FurComsError, ValueError):
    """Runtime configuration could not be loaded or validated."""


__all__ = [
    "ConfigurationError",
    "FatalReaderError",
    "FurComsError",
    "FurComsValidationError",
    "TransportError",
]

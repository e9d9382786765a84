"""Settings loader for the FurComs bridge daemon.

Configuration is read from a TOML file (section ``[furcoms]``). A missing
file is not an error: the daemon then runs with the built-in defaults,
which match a single device on ``/dev/ttyACM0`` and a local broker.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from marshmallow import ValidationError

from ..const import CONFIG_SECTION, DEFAULT_CONFIG_PATH
from ..errors import ConfigurationError
from .model import RuntimeConfig
from .schema import RuntimeConfigSchema

logger = logging.getLogger("furcoms.config")


def _load_raw_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        logger.info("No configuration at %s; using defaults.", path)
        return {}
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"Could not read {path}: {exc}") from exc

    section = document.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[{CONFIG_SECTION}] in {path} must be a table")
    return dict(section)


def load_runtime_config(path: str | Path | None = None) -> RuntimeConfig:
    """Load configuration from *path* (default ``/etc/furcoms/bridge.toml``)."""

    config_path = Path(path) if path is not None else Path(DEFAULT_CONFIG_PATH)
    raw = _load_raw_config(config_path)

    try:
        config: RuntimeConfig = RuntimeConfigSchema().load(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {exc.messages}") from exc
    return config


__all__ = ["RuntimeConfig", "load_runtime_config"]

"""MQTT helpers for FurComs.

This module exposes the paho-backed broker client consumed by the broker
transport, the bridge and the daemon.
"""

from __future__ import annotations

from .client import PahoBrokerClient

__all__ = ["PahoBrokerClient"]

"""Tests for the Prometheus counters."""

from __future__ import annotations

from unittest.mock import patch

from furcoms import metrics


def test_sample_defaults_to_zero() -> None:
    assert metrics.sample("furcoms_frames_sent_total", {"transport": "never-used"}) == 0.0
    assert metrics.sample("furcoms_no_such_metric") == 0.0


def test_counters_are_registered() -> None:
    metrics.BRIDGE_RELAYED.labels(direction="serial_to_broker").inc(0)
    names = {metric.name for metric in metrics.REGISTRY.collect()}

    assert {
        "furcoms_frames_sent",
        "furcoms_frames_received",
        "furcoms_frames_dropped",
        "furcoms_callback_errors",
        "furcoms_bridge_relayed",
    } <= names


def test_start_exporter_serves_registry() -> None:
    with patch("furcoms.metrics.start_http_server") as start_http_server:
        metrics.start_exporter("127.0.0.1", 9131)

    start_http_server.assert_called_once_with(9131, addr="127.0.0.1", registry=metrics.REGISTRY)

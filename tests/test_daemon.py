"""Tests for the bridge daemon wiring and entry point."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest
import serial

from conftest import FakeBrokerClient, FakeSerialPort, wait_for
from furcoms import daemon as daemon_mod
from furcoms.config.model import RuntimeConfig
from furcoms.daemon import BridgeDaemon
from furcoms.errors import ConfigurationError, TransportError
from furcoms.transport.serial import SerialTransport


def _daemon(config: RuntimeConfig, port: FakeSerialPort, client: FakeBrokerClient) -> BridgeDaemon:
    return BridgeDaemon(
        config,
        client_factory=lambda _config: client,
        serial_factory=lambda _config: SerialTransport(port),
    )


def test_start_wires_bridge(fake_port: FakeSerialPort, broker_client: FakeBrokerClient) -> None:
    daemon = _daemon(RuntimeConfig(mqtt_topic="home/bus/"), fake_port, broker_client)

    daemon.start()
    try:
        assert broker_client.connect_calls == 1
        assert daemon.bridge is not None
        assert daemon.bridge.prefix == "home/bus/"
        assert [pattern for pattern, _ in broker_client.subscriptions] == ["home/bus/Send/#"]
    finally:
        daemon.shutdown()

    assert fake_port.closed
    assert broker_client.disconnect_calls == 1


def test_run_returns_zero_when_stopped(fake_port: FakeSerialPort, broker_client: FakeBrokerClient) -> None:
    daemon = _daemon(RuntimeConfig(), fake_port, broker_client)
    daemon.start()
    daemon.stop()

    assert daemon.run() == 0
    assert fake_port.closed


def test_run_starts_lazily(fake_port: FakeSerialPort, broker_client: FakeBrokerClient) -> None:
    daemon = _daemon(RuntimeConfig(), fake_port, broker_client)
    daemon.stop()

    assert daemon.run() == 0
    assert broker_client.connect_calls == 1
    assert daemon.bridge is not None
    assert fake_port.closed


def test_run_returns_one_when_reader_dies(fake_port: FakeSerialPort, broker_client: FakeBrokerClient) -> None:
    daemon = _daemon(RuntimeConfig(), fake_port, broker_client)
    daemon.start()
    fake_port.fail(serial.SerialException("unplugged"))

    assert daemon.run() == 1
    assert broker_client.disconnect_calls == 1


def test_run_relays_until_stopped(fake_port: FakeSerialPort, broker_client: FakeBrokerClient) -> None:
    daemon = _daemon(RuntimeConfig(), fake_port, broker_client)
    daemon.start()
    result: list[int] = []
    runner = threading.Thread(target=lambda: result.append(daemon.run()))
    runner.start()

    broker_client.deliver("FurComs/ttyACM0/Send/lights/on", b"1")
    assert wait_for(lambda: len(fake_port.written) > 0)
    daemon.stop()
    runner.join(5.0)

    assert result == [0]


def test_metrics_exporter_started_when_enabled(fake_port: FakeSerialPort, broker_client: FakeBrokerClient) -> None:
    config = RuntimeConfig(metrics_enabled=True, metrics_host="0.0.0.0", metrics_port=9999)
    daemon = _daemon(config, fake_port, broker_client)

    with patch("furcoms.daemon.metrics.start_exporter") as start_exporter:
        daemon.start()
    daemon.shutdown()

    start_exporter.assert_called_once_with("0.0.0.0", 9999)


def test_build_client_from_config() -> None:
    config = RuntimeConfig(
        mqtt_host="broker.lan",
        mqtt_port=8883,
        mqtt_user="u",
        mqtt_pass="p",
        mqtt_tls=True,
        mqtt_cafile="/ca.pem",
        mqtt_connect_attempts=2,
    )

    with patch("furcoms.daemon.PahoBrokerClient") as client_cls:
        daemon_mod._build_client(config)

    client_cls.assert_called_once_with(
        "broker.lan",
        8883,
        username="u",
        password="p",
        tls=True,
        cafile="/ca.pem",
        connect_attempts=2,
    )


def test_main_exits_on_bad_config(capsys: pytest.CaptureFixture[str]) -> None:
    with patch.object(daemon_mod, "load_runtime_config", side_effect=ConfigurationError("bad port")):
        with pytest.raises(SystemExit) as excinfo:
            daemon_mod.main(["--config", "/nowhere.toml"])

    assert excinfo.value.code == 1
    assert "bad port" in capsys.readouterr().err


def test_main_runs_daemon(monkeypatch: pytest.MonkeyPatch) -> None:
    config = RuntimeConfig()
    daemon = MagicMock()
    daemon.run.return_value = 0
    monkeypatch.setattr(daemon_mod.signal, "signal", MagicMock())

    with (
        patch.object(daemon_mod, "load_runtime_config", return_value=config) as load,
        patch.object(daemon_mod, "configure_logging") as configure,
        patch.object(daemon_mod, "BridgeDaemon", return_value=daemon),
    ):
        with pytest.raises(SystemExit) as excinfo:
            daemon_mod.main(["--config", "/etc/furcoms/alt.toml", "--debug"])

    assert excinfo.value.code == 0
    load.assert_called_once_with("/etc/furcoms/alt.toml")
    configure.assert_called_once_with(config)
    assert config.debug_logging is True
    daemon.start.assert_called_once_with()
    assert daemon_mod.signal.signal.call_count == 2


def test_main_startup_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    daemon = MagicMock()
    daemon.start.side_effect = TransportError("Could not open serial port /dev/ttyACM0")
    monkeypatch.setattr(daemon_mod.signal, "signal", MagicMock())

    with (
        patch.object(daemon_mod, "load_runtime_config", return_value=RuntimeConfig()),
        patch.object(daemon_mod, "configure_logging"),
        patch.object(daemon_mod, "BridgeDaemon", return_value=daemon),
    ):
        with pytest.raises(SystemExit) as excinfo:
            daemon_mod.main([])

    assert excinfo.value.code == 1
    daemon.shutdown.assert_called_once_with()
    daemon.run.assert_not_called()

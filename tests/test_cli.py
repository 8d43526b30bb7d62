from __future__ import annotations

import pytest

from mqtt2influxdb.cli import EXIT_CONFIG, main


def test_missing_influx_settings_exit_before_connecting(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("INFLUXDB_API_TOKEN", "INFLUXDB_ORG", "INFLUXDB_BUCKET"):
        monkeypatch.delenv(key, raising=False)

    def no_runtime(*_args: object, **_kwargs: object) -> None:
        raise AssertionError("MQTT runtime must not be created")

    monkeypatch.setattr("mqtt2influxdb.bridge._default_runtime_factory", no_runtime)

    assert main([]) == EXIT_CONFIG


def test_malformed_env_exits_with_config_status(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEBUI_PORT", "not-a-port")

    assert main(["--log-level", "WARNING"]) == EXIT_CONFIG

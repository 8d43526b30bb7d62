from __future__ import annotations

from pathlib import Path

from mqtt2influxdb._redact import redact_for_log
from mqtt2influxdb.config import BridgeConfig


def test_redact_for_log_redacts_config_secrets() -> None:
    config = BridgeConfig(influxdb_token="secret-token", mqtt_user="bob", mqtt_password="pw", data_dir=Path("/data"))

    redacted = redact_for_log(config)

    assert redacted["influxdb_token"] == "<redacted>"
    assert redacted["mqtt_password"] == "<redacted>"
    assert redacted["mqtt_user"] == "bob"
    assert redacted["data_dir"] == "/data"


def test_redact_for_log_keeps_empty_secrets_visible() -> None:
    assert redact_for_log({"token": None})["token"] is None


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]

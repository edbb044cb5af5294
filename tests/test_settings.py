"""Tests for RuntimeConfig validation and option loading."""

from __future__ import annotations

import argparse
import os

import pytest

from plcbridge.config.settings import RuntimeConfig, load_runtime_config
from plcbridge.state.queues import OverflowPolicy


def test_defaults() -> None:
    config = load_runtime_config()
    assert config.host == "localhost"
    assert config.port == 1000
    assert config.broker_address.url == "mqtt://localhost:1883"
    assert config.topic == "sensor/flock"
    assert config.qos == 0
    assert not config.text_mode
    assert config.queue_limit == 0
    assert config.overflow_policy is OverflowPolicy.DROP_OLDEST
    assert not config.metrics_enabled
    assert not config.tls_enabled


def test_unset_options_keep_defaults() -> None:
    options = argparse.Namespace(host=None, port=2000, broker="10.0.0.9", text=True, quiet=None)
    config = load_runtime_config(options)
    assert config.host == "localhost"
    assert config.port == 2000
    assert config.mqtt_host == "10.0.0.9"
    assert config.mqtt_port == 1883
    assert config.text_mode


@pytest.mark.parametrize(
    "kwargs",
    [
        {"port": 0},
        {"port": 70000},
        {"qos": 3},
        {"topic": ""},
        {"topic": "sensor/#"},
        {"topic": "sensor/+/value"},
        {"host": "  "},
        {"broker": "ftp://broker"},
        {"queue_limit": -1},
        {"heartbeat_interval": 0},
        {"broker_reconnect_attempts": -2},
        {"overflow_policy": "drop-everything"},
        {"metrics_port": 65536},
    ],
)
def test_invalid_values_raise(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        RuntimeConfig(**kwargs)  # type: ignore[arg-type]


def test_credentials_from_broker_url() -> None:
    config = RuntimeConfig(broker="mqtt://user:pw@broker.local")
    assert config.mqtt_user == "user"
    assert config.mqtt_pass == "pw"


def test_explicit_credentials_win() -> None:
    config = RuntimeConfig(broker="mqtt://user:pw@broker.local", mqtt_user="other", mqtt_pass="x")
    assert config.mqtt_user == "other"
    assert config.mqtt_pass == "x"


def test_as_dict_masks_password() -> None:
    config = RuntimeConfig(mqtt_user="plc", mqtt_pass="hunter2")
    payload = config.as_dict()
    assert payload["mqtt_pass"] == "********"
    assert payload["broker"] == "mqtt://localhost:1883"
    assert payload["overflow_policy"] == "drop-oldest"


def test_log_file_is_made_absolute(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = RuntimeConfig(log_file="bridge.log")
    assert config.log_file is not None
    assert config.log_file == os.path.join(os.getcwd(), "bridge.log")


def test_overflow_policy_string_is_coerced() -> None:
    config = RuntimeConfig(queue_limit=5, overflow_policy="reject")  # type: ignore[arg-type]
    assert config.overflow_policy is OverflowPolicy.REJECT

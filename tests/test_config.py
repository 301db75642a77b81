"""Tests for remindme.alarms.config: environment parsing."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from remindme.alarms.config import AlarmConfig
from remindme.utils import parse_bool, parse_float, parse_int, sanitize_hostname_for_topic, strip_or_none

_BASE_ENV: dict[str, str] = {"REMINDME_HOSTNAME": "Kitchen.Tablet"}


def _from_env(overrides: dict[str, str] | None = None) -> AlarmConfig:
    env = dict(_BASE_ENV)
    if overrides:
        env.update(overrides)
    return AlarmConfig.from_env(env)


# ===================================================================
# Parsing helpers
# ===================================================================


class TestParsingHelpers:
    @pytest.mark.parametrize("raw", ["1", "true", " YES ", "on"])
    def test_parse_bool_truthy(self, raw) -> None:
        assert parse_bool(raw) is True

    def test_parse_bool_default(self) -> None:
        assert parse_bool(None, True) is True
        assert parse_bool("nope", True) is False

    def test_parse_int_fallback(self) -> None:
        assert parse_int("12", 3) == 12
        assert parse_int("twelve", 3) == 3

    def test_parse_float_fallback(self) -> None:
        assert parse_float("2.5", 1.0) == 2.5
        assert parse_float("", 1.0) == 1.0

    def test_strip_or_none(self) -> None:
        assert strip_or_none("  ") is None
        assert strip_or_none(" x ") == "x"

    def test_sanitize_hostname(self) -> None:
        assert sanitize_hostname_for_topic("Kitchen.Tablet/#1+") == "kitchen_tablet__1_"


# ===================================================================
# AlarmConfig.from_env
# ===================================================================


class TestAlarmConfig:
    def test_defaults(self) -> None:
        config = _from_env()
        assert config.hostname == "Kitchen.Tablet"
        assert config.storage_path == Path("~/.local/share/remindme/alarms.json").expanduser()
        assert config.exact_alarms_allowed is True
        assert config.safety_margin == timedelta(seconds=10)
        assert config.log_level == "INFO"
        assert config.mqtt.host is None
        assert config.mqtt.port == 1883
        assert config.mqtt.topic_base == "remindme/kitchen_tablet"

    def test_topics(self) -> None:
        config = _from_env({"REMINDME_TOPIC_BASE": "home/alarms/"})
        assert config.mqtt.topic_base == "home/alarms"
        assert config.command_topic == "home/alarms/alarms/command"
        assert config.response_topic == "home/alarms/alarms/response"

    def test_storage_path_override(self, tmp_path) -> None:
        config = _from_env({"REMINDME_STORAGE_PATH": str(tmp_path / "a.json")})
        assert config.storage_path == tmp_path / "a.json"

    def test_exact_alarms_can_be_disabled(self) -> None:
        assert _from_env({"REMINDME_EXACT_ALARMS": "false"}).exact_alarms_allowed is False

    def test_safety_margin(self) -> None:
        assert _from_env({"REMINDME_SAFETY_MARGIN_SECONDS": "30"}).safety_margin == timedelta(seconds=30)

    def test_negative_safety_margin_falls_back(self) -> None:
        assert _from_env({"REMINDME_SAFETY_MARGIN_SECONDS": "-5"}).safety_margin == timedelta(seconds=10)

    def test_log_level(self) -> None:
        assert _from_env({"REMINDME_LOG_LEVEL": "debug"}).log_level == "DEBUG"
        assert _from_env({"REMINDME_LOG_LEVEL": "chatty"}).log_level == "INFO"

    def test_mqtt_settings(self) -> None:
        config = _from_env(
            {
                "MQTT_HOST": "broker.lan",
                "MQTT_PORT": "8883",
                "MQTT_USER": "alarm",
                "MQTT_PASS": "pw",
                "MQTT_TLS_ENABLED": "true",
                "MQTT_CA_CERT": "/etc/ca.pem",
            }
        )
        assert config.mqtt.host == "broker.lan"
        assert config.mqtt.port == 8883
        assert config.mqtt.username == "alarm"
        assert config.mqtt.password == "pw"
        assert config.mqtt.tls_enabled is True
        assert config.mqtt.ca_cert == "/etc/ca.pem"
        assert config.mqtt.cert is None

    def test_bad_port_falls_back(self) -> None:
        assert _from_env({"MQTT_PORT": "eighteen"}).mqtt.port == 1883

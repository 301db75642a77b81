"""Configuration helpers for the RemindMe alarm daemon."""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from remindme.utils import parse_bool, parse_float, parse_int, sanitize_hostname_for_topic, strip_or_none

DEFAULT_STORAGE_PATH = Path("~/.local/share/remindme/alarms.json")
DEFAULT_SAFETY_MARGIN_SECONDS = 10.0
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class MqttConfig:
    host: str | None
    port: int
    username: str | None
    password: str | None
    tls_enabled: bool
    cert: str | None
    key: str | None
    ca_cert: str | None
    topic_base: str


@dataclass(frozen=True)
class AlarmConfig:
    hostname: str
    storage_path: Path
    exact_alarms_allowed: bool
    safety_margin: timedelta
    log_level: str
    mqtt: MqttConfig

    @property
    def command_topic(self) -> str:
        return f"{self.mqtt.topic_base}/alarms/command"

    @property
    def response_topic(self) -> str:
        return f"{self.mqtt.topic_base}/alarms/response"

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> AlarmConfig:
        source = env if env is not None else os.environ
        hostname = source.get("REMINDME_HOSTNAME") or socket.gethostname()

        storage_raw = strip_or_none(source.get("REMINDME_STORAGE_PATH"))
        storage_path = Path(storage_raw) if storage_raw else DEFAULT_STORAGE_PATH
        storage_path = storage_path.expanduser()

        margin_seconds = parse_float(source.get("REMINDME_SAFETY_MARGIN_SECONDS"), DEFAULT_SAFETY_MARGIN_SECONDS)
        if margin_seconds < 0:
            margin_seconds = DEFAULT_SAFETY_MARGIN_SECONDS

        log_level = (source.get("REMINDME_LOG_LEVEL") or "INFO").strip().upper()
        if log_level not in LOG_LEVELS:
            log_level = "INFO"

        topic_base = strip_or_none(source.get("REMINDME_TOPIC_BASE")) or (
            f"remindme/{sanitize_hostname_for_topic(hostname)}"
        )
        mqtt = MqttConfig(
            host=strip_or_none(source.get("MQTT_HOST")),
            port=parse_int(source.get("MQTT_PORT"), 1883),
            username=strip_or_none(source.get("MQTT_USER") or source.get("MQTT_USERNAME")),
            password=strip_or_none(source.get("MQTT_PASS") or source.get("MQTT_PASSWORD")),
            tls_enabled=parse_bool(source.get("MQTT_TLS_ENABLED"), False),
            cert=strip_or_none(source.get("MQTT_CERT")),
            key=strip_or_none(source.get("MQTT_KEY")),
            ca_cert=strip_or_none(source.get("MQTT_CA_CERT")),
            topic_base=topic_base.rstrip("/"),
        )

        return AlarmConfig(
            hostname=hostname,
            storage_path=storage_path,
            exact_alarms_allowed=parse_bool(source.get("REMINDME_EXACT_ALARMS"), True),
            safety_margin=timedelta(seconds=margin_seconds),
            log_level=log_level,
            mqtt=mqtt,
        )

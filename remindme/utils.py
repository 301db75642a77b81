"""
Shared utility functions for parsing configuration values

Provides common helpers for:
- String parsing: Environment variable conversion (parse_bool, parse_int, parse_float)
- Topic naming: Converting hostnames to MQTT-safe topic segments

These utilities are used by the alarm configuration layer.
"""

from __future__ import annotations


def sanitize_hostname_for_topic(hostname: str) -> str:
    """Convert hostnames to MQTT-safe topic segments."""
    return hostname.lower().replace(".", "_").replace("/", "_").replace("+", "_").replace("#", "_")


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Interpret env-style booleans."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_int(value: str | None, default: int) -> int:
    """Best-effort int parser with fallback."""
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_float(value: str | None, default: float) -> float:
    """Best-effort float parser with fallback."""
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None

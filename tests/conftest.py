"""Shared test fixtures and configuration for the RemindMe test suite.

This module provides reusable fixtures for common test scenarios including:
- A controllable clock
- An in-memory timer facility that records every schedule/cancel
- A recording presentation sink
- MQTT configuration and bridge mocks
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest
from remindme.alarms.config import MqttConfig
from remindme.alarms.errors import TimerSchedulingDenied
from remindme.alarms.models import AlarmDefinition
from remindme.alarms.store import MemoryAlarmStore
from remindme.alarms.timers import TimerHandle

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns a Mock with spec=logging.Logger to ensure only valid
    logger methods can be called.
    """
    return Mock(spec=logging.Logger)


# ============================================================================
# Local Time Zone
# ============================================================================


@pytest.fixture
def new_york_local_time(monkeypatch):
    """Run the test with the process-local zone set to America/New_York."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    if "EST" not in time.tzname:
        monkeypatch.undo()
        time.tzset()
        pytest.skip("system zoneinfo has no America/New_York")
    yield
    monkeypatch.undo()
    time.tzset()


# ============================================================================
# Scheduling Fakes
# ============================================================================


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeTimerFacility:
    """Timer facility that records calls instead of sleeping."""

    def __init__(self, exact_allowed: bool = True) -> None:
        self.exact_allowed = exact_allowed
        self.pending: dict[int, tuple[datetime, AlarmDefinition]] = {}
        self.scheduled: list[tuple[int, datetime]] = []
        self.cancelled: list[int] = []

    def schedule_one_shot(self, alarm_id: int, fire_at: datetime, payload: AlarmDefinition) -> TimerHandle:
        if not self.exact_allowed:
            raise TimerSchedulingDenied("exact alarms not permitted", alarm_id=alarm_id)
        self.pending[alarm_id] = (fire_at, payload)
        self.scheduled.append((alarm_id, fire_at))
        return TimerHandle(alarm_id=alarm_id, fire_at=fire_at)

    def cancel(self, alarm_id: int) -> bool:
        self.cancelled.append(alarm_id)
        return self.pending.pop(alarm_id, None) is not None

    def is_armed(self, alarm_id: int) -> bool:
        return alarm_id in self.pending

    def fire_at(self, alarm_id: int) -> datetime | None:
        entry = self.pending.get(alarm_id)
        return entry[0] if entry else None

    def can_schedule_exact(self) -> bool:
        return self.exact_allowed

    def grant_exact_alarms(self, allowed: bool = True) -> None:
        self.exact_allowed = allowed

    def elapse(self, alarm_id: int) -> AlarmDefinition:
        """Simulate the platform delivering the timer: it is no longer outstanding."""
        _fire_at, payload = self.pending.pop(alarm_id)
        return payload


class RecordingSink:
    def __init__(self) -> None:
        self.presented: list[AlarmDefinition] = []
        self.dismissed: list[int] = []

    async def present(self, definition: AlarmDefinition) -> None:
        self.presented.append(definition)

    async def dismiss(self, alarm_id: int) -> None:
        self.dismissed.append(alarm_id)


@pytest.fixture
def tuesday_morning() -> datetime:
    """Tuesday 2024-01-02 08:00:00 UTC."""
    return datetime(2024, 1, 2, 8, 0, 0, tzinfo=UTC)


@pytest.fixture
def clock(tuesday_morning):
    return FakeClock(tuesday_morning)


@pytest.fixture
def timers():
    return FakeTimerFacility()


@pytest.fixture
def memory_store():
    return MemoryAlarmStore()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_alarm():
    """Factory fixture for alarm definitions with custom overrides.

    Usage:
        alarm = make_alarm(alarm_id=7, is_recurring=True, selected_weekdays={0, 2, 4})
    """

    def _create(**overrides) -> AlarmDefinition:
        defaults = {
            "alarm_id": 5,
            "title": "Take medicine",
            "body": "Blue pill",
            "is_recurring": False,
            "selected_weekdays": frozenset(),
            "hour": 9,
            "minute": 0,
            "requires_manual_confirmation": False,
        }
        defaults.update(overrides)
        return AlarmDefinition(**defaults)

    return _create


# ============================================================================
# MQTT Fixtures
# ============================================================================


@pytest.fixture
def mqtt_config():
    """Create a basic MQTT configuration for testing."""
    return MqttConfig(
        host="localhost",
        port=1883,
        topic_base="remindme/test",
        username=None,
        password=None,
        tls_enabled=False,
        ca_cert=None,
        cert=None,
        key=None,
    )


@pytest.fixture
def mock_alarm_mqtt():
    """Mock of the AlarmMqtt wrapper that records publishes."""
    bridge = Mock()
    bridge.enabled = True
    bridge.publish = Mock()
    return bridge

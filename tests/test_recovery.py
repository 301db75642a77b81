"""Tests for remindme.alarms.recovery: re-arming after a restart."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import Mock

import pytest
from conftest import FakeTimerFacility
from remindme.alarms.controller import AlarmController
from remindme.alarms.errors import StoreUnavailable, TimerSchedulingDenied
from remindme.alarms.recovery import recover_alarms
from remindme.alarms.store import JsonAlarmStore

TUESDAY_9AM = datetime(2024, 1, 2, 9, 0, tzinfo=UTC)


class FlakyTimerFacility(FakeTimerFacility):
    """Blows up for one alarm id, works for the rest."""

    def __init__(self, broken_id: int) -> None:
        super().__init__()
        self.broken_id = broken_id

    def schedule_one_shot(self, alarm_id, fire_at, payload):
        if alarm_id == self.broken_id:
            raise RuntimeError("timer service crashed")
        return super().schedule_one_shot(alarm_id, fire_at, payload)


@pytest.fixture
def controller(memory_store, timers, sink, clock):
    return AlarmController(memory_store, timers, sink, clock=clock)


@pytest.mark.anyio
class TestRecoverAlarms:
    async def test_rearms_recurring_and_skips_one_shot(self, controller, memory_store, timers, make_alarm) -> None:
        memory_store.put(make_alarm(alarm_id=1, is_recurring=True, selected_weekdays={1, 3}))
        memory_store.put(make_alarm(alarm_id=2))

        report = await recover_alarms(controller)

        assert report.ok
        assert report.rearmed == {1: TUESDAY_9AM}
        assert report.skipped == [2]
        assert list(timers.pending) == [1]
        assert memory_store.get(2) is not None

    async def test_idempotent(self, controller, memory_store, timers, make_alarm) -> None:
        memory_store.put(make_alarm(alarm_id=1, is_recurring=True, selected_weekdays={1, 3}))

        first = await recover_alarms(controller)
        second = await recover_alarms(controller)

        assert first.rearmed == second.rearmed
        assert list(timers.pending) == [1]

    async def test_explicit_now(self, controller, memory_store, make_alarm) -> None:
        memory_store.put(make_alarm(alarm_id=1, is_recurring=True, selected_weekdays={1, 3}))
        report = await recover_alarms(controller, now=TUESDAY_9AM)
        assert report.rearmed[1] == datetime(2024, 1, 4, 9, 0, tzinfo=UTC)

    async def test_corrupted_entry_does_not_block_others(self, tmp_path, timers, sink, clock, make_alarm) -> None:
        path = tmp_path / "alarms.json"
        good = make_alarm(alarm_id=1, is_recurring=True, selected_weekdays={1}).to_json_dict()
        path.write_text(json.dumps({"alarms": [{"id": 2, "is_recurring": True, "selected_weekdays": [9]}, good]}))
        controller = AlarmController(JsonAlarmStore(path), timers, sink, clock=clock)

        report = await recover_alarms(controller)

        assert list(report.rearmed) == [1]

    async def test_one_failure_does_not_abort_scan(self, memory_store, sink, clock, make_alarm) -> None:
        timers = FlakyTimerFacility(broken_id=1)
        controller = AlarmController(memory_store, timers, sink, clock=clock)
        for alarm_id in (1, 2):
            memory_store.put(make_alarm(alarm_id=alarm_id, is_recurring=True, selected_weekdays={1}))

        report = await recover_alarms(controller)

        assert not report.ok
        assert isinstance(report.failed[1], RuntimeError)
        assert list(report.rearmed) == [2]

    async def test_denied_timers_reported(self, controller, memory_store, timers, make_alarm) -> None:
        timers.exact_allowed = False
        memory_store.put(make_alarm(alarm_id=1, is_recurring=True, selected_weekdays={1}))

        report = await recover_alarms(controller)

        assert isinstance(report.failed[1], TimerSchedulingDenied)
        assert report.rearmed == {}

    async def test_store_unavailable(self, timers, sink, clock) -> None:
        store = Mock()
        store.list_all.side_effect = StoreUnavailable("mount missing")
        controller = AlarmController(store, timers, sink, clock=clock)

        report = await recover_alarms(controller)

        assert report.ok is False
        assert isinstance(report.store_error, StoreUnavailable)
        assert timers.scheduled == []

    async def test_report_to_dict(self, controller, memory_store, make_alarm) -> None:
        memory_store.put(make_alarm(alarm_id=1, is_recurring=True, selected_weekdays={1}))
        memory_store.put(make_alarm(alarm_id=2))

        data = (await recover_alarms(controller)).to_dict()

        assert data == {
            "rearmed": {"1": TUESDAY_9AM.isoformat()},
            "skipped": [2],
            "failed": {},
            "store_error": None,
        }

    async def test_fired_one_shot_stays_retired(self, controller, timers, clock, make_alarm) -> None:
        await controller.arm(make_alarm(), TUESDAY_9AM)
        clock.now = TUESDAY_9AM
        await controller.on_fire(5, timers.elapse(5))

        report = await recover_alarms(controller)

        assert report.rearmed == {}
        assert report.skipped == []
        assert controller.state(5) == "unarmed"

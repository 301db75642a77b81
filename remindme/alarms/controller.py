"""Alarm scheduling controller.

Owns the lifecycle of each alarm definition: arming it with the timer
facility, handling the fired event, re-arming recurring alarms for their next
occurrence and retiring one-shot alarms.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Literal

from remindme.datetime_utils import local_now

from .errors import (
    ArmResult,
    CancelResult,
    FireResult,
    InvalidDefinition,
    NoFutureOccurrence,
    StoreUnavailable,
    TimerSchedulingDenied,
)
from .models import AlarmDefinition
from .recurrence import SAFETY_MARGIN, compute_next_occurrence
from .sink import AlarmSink, LoggingAlarmSink
from .store import AlarmStore
from .timers import TimerFacility

AlarmState = Literal["unarmed", "armed"]

LOGGER = logging.getLogger("remindme.alarms.controller")


class AlarmController:
    """Arm, fire, reschedule and cancel alarms; at most one timer per id."""

    def __init__(
        self,
        store: AlarmStore,
        timers: TimerFacility,
        sink: AlarmSink | None = None,
        *,
        clock: Callable[[], datetime] = local_now,
        safety_margin: timedelta = SAFETY_MARGIN,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._timers = timers
        self._sink = sink or LoggingAlarmSink()
        self._clock = clock
        self._safety_margin = safety_margin
        self._logger = logger or LOGGER
        # An entry lives only while some operation on that id holds or awaits it.
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def store(self) -> AlarmStore:
        return self._store

    @property
    def timers(self) -> TimerFacility:
        return self._timers

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    def _lock_for(self, alarm_id: int) -> asyncio.Lock:
        lock = self._locks.get(alarm_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[alarm_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def arm(self, definition: AlarmDefinition, fire_at: datetime) -> ArmResult:
        """Persist ``definition`` and schedule its single timer at ``fire_at``."""
        async with self._lock_for(definition.alarm_id):
            return self._arm_locked(definition, fire_at)

    async def arm_next(self, definition: AlarmDefinition, now: datetime | None = None) -> ArmResult:
        """Arm a recurring definition for its next occurrence after ``now``."""
        async with self._lock_for(definition.alarm_id):
            return self._arm_next_locked(definition, now or self._clock())

    async def on_fire(self, alarm_id: int, payload: AlarmDefinition | None = None) -> FireResult:
        """Entry point for the fire dispatcher when an alarm's timer elapses."""
        async with self._lock_for(alarm_id):
            fired_at = self._clock()
            definition, known = self._resolve_fired(alarm_id, payload)
            if definition is None:
                self._logger.warning("[alarms] Alarm %s fired but no definition is available", alarm_id)
                return FireResult(
                    alarm_id,
                    error=InvalidDefinition("Fired alarm has no definition", alarm_id=alarm_id),
                )
            await self._present(definition)
            if not known:
                # Cancelled while the fire was in flight; present it but do not revive it.
                self._logger.info("[alarms] Alarm %s fired after removal; not rescheduling", alarm_id)
                return FireResult(alarm_id, retired=True)
            if definition.repeats:
                result = self._arm_next_locked(definition, fired_at)
                if not result.ok:
                    return FireResult(alarm_id, error=result.error)
                return FireResult(alarm_id, rearmed_at=result.fire_at)
            return self._retire_locked(alarm_id)

    async def cancel(self, alarm_id: int) -> CancelResult:
        """Cancel the timer, delete the definition and stop it ringing, recurring or not."""
        async with self._lock_for(alarm_id):
            had_timer = self._timers.cancel(alarm_id)
            try:
                existed = self._store.delete(alarm_id)
            except StoreUnavailable as exc:
                self._logger.error("[alarms] Failed to delete alarm %s: %s", alarm_id, exc)
                return CancelResult(alarm_id, existed=had_timer, error=exc)
            self._logger.info("[alarms] Alarm %s cancelled", alarm_id)
            await self.dismiss(alarm_id)
            return CancelResult(alarm_id, existed=existed or had_timer)

    async def dismiss(self, alarm_id: int) -> None:
        """Stop presenting a ringing alarm. Scheduling is unaffected."""
        try:
            await self._sink.dismiss(alarm_id)
        except Exception as exc:
            self._logger.warning("[alarms] Failed to dismiss alarm %s: %s", alarm_id, exc)

    def state(self, alarm_id: int) -> AlarmState:
        return "armed" if self._timers.is_armed(alarm_id) else "unarmed"

    def next_fire(self, alarm_id: int) -> datetime | None:
        return self._timers.fire_at(alarm_id)

    def list_alarms(self) -> list[dict[str, Any]]:
        """Public snapshot of stored alarms with their armed state and next fire time."""
        alarms = []
        for definition in self._store.list_all():
            data = definition.to_public_dict(status=self.state(definition.alarm_id))
            fire_at = self.next_fire(definition.alarm_id)
            data["next_fire"] = fire_at.isoformat() if fire_at else None
            alarms.append(data)
        alarms.sort(key=lambda item: item.get("next_fire") or "")
        return alarms

    # ------------------------------------------------------------------
    # Internals (per-id lock held)
    # ------------------------------------------------------------------

    def _arm_locked(self, definition: AlarmDefinition, fire_at: datetime) -> ArmResult:
        alarm_id = definition.alarm_id
        if definition.is_recurring and not definition.selected_weekdays:
            self._logger.warning("[alarms] Alarm %s is recurring with no weekdays; arming as one-shot", alarm_id)
        try:
            self._store.put(definition)
        except StoreUnavailable as exc:
            self._logger.error("[alarms] Failed to persist alarm %s: %s", alarm_id, exc)
            return ArmResult(alarm_id, error=exc)
        self._timers.cancel(alarm_id)
        try:
            handle = self._timers.schedule_one_shot(alarm_id, fire_at, definition)
        except TimerSchedulingDenied as exc:
            self._logger.warning("[alarms] Timer scheduling denied for alarm %s: %s", alarm_id, exc)
            return ArmResult(alarm_id, error=exc)
        self._logger.info("[alarms] Alarm %s armed for %s", alarm_id, handle.fire_at.isoformat())
        return ArmResult(alarm_id, fire_at=handle.fire_at)

    def _arm_next_locked(self, definition: AlarmDefinition, now: datetime) -> ArmResult:
        alarm_id = definition.alarm_id
        if not definition.repeats:
            return ArmResult(
                alarm_id,
                error=InvalidDefinition("Alarm does not recur on any weekday", alarm_id=alarm_id),
            )
        next_fire = compute_next_occurrence(
            definition.selected_weekdays,
            definition.hour,
            definition.minute,
            now,
            safety_margin=self._safety_margin,
        )
        if next_fire is None:
            self._logger.error(
                "[alarms] No future occurrence for alarm %s (days=%s); leaving it unarmed",
                alarm_id,
                sorted(definition.selected_weekdays),
            )
            return ArmResult(alarm_id, error=NoFutureOccurrence("No future occurrence found", alarm_id=alarm_id))
        return self._arm_locked(definition, next_fire)

    def _retire_locked(self, alarm_id: int) -> FireResult:
        self._timers.cancel(alarm_id)
        try:
            self._store.delete(alarm_id)
        except StoreUnavailable as exc:
            self._logger.error("[alarms] Failed to retire one-shot alarm %s: %s", alarm_id, exc)
            return FireResult(alarm_id, error=exc)
        self._logger.info("[alarms] One-shot alarm %s retired", alarm_id)
        return FireResult(alarm_id, retired=True)

    def _resolve_fired(
        self, alarm_id: int, payload: AlarmDefinition | None
    ) -> tuple[AlarmDefinition | None, bool]:
        """Return the definition to act on and whether the store still holds it."""
        try:
            stored = self._store.get(alarm_id)
        except (StoreUnavailable, InvalidDefinition) as exc:
            self._logger.warning("[alarms] Could not load alarm %s, using fired payload: %s", alarm_id, exc)
            return payload, payload is not None
        if stored is not None:
            return stored, True
        return payload, False

    async def _present(self, definition: AlarmDefinition) -> None:
        try:
            await self._sink.present(definition)
        except Exception as exc:
            self._logger.warning("[alarms] Failed to present alarm %s: %s", definition.alarm_id, exc)

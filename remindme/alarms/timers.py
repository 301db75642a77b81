"""One-shot wake-up timers, one in flight per alarm id."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from remindme.datetime_utils import local_now

from .errors import TimerSchedulingDenied
from .models import AlarmDefinition

FireDispatcher = Callable[[int, AlarmDefinition], Awaitable[Any]]
Clock = Callable[[], datetime]

LOGGER = logging.getLogger("remindme.alarms.timers")


@dataclass(frozen=True)
class TimerHandle:
    alarm_id: int
    fire_at: datetime


class TimerFacility(Protocol):
    def schedule_one_shot(self, alarm_id: int, fire_at: datetime, payload: AlarmDefinition) -> TimerHandle: ...

    def cancel(self, alarm_id: int) -> bool: ...

    def is_armed(self, alarm_id: int) -> bool: ...

    def fire_at(self, alarm_id: int) -> datetime | None: ...

    def can_schedule_exact(self) -> bool: ...

    def grant_exact_alarms(self, allowed: bool = True) -> None: ...


@dataclass
class _PendingTimer:
    handle: TimerHandle
    payload: AlarmDefinition
    task: asyncio.Task


class AsyncioTimerFacility:
    """Timer facility backed by asyncio tasks on the running loop.

    Each timer sleeps until its fire instant and then awaits the dispatcher
    with the alarm id and the payload it was scheduled with.
    """

    def __init__(
        self,
        dispatcher: FireDispatcher | None = None,
        *,
        clock: Clock = local_now,
        exact_alarms_allowed: bool = True,
    ) -> None:
        self._dispatcher = dispatcher
        self._clock = clock
        self._exact_allowed = exact_alarms_allowed
        self._pending: dict[int, _PendingTimer] = {}

    def set_dispatcher(self, dispatcher: FireDispatcher) -> None:
        self._dispatcher = dispatcher

    def can_schedule_exact(self) -> bool:
        return self._exact_allowed

    def grant_exact_alarms(self, allowed: bool = True) -> None:
        self._exact_allowed = allowed

    def schedule_one_shot(self, alarm_id: int, fire_at: datetime, payload: AlarmDefinition) -> TimerHandle:
        if not self._exact_allowed:
            raise TimerSchedulingDenied("Exact alarm scheduling is not permitted", alarm_id=alarm_id)
        if self._dispatcher is None:
            raise TimerSchedulingDenied("No fire dispatcher registered", alarm_id=alarm_id)
        self.cancel(alarm_id)
        handle = TimerHandle(alarm_id=alarm_id, fire_at=fire_at)
        task = asyncio.create_task(self._wait_and_fire(handle, payload))
        self._pending[alarm_id] = _PendingTimer(handle=handle, payload=payload, task=task)
        LOGGER.debug("[timers] Armed alarm %s for %s", alarm_id, fire_at.isoformat())
        return handle

    def cancel(self, alarm_id: int) -> bool:
        pending = self._pending.pop(alarm_id, None)
        if pending is None:
            return False
        pending.task.cancel()
        LOGGER.debug("[timers] Cancelled timer for alarm %s", alarm_id)
        return True

    def cancel_all(self) -> None:
        for alarm_id in list(self._pending):
            self.cancel(alarm_id)

    def is_armed(self, alarm_id: int) -> bool:
        return alarm_id in self._pending

    def fire_at(self, alarm_id: int) -> datetime | None:
        pending = self._pending.get(alarm_id)
        return pending.handle.fire_at if pending else None

    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    async def _wait_and_fire(self, handle: TimerHandle, payload: AlarmDefinition) -> None:
        delay = (handle.fire_at - self._clock()).total_seconds()
        if delay > 0:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                return
        pending = self._pending.get(handle.alarm_id)
        if pending is None or pending.handle is not handle:
            return
        # The handler may re-arm this id; it must not cancel itself doing so.
        del self._pending[handle.alarm_id]
        dispatcher = self._dispatcher
        if dispatcher is None:
            LOGGER.error("[timers] Alarm %s elapsed with no dispatcher registered", handle.alarm_id)
            return
        try:
            await dispatcher(handle.alarm_id, payload)
        except Exception:
            LOGGER.exception("[timers] Fire handler failed for alarm %s", handle.alarm_id)

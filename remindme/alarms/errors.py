"""Alarm scheduling errors and the typed results returned by the controller."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


class AlarmError(RuntimeError):
    """Base class for alarm scheduling failures."""

    def __init__(self, message: str, *, alarm_id: int | None = None) -> None:
        super().__init__(message)
        self.alarm_id = alarm_id


class InvalidDefinition(AlarmError):
    """An alarm definition is malformed or could not be decoded."""


class NoFutureOccurrence(AlarmError):
    """No selected weekday produced a future trigger instant."""


class TimerSchedulingDenied(AlarmError):
    """The timer facility refused to schedule (e.g. exact alarms not permitted)."""


class StoreUnavailable(AlarmError):
    """The alarm store could not be read or written."""


@dataclass(frozen=True)
class ArmResult:
    alarm_id: int
    fire_at: datetime | None = None
    error: AlarmError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class FireResult:
    alarm_id: int
    rearmed_at: datetime | None = None
    retired: bool = False
    error: AlarmError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CancelResult:
    alarm_id: int
    existed: bool = False
    error: AlarmError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

"""Alarm definitions: the persisted unit of scheduling intent."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidDefinition
from .recurrence import day_indexes_to_names

DEFAULT_TITLE = "Reminder"
DEFAULT_BODY = "Your reminder is here!"
DEFAULT_PRIORITY = "Medium"


def _normalize_weekdays(values: Iterable[Any], alarm_id: int | None) -> frozenset[int]:
    days: set[int] = set()
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidDefinition(f"weekday must be an integer, got {value!r}", alarm_id=alarm_id)
        if value < 0 or value > 6:
            raise InvalidDefinition(f"weekday must be 0..6 (Mon..Sun), got {value}", alarm_id=alarm_id)
        days.add(value)
    return frozenset(days)


@dataclass(frozen=True)
class AlarmDefinition:
    alarm_id: int
    title: str = DEFAULT_TITLE
    body: str = DEFAULT_BODY
    is_recurring: bool = False
    selected_weekdays: frozenset[int] = field(default_factory=frozenset)
    hour: int = 0
    minute: int = 0
    requires_manual_confirmation: bool = False
    sound: str | None = None
    priority: str = DEFAULT_PRIORITY

    def __post_init__(self) -> None:
        if isinstance(self.alarm_id, bool) or not isinstance(self.alarm_id, int):
            raise InvalidDefinition(f"alarm id must be an integer, got {self.alarm_id!r}")
        if isinstance(self.hour, bool) or not isinstance(self.hour, int) or not 0 <= self.hour <= 23:
            raise InvalidDefinition(f"hour must be 0..23, got {self.hour!r}", alarm_id=self.alarm_id)
        if isinstance(self.minute, bool) or not isinstance(self.minute, int) or not 0 <= self.minute <= 59:
            raise InvalidDefinition(f"minute must be 0..59, got {self.minute!r}", alarm_id=self.alarm_id)
        object.__setattr__(self, "selected_weekdays", _normalize_weekdays(self.selected_weekdays, self.alarm_id))

    @property
    def repeats(self) -> bool:
        """True when the alarm is rescheduled after firing.

        A recurring alarm with no weekdays behaves as a one-shot.
        """
        return self.is_recurring and bool(self.selected_weekdays)

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "id": self.alarm_id,
            "title": self.title,
            "body": self.body,
            "is_recurring": self.is_recurring,
            "selected_weekdays": sorted(self.selected_weekdays),
            "hour": self.hour,
            "minute": self.minute,
            "requires_manual_confirmation": self.requires_manual_confirmation,
            "sound": self.sound,
            "priority": self.priority,
        }

    def to_public_dict(self, status: str = "scheduled") -> dict[str, Any]:
        data = self.to_json_dict()
        data["days"] = day_indexes_to_names(sorted(self.selected_weekdays))
        data["time"] = f"{self.hour:02d}:{self.minute:02d}"
        data["repeats"] = self.repeats
        data["status"] = status
        return data

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> AlarmDefinition:
        if not isinstance(payload, dict):
            raise InvalidDefinition(f"alarm payload must be an object, got {type(payload).__name__}")
        raw_id = payload.get("id", payload.get("alarm_id"))
        if raw_id is None:
            raise InvalidDefinition("alarm payload has no id")
        weekdays = payload.get("selected_weekdays") or []
        if not isinstance(weekdays, (list, tuple, set, frozenset)):
            raise InvalidDefinition("selected_weekdays must be a list", alarm_id=raw_id)
        return cls(
            alarm_id=raw_id,
            title=str(payload.get("title") or DEFAULT_TITLE),
            body=str(payload.get("body") or DEFAULT_BODY),
            is_recurring=bool(payload.get("is_recurring", False)),
            selected_weekdays=weekdays,
            hour=payload.get("hour", 0),
            minute=payload.get("minute", 0),
            requires_manual_confirmation=bool(payload.get("requires_manual_confirmation", False)),
            sound=payload.get("sound") or None,
            priority=str(payload.get("priority") or DEFAULT_PRIORITY),
        )

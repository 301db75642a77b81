"""Alarm command processor for MQTT commands.

The application layer (UI, settings screens) talks to the scheduling core by
publishing JSON commands to ``<topic_base>/alarms/command``. Results are
published to ``<topic_base>/alarms/response``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from remindme.datetime_utils import deserialize_dt, parse_time_string

from .errors import AlarmError, InvalidDefinition
from .models import DEFAULT_BODY, DEFAULT_PRIORITY, DEFAULT_TITLE, AlarmDefinition
from .recovery import recover_alarms
from .recurrence import calendar_weekday_to_index, compute_next_occurrence, parse_day_tokens

if TYPE_CHECKING:
    from .controller import AlarmController
    from .mqtt import AlarmMqtt

LOGGER = logging.getLogger(__name__)

ALL_DAYS = frozenset(range(7))


class AlarmCommandProcessor:
    """Processes MQTT alarm commands and routes them to the AlarmController.

    Supported command actions:
    - arm, schedule: create or replace an alarm and arm its timer
    - cancel, delete: cancel an alarm's timer and remove it
    - dismiss: stop presenting a ringing alarm
    - list: publish stored alarms with their state
    - can_schedule_exact: report whether exact alarms are permitted
    - request_exact_permission: permit exact alarms and re-arm recurring alarms
    """

    def __init__(
        self,
        controller: AlarmController,
        mqtt: AlarmMqtt,
        base_topic: str,
        logger: logging.Logger | None = None,
    ) -> None:
        self.controller = controller
        self.mqtt = mqtt
        self.logger = logger or LOGGER
        self._command_topic = f"{base_topic}/alarms/command"
        self._response_topic = f"{base_topic}/alarms/response"
        self._loop: asyncio.AbstractEventLoop | None = None

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop commands are processed on."""
        self._loop = loop

    @property
    def command_topic(self) -> str:
        return self._command_topic

    @property
    def response_topic(self) -> str:
        return self._response_topic

    # ========================================================================
    # MQTT Message Handler
    # ========================================================================

    def handle_command_message(self, payload: str) -> None:
        """MQTT callback: parse JSON and hand the command to the event loop thread."""
        if not self._loop:
            return
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            self.logger.debug("[alarm_commands] Ignoring malformed command: %s", payload)
            return
        asyncio.run_coroutine_threadsafe(self._process_command(data), self._loop)

    # ========================================================================
    # Command Processing
    # ========================================================================

    async def _process_command(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            return
        action = str(payload.get("action") or "").lower()
        if not action:
            return
        try:
            response = await self._dispatch_action(action, payload)
        except (AlarmError, ValueError) as exc:
            self.logger.warning("[alarm_commands] Command %s rejected: %s", action, exc)
            response = {"ok": False, "error": type(exc).__name__, "message": str(exc)}
        if response is None:
            self.logger.debug("[alarm_commands] Unknown action: %s", action)
            return
        response.setdefault("action", action)
        if "request_id" in payload:
            response["request_id"] = payload["request_id"]
        self.mqtt.publish(self._response_topic, json.dumps(response))

    async def _dispatch_action(self, action: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        if action in {"arm", "schedule"}:
            return await self._arm(payload)
        if action in {"cancel", "delete"}:
            return await self._cancel(payload)
        if action == "dismiss":
            alarm_id = self._coerce_alarm_id(payload)
            await self.controller.dismiss(alarm_id)
            return {"ok": True, "id": alarm_id}
        if action == "list":
            return {"ok": True, "alarms": self.controller.list_alarms()}
        if action == "can_schedule_exact":
            return {"ok": True, "allowed": self.controller.timers.can_schedule_exact()}
        if action == "request_exact_permission":
            return await self._grant_exact()
        return None

    async def _arm(self, payload: dict[str, Any]) -> dict[str, Any]:
        definition = self._definition_from_payload(payload)
        at_raw = payload.get("at")
        fire_at = deserialize_dt(str(at_raw)) if at_raw else None
        if at_raw and fire_at is None:
            raise ValueError(f"invalid 'at' instant: {at_raw}")
        if fire_at is not None:
            result = await self.controller.arm(definition, fire_at)
        elif definition.repeats:
            result = await self.controller.arm_next(definition)
        else:
            # One-shot with only a time of day: the next time that clock time comes round.
            fire_at = compute_next_occurrence(ALL_DAYS, definition.hour, definition.minute, self._now())
            if fire_at is None:
                raise ValueError("could not resolve a fire time for one-shot alarm")
            result = await self.controller.arm(definition, fire_at)
        return self._result_payload(result.alarm_id, result.error, fire_at=result.fire_at)

    async def _cancel(self, payload: dict[str, Any]) -> dict[str, Any]:
        alarm_id = self._coerce_alarm_id(payload)
        result = await self.controller.cancel(alarm_id)
        response = self._result_payload(alarm_id, result.error)
        response["existed"] = result.existed
        return response

    async def _grant_exact(self) -> dict[str, Any]:
        self.controller.timers.grant_exact_alarms(True)
        report = await recover_alarms(self.controller)
        return {"ok": True, "allowed": True, "recovery": report.to_dict()}

    def _now(self) -> datetime:
        return self.controller.clock()

    # ========================================================================
    # Payload Parsing Utilities
    # ========================================================================

    @staticmethod
    def _result_payload(
        alarm_id: int, error: AlarmError | None, *, fire_at: datetime | None = None
    ) -> dict[str, Any]:
        response: dict[str, Any] = {"ok": error is None, "id": alarm_id}
        if fire_at is not None:
            response["fire_at"] = fire_at.isoformat()
        if error is not None:
            response["error"] = type(error).__name__
            response["message"] = str(error)
        return response

    @staticmethod
    def _coerce_alarm_id(payload: dict[str, Any]) -> int:
        raw = payload.get("id", payload.get("alarm_id"))
        if raw is None or isinstance(raw, bool):
            raise ValueError("alarm id is required")
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"alarm id must be an integer, got {raw!r}") from exc

    @staticmethod
    def _coerce_day_list(value: Any) -> list[int] | None:
        """Convert a day specification (names, indexes or a CSV string) to Monday=0 indexes."""
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            if all(isinstance(item, int) and not isinstance(item, bool) for item in value):
                invalid = [item for item in value if not 0 <= item <= 6]
                if invalid:
                    raise InvalidDefinition(f"days must be 0..6 (Mon..Sun), got {invalid}")
                return sorted(set(value)) or None
            tokens = ",".join(str(item) for item in value)
            return parse_day_tokens(tokens)
        return parse_day_tokens(str(value))

    @staticmethod
    def _coerce_calendar_days(value: Any) -> list[int] | None:
        """Convert Sunday=1 .. Saturday=7 calendar weekdays to Monday=0 indexes."""
        if value is None:
            return None
        if not isinstance(value, (list, tuple)):
            raise InvalidDefinition("calendar_days must be a list")
        return sorted({calendar_weekday_to_index(item) for item in value})

    @staticmethod
    def _coerce_time(payload: dict[str, Any]) -> tuple[int, int]:
        time_text = payload.get("time") or payload.get("time_of_day")
        if time_text:
            return parse_time_string(str(time_text))
        if "hour" in payload:
            try:
                return int(payload["hour"]), int(payload.get("minute", 0))
            except (TypeError, ValueError) as exc:
                raise ValueError("hour and minute must be integers") from exc
        at = deserialize_dt(str(payload.get("at"))) if payload.get("at") else None
        if at is not None:
            return at.hour, at.minute
        raise ValueError("alarm time is required")

    @classmethod
    def _definition_from_payload(cls, payload: dict[str, Any]) -> AlarmDefinition:
        alarm_id = cls._coerce_alarm_id(payload)
        hour, minute = cls._coerce_time(payload)
        days = cls._coerce_calendar_days(payload.get("calendar_days"))
        if days is None:
            days = cls._coerce_day_list(payload.get("days"))
        recurring_flag = payload.get("recurring", payload.get("is_recurring"))
        is_recurring = bool(recurring_flag) if recurring_flag is not None else bool(days)
        confirm_flag = payload.get("captcha", payload.get("requires_manual_confirmation", False))
        return AlarmDefinition(
            alarm_id=alarm_id,
            title=str(payload.get("title") or DEFAULT_TITLE),
            body=str(payload.get("body") or DEFAULT_BODY),
            is_recurring=is_recurring,
            selected_weekdays=frozenset(days or ()),
            hour=hour,
            minute=minute,
            requires_manual_confirmation=bool(confirm_flag),
            sound=payload.get("sound") or None,
            priority=str(payload.get("priority") or DEFAULT_PRIORITY),
        )

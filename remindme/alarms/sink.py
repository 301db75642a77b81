"""Presentation hooks invoked when an alarm fires.

The sink is the only place fired alarms leave the scheduling core. It is
handed to the controller explicitly so tests can substitute a fake.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Protocol

from .models import AlarmDefinition

if TYPE_CHECKING:
    from .mqtt import AlarmMqtt

LOGGER = logging.getLogger("remindme.alarms.sink")

# Alarms left ringing beyond this are forgotten oldest first.
MAX_RINGING = 32


class AlarmSink(Protocol):
    async def present(self, definition: AlarmDefinition) -> None: ...

    async def dismiss(self, alarm_id: int) -> None: ...


class LoggingAlarmSink:
    """Sink that only records fired alarms in the log."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER

    async def present(self, definition: AlarmDefinition) -> None:
        self._logger.info(
            "[alarms] Alarm %s ringing: %s (confirmation required: %s)",
            definition.alarm_id,
            definition.title,
            definition.requires_manual_confirmation,
        )

    async def dismiss(self, alarm_id: int) -> None:
        self._logger.info("[alarms] Alarm %s dismissed", alarm_id)


class MqttAlarmSink:
    """Publish ringing and idle states to ``<topic_base>/alarms/active``."""

    def __init__(self, mqtt: AlarmMqtt, topic_base: str, logger: logging.Logger | None = None) -> None:
        self._mqtt = mqtt
        self._topic = f"{topic_base}/alarms/active"
        self._logger = logger or LOGGER
        self._ringing: dict[int, None] = {}

    @property
    def topic(self) -> str:
        return self._topic

    async def present(self, definition: AlarmDefinition) -> None:
        self._ringing.pop(definition.alarm_id, None)
        self._ringing[definition.alarm_id] = None
        while len(self._ringing) > MAX_RINGING:
            stale = next(iter(self._ringing))
            del self._ringing[stale]
            self._logger.debug("[alarms] Forgetting undismissed alarm %s", stale)
        message = {"state": "ringing", "alarm": definition.to_public_dict(status="active")}
        self._mqtt.publish(self._topic, json.dumps(message))

    async def dismiss(self, alarm_id: int) -> None:
        if alarm_id not in self._ringing:
            self._logger.debug("[alarms] Dismiss for alarm %s that is not ringing", alarm_id)
            return
        del self._ringing[alarm_id]
        message = {"state": "idle", "alarm_id": alarm_id}
        self._mqtt.publish(self._topic, json.dumps(message))

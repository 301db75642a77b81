"""Wiring for the alarm daemon: store, timers, controller, recovery and MQTT bridge."""

from __future__ import annotations

import asyncio
import logging

from .commands import AlarmCommandProcessor
from .config import AlarmConfig
from .controller import AlarmController
from .mqtt import AlarmMqtt
from .recovery import RecoveryReport, recover_alarms
from .sink import AlarmSink, LoggingAlarmSink, MqttAlarmSink
from .store import AlarmStore, JsonAlarmStore
from .timers import AsyncioTimerFacility

LOGGER = logging.getLogger("remindme.alarms.daemon")


class AlarmDaemon:
    def __init__(
        self,
        config: AlarmConfig,
        *,
        store: AlarmStore | None = None,
        mqtt: AlarmMqtt | None = None,
    ) -> None:
        self.config = config
        self.store = store or JsonAlarmStore(config.storage_path)
        self.mqtt = mqtt or AlarmMqtt(config.mqtt, logger=logging.getLogger("remindme.alarms.mqtt"))
        sink: AlarmSink = LoggingAlarmSink()
        if self.mqtt.enabled:
            sink = MqttAlarmSink(self.mqtt, config.mqtt.topic_base)
        self.timers = AsyncioTimerFacility(exact_alarms_allowed=config.exact_alarms_allowed)
        self.controller = AlarmController(
            self.store,
            self.timers,
            sink,
            safety_margin=config.safety_margin,
        )
        self.timers.set_dispatcher(self.controller.on_fire)
        self.commands = AlarmCommandProcessor(self.controller, self.mqtt, config.mqtt.topic_base)

    async def start(self) -> RecoveryReport:
        """Restore recurring alarms, then open the command bridge."""
        report = await recover_alarms(self.controller)
        if not self.timers.can_schedule_exact():
            LOGGER.warning("[alarms] Exact alarms are not permitted; alarms stay unarmed until granted")
        self.commands.set_event_loop(asyncio.get_running_loop())
        if self.mqtt.connect():
            self.mqtt.subscribe(self.commands.command_topic, self.commands.handle_command_message)
            LOGGER.info("[alarms] Listening for commands on %s", self.commands.command_topic)
        return report

    async def shutdown(self) -> None:
        self.timers.cancel_all()
        self.mqtt.disconnect()
        # Let cancelled timer tasks unwind before the loop closes.
        await asyncio.sleep(0)

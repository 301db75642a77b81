"""
Alarm scheduling for RemindMe

The platform only offers one-shot wake-up timers, so recurring alarms are kept
alive by recomputing their next occurrence every time they fire:

- models: AlarmDefinition, the persisted unit of scheduling intent
- recurrence: Next-occurrence calculation over a weekday set
- controller: Arm / fire / reschedule / retire lifecycle, one timer per alarm id
- recovery: Startup scan that re-arms recurring alarms after a restart
- timers: asyncio-backed one-shot timer facility
- store: JSON and in-memory alarm stores
- sink: Presentation hooks invoked when an alarm fires
- commands: MQTT command bridge for the application layer
- config: Configuration from environment variables
- daemon: Wiring used by bin/remindme-alarmd.py
"""

from __future__ import annotations

__all__ = [
    "config",
    "commands",
    "controller",
    "daemon",
    "errors",
    "models",
    "mqtt",
    "recovery",
    "recurrence",
    "sink",
    "store",
    "timers",
]

"""
RemindMe - personal reminder and alarm scheduling core

This is the root package for RemindMe. It holds the platform-agnostic part of
the reminder application: deciding when alarms are due, keeping exactly one
wake-up timer in flight per alarm, and restoring recurring alarms after a
restart.

Core modules:
- utils: Environment parsing helpers
- datetime_utils: Local time helpers and time-of-day parsing
- alarms: Alarm definitions, next-occurrence calculation, scheduling controller,
  boot recovery, persistence and the MQTT command bridge
"""

__version__ = "0.4.2"

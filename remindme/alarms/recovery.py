"""Startup recovery: re-arm recurring alarms whose timers did not survive a restart."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from .controller import AlarmController
from .errors import AlarmError, StoreUnavailable
from .store import AlarmStore

LOGGER = logging.getLogger("remindme.alarms.recovery")


@dataclass
class RecoveryReport:
    rearmed: dict[int, datetime] = field(default_factory=dict)
    skipped: list[int] = field(default_factory=list)
    failed: dict[int, Exception] = field(default_factory=dict)
    store_error: StoreUnavailable | None = None

    @property
    def ok(self) -> bool:
        return not self.failed and self.store_error is None

    def to_dict(self) -> dict[str, object]:
        return {
            "rearmed": {str(alarm_id): when.isoformat() for alarm_id, when in self.rearmed.items()},
            "skipped": list(self.skipped),
            "failed": {str(alarm_id): str(exc) for alarm_id, exc in self.failed.items()},
            "store_error": str(self.store_error) if self.store_error else None,
        }


async def recover_alarms(
    controller: AlarmController,
    store: AlarmStore | None = None,
    *,
    now: datetime | None = None,
) -> RecoveryReport:
    """Re-arm every stored recurring alarm for its next occurrence.

    Safe to run repeatedly: arming cancels any timer already held for the id.
    One-shot alarms are left untouched. A failure for one id is logged and
    recorded without stopping the scan.
    """
    store = store or controller.store
    report = RecoveryReport()
    try:
        definitions = store.list_all()
    except StoreUnavailable as exc:
        LOGGER.error("[recovery] Alarm store unavailable; nothing re-armed: %s", exc)
        report.store_error = exc
        return report

    for definition in definitions:
        alarm_id = definition.alarm_id
        if not definition.repeats:
            report.skipped.append(alarm_id)
            continue
        try:
            result = await controller.arm_next(definition, now)
        except Exception as exc:
            LOGGER.exception("[recovery] Unexpected failure re-arming alarm %s", alarm_id)
            report.failed[alarm_id] = exc
            continue
        if result.ok and result.fire_at is not None:
            report.rearmed[alarm_id] = result.fire_at
        else:
            error: AlarmError | None = result.error
            LOGGER.warning("[recovery] Could not re-arm alarm %s: %s", alarm_id, error)
            report.failed[alarm_id] = error or AlarmError("Alarm was not armed", alarm_id=alarm_id)

    LOGGER.info(
        "[recovery] Re-armed %d recurring alarm(s); %d one-shot skipped; %d failed",
        len(report.rearmed),
        len(report.skipped),
        len(report.failed),
    )
    return report

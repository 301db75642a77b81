"""Persistence for alarm definitions, keyed by alarm id."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Protocol

from .errors import InvalidDefinition, StoreUnavailable
from .models import AlarmDefinition

LOGGER = logging.getLogger("remindme.alarms.store")


class AlarmStore(Protocol):
    def put(self, definition: AlarmDefinition) -> None: ...

    def get(self, alarm_id: int) -> AlarmDefinition | None: ...

    def delete(self, alarm_id: int) -> bool: ...

    def list_all(self) -> list[AlarmDefinition]: ...


class MemoryAlarmStore:
    """Process-local store; contents do not survive a restart."""

    def __init__(self, definitions: list[AlarmDefinition] | None = None) -> None:
        self._items: dict[int, AlarmDefinition] = {}
        for definition in definitions or []:
            self._items[definition.alarm_id] = definition

    def put(self, definition: AlarmDefinition) -> None:
        self._items[definition.alarm_id] = definition

    def get(self, alarm_id: int) -> AlarmDefinition | None:
        return self._items.get(alarm_id)

    def delete(self, alarm_id: int) -> bool:
        return self._items.pop(alarm_id, None) is not None

    def list_all(self) -> list[AlarmDefinition]:
        return sorted(self._items.values(), key=lambda item: item.alarm_id)


class JsonAlarmStore:
    """Alarm definitions kept in a single JSON document.

    Writes go to a temporary sibling file that replaces the existing one, so a
    crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def put(self, definition: AlarmDefinition) -> None:
        with self._lock:
            entries = self._read_entries()
            entries = [entry for entry in entries if _entry_id(entry) != definition.alarm_id]
            entries.append(definition.to_json_dict())
            self._write_entries(entries)

    def get(self, alarm_id: int) -> AlarmDefinition | None:
        with self._lock:
            entries = self._read_entries()
        for entry in entries:
            if _entry_id(entry) == alarm_id:
                return AlarmDefinition.from_dict(entry)
        return None

    def delete(self, alarm_id: int) -> bool:
        with self._lock:
            entries = self._read_entries()
            remaining = [entry for entry in entries if _entry_id(entry) != alarm_id]
            if len(remaining) == len(entries):
                return False
            self._write_entries(remaining)
            return True

    def list_all(self) -> list[AlarmDefinition]:
        with self._lock:
            entries = self._read_entries()
        definitions: list[AlarmDefinition] = []
        for entry in entries:
            try:
                definitions.append(AlarmDefinition.from_dict(entry))
            except InvalidDefinition:
                LOGGER.warning("Skipping invalid alarm entry: %s", entry, exc_info=True)
        definitions.sort(key=lambda item: item.alarm_id)
        return definitions

    def _read_entries(self) -> list[Any]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StoreUnavailable(f"Failed to read alarm store {self._path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StoreUnavailable(f"Alarm store {self._path} is not valid JSON: {exc}") from exc
        alarms = data.get("alarms") if isinstance(data, dict) else None
        if not isinstance(alarms, list):
            LOGGER.warning("Alarm store %s has no alarm list; treating as empty", self._path)
            return []
        return alarms

    def _write_entries(self, entries: list[Any]) -> None:
        payload = {"alarms": entries}
        tmp_path = self._path.with_suffix(".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise StoreUnavailable(f"Failed to write alarm store {self._path}: {exc}") from exc


def _entry_id(entry: Any) -> Any:
    if isinstance(entry, dict):
        return entry.get("id", entry.get("alarm_id"))
    return None

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Protocol

from .errors import PersistenceError
from .models import Alert
from .preferences import NotificationPreferences


logger = logging.getLogger("creditwatch.persistence")


@dataclass
class StoredState:
    """Everything that must survive a restart: alerts and preferences."""

    alerts: List[Alert] = field(default_factory=list)
    preferences: NotificationPreferences = field(default_factory=NotificationPreferences)


class AlertRepository(Protocol):
    def load(self) -> StoredState:
        ...

    def save(self, state: StoredState) -> None:
        ...


class InMemoryAlertRepository:
    def __init__(self, state: StoredState | None = None) -> None:
        self._state = self._clone(state or StoredState())
        self.save_count = 0

    def load(self) -> StoredState:
        return self._clone(self._state)

    def save(self, state: StoredState) -> None:
        self._state = self._clone(state)
        self.save_count += 1

    @staticmethod
    def _clone(state: StoredState) -> StoredState:
        return StoredState(
            alerts=[alert.copy() for alert in state.alerts],
            preferences=state.preferences,
        )


class JsonFileAlertRepository:
    """Keeps the whole state in one JSON document, rewritten on every save."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StoredState:
        if not self._path.exists():
            return StoredState()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Failed to read alert state from {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"Alert state in {self._path} is not a JSON object")
        return StoredState(
            alerts=deserialize_alerts(data.get("alerts") or []),
            preferences=NotificationPreferences.from_dict(data.get("preferences")),
        )

    def save(self, state: StoredState) -> None:
        serializable: Dict[str, Any] = {
            "alerts": [alert.to_dict() for alert in state.alerts],
            "preferences": state.preferences.to_dict(),
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            staging = self._path.with_name(f"{self._path.name}.tmp")
            staging.write_text(json.dumps(serializable, indent=2), encoding="utf-8")
            staging.replace(self._path)
        except OSError as exc:
            raise PersistenceError(f"Failed to write alert state to {self._path}: {exc}") from exc


def deserialize_alerts(records: List[Dict[str, Any]]) -> List[Alert]:
    alerts: List[Alert] = []
    for record in records:
        if not isinstance(record, dict):
            logger.warning("Dropping stored alert that is not a mapping")
            continue
        try:
            alerts.append(Alert.from_dict(record))
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning("Dropping unreadable stored alert %s: %s", record.get("id"), exc)
    return alerts

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Engine, delete, insert, select
from sqlalchemy.exc import SQLAlchemyError

from creditwatch.alerts.errors import PersistenceError
from creditwatch.alerts.models import Alert
from creditwatch.alerts.persistence import StoredState, deserialize_alerts
from creditwatch.alerts.preferences import NotificationPreferences

from .tables import alerts, notification_preferences


_PREFERENCES_ROW_ID = 1


class SqlAlchemyAlertRepository:
    """Stores alerts and preferences in relational tables, replacing them wholesale on save."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def close(self) -> None:
        self._engine.dispose()

    def load(self) -> StoredState:
        try:
            with self._engine.connect() as connection:
                alert_rows = connection.execute(
                    select(alerts).order_by(alerts.c.position)
                ).mappings().all()
                prefs_row = connection.execute(
                    select(notification_preferences).where(
                        notification_preferences.c.id == _PREFERENCES_ROW_ID
                    )
                ).mappings().first()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load alert state: {exc}") from exc

        records = [_row_to_record(row) for row in alert_rows]
        preferences = (
            NotificationPreferences.from_dict(dict(prefs_row))
            if prefs_row is not None
            else NotificationPreferences()
        )
        return StoredState(alerts=deserialize_alerts(records), preferences=preferences)

    def save(self, state: StoredState) -> None:
        alert_rows = [_alert_to_row(alert, position) for position, alert in enumerate(state.alerts)]
        prefs = state.preferences.to_dict()
        try:
            with self._engine.begin() as connection:
                connection.execute(delete(alerts))
                if alert_rows:
                    connection.execute(insert(alerts), alert_rows)
                connection.execute(delete(notification_preferences))
                connection.execute(
                    insert(notification_preferences).values(id=_PREFERENCES_ROW_ID, **prefs)
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save alert state: {exc}") from exc


def _alert_to_row(alert: Alert, position: int) -> Dict[str, Any]:
    return {
        "id": alert.id,
        "position": position,
        "type": alert.type.value,
        "severity": alert.severity.value,
        "status": alert.status.value,
        "title": alert.title,
        "message": alert.message,
        "entity_id": alert.entity_id,
        "entity_name": alert.entity_name,
        "details": alert.metadata.to_dict(),
        "created_at": _to_utc_naive(alert.created_at),
        "read_at": _to_utc_naive(alert.read_at),
        "dismissed_at": _to_utc_naive(alert.dismissed_at),
        "resolved_at": _to_utc_naive(alert.resolved_at),
    }


def _row_to_record(row) -> Dict[str, Any]:
    record = dict(row)
    record["metadata"] = record.pop("details", None) or {}
    record.pop("position", None)
    return record


def _to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)

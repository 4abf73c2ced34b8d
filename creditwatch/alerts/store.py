from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from .errors import AlertNotFoundError, DuplicateAlertIdError
from .models import Alert, AlertFilter, AlertSeverity, AlertStatus, AlertType, Trigger, coerce_metadata
from .persistence import AlertRepository, InMemoryAlertRepository, StoredState
from .preferences import NotificationPreferences


logger = logging.getLogger("creditwatch.store")
debug_logger = logging.getLogger("creditwatch.debug.store")

Clock = Callable[[], datetime]
IdFactory = Callable[[], str]
Notifier = Callable[[Alert, NotificationPreferences], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_alert_id() -> str:
    return f"alert_{uuid.uuid4().hex}"


class AlertStore:
    """
    Owns the alert collection and its lifecycle.

    Alerts move ``unread -> read -> dismissed | resolved`` and never back.
    Every lifecycle call is idempotent, every call touching an unknown id
    raises ``AlertNotFoundError``, and all reads return copies.

    Persistence runs after each mutation that changes durable state and is
    best-effort: a failing repository is logged and remembered in
    ``last_persistence_error``, the in-memory change stands.
    """

    def __init__(
        self,
        repository: Optional[AlertRepository] = None,
        *,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
        id_factory: IdFactory = generate_alert_id,
    ) -> None:
        self._repository = repository if repository is not None else InMemoryAlertRepository()
        self._notifier = notifier
        self._clock = clock
        self._id_factory = id_factory
        self._lock = threading.RLock()
        self.last_persistence_error: Optional[Exception] = None

        state = self._repository.load()
        # Insertion order is kept; later entries are newer on ties.
        self._alerts: Dict[str, Alert] = {}
        for alert in state.alerts:
            if alert.id in self._alerts:
                raise DuplicateAlertIdError(alert.id)
            self._alerts[alert.id] = alert
        self._preferences = state.preferences
        self._filter = AlertFilter()
        self._selected_id: Optional[str] = None
        logger.info("Alert store loaded %s alerts", len(self._alerts))

    # Ingestion

    def ingest(self, triggers: Iterable[Trigger]) -> List[Alert]:
        triggers = list(triggers)
        if not triggers:
            return []

        with self._lock:
            now = self._clock()
            created: List[Alert] = []
            batch_ids = set()
            for trigger in triggers:
                alert_id = self._id_factory()
                if alert_id in self._alerts or alert_id in batch_ids:
                    raise DuplicateAlertIdError(alert_id)
                batch_ids.add(alert_id)
                created.append(
                    Alert(
                        id=alert_id,
                        type=trigger.type,
                        severity=trigger.severity,
                        status=AlertStatus.UNREAD,
                        title=trigger.title,
                        message=trigger.message,
                        entity_id=trigger.entity_id,
                        entity_name=trigger.entity_name,
                        metadata=coerce_metadata(trigger.type, trigger.metadata),
                        created_at=now,
                    )
                )
            for alert in created:
                self._alerts[alert.id] = alert
            self._persist()
            preferences = self._preferences
            created = [alert.copy() for alert in created]
            total = len(self._alerts)

        debug_logger.info("store.ingest", extra={"alerts_created": len(created), "alerts_total": total})
        self._notify(created, preferences)
        return created

    # Lifecycle

    def mark_as_read(self, alert_id: str) -> Alert:
        with self._lock:
            alert = self._require(alert_id)
            if alert.status is not AlertStatus.UNREAD:
                return alert.copy()
            alert.status = AlertStatus.READ
            alert.read_at = self._clock()
            self._persist()
            return alert.copy()

    def mark_all_as_read(self) -> int:
        with self._lock:
            now = self._clock()
            changed = 0
            for alert in self._alerts.values():
                if alert.status is AlertStatus.UNREAD:
                    alert.status = AlertStatus.READ
                    alert.read_at = now
                    changed += 1
            if changed:
                self._persist()
        return changed

    def dismiss(self, alert_id: str) -> Alert:
        with self._lock:
            alert = self._require(alert_id)
            if alert.status.is_terminal:
                return alert.copy()
            alert.status = AlertStatus.DISMISSED
            alert.dismissed_at = self._clock()
            self._persist()
            return alert.copy()

    def resolve(self, alert_id: str, resolution: Optional[str] = None) -> Alert:
        with self._lock:
            alert = self._require(alert_id)
            if alert.status.is_terminal:
                return alert.copy()
            if resolution is not None:
                alert.metadata.resolution = resolution
            alert.status = AlertStatus.RESOLVED
            alert.resolved_at = self._clock()
            self._persist()
            return alert.copy()

    def delete(self, alert_id: str) -> None:
        with self._lock:
            self._require(alert_id)
            del self._alerts[alert_id]
            if self._selected_id == alert_id:
                self._selected_id = None
            self._persist()

    def clear_all(self) -> None:
        with self._lock:
            self._alerts.clear()
            self._selected_id = None
            self._persist()

    # Queries

    def get(self, alert_id: str) -> Alert:
        with self._lock:
            return self._require(alert_id).copy()

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)

    def query(self, alert_filter: Optional[AlertFilter] = None) -> List[Alert]:
        """Alerts matching every populated predicate, newest first."""
        alert_filter = alert_filter or AlertFilter()
        with self._lock:
            matches = [alert.copy() for alert in self._alerts.values() if alert_filter.matches(alert)]
        # Stable sort over reversed insertion order puts the latest ingested first on ties.
        matches.reverse()
        matches.sort(key=lambda alert: alert.created_at, reverse=True)
        return matches

    def alerts_for_entity(self, entity_id: str) -> List[Alert]:
        return self.query(AlertFilter(entity_id=entity_id))

    def alerts_by_type(self, alert_type: AlertType) -> List[Alert]:
        return self.query(AlertFilter(types=frozenset({alert_type})))

    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for alert in self._alerts.values() if alert.status is AlertStatus.UNREAD)

    def critical_unread_count(self) -> int:
        with self._lock:
            return sum(
                1
                for alert in self._alerts.values()
                if alert.status is AlertStatus.UNREAD and alert.severity is AlertSeverity.CRITICAL
            )

    # Filter and selection (not persisted)

    @property
    def filter(self) -> AlertFilter:
        with self._lock:
            return self._filter

    def set_filter(self, **changes: Any) -> AlertFilter:
        with self._lock:
            self._filter = self._filter.merged(**changes)
            return self._filter

    def clear_filter(self) -> None:
        with self._lock:
            self._filter = AlertFilter()

    def filtered_alerts(self) -> List[Alert]:
        return self.query(self.filter)

    def select_alert(self, alert_id: Optional[str]) -> Optional[Alert]:
        """Select an alert for detail view; selecting an unread alert marks it read."""
        if alert_id is None:
            with self._lock:
                self._selected_id = None
            return None
        with self._lock:
            self._require(alert_id)
            self._selected_id = alert_id
            return self.mark_as_read(alert_id)

    @property
    def selected_alert(self) -> Optional[Alert]:
        with self._lock:
            if self._selected_id is None:
                return None
            alert = self._alerts.get(self._selected_id)
            return alert.copy() if alert is not None else None

    # Notification preferences

    @property
    def preferences(self) -> NotificationPreferences:
        with self._lock:
            return self._preferences

    def update_notification_preferences(self, **changes: Any) -> NotificationPreferences:
        with self._lock:
            self._preferences = self._preferences.updated(**changes)
            self._persist()
            return self._preferences

    def mute_alert_type(self, alert_type: AlertType) -> NotificationPreferences:
        with self._lock:
            muted = self._preferences.muted_types | {AlertType(alert_type)}
            return self.update_notification_preferences(muted_types=muted)

    def unmute_alert_type(self, alert_type: AlertType) -> NotificationPreferences:
        with self._lock:
            muted = self._preferences.muted_types - {AlertType(alert_type)}
            return self.update_notification_preferences(muted_types=muted)

    # Internals

    def _require(self, alert_id: str) -> Alert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    def _persist(self) -> None:
        state = StoredState(
            alerts=[alert.copy() for alert in self._alerts.values()],
            preferences=self._preferences,
        )
        try:
            self._repository.save(state)
        except Exception as exc:  # noqa: BLE001 - in-memory state stays authoritative
            self.last_persistence_error = exc
            logger.warning("Failed to persist alert state: %s", exc, exc_info=True)
        else:
            self.last_persistence_error = None

    def _notify(self, alerts: List[Alert], preferences: NotificationPreferences) -> None:
        if self._notifier is None:
            return
        for alert in alerts:
            if preferences.is_muted(alert.type):
                debug_logger.debug(
                    "store.notification_muted",
                    extra={"alert_id": alert.id, "alert_type": alert.type.value},
                )
                continue
            try:
                self._notifier(alert, preferences)
            except Exception:  # noqa: BLE001 - delivery problems never fail ingestion
                logger.exception("Notification dispatch failed for alert %s", alert.id)

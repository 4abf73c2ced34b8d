"""Alerts package exposing the rule engine, the alert store and models."""

from .engine import RuleEngine
from .errors import (
    AlertNotFoundError,
    CreditWatchError,
    DuplicateAlertIdError,
    MalformedEntityError,
    NotificationError,
    PersistenceError,
)
from .models import (
    Alert,
    AlertFilter,
    AlertSeverity,
    AlertStatus,
    AlertType,
    DateRange,
    Trigger,
)
from .preferences import NotificationPreferences
from .store import AlertStore

__all__ = [
    "RuleEngine",
    "AlertStore",
    "NotificationPreferences",
    "Alert",
    "AlertFilter",
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "DateRange",
    "Trigger",
    "AlertNotFoundError",
    "CreditWatchError",
    "DuplicateAlertIdError",
    "MalformedEntityError",
    "NotificationError",
    "PersistenceError",
]

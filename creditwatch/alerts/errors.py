from __future__ import annotations


class CreditWatchError(Exception):
    """Base class for errors raised by the alert subsystem."""


class MalformedEntityError(CreditWatchError):
    """Raised by a rule when an entity lacks a field the rule needs."""

    def __init__(self, entity_id: str, field_name: str) -> None:
        super().__init__(f"Entity '{entity_id}' has no usable '{field_name}'")
        self.entity_id = entity_id
        self.field_name = field_name


class AlertNotFoundError(CreditWatchError, KeyError):
    def __init__(self, alert_id: str) -> None:
        super().__init__(alert_id)
        self.alert_id = alert_id

    def __str__(self) -> str:
        return f"Alert '{self.alert_id}' not found"


class DuplicateAlertIdError(CreditWatchError):
    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert id '{alert_id}' is already in use")
        self.alert_id = alert_id


class PersistenceError(CreditWatchError):
    """Raised by repositories when durable storage cannot be read or written."""


class NotificationError(CreditWatchError):
    """Raised by a notification channel when delivery fails."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel

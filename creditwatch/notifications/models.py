from __future__ import annotations

from dataclasses import dataclass

from creditwatch.alerts.models import Alert, AlertSeverity
from creditwatch.alerts.preferences import NotificationPreferences


@dataclass(slots=True)
class NotificationRequest:
    """What the service hands to each channel for one alert."""

    alert: Alert
    preferences: NotificationPreferences
    play_sound: bool = False

    @property
    def is_critical(self) -> bool:
        return self.alert.severity is AlertSeverity.CRITICAL

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from creditwatch.alerts.models import Alert, AlertSeverity

from .channels.base import NotificationChannel
from .channels.desktop import DesktopChannel, SoundChannel
from .channels.email import EmailChannel
from .channels.sms import SmsChannel
from .models import NotificationPreferences, NotificationRequest


logger = logging.getLogger("creditwatch.notifications")


class NotificationService:
    """
    Fans one alert out to every configured channel.

    Channels decide from the preferences whether they apply. A channel that
    raises is logged and skipped; the remaining channels still run.
    """

    def __init__(self, channels: Sequence[NotificationChannel]) -> None:
        self._channels: List[NotificationChannel] = list(channels)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "NotificationService":
        config = config or {}
        channels: List[NotificationChannel] = [DesktopChannel(), SoundChannel()]

        email_conf = config.get("email")
        if isinstance(email_conf, dict) and email_conf.get("enabled"):
            channels.append(EmailChannel.from_config(email_conf))
        sms_conf = config.get("sms")
        if isinstance(sms_conf, dict) and sms_conf.get("enabled"):
            channels.append(SmsChannel.from_config(sms_conf))
        return cls(channels)

    @property
    def channels(self) -> List[NotificationChannel]:
        return list(self._channels)

    def close(self) -> None:
        for channel in self._channels:
            close_fn = getattr(channel, "close", None)
            if callable(close_fn):
                close_fn()

    def handle_alert(self, alert: Alert, preferences: NotificationPreferences) -> List[str]:
        """Deliver ``alert``; returns the names of channels that failed."""
        request = NotificationRequest(
            alert=alert,
            preferences=preferences,
            play_sound=preferences.enable_sound and alert.severity is AlertSeverity.CRITICAL,
        )
        failed: List[str] = []
        for channel in self._channels:
            try:
                channel.send_alert(request)
            except Exception as exc:  # noqa: BLE001 - one channel must not block the others
                failed.append(channel.name)
                logger.warning(
                    "Notification channel %s failed for alert %s: %s",
                    channel.name,
                    alert.id,
                    exc,
                )
        return failed

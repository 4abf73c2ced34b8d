from __future__ import annotations

import logging
import sys
from typing import Callable, Optional

from ..models import NotificationRequest
from .base import NotificationChannel


logger = logging.getLogger("creditwatch.notifications.desktop")

DesktopSink = Callable[[str, str, str], None]
SoundSink = Callable[[NotificationRequest], None]


def log_desktop_notification(title: str, body: str, tag: str) -> None:
    logger.info("Desktop notification [%s] %s: %s", tag, title, body)


def terminal_bell(request: NotificationRequest) -> None:
    sys.stdout.write("\a")
    sys.stdout.flush()


class DesktopChannel(NotificationChannel):
    """Pops a desktop notification through an injectable sink."""

    name = "desktop"

    def __init__(self, sink: Optional[DesktopSink] = None) -> None:
        self._sink = sink or log_desktop_notification

    def send_alert(self, request: NotificationRequest) -> None:
        if not request.preferences.enable_desktop:
            return
        alert = request.alert
        self._sink(alert.title, alert.message, alert.id)


class SoundChannel(NotificationChannel):
    """Audible cue, reserved for critical alerts."""

    name = "sound"

    def __init__(self, sink: Optional[SoundSink] = None) -> None:
        self._sink = sink or terminal_bell

    def send_alert(self, request: NotificationRequest) -> None:
        if not request.play_sound:
            return
        self._sink(request)

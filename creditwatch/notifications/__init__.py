"""Notification package exposing delivery channels and service."""

from .models import NotificationPreferences, NotificationRequest
from .service import NotificationService

__all__ = [
    "NotificationPreferences",
    "NotificationRequest",
    "NotificationService",
]

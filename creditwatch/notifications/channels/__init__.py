from .base import NotificationChannel
from .desktop import DesktopChannel, SoundChannel
from .email import EmailChannel
from .sms import SmsChannel

__all__ = [
    "NotificationChannel",
    "DesktopChannel",
    "SoundChannel",
    "EmailChannel",
    "SmsChannel",
]

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Dict, Iterable, List

from creditwatch.alerts.errors import NotificationError

from ..models import NotificationRequest
from .base import NotificationChannel, format_alert


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True
    timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SmtpSettings":
        if not data.get("smtp_host"):
            raise ValueError("notifications.email.smtp_host is required when email is enabled")
        return cls(
            host=str(data["smtp_host"]),
            port=int(data.get("smtp_port", 587)),
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
            use_tls=bool(data.get("use_tls", True)),
        )


class EmailChannel(NotificationChannel):
    """Mails each alert to a fixed distribution list."""

    name = "email"

    def __init__(self, settings: SmtpSettings, from_address: str, to_addresses: Iterable[str]) -> None:
        self._settings = settings
        self._from_address = from_address
        self._recipients: List[str] = [address for address in to_addresses if address]

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "EmailChannel":
        if not config.get("from_address"):
            raise ValueError("notifications.email.from_address is required when email is enabled")
        return cls(
            SmtpSettings.from_dict(config),
            from_address=str(config["from_address"]),
            to_addresses=config.get("to_addresses") or [],
        )

    def send_alert(self, request: NotificationRequest) -> None:
        if not request.preferences.enable_email or not self._recipients:
            return
        alert = request.alert
        message = EmailMessage()
        message["From"] = self._from_address
        message["To"] = ", ".join(self._recipients)
        message["Subject"] = f"Portfolio Alert ({alert.severity.value}): {alert.title}"
        message.set_content(format_alert(request))
        self._deliver(message)

    def _deliver(self, message: EmailMessage) -> None:
        settings = self._settings
        try:
            with smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout) as server:
                if settings.use_tls:
                    server.starttls()
                if settings.username:
                    server.login(settings.username, settings.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(self.name, f"{settings.host}:{settings.port} {exc}") from exc

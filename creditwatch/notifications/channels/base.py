from __future__ import annotations

from typing import Protocol

from ..models import NotificationRequest


class NotificationChannel(Protocol):
    name: str

    def send_alert(self, request: NotificationRequest) -> None:
        ...


def format_alert(request: NotificationRequest) -> str:
    alert = request.alert
    lines = [
        f"[{alert.severity.value.upper()}] {alert.title}",
        alert.message,
    ]
    if alert.entity_name or alert.entity_id:
        lines.append(f"Entity: {alert.entity_name or alert.entity_id}")
    lines.append(f"Raised: {alert.created_at.isoformat()}")
    return "\n".join(lines)

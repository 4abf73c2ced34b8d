from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import httpx

from creditwatch.alerts.errors import NotificationError

from ..models import NotificationRequest
from .base import NotificationChannel


TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
# Single-segment SMS body limit.
MAX_SMS_LENGTH = 160


class SmsChannel(NotificationChannel):
    """Sends a short text through the Twilio Messages REST endpoint."""

    name = "sms"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        to_numbers: Iterable[str],
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._account_sid = account_sid
        self._from_number = from_number
        self._to_numbers = [str(number) for number in to_numbers]
        self._client = client or httpx.Client(
            base_url=TWILIO_API_BASE,
            auth=(account_sid, auth_token),
            timeout=10.0,
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SmsChannel":
        missing = [key for key in ("account_sid", "auth_token", "from_number") if not config.get(key)]
        if missing:
            raise ValueError(f"notifications.sms is missing: {', '.join(missing)}")
        return cls(
            account_sid=str(config["account_sid"]),
            auth_token=str(config["auth_token"]),
            from_number=str(config["from_number"]),
            to_numbers=config.get("to_numbers") or [],
        )

    def close(self) -> None:
        self._client.close()

    def _send(self, text: str) -> None:
        failures = []
        for number in self._to_numbers:
            try:
                response = self._client.post(
                    f"/Accounts/{self._account_sid}/Messages.json",
                    data={"From": self._from_number, "To": number, "Body": text},
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                failures.append(f"{_mask(number)}: {exc}")
        if failures:
            raise NotificationError(self.name, "; ".join(failures))

    def send_alert(self, request: NotificationRequest) -> None:
        if not request.preferences.enable_sms or not self._to_numbers:
            return
        alert = request.alert
        text = f"[{alert.severity.value.upper()}] {alert.title}"
        self._send(text[:MAX_SMS_LENGTH])


def _mask(number: str) -> str:
    return number[-4:].rjust(len(number), "*")

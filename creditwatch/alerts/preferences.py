from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Optional

from .models import AlertType


@dataclass(frozen=True)
class NotificationPreferences:
    enable_sound: bool = True
    enable_desktop: bool = True
    enable_email: bool = False
    enable_sms: bool = False
    muted_types: FrozenSet[AlertType] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "muted_types", frozenset(AlertType(v) for v in self.muted_types))

    def is_muted(self, alert_type: AlertType) -> bool:
        return alert_type in self.muted_types

    def updated(self, **changes: Any) -> "NotificationPreferences":
        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown notification preferences: {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enable_sound": self.enable_sound,
            "enable_desktop": self.enable_desktop,
            "enable_email": self.enable_email,
            "enable_sms": self.enable_sms,
            "muted_types": sorted(alert_type.value for alert_type in self.muted_types),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "NotificationPreferences":
        data = data or {}
        defaults = cls()
        return cls(
            enable_sound=bool(data.get("enable_sound", defaults.enable_sound)),
            enable_desktop=bool(data.get("enable_desktop", defaults.enable_desktop)),
            enable_email=bool(data.get("enable_email", defaults.enable_email)),
            enable_sms=bool(data.get("enable_sms", defaults.enable_sms)),
            muted_types=frozenset(data.get("muted_types") or ()),
        )

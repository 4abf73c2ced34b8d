from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Type


class AlertType(str, Enum):
    CREDIT_LIMIT = "credit_limit"
    RATING_CHANGE = "rating_change"
    DELINQUENCY = "delinquency"
    CONCENTRATION = "concentration"
    COVENANT = "covenant"
    ANOMALY = "anomaly"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, other: "AlertSeverity") -> bool:
        return self.rank >= other.rank


_SEVERITY_RANK = {
    AlertSeverity.LOW: 1,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.HIGH: 3,
    AlertSeverity.CRITICAL: 4,
}


class AlertStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"
    DISMISSED = "dismissed"
    RESOLVED = "resolved"

    @property
    def is_terminal(self) -> bool:
        return self in (AlertStatus.DISMISSED, AlertStatus.RESOLVED)


# Metadata variants, one per alert type.


@dataclass(slots=True, kw_only=True)
class AlertMetadata:
    """Common base for per-type metadata; unknown keys are kept in ``extra``."""

    resolution: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        for item in fields(self):
            if item.name == "extra":
                continue
            value = getattr(self, item.name)
            if item.name == "resolution" and value is None:
                continue
            payload[item.name] = value
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertMetadata":
        known = {item.name for item in fields(cls)} - {"extra"}
        kwargs = {key: value for key, value in data.items() if key in known}
        extra = {key: value for key, value in data.items() if key not in known}
        return cls(extra=extra, **kwargs)

    def copy(self) -> "AlertMetadata":
        return replace(self, extra=dict(self.extra))


@dataclass(slots=True, kw_only=True)
class GenericMetadata(AlertMetadata):
    pass


@dataclass(slots=True, kw_only=True)
class CreditLimitMetadata(AlertMetadata):
    utilization: float
    exposure: float
    limit: float
    threshold: float


@dataclass(slots=True, kw_only=True)
class DelinquencyMetadata(AlertMetadata):
    dpd: int
    exposure: Optional[float] = None
    bucket: str = ""


@dataclass(slots=True, kw_only=True)
class RatingChangeMetadata(AlertMetadata):
    internal_rating: Optional[str] = None
    external_rating: Optional[str] = None
    delta: int = 0
    exposure: Optional[float] = None


@dataclass(slots=True, kw_only=True)
class ConcentrationMetadata(AlertMetadata):
    concentration: float
    exposure: float
    portfolio_exposure: float
    percentage: float


@dataclass(slots=True, kw_only=True)
class CovenantMetadata(AlertMetadata):
    covenant: Optional[str] = None
    current: Optional[float] = None
    threshold: Optional[float] = None
    margin: Optional[float] = None


@dataclass(slots=True, kw_only=True)
class AnomalyMetadata(AlertMetadata):
    percent_change: Optional[float] = None
    timeframe: Optional[str] = None
    current_utilization: Optional[float] = None


METADATA_TYPES: Dict[AlertType, Type[AlertMetadata]] = {
    AlertType.CREDIT_LIMIT: CreditLimitMetadata,
    AlertType.RATING_CHANGE: RatingChangeMetadata,
    AlertType.DELINQUENCY: DelinquencyMetadata,
    AlertType.CONCENTRATION: ConcentrationMetadata,
    AlertType.COVENANT: CovenantMetadata,
    AlertType.ANOMALY: AnomalyMetadata,
}


def metadata_from_dict(alert_type: AlertType, data: Optional[Mapping[str, Any]]) -> AlertMetadata:
    """Rebuild the metadata variant for ``alert_type``.

    Falls back to ``GenericMetadata`` when the payload does not fit the
    registered structure, so stored alerts are never dropped over metadata.
    """
    payload = dict(data or {})
    metadata_cls = METADATA_TYPES.get(alert_type, GenericMetadata)
    try:
        return metadata_cls.from_dict(payload)
    except TypeError:
        return GenericMetadata.from_dict(payload)


def coerce_metadata(alert_type: AlertType, value: Any) -> AlertMetadata:
    """Copy of ``value`` as metadata for ``alert_type``; plain mappings are rebuilt."""
    if isinstance(value, AlertMetadata):
        return value.copy()
    if value is None or isinstance(value, Mapping):
        return metadata_from_dict(alert_type, value)
    raise TypeError(f"Unsupported alert metadata: {type(value).__name__}")


@dataclass(slots=True)
class Trigger:
    """A single rule breach found during one evaluation pass."""

    type: AlertType
    severity: AlertSeverity
    entity_id: str
    entity_name: str
    title: str
    message: str
    metadata: AlertMetadata


@dataclass(slots=True)
class Alert:
    id: str
    type: AlertType
    severity: AlertSeverity
    status: AlertStatus
    title: str
    message: str
    created_at: datetime
    metadata: AlertMetadata = field(default_factory=GenericMetadata)
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    read_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    def copy(self) -> "Alert":
        return replace(self, metadata=self.metadata.copy())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "title": self.title,
            "message": self.message,
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at.isoformat(),
            "read_at": _isoformat(self.read_at),
            "dismissed_at": _isoformat(self.dismissed_at),
            "resolved_at": _isoformat(self.resolved_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alert":
        alert_type = AlertType(data["type"])
        return cls(
            id=str(data["id"]),
            type=alert_type,
            severity=AlertSeverity(data["severity"]),
            status=AlertStatus(data.get("status", AlertStatus.UNREAD.value)),
            title=data.get("title", ""),
            message=data.get("message", ""),
            entity_id=data.get("entity_id"),
            entity_name=data.get("entity_name"),
            metadata=metadata_from_dict(alert_type, data.get("metadata")),
            created_at=_parse_datetime(data["created_at"]),
            read_at=_parse_optional_datetime(data.get("read_at")),
            dismissed_at=_parse_optional_datetime(data.get("dismissed_at")),
            resolved_at=_parse_optional_datetime(data.get("resolved_at")),
        )


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def contains(self, value: datetime) -> bool:
        return self.start <= value <= self.end


@dataclass(frozen=True)
class AlertFilter:
    """Conjunction of optional predicates; empty or missing fields match everything."""

    types: FrozenSet[AlertType] = frozenset()
    severities: FrozenSet[AlertSeverity] = frozenset()
    statuses: FrozenSet[AlertStatus] = frozenset()
    date_range: Optional[DateRange] = None
    entity_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "types", frozenset(AlertType(v) for v in self.types or ()))
        object.__setattr__(self, "severities", frozenset(AlertSeverity(v) for v in self.severities or ()))
        object.__setattr__(self, "statuses", frozenset(AlertStatus(v) for v in self.statuses or ()))

    def matches(self, alert: Alert) -> bool:
        if self.types and alert.type not in self.types:
            return False
        if self.severities and alert.severity not in self.severities:
            return False
        if self.statuses and alert.status not in self.statuses:
            return False
        if self.date_range is not None and not self.date_range.contains(alert.created_at):
            return False
        if self.entity_id and alert.entity_id != self.entity_id:
            return False
        return True

    def merged(self, **changes: Any) -> "AlertFilter":
        return replace(self, **changes)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_datetime(raw: Any) -> datetime:
    value = raw if isinstance(raw, datetime) else datetime.fromisoformat(str(raw))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_optional_datetime(raw: Any) -> Optional[datetime]:
    if raw in (None, ""):
        return None
    return _parse_datetime(raw)

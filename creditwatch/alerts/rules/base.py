from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol

from ...portfolio import PortfolioEntity, PortfolioSnapshot
from ..models import AlertSeverity, Trigger


class AlertRule(Protocol):
    name: str

    def evaluate(self, entity: PortfolioEntity, snapshot: PortfolioSnapshot) -> Iterable[Trigger]:
        ...


@dataclass(frozen=True)
class TierThresholds:
    """Critical/high/medium cut-offs for one rule family, all inclusive."""

    critical: float
    high: float
    medium: float

    def __post_init__(self) -> None:
        if not self.critical >= self.high >= self.medium:
            raise ValueError(
                f"Thresholds must satisfy critical >= high >= medium "
                f"(got {self.critical}, {self.high}, {self.medium})"
            )

    def tier_for(self, value: float) -> Optional[AlertSeverity]:
        if value >= self.critical:
            return AlertSeverity.CRITICAL
        if value >= self.high:
            return AlertSeverity.HIGH
        if value >= self.medium:
            return AlertSeverity.MEDIUM
        return None

    def threshold_for(self, severity: AlertSeverity) -> float:
        return {
            AlertSeverity.CRITICAL: self.critical,
            AlertSeverity.HIGH: self.high,
            AlertSeverity.MEDIUM: self.medium,
        }[severity]

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: "TierThresholds") -> "TierThresholds":
        return cls(
            critical=float(data.get("critical", defaults.critical)),
            high=float(data.get("high", defaults.high)),
            medium=float(data.get("medium", defaults.medium)),
        )

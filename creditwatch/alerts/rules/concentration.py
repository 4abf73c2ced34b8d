from __future__ import annotations

from typing import Iterable

from ...portfolio import PortfolioEntity, PortfolioSnapshot
from ..errors import MalformedEntityError
from ..models import AlertSeverity, AlertType, ConcentrationMetadata, Trigger
from .base import AlertRule, TierThresholds


DEFAULT_THRESHOLDS = TierThresholds(critical=0.25, high=0.20, medium=0.15)


class ConcentrationRule(AlertRule):
    """Share of the snapshot's total exposure held by a single entity."""

    name = "concentration"

    def __init__(self, thresholds: TierThresholds = DEFAULT_THRESHOLDS) -> None:
        self._thresholds = thresholds

    def evaluate(self, entity: PortfolioEntity, snapshot: PortfolioSnapshot) -> Iterable[Trigger]:
        exposure = entity.credit_exposure
        if exposure is None:
            raise MalformedEntityError(entity.entity_id, "credit_exposure")
        total = snapshot.total_exposure
        if total <= 0:
            return []

        concentration = exposure / total
        severity = self._thresholds.tier_for(concentration)
        if severity is None:
            return []

        percent = f"{concentration * 100:.1f}%"
        if severity is AlertSeverity.CRITICAL:
            title = f"Critical Concentration Risk - {entity.name}"
            message = (
                f"Exposure represents {percent} of total portfolio, "
                "exceeding concentration limits"
            )
        elif severity is AlertSeverity.HIGH:
            title = f"Concentration Alert - {entity.name}"
            message = f"Exposure represents {percent} of total portfolio"
        else:
            title = f"Concentration Watch - {entity.name}"
            message = f"Exposure represents {percent} of total portfolio, above the watch level"

        return [
            Trigger(
                type=AlertType.CONCENTRATION,
                severity=severity,
                entity_id=entity.entity_id,
                entity_name=entity.name,
                title=title,
                message=message,
                metadata=ConcentrationMetadata(
                    concentration=concentration,
                    exposure=exposure,
                    portfolio_exposure=total,
                    percentage=concentration * 100,
                ),
            )
        ]

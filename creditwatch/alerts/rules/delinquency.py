from __future__ import annotations

from typing import Iterable

from ...portfolio import PortfolioEntity, PortfolioSnapshot
from ..errors import MalformedEntityError
from ..models import AlertSeverity, AlertType, DelinquencyMetadata, Trigger
from .base import AlertRule, TierThresholds


DEFAULT_THRESHOLDS = TierThresholds(critical=90, high=60, medium=30)

_BUCKETS = {
    AlertSeverity.CRITICAL: "90+",
    AlertSeverity.HIGH: "60-90",
    AlertSeverity.MEDIUM: "30-60",
}


class DelinquencyRule(AlertRule):
    name = "delinquency"

    def __init__(self, thresholds: TierThresholds = DEFAULT_THRESHOLDS) -> None:
        self._thresholds = thresholds

    def evaluate(self, entity: PortfolioEntity, snapshot: PortfolioSnapshot) -> Iterable[Trigger]:
        if entity.days_past_due is None:
            raise MalformedEntityError(entity.entity_id, "days_past_due")

        dpd = int(entity.days_past_due)
        severity = self._thresholds.tier_for(entity.days_past_due)
        if severity is None:
            return []

        if severity is AlertSeverity.CRITICAL:
            title = f"Critical Delinquency - {entity.name}"
            message = f"Account is {dpd} days past due. Immediate action required."
        elif severity is AlertSeverity.HIGH:
            title = f"Delinquency Alert - {entity.name}"
            message = f"Account is {dpd} days past due. Escalation recommended."
        else:
            title = f"Early Delinquency Warning - {entity.name}"
            message = f"Account is {dpd} days past due."

        return [
            Trigger(
                type=AlertType.DELINQUENCY,
                severity=severity,
                entity_id=entity.entity_id,
                entity_name=entity.name,
                title=title,
                message=message,
                metadata=DelinquencyMetadata(
                    dpd=dpd,
                    exposure=entity.credit_exposure,
                    bucket=_BUCKETS[severity],
                ),
            )
        ]

from __future__ import annotations

from typing import Iterable

from ...portfolio import PortfolioEntity, PortfolioSnapshot
from ..errors import MalformedEntityError
from ..models import AlertSeverity, AlertType, CreditLimitMetadata, Trigger
from .base import AlertRule, TierThresholds


DEFAULT_THRESHOLDS = TierThresholds(critical=0.95, high=0.90, medium=0.85)


class CreditLimitRule(AlertRule):
    """Utilization of the approved limit: exposure / gross exposure."""

    name = "credit_limit"

    def __init__(self, thresholds: TierThresholds = DEFAULT_THRESHOLDS) -> None:
        self._thresholds = thresholds

    def evaluate(self, entity: PortfolioEntity, snapshot: PortfolioSnapshot) -> Iterable[Trigger]:
        exposure = entity.credit_exposure
        limit = entity.gross_credit_exposure
        if exposure is None:
            raise MalformedEntityError(entity.entity_id, "credit_exposure")
        if limit is None or limit <= 0:
            raise MalformedEntityError(entity.entity_id, "gross_credit_exposure")

        utilization = exposure / limit
        severity = self._thresholds.tier_for(utilization)
        if severity is None:
            return []

        threshold = self._thresholds.threshold_for(severity)
        percent = f"{utilization * 100:.1f}%"
        if severity is AlertSeverity.CRITICAL:
            title = f"Critical: Credit Limit Breach - {entity.name}"
            message = (
                f"Credit utilization at {percent}, exceeding the critical threshold "
                f"of {threshold * 100:.0f}%"
            )
        elif severity is AlertSeverity.HIGH:
            title = f"High Utilization Alert - {entity.name}"
            message = f"Credit utilization at {percent}, approaching limit"
        else:
            title = f"Utilization Watch - {entity.name}"
            message = f"Credit utilization at {percent}, above the {threshold * 100:.0f}% watch level"

        return [
            Trigger(
                type=AlertType.CREDIT_LIMIT,
                severity=severity,
                entity_id=entity.entity_id,
                entity_name=entity.name,
                title=title,
                message=message,
                metadata=CreditLimitMetadata(
                    utilization=utilization,
                    exposure=exposure,
                    limit=limit,
                    threshold=threshold,
                ),
            )
        ]

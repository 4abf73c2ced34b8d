from __future__ import annotations

import re
from typing import Iterable, Optional

from ...portfolio import PortfolioEntity, PortfolioSnapshot
from ..models import AlertSeverity, AlertType, RatingChangeMetadata, Trigger
from .base import AlertRule, TierThresholds


DEFAULT_THRESHOLDS = TierThresholds(critical=3, high=2, medium=1)

RATING_SCALE = {
    "AAA": 1,
    "AA": 2,
    "A": 3,
    "BBB": 4,
    "BB": 5,
    "B": 6,
    "CCC": 7,
    "CC": 8,
    "C": 9,
    "D": 10,
}
DEFAULT_RATING = "BBB"
UNKNOWN_RATING_SCORE = 4
# Internal grades at or below CCC are critical whatever the notch gap.
DISTRESSED_SCORE = 7

_MODIFIER = re.compile(r"[+-]")


def rating_score(rating: Optional[str]) -> int:
    """Map a letter grade such as ``BBB+`` onto the 1 (AAA) .. 10 (D) scale."""
    base = _MODIFIER.split(rating or "", maxsplit=1)[0].strip().upper() or DEFAULT_RATING
    return RATING_SCALE.get(base, UNKNOWN_RATING_SCORE)


class RatingDivergenceRule(AlertRule):
    """
    Flags entities whose internal rating sits below the external one.

    Only an internal rating worse than the external rating by at least the
    ``high`` notch gap fires, so the ``medium`` tier is never produced.
    """

    name = "rating_downgrade"

    def __init__(self, thresholds: TierThresholds = DEFAULT_THRESHOLDS) -> None:
        self._thresholds = thresholds

    def evaluate(self, entity: PortfolioEntity, snapshot: PortfolioSnapshot) -> Iterable[Trigger]:
        internal_score = rating_score(entity.internal_rating)
        external_score = rating_score(entity.external_rating)
        delta = abs(internal_score - external_score)

        if internal_score <= external_score or delta < self._thresholds.high:
            return []

        if internal_score >= DISTRESSED_SCORE or delta >= self._thresholds.critical:
            severity = AlertSeverity.CRITICAL
        else:
            severity = AlertSeverity.HIGH

        internal_label = entity.internal_rating or DEFAULT_RATING
        external_label = entity.external_rating or DEFAULT_RATING
        return [
            Trigger(
                type=AlertType.RATING_CHANGE,
                severity=severity,
                entity_id=entity.entity_id,
                entity_name=entity.name,
                title=f"Rating Divergence - {entity.name}",
                message=(
                    f"Internal rating ({internal_label}) is {delta} notches below "
                    f"external rating ({external_label})"
                ),
                metadata=RatingChangeMetadata(
                    internal_rating=entity.internal_rating,
                    external_rating=entity.external_rating,
                    delta=delta,
                    exposure=entity.credit_exposure,
                ),
            )
        ]

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..portfolio import PortfolioSnapshot
from .errors import MalformedEntityError
from .models import Trigger
from .registry import build_rules
from .rules.base import AlertRule


logger = logging.getLogger("creditwatch.engine")
debug_logger = logging.getLogger("creditwatch.debug.engine")


class RuleEngine:
    """
    Evaluates every configured rule family against each entity of a snapshot.

    Holds no state between passes, so one instance can serve concurrent
    evaluations of independent snapshots.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        rules: Optional[Sequence[AlertRule]] = None,
    ) -> None:
        self._rules: tuple[AlertRule, ...] = tuple(rules) if rules is not None else tuple(build_rules(config))

    @property
    def rules(self) -> tuple[AlertRule, ...]:
        return self._rules

    def evaluate(self, snapshot: PortfolioSnapshot) -> List[Trigger]:
        triggers: List[Trigger] = []
        skipped = 0
        for entity in snapshot.entities:
            for rule in self._rules:
                try:
                    triggers.extend(rule.evaluate(entity, snapshot))
                except MalformedEntityError as exc:
                    skipped += 1
                    debug_logger.debug(
                        "engine.rule_skipped",
                        extra={
                            "rule": rule.name,
                            "entity_id": exc.entity_id,
                            "field": exc.field_name,
                        },
                    )

        if skipped:
            logger.info(
                "Skipped %s rule evaluations on malformed entities (%s entities)",
                skipped,
                len(snapshot.entities),
            )
        debug_logger.info(
            "engine.evaluate",
            extra={
                "entities": len(snapshot.entities),
                "total_exposure": snapshot.total_exposure,
                "triggers": len(triggers),
            },
        )
        return triggers

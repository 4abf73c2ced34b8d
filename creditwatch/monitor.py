from __future__ import annotations

import logging
from typing import List

from .alerts.engine import RuleEngine
from .alerts.models import Alert, AlertSeverity
from .alerts.store import AlertStore
from .portfolio import PortfolioSource


logger = logging.getLogger("creditwatch.monitor")


class AlertMonitor:
    """One scan: snapshot the portfolio, evaluate the rules, ingest what qualifies."""

    def __init__(
        self,
        engine: RuleEngine,
        store: AlertStore,
        source: PortfolioSource,
        *,
        min_severity: AlertSeverity = AlertSeverity.HIGH,
    ) -> None:
        self._engine = engine
        self._store = store
        self._source = source
        self._min_severity = min_severity

    def scan_once(self) -> List[Alert]:
        snapshot = self._source.snapshot()
        triggers = self._engine.evaluate(snapshot)
        qualifying = [t for t in triggers if t.severity.at_least(self._min_severity)]
        created = self._store.ingest(qualifying)
        logger.info(
            "Portfolio scan: %s entities, %s triggers, %s alerts created (min severity %s)",
            len(snapshot.entities),
            len(triggers),
            len(created),
            self._min_severity.value,
        )
        return created

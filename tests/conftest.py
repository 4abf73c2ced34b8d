from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from creditwatch.alerts.models import (  # noqa: E402
    AlertSeverity,
    AlertType,
    CreditLimitMetadata,
    GenericMetadata,
    Trigger,
)


class FakeClock:
    """Returns a strictly increasing UTC time on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"alert-{next(counter)}"


@pytest.fixture
def make_trigger():
    def _make(
        alert_type: AlertType = AlertType.CREDIT_LIMIT,
        severity: AlertSeverity = AlertSeverity.CRITICAL,
        entity_id: str = "E1",
        title: str = "Limit breach",
    ) -> Trigger:
        if alert_type is AlertType.CREDIT_LIMIT:
            metadata = CreditLimitMetadata(utilization=0.97, exposure=9.7, limit=10.0, threshold=0.95)
        else:
            metadata = GenericMetadata(extra={"source": "test"})
        return Trigger(
            type=alert_type,
            severity=severity,
            entity_id=entity_id,
            entity_name=f"Entity {entity_id}",
            title=title,
            message=f"{title} for {entity_id}",
            metadata=metadata,
        )

    return _make

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from .alerts.engine import RuleEngine
from .alerts.persistence import AlertRepository, InMemoryAlertRepository, JsonFileAlertRepository
from .alerts.preferences import NotificationPreferences
from .alerts.store import AlertStore
from .config import AppConfig, StorageConfig
from .data.db import create_sqlite_engine
from .data.repository import SqlAlchemyAlertRepository
from .monitor import AlertMonitor
from .notifications.service import NotificationService
from .portfolio import FilePortfolioSource, PortfolioSource, StaticPortfolioSource


logger = logging.getLogger("creditwatch.environment")


@dataclass
class Environment:
    config: AppConfig
    engine: RuleEngine
    store: AlertStore
    notifications: NotificationService
    monitor: AlertMonitor
    repository: AlertRepository

    def close(self) -> None:
        self.notifications.close()
        close_fn = getattr(self.repository, "close", None)
        if callable(close_fn):
            close_fn()


def build_repository(storage: StorageConfig) -> AlertRepository:
    if storage.backend == "memory":
        return InMemoryAlertRepository()
    if storage.path is None:
        raise ValueError(f"storage.path is required for the '{storage.backend}' backend")
    if storage.backend == "sqlite":
        return SqlAlchemyAlertRepository(create_sqlite_engine(storage.path))
    return JsonFileAlertRepository(storage.path)


def _seed_preferences(store: AlertStore, configured: Any) -> None:
    """Apply configured preference defaults while the store is still pristine."""
    if not isinstance(configured, dict):
        return
    if len(store) or store.preferences != NotificationPreferences():
        return
    seeded = NotificationPreferences.from_dict(configured)
    if seeded != store.preferences:
        store.update_notification_preferences(**asdict(seeded))
        logger.info("Seeded notification preferences from configuration")


def initialize_environment(
    config: AppConfig,
    *,
    source: Optional[PortfolioSource] = None,
) -> Environment:
    section = config.creditwatch
    repository = build_repository(section.storage)
    notifications = NotificationService.from_config(section.notifications)
    store = AlertStore(repository, notifier=notifications.handle_alert)
    _seed_preferences(store, section.notifications.get("preferences"))

    if source is None:
        if section.portfolio.path is not None:
            source = FilePortfolioSource(section.portfolio.path)
        else:
            logger.warning("No portfolio path configured; scans will see an empty portfolio")
            source = StaticPortfolioSource([])

    engine = RuleEngine({"rules": section.rules})
    monitor = AlertMonitor(engine, store, source, min_severity=section.monitor.min_severity)
    return Environment(
        config=config,
        engine=engine,
        store=store,
        notifications=notifications,
        monitor=monitor,
        repository=repository,
    )

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .alerts.models import AlertSeverity


STORAGE_BACKENDS = ("json", "sqlite", "memory")


def _resolve_path(raw_path: Any, base_dir: Path) -> Path:
    path = Path(str(raw_path)).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


@dataclass
class StorageConfig:
    backend: str = "json"
    path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, base_dir: Path) -> "StorageConfig":
        backend = str(data.get("backend", "json")).strip().lower()
        if backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"storage.backend must be one of {', '.join(STORAGE_BACKENDS)} (got '{backend}')"
            )
        raw_path = data.get("path")
        if backend != "memory" and not raw_path:
            raw_path = "data/alerts.db" if backend == "sqlite" else "data/alerts.json"
        return cls(
            backend=backend,
            path=_resolve_path(raw_path, base_dir) if raw_path else None,
        )


@dataclass
class PortfolioConfig:
    path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, base_dir: Path) -> "PortfolioConfig":
        raw_path = data.get("path")
        return cls(path=_resolve_path(raw_path, base_dir) if raw_path else None)


@dataclass
class MonitorConfig:
    interval_minutes: float = 15.0
    min_severity: AlertSeverity = AlertSeverity.HIGH

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonitorConfig":
        interval = float(data.get("interval_minutes", 15))
        if interval <= 0:
            raise ValueError("monitor.interval_minutes must be positive")
        raw_severity = str(data.get("min_severity", AlertSeverity.HIGH.value)).strip().lower()
        try:
            min_severity = AlertSeverity(raw_severity)
        except ValueError as exc:
            raise ValueError(f"monitor.min_severity '{raw_severity}' is not a severity") from exc
        return cls(interval_minutes=interval, min_severity=min_severity)


@dataclass
class CreditWatchConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    portfolio: PortfolioConfig = field(default_factory=PortfolioConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    rules: Dict[str, Any] = field(default_factory=dict)
    notifications: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, base_dir: Path) -> "CreditWatchConfig":
        return cls(
            storage=StorageConfig.from_dict(data.get("storage") or {}, base_dir=base_dir),
            portfolio=PortfolioConfig.from_dict(data.get("portfolio") or {}, base_dir=base_dir),
            monitor=MonitorConfig.from_dict(data.get("monitor") or {}),
            rules=dict(data.get("rules") or {}),
            notifications=dict(data.get("notifications") or {}),
        )


@dataclass
class AppConfig:
    creditwatch: CreditWatchConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, base_dir: Path = Path(".")) -> "AppConfig":
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a mapping")
        section = data.get("creditwatch")
        if not isinstance(section, dict):
            raise ValueError("Configuration missing 'creditwatch' section")
        return cls(creditwatch=CreditWatchConfig.from_dict(section, base_dir=Path(base_dir)))


def app_config(file_path: str | Path) -> AppConfig:
    """Load the YAML config; relative paths resolve against the file's directory."""
    path = Path(file_path)
    with open(path, "r", encoding="utf-8") as file:
        config_dict = yaml.safe_load(file) or {}
    return AppConfig.from_dict(config_dict, base_dir=path.resolve().parent)

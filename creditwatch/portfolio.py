from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import yaml


logger = logging.getLogger("creditwatch.portfolio")


def _to_optional_float(value: Any) -> Optional[float]:
    if value in (None, "", "null") or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _to_optional_str(value: Any) -> Optional[str]:
    if value in (None, "", "null"):
        return None
    return str(value).strip() or None


@dataclass(frozen=True)
class PortfolioEntity:
    """A borrower record as supplied by the portfolio data source."""

    entity_id: str
    name: str
    credit_exposure: Optional[float] = None
    gross_credit_exposure: Optional[float] = None
    external_rating: Optional[str] = None
    internal_rating: Optional[str] = None
    days_past_due: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PortfolioEntity":
        entity_id = data.get("entity_id") or data.get("id")
        if not entity_id:
            raise ValueError("Portfolio entity missing 'entity_id'")
        name = data.get("name") or data.get("customer_name") or entity_id
        return cls(
            entity_id=str(entity_id),
            name=str(name),
            credit_exposure=_to_optional_float(data.get("credit_exposure")),
            gross_credit_exposure=_to_optional_float(data.get("gross_credit_exposure")),
            external_rating=_to_optional_str(data.get("external_rating")),
            internal_rating=_to_optional_str(data.get("internal_rating")),
            days_past_due=_to_optional_float(data.get("days_past_due")),
        )


@dataclass(frozen=True)
class PortfolioSnapshot:
    entities: Tuple[PortfolioEntity, ...]
    total_exposure: float

    @classmethod
    def from_entities(
        cls,
        entities: Iterable[PortfolioEntity],
        *,
        total_exposure: Optional[float] = None,
    ) -> "PortfolioSnapshot":
        items = tuple(entities)
        if total_exposure is None:
            total_exposure = sum(
                entity.credit_exposure for entity in items if entity.credit_exposure is not None
            )
        return cls(entities=items, total_exposure=float(total_exposure))


class PortfolioSource(Protocol):
    def snapshot(self) -> PortfolioSnapshot:
        ...


class StaticPortfolioSource:
    def __init__(self, entities: Sequence[PortfolioEntity]) -> None:
        self._entities = tuple(entities)

    def snapshot(self) -> PortfolioSnapshot:
        return PortfolioSnapshot.from_entities(self._entities)


class FilePortfolioSource:
    """
    Reads portfolio records from a YAML or JSON file on every snapshot.

    The file holds either a list of entity mappings or a mapping with an
    ``entities`` list and an optional ``total_exposure`` aggregate.
    Records without an id are skipped with a warning.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def snapshot(self) -> PortfolioSnapshot:
        with open(self._path, "r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or []

        total_exposure = None
        records = raw
        if isinstance(raw, dict):
            records = raw.get("entities") or []
            total_exposure = _to_optional_float(raw.get("total_exposure"))
        if not isinstance(records, list):
            raise ValueError(f"Portfolio file {self._path} must contain a list of entities")

        entities: List[PortfolioEntity] = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                logger.warning("Skipping portfolio record %s: not a mapping", index)
                continue
            try:
                entities.append(PortfolioEntity.from_dict(record))
            except ValueError as exc:
                logger.warning("Skipping portfolio record %s: %s", index, exc)
        return PortfolioSnapshot.from_entities(entities, total_exposure=total_exposure)

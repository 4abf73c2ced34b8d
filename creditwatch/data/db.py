from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List

from sqlalchemy import Engine, create_engine, event, insert, select, text
from sqlalchemy.engine import Connection

from .tables import alerts, metadata, notification_preferences, schema_migrations


logger = logging.getLogger("creditwatch.data")

SchemaStep = Callable[[Connection], None]


@dataclass(frozen=True)
class SchemaVersion:
    version: str
    apply: SchemaStep


_SCHEMA_VERSIONS: Dict[str, SchemaVersion] = {}


def register_schema_version(version: str, apply: SchemaStep) -> None:
    """Add a schema step; steps run in version order and only once per database."""
    if version in _SCHEMA_VERSIONS:
        raise ValueError(f"Schema version '{version}' already registered")
    _SCHEMA_VERSIONS[version] = SchemaVersion(version, apply)


def pending_versions(connection: Connection) -> List[SchemaVersion]:
    schema_migrations.create(connection, checkfirst=True)
    applied = set(connection.execute(select(schema_migrations.c.version)).scalars())
    return [step for key, step in sorted(_SCHEMA_VERSIONS.items()) if key not in applied]


def upgrade_schema(engine: Engine) -> List[str]:
    """Bring the alert database up to the latest registered version."""
    with engine.begin() as connection:
        steps = pending_versions(connection)
        for step in steps:
            step.apply(connection)
            connection.execute(
                insert(schema_migrations).values(
                    version=step.version,
                    applied_at=datetime.now(timezone.utc).replace(tzinfo=None),
                )
            )
    if steps:
        logger.info("Applied alert schema versions: %s", ", ".join(s.version for s in steps))
    return [step.version for step in steps]


def _enable_wal(dbapi_connection, _connection_record) -> None:  # type: ignore[override]
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


def create_sqlite_engine(db_file: Path, *, echo: bool = False) -> Engine:
    """Open (creating if needed) the SQLite alert database at ``db_file``."""
    db_file = Path(db_file)
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_file}",
        echo=echo,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _enable_wal)
    upgrade_schema(engine)
    return engine


def _create_alert_tables(connection: Connection) -> None:
    metadata.create_all(connection, tables=[alerts, notification_preferences])


def _index_alert_status(connection: Connection) -> None:
    connection.execute(text("CREATE INDEX IF NOT EXISTS idx_alerts_status ON alerts (status)"))


register_schema_version("0001_alert_tables", _create_alert_tables)
register_schema_version("0002_alert_status_index", _index_alert_status)

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)


metadata = MetaData()


alerts = Table(
    "alerts",
    metadata,
    Column("id", String(128), primary_key=True),
    Column("position", Integer, nullable=False),
    Column("type", String(32), nullable=False),
    Column("severity", String(16), nullable=False),
    Column("status", String(16), nullable=False),
    Column("title", String(255), nullable=False),
    Column("message", Text, nullable=False),
    Column("entity_id", String(128)),
    Column("entity_name", String(255)),
    Column("details", JSON, nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("read_at", DateTime),
    Column("dismissed_at", DateTime),
    Column("resolved_at", DateTime),
)

Index("idx_alerts_entity", alerts.c.entity_id)
Index("idx_alerts_created_at", alerts.c.created_at)

notification_preferences = Table(
    "notification_preferences",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("enable_sound", Boolean, nullable=False),
    Column("enable_desktop", Boolean, nullable=False),
    Column("enable_email", Boolean, nullable=False),
    Column("enable_sms", Boolean, nullable=False),
    Column("muted_types", JSON, nullable=False),
)

schema_migrations = Table(
    "schema_migrations",
    metadata,
    Column("version", String(64), primary_key=True),
    Column("applied_at", DateTime, nullable=False),
)

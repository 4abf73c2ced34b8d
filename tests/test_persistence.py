from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from creditwatch.alerts.errors import PersistenceError
from creditwatch.alerts.models import (
    Alert,
    AlertSeverity,
    AlertStatus,
    AlertType,
    ConcentrationMetadata,
    GenericMetadata,
    metadata_from_dict,
)
from creditwatch.alerts.persistence import JsonFileAlertRepository, StoredState
from creditwatch.alerts.preferences import NotificationPreferences
from creditwatch.alerts.store import AlertStore
from creditwatch.data.db import create_sqlite_engine, upgrade_schema
from creditwatch.data.repository import SqlAlchemyAlertRepository


def _sample_state() -> StoredState:
    created = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    alerts = [
        Alert(
            id="alert-1",
            type=AlertType.CONCENTRATION,
            severity=AlertSeverity.CRITICAL,
            status=AlertStatus.RESOLVED,
            title="Critical Concentration Risk - Acme",
            message="Exposure represents 27.0% of total portfolio",
            created_at=created,
            resolved_at=datetime(2024, 3, 2, 8, 0, tzinfo=timezone.utc),
            entity_id="C001",
            entity_name="Acme",
            metadata=ConcentrationMetadata(
                concentration=0.27,
                exposure=27.0,
                portfolio_exposure=100.0,
                percentage=27.0,
                resolution="Syndicated part of the facility",
            ),
        ),
        Alert(
            id="alert-2",
            type=AlertType.COVENANT,
            severity=AlertSeverity.MEDIUM,
            status=AlertStatus.UNREAD,
            title="Covenant headroom",
            message="Leverage covenant within 5% of limit",
            created_at=created,
            metadata=GenericMetadata(extra={"desk": "corporate"}),
        ),
    ]
    preferences = NotificationPreferences(
        enable_sound=False,
        enable_email=True,
        muted_types=frozenset({AlertType.ANOMALY}),
    )
    return StoredState(alerts=alerts, preferences=preferences)


def _assert_state_matches(loaded: StoredState, expected: StoredState) -> None:
    assert [a.id for a in loaded.alerts] == [a.id for a in expected.alerts]
    assert loaded.preferences == expected.preferences

    concentration = loaded.alerts[0]
    assert concentration.status is AlertStatus.RESOLVED
    assert concentration.created_at == expected.alerts[0].created_at
    assert concentration.resolved_at == expected.alerts[0].resolved_at
    assert isinstance(concentration.metadata, ConcentrationMetadata)
    assert concentration.metadata.percentage == 27.0
    assert concentration.metadata.resolution == "Syndicated part of the facility"

    covenant = loaded.alerts[1]
    assert covenant.entity_id is None
    assert covenant.metadata.extra == {"desk": "corporate"}


def test_json_repository_round_trip(tmp_path):
    repository = JsonFileAlertRepository(tmp_path / "state" / "alerts.json")
    state = _sample_state()

    repository.save(state)

    _assert_state_matches(repository.load(), state)


def test_json_repository_missing_file_is_empty(tmp_path):
    loaded = JsonFileAlertRepository(tmp_path / "absent.json").load()

    assert loaded.alerts == []
    assert loaded.preferences == NotificationPreferences()


def test_json_repository_rejects_corrupt_file(tmp_path):
    path = tmp_path / "alerts.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        JsonFileAlertRepository(path).load()


def test_json_repository_drops_unreadable_records(tmp_path):
    path = tmp_path / "alerts.json"
    state = _sample_state()
    JsonFileAlertRepository(path).save(state)
    document = json.loads(path.read_text(encoding="utf-8"))
    document["alerts"].append({"id": "bad", "type": "weather", "severity": "high", "created_at": "2024-01-01"})
    document["alerts"].append("not-a-record")
    path.write_text(json.dumps(document), encoding="utf-8")

    loaded = JsonFileAlertRepository(path).load()

    assert [a.id for a in loaded.alerts] == ["alert-1", "alert-2"]


def test_sqlite_repository_round_trip(tmp_path):
    engine = create_sqlite_engine(tmp_path / "db" / "alerts.db")
    repository = SqlAlchemyAlertRepository(engine)
    state = _sample_state()

    try:
        repository.save(state)
        _assert_state_matches(repository.load(), state)

        state.alerts.pop()
        repository.save(state)
        assert [a.id for a in repository.load().alerts] == ["alert-1"]
    finally:
        repository.close()


def test_sqlite_repository_reopens_existing_database(tmp_path):
    db_file = tmp_path / "alerts.db"
    first = SqlAlchemyAlertRepository(create_sqlite_engine(db_file))
    first.save(_sample_state())
    first.close()

    second = SqlAlchemyAlertRepository(create_sqlite_engine(db_file))
    try:
        store = AlertStore(second)
        assert len(store) == 2
        assert store.preferences.enable_email is True
    finally:
        second.close()


def test_metadata_falls_back_to_generic_on_mismatch():
    metadata = metadata_from_dict(AlertType.CREDIT_LIMIT, {"utilization": 0.9})

    assert isinstance(metadata, GenericMetadata)
    assert metadata.to_dict() == {"utilization": 0.9}


def test_metadata_keeps_unknown_keys():
    metadata = metadata_from_dict(
        AlertType.DELINQUENCY,
        {"dpd": 45, "bucket": "30-60", "collector": "team-b"},
    )

    assert metadata.dpd == 45
    assert metadata.extra == {"collector": "team-b"}
    assert metadata.to_dict()["collector"] == "team-b"


def test_naive_timestamps_are_read_as_utc():
    alert = Alert.from_dict(
        {
            "id": "a",
            "type": "delinquency",
            "severity": "high",
            "status": "read",
            "created_at": "2024-05-01T10:00:00",
            "read_at": "2024-05-01T11:00:00",
        }
    )

    assert alert.created_at.tzinfo is timezone.utc
    assert alert.read_at == datetime(2024, 5, 1, 11, 0, tzinfo=timezone.utc)


def test_schema_upgrade_runs_once(tmp_path):
    engine = create_sqlite_engine(tmp_path / "alerts.db")
    try:
        assert upgrade_schema(engine) == []
    finally:
        engine.dispose()


def test_json_repository_replaces_file_without_leftovers(tmp_path):
    path = tmp_path / "alerts.json"
    repository = JsonFileAlertRepository(path)
    repository.save(_sample_state())
    (tmp_path / "alerts.json.tmp").write_text("{truncated", encoding="utf-8")

    state = _sample_state()
    state.alerts.pop()
    repository.save(state)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["alerts.json"]
    assert [a.id for a in repository.load().alerts] == ["alert-1"]

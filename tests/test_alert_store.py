from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from creditwatch.alerts.errors import AlertNotFoundError, DuplicateAlertIdError, PersistenceError
from creditwatch.alerts.models import AlertFilter, AlertSeverity, AlertStatus, AlertType, CovenantMetadata, DateRange, Trigger
from creditwatch.alerts.persistence import InMemoryAlertRepository
from creditwatch.alerts.store import AlertStore
from creditwatch.logging_utils import setup_debug_logging


class FailingRepository(InMemoryAlertRepository):
    def __init__(self) -> None:
        super().__init__()
        self.fail = True

    def save(self, state) -> None:
        if self.fail:
            raise PersistenceError("disk full")
        super().save(state)


def _store(clock, id_factory, **kwargs) -> AlertStore:
    return AlertStore(clock=clock, id_factory=id_factory, **kwargs)


def test_ingest_creates_unread_alert_with_trigger_payload(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)

    created = store.ingest([make_trigger(entity_id="C001", title="Critical: Credit Limit Breach - Acme")])

    assert len(created) == 1
    alert = store.get(created[0].id)
    assert alert.status is AlertStatus.UNREAD
    assert alert.type is AlertType.CREDIT_LIMIT
    assert alert.severity is AlertSeverity.CRITICAL
    assert alert.entity_id == "C001"
    assert alert.title == "Critical: Credit Limit Breach - Acme"
    assert alert.metadata.utilization == pytest.approx(0.97)
    assert alert.read_at is None


def test_batch_shares_creation_time(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)

    created = store.ingest([make_trigger(entity_id="A"), make_trigger(entity_id="B")])

    assert created[0].created_at == created[1].created_at
    assert created[0].id != created[1].id


def test_query_orders_newest_first(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    first = store.ingest([make_trigger(entity_id="A")])[0]
    second = store.ingest([make_trigger(entity_id="B")])[0]
    third = store.ingest([make_trigger(entity_id="C")])[0]

    ordered = store.query()

    assert [alert.id for alert in ordered] == [third.id, second.id, first.id]
    assert all(a.created_at >= b.created_at for a, b in zip(ordered, ordered[1:]))


def test_query_ties_return_latest_ingested_first(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)

    created = store.ingest([make_trigger(entity_id="A"), make_trigger(entity_id="B")])

    assert [alert.id for alert in store.query()] == [created[1].id, created[0].id]


def test_mark_as_read_is_idempotent(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    alert_id = store.ingest([make_trigger()])[0].id

    first = store.mark_as_read(alert_id)
    second = store.mark_as_read(alert_id)

    assert first.status is AlertStatus.READ
    assert second.read_at == first.read_at
    assert store.unread_count() == 0


def test_lifecycle_never_moves_backwards(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    alert_id = store.ingest([make_trigger()])[0].id

    dismissed = store.dismiss(alert_id)
    assert dismissed.status is AlertStatus.DISMISSED

    assert store.mark_as_read(alert_id).status is AlertStatus.DISMISSED
    assert store.resolve(alert_id, "late note").status is AlertStatus.DISMISSED
    assert store.get(alert_id).metadata.resolution is None
    assert store.get(alert_id).read_at is None


def test_resolve_directly_from_unread_stores_resolution(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    alert_id = store.ingest([make_trigger()])[0].id

    resolved = store.resolve(alert_id, "Limit increased")

    assert resolved.status is AlertStatus.RESOLVED
    assert resolved.resolved_at is not None
    assert resolved.metadata.resolution == "Limit increased"
    assert store.dismiss(alert_id).status is AlertStatus.RESOLVED


def test_resolve_without_note_keeps_metadata(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    alert_id = store.ingest([make_trigger()])[0].id

    resolved = store.resolve(alert_id)

    assert resolved.metadata.resolution is None
    assert "resolution" not in resolved.metadata.to_dict()


def test_mark_all_as_read_and_counts(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    store.ingest(
        [
            make_trigger(severity=AlertSeverity.CRITICAL, entity_id="A"),
            make_trigger(severity=AlertSeverity.HIGH, entity_id="B"),
            make_trigger(severity=AlertSeverity.CRITICAL, entity_id="C"),
        ]
    )
    dismissed_id = store.query(AlertFilter(entity_id="C"))[0].id
    store.dismiss(dismissed_id)

    assert store.unread_count() == 2
    assert store.critical_unread_count() == 1

    assert store.mark_all_as_read() == 2
    assert store.unread_count() == 0
    assert store.critical_unread_count() == 0
    assert store.get(dismissed_id).status is AlertStatus.DISMISSED
    assert store.mark_all_as_read() == 0


def test_unknown_id_raises_and_leaves_store_unchanged(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    store.ingest([make_trigger()])

    for operation in (store.mark_as_read, store.dismiss, store.resolve, store.delete, store.get):
        with pytest.raises(AlertNotFoundError) as excinfo:
            operation("missing")
        assert excinfo.value.alert_id == "missing"

    assert len(store) == 1


def test_delete_and_clear_all(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    created = store.ingest([make_trigger(entity_id="A"), make_trigger(entity_id="B")])

    store.delete(created[0].id)

    assert len(store) == 1
    with pytest.raises(AlertNotFoundError):
        store.get(created[0].id)

    store.clear_all()
    assert len(store) == 0
    assert store.query() == []


def test_filters_combine_with_and(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    store.ingest(
        [
            make_trigger(AlertType.CREDIT_LIMIT, AlertSeverity.CRITICAL, "A"),
            make_trigger(AlertType.DELINQUENCY, AlertSeverity.CRITICAL, "A"),
            make_trigger(AlertType.CREDIT_LIMIT, AlertSeverity.HIGH, "B"),
        ]
    )

    assert len(store.query(AlertFilter(types=frozenset({AlertType.CREDIT_LIMIT})))) == 2
    assert len(store.query(AlertFilter(severities=frozenset({AlertSeverity.CRITICAL})))) == 2
    combined = store.query(
        AlertFilter(types=frozenset({AlertType.CREDIT_LIMIT}), severities=frozenset({AlertSeverity.CRITICAL}))
    )
    assert [(a.type, a.entity_id) for a in combined] == [(AlertType.CREDIT_LIMIT, "A")]
    assert len(store.query(AlertFilter(types=frozenset()))) == 3
    assert len(store.alerts_for_entity("A")) == 2
    assert len(store.alerts_by_type(AlertType.DELINQUENCY)) == 1
    assert store.query(AlertFilter(statuses=frozenset({AlertStatus.RESOLVED}))) == []


def test_date_range_filter_is_inclusive(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    first = store.ingest([make_trigger(entity_id="A")])[0]
    second = store.ingest([make_trigger(entity_id="B")])[0]
    store.ingest([make_trigger(entity_id="C")])

    window = DateRange(start=first.created_at, end=second.created_at)
    matched = store.query(AlertFilter(date_range=window))

    assert [alert.id for alert in matched] == [second.id, first.id]
    later = DateRange(start=second.created_at + timedelta(days=1), end=second.created_at + timedelta(days=2))
    assert store.query(AlertFilter(date_range=later)) == []


def test_duplicate_id_across_batches_rejected(clock, make_trigger):
    store = AlertStore(clock=clock, id_factory=lambda: "same-id")
    store.ingest([make_trigger()])

    with pytest.raises(DuplicateAlertIdError):
        store.ingest([make_trigger(entity_id="B")])

    assert len(store) == 1


def test_duplicate_id_within_batch_rejects_whole_batch(clock, make_trigger):
    store = AlertStore(clock=clock, id_factory=lambda: "same-id")

    with pytest.raises(DuplicateAlertIdError):
        store.ingest([make_trigger(entity_id="A"), make_trigger(entity_id="B")])

    assert len(store) == 0


def test_returned_alerts_are_copies(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    created = store.ingest([make_trigger()])[0]

    created.status = AlertStatus.RESOLVED
    created.metadata.resolution = "tampered"
    listed = store.query()[0]
    listed.title = "changed"

    stored = store.get(created.id)
    assert stored.status is AlertStatus.UNREAD
    assert stored.metadata.resolution is None
    assert stored.title != "changed"


def test_notifier_receives_new_alerts_except_muted_types(clock, id_factory, make_trigger):
    received = []
    store = _store(clock, id_factory, notifier=lambda alert, prefs: received.append(alert.type))
    store.mute_alert_type(AlertType.DELINQUENCY)

    store.ingest(
        [
            make_trigger(AlertType.CREDIT_LIMIT, entity_id="A"),
            make_trigger(AlertType.DELINQUENCY, entity_id="B"),
        ]
    )

    assert received == [AlertType.CREDIT_LIMIT]
    assert len(store) == 2


def test_failing_notifier_does_not_break_ingest(clock, id_factory, make_trigger):
    def notifier(alert, prefs):
        raise RuntimeError("smtp down")

    store = _store(clock, id_factory, notifier=notifier)

    created = store.ingest([make_trigger(entity_id="A"), make_trigger(entity_id="B")])

    assert len(created) == 2
    assert len(store) == 2


def test_persistence_failure_keeps_memory_state(clock, id_factory, make_trigger):
    repository = FailingRepository()
    store = _store(clock, id_factory, repository=repository)

    created = store.ingest([make_trigger()])

    assert isinstance(store.last_persistence_error, PersistenceError)
    assert store.get(created[0].id).status is AlertStatus.UNREAD

    repository.fail = False
    store.mark_as_read(created[0].id)
    assert store.last_persistence_error is None


def test_state_survives_reload(clock, id_factory, make_trigger):
    repository = InMemoryAlertRepository()
    store = _store(clock, id_factory, repository=repository)
    created = store.ingest([make_trigger(entity_id="A"), make_trigger(entity_id="B")])
    store.resolve(created[0].id, "Paid down")
    store.update_notification_preferences(enable_sound=False)

    reloaded = AlertStore(repository)

    assert [a.id for a in reloaded.query()] == [a.id for a in store.query()]
    assert reloaded.get(created[0].id).metadata.resolution == "Paid down"
    assert reloaded.preferences.enable_sound is False
    assert repository.save_count == 3


def test_read_only_calls_do_not_persist(clock, id_factory, make_trigger):
    repository = InMemoryAlertRepository()
    store = _store(clock, id_factory, repository=repository)
    alert_id = store.ingest([make_trigger()])[0].id
    store.mark_as_read(alert_id)
    saves = repository.save_count

    store.mark_as_read(alert_id)
    store.mark_all_as_read()
    store.query()
    store.unread_count()

    assert repository.save_count == saves


def test_select_alert_marks_read_and_clears_on_delete(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    alert_id = store.ingest([make_trigger()])[0].id

    selected = store.select_alert(alert_id)

    assert selected.status is AlertStatus.READ
    assert store.selected_alert.id == alert_id

    store.delete(alert_id)
    assert store.selected_alert is None

    with pytest.raises(AlertNotFoundError):
        store.select_alert("missing")
    assert store.select_alert(None) is None


def test_active_filter_drives_filtered_alerts(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    store.ingest(
        [
            make_trigger(AlertType.CREDIT_LIMIT, AlertSeverity.CRITICAL, "A"),
            make_trigger(AlertType.CONCENTRATION, AlertSeverity.HIGH, "B"),
        ]
    )

    store.set_filter(types={"concentration"})
    assert [a.entity_id for a in store.filtered_alerts()] == ["B"]

    store.set_filter(severities={AlertSeverity.CRITICAL})
    assert store.filtered_alerts() == []

    store.clear_filter()
    assert len(store.filtered_alerts()) == 2


def test_preferences_mute_and_validation(clock, id_factory):
    store = _store(clock, id_factory)

    store.mute_alert_type(AlertType.CONCENTRATION)
    store.mute_alert_type(AlertType.CONCENTRATION)
    assert store.preferences.muted_types == frozenset({AlertType.CONCENTRATION})

    store.unmute_alert_type(AlertType.CONCENTRATION)
    assert store.preferences.muted_types == frozenset()

    with pytest.raises(ValueError):
        store.update_notification_preferences(enable_fax=True)


def test_concurrent_ingest_keeps_every_alert(make_trigger):
    store = AlertStore()

    def worker(prefix: str) -> None:
        for index in range(25):
            store.ingest([make_trigger(entity_id=f"{prefix}-{index}")])
            store.unread_count()

    threads = [threading.Thread(target=worker, args=(f"T{n}",)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store) == 100
    assert store.unread_count() == 100


def test_ingest_notifies_with_debug_event_logging_enabled(tmp_path, clock, id_factory, make_trigger):
    logger = setup_debug_logging(tmp_path)
    received = []
    store = _store(clock, id_factory, notifier=lambda alert, prefs: received.append(alert.id))

    created = store.ingest([make_trigger(entity_id="A")])
    for handler in logger.handlers:
        handler.flush()

    assert received == [created[0].id]
    assert "store.ingest" in (tmp_path / "logs" / "debug.log").read_text(encoding="utf-8")


def test_plain_mapping_metadata_is_typed_on_ingest(clock, id_factory):
    store = _store(clock, id_factory)
    trigger = Trigger(
        type=AlertType.COVENANT,
        severity=AlertSeverity.MEDIUM,
        entity_id="C009",
        entity_name="Delta",
        title="Covenant headroom - Delta",
        message="Debt to equity within 5% of limit",
        metadata={"covenant": "d/e", "desk": "corporate"},
    )
    alert_id = store.ingest([trigger])[0].id

    resolved = store.resolve(alert_id, "Waiver signed")

    assert resolved.status is AlertStatus.RESOLVED
    assert isinstance(resolved.metadata, CovenantMetadata)
    assert resolved.metadata.covenant == "d/e"
    assert resolved.metadata.extra == {"desk": "corporate"}
    assert resolved.metadata.resolution == "Waiver signed"


def test_set_filter_with_none_clears_that_predicate(clock, id_factory, make_trigger):
    store = _store(clock, id_factory)
    store.ingest(
        [
            make_trigger(AlertType.CREDIT_LIMIT, AlertSeverity.CRITICAL, "A"),
            make_trigger(AlertType.CONCENTRATION, AlertSeverity.CRITICAL, "B"),
        ]
    )
    store.set_filter(types={AlertType.CREDIT_LIMIT}, severities={AlertSeverity.CRITICAL})
    assert [a.entity_id for a in store.filtered_alerts()] == ["A"]

    active = store.set_filter(types=None)

    assert active.types == frozenset()
    assert active.severities == frozenset({AlertSeverity.CRITICAL})
    assert len(store.filtered_alerts()) == 2

from datetime import timedelta

from reminder_service.errors import PersistenceError
from reminder_service.events import REMINDER_CREATED, REMINDER_SNOOZED, REMINDERS_BULK_CANCELLED, REMINDERS_BULK_DELETED
from reminder_service.schemas import ReminderStatus
from tests.conftest import T0


def test_bulk_create_reports_per_item(bulk, publisher, make_request):
    result = bulk.bulk_create([
        make_request(title="one"),
        make_request(title="two", type="bogus"),
        make_request(title="three"),
    ])

    assert result.successful == 2
    assert result.failed == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith("two: ")
    assert len(publisher.of(REMINDER_CREATED)) == 2


def test_bulk_create_empty(bulk):
    result = bulk.bulk_create([])
    assert (result.successful, result.failed, result.errors) == (0, 0, [])


def test_bulk_snooze_valid_duration(bulk, service, publisher, make_request):
    a = service.create(make_request())
    b = service.create(make_request())

    result = bulk.bulk_snooze([a.id, "missing", b.id], "30m")

    assert result.successful == 2
    assert result.failed == 1
    assert result.errors[0].startswith("missing: ")
    assert service.get(a.id).remind_at == T0 + timedelta(minutes=30)
    assert len(publisher.of(REMINDER_SNOOZED)) == 2


def test_bulk_snooze_invalid_duration_fails_every_item(bulk, service, make_request):
    a = service.create(make_request())
    b = service.create(make_request())

    result = bulk.bulk_snooze([a.id, b.id], "later")

    assert result.successful == 0
    assert result.failed == 2
    assert len(result.errors) == 2
    assert service.get(a.id).remind_at == a.remind_at


def test_bulk_complete(bulk, service, make_request):
    a = service.create(make_request())
    b = service.create(make_request())
    service.cancel(b.id)

    result = bulk.bulk_complete([a.id, b.id])

    assert result.successful == 1
    assert result.failed == 1
    assert service.get(a.id).status == ReminderStatus.COMPLETED
    assert service.get(b.id).status == ReminderStatus.CANCELLED


def test_bulk_cancel_counts_matches(bulk, service, publisher, make_request):
    a = service.create(make_request())
    b = service.create(make_request())
    done = service.create(make_request())
    service.complete(done.id)

    result = bulk.bulk_cancel([a.id, b.id, done.id, "missing"])

    assert result.successful == 2
    assert result.failed == 2
    assert result.errors == []
    assert service.get(a.id).status == ReminderStatus.CANCELLED
    assert service.get(done.id).status == ReminderStatus.COMPLETED
    payload = publisher.of(REMINDERS_BULK_CANCELLED)[0]
    assert payload["cancelled"] == 2
    assert payload["ids"] == [a.id, b.id, done.id, "missing"]


def test_bulk_cancel_store_failure(bulk, store, monkeypatch, make_request):
    def boom(*args, **kwargs):
        raise PersistenceError("database unavailable")

    monkeypatch.setattr(store, "bulk_update_status", boom)

    result = bulk.bulk_cancel(["a", "b", "c"])

    assert result.successful == 0
    assert result.failed == 3
    assert result.errors == ["database unavailable"]


def test_bulk_delete(bulk, service, publisher, make_request):
    a = service.create(make_request())
    b = service.create(make_request())

    result = bulk.bulk_delete([a.id, b.id, "missing"])

    assert result.successful == 2
    assert result.failed == 1
    assert service.list_for_user("u1").total == 0
    assert publisher.of(REMINDERS_BULK_DELETED) == [{"ids": [a.id, b.id, "missing"], "deleted": 2}]


def test_bulk_publish_failure_is_swallowed(bulk, service, publisher, make_request):
    a = service.create(make_request())
    publisher.fail = True

    result = bulk.bulk_cancel([a.id])

    assert result.successful == 1
    assert service.get(a.id).status == ReminderStatus.CANCELLED


def test_bulk_create_survives_malformed_items(bulk, service, make_request):
    result = bulk.bulk_create([None, ["not", "a", "request"], "text", make_request(title="valid")])

    assert result.successful == 1
    assert result.failed == 3
    assert all(error.startswith("<untitled>: ") for error in result.errors)
    assert [r.title for r in service.list_for_user("u1").data] == ["valid"]


def test_bulk_delete_removes_snooze_history(bulk, service, make_request):
    a = service.create(make_request())
    b = service.create(make_request())
    service.snooze(a.id, "5m")
    service.snooze(b.id, "5m")

    bulk.bulk_delete([a.id])

    assert service.snooze_history(a.id) == []
    assert len(service.snooze_history(b.id)) == 1

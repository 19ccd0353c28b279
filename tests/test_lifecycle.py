from datetime import timedelta

import pytest

from reminder_service.errors import InvalidDurationError, InvalidTransitionError, NotFoundError, ValidationError
from reminder_service.events import (
    REMINDER_CANCELLED,
    REMINDER_COMPLETED,
    REMINDER_CREATED,
    REMINDER_DELETED,
    REMINDER_SNOOZED,
    REMINDER_UPDATED,
)
from reminder_service.lifecycle import ALLOWED_TRANSITIONS, can_transition
from reminder_service.schemas import PageParams, ReminderStatus, ReminderUpdate
from tests.conftest import T0


class TestCreate:
    def test_create_forces_pending_and_publishes(self, service, publisher, make_request):
        reminder = service.create(make_request(status="completed"))

        assert reminder.status == ReminderStatus.PENDING
        assert reminder.created_at == T0
        assert reminder.updated_at == T0
        assert publisher.topics() == [REMINDER_CREATED]
        payload = publisher.of(REMINDER_CREATED)[0]
        assert payload == {
            "reminder_id": reminder.id,
            "user_id": "u1",
            "workspace_id": "w1",
            "remind_at": (T0 + timedelta(hours=1)).isoformat(),
        }

    def test_create_persists_all_fields(self, service, make_request):
        created = service.create(make_request(
            description="daily sync",
            priority="high",
            metadata={"source": "slash", "tags": ["a", "b"], "n": 3},
            recurrence={"pattern": "weekly", "interval": 2, "days_of_week": [0, 3]},
        ))
        stored = service.get(created.id)

        assert stored == created
        assert stored.priority.value == "high"
        assert stored.metadata == {"source": "slash", "tags": ["a", "b"], "n": 3}
        assert stored.recurrence.interval == 2
        assert stored.recurrence.days_of_week == [0, 3]

    @pytest.mark.parametrize("field", ["user_id", "workspace_id", "title"])
    def test_create_requires_identity_and_title(self, service, publisher, make_request, field):
        with pytest.raises(ValidationError):
            service.create(make_request(**{field: "  "}))
        assert publisher.events == []

    def test_create_rejects_unknown_type_and_pattern(self, service, make_request):
        with pytest.raises(ValidationError):
            service.create(make_request(type="alarm"))
        with pytest.raises(ValidationError):
            service.create(make_request(recurrence={"pattern": "hourly"}))

    def test_create_rejects_zero_interval(self, service, make_request):
        with pytest.raises(ValidationError):
            service.create(make_request(recurrence={"pattern": "daily", "interval": 0}))

    def test_create_rejects_unbounded_interval(self, service, publisher, make_request):
        with pytest.raises(ValidationError):
            service.create(make_request(recurrence={"pattern": "yearly", "interval": 10000}))
        assert publisher.events == []

    def test_publish_failure_does_not_undo_create(self, service, publisher, make_request):
        publisher.fail = True
        reminder = service.create(make_request())

        assert service.get(reminder.id).status == ReminderStatus.PENDING

    def test_get_unknown_id(self, service):
        with pytest.raises(NotFoundError):
            service.get("missing")


class TestTransitions:
    def test_terminal_states_have_no_exits(self):
        assert ALLOWED_TRANSITIONS[ReminderStatus.COMPLETED] == frozenset()
        assert ALLOWED_TRANSITIONS[ReminderStatus.CANCELLED] == frozenset()

    def test_pending_exits(self):
        assert can_transition(ReminderStatus.PENDING, ReminderStatus.TRIGGERED)
        assert can_transition(ReminderStatus.PENDING, ReminderStatus.CANCELLED)
        assert not can_transition(ReminderStatus.TRIGGERED, ReminderStatus.PENDING)

    def test_cancel_is_idempotent(self, service, publisher, make_request):
        reminder = service.create(make_request())
        first = service.cancel(reminder.id)
        second = service.cancel(reminder.id)

        assert first.status == ReminderStatus.CANCELLED
        assert second.status == ReminderStatus.CANCELLED
        assert len(publisher.of(REMINDER_CANCELLED)) == 1

    def test_cancel_completed_is_rejected(self, service, make_request):
        reminder = service.create(make_request())
        service.complete(reminder.id)

        with pytest.raises(InvalidTransitionError):
            service.cancel(reminder.id)
        assert service.get(reminder.id).status == ReminderStatus.COMPLETED

    def test_complete_is_idempotent_and_publishes_once(self, service, publisher, make_request):
        reminder = service.create(make_request())
        service.complete(reminder.id)
        service.complete(reminder.id)

        assert len(publisher.of(REMINDER_COMPLETED)) == 1

    def test_complete_cancelled_is_rejected(self, service, make_request):
        reminder = service.create(make_request())
        service.cancel(reminder.id)

        with pytest.raises(InvalidTransitionError):
            service.complete(reminder.id)

    def test_cancel_unknown_id(self, service):
        with pytest.raises(NotFoundError):
            service.cancel("missing")


class TestSnooze:
    def test_snooze_moves_remind_at_from_now(self, service, publisher, clock, make_request):
        reminder = service.create(make_request())
        clock.advance(minutes=5)

        snoozed = service.snooze(reminder.id, "15m")

        expected = T0 + timedelta(minutes=20)
        assert snoozed.remind_at == expected
        assert snoozed.status == ReminderStatus.PENDING
        stored = service.get(reminder.id)
        assert stored.remind_at == expected
        assert stored.updated_at == clock.now
        assert publisher.of(REMINDER_SNOOZED) == [{
            "reminder_id": reminder.id,
            "user_id": "u1",
            "new_time": expected.isoformat(),
        }]

    def test_invalid_duration_leaves_reminder_untouched(self, service, publisher, make_request):
        reminder = service.create(make_request())

        with pytest.raises(InvalidDurationError):
            service.snooze(reminder.id, "soon")
        assert service.get(reminder.id) == reminder
        assert publisher.of(REMINDER_SNOOZED) == []

    def test_snooze_terminal_is_rejected(self, service, make_request):
        reminder = service.create(make_request())
        service.cancel(reminder.id)

        with pytest.raises(InvalidTransitionError):
            service.snooze(reminder.id, "1h")

    def test_snooze_triggered_rearms(self, service, store, clock, make_request):
        reminder = service.create(make_request(remind_at=T0))
        assert service.trigger(reminder).fired

        service.snooze(reminder.id, "1h")

        stored = service.get(reminder.id)
        assert stored.status == ReminderStatus.PENDING
        assert [r.id for r in store.get_pending_due_before(T0 + timedelta(hours=2))] == [reminder.id]

    def test_snooze_history_newest_first(self, service, clock, make_request):
        reminder = service.create(make_request())
        service.snooze(reminder.id, "10m")
        clock.advance(minutes=1)
        service.snooze(reminder.id, "2h")

        history = service.snooze_history(reminder.id)

        assert [h.duration for h in history] == ["2h", "10m"]
        assert history[0].new_time == clock.now + timedelta(hours=2)
        assert history[0].user_id == "u1"

    def test_snooze_unknown_id(self, service):
        with pytest.raises(NotFoundError):
            service.snooze("missing", "5m")

    @pytest.mark.parametrize("duration", ["99999999999d", "9999999d"])
    def test_snooze_out_of_range_leaves_reminder_untouched(self, service, publisher, make_request, duration):
        reminder = service.create(make_request())

        with pytest.raises(InvalidDurationError):
            service.snooze(reminder.id, duration)
        assert service.get(reminder.id) == reminder
        assert service.snooze_history(reminder.id) == []
        assert publisher.of(REMINDER_SNOOZED) == []


class TestUpdate:
    def test_partial_update_keeps_other_fields(self, service, publisher, make_request):
        reminder = service.create(make_request(description="keep me", metadata={"k": "v"}))

        updated = service.update(reminder.id, {"title": "Retro", "description": "", "metadata": {}})

        assert updated.title == "Retro"
        assert updated.description == "keep me"
        assert updated.metadata == {"k": "v"}
        assert publisher.of(REMINDER_UPDATED) == [{"reminder_id": reminder.id, "user_id": "u1"}]

    def test_update_accepts_model(self, service, make_request):
        reminder = service.create(make_request())
        updated = service.update(reminder.id, ReminderUpdate(priority="urgent"))
        assert updated.priority.value == "urgent"

    def test_update_can_cancel(self, service, make_request):
        reminder = service.create(make_request())
        updated = service.update(reminder.id, {"status": "cancelled"})
        assert updated.status == ReminderStatus.CANCELLED

    def test_update_rejects_illegal_status(self, service, make_request):
        reminder = service.create(make_request())
        service.complete(reminder.id)

        with pytest.raises(InvalidTransitionError):
            service.update(reminder.id, {"status": "pending"})

    def test_update_cannot_trigger(self, service, make_request):
        reminder = service.create(make_request())
        with pytest.raises(ValidationError):
            service.update(reminder.id, {"status": "triggered"})
        assert service.get(reminder.id).status == ReminderStatus.PENDING

    def test_update_unknown_id(self, service):
        with pytest.raises(NotFoundError):
            service.update("missing", {"title": "x"})


class TestReads:
    def test_delete_publishes(self, service, publisher, make_request):
        reminder = service.create(make_request())
        service.delete(reminder.id)

        with pytest.raises(NotFoundError):
            service.get(reminder.id)
        assert publisher.of(REMINDER_DELETED) == [{"reminder_id": reminder.id, "user_id": "u1"}]

    def test_delete_removes_snooze_history(self, service, make_request):
        reminder = service.create(make_request())
        service.snooze(reminder.id, "5m")

        service.delete(reminder.id)

        assert service.snooze_history(reminder.id) == []

    def test_list_for_user_paginates_by_remind_at(self, service, make_request):
        ids = [
            service.create(make_request(title=f"r{i}", remind_at=T0 + timedelta(hours=5 - i))).id
            for i in range(5)
        ]
        service.create(make_request(user_id="someone-else"))

        page = service.list_for_user("u1", page=PageParams(page=2, per_page=2))

        assert page.total == 5
        assert page.total_pages == 3
        assert page.page == 2
        assert [r.title for r in page.data] == ["r2", "r1"]
        assert set(ids) >= {r.id for r in page.data}

    def test_list_for_user_filters_status(self, service, make_request):
        keep = service.create(make_request())
        gone = service.create(make_request())
        service.cancel(gone.id)

        page = service.list_for_user("u1", status=ReminderStatus.PENDING)

        assert [r.id for r in page.data] == [keep.id]

    def test_page_params_are_normalized(self, service, make_request):
        service.create(make_request())
        page = service.list_for_workspace("w1", page=PageParams(page=0, per_page=500))

        assert page.page == 1
        assert page.per_page == 100
        assert page.total_pages == 1

    def test_list_for_channel(self, service, make_request):
        service.create(make_request(channel_id="c2"))
        service.create(make_request(channel_id="c1"))

        page = service.list_for_channel("c2")

        assert page.total == 1
        assert page.data[0].channel_id == "c2"

    def test_empty_listing(self, service):
        page = service.list_for_user("nobody")
        assert page.total == 0
        assert page.total_pages == 0
        assert page.data == []

    def test_stats(self, service, clock, make_request):
        service.create(make_request(remind_at=T0 - timedelta(hours=1)))
        service.create(make_request(remind_at=T0 + timedelta(hours=1), type="task"))
        done = service.create(make_request())
        service.complete(done.id)

        stats = service.stats("u1")

        assert stats.total == 3
        assert stats.by_status["pending"] == 2
        assert stats.by_status["completed"] == 1
        assert stats.by_status["cancelled"] == 0
        assert stats.by_type == {"message": 2, "task": 1, "custom": 0}
        assert stats.upcoming == 1
        assert stats.overdue == 1

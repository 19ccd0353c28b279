"""
Reminder lifecycle service - owns every status transition and the event it emits
"""
import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .durations import parse_duration
from .errors import InvalidDurationError, InvalidTransitionError, PersistenceError, PublishError, ValidationError
from .events import (
    NOTIFICATION_SEND,
    REMINDER_CANCELLED,
    REMINDER_COMPLETED,
    REMINDER_CREATED,
    REMINDER_DELETED,
    REMINDER_SNOOZED,
    REMINDER_UPDATED,
)
from .metrics import (
    event_publish_failures_total,
    reminder_successors_created_total,
    reminders_created_total,
    reminders_triggered_total,
)
from .ports import EventPublisher, ReminderStore
from .recurrence import RecurrenceCalculator
from .schemas import (
    Page,
    PageParams,
    Reminder,
    ReminderCreate,
    ReminderStats,
    ReminderStatus,
    ReminderUpdate,
    SnoozeHistoryEntry,
)
from .utils.timezone import isoformat_utc, utcnow

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[ReminderStatus, frozenset] = {
    ReminderStatus.PENDING: frozenset({
        ReminderStatus.TRIGGERED,
        ReminderStatus.SNOOZED,
        ReminderStatus.CANCELLED,
        ReminderStatus.COMPLETED,
    }),
    ReminderStatus.SNOOZED: frozenset({ReminderStatus.PENDING, ReminderStatus.CANCELLED}),
    ReminderStatus.TRIGGERED: frozenset({ReminderStatus.COMPLETED, ReminderStatus.CANCELLED}),
    ReminderStatus.COMPLETED: frozenset(),
    ReminderStatus.CANCELLED: frozenset(),
}


def can_transition(current: ReminderStatus, target: ReminderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class TriggerResult:
    reminder_id: str
    fired: bool
    successor: Optional[Reminder] = None


def _validation_message(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "request"
        parts.append(f"{loc}: {item.get('msg')}")
    return "; ".join(parts)


class ReminderLifecycleService:
    """Applies create/update/snooze/cancel/complete/trigger and publishes one event per change.

    Every state change is written to the store before its event is published.
    A publish failure is logged and never undoes the write.
    """

    def __init__(
        self,
        store: ReminderStore,
        publisher: EventPublisher,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.publisher = publisher
        self.clock = clock

    def publish_event(self, topic: str, payload: Dict[str, Any]) -> None:
        try:
            self.publisher.publish(topic, payload)
        except PublishError as e:
            event_publish_failures_total.inc()
            logger.warning(f"⚠️  [Events] Dropped {topic} for reminder {payload.get('reminder_id')}: {e}")

    # Create / read

    def create(self, request: Union[ReminderCreate, Mapping[str, Any]]) -> Reminder:
        if isinstance(request, ReminderCreate):
            data = request
        else:
            try:
                data = ReminderCreate.model_validate(request)
            except PydanticValidationError as e:
                raise ValidationError(_validation_message(e)) from e

        reminder = self.store.create(data, self.clock())
        reminders_created_total.inc()
        logger.info(f"🆕 [Reminders] Created {reminder.id} for user {reminder.user_id} at {reminder.remind_at.isoformat()}")

        self.publish_event(REMINDER_CREATED, {
            "reminder_id": reminder.id,
            "user_id": reminder.user_id,
            "workspace_id": reminder.workspace_id,
            "remind_at": isoformat_utc(reminder.remind_at),
        })
        return reminder

    def get(self, reminder_id: str) -> Reminder:
        return self.store.get_by_id(reminder_id)

    def list_for_user(
        self,
        user_id: str,
        status: Optional[ReminderStatus] = None,
        page: Optional[PageParams] = None,
    ) -> Page:
        params = (page or PageParams()).normalized()
        data, total = self.store.list_by_user(user_id, status, params)
        return Page.build(data, total, params)

    def list_for_workspace(
        self,
        workspace_id: str,
        status: Optional[ReminderStatus] = None,
        page: Optional[PageParams] = None,
    ) -> Page:
        params = (page or PageParams()).normalized()
        data, total = self.store.list_by_workspace(workspace_id, status, params)
        return Page.build(data, total, params)

    def list_for_channel(self, channel_id: str, page: Optional[PageParams] = None) -> Page:
        params = (page or PageParams()).normalized()
        data, total = self.store.list_by_channel(channel_id, params)
        return Page.build(data, total, params)

    def stats(self, user_id: str) -> ReminderStats:
        return self.store.stats(user_id, self.clock())

    def snooze_history(self, reminder_id: str) -> List[SnoozeHistoryEntry]:
        return self.store.list_snooze_history(reminder_id)

    def get_due_reminders(self, now: datetime, limit: Optional[int] = None) -> List[Reminder]:
        return self.store.get_pending_due_before(now, limit=limit)

    # Transitions

    def update(self, reminder_id: str, request: Union[ReminderUpdate, Mapping[str, Any]]) -> Reminder:
        if isinstance(request, ReminderUpdate):
            data = request
        else:
            try:
                data = ReminderUpdate.model_validate(request)
            except PydanticValidationError as e:
                raise ValidationError(_validation_message(e)) from e

        changes = data.changes()
        current = self.store.get_by_id(reminder_id)

        target = changes.get("status")
        if target is not None and target != current.status:
            if target == ReminderStatus.TRIGGERED:
                raise ValidationError("status 'triggered' is only set by the scheduler")
            if not can_transition(current.status, target):
                raise InvalidTransitionError(reminder_id, current.status.value, target.value)

        self.store.update(reminder_id, changes, self.clock())
        reminder = self.store.get_by_id(reminder_id)

        self.publish_event(REMINDER_UPDATED, {
            "reminder_id": reminder_id,
            "user_id": reminder.user_id,
        })
        return reminder

    def snooze(self, reminder_id: str, duration: str) -> Reminder:
        delta = parse_duration(duration)
        current = self.store.get_by_id(reminder_id)
        if current.is_terminal:
            raise InvalidTransitionError(reminder_id, current.status.value, ReminderStatus.PENDING.value)

        now = self.clock()
        try:
            new_time = now + delta
        except OverflowError:
            raise InvalidDurationError(duration, reason="snooze time out of range")
        # Back to pending so the next poll picks it up once new_time passes
        self.store.update(
            reminder_id,
            {"remind_at": new_time, "status": ReminderStatus.PENDING},
            now,
        )
        try:
            self.store.record_snooze(reminder_id, current.user_id, duration.strip(), new_time, now)
        except PersistenceError as e:
            logger.warning(f"⚠️  [Reminders] Could not record snooze history for {reminder_id}: {e}")

        self.publish_event(REMINDER_SNOOZED, {
            "reminder_id": reminder_id,
            "user_id": current.user_id,
            "new_time": isoformat_utc(new_time),
        })
        return current.model_copy(update={
            "remind_at": new_time,
            "status": ReminderStatus.PENDING,
            "updated_at": now,
        })

    def cancel(self, reminder_id: str) -> Reminder:
        current = self.store.get_by_id(reminder_id)
        if current.status == ReminderStatus.CANCELLED:
            return current
        if not can_transition(current.status, ReminderStatus.CANCELLED):
            raise InvalidTransitionError(reminder_id, current.status.value, ReminderStatus.CANCELLED.value)

        now = self.clock()
        self.store.update_status(reminder_id, ReminderStatus.CANCELLED, now)
        self.publish_event(REMINDER_CANCELLED, {
            "reminder_id": reminder_id,
            "user_id": current.user_id,
        })
        return current.model_copy(update={"status": ReminderStatus.CANCELLED, "updated_at": now})

    def complete(self, reminder_id: str) -> Reminder:
        current = self.store.get_by_id(reminder_id)
        if current.status == ReminderStatus.COMPLETED:
            return current
        if not can_transition(current.status, ReminderStatus.COMPLETED):
            raise InvalidTransitionError(reminder_id, current.status.value, ReminderStatus.COMPLETED.value)

        now = self.clock()
        self.store.update_status(reminder_id, ReminderStatus.COMPLETED, now)
        self.publish_event(REMINDER_COMPLETED, {
            "reminder_id": reminder_id,
            "user_id": current.user_id,
        })
        return current.model_copy(update={"status": ReminderStatus.COMPLETED, "updated_at": now})

    def delete(self, reminder_id: str) -> None:
        current = self.store.get_by_id(reminder_id)
        self.store.delete(reminder_id)
        self.publish_event(REMINDER_DELETED, {
            "reminder_id": reminder_id,
            "user_id": current.user_id,
        })

    def trigger(self, reminder: Reminder) -> TriggerResult:
        """Fire a reminder the scheduler has found due.

        The pending -> triggered claim happens before any side effect, so a
        reminder claimed elsewhere (another scheduler, a concurrent cancel) is
        skipped without a notification.
        """
        now = self.clock()
        if not self.store.claim_for_trigger(reminder.id, now):
            logger.info(f"⏭️  [Trigger] Reminder {reminder.id} is no longer pending, skipping")
            return TriggerResult(reminder_id=reminder.id, fired=False)

        reminders_triggered_total.inc()
        self.publish_event(NOTIFICATION_SEND, {
            "type": "reminder",
            "user_id": reminder.user_id,
            "title": reminder.title,
            "description": reminder.description,
            "reminder_id": reminder.id,
            "channel_id": reminder.channel_id,
            "message_id": reminder.message_id,
            "priority": reminder.priority.value,
            "metadata": copy.deepcopy(reminder.metadata),
        })

        successor = None
        # A re-armed reminder (snoozed after firing) already spawned its successor
        if reminder.recurrence is not None and reminder.triggered_at is None:
            successor = self._schedule_next_recurrence(reminder)
        return TriggerResult(reminder_id=reminder.id, fired=True, successor=successor)

    def _schedule_next_recurrence(self, reminder: Reminder) -> Optional[Reminder]:
        next_time = RecurrenceCalculator.next_occurrence(reminder.remind_at, reminder.recurrence)
        if next_time is None:
            logger.info(f"🏁 [Recurrence] Series ended for {reminder.id} (end_date {reminder.recurrence.end_date})")
            return None

        successor = self.create(ReminderCreate(
            user_id=reminder.user_id,
            workspace_id=reminder.workspace_id,
            channel_id=reminder.channel_id,
            message_id=reminder.message_id,
            type=reminder.type,
            title=reminder.title,
            description=reminder.description,
            remind_at=next_time,
            priority=reminder.priority,
            recurrence=reminder.recurrence.model_copy(deep=True),
            metadata=copy.deepcopy(reminder.metadata),
        ))
        reminder_successors_created_total.inc()
        logger.info(f"🔁 [Recurrence] {reminder.id} -> successor {successor.id} at {next_time.isoformat()}")
        return successor

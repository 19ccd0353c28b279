"""
Ports the lifecycle core depends on.

The core never talks to a database or a broker directly: it is handed a
``ReminderStore`` and an ``EventPublisher`` at construction time.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from .schemas import (
    PageParams,
    Reminder,
    ReminderCreate,
    ReminderStats,
    ReminderStatus,
    SnoozeHistoryEntry,
)


class ReminderStore(ABC):
    """Storage port. Writes to a single reminder are atomic from the caller's side."""

    @abstractmethod
    def create(self, data: ReminderCreate, now: datetime) -> Reminder:
        """Persist a new reminder with status forced to pending. Raises PersistenceError."""

    @abstractmethod
    def get_by_id(self, reminder_id: str) -> Reminder:
        """Raises NotFoundError when the id does not resolve."""

    @abstractmethod
    def update(self, reminder_id: str, changes: Mapping[str, Any], now: datetime) -> None:
        """Apply only the given fields and bump updated_at. Raises NotFoundError."""

    @abstractmethod
    def update_status(self, reminder_id: str, status: ReminderStatus, now: datetime) -> None:
        """Set the status (stamping triggered_at for TRIGGERED). Raises NotFoundError."""

    @abstractmethod
    def claim_for_trigger(self, reminder_id: str, now: datetime) -> bool:
        """Conditionally move pending -> triggered. False when someone else got there first."""

    @abstractmethod
    def get_pending_due_before(self, before: datetime, limit: Optional[int] = None) -> List[Reminder]:
        """Pending reminders with remind_at <= before."""

    @abstractmethod
    def bulk_update_status(
        self,
        ids: Sequence[str],
        status: ReminderStatus,
        now: datetime,
        exclude_statuses: Iterable[ReminderStatus] = (),
    ) -> int:
        """Returns the number of ids matched."""

    @abstractmethod
    def delete(self, reminder_id: str) -> None:
        """Raises NotFoundError."""

    @abstractmethod
    def bulk_delete(self, ids: Sequence[str]) -> int:
        """Returns the number of rows deleted."""

    @abstractmethod
    def list_by_user(
        self, user_id: str, status: Optional[ReminderStatus], page: PageParams
    ) -> Tuple[List[Reminder], int]:
        ...

    @abstractmethod
    def list_by_workspace(
        self, workspace_id: str, status: Optional[ReminderStatus], page: PageParams
    ) -> Tuple[List[Reminder], int]:
        ...

    @abstractmethod
    def list_by_channel(self, channel_id: str, page: PageParams) -> Tuple[List[Reminder], int]:
        ...

    @abstractmethod
    def stats(self, user_id: str, now: datetime) -> ReminderStats:
        ...

    @abstractmethod
    def record_snooze(
        self, reminder_id: str, user_id: str, duration: str, new_time: datetime, now: datetime
    ) -> None:
        ...

    @abstractmethod
    def list_snooze_history(self, reminder_id: str) -> List[SnoozeHistoryEntry]:
        """Newest first."""


class EventPublisher(ABC):
    """Publish-only event port. Delivery is at-least-once and best-effort."""

    @abstractmethod
    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        """Raises PublishError when the channel rejects the message."""

    def close(self) -> None:
        return None


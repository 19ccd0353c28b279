"""
Bulk operations over many reminders.

One item's failure never stops the batch. Paths that run the single-item
operation per target report one error string per failure; paths the store
can batch natively (cancel, delete) only report matched-vs-submitted counts.
"""
import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from .durations import parse_duration
from .errors import InvalidDurationError, ReminderServiceError
from .events import REMINDERS_BULK_CANCELLED, REMINDERS_BULK_DELETED
from .lifecycle import ReminderLifecycleService
from .metrics import bulk_items_total
from .schemas import BulkActionResult, ReminderCreate, ReminderStatus

logger = logging.getLogger(__name__)


def _title_of(request: Any) -> Optional[str]:
    if isinstance(request, ReminderCreate):
        return request.title
    if isinstance(request, Mapping):
        return request.get("title")
    return None


class BulkOperationCoordinator:
    def __init__(self, service: ReminderLifecycleService):
        self.service = service

    @property
    def store(self):
        return self.service.store

    def _count(self, action: str, result: BulkActionResult) -> BulkActionResult:
        bulk_items_total.labels(action=action, outcome="success").inc(result.successful)
        bulk_items_total.labels(action=action, outcome="failure").inc(result.failed)
        logger.info(f"📦 [Bulk] {action}: {result.successful} ok, {result.failed} failed")
        return result

    def bulk_create(self, requests: Iterable[Union[ReminderCreate, Mapping[str, Any]]]) -> BulkActionResult:
        result = BulkActionResult()
        for request in requests:
            title = _title_of(request)
            try:
                self.service.create(request)
            except Exception as e:
                result.record_failure(f"{title or '<untitled>'}: {e}")
            else:
                result.record_success()
        return self._count("create", result)

    def bulk_snooze(self, ids: Sequence[str], duration: str) -> BulkActionResult:
        result = BulkActionResult()
        try:
            parse_duration(duration)
        except InvalidDurationError as e:
            for _ in ids:
                result.record_failure(str(e))
            return self._count("snooze", result)

        for reminder_id in ids:
            try:
                self.service.snooze(reminder_id, duration)
            except Exception as e:
                result.record_failure(f"{reminder_id}: {e}")
            else:
                result.record_success()
        return self._count("snooze", result)

    def bulk_complete(self, ids: Sequence[str]) -> BulkActionResult:
        result = BulkActionResult()
        for reminder_id in ids:
            try:
                self.service.complete(reminder_id)
            except Exception as e:
                result.record_failure(f"{reminder_id}: {e}")
            else:
                result.record_success()
        return self._count("complete", result)

    def bulk_cancel(self, ids: Sequence[str]) -> BulkActionResult:
        ids = list(ids)
        result = BulkActionResult()
        cancelled = 0
        try:
            # Completed reminders are terminal and never re-labelled
            cancelled = self.store.bulk_update_status(
                ids,
                ReminderStatus.CANCELLED,
                self.service.clock(),
                exclude_statuses=(ReminderStatus.COMPLETED,),
            )
        except ReminderServiceError as e:
            result.failed = len(ids)
            result.errors.append(str(e))
        else:
            result.successful = cancelled
            result.failed = len(ids) - cancelled

        self.service.publish_event(REMINDERS_BULK_CANCELLED, {"ids": ids, "cancelled": cancelled})
        return self._count("cancel", result)

    def bulk_delete(self, ids: Sequence[str]) -> BulkActionResult:
        ids = list(ids)
        result = BulkActionResult()
        deleted = 0
        try:
            deleted = self.store.bulk_delete(ids)
        except ReminderServiceError as e:
            result.failed = len(ids)
            result.errors.append(str(e))
        else:
            result.successful = deleted
            result.failed = len(ids) - deleted

        self.service.publish_event(REMINDERS_BULK_DELETED, {"ids": ids, "deleted": deleted})
        return self._count("delete", result)


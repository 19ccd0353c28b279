from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .errors import NotFoundError, PersistenceError
from .models import ReminderRecord, SnoozeHistoryRecord
from .ports import ReminderStore
from .schemas import (
    PageParams,
    Reminder,
    ReminderCreate,
    ReminderStats,
    ReminderStatus,
    ReminderType,
    SnoozeHistoryEntry,
)


def _to_column_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    return value


def to_reminder(record: ReminderRecord) -> Reminder:
    return Reminder(
        id=record.id,
        user_id=record.user_id,
        workspace_id=record.workspace_id,
        channel_id=record.channel_id,
        message_id=record.message_id,
        type=record.type,
        title=record.title,
        description=record.description,
        remind_at=record.remind_at,
        status=record.status,
        priority=record.priority,
        recurrence=record.recurrence,
        metadata=record.metadata_ or {},
        created_at=record.created_at,
        updated_at=record.updated_at,
        triggered_at=record.triggered_at,
    )


class SqlAlchemyReminderStore(ReminderStore):
    """Storage port backed by a relational table with JSON document columns."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db: Session = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"reminder store error: {e}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create(self, data: ReminderCreate, now: datetime) -> Reminder:
        record = ReminderRecord(
            user_id=data.user_id,
            workspace_id=data.workspace_id,
            channel_id=data.channel_id,
            message_id=data.message_id,
            type=data.type.value,
            title=data.title,
            description=data.description,
            remind_at=data.remind_at,
            status=ReminderStatus.PENDING.value,
            priority=data.priority.value,
            recurrence=_to_column_value(data.recurrence) if data.recurrence else None,
            metadata_=dict(data.metadata),
            created_at=now,
            updated_at=now,
        )
        with self._session() as db:
            db.add(record)
            db.flush()
            db.refresh(record)
            return to_reminder(record)

    def get_by_id(self, reminder_id: str) -> Reminder:
        with self._session() as db:
            record = db.get(ReminderRecord, reminder_id)
            if record is None:
                raise NotFoundError(reminder_id)
            return to_reminder(record)

    def update(self, reminder_id: str, changes: Mapping[str, Any], now: datetime) -> None:
        values: Dict[str, Any] = {"updated_at": now}
        for name, value in changes.items():
            column = "metadata_" if name == "metadata" else name
            values[column] = _to_column_value(value)
        self._update_one(reminder_id, values)

    def update_status(self, reminder_id: str, status: ReminderStatus, now: datetime) -> None:
        values: Dict[str, Any] = {"status": status.value, "updated_at": now}
        if status == ReminderStatus.TRIGGERED:
            values["triggered_at"] = now
        self._update_one(reminder_id, values)

    def _update_one(self, reminder_id: str, values: Dict[str, Any]) -> None:
        with self._session() as db:
            result = db.execute(
                update(ReminderRecord)
                .where(ReminderRecord.id == reminder_id)
                .values({getattr(ReminderRecord, name): value for name, value in values.items()})
            )
            if result.rowcount == 0:
                raise NotFoundError(reminder_id)

    def claim_for_trigger(self, reminder_id: str, now: datetime) -> bool:
        with self._session() as db:
            result = db.execute(
                update(ReminderRecord)
                .where(ReminderRecord.id == reminder_id)
                .where(ReminderRecord.status == ReminderStatus.PENDING.value)
                .values(
                    status=ReminderStatus.TRIGGERED.value,
                    triggered_at=now,
                    updated_at=now,
                )
            )
            return result.rowcount == 1

    def get_pending_due_before(self, before: datetime, limit: Optional[int] = None) -> List[Reminder]:
        stmt = (
            select(ReminderRecord)
            .where(ReminderRecord.status == ReminderStatus.PENDING.value)
            .where(ReminderRecord.remind_at <= before)
            .order_by(ReminderRecord.remind_at.asc())
        )
        if limit:
            stmt = stmt.limit(limit)
        with self._session() as db:
            return [to_reminder(r) for r in db.execute(stmt).scalars()]

    def bulk_update_status(
        self,
        ids: Sequence[str],
        status: ReminderStatus,
        now: datetime,
        exclude_statuses: Iterable[ReminderStatus] = (),
    ) -> int:
        ids = list(dict.fromkeys(ids))
        if not ids:
            return 0
        stmt = (
            update(ReminderRecord)
            .where(ReminderRecord.id.in_(ids))
            .values(status=status.value, updated_at=now)
        )
        excluded = [s.value for s in exclude_statuses]
        if excluded:
            stmt = stmt.where(ReminderRecord.status.not_in(excluded))
        with self._session() as db:
            return db.execute(stmt).rowcount

    def delete(self, reminder_id: str) -> None:
        with self._session() as db:
            result = db.execute(delete(ReminderRecord).where(ReminderRecord.id == reminder_id))
            if result.rowcount == 0:
                raise NotFoundError(reminder_id)
            db.execute(delete(SnoozeHistoryRecord).where(SnoozeHistoryRecord.reminder_id == reminder_id))

    def bulk_delete(self, ids: Sequence[str]) -> int:
        ids = list(dict.fromkeys(ids))
        if not ids:
            return 0
        with self._session() as db:
            deleted = db.execute(delete(ReminderRecord).where(ReminderRecord.id.in_(ids))).rowcount
            db.execute(delete(SnoozeHistoryRecord).where(SnoozeHistoryRecord.reminder_id.in_(ids)))
            return deleted

    def _paginate(self, db: Session, stmt, page: PageParams) -> Tuple[List[Reminder], int]:
        total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = db.execute(
            stmt.order_by(ReminderRecord.remind_at.asc()).offset(page.skip).limit(page.per_page)
        ).scalars()
        return [to_reminder(r) for r in rows], total

    def list_by_user(
        self, user_id: str, status: Optional[ReminderStatus], page: PageParams
    ) -> Tuple[List[Reminder], int]:
        stmt = select(ReminderRecord).where(ReminderRecord.user_id == user_id)
        if status:
            stmt = stmt.where(ReminderRecord.status == status.value)
        with self._session() as db:
            return self._paginate(db, stmt, page)

    def list_by_workspace(
        self, workspace_id: str, status: Optional[ReminderStatus], page: PageParams
    ) -> Tuple[List[Reminder], int]:
        stmt = select(ReminderRecord).where(ReminderRecord.workspace_id == workspace_id)
        if status:
            stmt = stmt.where(ReminderRecord.status == status.value)
        with self._session() as db:
            return self._paginate(db, stmt, page)

    def list_by_channel(self, channel_id: str, page: PageParams) -> Tuple[List[Reminder], int]:
        stmt = select(ReminderRecord).where(ReminderRecord.channel_id == channel_id)
        with self._session() as db:
            return self._paginate(db, stmt, page)

    def stats(self, user_id: str, now: datetime) -> ReminderStats:
        mine = ReminderRecord.user_id == user_id
        pending = ReminderRecord.status == ReminderStatus.PENDING.value
        with self._session() as db:
            by_status = dict(
                db.execute(
                    select(ReminderRecord.status, func.count())
                    .where(mine)
                    .group_by(ReminderRecord.status)
                ).all()
            )
            by_type = dict(
                db.execute(
                    select(ReminderRecord.type, func.count())
                    .where(mine)
                    .group_by(ReminderRecord.type)
                ).all()
            )
            upcoming = db.execute(
                select(func.count()).where(mine, pending, ReminderRecord.remind_at > now)
            ).scalar_one()
            overdue = db.execute(
                select(func.count()).where(mine, pending, ReminderRecord.remind_at < now)
            ).scalar_one()

        return ReminderStats(
            total=sum(by_status.values()),
            by_status={s.value: by_status.get(s.value, 0) for s in ReminderStatus},
            by_type={t.value: by_type.get(t.value, 0) for t in ReminderType},
            upcoming=upcoming,
            overdue=overdue,
        )

    def record_snooze(
        self, reminder_id: str, user_id: str, duration: str, new_time: datetime, now: datetime
    ) -> None:
        with self._session() as db:
            db.add(
                SnoozeHistoryRecord(
                    reminder_id=reminder_id,
                    user_id=user_id,
                    snoozed_at=now,
                    duration=duration,
                    new_time=new_time,
                )
            )

    def list_snooze_history(self, reminder_id: str) -> List[SnoozeHistoryEntry]:
        stmt = (
            select(SnoozeHistoryRecord)
            .where(SnoozeHistoryRecord.reminder_id == reminder_id)
            .order_by(SnoozeHistoryRecord.snoozed_at.desc())
        )
        with self._session() as db:
            return [SnoozeHistoryEntry.model_validate(r) for r in db.execute(stmt).scalars()]

"""
Reminder tables - one document-style row per reminder instance
"""
from datetime import datetime
import uuid

from sqlalchemy import JSON, Column, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

from .db import Base
from .utils.timezone import to_utc_aware, utcnow


class UTCDateTime(TypeDecorator):
    """Timestamp column that always hands back UTC-aware datetimes (SQLite drops tzinfo)."""
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        value = to_utc_aware(value)
        if value is not None and dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        return to_utc_aware(value)


JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return uuid.uuid4().hex


class ReminderRecord(Base):
    __tablename__ = "reminders"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    workspace_id = Column(String, nullable=False, index=True)
    channel_id = Column(String, nullable=True, index=True)
    message_id = Column(String, nullable=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    remind_at = Column(UTCDateTime, nullable=False)
    status = Column(String, nullable=False, default="pending")
    priority = Column(String, nullable=False, default="low")
    recurrence = Column(JSONDocument, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSONDocument, nullable=False, default=dict)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)
    triggered_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("ix_reminders_status_remind_at", "status", "remind_at"),
        Index("ix_reminders_user_remind_at", "user_id", "remind_at"),
    )


class SnoozeHistoryRecord(Base):
    __tablename__ = "reminder_snooze_history"

    id = Column(String(32), primary_key=True, default=_new_id)
    reminder_id = Column(String(32), nullable=False, index=True)
    user_id = Column(String, nullable=False)
    snoozed_at = Column(UTCDateTime, nullable=False, default=utcnow)
    duration = Column(String, nullable=False)
    new_time = Column(UTCDateTime, nullable=False)

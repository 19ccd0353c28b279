"""
Schemas for reminders, recurrence rules and operation results
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, JsonValue

from .utils.timezone import to_utc_aware


UTCDateTime = Annotated[datetime, AfterValidator(to_utc_aware)]
Weekday = Annotated[int, Field(ge=0, le=6)]  # 0=Monday, 6=Sunday

# String keys, scalar or nested JSON values
Metadata = Dict[str, JsonValue]


class ReminderType(str, Enum):
    MESSAGE = "message"
    TASK = "task"
    CUSTOM = "custom"


class ReminderStatus(str, Enum):
    PENDING = "pending"
    TRIGGERED = "triggered"
    SNOOZED = "snoozed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({ReminderStatus.COMPLETED, ReminderStatus.CANCELLED})


class ReminderPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Recurrence(BaseModel):
    """Recurrence rule carried by a reminder and copied to each successor"""
    pattern: Optional[RecurrencePattern] = None
    interval: int = Field(default=1, ge=1, le=1000)  # Every N days/weeks/months/years
    end_date: Optional[UTCDateTime] = None
    days_of_week: Optional[List[Weekday]] = None


class Reminder(BaseModel):
    """A stored reminder, one per pending or historical instance"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    workspace_id: str
    channel_id: Optional[str] = None
    message_id: Optional[str] = None
    type: ReminderType
    title: str
    description: Optional[str] = None
    remind_at: UTCDateTime
    status: ReminderStatus = ReminderStatus.PENDING
    priority: ReminderPriority = ReminderPriority.LOW
    recurrence: Optional[Recurrence] = None
    metadata: Metadata = Field(default_factory=dict)
    created_at: UTCDateTime
    updated_at: UTCDateTime
    triggered_at: Optional[UTCDateTime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ReminderCreate(BaseModel):
    """Schema for creating a reminder. Any status supplied by the caller is ignored."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    user_id: str = Field(min_length=1)
    workspace_id: str = Field(min_length=1)
    channel_id: Optional[str] = None
    message_id: Optional[str] = None
    type: ReminderType
    title: str = Field(min_length=1)
    description: Optional[str] = None
    remind_at: UTCDateTime
    priority: ReminderPriority = ReminderPriority.LOW
    recurrence: Optional[Recurrence] = None
    metadata: Metadata = Field(default_factory=dict)
    status: Optional[ReminderStatus] = None


class ReminderUpdate(BaseModel):
    """Partial update: a field left unset or empty never overwrites stored data"""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    remind_at: Optional[UTCDateTime] = None
    status: Optional[ReminderStatus] = None
    priority: Optional[ReminderPriority] = None
    recurrence: Optional[Recurrence] = None
    metadata: Optional[Metadata] = None

    def changes(self) -> Dict[str, Any]:
        """Fields that actually carry a value, keyed by attribute name."""
        out: Dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is None or value == "" or value == {}:
                continue
            out[name] = value
        return out


class SnoozeHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reminder_id: str
    user_id: str
    snoozed_at: UTCDateTime
    duration: str
    new_time: UTCDateTime


class BulkActionResult(BaseModel):
    """Per-batch outcome. Bulk callers always get one of these, never an exception."""
    successful: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)

    def record_success(self) -> None:
        self.successful += 1

    def record_failure(self, error: str) -> None:
        self.failed += 1
        self.errors.append(error)


class ReminderStats(BaseModel):
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_type: Dict[str, int] = Field(default_factory=dict)
    upcoming: int = 0
    overdue: int = 0


class PageParams(BaseModel):
    page: int = 1
    per_page: int = 20

    def normalized(self) -> "PageParams":
        page = self.page if self.page >= 1 else 1
        per_page = self.per_page
        if per_page < 1:
            per_page = 20
        elif per_page > 100:
            per_page = 100
        return PageParams(page=page, per_page=per_page)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.per_page


class Page(BaseModel):
    data: List[Reminder]
    total: int
    page: int
    per_page: int
    total_pages: int

    @classmethod
    def build(cls, data: List[Reminder], total: int, params: PageParams) -> "Page":
        total_pages = (total + params.per_page - 1) // params.per_page if total > 0 else 0
        return cls(
            data=data,
            total=total,
            page=params.page,
            per_page=params.per_page,
            total_pages=total_pages,
        )

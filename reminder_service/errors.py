"""Error taxonomy for the reminder service.

Request-path operations raise these to their caller. The scheduler logs and
continues on any of them; bulk operations fold them into a result object.
"""


class ReminderServiceError(Exception):
    """Base class for every error raised by the service."""


class ValidationError(ReminderServiceError):
    """Bad or missing input. Surfaced to the caller, never retried."""


class InvalidTransitionError(ValidationError):
    def __init__(self, reminder_id: str, current: str, target: str):
        self.reminder_id = reminder_id
        self.current = current
        self.target = target
        super().__init__(f"reminder {reminder_id} cannot move from {current} to {target}")


class InvalidDurationError(ValidationError):
    def __init__(self, value: str, reason: str = "invalid duration format"):
        self.value = value
        super().__init__(f"{reason}: {value!r}")


class NotFoundError(ReminderServiceError):
    def __init__(self, reminder_id: str):
        self.reminder_id = reminder_id
        super().__init__(f"reminder {reminder_id} not found")


class PersistenceError(ReminderServiceError):
    """Store unreachable or write rejected."""


class PublishError(ReminderServiceError):
    """Event channel failure. Logged and swallowed by the lifecycle service."""

"""Reminder scheduling service (lifecycle, recurrence, polling scheduler, bulk ops).

This package is intended to run as a separate worker process. Reminders are
kept in a document-style table behind a narrow store interface and every
state transition is announced on a message exchange for downstream consumers
(notification delivery, analytics).
"""

__version__ = "0.1.0"

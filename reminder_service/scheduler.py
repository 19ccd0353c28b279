"""
Polling scheduler: finds due reminders and drives each through a trigger
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from .lifecycle import ReminderLifecycleService
from .metrics import scheduler_ticks_total, trigger_failures_total
from .utils.timezone import utcnow

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    started_at: datetime
    due: int = 0
    triggered: int = 0
    skipped: int = 0
    successors: int = 0
    failures: List[str] = field(default_factory=list)
    deferred: int = 0


class ReminderScheduler:
    """Single polling loop over the store's due set.

    Holds its own stop token and interval; nothing is read from process-wide
    configuration. ``stop()`` is observed between ticks, a tick in progress
    always runs to the end.
    """

    def __init__(
        self,
        service: ReminderLifecycleService,
        interval_seconds: float = 30.0,
        tick_timeout_seconds: float = 30.0,
        batch_size: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.service = service
        self.interval_seconds = interval_seconds
        self.tick_timeout_seconds = tick_timeout_seconds
        self.batch_size = batch_size
        self.clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> TickReport:
        """Run one poll-and-trigger cycle."""
        now = self.clock()
        report = TickReport(started_at=now)
        scheduler_ticks_total.inc()

        try:
            due = self.service.get_due_reminders(now, limit=self.batch_size)
        except Exception as e:
            logger.error(f"❌ [Scheduler] Error fetching pending reminders: {e!r}")
            report.failures.append(f"poll: {e}")
            return report

        report.due = len(due)
        deadline = time.monotonic() + self.tick_timeout_seconds
        for index, reminder in enumerate(due):
            if time.monotonic() > deadline:
                # Left pending, the next tick picks them up
                report.deferred = len(due) - index
                logger.warning(
                    f"⏱️  [Scheduler] Tick exceeded {self.tick_timeout_seconds}s, "
                    f"deferring {report.deferred} reminders"
                )
                break
            try:
                result = self.service.trigger(reminder)
            except Exception as e:
                trigger_failures_total.inc()
                report.failures.append(f"{reminder.id}: {e}")
                logger.exception(f"❌ [Scheduler] Error triggering reminder {reminder.id}")
                continue

            if not result.fired:
                report.skipped += 1
                continue
            report.triggered += 1
            if result.successor is not None:
                report.successors += 1
            logger.info(f"🔔 [Scheduler] Triggered reminder {reminder.id} for user {reminder.user_id}")

        if report.due:
            logger.info(
                f"🕒 [Scheduler] Tick at {now.isoformat()}: due={report.due} triggered={report.triggered} "
                f"skipped={report.skipped} failed={len(report.failures)} deferred={report.deferred}"
            )
        return report

    def run_forever(self) -> None:
        """Tick, then wait one interval, until stop() is called."""
        logger.info(f"🚀 [Scheduler] Reminder scheduler started (interval={self.interval_seconds}s)")
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("❌ [Scheduler] Unexpected error in tick")
            self._stop_event.wait(self.interval_seconds)
        logger.info("🛑 [Scheduler] Reminder scheduler stopped")

    def start(self) -> threading.Thread:
        """Run the loop on a background thread."""
        if self.running:
            raise RuntimeError("scheduler already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_forever, name="reminder-scheduler", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the loop to stop and wait up to ``timeout`` for it to exit.

        Returns True once no loop thread is running. Safe to call when idle
        or never started.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout)
        stopped = not thread.is_alive()
        if stopped:
            self._thread = None
        return stopped

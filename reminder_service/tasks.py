import logging
from typing import Any, Dict, Optional

from celery import shared_task

from .bootstrap import get_container
from .errors import ReminderServiceError

logger = logging.getLogger(__name__)


@shared_task(name="reminders.scan_and_trigger")
def scan_and_trigger_task() -> int:
    """Run one scheduler tick. Returns number of reminders triggered."""
    container = get_container()
    report = container.build_scheduler().tick()
    return report.triggered


def _reminder_id(command: Dict[str, Any]) -> Optional[str]:
    reminder_id = command.get("reminder_id")
    if not isinstance(reminder_id, str) or not reminder_id:
        logger.warning(f"⚠️  [Commands] {command.get('action')} command without reminder_id, dropping")
        return None
    return reminder_id


def handle_command(command: Any) -> bool:
    """Dispatch one command message to the lifecycle service.

    Returns True when the command was applied. Malformed commands and
    service errors are logged and dropped; nothing is redelivered.
    """
    if not isinstance(command, dict):
        logger.warning(f"⚠️  [Commands] Ignoring non-object command: {command!r}")
        return False

    action = command.get("action")
    service = get_container().service
    try:
        if action == "create":
            data = command.get("reminder")
            if data is None:
                data = {k: v for k, v in command.items() if k != "action"}
            reminder = service.create(data)
            logger.info(f"📥 [Commands] Created reminder {reminder.id} from command")
            return True

        if action in ("cancel", "complete", "snooze"):
            reminder_id = _reminder_id(command)
            if reminder_id is None:
                return False
            if action == "cancel":
                service.cancel(reminder_id)
            elif action == "complete":
                service.complete(reminder_id)
            else:
                service.snooze(reminder_id, command.get("duration"))
            logger.info(f"📥 [Commands] Applied {action} to reminder {reminder_id}")
            return True
    except ReminderServiceError as e:
        logger.error(f"❌ [Commands] {action} command failed: {e}")
        return False

    logger.warning(f"⚠️  [Commands] Unknown action {action!r}, dropping")
    return False


@shared_task(name="reminders.command")
def reminder_command_task(command: Dict[str, Any]) -> bool:
    return handle_command(command)

"""
Recurrence engine: computes when the successor of a recurring reminder fires
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from .schemas import Recurrence, RecurrencePattern

logger = logging.getLogger(__name__)


def _add_months(base: datetime, months: int) -> datetime:
    """Calendar month addition without clamping.

    A day that does not exist in the target month rolls forward into the next
    one, so Jan 31 + 1 month lands on Mar 3 (Mar 2 in a leap year).
    """
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    first_of_month = base.replace(year=year, month=month, day=1)
    return first_of_month + timedelta(days=base.day - 1)


class RecurrenceCalculator:
    """Calculates next occurrence for recurrence rules"""

    @staticmethod
    def calculate_next_occurrence(reference: datetime, rule: Recurrence) -> datetime:
        """Next fire time measured from the reference, ignoring end_date."""
        interval = rule.interval
        if rule.pattern == RecurrencePattern.DAILY:
            return reference + timedelta(days=interval)
        elif rule.pattern == RecurrencePattern.WEEKLY:
            return reference + timedelta(days=7 * interval)
        elif rule.pattern == RecurrencePattern.MONTHLY:
            return _add_months(reference, interval)
        elif rule.pattern == RecurrencePattern.YEARLY:
            return _add_months(reference, 12 * interval)

        logger.warning(f"⚠️  [Recurrence] No pattern on rule {rule!r}, falling back to +1 day")
        return reference + timedelta(days=1)

    @classmethod
    def next_occurrence(cls, reference: datetime, rule: Recurrence) -> Optional[datetime]:
        """Next fire time, or None once past the end_date or the calendar range.

        The reference is the nominal remind_at of the reminder being triggered,
        not the wall clock, so scheduler delay never shifts the series.
        """
        try:
            candidate = cls.calculate_next_occurrence(reference, rule)
        except (OverflowError, ValueError) as e:
            logger.warning(f"⚠️  [Recurrence] Next occurrence after {reference.isoformat()} is out of range: {e}")
            return None
        if rule.end_date is not None and candidate > rule.end_date:
            return None
        return candidate


next_occurrence = RecurrenceCalculator.next_occurrence

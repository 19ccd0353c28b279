from prometheus_client import Counter


reminders_created_total = Counter(
    "reminders_created_total",
    "Total reminders created (requests and recurrence successors)",
)

reminders_triggered_total = Counter(
    "reminders_triggered_total",
    "Total reminders moved to triggered",
)

reminder_successors_created_total = Counter(
    "reminder_successors_created_total",
    "Total successor reminders spawned by recurrence",
)

scheduler_ticks_total = Counter(
    "reminder_scheduler_ticks_total",
    "Total scheduler poll-and-trigger cycles",
)

trigger_failures_total = Counter(
    "reminder_trigger_failures_total",
    "Total per-reminder trigger failures isolated by the scheduler",
)

event_publish_failures_total = Counter(
    "reminder_event_publish_failures_total",
    "Total events dropped because the event channel rejected them",
)

bulk_items_total = Counter(
    "reminder_bulk_items_total",
    "Items processed by bulk operations",
    ["action", "outcome"],
)

"""Appointment confirmation scheduling."""

from salesops.confirmations.schedule import (
    DEFAULT_CONFIRMATION_SCHEDULE,
    add_step,
    default_schedule,
    normalize,
    remove_step,
    reorder_step,
    resequence,
    timeline_order,
    update_step,
)
from salesops.confirmations.scheduler import (
    generate_tasks,
    is_overdue,
    overdue_by,
    record_attempt,
    task_state,
    to_view,
    urgency,
)

__all__ = [
    "DEFAULT_CONFIRMATION_SCHEDULE",
    "add_step",
    "default_schedule",
    "generate_tasks",
    "is_overdue",
    "normalize",
    "overdue_by",
    "record_attempt",
    "remove_step",
    "reorder_step",
    "resequence",
    "task_state",
    "timeline_order",
    "to_view",
    "update_step",
    "urgency",
]

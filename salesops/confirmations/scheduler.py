"""Confirmation tasks: generation, attempts, and read-time status.

Overdue status and urgency buckets are pure functions of stored fields and
the caller's `now`; nothing here persists them.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from salesops.confirmations.schedule import StepLike, coerce_steps
from salesops.errors import ConfirmationConflictError
from salesops.logging_config import get_logger
from salesops.models import (
    Appointment,
    ConfirmationAttempt,
    ConfirmationTask,
    ConfirmationTaskView,
    TaskState,
    UrgencyStatus,
    ensure_utc,
)

logger = get_logger(__name__)


def generate_tasks(appointment: Appointment, confirmation_config: Iterable[StepLike]) -> list[ConfirmationTask]:
    """One task per enabled, assigned schedule entry, in `sequence` order.

    `required_confirmations` is the number of such entries at generation time;
    later schedule edits do not touch tasks generated here.
    """
    active = [step for step in coerce_steps(confirmation_config) if step.generates_task]
    active.sort(key=lambda step: step.sequence)
    required = len(active)

    tasks = [
        ConfirmationTask(
            appointment_id=appointment.id,
            team_id=appointment.team_id,
            sequence=step.sequence,
            label=step.label,
            due_at_utc=appointment.start_at_utc - timedelta(hours=step.hours_before),
            assigned_role=step.assigned_role,
            completed_confirmations=0,
            required_confirmations=required,
            confirmation_attempts=[],
        )
        for step in active
    ]
    logger.info("confirmation_tasks_generated", appointment_id=appointment.id, tasks=len(tasks))
    return tasks


def record_attempt(task: ConfirmationTask, attempt: ConfirmationAttempt) -> ConfirmationTask:
    """Return a copy of `task` with `attempt` appended.

    Raises ConfirmationConflictError once the task is Done; the task is left
    untouched in that case.
    """
    if task.is_done:
        logger.warning("confirmation_attempt_rejected", task_id=task.id,
                       completed=task.completed_confirmations, required=task.required_confirmations)
        raise ConfirmationConflictError(task.id, task.required_confirmations)

    if attempt.sequence is None:
        attempt = attempt.model_copy(update={"sequence": task.completed_confirmations + 1})

    return task.model_copy(update={
        "completed_confirmations": task.completed_confirmations + 1,
        "confirmation_attempts": [*task.confirmation_attempts, attempt],
    })


def is_overdue(task: ConfirmationTask, now: Optional[datetime] = None) -> bool:
    if task.due_at_utc is None or task.is_done:
        return False
    now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
    return now > task.due_at_utc


def task_state(task: ConfirmationTask, now: Optional[datetime] = None) -> TaskState:
    if task.is_done:
        return TaskState.DONE
    if is_overdue(task, now):
        return TaskState.OVERDUE
    return TaskState.PENDING


_TEN_MINUTES = 10 / 60


def urgency(task: ConfirmationTask, now: Optional[datetime] = None) -> UrgencyStatus:
    """Escalation bucket for display, from hours until the task is due."""
    if task.is_done:
        return UrgencyStatus(level="done", label="Confirmed", color="success", pulse=False)
    if task.due_at_utc is None:
        return UrgencyStatus(level="scheduled", label="Scheduled", color="secondary", pulse=False)

    now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
    hours_until = (task.due_at_utc - now).total_seconds() / 3600

    if hours_until < 0:
        return UrgencyStatus(level="overdue", label="OVERDUE", color="destructive", pulse=True)
    if hours_until < _TEN_MINUTES:
        return UrgencyStatus(level="under_10_min", label="< 10min", color="destructive", pulse=True)
    if hours_until < 1:
        return UrgencyStatus(level="under_1_hour", label="< 1hr", color="default", pulse=True)
    if hours_until < 24:
        return UrgencyStatus(level="under_24_hours", label="< 24hrs", color="default", pulse=True)
    return UrgencyStatus(level="scheduled", label="Scheduled", color="secondary", pulse=False)


def overdue_by(task: ConfirmationTask, now: Optional[datetime] = None) -> timedelta:
    """How far past due an incomplete task is (zero when not overdue)."""
    if not is_overdue(task, now):
        return timedelta(0)
    now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
    return now - task.due_at_utc


def to_view(task: ConfirmationTask, now: Optional[datetime] = None) -> ConfirmationTaskView:
    now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
    return ConfirmationTaskView(
        **task.model_dump(),
        is_overdue=is_overdue(task, now),
        state=task_state(task, now),
        urgency=urgency(task, now),
    )

"""Appointment lifecycle: booking and rescheduling derive confirmation tasks
and raise the matching automation triggers; the sweep escalates due and
overdue confirmations."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from salesops.automations.events import EventBus
from salesops.confirmations.scheduler import generate_tasks, is_overdue, overdue_by
from salesops.db_models import DBAppointment
from salesops.logging_config import get_logger
from salesops.models import Appointment, ConfirmationAttempt, ConfirmationTask, ensure_utc
from salesops.services import AppointmentService, ConfirmationTaskService, TeamService

logger = get_logger(__name__)

APPOINTMENT_STATUSES = ("booked", "rescheduled", "no_show", "completed", "cancelled")


def _as_appointment(row: DBAppointment) -> Appointment:
    return Appointment(id=row.id, team_id=row.team_id, start_at_utc=row.start_at_utc)


def _derive_tasks(db: Session, store, row: DBAppointment) -> List[ConfirmationTask]:
    schedule = TeamService.get_confirmation_schedule(db, row.team_id)
    tasks = generate_tasks(_as_appointment(row), schedule)
    return store.save_confirmation_tasks(row.id, tasks)


def book_appointment(db: Session, store, bus: EventBus, team_id: str, start_at_utc: datetime,
                     lead: Optional[dict] = None, appointment_id: Optional[str] = None):
    """Create the appointment, its confirmation tasks, then raise `appointment_booked`."""
    row = AppointmentService.create_appointment(db, team_id, start_at_utc, lead, appointment_id)
    tasks = _derive_tasks(db, store, row)

    payload = AppointmentService.to_payload(row)
    bus.on_appointment_booked(team_id, payload["appointment"], payload["lead"])
    return row, tasks


def reschedule_appointment(db: Session, store, bus: EventBus, appointment_id: str, start_at_utc: datetime):
    """Move the appointment and regenerate its tasks from the current schedule."""
    row = AppointmentService.reschedule(db, appointment_id, start_at_utc)
    if row is None:
        return None, []
    tasks = _derive_tasks(db, store, row)

    payload = AppointmentService.to_payload(row)
    bus.on_appointment_rescheduled(row.team_id, payload["appointment"], payload["lead"])
    return row, tasks


def set_appointment_outcome(db: Session, bus: EventBus, appointment_id: str, status: str):
    """Record a no-show or completion and raise the matching trigger."""
    row = AppointmentService.update_status(db, appointment_id, status)
    if row is None:
        return None

    payload = AppointmentService.to_payload(row)
    if status == "no_show":
        bus.on_appointment_no_show(row.team_id, payload["appointment"], payload["lead"])
    elif status == "completed":
        bus.on_appointment_completed(row.team_id, payload["appointment"], payload["lead"])
    return row


def confirm(store, task_id: str, confirmed_by: str, notes: str = "",
            now: Optional[datetime] = None) -> ConfirmationTask:
    attempt = ConfirmationAttempt(
        timestamp=now or datetime.now(timezone.utc),
        confirmed_by=confirmed_by,
        notes=notes,
    )
    return store.append_attempt(task_id, attempt)


def sweep_confirmations(db: Session, bus: EventBus, now: Optional[datetime] = None) -> dict:
    """Emit `confirmation_due` / `confirmation_overdue` at most once per task.

    `confirmation_due` fires once the due time has passed; `confirmation_overdue`
    fires once the task has been overdue for longer than the team's threshold.
    """
    now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
    counts = {"due": 0, "overdue": 0}
    thresholds: dict[str, int] = {}

    for row in ConfirmationTaskService.list_open_due_before(db, now):
        task = ConfirmationTaskService.to_model(row)
        if not is_overdue(task, now):
            continue

        appointment = AppointmentService.to_payload(row.appointment)
        task_payload = task.model_dump(mode="json")
        task_payload["is_overdue"] = True

        if row.due_notified_at is None:
            bus.on_confirmation_due(row.team_id, task_payload, appointment["appointment"])
            row.due_notified_at = now
            counts["due"] += 1

        if row.team_id not in thresholds:
            thresholds[row.team_id] = TeamService.get_overdue_threshold_minutes(db, row.team_id)
        threshold = timedelta(minutes=thresholds[row.team_id])

        if row.overdue_notified_at is None and overdue_by(task, now) > threshold:
            task_payload["overdue_minutes"] = int(overdue_by(task, now).total_seconds() // 60)
            bus.on_confirmation_overdue(row.team_id, task_payload, appointment["appointment"])
            row.overdue_notified_at = now
            counts["overdue"] += 1

        db.commit()

    if counts["due"] or counts["overdue"]:
        logger.info("confirmation_sweep_completed", **counts)
    return counts

"""
Service layer for database operations.
Each service wraps the queries for one record collection.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from salesops.confirmations.schedule import default_schedule, normalize
from salesops.config import config
from salesops.db_models import (
    DBAppointment,
    DBAutomationRule,
    DBAutomationRun,
    DBConfirmationTask,
    DBDialerQueueEntry,
    DBFollowUpTask,
    DBLeadTag,
    DBTeam,
    DBTeamNotification,
)
from salesops.errors import ConfirmationConflictError, InputError
from salesops.logging_config import get_logger
from salesops.models import (
    AutomationRule,
    ConfirmationAttempt,
    ConfirmationStepConfig,
    ConfirmationTask,
    RuleRun,
    TriggerType,
    ensure_utc,
)
from salesops.confirmations.scheduler import record_attempt

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TeamService:
    """Service for team-level settings."""

    @staticmethod
    def get_or_create_team(db: Session, team_id: str, name: str = "") -> DBTeam:
        team = db.query(DBTeam).filter(DBTeam.id == team_id).first()
        if team is None:
            team = DBTeam(id=team_id, name=name or team_id)
            db.add(team)
            db.commit()
            db.refresh(team)
            logger.info("team_created", team_id=team_id)
        return team

    @staticmethod
    def get_confirmation_schedule(db: Session, team_id: str) -> List[ConfirmationStepConfig]:
        """The team's schedule, or the default one when nothing is configured."""
        team = db.query(DBTeam).filter(DBTeam.id == team_id).first()
        if team is None or not team.confirmation_schedule:
            return default_schedule()
        return normalize(team.confirmation_schedule)

    @staticmethod
    def save_confirmation_schedule(db: Session, team_id: str, steps: List[ConfirmationStepConfig]) -> List[ConfirmationStepConfig]:
        if not steps:
            raise InputError("Must have at least one confirmation window")
        team = TeamService.get_or_create_team(db, team_id)
        team.confirmation_schedule = [step.model_dump(mode="json") for step in steps]
        team.updated_at = _utcnow()
        db.commit()
        logger.info("confirmation_schedule_saved", team_id=team_id, steps=len(steps))
        return list(steps)

    @staticmethod
    def get_overdue_threshold_minutes(db: Session, team_id: str) -> int:
        team = db.query(DBTeam).filter(DBTeam.id == team_id).first()
        if team is None or team.overdue_threshold_minutes is None:
            return config.DEFAULT_OVERDUE_THRESHOLD_MINUTES
        return team.overdue_threshold_minutes

    @staticmethod
    def set_overdue_threshold_minutes(db: Session, team_id: str, minutes: int) -> DBTeam:
        if minutes < 1:
            raise InputError("Overdue threshold must be at least one minute")
        team = TeamService.get_or_create_team(db, team_id)
        team.overdue_threshold_minutes = minutes
        db.commit()
        db.refresh(team)
        return team


class AutomationRuleService:
    """Service for automation rules."""

    @staticmethod
    def to_model(rule: DBAutomationRule) -> AutomationRule:
        return AutomationRule(
            id=rule.id,
            team_id=rule.team_id,
            name=rule.name or "",
            trigger_type=rule.trigger_type,
            is_active=rule.is_active,
            conditions=rule.conditions or [],
            steps=rule.steps or [],
        )

    @staticmethod
    def create_rule(db: Session, rule: AutomationRule) -> DBAutomationRule:
        TeamService.get_or_create_team(db, rule.team_id)
        db_rule = DBAutomationRule(
            id=rule.id,
            team_id=rule.team_id,
            name=rule.name,
            trigger_type=rule.trigger_type.value,
            is_active=rule.is_active,
            conditions=[c.model_dump(mode="json", exclude_unset=True) for c in rule.conditions],
            steps=[s.model_dump(mode="json") for s in rule.steps],
        )
        db.add(db_rule)
        db.commit()
        db.refresh(db_rule)

        logger.info("automation_rule_created", rule_id=db_rule.id, team_id=rule.team_id,
                    trigger_type=rule.trigger_type.value)
        return db_rule

    @staticmethod
    def get_rule(db: Session, rule_id: str) -> Optional[DBAutomationRule]:
        return db.query(DBAutomationRule).filter(DBAutomationRule.id == rule_id).first()

    @staticmethod
    def list_rules(db: Session, team_id: str, trigger_type: Optional[TriggerType] = None) -> List[DBAutomationRule]:
        query = db.query(DBAutomationRule).filter(DBAutomationRule.team_id == team_id)
        if trigger_type:
            query = query.filter(DBAutomationRule.trigger_type == TriggerType(trigger_type).value)
        return query.order_by(DBAutomationRule.created_at).all()

    @staticmethod
    def update_rule(db: Session, rule_id: str, **changes) -> Optional[DBAutomationRule]:
        rule = db.query(DBAutomationRule).filter(DBAutomationRule.id == rule_id).first()
        if rule:
            for key, value in changes.items():
                setattr(rule, key, value)
            rule.updated_at = _utcnow()
            db.commit()
            db.refresh(rule)

            logger.info("automation_rule_updated", rule_id=rule_id, fields=sorted(changes))

        return rule

    @staticmethod
    def delete_rule(db: Session, rule_id: str) -> bool:
        rule = db.query(DBAutomationRule).filter(DBAutomationRule.id == rule_id).first()
        if rule:
            db.delete(rule)
            db.commit()
            logger.info("automation_rule_deleted", rule_id=rule_id)
            return True
        return False


class AutomationRunService:
    """Service for recorded automation runs."""

    @staticmethod
    def record_run(db: Session, team_id: str, trigger_type: TriggerType, run: RuleRun) -> DBAutomationRun:
        record = DBAutomationRun(
            rule_id=run.rule_id,
            team_id=team_id,
            trigger_type=TriggerType(trigger_type).value,
            steps_executed=[log.model_dump(mode="json", by_alias=True) for log in run.steps_executed],
            skipped_steps=sum(1 for log in run.steps_executed if log.skipped),
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def list_runs(db: Session, team_id: str, limit: int = 50) -> List[DBAutomationRun]:
        return (
            db.query(DBAutomationRun)
            .filter(DBAutomationRun.team_id == team_id)
            .order_by(DBAutomationRun.id.desc())
            .limit(limit)
            .all()
        )


class AppointmentService:
    """Service for appointments."""

    @staticmethod
    def create_appointment(db: Session, team_id: str, start_at_utc: datetime, lead: Optional[dict] = None,
                           appointment_id: Optional[str] = None) -> DBAppointment:
        TeamService.get_or_create_team(db, team_id)
        lead = lead or {}
        appointment = DBAppointment(
            team_id=team_id,
            start_at_utc=ensure_utc(start_at_utc),
            status="booked",
            lead_id=str(lead["id"]) if lead.get("id") is not None else None,
            lead_name=lead.get("name"),
            lead_phone=lead.get("phone"),
            lead_email=lead.get("email"),
        )
        if appointment_id:
            appointment.id = appointment_id
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        logger.info("appointment_created", appointment_id=appointment.id, team_id=team_id,
                    start_at_utc=appointment.start_at_utc.isoformat())
        return appointment

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[DBAppointment]:
        return db.query(DBAppointment).filter(DBAppointment.id == appointment_id).first()

    @staticmethod
    def reschedule(db: Session, appointment_id: str, start_at_utc: datetime) -> Optional[DBAppointment]:
        appointment = db.query(DBAppointment).filter(DBAppointment.id == appointment_id).first()
        if appointment:
            appointment.start_at_utc = ensure_utc(start_at_utc)
            appointment.status = "rescheduled"
            appointment.updated_at = _utcnow()
            db.commit()
            db.refresh(appointment)
            logger.info("appointment_rescheduled", appointment_id=appointment_id,
                        start_at_utc=appointment.start_at_utc.isoformat())
        return appointment

    @staticmethod
    def update_status(db: Session, appointment_id: str, status: str) -> Optional[DBAppointment]:
        appointment = db.query(DBAppointment).filter(DBAppointment.id == appointment_id).first()
        if appointment:
            appointment.status = status
            appointment.updated_at = _utcnow()
            db.commit()
            db.refresh(appointment)
            logger.info("appointment_status_updated", appointment_id=appointment_id, status=status)
        return appointment

    @staticmethod
    def to_payload(appointment: DBAppointment) -> dict:
        """The `appointment` / `lead` sections of an event payload."""
        return {
            "appointment": {
                "id": appointment.id,
                "team_id": appointment.team_id,
                "start_at_utc": ensure_utc(appointment.start_at_utc).isoformat(),
                "status": appointment.status,
                "lead_phone": appointment.lead_phone,
                "lead_email": appointment.lead_email,
            },
            "lead": {
                "id": appointment.lead_id,
                "name": appointment.lead_name,
                "first_name": (appointment.lead_name or "").split(" ")[0] or None,
                "phone": appointment.lead_phone,
                "email": appointment.lead_email,
            },
        }


class ConfirmationTaskService:
    """Service for generated confirmation tasks."""

    @staticmethod
    def to_model(task: DBConfirmationTask) -> ConfirmationTask:
        return ConfirmationTask(
            id=task.id,
            appointment_id=task.appointment_id,
            team_id=task.team_id,
            sequence=task.sequence,
            label=task.label or "",
            due_at_utc=task.due_at_utc,
            assigned_role=task.assigned_role,
            completed_confirmations=task.completed_confirmations,
            required_confirmations=task.required_confirmations,
            confirmation_attempts=task.confirmation_attempts or [],
        )

    @staticmethod
    def replace_tasks(db: Session, appointment_id: str, tasks: List[ConfirmationTask]) -> List[DBConfirmationTask]:
        """Swap the appointment's active task set in one transaction.

        Running this twice with the same input leaves one active set, so
        required_confirmations is never double-counted. Replaced tasks that
        carry attempts are kept as superseded history; untouched ones are dropped.
        """
        appointment = db.query(DBAppointment).filter(DBAppointment.id == appointment_id).first()
        if appointment is None:
            raise InputError(f"Appointment {appointment_id} not found")

        now = _utcnow()
        superseded = 0
        for row in ConfirmationTaskService.list_for_appointment(db, appointment_id):
            if row.confirmation_attempts:
                row.superseded_at = now
                superseded += 1
            else:
                db.delete(row)

        rows = [
            DBConfirmationTask(
                appointment_id=appointment_id,
                team_id=task.team_id or appointment.team_id,
                sequence=task.sequence,
                label=task.label,
                due_at_utc=task.due_at_utc,
                assigned_role=task.assigned_role.value,
                completed_confirmations=task.completed_confirmations,
                required_confirmations=task.required_confirmations,
                confirmation_attempts=[a.model_dump(mode="json") for a in task.confirmation_attempts],
            )
            for task in tasks
        ]
        db.add_all(rows)
        db.commit()
        for row in rows:
            db.refresh(row)

        logger.info("confirmation_tasks_saved", appointment_id=appointment_id, tasks=len(rows),
                    superseded=superseded)
        return rows

    @staticmethod
    def get_task(db: Session, task_id: str) -> Optional[DBConfirmationTask]:
        """Active tasks only; superseded ones are history."""
        return (
            db.query(DBConfirmationTask)
            .filter(DBConfirmationTask.id == task_id, DBConfirmationTask.superseded_at.is_(None))
            .first()
        )

    @staticmethod
    def list_for_appointment(db: Session, appointment_id: str,
                             include_superseded: bool = False) -> List[DBConfirmationTask]:
        query = db.query(DBConfirmationTask).filter(DBConfirmationTask.appointment_id == appointment_id)
        if not include_superseded:
            query = query.filter(DBConfirmationTask.superseded_at.is_(None))
        return query.order_by(DBConfirmationTask.sequence).all()

    @staticmethod
    def append_attempt(db: Session, task_id: str, attempt: ConfirmationAttempt) -> ConfirmationTask:
        """Apply one attempt under a row lock. Raises ConfirmationConflictError on a Done task."""
        row = (
            db.query(DBConfirmationTask)
            .filter(DBConfirmationTask.id == task_id, DBConfirmationTask.superseded_at.is_(None))
            .with_for_update()
            .first()
        )
        if row is None:
            raise InputError(f"Confirmation task {task_id} not found")

        try:
            updated = record_attempt(ConfirmationTaskService.to_model(row), attempt)
        except ConfirmationConflictError:
            db.rollback()
            raise

        row.completed_confirmations = updated.completed_confirmations
        row.confirmation_attempts = [a.model_dump(mode="json") for a in updated.confirmation_attempts]
        row.updated_at = _utcnow()
        db.commit()

        logger.info("confirmation_attempt_recorded", task_id=task_id,
                    completed=updated.completed_confirmations, required=updated.required_confirmations)
        return updated

    @staticmethod
    def list_open_due_before(db: Session, now: datetime) -> List[DBConfirmationTask]:
        """Incomplete tasks whose due time has passed, for the sweep."""
        return (
            db.query(DBConfirmationTask)
            .join(DBAppointment)
            .filter(DBAppointment.status.in_(("booked", "rescheduled")))
            .filter(DBConfirmationTask.superseded_at.is_(None))
            .filter(DBConfirmationTask.due_at_utc.isnot(None))
            .filter(DBConfirmationTask.due_at_utc < now)
            .filter(DBConfirmationTask.completed_confirmations < DBConfirmationTask.required_confirmations)
            .order_by(DBConfirmationTask.due_at_utc)
            .all()
        )


class ActionRecordService:
    """Records written by the task / tag / notification / dialer actions."""

    @staticmethod
    def create_task(db: Session, team_id: str, title: str, **fields) -> DBFollowUpTask:
        task = DBFollowUpTask(team_id=team_id, title=title, **fields)
        db.add(task)
        db.commit()
        db.refresh(task)
        logger.info("follow_up_task_created", task_id=task.id, team_id=team_id)
        return task

    @staticmethod
    def add_tag(db: Session, team_id: str, lead_id: str, tag: str) -> DBLeadTag:
        existing = (
            db.query(DBLeadTag)
            .filter(DBLeadTag.team_id == team_id, DBLeadTag.lead_id == lead_id, DBLeadTag.tag == tag)
            .first()
        )
        if existing:
            return existing
        row = DBLeadTag(team_id=team_id, lead_id=lead_id, tag=tag)
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info("lead_tag_added", team_id=team_id, lead_id=lead_id, tag=tag)
        return row

    @staticmethod
    def create_notification(db: Session, team_id: str, message: str, metadata: Optional[dict] = None) -> DBTeamNotification:
        row = DBTeamNotification(team_id=team_id, message=message, metadata_json=metadata or {})
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def enqueue_dialer(db: Session, team_id: str, phone: str, **fields) -> DBDialerQueueEntry:
        row = DBDialerQueueEntry(team_id=team_id, phone=phone, **fields)
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info("dialer_entry_queued", entry_id=row.id, team_id=team_id)
        return row

"""
Collaborator facade over the service layer.

The rule engine, action executor and confirmation workflow only talk to this
object, never to sessions directly. Each call opens and closes its own session
so concurrent dispatches share nothing but the database.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy.orm import Session

from salesops.database import SessionLocal
from salesops.models import (
    ConfirmationAttempt,
    ConfirmationStepConfig,
    ConfirmationTask,
    RuleRun,
    TriggerType,
)
from salesops.services import (
    ActionRecordService,
    AutomationRuleService,
    AutomationRunService,
    ConfirmationTaskService,
    TeamService,
)


class SqlAlchemyStore:
    """Rule / task storage plus the record-keeping side effects of actions."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or SessionLocal

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    # --- rule engine ---

    def load_rules_for_trigger(self, team_id: str, trigger_type: TriggerType) -> List[dict]:
        with self.session() as db:
            rows = AutomationRuleService.list_rules(db, team_id, trigger_type)
            # Raw dicts: a malformed row fails its own rule, not the whole load.
            return [
                {
                    "id": row.id,
                    "team_id": row.team_id,
                    "name": row.name or "",
                    "trigger_type": row.trigger_type,
                    "is_active": row.is_active,
                    "conditions": row.conditions or [],
                    "steps": row.steps or [],
                }
                for row in rows
            ]

    def record_run(self, team_id: str, trigger_type: TriggerType, run: RuleRun) -> None:
        with self.session() as db:
            AutomationRunService.record_run(db, team_id, trigger_type, run)

    # --- confirmations ---

    def load_confirmation_config(self, team_id: str) -> List[ConfirmationStepConfig]:
        with self.session() as db:
            return TeamService.get_confirmation_schedule(db, team_id)

    def save_confirmation_tasks(self, appointment_id: str, tasks: List[ConfirmationTask]) -> List[ConfirmationTask]:
        with self.session() as db:
            rows = ConfirmationTaskService.replace_tasks(db, appointment_id, tasks)
            return [ConfirmationTaskService.to_model(row) for row in rows]

    def append_attempt(self, task_id: str, attempt: ConfirmationAttempt) -> ConfirmationTask:
        with self.session() as db:
            return ConfirmationTaskService.append_attempt(db, task_id, attempt)

    # --- action side effects ---

    def create_task(self, team_id: str, title: str, description: Optional[str] = None,
                    assigned_role: Optional[str] = None, due_at: Optional[datetime] = None,
                    lead_id=None, appointment_id=None, rule_id: Optional[str] = None) -> str:
        with self.session() as db:
            row = ActionRecordService.create_task(
                db, team_id, title,
                description=description,
                assigned_role=assigned_role,
                due_at=due_at,
                lead_id=str(lead_id) if lead_id is not None else None,
                appointment_id=str(appointment_id) if appointment_id is not None else None,
                rule_id=rule_id,
            )
            return row.id

    def add_tag(self, team_id: str, lead_id: str, tag: str) -> None:
        with self.session() as db:
            ActionRecordService.add_tag(db, team_id, lead_id, tag)

    def create_notification(self, team_id: str, message: str, metadata: Optional[dict] = None) -> int:
        with self.session() as db:
            return ActionRecordService.create_notification(db, team_id, message, metadata).id

    def enqueue_dialer(self, team_id: str, phone: str, lead_id=None, priority: int = 0,
                       rule_id: Optional[str] = None) -> int:
        with self.session() as db:
            row = ActionRecordService.enqueue_dialer(
                db, team_id, phone,
                lead_id=str(lead_id) if lead_id is not None else None,
                priority=priority,
                rule_id=rule_id,
            )
            return row.id

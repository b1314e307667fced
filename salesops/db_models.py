"""
SQLAlchemy database models.
Teams own their automation rules and confirmation schedule; appointments own
their confirmation tasks.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from salesops.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DBTeam(Base):
    """Team settings relevant to automations and confirmations."""
    __tablename__ = "teams"

    id = Column(String(64), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False, default="")

    # Ordered list of {sequence, hours_before, label, assigned_role, enabled}
    confirmation_schedule = Column(JSON, nullable=True)
    overdue_threshold_minutes = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    rules = relationship("DBAutomationRule", back_populates="team", cascade="all, delete-orphan")


class DBAutomationRule(Base):
    __tablename__ = "automation_rules"

    id = Column(String(64), primary_key=True, default=_uuid)
    team_id = Column(String(64), ForeignKey("teams.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    trigger_type = Column(String(50), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    conditions = Column(JSON, nullable=False, default=list)
    steps = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    team = relationship("DBTeam", back_populates="rules")


class DBAutomationRun(Base):
    """Step logs for one rule that passed its conditions during a dispatch."""
    __tablename__ = "automation_runs"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(String(64), nullable=False, index=True)
    team_id = Column(String(64), nullable=False, index=True)
    trigger_type = Column(String(50), nullable=False)
    steps_executed = Column(JSON, nullable=False, default=list)
    skipped_steps = Column(Integer, default=0)

    created_at = Column(DateTime(timezone=True), default=_utcnow)


class DBAppointment(Base):
    __tablename__ = "appointments"

    id = Column(String(64), primary_key=True, default=_uuid)
    team_id = Column(String(64), ForeignKey("teams.id"), nullable=False, index=True)
    start_at_utc = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(30), nullable=False, default="booked")

    lead_id = Column(String(64), nullable=True)
    lead_name = Column(String(255))
    lead_phone = Column(String(50))
    lead_email = Column(String(255))

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    confirmation_tasks = relationship(
        "DBConfirmationTask", back_populates="appointment", cascade="all, delete-orphan"
    )


class DBConfirmationTask(Base):
    """
    A generated confirmation task. Overdue status is derived at read time and
    never stored; the *_notified_at columns only record that the sweep has
    already emitted the corresponding trigger.
    A reschedule stamps superseded_at on the old set instead of deleting it,
    so recorded attempts stay on file.
    """
    __tablename__ = "confirmation_tasks"

    id = Column(String(64), primary_key=True, default=_uuid)
    appointment_id = Column(String(64), ForeignKey("appointments.id"), nullable=False, index=True)
    team_id = Column(String(64), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    label = Column(String(255), default="")
    due_at_utc = Column(DateTime(timezone=True), nullable=True, index=True)
    assigned_role = Column(String(20), nullable=False)
    completed_confirmations = Column(Integer, nullable=False, default=0)
    required_confirmations = Column(Integer, nullable=False)
    confirmation_attempts = Column(JSON, nullable=False, default=list)

    due_notified_at = Column(DateTime(timezone=True), nullable=True)
    overdue_notified_at = Column(DateTime(timezone=True), nullable=True)
    superseded_at = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    appointment = relationship("DBAppointment", back_populates="confirmation_tasks")


class DBFollowUpTask(Base):
    """Tasks created by the add_task action."""
    __tablename__ = "follow_up_tasks"

    id = Column(String(64), primary_key=True, default=_uuid)
    team_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    assigned_role = Column(String(20))
    due_at = Column(DateTime(timezone=True), nullable=True)
    lead_id = Column(String(64))
    appointment_id = Column(String(64))
    rule_id = Column(String(64))
    is_done = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)


class DBLeadTag(Base):
    __tablename__ = "lead_tags"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(String(64), nullable=False, index=True)
    lead_id = Column(String(64), nullable=False, index=True)
    tag = Column(String(100), nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)


class DBTeamNotification(Base):
    __tablename__ = "team_notifications"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(String(64), nullable=False, index=True)
    message = Column(Text, nullable=False)
    metadata_json = Column("metadata", JSON, nullable=True)
    is_read = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)


class DBDialerQueueEntry(Base):
    __tablename__ = "dialer_queue"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(String(64), nullable=False, index=True)
    lead_id = Column(String(64))
    phone = Column(String(50), nullable=False)
    priority = Column(Integer, default=0)
    rule_id = Column(String(64))
    status = Column(String(20), default="queued")

    created_at = Column(DateTime(timezone=True), default=_utcnow)

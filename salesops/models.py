"""Data models for the automation engine and the confirmation scheduler."""

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    """Models that travel over the API use camelCase keys on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Automation enums ---

class TriggerType(str, enum.Enum):
    """Business events that can activate automation rules."""
    LEAD_CREATED = "lead_created"
    LEAD_TAG_ADDED = "lead_tag_added"
    APPOINTMENT_BOOKED = "appointment_booked"
    APPOINTMENT_RESCHEDULED = "appointment_rescheduled"
    APPOINTMENT_NO_SHOW = "appointment_no_show"
    APPOINTMENT_COMPLETED = "appointment_completed"
    PAYMENT_RECEIVED = "payment_received"
    TIME_DELAY = "time_delay"
    CONFIRMATION_DUE = "confirmation_due"
    CONFIRMATION_OVERDUE = "confirmation_overdue"


class ActionType(str, enum.Enum):
    SEND_MESSAGE = "send_message"
    ADD_TASK = "add_task"
    ADD_TAG = "add_tag"
    NOTIFY_TEAM = "notify_team"
    ENQUEUE_DIALER = "enqueue_dialer"
    CUSTOM_WEBHOOK = "custom_webhook"


class ConditionOperator(str, enum.Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GT = "gt"
    LT = "lt"
    IN = "in"


class MessageChannel(str, enum.Enum):
    SMS = "sms"
    EMAIL = "email"
    VOICE = "voice"
    IN_APP = "in_app"


# --- Automation rules ---

class Condition(CamelModel):
    """A single predicate tested against an event payload field."""
    field: str  # dotted path, e.g. "lead.status"
    operator: ConditionOperator
    value: Any = None


class ActionStep(CamelModel):
    """One discrete effect performed when a rule passes.

    `type` is kept as a plain string so that a rule carrying one unknown action
    type still runs its other steps; the executor reports the bad step.
    """
    id: str
    order: int = 0
    type: str
    config: dict[str, Any] = Field(default_factory=dict)


class AutomationRule(CamelModel):
    """A team-configured rule: one trigger, AND-ed conditions, ordered steps."""
    id: str
    team_id: str
    name: str = ""
    trigger_type: TriggerType
    is_active: bool = True
    conditions: list[Condition] = Field(default_factory=list)
    steps: list[ActionStep] = Field(default_factory=list)

    def ordered_steps(self) -> list[ActionStep]:
        """Steps in ascending `order`; ties keep their stored position."""
        return sorted(self.steps, key=lambda step: step.order)


class TriggerEvent(CamelModel):
    """The event envelope: `{teamId, triggerType, eventPayload}`."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    team_id: str = Field(min_length=1)
    trigger_type: TriggerType
    payload: dict[str, Any] = Field(default_factory=dict, alias="eventPayload")


class StepExecutionLog(CamelModel):
    """One record per step attempted, whether it succeeded or was skipped."""
    step_id: str
    action_type: str
    skipped: bool = False
    skip_reason: Optional[str] = None
    error_kind: Optional[str] = None
    channel: Optional[str] = None
    provider: Optional[str] = None
    provider_message_id: Optional[str] = None
    template_variables: Optional[dict[str, Any]] = None


class RuleRun(CamelModel):
    """Step logs accumulated for one rule that passed its conditions."""
    rule_id: str
    steps_executed: list[StepExecutionLog] = Field(default_factory=list)


class DispatchResult(CamelModel):
    """Summary of a single dispatch, used for diagnosis and the preview API."""
    status: str = "ok"  # "ok" | "error"
    trigger_type: Optional[TriggerType] = None
    automations_run: list[str] = Field(default_factory=list)
    steps_executed: list[StepExecutionLog] = Field(default_factory=list)
    error: Optional[str] = None


# --- Messaging ---

class OutboundMessage(CamelModel):
    team_id: str
    channel: MessageChannel
    to_phone: Optional[str] = None
    to_email: Optional[str] = None
    subject: Optional[str] = None
    text: str
    html: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class MessageResult(CamelModel):
    success: bool
    provider_id: Optional[str] = None
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


# --- Confirmations ---

class AssignedRole(str, enum.Enum):
    SETTER = "setter"
    CLOSER = "closer"
    OFF = "off"


class ConfirmationStepConfig(BaseModel):
    """One entry of a team's confirmation schedule."""
    sequence: int = Field(ge=1)
    hours_before: float = Field(ge=0)
    label: str = ""
    assigned_role: AssignedRole = AssignedRole.SETTER
    enabled: bool = True

    @property
    def generates_task(self) -> bool:
        return self.enabled and self.assigned_role != AssignedRole.OFF


class Appointment(BaseModel):
    id: str
    team_id: str
    start_at_utc: datetime
    lead: Optional[dict[str, Any]] = None

    @field_validator("start_at_utc")
    @classmethod
    def _start_in_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ConfirmationAttempt(BaseModel):
    """Append-only audit record for one confirmation."""
    timestamp: datetime
    confirmed_by: str
    notes: str = ""
    sequence: Optional[int] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_in_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ConfirmationTask(BaseModel):
    """A confirmation check-in derived from an appointment and one schedule entry.

    `is_overdue` is not a field: it is a function of `due_at_utc` and
    the current time, see `salesops.confirmations.scheduler.is_overdue`.
    """
    id: Optional[str] = None
    appointment_id: str
    team_id: Optional[str] = None
    sequence: int
    label: str = ""
    due_at_utc: Optional[datetime] = None
    assigned_role: AssignedRole
    completed_confirmations: int = 0
    required_confirmations: int
    confirmation_attempts: list[ConfirmationAttempt] = Field(default_factory=list)

    @field_validator("due_at_utc")
    @classmethod
    def _due_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @property
    def is_done(self) -> bool:
        return self.completed_confirmations >= self.required_confirmations


class TaskState(str, enum.Enum):
    PENDING = "pending"
    OVERDUE = "overdue"
    DONE = "done"


class UrgencyStatus(BaseModel):
    """Presentation-only escalation bucket for a confirmation task."""
    level: str  # "overdue" | "under_10_min" | "under_1_hour" | "under_24_hours" | "scheduled" | "done"
    label: str
    color: str
    pulse: bool


class ConfirmationTaskView(ConfirmationTask):
    """A task plus the read-time derived fields."""
    is_overdue: bool
    state: TaskState
    urgency: UrgencyStatus


# --- API request models ---

class RuleCreateRequest(CamelModel):
    id: Optional[str] = None
    team_id: str
    name: str = ""
    trigger_type: TriggerType
    is_active: bool = True
    conditions: list[Condition] = Field(default_factory=list)
    steps: list[ActionStep] = Field(default_factory=list)


class RuleUpdateRequest(CamelModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None
    conditions: Optional[list[Condition]] = None
    steps: Optional[list[ActionStep]] = None


class ScheduleUpdateRequest(BaseModel):
    steps: list[ConfirmationStepConfig]
    overdue_threshold_minutes: Optional[int] = Field(default=None, ge=1)


class ScheduleStepCreateRequest(BaseModel):
    hours_before: float = Field(default=1, ge=0)
    label: str = "New Window"
    assigned_role: AssignedRole = AssignedRole.SETTER
    enabled: bool = True


class ScheduleReorderRequest(BaseModel):
    old_index: int
    new_index: int


class AppointmentCreateRequest(BaseModel):
    id: Optional[str] = None
    team_id: str
    start_at_utc: datetime
    lead: Optional[dict[str, Any]] = None


class AppointmentRescheduleRequest(BaseModel):
    start_at_utc: datetime


class AppointmentOutcomeRequest(BaseModel):
    status: str  # "no_show" | "completed" | "cancelled"


class ConfirmationAttemptRequest(BaseModel):
    confirmed_by: str
    notes: str = ""

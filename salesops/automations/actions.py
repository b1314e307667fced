"""Action execution: one automation step in, one StepExecutionLog out.

`ActionExecutor.execute` never raises and never retries. Anything that goes
wrong inside an action handler is reported on the returned log as
`skipped=True` with a reason, so the remaining steps of the rule still run.

Side effects go through two collaborators handed in at construction:

- a `ProviderRegistry` for `send_message`;
- a store exposing `create_task`, `add_tag`, `create_notification` and
  `enqueue_dialer` for the record-keeping actions.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx

from salesops.automations.paths import MISSING, extract_template_variables, render_template, resolve_path
from salesops.config import config
from salesops.errors import CollaboratorError, ConfigurationError, InputError, SalesOpsError
from salesops.logging_config import get_logger
from salesops.messaging.providers import ProviderRegistry
from salesops.models import (
    ActionStep,
    ActionType,
    MessageChannel,
    OutboundMessage,
    StepExecutionLog,
    TriggerType,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActionContext:
    """Everything a step may read. The payload is the step's private copy."""
    team_id: str
    trigger_type: TriggerType
    payload: dict[str, Any]
    rule_id: Optional[str] = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _lookup(payload: dict, *paths: str) -> Any:
    """First present, non-empty value among `paths`, else None."""
    for path in paths:
        value = resolve_path(payload, path)
        if value is not MISSING and value not in (None, ""):
            return value
    return None


class ActionExecutor:
    """Performs the side effect of one `ActionStep`."""

    def __init__(
        self,
        providers: ProviderRegistry,
        store,
        webhook_transport: Optional[httpx.BaseTransport] = None,
        webhook_timeout: Optional[float] = None,
    ):
        self.providers = providers
        self.store = store
        self._webhook_transport = webhook_transport
        self._webhook_timeout = webhook_timeout if webhook_timeout is not None else config.WEBHOOK_TIMEOUT_SECONDS
        self._handlers: dict[ActionType, Callable[[ActionStep, ActionContext, StepExecutionLog], None]] = {
            ActionType.SEND_MESSAGE: self._send_message,
            ActionType.ADD_TASK: self._add_task,
            ActionType.ADD_TAG: self._add_tag,
            ActionType.NOTIFY_TEAM: self._notify_team,
            ActionType.ENQUEUE_DIALER: self._enqueue_dialer,
            ActionType.CUSTOM_WEBHOOK: self._custom_webhook,
        }

    def execute(self, step: ActionStep, context: ActionContext) -> StepExecutionLog:
        log = StepExecutionLog(step_id=step.id, action_type=str(step.type))
        step_logger = logger.bind(team_id=context.team_id, rule_id=context.rule_id,
                                  step_id=step.id, action_type=str(step.type))
        try:
            try:
                action_type = ActionType(step.type)
            except ValueError:
                raise ConfigurationError(f"unknown_action_type:{step.type}")
            if not isinstance(step.config, dict):
                raise ConfigurationError("invalid_step_config")
            self._handlers[action_type](step, context, log)
        except SalesOpsError as e:
            log.skipped = True
            log.skip_reason = str(e)
            log.error_kind = e.kind.value
        except Exception as e:
            log.skipped = True
            log.skip_reason = f"{e.__class__.__name__}: {e}"
            log.error_kind = CollaboratorError.kind.value
            step_logger.exception("automation_step_crashed")

        if log.skipped:
            step_logger.warning("automation_step_skipped", reason=log.skip_reason, error_kind=log.error_kind)
        else:
            step_logger.info("automation_step_executed", channel=log.channel, provider=log.provider)
        return log

    # --- handlers ---

    def _send_message(self, step: ActionStep, context: ActionContext, log: StepExecutionLog) -> None:
        cfg = step.config
        channel_value = cfg.get("channel")
        if not channel_value:
            raise ConfigurationError("missing_channel")
        try:
            channel = MessageChannel(channel_value)
        except ValueError:
            raise ConfigurationError(f"unsupported_channel:{channel_value}")
        log.channel = channel.value

        template = cfg.get("text") or cfg.get("template")
        if not template:
            raise ConfigurationError("missing_text")
        log.template_variables = extract_template_variables(template, context.payload)

        to_phone = to_email = None
        if channel in (MessageChannel.SMS, MessageChannel.VOICE):
            to_phone = cfg.get("to_phone") or _lookup(context.payload, "lead.phone", "appointment.lead_phone")
            if not to_phone:
                raise InputError("missing_recipient_phone")
        elif channel == MessageChannel.EMAIL:
            to_email = cfg.get("to_email") or _lookup(context.payload, "lead.email", "appointment.lead_email")
            if not to_email:
                raise InputError("missing_recipient_email")

        message = OutboundMessage(
            team_id=context.team_id,
            channel=channel,
            to_phone=render_template(str(to_phone), context.payload) if to_phone else None,
            to_email=render_template(str(to_email), context.payload) if to_email else None,
            subject=render_template(cfg["subject"], context.payload) if cfg.get("subject") else None,
            text=render_template(template, context.payload),
            metadata={"rule_id": context.rule_id, "step_id": step.id,
                      "trigger_type": context.trigger_type.value},
        )
        result = self.providers.send(message)
        log.provider = result.provider_id
        if not result.success:
            raise CollaboratorError(result.error or "send_failed")
        log.provider_message_id = result.provider_message_id

    def _add_task(self, step: ActionStep, context: ActionContext, log: StepExecutionLog) -> None:
        cfg = step.config
        title = render_template(cfg.get("title") or "Follow up", context.payload)
        due_at = None
        if cfg.get("due_in_hours") is not None:
            try:
                due_at = context.now + timedelta(hours=float(cfg["due_in_hours"]))
            except (TypeError, ValueError):
                raise ConfigurationError("invalid_due_in_hours")

        task_id = self.store.create_task(
            team_id=context.team_id,
            title=title,
            description=render_template(cfg.get("description") or "", context.payload) or None,
            assigned_role=cfg.get("assigned_role"),
            due_at=due_at,
            lead_id=_lookup(context.payload, "lead.id"),
            appointment_id=_lookup(context.payload, "appointment.id"),
            rule_id=context.rule_id,
        )
        log.template_variables = {"task_id": task_id, "title": title}

    def _add_tag(self, step: ActionStep, context: ActionContext, log: StepExecutionLog) -> None:
        tag = step.config.get("tag")
        if not tag:
            raise ConfigurationError("missing_tag")
        lead_id = step.config.get("lead_id") or _lookup(context.payload, "lead.id")
        if not lead_id:
            raise InputError("missing_lead_id")

        self.store.add_tag(team_id=context.team_id, lead_id=str(lead_id), tag=str(tag))
        log.template_variables = {"tag": tag, "lead_id": lead_id}

    def _notify_team(self, step: ActionStep, context: ActionContext, log: StepExecutionLog) -> None:
        template = step.config.get("message") or step.config.get("text")
        if not template:
            raise ConfigurationError("missing_message")
        log.channel = MessageChannel.IN_APP.value
        log.template_variables = extract_template_variables(template, context.payload)

        self.store.create_notification(
            team_id=context.team_id,
            message=render_template(template, context.payload),
            metadata={"rule_id": context.rule_id, "step_id": step.id,
                      "trigger_type": context.trigger_type.value},
        )

    def _enqueue_dialer(self, step: ActionStep, context: ActionContext, log: StepExecutionLog) -> None:
        log.channel = MessageChannel.VOICE.value
        log.provider = "power_dialer"
        phone = step.config.get("phone") or _lookup(context.payload, "lead.phone", "appointment.lead_phone")
        if not phone:
            raise InputError("missing_recipient_phone")

        try:
            priority = int(step.config.get("priority", 0))
        except (TypeError, ValueError):
            raise ConfigurationError("invalid_priority")

        entry_id = self.store.enqueue_dialer(
            team_id=context.team_id,
            lead_id=_lookup(context.payload, "lead.id"),
            phone=str(phone),
            priority=priority,
            rule_id=context.rule_id,
        )
        log.template_variables = {"queue_entry_id": entry_id, "priority": priority}

    def _custom_webhook(self, step: ActionStep, context: ActionContext, log: StepExecutionLog) -> None:
        url = step.config.get("url")
        if not url or not str(url).startswith(("http://", "https://")):
            raise ConfigurationError("missing_or_invalid_url")
        method = str(step.config.get("method") or "POST").upper()
        headers = {
            **(step.config.get("headers") or {}),
            "X-Automation-Team": context.team_id,
            "X-Automation-Trigger": context.trigger_type.value,
            "X-Automation-Step": step.id,
        }
        log.provider = "webhook"

        body = copy.deepcopy(context.payload)
        try:
            with httpx.Client(timeout=self._webhook_timeout, transport=self._webhook_transport) as client:
                response = client.request(method, url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise CollaboratorError(f"webhook_error:{e.__class__.__name__}")

        log.template_variables = {"url": url, "status_code": response.status_code}
        if not 200 <= response.status_code < 300:
            raise CollaboratorError(f"webhook_status_{response.status_code}")

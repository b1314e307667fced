"""Automation dispatcher.

For one event: load the team's rules for the trigger, keep the active ones
whose conditions pass, and run each passing rule's steps sequentially in
ascending `order`. Failure isolation is per step. Nothing escapes
`RuleEngine.dispatch`; the business action that raised the event must never
be rolled back because an automation misbehaved.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from salesops.automations.actions import ActionContext, ActionExecutor
from salesops.automations.conditions import evaluate
from salesops.errors import ErrorKind, Result
from salesops.logging_config import dispatch_context, get_logger
from salesops.metrics import observe_dispatch
from salesops.models import (
    AutomationRule,
    DispatchResult,
    RuleRun,
    StepExecutionLog,
    TriggerEvent,
    TriggerType,
)

logger = get_logger(__name__)


class RuleEngine:
    """Matches events against stored rules and runs their steps.

    Args:
        store: collaborator exposing `load_rules_for_trigger(team_id, trigger_type)`
            and, optionally, `record_run(team_id, trigger_type, run)`.
        executor: the `ActionExecutor` used for every step.
        clock: returns the current UTC time (overridable in tests).
    """

    def __init__(self, store, executor: ActionExecutor, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.executor = executor
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def dispatch(self, team_id: str, trigger_type: Union[TriggerType, str], payload: Optional[Mapping] = None) -> None:
        """Fire-and-forget entry point. Never raises."""
        self.run(team_id, trigger_type, payload)

    def run(self, team_id: str, trigger_type: Union[TriggerType, str], payload: Optional[Mapping] = None) -> DispatchResult:
        """Dispatch and return what happened. Never raises."""
        try:
            event = TriggerEvent(team_id=team_id, trigger_type=trigger_type, payload=dict(payload or {}))
        except (ValidationError, TypeError) as e:
            logger.error("automation_dispatch_rejected", team_id=team_id,
                         trigger_type=str(trigger_type), error=str(e))
            return DispatchResult(status="error", trigger_type=_as_trigger_type(trigger_type), error="invalid_event")
        return self.run_event(event)

    def run_event(self, event: TriggerEvent) -> DispatchResult:
        with dispatch_context(event.team_id, event.trigger_type.value):
            result = self._run_event(event)
        try:
            observe_dispatch(result)
        except Exception as e:
            logger.warning("automation_metrics_failed", error=str(e))
        return result

    def _run_event(self, event: TriggerEvent) -> DispatchResult:
        result = DispatchResult(trigger_type=event.trigger_type)

        try:
            loaded = self._load_rules(event)
            if not loaded.ok:
                logger.error("automation_rules_load_failed",
                             error_kind=loaded.error_kind.value, error=loaded.message)
                result.status = "error"
                result.error = loaded.message
                return result

            rules = loaded.value
            if not rules:
                logger.info("automation_no_rules_for_trigger")
                return result

            logger.info("automation_dispatch_started", rules=len(rules))
            for raw_rule in rules:
                parsed = self._parse_rule(raw_rule)
                if not parsed.ok:
                    logger.warning("automation_rule_invalid", error=parsed.message)
                    continue
                rule = parsed.value

                if not rule.is_active:
                    continue
                if rule.team_id != event.team_id or rule.trigger_type != event.trigger_type:
                    logger.warning("automation_rule_mismatch", rule_id=rule.id)
                    continue

                passed = self._evaluate(rule, event)
                if not passed.ok:
                    logger.warning("automation_conditions_failed_closed", rule_id=rule.id,
                                   error=passed.message)
                    continue
                if not passed.value:
                    logger.debug("automation_conditions_not_met", rule_id=rule.id)
                    continue

                run = self._run_rule(rule, event)
                result.automations_run.append(rule.id)
                result.steps_executed.extend(run.steps_executed)
                self._record_run(event, run)

            logger.info(
                "automation_dispatch_completed",
                automations_run=len(result.automations_run),
                steps=len(result.steps_executed),
                skipped=sum(1 for log in result.steps_executed if log.skipped),
            )
        except Exception as e:
            logger.exception("automation_dispatch_failed", error=str(e))
            result.status = "error"
            result.error = str(e) or e.__class__.__name__
        return result

    # --- internals ---

    def _load_rules(self, event: TriggerEvent) -> Result[list[Any]]:
        try:
            rules = self.store.load_rules_for_trigger(event.team_id, event.trigger_type)
        except Exception as e:
            return Result.from_exception(e, default=ErrorKind.COLLABORATOR)
        return Result.success(list(rules or []))

    @staticmethod
    def _parse_rule(raw: Any) -> Result[AutomationRule]:
        if isinstance(raw, AutomationRule):
            # Never share the caller's instance across dispatches.
            return Result.success(raw.model_copy(deep=True))
        try:
            return Result.success(AutomationRule.model_validate(raw))
        except (ValidationError, TypeError) as e:
            rule_id = raw.get("id") if isinstance(raw, Mapping) else None
            return Result.failure(ErrorKind.CONFIGURATION, f"rule {rule_id}: {e}")

    @staticmethod
    def _evaluate(rule: AutomationRule, event: TriggerEvent) -> Result[bool]:
        try:
            return Result.success(evaluate(rule.conditions, event.payload))
        except Exception as e:
            return Result.from_exception(e, default=ErrorKind.CONFIGURATION)

    def _run_rule(self, rule: AutomationRule, event: TriggerEvent) -> RuleRun:
        run = RuleRun(rule_id=rule.id)
        for step in rule.ordered_steps():
            context = ActionContext(
                team_id=event.team_id,
                trigger_type=event.trigger_type,
                payload=copy.deepcopy(event.payload),
                rule_id=rule.id,
                now=self.clock(),
            )
            try:
                log = self.executor.execute(step, context)
            except Exception as e:
                # execute() is not expected to raise; later steps still run if it does.
                logger.exception("automation_executor_raised", rule_id=rule.id, step_id=step.id)
                log = StepExecutionLog(step_id=step.id, action_type=str(step.type), skipped=True,
                                       skip_reason=f"{e.__class__.__name__}: {e}",
                                       error_kind=ErrorKind.COLLABORATOR.value)
            run.steps_executed.append(log)
        return run

    def _record_run(self, event: TriggerEvent, run: RuleRun) -> None:
        record = getattr(self.store, "record_run", None)
        if record is None:
            return
        try:
            record(event.team_id, event.trigger_type, run)
        except Exception as e:
            logger.warning("automation_run_record_failed", rule_id=run.rule_id, error=str(e))


def _as_trigger_type(value: Any) -> Optional[TriggerType]:
    try:
        return TriggerType(value)
    except ValueError:
        return None

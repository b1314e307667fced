"""Tests for rule matching and step sequencing."""

import copy

import pytest

from salesops.automations.actions import ActionExecutor
from salesops.automations.engine import RuleEngine
from salesops.messaging.providers import ProviderRegistry
from salesops.models import StepExecutionLog, TriggerType


class RuleStore:
    def __init__(self, rules=None, fail=False):
        self.rules = rules or []
        self.fail = fail
        self.runs = []
        self.notifications = []

    def load_rules_for_trigger(self, team_id, trigger_type):
        if self.fail:
            raise ConnectionError("rules table unavailable")
        return [r for r in self.rules if r.get("trigger_type") == TriggerType(trigger_type).value]

    def record_run(self, team_id, trigger_type, run):
        self.runs.append(run)

    def create_notification(self, **fields):
        self.notifications.append(fields["message"])
        return len(self.notifications)


class RecordingExecutor:
    """Executor stand-in that records the order steps reach it."""

    def __init__(self, fail_steps=()):
        self.calls = []
        self.fail_steps = set(fail_steps)

    def execute(self, step, context):
        self.calls.append((step.id, dict(context.payload)))
        context.payload["mutated_by"] = step.id
        if step.id in self.fail_steps:
            return StepExecutionLog(step_id=step.id, action_type=step.type, skipped=True, skip_reason="boom")
        return StepExecutionLog(step_id=step.id, action_type=step.type)


def rule(rule_id="r1", trigger="lead_created", steps=None, conditions=None, active=True, team="team-1"):
    return {
        "id": rule_id,
        "team_id": team,
        "name": rule_id,
        "trigger_type": trigger,
        "is_active": active,
        "conditions": conditions or [],
        "steps": steps if steps is not None else [{"id": "a", "order": 1, "type": "notify_team",
                                                   "config": {"message": "hi"}}],
    }


PAYLOAD = {"lead": {"status": "new", "first_name": "Dana"}}


def test_steps_run_in_ascending_order():
    steps = [
        {"id": "c", "order": 3, "type": "notify_team", "config": {}},
        {"id": "a", "order": 1, "type": "notify_team", "config": {}},
        {"id": "b", "order": 2, "type": "notify_team", "config": {}},
    ]
    executor = RecordingExecutor()
    result = RuleEngine(RuleStore([rule(steps=steps)]), executor).run("team-1", "lead_created", PAYLOAD)

    assert [call[0] for call in executor.calls] == ["a", "b", "c"]
    assert [log.step_id for log in result.steps_executed] == ["a", "b", "c"]
    assert result.automations_run == ["r1"]


def test_failing_step_does_not_stop_later_steps():
    steps = [
        {"id": "a", "order": 1, "type": "notify_team", "config": {}},
        {"id": "b", "order": 2, "type": "notify_team", "config": {}},
        {"id": "c", "order": 3, "type": "notify_team", "config": {}},
    ]
    executor = RecordingExecutor(fail_steps={"b"})
    result = RuleEngine(RuleStore([rule(steps=steps)]), executor).run("team-1", "lead_created", PAYLOAD)

    assert [log.skipped for log in result.steps_executed] == [False, True, False]
    assert result.status == "ok"


def test_steps_get_private_payload_copies():
    payload = copy.deepcopy(PAYLOAD)
    steps = [
        {"id": "a", "order": 1, "type": "notify_team", "config": {}},
        {"id": "b", "order": 2, "type": "notify_team", "config": {}},
    ]
    executor = RecordingExecutor()
    RuleEngine(RuleStore([rule(steps=steps)]), executor).run("team-1", "lead_created", payload)

    assert payload == PAYLOAD
    assert "mutated_by" not in executor.calls[1][1]


def test_no_rules_is_a_quiet_no_op():
    executor = RecordingExecutor()
    result = RuleEngine(RuleStore([]), executor).run("team-1", "payment_received", PAYLOAD)
    assert result.status == "ok"
    assert result.automations_run == []
    assert result.steps_executed == []
    assert executor.calls == []


def test_rule_load_failure_is_reported_not_raised():
    result = RuleEngine(RuleStore(fail=True), RecordingExecutor()).run("team-1", "lead_created", PAYLOAD)
    assert result.status == "error"
    assert "rules table unavailable" in result.error


def test_dispatch_never_raises():
    RuleEngine(RuleStore(fail=True), RecordingExecutor()).dispatch("team-1", "lead_created", PAYLOAD)


def test_invalid_event_is_rejected():
    result = RuleEngine(RuleStore(), RecordingExecutor()).run("team-1", "not_a_trigger", PAYLOAD)
    assert result.status == "error"
    assert result.error == "invalid_event"
    assert result.trigger_type is None


def test_inactive_and_failing_rules_are_skipped():
    rules = [
        rule("inactive", active=False),
        rule("no-match", conditions=[{"field": "lead.status", "operator": "equals", "value": "won"}]),
        rule("match", conditions=[{"field": "lead.status", "operator": "equals", "value": "new"}]),
    ]
    result = RuleEngine(RuleStore(rules), RecordingExecutor()).run("team-1", "lead_created", PAYLOAD)
    assert result.automations_run == ["match"]


def test_malformed_rule_fails_alone():
    rules = [
        {"id": "broken", "team_id": "team-1", "trigger_type": "lead_created", "steps": "not-a-list"},
        rule("good"),
    ]
    result = RuleEngine(RuleStore(rules), RecordingExecutor()).run("team-1", "lead_created", PAYLOAD)
    assert result.automations_run == ["good"]


def test_malformed_condition_fails_closed():
    rules = [rule("bad-condition", conditions=[{"field": "lead.status", "operator": "matches", "value": "x"}])]
    result = RuleEngine(RuleStore(rules), RecordingExecutor()).run("team-1", "lead_created", PAYLOAD)
    assert result.status == "ok"
    assert result.automations_run == []


def test_rules_for_other_team_are_ignored():
    result = RuleEngine(RuleStore([rule(team="team-2")]), RecordingExecutor()).run("team-1", "lead_created", PAYLOAD)
    assert result.automations_run == []


def test_runs_are_recorded():
    store = RuleStore([rule()])
    RuleEngine(store, RecordingExecutor()).run("team-1", "lead_created", PAYLOAD)
    assert len(store.runs) == 1
    assert store.runs[0].rule_id == "r1"


def test_unknown_step_type_skips_only_that_step():
    steps = [
        {"id": "a", "order": 1, "type": "teleport", "config": {}},
        {"id": "b", "order": 2, "type": "notify_team", "config": {"message": "Lead {{lead.first_name}}"}},
    ]
    store = RuleStore([rule(steps=steps)])
    engine = RuleEngine(store, ActionExecutor(ProviderRegistry(), store))
    result = engine.run("team-1", "lead_created", PAYLOAD)

    assert result.steps_executed[0].skipped
    assert result.steps_executed[0].skip_reason == "unknown_action_type:teleport"
    assert not result.steps_executed[1].skipped
    assert store.notifications == ["Lead Dana"]


@pytest.mark.parametrize("trigger", [t.value for t in TriggerType])
def test_every_trigger_type_dispatches(trigger):
    store = RuleStore([rule(trigger=trigger)])
    result = RuleEngine(store, RecordingExecutor()).run("team-1", trigger, {})
    assert result.automations_run == ["r1"]

"""Event-triggered automation engine."""

from salesops.automations.actions import ActionContext, ActionExecutor
from salesops.automations.conditions import evaluate, evaluate_condition
from salesops.automations.engine import RuleEngine
from salesops.automations.events import EventBus, create_event_bus
from salesops.automations.paths import MISSING, PathExpression

__all__ = [
    "ActionContext",
    "ActionExecutor",
    "EventBus",
    "MISSING",
    "PathExpression",
    "RuleEngine",
    "create_event_bus",
    "evaluate",
    "evaluate_condition",
]

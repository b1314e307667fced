"""Condition evaluation against an event payload.

Conditions are AND-combined and evaluation short-circuits on the first
failure. A path missing from the payload fails every operator except
`not_equals`, and `not_equals` fails too when the condition omits `value`.
"""

import math
from collections.abc import Mapping
from typing import Any, Iterable, Union

from salesops.automations.paths import MISSING, PathExpression
from salesops.models import Condition, ConditionOperator

ConditionLike = Union[Condition, Mapping]


def _to_number(value: Any) -> float:
    """Numeric coercion. A missing path is NaN; a present null or blank string is 0."""
    if value is MISSING:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        if not value.strip():
            return 0.0
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def _equals(actual: Any, expected: Any) -> bool:
    if actual is MISSING or expected is MISSING:
        return actual is expected
    # 1 == True in Python; keep booleans and numbers apart like strict equality does
    if isinstance(actual, bool) != isinstance(expected, bool):
        return False
    return actual == expected


def evaluate_condition(condition: ConditionLike, payload: Mapping) -> bool:
    """Evaluate one condition. Raises only on a malformed condition."""
    if not isinstance(condition, Condition):
        condition = Condition.model_validate(condition)

    actual = PathExpression(condition.field).resolve(payload)
    # an omitted value is undefined, an explicit null is not
    expected = condition.value if "value" in condition.model_fields_set else MISSING
    operator = condition.operator

    if operator == ConditionOperator.EQUALS:
        return actual is not MISSING and _equals(actual, expected)
    if operator == ConditionOperator.NOT_EQUALS:
        return not _equals(actual, expected)
    if operator == ConditionOperator.CONTAINS:
        return isinstance(actual, str) and expected is not MISSING and str(expected) in actual
    if operator in (ConditionOperator.GT, ConditionOperator.LT):
        left, right = _to_number(actual), _to_number(expected)
        if math.isnan(left) or math.isnan(right):
            return False
        return left > right if operator == ConditionOperator.GT else left < right
    if operator == ConditionOperator.IN:
        if actual is MISSING:
            return False
        if isinstance(expected, (str, bytes)) or not isinstance(expected, (list, tuple, set, frozenset)):
            return False
        return any(_equals(actual, candidate) for candidate in expected)
    return False


def evaluate(conditions: Iterable[ConditionLike], payload: Mapping) -> bool:
    """True when every condition passes; an empty list always passes."""
    payload = payload if payload is not None else {}
    for condition in conditions or ():
        if not evaluate_condition(condition, payload):
            return False
    return True

"""Editing a team's confirmation schedule.

Every edit returns a new list whose `sequence` values run 1..n in list order.
Disabled or `off` entries stay in the schedule so they can be re-enabled.
"""

from typing import Any, Iterable, Mapping, Union

from salesops.errors import ScheduleEditError
from salesops.models import AssignedRole, ConfirmationStepConfig

StepLike = Union[ConfirmationStepConfig, Mapping[str, Any]]

DEFAULT_CONFIRMATION_SCHEDULE = (
    {"sequence": 1, "hours_before": 24, "label": "24h Before", "assigned_role": "setter", "enabled": True},
    {"sequence": 2, "hours_before": 1, "label": "1h Before", "assigned_role": "setter", "enabled": True},
    {"sequence": 3, "hours_before": 0.17, "label": "10min Before", "assigned_role": "setter", "enabled": True},
)


def coerce_steps(steps: Iterable[StepLike]) -> list[ConfirmationStepConfig]:
    return [
        step if isinstance(step, ConfirmationStepConfig) else ConfirmationStepConfig.model_validate(step)
        for step in steps
    ]


def default_schedule() -> list[ConfirmationStepConfig]:
    return coerce_steps(DEFAULT_CONFIRMATION_SCHEDULE)


def resequence(steps: Iterable[StepLike]) -> list[ConfirmationStepConfig]:
    """Renumber `sequence` contiguously from 1, keeping list order."""
    return [
        step.model_copy(update={"sequence": index})
        for index, step in enumerate(coerce_steps(steps), start=1)
    ]


def normalize(steps: Iterable[StepLike]) -> list[ConfirmationStepConfig]:
    """Order a stored schedule by its sequence numbers, then renumber."""
    return resequence(sorted(coerce_steps(steps), key=lambda step: step.sequence))


def add_step(
    steps: Iterable[StepLike],
    hours_before: float = 1,
    label: str = "New Window",
    assigned_role: Union[AssignedRole, str] = AssignedRole.SETTER,
    enabled: bool = True,
) -> list[ConfirmationStepConfig]:
    current = coerce_steps(steps)
    new_step = ConfirmationStepConfig(
        sequence=len(current) + 1,
        hours_before=hours_before,
        label=label,
        assigned_role=assigned_role,
        enabled=enabled,
    )
    return resequence([*current, new_step])


def remove_step(steps: Iterable[StepLike], index: int) -> list[ConfirmationStepConfig]:
    current = coerce_steps(steps)
    if len(current) <= 1:
        raise ScheduleEditError("Must have at least one confirmation window")
    _check_index(current, index)
    return resequence(current[:index] + current[index + 1:])


def reorder_step(steps: Iterable[StepLike], old_index: int, new_index: int) -> list[ConfirmationStepConfig]:
    """Move the entry at `old_index` so that it ends up at `new_index`."""
    current = coerce_steps(steps)
    _check_index(current, old_index)
    _check_index(current, new_index)
    moved = current.pop(old_index)
    current.insert(new_index, moved)
    return resequence(current)


def update_step(steps: Iterable[StepLike], index: int, **changes: Any) -> list[ConfirmationStepConfig]:
    current = coerce_steps(steps)
    _check_index(current, index)
    unknown = set(changes) - {"hours_before", "label", "assigned_role", "enabled"}
    if unknown:
        raise ScheduleEditError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
    merged = {**current[index].model_dump(), **changes}
    try:
        current[index] = ConfirmationStepConfig.model_validate(merged)
    except ValueError as e:
        raise ScheduleEditError(str(e))
    return resequence(current)


def timeline_order(steps: Iterable[StepLike]) -> list[ConfirmationStepConfig]:
    """Active entries for display: furthest from the appointment first.

    Storage keeps configuration order; the timeline sorts descending by
    `hours_before`, so the step closest to the appointment is shown last.
    """
    active = [step for step in coerce_steps(steps) if step.generates_task]
    return sorted(active, key=lambda step: step.hours_before, reverse=True)


def _check_index(steps: list, index: int) -> None:
    if not 0 <= index < len(steps):
        raise ScheduleEditError(f"No confirmation window at position {index}")

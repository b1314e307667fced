"""Tests for confirmation schedule editing."""

import pytest

from salesops.confirmations.schedule import (
    add_step,
    default_schedule,
    normalize,
    remove_step,
    reorder_step,
    resequence,
    timeline_order,
    update_step,
)
from salesops.errors import ScheduleEditError
from salesops.models import AssignedRole


def three_windows():
    return [
        {"sequence": 1, "hours_before": 24, "label": "Day before"},
        {"sequence": 2, "hours_before": 4, "label": "Morning of"},
        {"sequence": 3, "hours_before": 0.5, "label": "Half hour"},
    ]


def test_default_schedule():
    steps = default_schedule()
    assert [s.hours_before for s in steps] == [24, 1, 0.17]
    assert [s.sequence for s in steps] == [1, 2, 3]
    assert all(s.assigned_role == AssignedRole.SETTER and s.enabled for s in steps)


def test_removing_middle_entry_renumbers():
    steps = remove_step(three_windows(), 1)
    assert [s.sequence for s in steps] == [1, 2]
    assert [s.label for s in steps] == ["Day before", "Half hour"]


def test_last_entry_cannot_be_removed():
    with pytest.raises(ScheduleEditError):
        remove_step([three_windows()[0]], 0)


def test_remove_with_bad_index():
    with pytest.raises(ScheduleEditError):
        remove_step(three_windows(), 7)


def test_add_step_defaults():
    steps = add_step(three_windows())
    assert len(steps) == 4
    new = steps[-1]
    assert new.sequence == 4
    assert new.hours_before == 1
    assert new.label == "New Window"
    assert new.assigned_role == AssignedRole.SETTER


def test_reorder_moves_entry_and_renumbers():
    steps = reorder_step(three_windows(), 2, 0)
    assert [s.label for s in steps] == ["Half hour", "Day before", "Morning of"]
    assert [s.sequence for s in steps] == [1, 2, 3]


def test_update_step():
    steps = update_step(three_windows(), 1, assigned_role="off", label="Skip")
    assert steps[1].assigned_role == AssignedRole.OFF
    assert steps[1].label == "Skip"
    assert not steps[1].generates_task


def test_update_step_rejects_unknown_fields_and_bad_values():
    with pytest.raises(ScheduleEditError):
        update_step(three_windows(), 0, sequence=9)
    with pytest.raises(ScheduleEditError):
        update_step(three_windows(), 0, hours_before=-1)


def test_normalize_orders_by_stored_sequence():
    stored = [
        {"sequence": 5, "hours_before": 1, "label": "late"},
        {"sequence": 2, "hours_before": 24, "label": "early"},
    ]
    steps = normalize(stored)
    assert [(s.sequence, s.label) for s in steps] == [(1, "early"), (2, "late")]


def test_resequence_keeps_list_order():
    steps = resequence(list(reversed(three_windows())))
    assert [(s.sequence, s.label) for s in steps] == [(1, "Half hour"), (2, "Morning of"), (3, "Day before")]


def test_timeline_is_descending_and_active_only():
    windows = three_windows()
    windows.insert(1, {"sequence": 9, "hours_before": 48, "label": "Two days", "enabled": False})
    windows.append({"sequence": 10, "hours_before": 2, "label": "Nobody", "assigned_role": "off"})
    assert [s.hours_before for s in timeline_order(windows)] == [24, 4, 0.5]

"""Tests for dotted-path lookups and message templates."""

import pytest

from salesops.automations.paths import (
    MISSING,
    PathExpression,
    extract_template_variables,
    render_template,
    resolve_path,
)

PAYLOAD = {
    "lead": {"first_name": "Dana", "phone": "+15550001111", "status": None, "tags": ["hot", "vip"]},
    "appointment": {"start_at_utc": "2025-01-10T18:00:00+00:00"},
}


def test_resolves_nested_value():
    assert resolve_path(PAYLOAD, "lead.first_name") == "Dana"


def test_missing_segment_returns_missing():
    assert resolve_path(PAYLOAD, "lead.email") is MISSING
    assert resolve_path(PAYLOAD, "deal.amount") is MISSING
    assert resolve_path(PAYLOAD, "lead.first_name.upper") is MISSING


def test_present_none_is_not_missing():
    assert resolve_path(PAYLOAD, "lead.status") is None
    assert resolve_path(PAYLOAD, "lead.status.code") is MISSING


def test_integer_segments_index_lists():
    assert resolve_path(PAYLOAD, "lead.tags.1") == "vip"
    assert resolve_path(PAYLOAD, "lead.tags.5") is MISSING
    assert resolve_path(PAYLOAD, "lead.tags.first") is MISSING


def test_missing_sentinel_is_falsy():
    assert not MISSING
    assert repr(MISSING) == "MISSING"


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_empty_path_is_rejected(raw):
    with pytest.raises(ValueError):
        PathExpression(raw)


def test_render_template_substitutes_and_blanks_absent_values():
    text = render_template("Hi {{lead.first_name}}, see you {{ appointment.start_at_utc }}{{lead.nickname}}", PAYLOAD)
    assert text == "Hi Dana, see you 2025-01-10T18:00:00+00:00"


def test_extract_template_variables_records_absent_as_none():
    variables = extract_template_variables("{{lead.first_name}} {{lead.nickname}}", PAYLOAD)
    assert variables == {"lead.first_name": "Dana", "lead.nickname": None}

"""Tests for the event bus adapter."""

from salesops.automations.events import EventBus, create_event_bus
from salesops.models import TriggerEvent, TriggerType


class DispatchSpy:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def dispatch(self, team_id, trigger_type, payload):
        if self.fail:
            raise RuntimeError("engine exploded")
        self.calls.append((team_id, trigger_type, payload))


def test_publish_forwards_to_engine():
    spy = DispatchSpy()
    EventBus(engine=spy).publish(TriggerEvent(team_id="team-1", trigger_type="lead_created", payload={"lead": {}}))
    assert spy.calls == [("team-1", TriggerType.LEAD_CREATED, {"lead": {}})]


def test_publish_swallows_engine_errors():
    EventBus(engine=DispatchSpy(fail=True)).publish(
        TriggerEvent(team_id="team-1", trigger_type="lead_created")
    )


def test_publish_envelope_accepts_wire_keys():
    spy = DispatchSpy()
    event = EventBus(engine=spy).publish_envelope(
        {"teamId": "team-1", "triggerType": "payment_received", "eventPayload": {"payment": {"amount": 10}}}
    )
    assert event.trigger_type == TriggerType.PAYMENT_RECEIVED
    assert spy.calls[0][2] == {"payment": {"amount": 10}}


def test_publish_envelope_rejects_invalid_events():
    spy = DispatchSpy()
    assert EventBus(engine=spy).publish_envelope({"teamId": "", "triggerType": "lead_created"}) is None
    assert EventBus(engine=spy).publish_envelope({"teamId": "team-1", "triggerType": "nope"}) is None
    assert spy.calls == []


def test_helpers_build_payload_sections():
    spy = DispatchSpy()
    bus = EventBus(engine=spy)
    bus.on_lead_tag_added("team-1", {"id": "lead-1"}, "vip")
    bus.on_appointment_booked("team-1", {"id": "appt-1"})

    assert spy.calls[0] == ("team-1", TriggerType.LEAD_TAG_ADDED, {"lead": {"id": "lead-1"}, "meta": {"tag": "vip"}})
    # Sections left as None are dropped from the payload.
    assert spy.calls[1][2] == {"appointment": {"id": "appt-1"}}


def test_enqueue_replaces_inline_dispatch():
    queued = []
    spy = DispatchSpy()
    EventBus(engine=spy, enqueue=queued.append).on_lead_created("team-1", {"id": "lead-1"})
    assert len(queued) == 1
    assert spy.calls == []


def test_create_event_bus_is_inline_by_default():
    spy = DispatchSpy()
    bus = create_event_bus(spy)
    assert bus.engine is spy
    assert bus.enqueue is None

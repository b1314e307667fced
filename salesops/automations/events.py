"""Event bus adapter: typed business events in, rule-engine dispatches out.

Callers publish an event and move on. Depending on `config.AUTOMATIONS_ASYNC`
the dispatch runs inline (still never raising) or is queued on Celery.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from salesops.config import config
from salesops.logging_config import get_logger
from salesops.models import TriggerEvent, TriggerType

logger = get_logger(__name__)


class EventBus:
    """Forwards `TriggerEvent`s to a rule engine.

    Args:
        engine: anything with `dispatch(team_id, trigger_type, payload)`.
        enqueue: optional callable that takes the event and schedules it
            elsewhere (the Celery task's `.delay`); used instead of the engine
            when given.
    """

    def __init__(self, engine=None, enqueue: Optional[Callable[[TriggerEvent], Any]] = None):
        self.engine = engine
        self.enqueue = enqueue

    def publish(self, event: TriggerEvent) -> None:
        try:
            if self.enqueue is not None:
                self.enqueue(event)
                logger.info("automation_event_enqueued", team_id=event.team_id,
                            trigger_type=event.trigger_type.value)
                return
            self.engine.dispatch(event.team_id, event.trigger_type, event.payload)
        except Exception as e:
            logger.exception("automation_event_publish_failed", team_id=event.team_id,
                             trigger_type=event.trigger_type.value, error=str(e))

    def deferred(self, background_tasks) -> EventBus:
        """A bus that hands each event to this one as a FastAPI background task,
        so the dispatch runs after the response has been sent."""
        return EventBus(enqueue=lambda event: background_tasks.add_task(self.publish, event))

    def publish_envelope(self, envelope: Mapping) -> Optional[TriggerEvent]:
        """Accept a raw `{teamId, triggerType, eventPayload}` mapping."""
        try:
            event = TriggerEvent.model_validate(envelope)
        except ValidationError as e:
            logger.warning("automation_event_invalid", error=str(e))
            return None
        self.publish(event)
        return event

    def emit(self, team_id: str, trigger_type: Union[TriggerType, str], **payload: Any) -> None:
        """Build the envelope from keyword sections, dropping the ones left as None."""
        event = TriggerEvent(
            team_id=team_id,
            trigger_type=trigger_type,
            payload={key: value for key, value in payload.items() if value is not None},
        )
        self.publish(event)

    # Convenience helpers for common trigger types

    def on_lead_created(self, team_id: str, lead: dict) -> None:
        self.emit(team_id, TriggerType.LEAD_CREATED, lead=lead)

    def on_lead_tag_added(self, team_id: str, lead: dict, tag: str) -> None:
        self.emit(team_id, TriggerType.LEAD_TAG_ADDED, lead=lead, meta={"tag": tag})

    def on_appointment_booked(self, team_id: str, appointment: dict, lead: Optional[dict] = None) -> None:
        self.emit(team_id, TriggerType.APPOINTMENT_BOOKED, appointment=appointment, lead=lead)

    def on_appointment_rescheduled(self, team_id: str, appointment: dict, lead: Optional[dict] = None) -> None:
        self.emit(team_id, TriggerType.APPOINTMENT_RESCHEDULED, appointment=appointment, lead=lead)

    def on_appointment_no_show(self, team_id: str, appointment: dict, lead: Optional[dict] = None) -> None:
        self.emit(team_id, TriggerType.APPOINTMENT_NO_SHOW, appointment=appointment, lead=lead)

    def on_appointment_completed(self, team_id: str, appointment: dict, lead: Optional[dict] = None) -> None:
        self.emit(team_id, TriggerType.APPOINTMENT_COMPLETED, appointment=appointment, lead=lead)

    def on_payment_received(self, team_id: str, payment: dict, deal: Optional[dict] = None) -> None:
        self.emit(team_id, TriggerType.PAYMENT_RECEIVED, payment=payment, deal=deal)

    def on_confirmation_due(self, team_id: str, task: dict, appointment: Optional[dict] = None) -> None:
        self.emit(team_id, TriggerType.CONFIRMATION_DUE, confirmation=task, appointment=appointment)

    def on_confirmation_overdue(self, team_id: str, task: dict, appointment: Optional[dict] = None) -> None:
        self.emit(team_id, TriggerType.CONFIRMATION_OVERDUE, confirmation=task, appointment=appointment)


def create_event_bus(engine=None) -> EventBus:
    """Inline dispatch, or Celery when `AUTOMATIONS_ASYNC` is set."""
    if config.AUTOMATIONS_ASYNC:
        from salesops.celery_tasks import dispatch_automation_event_task

        def _enqueue(event: TriggerEvent):
            return dispatch_automation_event_task.delay(
                event.team_id, event.trigger_type.value, event.payload
            )

        return EventBus(enqueue=_enqueue)
    return EventBus(engine=engine)

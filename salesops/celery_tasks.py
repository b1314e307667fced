"""
Async job processing with Celery.
Automation dispatches queued out of the request path, and the periodic
confirmation sweep.
"""

from celery import Celery
from salesops.config import config

# Initialize Celery with Redis broker
celery_app = Celery(
    'salesops',
    broker=config.REDIS_URL,
    backend=config.REDIS_URL
)

# Celery configuration
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    beat_schedule={
        'sweep-confirmation-tasks': {
            'task': 'sweep_confirmation_tasks',
            'schedule': float(config.CONFIRMATION_SWEEP_SECONDS),
        },
    },
)


@celery_app.task(name='dispatch_automation_event')
def dispatch_automation_event_task(team_id: str, trigger_type: str, payload: dict):
    """
    Run one automation dispatch in the worker.

    Args:
        team_id: Team that owns the rules
        trigger_type: TriggerType value
        payload: Event payload (JSON-serialisable)

    Returns:
        dict: DispatchResult in its wire form
    """
    from salesops.runtime import get_engine

    result = get_engine().run(team_id, trigger_type, payload)
    return result.model_dump(mode='json', by_alias=True)


@celery_app.task(name='sweep_confirmation_tasks')
def sweep_confirmation_tasks_task():
    """
    Emit confirmation_due / confirmation_overdue triggers for tasks that crossed
    their due time since the last sweep.

    Returns:
        dict: Number of due and overdue triggers emitted
    """
    from salesops.appointments import sweep_confirmations
    from salesops.database import SessionLocal
    from salesops.logging_config import logger
    from salesops.runtime import get_engine
    from salesops.automations.events import EventBus

    db = SessionLocal()
    try:
        # Dispatch inline: we are already off the request path.
        return sweep_confirmations(db, EventBus(engine=get_engine()))
    except Exception as e:
        logger.error("confirmation_sweep_failed", error=str(e))
        return {"status": "error", "message": str(e)}
    finally:
        db.close()

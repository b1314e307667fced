from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from salesops import appointments as workflow
from salesops.confirmations.scheduler import to_view
from salesops.database import get_db
from salesops.errors import ConfirmationConflictError
from salesops.metrics import confirmation_attempts_total
from salesops.models import (
    AppointmentCreateRequest,
    AppointmentOutcomeRequest,
    AppointmentRescheduleRequest,
    ConfirmationAttemptRequest,
    ensure_utc,
)
from salesops.routers.deps import get_event_bus, get_store
from salesops.security import verify_api_key
from salesops.services import AppointmentService, ConfirmationTaskService

router = APIRouter(tags=["Appointments"])

OUTCOME_STATUSES = {"no_show", "completed", "cancelled"}


def _appointment_response(row, tasks) -> dict:
    now = datetime.now(timezone.utc)
    return {
        "id": row.id,
        "teamId": row.team_id,
        "startAtUtc": ensure_utc(row.start_at_utc).isoformat(),
        "status": row.status,
        "confirmationTasks": [to_view(task, now).model_dump(mode="json") for task in tasks],
    }


# POST /appointments
# Gets: {team_id, start_at_utc, lead?}
# Returns: the appointment with its generated confirmation tasks; automations run after the response
@router.post("/appointments", status_code=201)
def book_appointment(request: AppointmentCreateRequest, background_tasks: BackgroundTasks,
                     db: Session = Depends(get_db), store=Depends(get_store), bus=Depends(get_event_bus),
                     api_key: str = Depends(verify_api_key)):
    """Book an appointment; confirmation tasks are derived from the team's current schedule."""
    if request.id and AppointmentService.get_appointment(db, request.id):
        raise HTTPException(status_code=409, detail=f"Appointment {request.id} already exists")
    row, tasks = workflow.book_appointment(db, store, bus.deferred(background_tasks), request.team_id,
                                           request.start_at_utc, lead=request.lead, appointment_id=request.id)
    return _appointment_response(row, tasks)


# POST /appointments/{appointment_id}/reschedule
@router.post("/appointments/{appointment_id}/reschedule")
def reschedule_appointment(appointment_id: str, request: AppointmentRescheduleRequest,
                           background_tasks: BackgroundTasks,
                           db: Session = Depends(get_db), store=Depends(get_store),
                           bus=Depends(get_event_bus), api_key: str = Depends(verify_api_key)):
    row, tasks = workflow.reschedule_appointment(db, store, bus.deferred(background_tasks), appointment_id,
                                                 request.start_at_utc)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Appointment {appointment_id} not found")
    return _appointment_response(row, tasks)


# POST /appointments/{appointment_id}/status
# Gets: {status: no_show | completed | cancelled}
@router.post("/appointments/{appointment_id}/status")
def set_appointment_status(appointment_id: str, request: AppointmentOutcomeRequest,
                           background_tasks: BackgroundTasks,
                           db: Session = Depends(get_db), bus=Depends(get_event_bus),
                           api_key: str = Depends(verify_api_key)):
    if request.status not in OUTCOME_STATUSES:
        raise HTTPException(status_code=422, detail=f"Unsupported status {request.status}")
    row = workflow.set_appointment_outcome(db, bus.deferred(background_tasks), appointment_id, request.status)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Appointment {appointment_id} not found")
    return {"id": row.id, "status": row.status}


# GET /appointments/{appointment_id}/confirmation-tasks
# Returns: tasks with isOverdue / state / urgency computed now
@router.get("/appointments/{appointment_id}/confirmation-tasks")
def list_confirmation_tasks(appointment_id: str, db: Session = Depends(get_db)):
    if AppointmentService.get_appointment(db, appointment_id) is None:
        raise HTTPException(status_code=404, detail=f"Appointment {appointment_id} not found")
    now = datetime.now(timezone.utc)
    rows = ConfirmationTaskService.list_for_appointment(db, appointment_id)
    return [to_view(ConfirmationTaskService.to_model(row), now).model_dump(mode="json") for row in rows]


# POST /confirmation-tasks/{task_id}/attempts
# Gets: {confirmed_by, notes?}
# Returns: the updated task; 409 once the task is already fully confirmed
@router.post("/confirmation-tasks/{task_id}/attempts")
def record_confirmation_attempt(task_id: str, request: ConfirmationAttemptRequest,
                                db: Session = Depends(get_db), store=Depends(get_store),
                                api_key: str = Depends(verify_api_key)):
    if ConfirmationTaskService.get_task(db, task_id) is None:
        raise HTTPException(status_code=404, detail=f"Confirmation task {task_id} not found")
    try:
        task = workflow.confirm(store, task_id, request.confirmed_by, request.notes)
    except ConfirmationConflictError as e:
        confirmation_attempts_total.labels(outcome="conflict").inc()
        raise HTTPException(status_code=409, detail=str(e))
    confirmation_attempts_total.labels(outcome="recorded").inc()
    return to_view(task).model_dump(mode="json")

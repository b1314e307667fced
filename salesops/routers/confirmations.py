from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from salesops.confirmations import schedule as schedule_ops
from salesops.database import get_db
from salesops.errors import ScheduleEditError
from salesops.models import (
    ConfirmationStepConfig,
    ScheduleReorderRequest,
    ScheduleStepCreateRequest,
    ScheduleUpdateRequest,
)
from salesops.security import verify_api_key
from salesops.services import TeamService

router = APIRouter(prefix="/teams/{team_id}/confirmation-schedule", tags=["Confirmations"])


def _schedule_response(db: Session, team_id: str, steps: list[ConfirmationStepConfig]) -> dict:
    return {
        "teamId": team_id,
        "steps": [step.model_dump(mode="json") for step in steps],
        "overdueThresholdMinutes": TeamService.get_overdue_threshold_minutes(db, team_id),
    }


def _save(db: Session, team_id: str, steps: list[ConfirmationStepConfig]) -> dict:
    TeamService.save_confirmation_schedule(db, team_id, steps)
    return _schedule_response(db, team_id, steps)


# GET /teams/{team_id}/confirmation-schedule
# Returns: {teamId, steps: [...], overdueThresholdMinutes}
@router.get("")
def get_schedule(team_id: str, db: Session = Depends(get_db)):
    """The team's schedule in configuration (sequence) order."""
    return _schedule_response(db, team_id, TeamService.get_confirmation_schedule(db, team_id))


# PUT /teams/{team_id}/confirmation-schedule
# Gets: {steps: [...], overdue_threshold_minutes?}; list order wins, sequences are renumbered
@router.put("")
def replace_schedule(team_id: str, request: ScheduleUpdateRequest, db: Session = Depends(get_db),
                     api_key: str = Depends(verify_api_key)):
    if not request.steps:
        raise HTTPException(status_code=422, detail="Must have at least one confirmation window")
    if request.overdue_threshold_minutes is not None:
        TeamService.set_overdue_threshold_minutes(db, team_id, request.overdue_threshold_minutes)
    return _save(db, team_id, schedule_ops.resequence(request.steps))


# POST /teams/{team_id}/confirmation-schedule/steps
@router.post("/steps", status_code=201)
def add_schedule_step(team_id: str, request: ScheduleStepCreateRequest, db: Session = Depends(get_db),
                      api_key: str = Depends(verify_api_key)):
    current = TeamService.get_confirmation_schedule(db, team_id)
    steps = schedule_ops.add_step(current, **request.model_dump())
    return _save(db, team_id, steps)


# DELETE /teams/{team_id}/confirmation-schedule/steps/{index}
@router.delete("/steps/{index}")
def remove_schedule_step(team_id: str, index: int, db: Session = Depends(get_db),
                         api_key: str = Depends(verify_api_key)):
    current = TeamService.get_confirmation_schedule(db, team_id)
    try:
        steps = schedule_ops.remove_step(current, index)
    except ScheduleEditError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _save(db, team_id, steps)


# PATCH /teams/{team_id}/confirmation-schedule/steps/{index}
# Gets: any of {hours_before, label, assigned_role, enabled}
@router.patch("/steps/{index}")
def update_schedule_step(team_id: str, index: int, changes: dict, db: Session = Depends(get_db),
                         api_key: str = Depends(verify_api_key)):
    current = TeamService.get_confirmation_schedule(db, team_id)
    try:
        steps = schedule_ops.update_step(current, index, **changes)
    except ScheduleEditError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _save(db, team_id, steps)


# POST /teams/{team_id}/confirmation-schedule/reorder
# Gets: {old_index, new_index}
@router.post("/reorder")
def reorder_schedule(team_id: str, request: ScheduleReorderRequest, db: Session = Depends(get_db),
                     api_key: str = Depends(verify_api_key)):
    current = TeamService.get_confirmation_schedule(db, team_id)
    try:
        steps = schedule_ops.reorder_step(current, request.old_index, request.new_index)
    except ScheduleEditError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _save(db, team_id, steps)


# GET /teams/{team_id}/confirmation-schedule/timeline
# Returns: active steps, furthest-from-appointment first
@router.get("/timeline")
def get_timeline(team_id: str, db: Session = Depends(get_db)):
    steps = schedule_ops.timeline_order(TeamService.get_confirmation_schedule(db, team_id))
    return [step.model_dump(mode="json") for step in steps]

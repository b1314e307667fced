import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from salesops.database import get_db
from salesops.models import (
    AutomationRule,
    DispatchResult,
    RuleCreateRequest,
    RuleUpdateRequest,
    TriggerEvent,
    TriggerType,
)
from salesops.routers.deps import get_engine, get_event_bus
from salesops.security import verify_api_key
from salesops.services import AutomationRuleService, AutomationRunService

router = APIRouter(prefix="/automations", tags=["Automations"])


# POST /automations/trigger
# Gets: JSON envelope {teamId, triggerType, eventPayload}
# Returns: 202 immediately; the dispatch runs after the response (or on Celery)
# Example:
#   curl -X POST http://localhost:8000/automations/trigger \
#     -H 'Content-Type: application/json' \
#     -d '{"teamId": "team-1", "triggerType": "lead_created", "eventPayload": {"lead": {"status": "new"}}}'
@router.post("/trigger", status_code=202)
async def trigger_automations(
    event: TriggerEvent,
    background_tasks: BackgroundTasks,
    bus=Depends(get_event_bus),
    api_key: str = Depends(verify_api_key),
):
    """Accept a business event for automation dispatch."""
    background_tasks.add_task(bus.publish, event)
    return {"status": "accepted", "teamId": event.team_id, "triggerType": event.trigger_type.value}


# POST /automations/trigger/preview
# Gets: same envelope as /automations/trigger
# Returns: DispatchResult {status, triggerType, automationsRun, stepsExecuted}
# Example:
#   curl -X POST http://localhost:8000/automations/trigger/preview -d '{...}'
@router.post("/trigger/preview", response_model=DispatchResult)
def preview_automations(
    event: TriggerEvent,
    engine=Depends(get_engine),
    api_key: str = Depends(verify_api_key),
):
    """Run the dispatch synchronously and return the per-step logs."""
    return engine.run_event(event)


# GET /automations/rules?team_id=team-1[&trigger_type=lead_created]
@router.get("/rules", response_model=list[AutomationRule])
def list_rules(team_id: str, trigger_type: Optional[TriggerType] = None, db: Session = Depends(get_db)):
    """List a team's automation rules."""
    rows = AutomationRuleService.list_rules(db, team_id, trigger_type)
    return [AutomationRuleService.to_model(row) for row in rows]


# POST /automations/rules
@router.post("/rules", response_model=AutomationRule, status_code=201)
def create_rule(request: RuleCreateRequest, db: Session = Depends(get_db),
                api_key: str = Depends(verify_api_key)):
    """Create an automation rule."""
    fields = {name: value for name, value in request if name != "id"}
    rule = AutomationRule(**fields, id=request.id or str(uuid.uuid4()))
    if AutomationRuleService.get_rule(db, rule.id):
        raise HTTPException(status_code=409, detail=f"Rule {rule.id} already exists")
    return AutomationRuleService.to_model(AutomationRuleService.create_rule(db, rule))


# PATCH /automations/rules/{rule_id}
@router.patch("/rules/{rule_id}", response_model=AutomationRule)
def update_rule(rule_id: str, request: RuleUpdateRequest, db: Session = Depends(get_db),
                api_key: str = Depends(verify_api_key)):
    """Edit or toggle a rule."""
    changes = {}
    if request.name is not None:
        changes["name"] = request.name
    if request.is_active is not None:
        changes["is_active"] = request.is_active
    if request.conditions is not None:
        changes["conditions"] = [c.model_dump(mode="json", exclude_unset=True) for c in request.conditions]
    if request.steps is not None:
        changes["steps"] = [s.model_dump(mode="json") for s in request.steps]

    rule = AutomationRuleService.update_rule(db, rule_id, **changes)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")
    return AutomationRuleService.to_model(rule)


# DELETE /automations/rules/{rule_id}
@router.delete("/rules/{rule_id}", status_code=204)
def delete_rule(rule_id: str, db: Session = Depends(get_db), api_key: str = Depends(verify_api_key)):
    if not AutomationRuleService.delete_rule(db, rule_id):
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")


# GET /automations/runs?team_id=team-1
@router.get("/runs")
def list_runs(team_id: str, limit: int = 50, db: Session = Depends(get_db)):
    """Recent automation runs with their step logs, newest first."""
    return [
        {
            "id": run.id,
            "ruleId": run.rule_id,
            "triggerType": run.trigger_type,
            "stepsExecuted": run.steps_executed,
            "skippedSteps": run.skipped_steps,
            "createdAt": run.created_at.isoformat() if run.created_at else None,
        }
        for run in AutomationRunService.list_runs(db, team_id, limit)
    ]

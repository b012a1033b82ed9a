"""
Scenario set API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.application.scenario_sets import (
    CloneScenarioSetUseCase,
    CreateScenarioSetUseCase,
    DeleteScenarioSetUseCase,
    UpdateScenarioSetUseCase,
    get_active_state,
    get_or_create_default,
    list_scenario_sets,
    require_scenario_set,
)


router = APIRouter(prefix="/api/v1/scenario-sets", tags=["scenario-sets"])


class CreateScenarioSetRequest(BaseModel):
    name: str
    description: str | None = None
    decision_path_states: dict[int, bool] = {}


class UpdateScenarioSetRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    decision_path_states: dict[int, bool] | None = None


class CloneScenarioSetRequest(BaseModel):
    name: str
    description: str | None = None


class ScenarioSetResponse(BaseModel):
    id: int
    name: str
    description: str | None
    is_default: bool
    decision_path_states: dict[int, bool]  # merged with all current paths


def _to_response(db: Session, scenario) -> ScenarioSetResponse:
    return ScenarioSetResponse(
        id=scenario.id,
        name=scenario.name,
        description=scenario.description,
        is_default=scenario.is_default,
        decision_path_states=get_active_state(db, scenario.id),
    )


@router.get("/", response_model=list[ScenarioSetResponse])
def list_sets(db: Session = Depends(get_db)):
    get_or_create_default(db)
    return [_to_response(db, s) for s in list_scenario_sets(db)]


@router.get("/default", response_model=ScenarioSetResponse)
def get_default_set(db: Session = Depends(get_db)):
    return _to_response(db, get_or_create_default(db))


@router.post("/", response_model=ScenarioSetResponse, status_code=201)
def create_set(req: CreateScenarioSetRequest, db: Session = Depends(get_db)):
    try:
        scenario = CreateScenarioSetUseCase(db).execute(
            name=req.name,
            decision_path_states=req.decision_path_states,
            description=req.description,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(db, scenario)


@router.get("/{scenario_set_id}", response_model=ScenarioSetResponse)
def get_set(scenario_set_id: int, db: Session = Depends(get_db)):
    return _to_response(db, require_scenario_set(db, scenario_set_id))


@router.patch("/{scenario_set_id}", response_model=ScenarioSetResponse)
def update_set(scenario_set_id: int, req: UpdateScenarioSetRequest, db: Session = Depends(get_db)):
    try:
        scenario = UpdateScenarioSetUseCase(db).execute(
            scenario_set_id,
            name=req.name,
            description=req.description,
            decision_path_states=req.decision_path_states,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(db, scenario)


@router.post("/{scenario_set_id}/clone", response_model=ScenarioSetResponse, status_code=201)
def clone_set(scenario_set_id: int, req: CloneScenarioSetRequest, db: Session = Depends(get_db)):
    try:
        scenario = CloneScenarioSetUseCase(db).execute(scenario_set_id, req.name, req.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(db, scenario)


@router.delete("/{scenario_set_id}")
def delete_set(scenario_set_id: int, db: Session = Depends(get_db)):
    try:
        DeleteScenarioSetUseCase(db).execute(scenario_set_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "deleted"}

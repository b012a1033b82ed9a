"""
Decision path API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.application.decision_paths import (
    DeleteDecisionPathUseCase,
    GetOrCreateDecisionPathUseCase,
    UpdateDecisionPathUseCase,
    list_decision_paths_with_usage,
    require_decision_path,
)


router = APIRouter(prefix="/api/v1/decision-paths", tags=["decision-paths"])


class DecisionPathRequest(BaseModel):
    name: str
    description: str | None = None


class UpdateDecisionPathRequest(BaseModel):
    name: str | None = None
    description: str | None = None


class DecisionPathResponse(BaseModel):
    id: int
    name: str
    description: str | None
    event_count: int | None = None
    recurring_rule_count: int | None = None
    total_usage: int | None = None


def _to_response(path) -> DecisionPathResponse:
    return DecisionPathResponse(id=path.id, name=path.name, description=path.description)


@router.get("/", response_model=list[DecisionPathResponse])
def list_paths(db: Session = Depends(get_db)):
    """All decision paths with usage counts"""
    return [
        DecisionPathResponse(
            id=u.decision_path.id,
            name=u.decision_path.name,
            description=u.decision_path.description,
            event_count=u.event_count,
            recurring_rule_count=u.recurring_rule_count,
            total_usage=u.total_usage,
        )
        for u in list_decision_paths_with_usage(db)
    ]


@router.post("/", response_model=DecisionPathResponse)
def create_path(req: DecisionPathRequest, db: Session = Depends(get_db)):
    """Get or create by name"""
    try:
        path, _ = GetOrCreateDecisionPathUseCase(db).execute(req.name, req.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(path)


@router.get("/{decision_path_id}", response_model=DecisionPathResponse)
def get_path(decision_path_id: int, db: Session = Depends(get_db)):
    return _to_response(require_decision_path(db, decision_path_id))


@router.patch("/{decision_path_id}", response_model=DecisionPathResponse)
def update_path(decision_path_id: int, req: UpdateDecisionPathRequest, db: Session = Depends(get_db)):
    try:
        path = UpdateDecisionPathUseCase(db).execute(decision_path_id, req.name, req.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(path)


@router.delete("/{decision_path_id}")
def delete_path(decision_path_id: int, db: Session = Depends(get_db)):
    detached = DeleteDecisionPathUseCase(db).execute(decision_path_id)
    return {"status": "deleted", **detached}

"""
Projection event API endpoints
"""
from datetime import date as date_type

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.application.projection_events import (
    CreateProjectionEventUseCase,
    DeleteProjectionEventUseCase,
    UpdateProjectionEventUseCase,
    list_events,
    require_event,
)
from app.domain.projection_event import VALID_CERTAINTIES, VALID_DIRECTIONS
from app.utils.validation import parse_amount, validate_and_normalize_amount


router = APIRouter(prefix="/api/v1/projection-events", tags=["projection-events"])


# === Request/Response models ===

class CreateProjectionEventRequest(BaseModel):
    bank_account_id: int
    name: str
    date: date_type
    value: str  # Decimal as string
    direction: str  # EXPENSE, INCOMING
    certainty: str  # UNLIKELY, POSSIBLE, LIKELY, CERTAIN
    description: str | None = None
    pay_to: str | None = None
    paid_by: str | None = None
    decision_path_id: int | None = None

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        return validate_and_normalize_amount(v)

    @field_validator("direction")
    @classmethod
    def validate_direction(cls, v: str) -> str:
        if v not in VALID_DIRECTIONS:
            raise ValueError(f"direction must be EXPENSE or INCOMING, got: {v}")
        return v

    @field_validator("certainty")
    @classmethod
    def validate_certainty(cls, v: str) -> str:
        if v not in VALID_CERTAINTIES:
            raise ValueError(f"invalid certainty: {v}")
        return v


class UpdateProjectionEventRequest(BaseModel):
    name: str | None = None
    date: date_type | None = None
    value: str | None = None
    direction: str | None = None
    certainty: str | None = None
    description: str | None = None
    pay_to: str | None = None
    paid_by: str | None = None
    decision_path_id: int | None = None

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str | None) -> str | None:
        return validate_and_normalize_amount(v) if v is not None else v


class ProjectionEventResponse(BaseModel):
    id: int
    bank_account_id: int
    name: str
    description: str | None
    date: date_type
    value: str
    direction: str
    certainty: str
    pay_to: str | None
    paid_by: str | None
    decision_path_id: int | None
    recurring_rule_id: int | None
    scheduled_date: date_type | None = None


def to_event_response(e) -> ProjectionEventResponse:
    return ProjectionEventResponse(
        id=e.id,
        bank_account_id=e.bank_account_id,
        name=e.name,
        description=e.description,
        date=e.date,
        value=str(e.value),
        direction=e.direction,
        certainty=e.certainty,
        pay_to=e.pay_to,
        paid_by=e.paid_by,
        decision_path_id=e.decision_path_id,
        recurring_rule_id=e.recurring_rule_id,
        scheduled_date=e.scheduled_date,
    )


# === Endpoints ===

@router.get("/", response_model=list[ProjectionEventResponse])
def list_projection_events(
    bank_account_id: int | None = None,
    start_date: date_type | None = None,
    end_date: date_type | None = None,
    decision_path_id: int | None = None,
    db: Session = Depends(get_db),
):
    events = list_events(db, bank_account_id, start_date, end_date, decision_path_id)
    return [to_event_response(e) for e in events]


@router.post("/", response_model=ProjectionEventResponse, status_code=201)
def create_projection_event(req: CreateProjectionEventRequest, db: Session = Depends(get_db)):
    try:
        event = CreateProjectionEventUseCase(db).execute(
            bank_account_id=req.bank_account_id,
            name=req.name,
            date=req.date,
            value=parse_amount(req.value),
            direction=req.direction,
            certainty=req.certainty,
            description=req.description,
            pay_to=req.pay_to,
            paid_by=req.paid_by,
            decision_path_id=req.decision_path_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_event_response(event)


@router.get("/{event_id}", response_model=ProjectionEventResponse)
def get_projection_event(event_id: int, db: Session = Depends(get_db)):
    return to_event_response(require_event(db, event_id))


@router.patch("/{event_id}", response_model=ProjectionEventResponse)
def update_projection_event(
    event_id: int,
    req: UpdateProjectionEventRequest,
    db: Session = Depends(get_db),
):
    changes = req.model_dump(exclude_unset=True)
    if changes.get("value") is not None:
        changes["value"] = parse_amount(changes["value"])
    try:
        event = UpdateProjectionEventUseCase(db).execute(event_id, **changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_event_response(event)


@router.delete("/{event_id}")
def delete_projection_event(event_id: int, db: Session = Depends(get_db)):
    DeleteProjectionEventUseCase(db).execute(event_id)
    return {"status": "deleted"}

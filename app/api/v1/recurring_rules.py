"""
Recurring event rule API endpoints (CRUD, revisions, preview)
"""
from datetime import date as date_type

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.api.v1.projection_events import ProjectionEventResponse, to_event_response
from app.application.recurring_rules import (
    CreateRecurringRuleUseCase,
    DeleteRecurringRuleUseCase,
    UpdateRecurringRuleUseCase,
    create_revision_for_recurring_rule,
    get_rule_with_events,
    lineage,
    list_rules,
    list_rules_by_decision_path,
)
from app.application.rule_materializer import preview
from app.domain.projection_event import VALID_DIRECTIONS
from app.domain.recurrence import RuleSpec, VALID_FREQ
from app.utils.validation import parse_amount, validate_and_normalize_amount


router = APIRouter(prefix="/api/v1/recurring-event-rules", tags=["recurring-event-rules"])


# === Request/Response models ===

class CreateRecurringRuleRequest(BaseModel):
    bank_account_id: int
    name: str
    value: str  # Decimal as string
    direction: str
    certainty: str
    frequency: str  # DAILY, WEEKLY, MONTHLY, QUARTERLY, BIANNUAL, ANNUAL
    start_date: date_type
    end_date: date_type
    description: str | None = None
    pay_to: str | None = None
    paid_by: str | None = None
    decision_path_id: int | None = None

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        return validate_and_normalize_amount(v)


class UpdateRecurringRuleRequest(BaseModel):
    name: str | None = None
    value: str | None = None
    direction: str | None = None
    certainty: str | None = None
    frequency: str | None = None
    start_date: date_type | None = None
    end_date: date_type | None = None
    description: str | None = None
    pay_to: str | None = None
    paid_by: str | None = None
    decision_path_id: int | None = None

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str | None) -> str | None:
        return validate_and_normalize_amount(v) if v is not None else v


class CreateRevisionRequest(BaseModel):
    start_date: date_type  # when the new value takes effect
    value: str
    description: str | None = None
    frequency: str | None = None
    decision_path_id: int | None = None

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        return validate_and_normalize_amount(v)


class PreviewRequest(BaseModel):
    frequency: str
    start_date: date_type
    end_date: date_type
    limit: int = 10
    direction: str | None = None  # INCOMING moves off weekends and bank holidays

    @field_validator("frequency")
    @classmethod
    def validate_frequency(cls, v: str) -> str:
        if v not in VALID_FREQ:
            raise ValueError(f"invalid frequency: {v}")
        return v

    @field_validator("direction")
    @classmethod
    def validate_direction(cls, v: str | None) -> str | None:
        if v is not None and v not in VALID_DIRECTIONS:
            raise ValueError(f"invalid direction: {v}")
        return v


class PreviewOccurrence(BaseModel):
    date: date_type
    adjusted_date: date_type
    is_adjusted: bool


class RecurringRuleResponse(BaseModel):
    id: int
    bank_account_id: int
    name: str
    description: str | None
    value: str
    direction: str
    certainty: str
    pay_to: str | None
    paid_by: str | None
    decision_path_id: int | None
    start_date: date_type
    end_date: date_type
    frequency: str
    is_base_rule: bool
    base_rule_id: int | None
    event_count: int | None = None


class RecurringRuleDetailResponse(RecurringRuleResponse):
    events: list[ProjectionEventResponse]


class RevisionResponse(BaseModel):
    base_rule: RecurringRuleResponse
    revision: RecurringRuleResponse
    base_rule_events_deleted: int
    revision_events_created: int


def to_rule_response(rule, event_count: int | None = None) -> RecurringRuleResponse:
    return RecurringRuleResponse(
        id=rule.id,
        bank_account_id=rule.bank_account_id,
        name=rule.name,
        description=rule.description,
        value=str(rule.value),
        direction=rule.direction,
        certainty=rule.certainty,
        pay_to=rule.pay_to,
        paid_by=rule.paid_by,
        decision_path_id=rule.decision_path_id,
        start_date=rule.start_date,
        end_date=rule.end_date,
        frequency=rule.frequency,
        is_base_rule=rule.is_base_rule,
        base_rule_id=rule.base_rule_id,
        event_count=event_count,
    )


# === Endpoints ===

@router.get("/", response_model=list[RecurringRuleResponse])
def list_recurring_rules(
    bank_account_id: int | None = None,
    decision_path_id: int | None = None,
    db: Session = Depends(get_db),
):
    if decision_path_id is not None:
        return [to_rule_response(r) for r in list_rules_by_decision_path(db, decision_path_id)]
    return [to_rule_response(rule, count) for rule, count in list_rules(db, bank_account_id)]


@router.post("/", response_model=RecurringRuleResponse, status_code=201)
def create_recurring_rule(req: CreateRecurringRuleRequest, db: Session = Depends(get_db)):
    try:
        rule, events = CreateRecurringRuleUseCase(db).execute(
            bank_account_id=req.bank_account_id,
            name=req.name,
            value=parse_amount(req.value),
            direction=req.direction,
            certainty=req.certainty,
            frequency=req.frequency,
            start_date=req.start_date,
            end_date=req.end_date,
            description=req.description,
            pay_to=req.pay_to,
            paid_by=req.paid_by,
            decision_path_id=req.decision_path_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_rule_response(rule, len(events))


@router.post("/preview", response_model=list[PreviewOccurrence])
def preview_recurring_rule(req: PreviewRequest):
    """First occurrences of an unsaved rule with their booking dates"""
    try:
        occurrences = preview(
            RuleSpec(req.frequency, req.start_date, req.end_date),
            limit=req.limit,
            direction=req.direction,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [
        PreviewOccurrence(date=o.date, adjusted_date=o.adjusted_date, is_adjusted=o.is_adjusted)
        for o in occurrences
    ]


@router.get("/{rule_id}", response_model=RecurringRuleDetailResponse)
def get_recurring_rule(rule_id: int, db: Session = Depends(get_db)):
    rule, events = get_rule_with_events(db, rule_id)
    base = to_rule_response(rule, len(events))
    return RecurringRuleDetailResponse(
        **base.model_dump(),
        events=[to_event_response(e) for e in events],
    )


@router.get("/{rule_id}/lineage", response_model=list[RecurringRuleResponse])
def get_rule_lineage(rule_id: int, db: Session = Depends(get_db)):
    """Root rule and all its revisions, ordered by start date"""
    return [to_rule_response(r) for r in lineage(db, rule_id)]


@router.patch("/{rule_id}", response_model=RecurringRuleResponse)
def update_recurring_rule(
    rule_id: int,
    req: UpdateRecurringRuleRequest,
    db: Session = Depends(get_db),
):
    changes = req.model_dump(exclude_unset=True)
    if changes.get("value") is not None:
        changes["value"] = parse_amount(changes["value"])
    try:
        rule, _, created = UpdateRecurringRuleUseCase(db).execute(rule_id, **changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_rule_response(rule, created)


@router.delete("/{rule_id}")
def delete_recurring_rule(rule_id: int, db: Session = Depends(get_db)):
    deleted = DeleteRecurringRuleUseCase(db).execute(rule_id)
    return {"status": "deleted", "events_deleted": deleted}


@router.post("/{rule_id}/revisions", response_model=RevisionResponse, status_code=201)
def create_revision(rule_id: int, req: CreateRevisionRequest, db: Session = Depends(get_db)):
    """Change a rule's value from start_date on, keeping its history"""
    try:
        result = create_revision_for_recurring_rule(
            db,
            base_rule_id=rule_id,
            revision_start=req.start_date,
            value=parse_amount(req.value),
            description=req.description,
            frequency=req.frequency,
            decision_path_id=req.decision_path_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RevisionResponse(
        base_rule=to_rule_response(result.base_rule),
        revision=to_rule_response(result.revision, result.events_created),
        base_rule_events_deleted=result.events_deleted,
        revision_events_created=result.events_created,
    )

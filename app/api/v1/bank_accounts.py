"""
Bank account API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.application.bank_accounts import (
    CreateBankAccountUseCase, list_bank_accounts, require_bank_account,
)
from app.infrastructure.eventlog.repository import EventLogRepository


router = APIRouter(prefix="/api/v1/bank-accounts", tags=["bank-accounts"])


# === Request/Response models ===

class CreateBankAccountRequest(BaseModel):
    name: str
    description: str | None = None


class BankAccountResponse(BaseModel):
    id: int
    name: str
    description: str | None


class ActivityResponse(BaseModel):
    id: int
    event_type: str
    payload: dict
    occurred_at: str


def _to_response(account) -> BankAccountResponse:
    return BankAccountResponse(id=account.id, name=account.name, description=account.description)


# === Endpoints ===

@router.post("/", response_model=BankAccountResponse, status_code=201)
def create_bank_account(req: CreateBankAccountRequest, db: Session = Depends(get_db)):
    try:
        account = CreateBankAccountUseCase(db).execute(name=req.name, description=req.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(account)


@router.get("/", response_model=list[BankAccountResponse])
def list_accounts(db: Session = Depends(get_db)):
    return [_to_response(a) for a in list_bank_accounts(db)]


@router.get("/{bank_account_id}", response_model=BankAccountResponse)
def get_bank_account(bank_account_id: int, db: Session = Depends(get_db)):
    return _to_response(require_bank_account(db, bank_account_id))


@router.get("/{bank_account_id}/activity", response_model=list[ActivityResponse])
def get_activity(bank_account_id: int, limit: int = 200, db: Session = Depends(get_db)):
    """Activity log of the account, newest first"""
    require_bank_account(db, bank_account_id)
    entries = EventLogRepository(db).list_events(bank_account_id, limit=limit)
    return [
        ActivityResponse(
            id=e.id,
            event_type=e.event_type,
            payload=e.payload_json,
            occurred_at=e.occurred_at.isoformat(),
        )
        for e in entries
    ]

"""
Initial balance settings API endpoints
"""
from datetime import date as date_type

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.application.account_settings import UpdateInitialBalanceUseCase, get_initial_balance
from app.utils.validation import parse_amount, validate_and_normalize_amount


router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


class UpdateSettingsRequest(BaseModel):
    initial_balance: str
    initial_balance_date: date_type | None = None
    bank_account_id: int | None = None  # None = global fallback

    @field_validator("initial_balance")
    @classmethod
    def validate_balance(cls, v: str) -> str:
        return validate_and_normalize_amount(v, allow_negative=True)


class SettingsResponse(BaseModel):
    bank_account_id: int | None
    initial_balance: str
    initial_balance_date: date_type | None


@router.get("/", response_model=SettingsResponse)
def get_settings_endpoint(bank_account_id: int | None = None, db: Session = Depends(get_db)):
    initial = get_initial_balance(db, bank_account_id)
    return SettingsResponse(
        bank_account_id=bank_account_id,
        initial_balance=str(initial.amount),
        initial_balance_date=initial.effective_date,
    )


@router.put("/", response_model=SettingsResponse)
def update_settings(req: UpdateSettingsRequest, db: Session = Depends(get_db)):
    try:
        row = UpdateInitialBalanceUseCase(db).execute(
            initial_balance=parse_amount(req.initial_balance, allow_negative=True),
            initial_balance_date=req.initial_balance_date,
            bank_account_id=req.bank_account_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SettingsResponse(
        bank_account_id=row.bank_account_id,
        initial_balance=str(row.initial_balance),
        initial_balance_date=row.initial_balance_date,
    )

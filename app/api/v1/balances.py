"""
Balance API endpoints - persisted timeline, overrides, what-if computation, coverage
"""
from datetime import date as date_type

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_enabled_decision_path_ids
from app.application.balance_calculator import calculate_daily_balances, compute_balances_on_the_fly
from app.application.bank_accounts import require_bank_account
from app.application.coverage import CoverageTracker
from app.application.daily_balances import (
    ClearActualBalanceUseCase,
    SetActualBalanceUseCase,
    get_daily_balance,
    list_daily_balances,
)
from app.application.recalculation import recalculate_balances_from
from app.utils.validation import parse_amount, validate_and_normalize_amount


router = APIRouter(prefix="/api/v1", tags=["balances"])


# === Request/Response models ===

class SetActualBalanceRequest(BaseModel):
    bank_account_id: int
    date: date_type
    actual_balance: str  # Decimal as string, may be negative

    @field_validator("actual_balance")
    @classmethod
    def validate_balance(cls, v: str) -> str:
        return validate_and_normalize_amount(v, allow_negative=True)


class CalculateBalancesRequest(BaseModel):
    bank_account_id: int
    start_date: date_type
    end_date: date_type
    enabled_decision_path_ids: list[int] | None = None


class DailyBalanceResponse(BaseModel):
    date: date_type
    expected_balance: str
    actual_balance: str | None


class RecalculationResponse(BaseModel):
    ok: bool
    start: date_type
    end: date_type
    rows_written: int
    error: str | None = None


class SetActualBalanceResponse(BaseModel):
    balance: DailyBalanceResponse
    recalculation: RecalculationResponse


class CalculatedDayResponse(BaseModel):
    date: date_type
    expected_balance: str
    day_delta: str
    event_count: int


class ComputedDayResponse(BaseModel):
    date: date_type
    expected_balance: str
    event_count: int
    balance_type: str  # true / projected


class ComputeBalancesResponse(BaseModel):
    starting_balance: str
    starting_date: date_type
    balances: list[ComputedDayResponse]


class CoverageRangeResponse(BaseModel):
    start: date_type
    end: date_type


class CoverageResponse(BaseModel):
    latest_covered_date: date_type | None
    earliest_covered_date: date_type | None
    transaction_count: int
    coverage_ranges: list[CoverageRangeResponse]


def _balance_response(row) -> DailyBalanceResponse:
    return DailyBalanceResponse(
        date=row.date,
        expected_balance=str(row.expected_balance),
        actual_balance=str(row.actual_balance) if row.actual_balance is not None else None,
    )


def _recalc_response(result) -> RecalculationResponse:
    return RecalculationResponse(
        ok=result.ok,
        start=result.start,
        end=result.end,
        rows_written=result.rows_written,
        error=result.error,
    )


def _calculated(days) -> list[CalculatedDayResponse]:
    return [
        CalculatedDayResponse(
            date=d.date,
            expected_balance=str(d.expected_balance),
            day_delta=str(d.day_delta),
            event_count=d.event_count,
        )
        for d in days
    ]


# === Daily balance rows ===

@router.get("/daily-balance", response_model=list[DailyBalanceResponse])
def get_daily_balances(
    bank_account_id: int,
    date: date_type | None = None,
    start_date: date_type | None = None,
    end_date: date_type | None = None,
    db: Session = Depends(get_db),
):
    """One date (`date`) or a range (`start_date`..`end_date`)"""
    if date is not None:
        return [_balance_response(get_daily_balance(db, bank_account_id, date))]
    if start_date is None or end_date is None:
        raise HTTPException(status_code=400, detail="date or start_date and end_date are required")
    try:
        rows = list_daily_balances(db, bank_account_id, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [_balance_response(r) for r in rows]


@router.put("/daily-balance", response_model=SetActualBalanceResponse)
def set_actual_balance(req: SetActualBalanceRequest, db: Session = Depends(get_db)):
    """Set the actual (override) balance of a date and recalculate from it"""
    try:
        row, result = SetActualBalanceUseCase(db).execute(
            req.bank_account_id, req.date, parse_amount(req.actual_balance, allow_negative=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SetActualBalanceResponse(balance=_balance_response(row), recalculation=_recalc_response(result))


@router.delete("/daily-balance", response_model=RecalculationResponse)
def clear_actual_balance(bank_account_id: int, date: date_type, db: Session = Depends(get_db)):
    return _recalc_response(ClearActualBalanceUseCase(db).execute(bank_account_id, date))


# === Calculation ===

@router.post("/calculate-balances", response_model=list[CalculatedDayResponse])
def calculate_balances(req: CalculateBalancesRequest, db: Session = Depends(get_db)):
    """Recalculate and persist the timeline of a date range"""
    enabled = set(req.enabled_decision_path_ids) if req.enabled_decision_path_ids is not None else None
    try:
        if enabled is None:
            days = recalculate_balances_from(db, req.start_date, req.end_date, req.bank_account_id)
        else:
            days = calculate_daily_balances(db, req.start_date, req.end_date, req.bank_account_id, enabled)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _calculated(days)


@router.get("/compute-balances", response_model=ComputeBalancesResponse)
def compute_balances(
    bank_account_id: int,
    start_date: date_type,
    end_date: date_type,
    true_balance_date: date_type | None = None,
    enabled: set[int] | None = Depends(get_enabled_decision_path_ids),
    db: Session = Depends(get_db),
):
    """What-if timeline (not persisted), anchored on the last known true balance"""
    try:
        result = compute_balances_on_the_fly(
            db,
            start_date,
            end_date,
            bank_account_id,
            true_balance_date or start_date,
            enabled_decision_path_ids=enabled,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ComputeBalancesResponse(
        starting_balance=str(result.starting_balance),
        starting_date=result.starting_date,
        balances=[
            ComputedDayResponse(
                date=b.date,
                expected_balance=str(b.expected_balance),
                event_count=b.event_count,
                balance_type=b.balance_type,
            )
            for b in result.balances
        ],
    )


@router.get("/coverage", response_model=CoverageResponse)
def get_coverage(bank_account_id: int, db: Session = Depends(get_db)):
    require_bank_account(db, bank_account_id)
    coverage = CoverageTracker(db).get_coverage(bank_account_id)
    return CoverageResponse(
        latest_covered_date=coverage.latest_covered_date,
        earliest_covered_date=coverage.earliest_covered_date,
        transaction_count=coverage.transaction_count,
        coverage_ranges=[CoverageRangeResponse(start=r.start, end=r.end) for r in coverage.coverage_ranges],
    )

"""
Daily balance rows - reads and actual-balance overrides

expected_balance belongs to the calculator; these use cases only touch
actual_balance and then recalculate the account from the override date.
"""
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from app.application.bank_accounts import require_bank_account
from app.application.errors import NotFoundError
from app.application.recalculation import BalanceRecalculator, RecalculationResult
from app.domain.balance import BalanceComputationError, check_money
from app.infrastructure.db.models import DailyBalance
from app.infrastructure.eventlog.repository import EventLogRepository


class DailyBalanceValidationError(ValueError):
    pass


def get_daily_balance(db: Session, bank_account_id: int, day: date) -> DailyBalance:
    require_bank_account(db, bank_account_id)
    row = db.query(DailyBalance).filter(
        DailyBalance.bank_account_id == bank_account_id,
        DailyBalance.date == day,
    ).first()
    if row is None:
        raise NotFoundError("Daily balance", f"{bank_account_id}/{day.isoformat()}")
    return row


def list_daily_balances(db: Session, bank_account_id: int, start: date, end: date) -> list[DailyBalance]:
    if start > end:
        raise DailyBalanceValidationError("start date must be on or before end date")
    require_bank_account(db, bank_account_id)
    return (
        db.query(DailyBalance)
        .filter(
            DailyBalance.bank_account_id == bank_account_id,
            DailyBalance.date >= start,
            DailyBalance.date <= end,
        )
        .order_by(DailyBalance.date.asc())
        .all()
    )


class SetActualBalanceUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self, bank_account_id: int, day: date, actual_balance: Decimal
    ) -> tuple[DailyBalance, RecalculationResult]:
        require_bank_account(self.db, bank_account_id)
        try:
            check_money(actual_balance)
        except BalanceComputationError as e:
            raise DailyBalanceValidationError(str(e)) from e

        row = self.db.query(DailyBalance).filter(
            DailyBalance.bank_account_id == bank_account_id,
            DailyBalance.date == day,
        ).first()
        previous = row.actual_balance if row is not None else None
        if row is None:
            # expected_balance is filled in by the recalculation below
            row = DailyBalance(bank_account_id=bank_account_id, date=day, expected_balance=Decimal("0"))
            self.db.add(row)
        row.actual_balance = actual_balance
        self.db.flush()

        self.event_repo.append_event(
            account_id=bank_account_id,
            event_type="actual_balance_set",
            payload={
                "date": day.isoformat(),
                "actual_balance": str(actual_balance),
                "previous_actual_balance": str(previous) if previous is not None else None,
            },
        )
        self.db.commit()

        result = BalanceRecalculator(self.db).invalidate(bank_account_id, day)
        self.db.refresh(row)
        return row, result


class ClearActualBalanceUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, bank_account_id: int, day: date) -> RecalculationResult:
        row = get_daily_balance(self.db, bank_account_id, day)
        if row.actual_balance is None:
            raise NotFoundError("Actual balance", f"{bank_account_id}/{day.isoformat()}")

        previous = row.actual_balance
        row.actual_balance = None
        self.event_repo.append_event(
            account_id=bank_account_id,
            event_type="actual_balance_cleared",
            payload={"date": day.isoformat(), "previous_actual_balance": str(previous)},
        )
        self.db.commit()

        return BalanceRecalculator(self.db).invalidate(bank_account_id, day)

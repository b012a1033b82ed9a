"""
Recalculation Trigger

Single entry point called by every mutation that can change an account's
timeline (event / rule CRUD, rule revisions, actual-balance set / clear,
initial balance change). Runs after the mutation has committed; a failure
is logged and recorded in the activity log but never undoes the mutation.
"""
import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.recurrence import add_months
from app.infrastructure.eventlog.repository import EventLogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecalculationResult:
    bank_account_id: int
    start: date
    end: date
    ok: bool
    rows_written: int = 0
    error: str | None = None


def recalculation_window(from_date: date, to_date: date | None = None) -> tuple[date, date]:
    """[from_date, max(from_date + RECALC_WINDOW_MONTHS, to_date)]"""
    end = add_months(from_date, get_settings().RECALC_WINDOW_MONTHS)
    if to_date is not None and to_date > end:
        end = to_date
    return from_date, end


class BalanceRecalculator:
    def __init__(self, db: Session):
        self.db = db

    def invalidate(
        self,
        bank_account_id: int,
        from_date: date,
        to_date: date | None = None,
    ) -> RecalculationResult:
        from app.application.balance_calculator import DailyBalanceCalculator

        start, end = recalculation_window(from_date, to_date)
        try:
            days = DailyBalanceCalculator(self.db).calculate(bank_account_id, start, end)
        except Exception as e:
            logger.exception(
                "Balance recalculation failed for account %d (%s..%s)",
                bank_account_id, start.isoformat(), end.isoformat(),
            )
            self._record_failure(bank_account_id, start, end, e)
            return RecalculationResult(
                bank_account_id=bank_account_id, start=start, end=end, ok=False, error=str(e),
            )

        return RecalculationResult(
            bank_account_id=bank_account_id, start=start, end=end, ok=True, rows_written=len(days),
        )

    def _record_failure(self, bank_account_id: int, start: date, end: date, error: Exception) -> None:
        try:
            EventLogRepository(self.db).append_event(
                account_id=bank_account_id,
                event_type="balance_recalculation_failed",
                payload={
                    "bank_account_id": bank_account_id,
                    "start": start.isoformat(),
                    "end": end.isoformat(),
                    "error": f"{type(error).__name__}: {error}",
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("Could not record recalculation failure for account %d", bank_account_id)


def recalculate_balances_from(db: Session, start: date, end: date, bank_account_id: int):
    """Explicit recalculation of [start, end] (API-triggered). Errors propagate to the caller."""
    from app.application.balance_calculator import DailyBalanceCalculator

    return DailyBalanceCalculator(db).calculate(bank_account_id, start, end)

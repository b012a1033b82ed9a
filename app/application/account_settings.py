"""
Initial balance settings

Lookup order: the account's own row, then the global row
(bank_account_id IS NULL), then DEFAULT_INITIAL_BALANCE with no date.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.balance import check_money
from app.infrastructure.db.models import AccountSettings, BankAccount, DailyBalance, ProjectionEvent
from app.infrastructure.eventlog.repository import EventLogRepository


class SettingsValidationError(ValueError):
    pass


@dataclass(frozen=True)
class InitialBalance:
    amount: Decimal
    effective_date: date | None


def _settings_row(db: Session, bank_account_id: int | None) -> AccountSettings | None:
    query = db.query(AccountSettings)
    if bank_account_id is None:
        query = query.filter(AccountSettings.bank_account_id.is_(None))
    else:
        query = query.filter(AccountSettings.bank_account_id == bank_account_id)
    return query.first()


def get_initial_balance(db: Session, bank_account_id: int | None = None) -> InitialBalance:
    row = None
    if bank_account_id is not None:
        row = _settings_row(db, bank_account_id)
    if row is None:
        row = _settings_row(db, None)
    if row is None:
        return InitialBalance(amount=Decimal(get_settings().DEFAULT_INITIAL_BALANCE), effective_date=None)
    return InitialBalance(amount=row.initial_balance, effective_date=row.initial_balance_date)


def affected_span(db: Session, bank_account_id: int, effective_date: date | None) -> tuple[date, date | None] | None:
    """
    Days whose balance depends on the initial balance of an account.

    A dated balance moves everything from its effective date on. An undated
    one is the balance before the first event, so the whole timeline moves:
    from the earlier of the first event and the first stored row. The end is
    the last stored row (None leaves the default window). None when there is
    nothing to recalculate.
    """
    first_row, last_row = (
        db.query(func.min(DailyBalance.date), func.max(DailyBalance.date))
        .filter(DailyBalance.bank_account_id == bank_account_id)
        .one()
    )
    if effective_date is not None:
        return effective_date, last_row

    first_event = (
        db.query(func.min(ProjectionEvent.date))
        .filter(ProjectionEvent.bank_account_id == bank_account_id)
        .scalar()
    )
    starts = [d for d in (first_event, first_row) if d is not None]
    if not starts:
        return None
    return min(starts), last_row


def accounts_following_global(db: Session) -> list[int]:
    """Accounts without their own settings row, i.e. those reading the global one."""
    own = select(AccountSettings.bank_account_id).where(AccountSettings.bank_account_id.isnot(None))
    return [
        account_id
        for (account_id,) in db.query(BankAccount.id).filter(BankAccount.id.notin_(own)).order_by(BankAccount.id)
    ]


class UpdateInitialBalanceUseCase:
    """
    Set the initial balance (per account or global). The change shifts the
    timeline of every account it applies to: the account itself, or for the
    global row every account without its own row.
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        initial_balance: Decimal,
        initial_balance_date: date | None = None,
        bank_account_id: int | None = None,
    ) -> AccountSettings:
        from app.application.bank_accounts import require_bank_account

        try:
            check_money(initial_balance)
        except ArithmeticError as e:
            raise SettingsValidationError(str(e)) from e

        if bank_account_id is not None:
            require_bank_account(self.db, bank_account_id)

        row = _settings_row(self.db, bank_account_id)
        if row is None:
            row = AccountSettings(bank_account_id=bank_account_id)
            self.db.add(row)
        row.initial_balance = initial_balance
        row.initial_balance_date = initial_balance_date
        self.db.flush()

        self.event_repo.append_event(
            account_id=bank_account_id or 0,
            event_type="initial_balance_updated",
            payload={
                "bank_account_id": bank_account_id,
                "initial_balance": str(initial_balance),
                "initial_balance_date": initial_balance_date.isoformat() if initial_balance_date else None,
            },
        )
        self.db.commit()

        from app.application.recalculation import BalanceRecalculator

        recalculator = BalanceRecalculator(self.db)
        account_ids = [bank_account_id] if bank_account_id is not None else accounts_following_global(self.db)
        for account_id in account_ids:
            span = affected_span(self.db, account_id, initial_balance_date)
            if span is None:
                continue
            recalculator.invalidate(account_id, *span)
        return row

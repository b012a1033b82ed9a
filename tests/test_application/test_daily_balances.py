"""
Tests for actual-balance overrides, initial balance settings and coverage
"""
from datetime import date
from decimal import Decimal

import pytest

from app.application.account_settings import UpdateInitialBalanceUseCase, get_initial_balance
from app.application.bank_accounts import CreateBankAccountUseCase
from app.application.coverage import CoverageTracker, build_coverage_ranges
from app.application.daily_balances import (
    ClearActualBalanceUseCase,
    SetActualBalanceUseCase,
    get_daily_balance,
    list_daily_balances,
)
from app.application.errors import NotFoundError
from app.application.projection_events import CreateProjectionEventUseCase
from app.infrastructure.db.models import AccountSettings, DailyBalance, EventLog, ProjectionEvent, TransactionRecord


@pytest.fixture
def monthly_income(db_session, bank_account_id):
    for month in (1, 2, 3):
        db_session.add(ProjectionEvent(
            bank_account_id=bank_account_id, name="Salary", date=date(2026, month, 1),
            value=Decimal("1000"), direction="INCOMING", certainty="CERTAIN",
        ))
    db_session.commit()
    return bank_account_id


def test_set_actual_balance_shifts_following_days(db_session, monthly_income):
    row, result = SetActualBalanceUseCase(db_session).execute(
        monthly_income, date(2026, 1, 15), Decimal("400")
    )

    assert result.ok
    assert row.actual_balance == Decimal("400")
    assert row.expected_balance == Decimal("1000")
    assert get_daily_balance(db_session, monthly_income, date(2026, 1, 16)).expected_balance == Decimal("400")
    # day after an override = override + that day's delta
    assert get_daily_balance(db_session, monthly_income, date(2026, 2, 1)).expected_balance == Decimal("1400")

    entry = db_session.query(EventLog).filter(EventLog.event_type == "actual_balance_set").one()
    assert entry.payload_json["actual_balance"] == "400"


def test_clear_actual_balance_restores_projection(db_session, monthly_income):
    SetActualBalanceUseCase(db_session).execute(monthly_income, date(2026, 1, 15), Decimal("400"))
    ClearActualBalanceUseCase(db_session).execute(monthly_income, date(2026, 1, 15))

    assert get_daily_balance(db_session, monthly_income, date(2026, 1, 15)).actual_balance is None
    assert get_daily_balance(db_session, monthly_income, date(2026, 2, 1)).expected_balance == Decimal("2000")


def test_clear_missing_override_is_not_found(db_session, bank_account_id):
    with pytest.raises(NotFoundError):
        ClearActualBalanceUseCase(db_session).execute(bank_account_id, date(2026, 1, 1))


def test_list_daily_balances(db_session, monthly_income):
    SetActualBalanceUseCase(db_session).execute(monthly_income, date(2026, 1, 1), Decimal("50"))
    rows = list_daily_balances(db_session, monthly_income, date(2026, 1, 1), date(2026, 1, 3))
    assert [r.date for r in rows] == [date(2026, 1, 1), date(2026, 1, 2), date(2026, 1, 3)]


# --- initial balance ---

def test_initial_balance_lookup_order(db_session, bank_account_id):
    assert get_initial_balance(db_session, bank_account_id).amount == Decimal("0")

    db_session.add(AccountSettings(bank_account_id=None, initial_balance=Decimal("10")))
    db_session.commit()
    assert get_initial_balance(db_session, bank_account_id).amount == Decimal("10")

    UpdateInitialBalanceUseCase(db_session).execute(Decimal("250"), date(2026, 1, 1), bank_account_id)
    initial = get_initial_balance(db_session, bank_account_id)
    assert initial.amount == Decimal("250")
    assert initial.effective_date == date(2026, 1, 1)


def test_initial_balance_change_recalculates(db_session, monthly_income):
    UpdateInitialBalanceUseCase(db_session).execute(Decimal("-300"), date(2026, 1, 1), monthly_income)
    assert get_daily_balance(db_session, monthly_income, date(2026, 1, 1)).expected_balance == Decimal("700")


def add_expense(db, account_id, day, amount="200"):
    return CreateProjectionEventUseCase(db).execute(
        bank_account_id=account_id, name="Groceries", date=day,
        value=Decimal(amount), direction="EXPENSE", certainty="CERTAIN",
    )


def test_undated_initial_balance_recalculates_whole_timeline(db_session, bank_account_id):
    add_expense(db_session, bank_account_id, date(2026, 1, 5))
    assert get_daily_balance(db_session, bank_account_id, date(2026, 1, 5)).expected_balance == Decimal("-200")

    UpdateInitialBalanceUseCase(db_session).execute(Decimal("1000"), None, bank_account_id)

    assert get_daily_balance(db_session, bank_account_id, date(2026, 1, 5)).expected_balance == Decimal("800")
    assert get_daily_balance(db_session, bank_account_id, date(2026, 3, 1)).expected_balance == Decimal("800")


def test_global_initial_balance_recalculates_accounts_without_own_row(db_session, bank_account_id):
    savings = CreateBankAccountUseCase(db_session).execute("Savings")
    UpdateInitialBalanceUseCase(db_session).execute(Decimal("50"), None, savings.id)
    for account_id in (bank_account_id, savings.id):
        add_expense(db_session, account_id, date(2026, 1, 5))

    UpdateInitialBalanceUseCase(db_session).execute(Decimal("1000"), None, None)

    assert get_daily_balance(db_session, bank_account_id, date(2026, 1, 5)).expected_balance == Decimal("800")
    assert get_daily_balance(db_session, savings.id, date(2026, 1, 5)).expected_balance == Decimal("-150")


def test_initial_balance_without_events_writes_nothing(db_session, bank_account_id):
    UpdateInitialBalanceUseCase(db_session).execute(Decimal("1000"), None, bank_account_id)
    assert db_session.query(DailyBalance).count() == 0


# --- coverage ---

def test_build_coverage_ranges():
    dates = [date(2026, 1, 1), date(2026, 1, 5), date(2026, 1, 20), date(2026, 1, 25)]
    ranges = build_coverage_ranges(dates, max_gap_days=7)
    assert [(r.start, r.end) for r in ranges] == [
        (date(2026, 1, 1), date(2026, 1, 5)),
        (date(2026, 1, 20), date(2026, 1, 25)),
    ]


def test_coverage_and_last_known_balance(db_session, bank_account_id):
    tracker = CoverageTracker(db_session)
    assert tracker.get_coverage(bank_account_id).latest_covered_date is None
    assert tracker.get_last_known_balance(date(2026, 1, 31), bank_account_id) is None

    for day, balance in [(date(2026, 1, 3), "90"), (date(2026, 1, 3), "75"), (date(2026, 1, 8), "60")]:
        db_session.add(TransactionRecord(
            bank_account_id=bank_account_id, transaction_date=day, transaction_type="OTHER",
            description="card", debit_amount=Decimal("15"), balance=Decimal(balance),
        ))
    db_session.commit()

    coverage = tracker.get_coverage(bank_account_id)
    assert coverage.earliest_covered_date == date(2026, 1, 3)
    assert coverage.latest_covered_date == date(2026, 1, 8)
    assert coverage.transaction_count == 3

    known = tracker.get_last_known_balance(date(2026, 1, 7), bank_account_id)
    assert known.date == date(2026, 1, 3)
    assert known.balance == Decimal("75")

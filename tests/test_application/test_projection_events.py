"""
Tests for projection event use cases
"""
from datetime import date
from decimal import Decimal

import pytest

from app.application.errors import NotFoundError
from app.application.projection_events import (
    CreateProjectionEventUseCase,
    DeleteProjectionEventUseCase,
    ProjectionEventValidationError,
    UpdateProjectionEventUseCase,
    list_events,
)
from app.infrastructure.db.models import DailyBalance, EventLog


def create_event(db, account_id, **overrides):
    fields = dict(
        bank_account_id=account_id,
        name="Dentist",
        date=date(2026, 3, 10),
        value=Decimal("80"),
        direction="EXPENSE",
        certainty="CERTAIN",
    )
    fields.update(overrides)
    return CreateProjectionEventUseCase(db).execute(**fields)


def balance_on(db, account_id, day):
    return db.query(DailyBalance).filter(
        DailyBalance.bank_account_id == account_id, DailyBalance.date == day
    ).one().expected_balance


def test_create_event_logs_and_recalculates(db_session, bank_account_id):
    event = create_event(db_session, bank_account_id)

    assert event.id is not None
    entry = db_session.query(EventLog).filter(EventLog.event_type == "projection_event_created").one()
    assert entry.payload_json["value"] == "80"
    assert balance_on(db_session, bank_account_id, date(2026, 3, 10)) == Decimal("-80")


@pytest.mark.parametrize("overrides", [
    {"name": ""},
    {"value": Decimal("0")},
    {"value": Decimal("-5")},
    {"direction": "TRANSFER"},
    {"certainty": "SURE"},
])
def test_create_event_validation(db_session, bank_account_id, overrides):
    with pytest.raises(ProjectionEventValidationError):
        create_event(db_session, bank_account_id, **overrides)


def test_create_event_unknown_account(db_session):
    with pytest.raises(NotFoundError):
        create_event(db_session, 777)


def test_move_event_recalculates_both_dates(db_session, bank_account_id):
    event = create_event(db_session, bank_account_id)
    UpdateProjectionEventUseCase(db_session).execute(event.id, date=date(2026, 3, 20))

    assert balance_on(db_session, bank_account_id, date(2026, 3, 10)) == Decimal("0")
    assert balance_on(db_session, bank_account_id, date(2026, 3, 20)) == Decimal("-80")


def test_invalid_update_is_rolled_back(db_session, bank_account_id):
    event = create_event(db_session, bank_account_id)
    with pytest.raises(ProjectionEventValidationError):
        UpdateProjectionEventUseCase(db_session).execute(event.id, value=Decimal("0"))

    db_session.refresh(event)
    assert event.value == Decimal("80")


def test_delete_event(db_session, bank_account_id):
    event = create_event(db_session, bank_account_id)
    DeleteProjectionEventUseCase(db_session).execute(event.id)

    assert list_events(db_session, bank_account_id) == []
    assert balance_on(db_session, bank_account_id, date(2026, 3, 10)) == Decimal("0")
    with pytest.raises(NotFoundError):
        DeleteProjectionEventUseCase(db_session).execute(event.id)


def test_list_events_by_range(db_session, bank_account_id):
    create_event(db_session, bank_account_id, date=date(2026, 1, 5))
    create_event(db_session, bank_account_id, date=date(2026, 2, 5))
    create_event(db_session, bank_account_id, date=date(2026, 3, 5))

    events = list_events(db_session, bank_account_id, start=date(2026, 2, 1), end=date(2026, 3, 31))
    assert [e.date for e in events] == [date(2026, 2, 5), date(2026, 3, 5)]

"""
Tests for decision paths
"""
from datetime import date
from decimal import Decimal

import pytest

from app.application.decision_paths import (
    DecisionPathValidationError,
    DeleteDecisionPathUseCase,
    GetOrCreateDecisionPathUseCase,
    UpdateDecisionPathUseCase,
    list_decision_paths_with_usage,
)
from app.application.errors import NotFoundError
from app.application.scenario_sets import CreateScenarioSetUseCase, get_stored_states
from app.infrastructure.db.models import ProjectionEvent


def add_event(db, account_id, decision_path_id):
    event = ProjectionEvent(
        bank_account_id=account_id, name="New car", date=date(2026, 5, 1),
        value=Decimal("9000"), direction="EXPENSE", certainty="POSSIBLE",
        decision_path_id=decision_path_id,
    )
    db.add(event)
    db.commit()
    return event


def test_get_or_create_is_idempotent(db_session):
    first, created = GetOrCreateDecisionPathUseCase(db_session).execute("  Buy car ")
    again, created_again = GetOrCreateDecisionPathUseCase(db_session).execute("Buy car")

    assert created is True
    assert created_again is False
    assert again.id == first.id
    assert first.name == "Buy car"


def test_blank_name_rejected(db_session):
    with pytest.raises(DecisionPathValidationError):
        GetOrCreateDecisionPathUseCase(db_session).execute("   ")


def test_rename_clash_rejected(db_session):
    car, _ = GetOrCreateDecisionPathUseCase(db_session).execute("Buy car")
    GetOrCreateDecisionPathUseCase(db_session).execute("Lease car")

    with pytest.raises(DecisionPathValidationError):
        UpdateDecisionPathUseCase(db_session).execute(car.id, name="Lease car")

    updated = UpdateDecisionPathUseCase(db_session).execute(car.id, description="Cash purchase")
    assert updated.description == "Cash purchase"


def test_usage_counts(db_session, bank_account_id):
    car, _ = GetOrCreateDecisionPathUseCase(db_session).execute("Buy car")
    GetOrCreateDecisionPathUseCase(db_session).execute("Move house")
    add_event(db_session, bank_account_id, car.id)
    add_event(db_session, bank_account_id, car.id)

    usage = {u.decision_path.name: u for u in list_decision_paths_with_usage(db_session)}
    assert usage["Buy car"].event_count == 2
    assert usage["Buy car"].total_usage == 2
    assert usage["Move house"].total_usage == 0


def test_delete_detaches_events_and_scenario_pairs(db_session, bank_account_id):
    car, _ = GetOrCreateDecisionPathUseCase(db_session).execute("Buy car")
    event = add_event(db_session, bank_account_id, car.id)
    scenario = CreateScenarioSetUseCase(db_session).execute("No car", {car.id: False})

    result = DeleteDecisionPathUseCase(db_session).execute(car.id)

    assert result == {"events_detached": 1, "rules_detached": 0}
    assert db_session.get(ProjectionEvent, event.id).decision_path_id is None
    assert get_stored_states(db_session, scenario.id) == {}
    with pytest.raises(NotFoundError):
        DeleteDecisionPathUseCase(db_session).execute(car.id)

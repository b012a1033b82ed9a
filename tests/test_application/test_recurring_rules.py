"""
Tests for recurring rule use cases, the materializer and revisions
"""
import warnings
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import SAWarning

from app.application.errors import NotFoundError
from app.application.recurring_rules import (
    CreateRecurringRuleUseCase,
    DeleteRecurringRuleUseCase,
    UpdateRecurringRuleUseCase,
    create_revision_for_recurring_rule,
    lineage,
    list_rules,
)
from app.application.rule_materializer import RecurringRuleValidationError, preview
from app.domain.recurrence import RuleSpec
from app.infrastructure.db.models import DailyBalance, EventLog, ProjectionEvent, RecurringEventRule


def create_rule(db, account_id, **overrides):
    fields = dict(
        bank_account_id=account_id,
        name="Rent",
        value=Decimal("100"),
        direction="EXPENSE",
        certainty="CERTAIN",
        frequency="MONTHLY",
        start_date=date(2026, 1, 1),
        end_date=date(2026, 7, 1),
    )
    fields.update(overrides)
    return CreateRecurringRuleUseCase(db).execute(**fields)


def events_of(db, rule_id):
    return (
        db.query(ProjectionEvent)
        .filter(ProjectionEvent.recurring_rule_id == rule_id)
        .order_by(ProjectionEvent.date)
        .all()
    )


def test_create_rule_materializes_events(db_session, bank_account_id):
    rule, events = create_rule(db_session, bank_account_id)

    assert rule.is_base_rule is True
    assert rule.base_rule_id is None
    # end date inclusive: Jan 1 .. Jul 1
    assert [e.date.month for e in events] == [1, 2, 3, 4, 5, 6, 7]
    assert all(e.value == Decimal("100") and e.direction == "EXPENSE" for e in events)

    entry = db_session.query(EventLog).filter(EventLog.event_type == "recurring_rule_created").one()
    assert entry.payload_json["events_created"] == 7


def test_create_rule_recalculates_balances(db_session, bank_account_id):
    create_rule(db_session, bank_account_id)
    row = db_session.query(DailyBalance).filter(DailyBalance.date == date(2026, 2, 15)).one()
    assert row.expected_balance == Decimal("-200")


def test_create_rule_rejects_inverted_span(db_session, bank_account_id):
    with pytest.raises(RecurringRuleValidationError):
        create_rule(db_session, bank_account_id, start_date=date(2026, 7, 1), end_date=date(2026, 7, 1))
    assert db_session.query(RecurringEventRule).count() == 0


def test_create_rule_rejects_runaway_rule(db_session, bank_account_id):
    with pytest.raises(RecurringRuleValidationError):
        create_rule(db_session, bank_account_id, frequency="DAILY", end_date=date(2040, 1, 1))
    assert db_session.query(ProjectionEvent).count() == 0


def test_create_rule_unknown_decision_path(db_session, bank_account_id):
    with pytest.raises(NotFoundError):
        create_rule(db_session, bank_account_id, decision_path_id=42)


def test_month_end_rule_never_drifts(db_session, bank_account_id):
    _, events = create_rule(
        db_session, bank_account_id, start_date=date(2026, 1, 31), end_date=date(2026, 4, 30)
    )
    assert [e.date for e in events] == [
        date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30),
    ]


def test_incoming_rule_moves_to_next_working_day(db_session, bank_account_id):
    """Jan 3 2026 is a Saturday; Feb 3 and Mar 3 are Tuesdays"""
    rule, events = create_rule(
        db_session, bank_account_id, name="Salary", direction="INCOMING",
        start_date=date(2026, 1, 3), end_date=date(2026, 3, 3),
    )
    assert [e.date for e in events] == [date(2026, 1, 5), date(2026, 2, 3), date(2026, 3, 3)]
    assert [e.scheduled_date for e in events] == [date(2026, 1, 3), date(2026, 2, 3), date(2026, 3, 3)]

    jan_5 = db_session.query(DailyBalance).filter(DailyBalance.date == date(2026, 1, 5)).one()
    assert jan_5.expected_balance == Decimal("100")
    jan_3 = db_session.query(DailyBalance).filter(DailyBalance.date == date(2026, 1, 3)).one()
    assert jan_3.expected_balance == Decimal("0")


def test_expense_rule_stays_on_weekend(db_session, bank_account_id):
    rule, events = create_rule(
        db_session, bank_account_id, start_date=date(2026, 1, 3), end_date=date(2026, 3, 3),
    )
    assert [e.date for e in events] == [date(2026, 1, 3), date(2026, 2, 3), date(2026, 3, 3)]
    assert [e.scheduled_date for e in events] == [date(2026, 1, 3), date(2026, 2, 3), date(2026, 3, 3)]


def test_incoming_rule_skips_bank_holiday(db_session, bank_account_id):
    """Good Friday and Easter Monday 2026 push Apr 3 to Tue Apr 7"""
    rule, events = create_rule(
        db_session, bank_account_id, name="Salary", direction="INCOMING", frequency="ANNUAL",
        start_date=date(2026, 4, 3), end_date=date(2026, 12, 31),
    )
    assert [e.date for e in events] == [date(2026, 4, 7)]


def test_update_rule_regenerates_events(db_session, bank_account_id):
    rule, _ = create_rule(db_session, bank_account_id)

    rule, deleted, created = UpdateRecurringRuleUseCase(db_session).execute(
        rule.id, value=Decimal("120"), frequency="QUARTERLY"
    )

    assert deleted == 7
    assert created == 3
    events = events_of(db_session, rule.id)
    assert [e.date for e in events] == [date(2026, 1, 1), date(2026, 4, 1), date(2026, 7, 1)]
    assert all(e.value == Decimal("120") for e in events)


def test_update_rule_unknown_field(db_session, bank_account_id):
    rule, _ = create_rule(db_session, bank_account_id)
    with pytest.raises(RecurringRuleValidationError):
        UpdateRecurringRuleUseCase(db_session).execute(rule.id, bank_account_id=99)


def test_update_rule_bulk_delete_keeps_session_consistent(db_session, bank_account_id):
    rule, _ = create_rule(db_session, bank_account_id)

    with warnings.catch_warnings():
        warnings.filterwarnings("error", message="Identity map already had an identity", category=SAWarning)
        UpdateRecurringRuleUseCase(db_session).execute(rule.id, value=Decimal("120"))
        UpdateRecurringRuleUseCase(db_session).execute(rule.id, value=Decimal("130"))

    events = events_of(db_session, rule.id)
    assert len(events) == 7
    assert all(e.value == Decimal("130") for e in events)
    assert db_session.query(ProjectionEvent).count() == 7


def test_revision_split(db_session, bank_account_id):
    """Base [Jan 1, Jul 1) MONTHLY 100, revision Apr 1 value 150"""
    base, _ = create_rule(db_session, bank_account_id, end_date=date(2026, 6, 30))

    result = create_revision_for_recurring_rule(
        db_session, base.id, date(2026, 4, 1), Decimal("150")
    )

    assert result.base_rule.end_date == date(2026, 3, 31)
    assert result.revision.start_date == date(2026, 4, 1)
    assert result.revision.end_date == date(2026, 6, 30)
    assert result.revision.is_base_rule is False
    assert result.revision.base_rule_id == base.id
    assert result.events_deleted == 3
    assert result.events_created == 3

    base_events = events_of(db_session, base.id)
    revision_events = events_of(db_session, result.revision.id)
    assert [(e.date.month, e.value) for e in base_events] == [(m, Decimal("100")) for m in (1, 2, 3)]
    assert [(e.date.month, e.value) for e in revision_events] == [(m, Decimal("150")) for m in (4, 5, 6)]

    chain_dates = [e.date for e in base_events + revision_events]
    assert len(chain_dates) == len(set(chain_dates))

    entry = db_session.query(EventLog).filter(EventLog.event_type == "recurring_rule_revised").one()
    assert entry.payload_json["events_deleted"] == 3
    assert entry.payload_json["events_created"] == 3


def test_revision_inherits_unchanged_fields(db_session, bank_account_id):
    base, _ = create_rule(db_session, bank_account_id, pay_to="Landlord", description="flat")
    result = create_revision_for_recurring_rule(
        db_session, base.id, date(2026, 3, 1), Decimal("110"), frequency="QUARTERLY"
    )
    assert result.revision.pay_to == "Landlord"
    assert result.revision.description == "flat"
    assert result.revision.frequency == "QUARTERLY"
    assert [e.date for e in events_of(db_session, result.revision.id)] == [date(2026, 3, 1), date(2026, 6, 1)]


@pytest.mark.parametrize("revision_start", [date(2026, 1, 1), date(2026, 7, 1), date(2026, 8, 1), date(2026, 1, 2)])
def test_revision_start_must_be_inside_base(db_session, bank_account_id, revision_start):
    base, _ = create_rule(db_session, bank_account_id)
    with pytest.raises(RecurringRuleValidationError):
        create_revision_for_recurring_rule(db_session, base.id, revision_start, Decimal("150"))
    assert db_session.query(RecurringEventRule).count() == 1


def test_revision_too_close_to_base_start_names_invariant(db_session, bank_account_id):
    base, _ = create_rule(db_session, bank_account_id)
    with pytest.raises(RecurringRuleValidationError, match="start_date < end_date"):
        create_revision_for_recurring_rule(db_session, base.id, date(2026, 1, 2), Decimal("150"))


def test_update_cannot_extend_base_over_revision(db_session, bank_account_id):
    base, _ = create_rule(db_session, bank_account_id, end_date=date(2026, 6, 30))
    result = create_revision_for_recurring_rule(db_session, base.id, date(2026, 4, 1), Decimal("150"))

    with pytest.raises(RecurringRuleValidationError, match="overlaps"):
        UpdateRecurringRuleUseCase(db_session).execute(base.id, end_date=date(2026, 6, 30))
    with pytest.raises(RecurringRuleValidationError, match="overlaps"):
        UpdateRecurringRuleUseCase(db_session).execute(result.revision.id, start_date=date(2026, 3, 1))

    db_session.refresh(base)
    assert base.end_date == date(2026, 3, 31)
    chain_dates = [e.date for e in events_of(db_session, base.id) + events_of(db_session, result.revision.id)]
    assert len(chain_dates) == 6
    assert len(chain_dates) == len(set(chain_dates))


def test_update_base_inside_its_own_span(db_session, bank_account_id):
    base, _ = create_rule(db_session, bank_account_id, end_date=date(2026, 6, 30))
    create_revision_for_recurring_rule(db_session, base.id, date(2026, 4, 1), Decimal("150"))

    rule, _, created = UpdateRecurringRuleUseCase(db_session).execute(base.id, value=Decimal("90"))
    assert rule.end_date == date(2026, 3, 31)
    assert created == 3
    assert all(e.value == Decimal("90") for e in events_of(db_session, base.id))


def test_revision_of_revision_shares_root(db_session, bank_account_id):
    base, _ = create_rule(db_session, bank_account_id, end_date=date(2026, 12, 31))
    first = create_revision_for_recurring_rule(db_session, base.id, date(2026, 4, 1), Decimal("150"))
    second = create_revision_for_recurring_rule(db_session, first.revision.id, date(2026, 9, 1), Decimal("175"))

    assert second.revision.base_rule_id == base.id
    chain = lineage(db_session, second.revision.id)
    assert [r.id for r in chain] == [base.id, first.revision.id, second.revision.id]
    assert [r.end_date for r in chain] == [date(2026, 3, 31), date(2026, 8, 31), date(2026, 12, 31)]


def test_revision_recalculates_balances(db_session, bank_account_id):
    base, _ = create_rule(db_session, bank_account_id, end_date=date(2026, 6, 30))
    create_revision_for_recurring_rule(db_session, base.id, date(2026, 4, 1), Decimal("150"))

    row = db_session.query(DailyBalance).filter(DailyBalance.date == date(2026, 4, 1)).one()
    assert row.expected_balance == Decimal("-450")


def test_delete_base_rule_cascades_revisions(db_session, bank_account_id):
    base, _ = create_rule(db_session, bank_account_id)
    create_revision_for_recurring_rule(db_session, base.id, date(2026, 4, 1), Decimal("150"))

    deleted = DeleteRecurringRuleUseCase(db_session).execute(base.id)

    assert deleted == 7
    assert db_session.query(RecurringEventRule).count() == 0
    assert db_session.query(ProjectionEvent).count() == 0


def test_delete_revision_keeps_base(db_session, bank_account_id):
    base, _ = create_rule(db_session, bank_account_id)
    result = create_revision_for_recurring_rule(db_session, base.id, date(2026, 4, 1), Decimal("150"))

    DeleteRecurringRuleUseCase(db_session).execute(result.revision.id)

    assert db_session.query(RecurringEventRule).count() == 1
    assert len(events_of(db_session, base.id)) == 3


def test_list_rules_with_counts(db_session, bank_account_id):
    create_rule(db_session, bank_account_id)
    create_rule(db_session, bank_account_id, name="Salary", direction="INCOMING", frequency="QUARTERLY")

    counts = {rule.name: count for rule, count in list_rules(db_session, bank_account_id)}
    assert counts == {"Rent": 7, "Salary": 3}


def test_preview():
    occurrences = preview(RuleSpec("WEEKLY", date(2026, 1, 1), date(2027, 1, 1)), limit=3)
    assert [o.date for o in occurrences] == [date(2026, 1, 1), date(2026, 1, 8), date(2026, 1, 15)]
    with pytest.raises(RecurringRuleValidationError):
        preview(RuleSpec("NEVER", date(2026, 1, 1), date(2027, 1, 1)))


def test_preview_adjusts_incoming():
    occurrences = preview(
        RuleSpec("MONTHLY", date(2026, 1, 3), date(2027, 1, 1)), limit=2, direction="INCOMING"
    )
    assert [(o.date, o.adjusted_date) for o in occurrences] == [
        (date(2026, 1, 3), date(2026, 1, 5)),
        (date(2026, 2, 3), date(2026, 2, 3)),
    ]

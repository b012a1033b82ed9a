"""Recurring event rule use cases - CRUD, revisions, lineage"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.application.bank_accounts import require_bank_account
from app.application.errors import NotFoundError
from app.application.recalculation import BalanceRecalculator
from app.application.rule_materializer import (
    RecurringRuleMaterializer,
    RecurringRuleValidationError,
    events_span_end,
)
from app.domain.projection_event import event_snapshot, validate_event_fields
from app.domain.recurrence import VALID_FREQ
from app.infrastructure.db.models import DecisionPath, ProjectionEvent, RecurringEventRule
from app.infrastructure.eventlog.repository import EventLogRepository

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "name", "description", "value", "direction", "certainty", "pay_to", "paid_by",
    "decision_path_id", "start_date", "end_date", "frequency",
})


@dataclass
class RevisionResult:
    base_rule: RecurringEventRule
    revision: RecurringEventRule
    events_deleted: int
    events_created: int


def _validate_rule_fields(db: Session, rule: RecurringEventRule) -> None:
    error = validate_event_fields(rule.name, rule.value, rule.direction, rule.certainty)
    if error:
        raise RecurringRuleValidationError(error)
    if rule.frequency not in VALID_FREQ:
        raise RecurringRuleValidationError(f"Invalid frequency: {rule.frequency}")
    if rule.start_date is None or rule.end_date is None:
        raise RecurringRuleValidationError("start_date and end_date are required")
    if rule.start_date >= rule.end_date:
        raise RecurringRuleValidationError("start_date must be before end_date")
    if rule.decision_path_id is not None and db.get(DecisionPath, rule.decision_path_id) is None:
        raise NotFoundError("Decision path", rule.decision_path_id)


def require_rule(db: Session, rule_id: int) -> RecurringEventRule:
    rule = db.get(RecurringEventRule, rule_id)
    if rule is None:
        raise NotFoundError("Recurring event rule", rule_id)
    return rule


def list_rules(db: Session, bank_account_id: int | None = None) -> list[tuple[RecurringEventRule, int]]:
    """Rules with their generated-event counts, ordered by start date."""
    counts = dict(
        db.query(ProjectionEvent.recurring_rule_id, func.count(ProjectionEvent.id))
        .filter(ProjectionEvent.recurring_rule_id.isnot(None))
        .group_by(ProjectionEvent.recurring_rule_id)
        .all()
    )
    query = db.query(RecurringEventRule)
    if bank_account_id is not None:
        query = query.filter(RecurringEventRule.bank_account_id == bank_account_id)
    rules = query.order_by(RecurringEventRule.start_date.asc(), RecurringEventRule.id.asc()).all()
    return [(rule, counts.get(rule.id, 0)) for rule in rules]


def get_rule_with_events(db: Session, rule_id: int) -> tuple[RecurringEventRule, list[ProjectionEvent]]:
    rule = require_rule(db, rule_id)
    events = (
        db.query(ProjectionEvent)
        .filter(ProjectionEvent.recurring_rule_id == rule_id)
        .order_by(ProjectionEvent.date.asc())
        .all()
    )
    return rule, events


def list_rules_by_decision_path(db: Session, decision_path_id: int) -> list[RecurringEventRule]:
    return (
        db.query(RecurringEventRule)
        .filter(RecurringEventRule.decision_path_id == decision_path_id)
        .order_by(RecurringEventRule.start_date.asc())
        .all()
    )


def root_rule_id(rule: RecurringEventRule) -> int:
    return rule.base_rule_id if rule.base_rule_id is not None else rule.id


def _check_chain_overlap(db: Session, rule: RecurringEventRule) -> None:
    """Members of one lineage own disjoint spans: no date gets two events from the chain."""
    for other in lineage(db, rule.id):
        if other.id == rule.id:
            continue
        if rule.start_date <= other.end_date and other.start_date <= rule.end_date:
            raise RecurringRuleValidationError(
                f"Span {rule.start_date.isoformat()}..{rule.end_date.isoformat()} overlaps rule "
                f"#{other.id} ({other.start_date.isoformat()}..{other.end_date.isoformat()}) of the same lineage"
            )


def lineage(db: Session, rule_id: int) -> list[RecurringEventRule]:
    """The root rule and every revision sharing it, ordered by start date."""
    root_id = root_rule_id(require_rule(db, rule_id))
    return (
        db.query(RecurringEventRule)
        .filter((RecurringEventRule.id == root_id) | (RecurringEventRule.base_rule_id == root_id))
        .order_by(RecurringEventRule.start_date.asc(), RecurringEventRule.id.asc())
        .all()
    )


class CreateRecurringRuleUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.materializer = RecurringRuleMaterializer(db)

    def execute(
        self,
        bank_account_id: int,
        name: str,
        value: Decimal,
        direction: str,
        certainty: str,
        frequency: str,
        start_date: date,
        end_date: date,
        description: str | None = None,
        pay_to: str | None = None,
        paid_by: str | None = None,
        decision_path_id: int | None = None,
    ) -> tuple[RecurringEventRule, list[ProjectionEvent]]:
        require_bank_account(self.db, bank_account_id)

        rule = RecurringEventRule(
            bank_account_id=bank_account_id,
            name=(name or "").strip(),
            description=description,
            value=value,
            direction=direction,
            certainty=certainty,
            pay_to=pay_to,
            paid_by=paid_by,
            decision_path_id=decision_path_id,
            start_date=start_date,
            end_date=end_date,
            frequency=frequency,
            is_base_rule=True,
            base_rule_id=None,
        )
        _validate_rule_fields(self.db, rule)
        # fail on runaway rules before anything is written
        self.materializer.occurrence_dates(rule)

        try:
            self.db.add(rule)
            self.db.flush()
            events = self.materializer.generate(rule)
            self.event_repo.append_event(
                account_id=bank_account_id,
                event_type="recurring_rule_created",
                payload={"rule_id": rule.id, "events_created": len(events), **event_snapshot(rule)},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Recurring rule %d created with %d events", rule.id, len(events))
        BalanceRecalculator(self.db).invalidate(bank_account_id, rule.start_date, events_span_end(rule, events))
        return rule, events


class UpdateRecurringRuleUseCase:
    """Apply field changes and fully regenerate the rule's events."""

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.materializer = RecurringRuleMaterializer(db)

    def execute(self, rule_id: int, **changes) -> tuple[RecurringEventRule, int, int]:
        """Returns (rule, events deleted, events created)."""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise RecurringRuleValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        rule = require_rule(self.db, rule_id)
        old_start = rule.start_date
        last_booked = (
            self.db.query(func.max(ProjectionEvent.date))
            .filter(ProjectionEvent.recurring_rule_id == rule.id)
            .scalar()
        )
        old_booked_end = max(rule.end_date, last_booked or rule.end_date)

        try:
            for field, value in changes.items():
                if field == "name" and value is not None:
                    value = value.strip()
                setattr(rule, field, value)
            _validate_rule_fields(self.db, rule)
            _check_chain_overlap(self.db, rule)

            deleted, events = self.materializer.regenerate(rule)
            self.event_repo.append_event(
                account_id=rule.bank_account_id,
                event_type="recurring_rule_updated",
                payload={
                    "rule_id": rule.id,
                    "changed_fields": sorted(changes),
                    "events_deleted": deleted,
                    "events_created": len(events),
                    **event_snapshot(rule),
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        BalanceRecalculator(self.db).invalidate(
            rule.bank_account_id,
            min(old_start, rule.start_date),
            max(old_booked_end, events_span_end(rule, events)),
        )
        return rule, deleted, len(events)


class DeleteRecurringRuleUseCase:
    """
    Delete a rule and its generated events. Deleting a root rule removes
    its revisions (and their events) too; deleting a revision leaves the
    truncated base as it is.
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.materializer = RecurringRuleMaterializer(db)

    def execute(self, rule_id: int) -> int:
        """Returns the number of deleted events."""
        rule = require_rule(self.db, rule_id)
        bank_account_id = rule.bank_account_id

        doomed = [rule]
        if rule.is_base_rule:
            doomed += (
                self.db.query(RecurringEventRule)
                .filter(RecurringEventRule.base_rule_id == rule.id)
                .all()
            )
        span_start = min(r.start_date for r in doomed)
        span_end = max(r.end_date for r in doomed)

        try:
            deleted = 0
            for r in doomed:
                deleted += self.materializer.delete_generated(r.id)
                self.db.delete(r)
            self.event_repo.append_event(
                account_id=bank_account_id,
                event_type="recurring_rule_deleted",
                payload={
                    "rule_id": rule_id,
                    "rules_deleted": [r.id for r in doomed],
                    "events_deleted": deleted,
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        BalanceRecalculator(self.db).invalidate(bank_account_id, span_start, span_end)
        return deleted


class CreateRevisionUseCase:
    """
    Split a rule at revision_start: the base keeps [start, revision_start - 1],
    the new revision takes [revision_start, original end] with the new value.
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)
        self.materializer = RecurringRuleMaterializer(db)

    def execute(
        self,
        base_rule_id: int,
        revision_start: date,
        value: Decimal,
        description: str | None = None,
        frequency: str | None = None,
        decision_path_id: int | None = None,
    ) -> RevisionResult:
        base = require_rule(self.db, base_rule_id)

        if revision_start is None:
            raise RecurringRuleValidationError("Revision start date is required")
        if not (base.start_date < revision_start < base.end_date):
            raise RecurringRuleValidationError(
                f"Revision start date must be between {base.start_date.isoformat()} "
                f"and {base.end_date.isoformat()}"
            )
        truncated_end = revision_start - timedelta(days=1)
        if truncated_end <= base.start_date:
            # the truncated base is still a rule: start_date < end_date
            raise RecurringRuleValidationError(
                f"Revision starting {revision_start.isoformat()} would truncate the base rule to "
                f"{base.start_date.isoformat()}..{truncated_end.isoformat()}, which violates "
                f"start_date < end_date; start the revision on or after "
                f"{(base.start_date + timedelta(days=2)).isoformat()}"
            )

        original_end = base.end_date
        revision = RecurringEventRule(
            bank_account_id=base.bank_account_id,
            name=base.name,
            description=description if description is not None else base.description,
            value=value,
            direction=base.direction,
            certainty=base.certainty,
            pay_to=base.pay_to,
            paid_by=base.paid_by,
            decision_path_id=decision_path_id if decision_path_id is not None else base.decision_path_id,
            start_date=revision_start,
            end_date=original_end,
            frequency=frequency or base.frequency,
            is_base_rule=False,
            base_rule_id=root_rule_id(base),
        )
        _validate_rule_fields(self.db, revision)
        self.materializer.occurrence_dates(revision)

        try:
            base.end_date = truncated_end
            events_deleted = self.materializer.delete_generated(base.id, from_date=revision_start)

            self.db.add(revision)
            self.db.flush()
            events = self.materializer.generate(revision)

            self.event_repo.append_event(
                account_id=base.bank_account_id,
                event_type="recurring_rule_revised",
                payload={
                    "base_rule_id": base.id,
                    "revision_id": revision.id,
                    "revision_start": revision_start.isoformat(),
                    "previous_end_date": original_end.isoformat(),
                    "new_value": str(value),
                    "events_deleted": events_deleted,
                    "events_created": len(events),
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Rule %d revised from %s: %d events deleted, %d created",
            base.id, revision_start.isoformat(), events_deleted, len(events),
        )
        BalanceRecalculator(self.db).invalidate(
            base.bank_account_id, base.start_date, events_span_end(revision, events)
        )
        return RevisionResult(
            base_rule=base,
            revision=revision,
            events_deleted=events_deleted,
            events_created=len(events),
        )


def create_revision_for_recurring_rule(
    db: Session,
    base_rule_id: int,
    revision_start: date,
    value: Decimal,
    description: str | None = None,
    frequency: str | None = None,
    decision_path_id: int | None = None,
) -> RevisionResult:
    return CreateRevisionUseCase(db).execute(
        base_rule_id, revision_start, value,
        description=description, frequency=frequency, decision_path_id=decision_path_id,
    )

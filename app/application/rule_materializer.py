"""
Recurring Rule Materializer - turns a recurring rule into projection events.

Uses the recurrence engine to compute dates, then inserts one ProjectionEvent
per occurrence. Regeneration is delete-then-insert so a rule always owns
exactly the events of its current span.

Incoming occurrences on a weekend or bank holiday are booked on the next
working day; the rule's own date is kept in `scheduled_date`, which is what
span operations (revision splits) compare against.
"""
import logging
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.recurrence import (
    OccurrenceLimitExceeded,
    RuleSpec,
    generate_occurrence_dates,
    preview_occurrence_dates,
    rule_spec_from_db,
)
from app.domain.working_days import UK_BANK_HOLIDAYS, Occurrence, adjust_occurrences
from app.infrastructure.db.models import ProjectionEvent, RecurringEventRule

logger = logging.getLogger(__name__)


class RecurringRuleValidationError(ValueError):
    pass


def _adjust(dates: list[date], direction: str | None) -> list[Occurrence]:
    settings = get_settings()
    if not settings.ADJUST_INCOMING_TO_WORKING_DAY or direction is None:
        return [Occurrence(d, d) for d in dates]
    holidays = frozenset(settings.BANK_HOLIDAYS) if settings.BANK_HOLIDAYS is not None else UK_BANK_HOLIDAYS
    return adjust_occurrences(dates, direction, holidays)


def preview(rule_spec: RuleSpec, limit: int = 10, direction: str | None = None) -> list[Occurrence]:
    """First `limit` occurrences of a rule that is not saved yet (adjusted when a direction is given)."""
    if limit < 1:
        raise RecurringRuleValidationError("limit must be >= 1")
    try:
        dates = preview_occurrence_dates(rule_spec, limit)
    except ValueError as e:
        raise RecurringRuleValidationError(str(e)) from e
    return _adjust(dates, direction)


class RecurringRuleMaterializer:
    def __init__(self, db: Session):
        self.db = db

    def occurrence_dates(self, rule: RecurringEventRule) -> list[date]:
        cap = get_settings().MAX_RULE_OCCURRENCES
        try:
            return generate_occurrence_dates(rule_spec_from_db(rule), max_occurrences=cap)
        except OccurrenceLimitExceeded as e:
            logger.warning(
                "Recurring rule %s (%s %s..%s) hit the occurrence cap of %d",
                rule.id, rule.frequency, rule.start_date, rule.end_date, cap,
            )
            raise RecurringRuleValidationError(str(e)) from e
        except ValueError as e:
            raise RecurringRuleValidationError(str(e)) from e

    def occurrences(self, rule: RecurringEventRule) -> list[Occurrence]:
        return _adjust(self.occurrence_dates(rule), rule.direction)

    def generate(self, rule: RecurringEventRule) -> list[ProjectionEvent]:
        """Insert one event per occurrence in [start_date, end_date]. Flushes, does not commit."""
        events = [
            ProjectionEvent(
                bank_account_id=rule.bank_account_id,
                name=rule.name,
                description=rule.description,
                date=o.adjusted_date,
                scheduled_date=o.date,
                value=rule.value,
                direction=rule.direction,
                certainty=rule.certainty,
                pay_to=rule.pay_to,
                paid_by=rule.paid_by,
                decision_path_id=rule.decision_path_id,
                recurring_rule_id=rule.id,
            )
            for o in self.occurrences(rule)
        ]
        self.db.add_all(events)
        self.db.flush()
        return events

    def delete_generated(self, rule_id: int, from_date: date | None = None) -> int:
        """Delete the rule's events (optionally only those scheduled on/after from_date). Returns count."""
        query = self.db.query(ProjectionEvent).filter(ProjectionEvent.recurring_rule_id == rule_id)
        if from_date is not None:
            scheduled = func.coalesce(ProjectionEvent.scheduled_date, ProjectionEvent.date)
            query = query.filter(scheduled >= from_date)
        # "fetch" drops the deleted rows from the identity map before new events reuse their ids
        return query.delete(synchronize_session="fetch")

    def regenerate(self, rule: RecurringEventRule) -> tuple[int, list[ProjectionEvent]]:
        """(deleted count, new events)"""
        # validate before deleting anything
        self.occurrence_dates(rule)
        deleted = self.delete_generated(rule.id)
        return deleted, self.generate(rule)


def events_span_end(rule: RecurringEventRule, events: list[ProjectionEvent]) -> date:
    """Last date touched by a rule: its end date or a later adjusted booking date."""
    return max([rule.end_date] + [e.date for e in events])

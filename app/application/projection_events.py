"""Projection event use cases (one-off events)"""
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from app.application.bank_accounts import require_bank_account
from app.application.errors import NotFoundError
from app.application.recalculation import BalanceRecalculator
from app.domain.projection_event import event_snapshot, validate_event_fields
from app.infrastructure.db.models import DecisionPath, ProjectionEvent
from app.infrastructure.eventlog.repository import EventLogRepository

UPDATABLE_FIELDS = frozenset({
    "name", "description", "date", "value", "direction", "certainty",
    "pay_to", "paid_by", "decision_path_id",
})


class ProjectionEventValidationError(ValueError):
    pass


def _validate(db: Session, event: ProjectionEvent) -> None:
    error = validate_event_fields(event.name, event.value, event.direction, event.certainty)
    if error:
        raise ProjectionEventValidationError(error)
    if event.date is None:
        raise ProjectionEventValidationError("Date is required")
    if event.decision_path_id is not None and db.get(DecisionPath, event.decision_path_id) is None:
        raise NotFoundError("Decision path", event.decision_path_id)


def require_event(db: Session, event_id: int) -> ProjectionEvent:
    event = db.get(ProjectionEvent, event_id)
    if event is None:
        raise NotFoundError("Projection event", event_id)
    return event


def list_events(
    db: Session,
    bank_account_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    decision_path_id: int | None = None,
) -> list[ProjectionEvent]:
    query = db.query(ProjectionEvent)
    if bank_account_id is not None:
        query = query.filter(ProjectionEvent.bank_account_id == bank_account_id)
    if start is not None:
        query = query.filter(ProjectionEvent.date >= start)
    if end is not None:
        query = query.filter(ProjectionEvent.date <= end)
    if decision_path_id is not None:
        query = query.filter(ProjectionEvent.decision_path_id == decision_path_id)
    return query.order_by(ProjectionEvent.date.asc(), ProjectionEvent.id.asc()).all()


class CreateProjectionEventUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        bank_account_id: int,
        name: str,
        date: date,
        value: Decimal,
        direction: str,
        certainty: str,
        description: str | None = None,
        pay_to: str | None = None,
        paid_by: str | None = None,
        decision_path_id: int | None = None,
    ) -> ProjectionEvent:
        require_bank_account(self.db, bank_account_id)
        event = ProjectionEvent(
            bank_account_id=bank_account_id,
            name=(name or "").strip(),
            description=description,
            date=date,
            value=value,
            direction=direction,
            certainty=certainty,
            pay_to=pay_to,
            paid_by=paid_by,
            decision_path_id=decision_path_id,
        )
        _validate(self.db, event)

        self.db.add(event)
        self.db.flush()
        self.event_repo.append_event(
            account_id=bank_account_id,
            event_type="projection_event_created",
            payload={"event_id": event.id, **event_snapshot(event)},
        )
        self.db.commit()

        BalanceRecalculator(self.db).invalidate(bank_account_id, event.date)
        return event


class UpdateProjectionEventUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, event_id: int, **changes) -> ProjectionEvent:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ProjectionEventValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        event = require_event(self.db, event_id)
        old_date = event.date
        try:
            for field, value in changes.items():
                if field == "name" and value is not None:
                    value = value.strip()
                setattr(event, field, value)
            _validate(self.db, event)

            self.event_repo.append_event(
                account_id=event.bank_account_id,
                event_type="projection_event_updated",
                payload={"event_id": event.id, "changed_fields": sorted(changes), **event_snapshot(event)},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        # a moved event changes both the old and the new date
        start, end = min(old_date, event.date), max(old_date, event.date)
        BalanceRecalculator(self.db).invalidate(event.bank_account_id, start, end)
        return event


class DeleteProjectionEventUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, event_id: int) -> None:
        event = require_event(self.db, event_id)
        bank_account_id, event_date = event.bank_account_id, event.date
        snapshot = event_snapshot(event)

        self.db.delete(event)
        self.event_repo.append_event(
            account_id=bank_account_id,
            event_type="projection_event_deleted",
            payload={"event_id": event_id, **snapshot},
        )
        self.db.commit()

        BalanceRecalculator(self.db).invalidate(bank_account_id, event_date)

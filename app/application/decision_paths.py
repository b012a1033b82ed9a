"""
Decision path use cases

Deleting a decision path never deletes events: references on events and
rules are nulled (those events then count in every scenario) and the
path's scenario-set pairs are dropped.
"""
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.application.errors import NotFoundError
from app.infrastructure.db.models import (
    DecisionPath, ProjectionEvent, RecurringEventRule, ScenarioSetDecisionPath,
)
from app.infrastructure.eventlog.repository import EventLogRepository


class DecisionPathValidationError(ValueError):
    pass


@dataclass(frozen=True)
class DecisionPathUsage:
    decision_path: DecisionPath
    event_count: int
    recurring_rule_count: int

    @property
    def total_usage(self) -> int:
        return self.event_count + self.recurring_rule_count


def require_decision_path(db: Session, decision_path_id: int) -> DecisionPath:
    path = db.get(DecisionPath, decision_path_id)
    if path is None:
        raise NotFoundError("Decision path", decision_path_id)
    return path


def get_by_name(db: Session, name: str) -> DecisionPath | None:
    return db.query(DecisionPath).filter(DecisionPath.name == name).first()


def list_decision_paths(db: Session) -> list[DecisionPath]:
    return db.query(DecisionPath).order_by(DecisionPath.name.asc()).all()


def list_decision_paths_with_usage(db: Session) -> list[DecisionPathUsage]:
    event_counts = dict(
        db.query(ProjectionEvent.decision_path_id, func.count(ProjectionEvent.id))
        .filter(ProjectionEvent.decision_path_id.isnot(None))
        .group_by(ProjectionEvent.decision_path_id)
        .all()
    )
    rule_counts = dict(
        db.query(RecurringEventRule.decision_path_id, func.count(RecurringEventRule.id))
        .filter(RecurringEventRule.decision_path_id.isnot(None))
        .group_by(RecurringEventRule.decision_path_id)
        .all()
    )
    return [
        DecisionPathUsage(
            decision_path=path,
            event_count=event_counts.get(path.id, 0),
            recurring_rule_count=rule_counts.get(path.id, 0),
        )
        for path in list_decision_paths(db)
    ]


class GetOrCreateDecisionPathUseCase:
    """Names are unique: asking for an existing name returns that path."""

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, name: str, description: str | None = None) -> tuple[DecisionPath, bool]:
        """Returns (path, created)."""
        name = (name or "").strip()
        if not name:
            raise DecisionPathValidationError("Decision path name is required")

        existing = get_by_name(self.db, name)
        if existing is not None:
            return existing, False

        path = DecisionPath(name=name, description=description)
        self.db.add(path)
        self.db.flush()
        self.event_repo.append_event(
            account_id=0,
            event_type="decision_path_created",
            payload={"decision_path_id": path.id, "name": name},
        )
        self.db.commit()
        return path, True


class UpdateDecisionPathUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        decision_path_id: int,
        name: str | None = None,
        description: str | None = None,
    ) -> DecisionPath:
        path = require_decision_path(self.db, decision_path_id)

        if name is not None:
            name = name.strip()
            if not name:
                raise DecisionPathValidationError("Decision path name is required")
            clash = get_by_name(self.db, name)
            if clash is not None and clash.id != path.id:
                raise DecisionPathValidationError(f"Decision path '{name}' already exists")
            path.name = name
        if description is not None:
            path.description = description

        self.event_repo.append_event(
            account_id=0,
            event_type="decision_path_updated",
            payload={"decision_path_id": path.id, "name": path.name},
        )
        self.db.commit()
        return path


class DeleteDecisionPathUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, decision_path_id: int) -> dict:
        """Returns counts of detached events / rules."""
        path = require_decision_path(self.db, decision_path_id)

        events = self.db.query(ProjectionEvent).filter(
            ProjectionEvent.decision_path_id == decision_path_id
        ).update({ProjectionEvent.decision_path_id: None}, synchronize_session=False)
        rules = self.db.query(RecurringEventRule).filter(
            RecurringEventRule.decision_path_id == decision_path_id
        ).update({RecurringEventRule.decision_path_id: None}, synchronize_session=False)
        self.db.query(ScenarioSetDecisionPath).filter(
            ScenarioSetDecisionPath.decision_path_id == decision_path_id
        ).delete(synchronize_session=False)

        self.db.delete(path)
        self.event_repo.append_event(
            account_id=0,
            event_type="decision_path_deleted",
            payload={
                "decision_path_id": decision_path_id,
                "name": path.name,
                "events_detached": events,
                "rules_detached": rules,
            },
        )
        self.db.commit()
        return {"events_detached": events, "rules_detached": rules}

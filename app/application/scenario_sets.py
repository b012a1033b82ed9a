"""
Scenario set use cases

A scenario set stores (decision path -> enabled) pairs. Its active state is
merged with the current decision-path list: paths added later default to
enabled. The default set ("Default (All Enabled)") always enables every path
and cannot be deleted.
"""
from sqlalchemy.orm import Session

from app.application.errors import NotFoundError
from app.domain.scenario import enabled_ids, merge_scenario_state
from app.infrastructure.db.models import DecisionPath, ScenarioSet, ScenarioSetDecisionPath
from app.infrastructure.eventlog.repository import EventLogRepository

DEFAULT_SCENARIO_NAME = "Default (All Enabled)"
DEFAULT_SCENARIO_DESCRIPTION = "Default scenario with all decision paths enabled"


class ScenarioSetValidationError(ValueError):
    pass


def require_scenario_set(db: Session, scenario_set_id: int) -> ScenarioSet:
    scenario = db.get(ScenarioSet, scenario_set_id)
    if scenario is None:
        raise NotFoundError("Scenario set", scenario_set_id)
    return scenario


def list_scenario_sets(db: Session) -> list[ScenarioSet]:
    """Default first, then by name."""
    return db.query(ScenarioSet).order_by(ScenarioSet.is_default.desc(), ScenarioSet.name.asc()).all()


def get_stored_states(db: Session, scenario_set_id: int) -> dict[int, bool]:
    rows = db.query(ScenarioSetDecisionPath).filter(
        ScenarioSetDecisionPath.scenario_set_id == scenario_set_id
    ).all()
    return {row.decision_path_id: row.enabled for row in rows}


def _all_decision_path_ids(db: Session) -> list[int]:
    return [row.id for row in db.query(DecisionPath.id).order_by(DecisionPath.id.asc()).all()]


def get_active_state(db: Session, scenario_set_id: int) -> dict[int, bool]:
    scenario = require_scenario_set(db, scenario_set_id)
    all_ids = _all_decision_path_ids(db)
    if scenario.is_default:
        return {pid: True for pid in all_ids}
    return merge_scenario_state(all_ids, get_stored_states(db, scenario_set_id))


def enabled_decision_path_ids(db: Session, scenario_set_id: int | None) -> set[int] | None:
    """Enabled set for the calculator; None (no filter) when no scenario is chosen."""
    if scenario_set_id is None:
        return None
    return enabled_ids(get_active_state(db, scenario_set_id))


def _check_states(db: Session, states: dict[int, bool]) -> None:
    known = set(_all_decision_path_ids(db))
    for pid in states:
        if pid not in known:
            raise NotFoundError("Decision path", pid)


def _write_states(db: Session, scenario_set_id: int, states: dict[int, bool]) -> None:
    db.query(ScenarioSetDecisionPath).filter(
        ScenarioSetDecisionPath.scenario_set_id == scenario_set_id
    ).delete(synchronize_session=False)
    db.add_all([
        ScenarioSetDecisionPath(scenario_set_id=scenario_set_id, decision_path_id=pid, enabled=bool(enabled))
        for pid, enabled in states.items()
    ])
    db.flush()


class CreateScenarioSetUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        name: str,
        decision_path_states: dict[int, bool] | None = None,
        description: str | None = None,
        is_default: bool = False,
    ) -> ScenarioSet:
        name = (name or "").strip()
        if not name:
            raise ScenarioSetValidationError("Scenario set name is required")
        if self.db.query(ScenarioSet).filter(ScenarioSet.name == name).first() is not None:
            raise ScenarioSetValidationError(f"Scenario set '{name}' already exists")
        if is_default and self.db.query(ScenarioSet).filter(ScenarioSet.is_default.is_(True)).first():
            raise ScenarioSetValidationError("A default scenario set already exists")

        states = decision_path_states or {}
        _check_states(self.db, states)

        scenario = ScenarioSet(name=name, description=description, is_default=is_default)
        self.db.add(scenario)
        self.db.flush()
        _write_states(self.db, scenario.id, states)

        self.event_repo.append_event(
            account_id=0,
            event_type="scenario_set_created",
            payload={
                "scenario_set_id": scenario.id,
                "name": name,
                "states": {str(k): v for k, v in states.items()},
            },
        )
        self.db.commit()
        return scenario


class UpdateScenarioSetUseCase:
    """Rename / re-describe, optionally replacing all stored states."""

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        scenario_set_id: int,
        name: str | None = None,
        description: str | None = None,
        decision_path_states: dict[int, bool] | None = None,
    ) -> ScenarioSet:
        scenario = require_scenario_set(self.db, scenario_set_id)

        if name is not None:
            name = name.strip()
            if not name:
                raise ScenarioSetValidationError("Scenario set name is required")
            clash = self.db.query(ScenarioSet).filter(ScenarioSet.name == name).first()
            if clash is not None and clash.id != scenario.id:
                raise ScenarioSetValidationError(f"Scenario set '{name}' already exists")
            scenario.name = name
        if description is not None:
            scenario.description = description
        if decision_path_states is not None:
            _check_states(self.db, decision_path_states)
            _write_states(self.db, scenario.id, decision_path_states)

        self.event_repo.append_event(
            account_id=0,
            event_type="scenario_set_updated",
            payload={"scenario_set_id": scenario.id, "name": scenario.name},
        )
        self.db.commit()
        return scenario


class DeleteScenarioSetUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, scenario_set_id: int) -> None:
        scenario = require_scenario_set(self.db, scenario_set_id)
        if scenario.is_default:
            raise ScenarioSetValidationError("The default scenario set cannot be deleted")

        self.db.query(ScenarioSetDecisionPath).filter(
            ScenarioSetDecisionPath.scenario_set_id == scenario_set_id
        ).delete(synchronize_session=False)
        self.db.delete(scenario)
        self.event_repo.append_event(
            account_id=0,
            event_type="scenario_set_deleted",
            payload={"scenario_set_id": scenario_set_id, "name": scenario.name},
        )
        self.db.commit()


class CloneScenarioSetUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, source_id: int, new_name: str, new_description: str | None = None) -> ScenarioSet:
        source = require_scenario_set(self.db, source_id)
        return CreateScenarioSetUseCase(self.db).execute(
            name=new_name,
            decision_path_states=get_stored_states(self.db, source_id),
            description=new_description or source.description,
            is_default=False,
        )


def get_or_create_default(db: Session) -> ScenarioSet:
    existing = db.query(ScenarioSet).filter(ScenarioSet.is_default.is_(True)).first()
    if existing is not None:
        return existing
    return CreateScenarioSetUseCase(db).execute(
        name=DEFAULT_SCENARIO_NAME,
        decision_path_states={pid: True for pid in _all_decision_path_ids(db)},
        description=DEFAULT_SCENARIO_DESCRIPTION,
        is_default=True,
    )

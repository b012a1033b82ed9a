"""
FastAPI dependencies (DB session, scenario resolution)
"""
from fastapi import Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.infrastructure.db.session import get_db as _get_db


# Re-export get_db for convenience
get_db = _get_db


def get_enabled_decision_path_ids(
    scenario_set_id: int | None = Query(default=None),
    enabled_decision_path_ids: list[int] | None = Query(default=None),
    db: Session = Depends(get_db),
) -> set[int] | None:
    """
    Scenario filter for balance endpoints

    An explicit enabled_decision_path_ids list wins over scenario_set_id;
    neither means "no filter".

    Usage:
        @router.get("/compute-balances")
        def compute(enabled: set[int] | None = Depends(get_enabled_decision_path_ids)):
            ...
    """
    from app.application.scenario_sets import enabled_decision_path_ids as scenario_enabled_ids

    if enabled_decision_path_ids is not None:
        return set(enabled_decision_path_ids)
    if scenario_set_id is None:
        return None
    try:
        return scenario_enabled_ids(db, scenario_set_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))

"""
Scenario filter - decides which projection events count for a scenario.

Pure functions over any objects exposing `certainty` and `decision_path_id`.
"""
from typing import Iterable, Mapping

from app.domain.projection_event import CERTAINTY_UNLIKELY


def include(event, enabled_decision_path_ids: set[int] | None) -> bool:
    """
    Scenario membership of one event

    None means "no filter": every event passes. Events without a decision
    path always pass.
    """
    if enabled_decision_path_ids is None:
        return True
    if event.decision_path_id is None:
        return True
    return event.decision_path_id in enabled_decision_path_ids


def counts_toward_balance(event, enabled_decision_path_ids: set[int] | None) -> bool:
    """UNLIKELY events are dropped unconditionally, then the scenario filter applies."""
    if event.certainty == CERTAINTY_UNLIKELY:
        return False
    return include(event, enabled_decision_path_ids)


def filter_events(events: Iterable, enabled_decision_path_ids: set[int] | None) -> list:
    return [e for e in events if counts_toward_balance(e, enabled_decision_path_ids)]


def merge_scenario_state(
    all_decision_path_ids: Iterable[int],
    stored_states: Mapping[int, bool],
) -> dict[int, bool]:
    """
    Merge stored (path -> enabled) pairs with the current list of paths.

    Paths created after the scenario was saved default to enabled; stored
    pairs for paths that no longer exist are dropped.
    """
    return {pid: stored_states.get(pid, True) for pid in all_decision_path_ids}


def enabled_ids(state: Mapping[int, bool]) -> set[int]:
    return {pid for pid, enabled in state.items() if enabled}

"""
Projection event vocabulary: directions, certainty levels, signed amounts
"""
from decimal import Decimal

DIRECTION_EXPENSE = "EXPENSE"
DIRECTION_INCOMING = "INCOMING"
VALID_DIRECTIONS = frozenset({DIRECTION_EXPENSE, DIRECTION_INCOMING})

CERTAINTY_UNLIKELY = "UNLIKELY"  # never affects balance math
CERTAINTY_POSSIBLE = "POSSIBLE"
CERTAINTY_LIKELY = "LIKELY"
CERTAINTY_CERTAIN = "CERTAIN"
VALID_CERTAINTIES = frozenset({CERTAINTY_UNLIKELY, CERTAINTY_POSSIBLE, CERTAINTY_LIKELY, CERTAINTY_CERTAIN})


def signed_value(direction: str, value: Decimal) -> Decimal:
    """INCOMING adds to the balance, EXPENSE subtracts from it."""
    if direction == DIRECTION_INCOMING:
        return value
    if direction == DIRECTION_EXPENSE:
        return -value
    raise ValueError(f"invalid direction: {direction}")


def event_snapshot(event) -> dict:
    """JSON-safe snapshot of an event or rule row for the activity log."""
    snapshot = {
        "name": event.name,
        "value": str(event.value),
        "direction": event.direction,
        "certainty": event.certainty,
        "decision_path_id": event.decision_path_id,
    }
    if getattr(event, "date", None) is not None:
        snapshot["date"] = event.date.isoformat()
    if getattr(event, "start_date", None) is not None:
        snapshot["start_date"] = event.start_date.isoformat()
        snapshot["end_date"] = event.end_date.isoformat()
        snapshot["frequency"] = event.frequency
    return snapshot


def validate_event_fields(name: str, value, direction: str, certainty: str) -> str | None:
    """Validate the fields shared by events and rules. Returns error message or None."""
    if not (name or "").strip():
        return "Name is required"
    if not isinstance(value, Decimal) or not value.is_finite():
        return "Value must be a finite decimal amount"
    if value <= 0:
        return "Value must be greater than zero"
    if value.as_tuple().exponent < -2:
        return "Value must have at most 2 decimal places"
    if value >= Decimal(10) ** 18:
        return "Value is out of range"
    if direction not in VALID_DIRECTIONS:
        return f"Invalid direction: {direction}"
    if certainty not in VALID_CERTAINTIES:
        return f"Invalid certainty: {certainty}"
    return None

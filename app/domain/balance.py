"""
Daily balance fold - pure arithmetic shared by the persisted and the
on-the-fly calculators.

For each day: expected = running + (Σ incoming − Σ expense). The balance
carried into the next day is the user's override for that day when one
exists, otherwise `expected`.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping

from app.domain.projection_event import signed_value

CENT = Decimal("0.01")

# Numeric(20, 2) leaves 18 integer digits
MAX_ABS_BALANCE = Decimal(10) ** 18


class BalanceComputationError(ArithmeticError):
    """Non-finite or out-of-range monetary value; never clamped"""
    pass


@dataclass(frozen=True)
class DayBalance:
    date: date
    expected_balance: Decimal
    day_delta: Decimal
    event_count: int
    carried_balance: Decimal  # balance entering the next day


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return check_money(value).quantize(CENT, rounding=ROUND_HALF_UP)


def check_money(value: Decimal) -> Decimal:
    if not isinstance(value, Decimal):
        raise BalanceComputationError(f"monetary value must be Decimal, got {type(value).__name__}")
    if not value.is_finite():
        raise BalanceComputationError(f"non-finite monetary value: {value}")
    if abs(value) >= MAX_ABS_BALANCE:
        raise BalanceComputationError(f"monetary value out of range: {value}")
    return value


def iter_days(start: date, end: date):
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def group_by_date(events: Iterable) -> dict[date, list]:
    grouped: dict[date, list] = defaultdict(list)
    for event in events:
        grouped[event.date].append(event)
    return grouped


def day_delta(events: Iterable) -> Decimal:
    total = Decimal("0")
    for event in events:
        total += signed_value(event.direction, check_money(event.value))
    return total


def fold_events(opening_balance: Decimal, events: Iterable) -> Decimal:
    """Apply already-filtered events to a balance without per-day output."""
    return check_money(opening_balance + day_delta(events))


def walk_balances(
    opening_balance: Decimal,
    start: date,
    end: date,
    events_by_date: Mapping[date, list],
    overrides: Mapping[date, Decimal] | None = None,
) -> list[DayBalance]:
    """
    Walk [start, end] day by day.

    Args:
        opening_balance: balance before any event of `start`
        events_by_date: filtered events grouped by date
        overrides: actual-balance overrides (end-of-day values)
    """
    overrides = overrides or {}
    running = check_money(opening_balance)
    out: list[DayBalance] = []

    for day in iter_days(start, end):
        day_events = events_by_date.get(day, [])
        delta = day_delta(day_events)
        expected = check_money(running + delta)

        override = overrides.get(day)
        running = check_money(override) if override is not None else expected

        out.append(DayBalance(
            date=day,
            expected_balance=expected,
            day_delta=delta,
            event_count=len(day_events),
            carried_balance=running,
        ))
    return out

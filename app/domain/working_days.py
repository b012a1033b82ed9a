"""
Working-day adjustment for incoming recurring payments

Salaries and other incoming payments scheduled on a weekend or a bank
holiday arrive on the next working day. Expenses are due on their scheduled
date and never move. The shift is capped at MAX_ADJUSTMENT_DAYS.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import AbstractSet, Iterable

from app.domain.projection_event import DIRECTION_INCOMING

MAX_ADJUSTMENT_DAYS = 5

# England & Wales bank holidays (gov.uk)
UK_BANK_HOLIDAYS = frozenset({
    date(2025, 1, 1), date(2025, 4, 18), date(2025, 4, 21), date(2025, 5, 5),
    date(2025, 5, 26), date(2025, 8, 25), date(2025, 12, 25), date(2025, 12, 26),
    date(2026, 1, 1), date(2026, 4, 3), date(2026, 4, 6), date(2026, 5, 4),
    date(2026, 5, 25), date(2026, 8, 31), date(2026, 12, 25), date(2026, 12, 28),
    date(2027, 1, 1), date(2027, 3, 26), date(2027, 3, 29), date(2027, 5, 3),
    date(2027, 5, 31), date(2027, 8, 30), date(2027, 12, 27), date(2027, 12, 28),
})


@dataclass(frozen=True)
class Occurrence:
    date: date  # scheduled by the rule
    adjusted_date: date  # date the money actually moves

    @property
    def is_adjusted(self) -> bool:
        return self.date != self.adjusted_date


def is_non_working_day(d: date, holidays: AbstractSet[date] = UK_BANK_HOLIDAYS) -> bool:
    return d.weekday() >= 5 or d in holidays


def adjust_to_next_working_day(
    d: date,
    direction: str,
    holidays: AbstractSet[date] = UK_BANK_HOLIDAYS,
    max_days: int = MAX_ADJUSTMENT_DAYS,
) -> date:
    """
    Next working day on or after `d` for INCOMING payments; `d` itself otherwise

    Example:
        >>> adjust_to_next_working_day(date(2026, 1, 3), "INCOMING")  # Saturday
        datetime.date(2026, 1, 5)
    """
    if direction != DIRECTION_INCOMING:
        return d
    adjusted = d
    moved = 0
    while is_non_working_day(adjusted, holidays) and moved < max_days:
        adjusted += timedelta(days=1)
        moved += 1
    return adjusted


def adjust_occurrences(
    dates: Iterable[date],
    direction: str,
    holidays: AbstractSet[date] = UK_BANK_HOLIDAYS,
) -> list[Occurrence]:
    return [Occurrence(d, adjust_to_next_working_day(d, direction, holidays)) for d in dates]

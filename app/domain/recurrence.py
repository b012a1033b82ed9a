"""
Deterministic recurrence occurrence generator for recurring event rules.

Uses date only (no timezone). Every occurrence is computed from the anchor
start date rather than from the previous occurrence, so month-end clipping
never drifts: a rule starting Jan 31 yields Jan 31, Feb 28 (29), Mar 31, ...

Frequencies:
- DAILY: every day
- WEEKLY: every 7 days
- MONTHLY: same day of month, clipped to the month's last day
- QUARTERLY: every 3 months (clipped)
- BIANNUAL: every 6 months (clipped)
- ANNUAL: every 12 months; Feb 29 becomes Feb 28 in non-leap years
"""
import calendar
from dataclasses import dataclass
from datetime import date, timedelta


FREQ_DAILY = "DAILY"
FREQ_WEEKLY = "WEEKLY"
FREQ_MONTHLY = "MONTHLY"
FREQ_QUARTERLY = "QUARTERLY"
FREQ_BIANNUAL = "BIANNUAL"
FREQ_ANNUAL = "ANNUAL"

VALID_FREQ = frozenset({FREQ_DAILY, FREQ_WEEKLY, FREQ_MONTHLY, FREQ_QUARTERLY, FREQ_BIANNUAL, FREQ_ANNUAL})

# step in days for day-based frequencies, in months for the rest
_DAY_STEPS = {FREQ_DAILY: 1, FREQ_WEEKLY: 7}
_MONTH_STEPS = {FREQ_MONTHLY: 1, FREQ_QUARTERLY: 3, FREQ_BIANNUAL: 6, FREQ_ANNUAL: 12}


class OccurrenceLimitExceeded(ValueError):
    """Rule would produce more occurrences than the configured cap"""
    pass


@dataclass(frozen=True)
class RuleSpec:
    freq: str
    start_date: date
    end_date: date  # inclusive


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: date, n: int) -> date:
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    last = last_day_of_month(year, month)
    day = min(d.day, last)
    return date(year, month, day)


def _validate_rule(rule: RuleSpec) -> None:
    if rule.freq not in VALID_FREQ:
        raise ValueError(f"invalid frequency: {rule.freq}")
    if rule.start_date >= rule.end_date:
        raise ValueError("start_date must be before end_date")


def nth_occurrence(rule: RuleSpec, k: int) -> date:
    """k-th occurrence (0-based) counted from the anchor start date."""
    if rule.freq in _DAY_STEPS:
        return rule.start_date + timedelta(days=k * _DAY_STEPS[rule.freq])
    return add_months(rule.start_date, k * _MONTH_STEPS[rule.freq])


def generate_occurrence_dates(rule: RuleSpec, max_occurrences: int | None = None) -> list[date]:
    """Generate every occurrence in [start_date, end_date] (inclusive).
    Deterministic, sorted ascending, no duplicates."""
    _validate_rule(rule)

    out: list[date] = []
    k = 0
    while True:
        d = nth_occurrence(rule, k)
        if d > rule.end_date:
            break
        out.append(d)
        if max_occurrences is not None and len(out) > max_occurrences:
            raise OccurrenceLimitExceeded(
                f"rule generates more than {max_occurrences} occurrences"
            )
        k += 1
    return out


def preview_occurrence_dates(rule: RuleSpec, limit: int = 10) -> list[date]:
    """First `limit` occurrences without enumerating the whole span."""
    _validate_rule(rule)

    out: list[date] = []
    k = 0
    while len(out) < limit:
        d = nth_occurrence(rule, k)
        if d > rule.end_date:
            break
        out.append(d)
        k += 1
    return out


def rule_spec_from_db(row) -> RuleSpec:
    """Build RuleSpec from a RecurringEventRule row (any object with matching attributes)."""
    return RuleSpec(
        freq=row.frequency,
        start_date=row.start_date,
        end_date=row.end_date,
    )

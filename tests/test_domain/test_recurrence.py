"""
Tests for the recurrence occurrence generator
"""
from datetime import date

import pytest

from app.domain.recurrence import (
    FREQ_ANNUAL, FREQ_BIANNUAL, FREQ_DAILY, FREQ_MONTHLY, FREQ_QUARTERLY, FREQ_WEEKLY,
    OccurrenceLimitExceeded, RuleSpec, add_months, generate_occurrence_dates, preview_occurrence_dates,
)


def test_add_months_clips_to_month_end():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)
    assert add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)


def test_daily_includes_both_ends():
    dates = generate_occurrence_dates(RuleSpec(FREQ_DAILY, date(2026, 1, 1), date(2026, 1, 5)))
    assert dates == [date(2026, 1, d) for d in range(1, 6)]


def test_weekly_every_seven_days():
    dates = generate_occurrence_dates(RuleSpec(FREQ_WEEKLY, date(2026, 1, 1), date(2026, 1, 31)))
    assert dates == [date(2026, 1, 1), date(2026, 1, 8), date(2026, 1, 15), date(2026, 1, 22), date(2026, 1, 29)]


def test_monthly_month_end_does_not_drift():
    """Jan 31 → Feb 28 → Mar 31: clipping never sticks to the 28th"""
    dates = generate_occurrence_dates(RuleSpec(FREQ_MONTHLY, date(2026, 1, 31), date(2026, 5, 31)))
    assert dates == [
        date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30), date(2026, 5, 31),
    ]


def test_quarterly_and_biannual():
    q = generate_occurrence_dates(RuleSpec(FREQ_QUARTERLY, date(2026, 1, 15), date(2026, 12, 31)))
    assert q == [date(2026, 1, 15), date(2026, 4, 15), date(2026, 7, 15), date(2026, 10, 15)]

    b = generate_occurrence_dates(RuleSpec(FREQ_BIANNUAL, date(2026, 8, 31), date(2027, 12, 31)))
    assert b == [date(2026, 8, 31), date(2027, 2, 28), date(2027, 8, 31)]


def test_annual_leap_day_clips_to_feb_28():
    dates = generate_occurrence_dates(RuleSpec(FREQ_ANNUAL, date(2024, 2, 29), date(2028, 3, 1)))
    assert dates == [date(2024, 2, 29), date(2025, 2, 28), date(2026, 2, 28), date(2027, 2, 28), date(2028, 2, 29)]


def test_dates_sorted_and_unique():
    dates = generate_occurrence_dates(RuleSpec(FREQ_MONTHLY, date(2026, 1, 30), date(2027, 1, 30)))
    assert dates == sorted(set(dates))


def test_invalid_rule_rejected():
    with pytest.raises(ValueError):
        generate_occurrence_dates(RuleSpec("HOURLY", date(2026, 1, 1), date(2026, 2, 1)))
    with pytest.raises(ValueError):
        generate_occurrence_dates(RuleSpec(FREQ_DAILY, date(2026, 2, 1), date(2026, 2, 1)))


def test_occurrence_cap():
    rule = RuleSpec(FREQ_DAILY, date(2026, 1, 1), date(2026, 12, 31))
    with pytest.raises(OccurrenceLimitExceeded):
        generate_occurrence_dates(rule, max_occurrences=100)
    assert len(generate_occurrence_dates(rule, max_occurrences=365)) == 365


def test_preview_stops_at_limit_or_end():
    rule = RuleSpec(FREQ_DAILY, date(2026, 1, 1), date(2126, 1, 1))
    assert len(preview_occurrence_dates(rule, limit=10)) == 10

    short = RuleSpec(FREQ_MONTHLY, date(2026, 1, 1), date(2026, 3, 1))
    assert preview_occurrence_dates(short, limit=10) == [date(2026, 1, 1), date(2026, 2, 1), date(2026, 3, 1)]

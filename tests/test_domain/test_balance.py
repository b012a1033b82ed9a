"""
Tests for the daily balance fold
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from app.domain.balance import (
    BalanceComputationError, group_by_date, round_money, walk_balances,
)


@dataclass
class Ev:
    date: date
    value: Decimal
    direction: str


def _walk(opening, start, end, events, overrides=None):
    days = walk_balances(Decimal(opening), start, end, group_by_date(events), overrides)
    return {d.date: d for d in days}


def test_round_money_half_up():
    assert round_money(Decimal("10.005")) == Decimal("10.01")
    assert round_money(Decimal("-10.005")) == Decimal("-10.01")
    assert round_money(Decimal("3")) == Decimal("3.00")


def test_walk_without_events_carries_opening():
    days = _walk("1000", date(2026, 1, 1), date(2026, 1, 3), [])
    assert [d.expected_balance for d in days.values()] == [Decimal("1000")] * 3


def test_walk_applies_day_delta():
    events = [
        Ev(date(2026, 1, 5), Decimal("200"), "EXPENSE"),
        Ev(date(2026, 1, 10), Decimal("300"), "INCOMING"),
        Ev(date(2026, 1, 10), Decimal("50"), "EXPENSE"),
    ]
    days = _walk("1000", date(2026, 1, 1), date(2026, 1, 10), events)
    assert days[date(2026, 1, 4)].expected_balance == Decimal("1000")
    assert days[date(2026, 1, 5)].expected_balance == Decimal("800")
    assert days[date(2026, 1, 10)].day_delta == Decimal("250")
    assert days[date(2026, 1, 10)].event_count == 2
    assert days[date(2026, 1, 10)].expected_balance == Decimal("1050")


def test_override_replaces_carry_but_expected_is_kept():
    events = [Ev(date(2026, 1, 6), Decimal("100"), "EXPENSE")]
    overrides = {date(2026, 1, 6): Decimal("500")}
    days = _walk("1000", date(2026, 1, 5), date(2026, 1, 8), events, overrides)

    assert days[date(2026, 1, 6)].expected_balance == Decimal("900")
    assert days[date(2026, 1, 6)].carried_balance == Decimal("500")
    assert days[date(2026, 1, 7)].expected_balance == Decimal("500")


def test_non_finite_value_raises():
    events = [Ev(date(2026, 1, 2), Decimal("NaN"), "INCOMING")]
    with pytest.raises(BalanceComputationError):
        _walk("0", date(2026, 1, 1), date(2026, 1, 3), events)


def test_out_of_range_raises():
    events = [Ev(date(2026, 1, 1), Decimal("999999999999999999"), "INCOMING")]
    with pytest.raises(BalanceComputationError):
        _walk("999999999999999999", date(2026, 1, 1), date(2026, 1, 1), events)


def test_float_rejected():
    with pytest.raises(BalanceComputationError):
        walk_balances(100.0, date(2026, 1, 1), date(2026, 1, 1), {})

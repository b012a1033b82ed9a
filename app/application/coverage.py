"""
Coverage Tracker - the boundary between "true" (transaction-backed) and
"projected" days, read from imported transaction records.

The balance calculator never reads transaction rows itself; it asks this
tracker for coverage and for the last known balance.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import get_settings
from app.infrastructure.db.models import TransactionRecord


@dataclass(frozen=True)
class CoverageRange:
    start: date
    end: date  # inclusive


@dataclass(frozen=True)
class Coverage:
    latest_covered_date: date | None
    earliest_covered_date: date | None
    transaction_count: int
    coverage_ranges: list[CoverageRange] = field(default_factory=list)


@dataclass(frozen=True)
class KnownBalance:
    balance: Decimal
    date: date


def build_coverage_ranges(dates: list[date], max_gap_days: int) -> list[CoverageRange]:
    """Merge sorted transaction dates into ranges; a gap above max_gap_days starts a new range."""
    ranges: list[CoverageRange] = []
    if not dates:
        return ranges

    range_start = prev = dates[0]
    for d in dates[1:]:
        if (d - prev).days > max_gap_days:
            ranges.append(CoverageRange(start=range_start, end=prev))
            range_start = d
        prev = d
    ranges.append(CoverageRange(start=range_start, end=prev))
    return ranges


class CoverageTracker:
    def __init__(self, db: Session):
        self.db = db

    def get_coverage(self, bank_account_id: int) -> Coverage:
        dates = [
            row.transaction_date for row in
            self.db.query(TransactionRecord.transaction_date)
            .filter(TransactionRecord.bank_account_id == bank_account_id)
            .distinct()
            .order_by(TransactionRecord.transaction_date.asc())
            .all()
        ]
        count = self.db.query(func.count(TransactionRecord.id)).filter(
            TransactionRecord.bank_account_id == bank_account_id
        ).scalar() or 0

        if not dates:
            return Coverage(latest_covered_date=None, earliest_covered_date=None, transaction_count=0)

        return Coverage(
            latest_covered_date=dates[-1],
            earliest_covered_date=dates[0],
            transaction_count=count,
            coverage_ranges=build_coverage_ranges(dates, get_settings().COVERAGE_GAP_DAYS),
        )

    def get_last_known_balance(self, on_or_before: date, bank_account_id: int) -> KnownBalance | None:
        """Running balance of the last imported transaction on or before the date (import order breaks ties)."""
        row = (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.bank_account_id == bank_account_id,
                TransactionRecord.transaction_date <= on_or_before,
            )
            .order_by(TransactionRecord.transaction_date.desc(), TransactionRecord.id.desc())
            .first()
        )
        if row is None:
            return None
        return KnownBalance(balance=row.balance, date=row.transaction_date)

    def get_daily_true_balances(self, bank_account_id: int, start: date, end: date) -> dict[date, Decimal]:
        """
        End-of-day balance for each day of [start, end] that has transaction
        history on or before it. Days without a new transaction carry the
        previous balance forward.
        """
        prior = self.get_last_known_balance(start - timedelta(days=1), bank_account_id)
        rows = (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.bank_account_id == bank_account_id,
                TransactionRecord.transaction_date >= start,
                TransactionRecord.transaction_date <= end,
            )
            .order_by(TransactionRecord.transaction_date.asc(), TransactionRecord.id.asc())
            .all()
        )
        closing: dict[date, Decimal] = {}
        for row in rows:
            closing[row.transaction_date] = row.balance

        out: dict[date, Decimal] = {}
        current = prior.balance if prior else None
        d = start
        while d <= end:
            if d in closing:
                current = closing[d]
            if current is not None:
                out[d] = current
            d += timedelta(days=1)
        return out

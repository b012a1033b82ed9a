"""
Daily Balance Calculator

Turns projection events (user-created and rule-generated), actual-balance
overrides and a scenario filter into a day-by-day balance timeline.

Two flavours share the same fold (app.domain.balance.walk_balances):
- calculate(): persists one DailyBalance row per date (upsert of
  expected_balance only, one transaction per call)
- compute_on_the_fly(): read-only, anchored on the last known true balance,
  each day classified "true" or "projected"

Opening balance resolution for a range starting at `start`:
1. the latest override dated before `start`; events after it are folded in
   up to `start - 1` (an override dated on `start` is applied as that
   day's carry by the walk itself)
2. otherwise the configured initial balance (zero when none is set),
   folding events from its effective date up to `start - 1`; an undated
   initial balance is the balance before the account's first event
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.application.account_settings import get_initial_balance
from app.application.bank_accounts import require_bank_account
from app.application.coverage import CoverageTracker
from app.domain.balance import DayBalance, group_by_date, iter_days, round_money, walk_balances
from app.domain.scenario import filter_events
from app.infrastructure.db.models import DailyBalance, ProjectionEvent

logger = logging.getLogger(__name__)

BALANCE_TYPE_TRUE = "true"
BALANCE_TYPE_PROJECTED = "projected"


class BalanceCalculationError(ValueError):
    """Invalid calculation request (rejected before any read)"""
    pass


@dataclass(frozen=True)
class ComputedBalance:
    date: date
    expected_balance: Decimal
    event_count: int
    balance_type: str


@dataclass(frozen=True)
class OnTheFlyResult:
    starting_balance: Decimal
    starting_date: date
    balances: list[ComputedBalance]


def validate_range(start: date, end: date) -> None:
    if start is None or end is None:
        raise BalanceCalculationError("start and end dates are required")
    if start > end:
        raise BalanceCalculationError(
            f"start date {start.isoformat()} must be on or before end date {end.isoformat()}"
        )


class DailyBalanceCalculator:
    def __init__(self, db: Session):
        self.db = db
        self.coverage = CoverageTracker(db)

    # --- persisted timeline ---

    def calculate(
        self,
        bank_account_id: int,
        start: date,
        end: date,
        enabled_decision_path_ids: set[int] | None = None,
    ) -> list[DayBalance]:
        """
        Recompute and persist expected balances for every date in [start, end]

        Returns:
            the computed days (same order as written)

        Raises:
            BalanceCalculationError: inverted range
            NotFoundError: unknown bank account
            BalanceComputationError: non-finite / out-of-range value
        """
        validate_range(start, end)
        require_bank_account(self.db, bank_account_id)

        try:
            opening, walk_start = self._resolve_opening(bank_account_id, start)
            days = self._walk(bank_account_id, walk_start, start, end, opening, enabled_decision_path_ids)
            written = self._upsert(bank_account_id, days)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Balances calculated for account %d: %s..%s (%d rows, %d new)",
            bank_account_id, start.isoformat(), end.isoformat(), len(days), written,
        )
        return days

    def _upsert(self, bank_account_id: int, days: list[DayBalance]) -> int:
        """Overwrite expected_balance of existing rows, create missing ones. actual_balance is never touched."""
        if not days:
            return 0
        existing = {
            row.date: row for row in
            self.db.query(DailyBalance).filter(
                DailyBalance.bank_account_id == bank_account_id,
                DailyBalance.date >= days[0].date,
                DailyBalance.date <= days[-1].date,
            ).all()
        }
        created = 0
        for day in days:
            expected = round_money(day.expected_balance)
            row = existing.get(day.date)
            if row is not None:
                row.expected_balance = expected
            else:
                self.db.add(DailyBalance(
                    bank_account_id=bank_account_id,
                    date=day.date,
                    expected_balance=expected,
                ))
                created += 1
        self.db.flush()
        return created

    # --- exploratory what-if ---

    def compute_on_the_fly(
        self,
        bank_account_id: int,
        start: date,
        end: date,
        as_of_true_balance_date: date,
        enabled_decision_path_ids: set[int] | None = None,
        latest_covered_date: date | None = None,
    ) -> list[ComputedBalance]:
        """
        Non-persisted timeline for [start, end]

        The last known true balance on or before `as_of_true_balance_date`
        anchors the walk. Days up to the anchor report transaction history,
        later days are projected from it. Without any transaction history the
        regular opening-balance resolution is used.
        """
        validate_range(start, end)
        require_bank_account(self.db, bank_account_id)
        return self._on_the_fly(
            bank_account_id, start, end, as_of_true_balance_date,
            enabled_decision_path_ids, latest_covered_date,
        ).balances

    def _on_the_fly(
        self,
        bank_account_id: int,
        start: date,
        end: date,
        as_of_true_balance_date: date,
        enabled_decision_path_ids: set[int] | None,
        latest_covered_date: date | None,
    ) -> OnTheFlyResult:
        known = None
        if as_of_true_balance_date is not None:
            known = self.coverage.get_last_known_balance(as_of_true_balance_date, bank_account_id)

        days: list[DayBalance] = []
        true_days: dict[date, Decimal] = {}
        if known is not None:
            opening = known.balance
            starting_date = known.date
            walk_start = known.date + timedelta(days=1)
            if known.date >= start:
                history_end = min(known.date, end)
                true_days = self.coverage.get_daily_true_balances(bank_account_id, start, history_end)
                # days before the first transaction fall back to the regular opening resolution
                missing = [d for d in iter_days(start, history_end) if d not in true_days]
                if missing:
                    fallback_opening, fallback_start = self._resolve_opening(bank_account_id, start)
                    days = self._walk(
                        bank_account_id, fallback_start, start, missing[-1],
                        fallback_opening, enabled_decision_path_ids,
                    )
        else:
            opening, walk_start = self._resolve_opening(bank_account_id, start)
            starting_date = start

        emit_from = max(start, walk_start)
        if emit_from <= end:
            days += self._walk(
                bank_account_id, walk_start, emit_from, end, opening, enabled_decision_path_ids
            )

        counts: dict[date, int] = {}
        if true_days:
            counts = self._event_counts(
                bank_account_id, min(true_days), max(true_days), enabled_decision_path_ids
            )

        by_date: dict[date, ComputedBalance] = {}
        for d, balance in true_days.items():
            by_date[d] = ComputedBalance(
                date=d,
                expected_balance=round_money(balance),
                event_count=counts.get(d, 0),
                balance_type=self._classify(d, latest_covered_date),
            )
        for day in days:
            by_date.setdefault(day.date, ComputedBalance(
                date=day.date,
                expected_balance=round_money(day.expected_balance),
                event_count=day.event_count,
                balance_type=self._classify(day.date, latest_covered_date),
            ))

        return OnTheFlyResult(
            starting_balance=round_money(opening),
            starting_date=starting_date,
            balances=[by_date[d] for d in sorted(by_date)],
        )

    @staticmethod
    def _classify(d: date, latest_covered_date: date | None) -> str:
        if latest_covered_date is not None and d <= latest_covered_date:
            return BALANCE_TYPE_TRUE
        return BALANCE_TYPE_PROJECTED

    # --- single day preview ---

    def calculate_balance_for_day(
        self,
        bank_account_id: int,
        day: date,
        previous_balance: Decimal,
        enabled_decision_path_ids: set[int] | None = None,
    ) -> tuple[Decimal, list[ProjectionEvent]]:
        """Balance at the end of `day` given the previous day's balance (not persisted)."""
        require_bank_account(self.db, bank_account_id)
        events = filter_events(self._load_events(bank_account_id, day, day), enabled_decision_path_ids)
        result = walk_balances(previous_balance, day, day, group_by_date(events))
        return result[0].expected_balance, events

    # --- shared pieces ---

    def _resolve_opening(self, bank_account_id: int, start: date) -> tuple[Decimal, date]:
        """(opening balance, first day the walk has to start from)"""
        last_override = (
            self.db.query(DailyBalance)
            .filter(
                DailyBalance.bank_account_id == bank_account_id,
                DailyBalance.date < start,
                DailyBalance.actual_balance.isnot(None),
            )
            .order_by(DailyBalance.date.desc())
            .first()
        )
        if last_override is not None:
            return last_override.actual_balance, last_override.date + timedelta(days=1)

        initial = get_initial_balance(self.db, bank_account_id)
        fold_from = initial.effective_date
        if fold_from is None:
            # undated initial balance = balance before the account's first event
            fold_from = (
                self.db.query(func.min(ProjectionEvent.date))
                .filter(ProjectionEvent.bank_account_id == bank_account_id)
                .scalar()
            )
        if fold_from is not None and fold_from < start:
            return initial.amount, fold_from
        return initial.amount, start

    def _walk(
        self,
        bank_account_id: int,
        walk_start: date,
        emit_from: date,
        end: date,
        opening: Decimal,
        enabled_decision_path_ids: set[int] | None,
    ) -> list[DayBalance]:
        """Walk from walk_start (folding the lead-in days) and return the days from emit_from on."""
        walk_start = min(walk_start, emit_from)
        events = filter_events(
            self._load_events(bank_account_id, walk_start, end), enabled_decision_path_ids
        )
        overrides = self._load_overrides(bank_account_id, walk_start, end)
        days = walk_balances(opening, walk_start, end, group_by_date(events), overrides)
        return [d for d in days if d.date >= emit_from]

    def _load_events(self, bank_account_id: int, start: date, end: date) -> list[ProjectionEvent]:
        return (
            self.db.query(ProjectionEvent)
            .filter(
                ProjectionEvent.bank_account_id == bank_account_id,
                ProjectionEvent.date >= start,
                ProjectionEvent.date <= end,
            )
            .order_by(ProjectionEvent.date.asc(), ProjectionEvent.id.asc())
            .all()
        )

    def _load_overrides(self, bank_account_id: int, start: date, end: date) -> dict[date, Decimal]:
        rows = (
            self.db.query(DailyBalance.date, DailyBalance.actual_balance)
            .filter(
                DailyBalance.bank_account_id == bank_account_id,
                DailyBalance.date >= start,
                DailyBalance.date <= end,
                DailyBalance.actual_balance.isnot(None),
            )
            .all()
        )
        return {row.date: row.actual_balance for row in rows}

    def _event_counts(
        self,
        bank_account_id: int,
        start: date,
        end: date,
        enabled_decision_path_ids: set[int] | None,
    ) -> dict[date, int]:
        events = filter_events(self._load_events(bank_account_id, start, end), enabled_decision_path_ids)
        return {d: len(evs) for d, evs in group_by_date(events).items()}


# --- service functions exposed to the API layer ---

def calculate_daily_balances(
    db: Session,
    start: date,
    end: date,
    bank_account_id: int,
    enabled_decision_path_ids: set[int] | None = None,
) -> list[DayBalance]:
    return DailyBalanceCalculator(db).calculate(bank_account_id, start, end, enabled_decision_path_ids)


def compute_balances_on_the_fly(
    db: Session,
    start: date,
    end: date,
    bank_account_id: int,
    true_balance_date: date,
    enabled_decision_path_ids: set[int] | None = None,
    latest_covered_date: date | None = None,
) -> OnTheFlyResult:
    """
    What-if timeline. When latest_covered_date is not given the Coverage
    Tracker supplies it, so transaction-backed days are marked "true".
    """
    validate_range(start, end)
    calculator = DailyBalanceCalculator(db)
    require_bank_account(db, bank_account_id)
    if latest_covered_date is None:
        latest_covered_date = calculator.coverage.get_coverage(bank_account_id).latest_covered_date
    return calculator._on_the_fly(
        bank_account_id, start, end, true_balance_date,
        enabled_decision_path_ids, latest_covered_date,
    )

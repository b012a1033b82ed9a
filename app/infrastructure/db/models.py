"""
SQLAlchemy ORM models (projection tables + activity log)

References between tables are plain integer columns; cascades and
reference nulling are done by the application use cases.
"""
from decimal import Decimal
from datetime import date as date_type
from sqlalchemy import String, DateTime, Integer, Text, TIMESTAMP, Date, func, Boolean, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB

from app.infrastructure.db.session import Base


# Exact decimal storage for every monetary column
MONEY = Numeric(precision=20, scale=2)


class BankAccount(Base):
    """
    Bank account - owns events, rules, balances and imported transactions
    """
    __tablename__ = "bank_accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class AccountSettings(Base):
    """
    Initial balance configuration. bank_account_id IS NULL = global fallback row
    """
    __tablename__ = "account_settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    bank_account_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)  # -> bank_accounts
    initial_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, server_default="0")
    initial_balance_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)

    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class EventLog(Base):
    """
    Activity log - append-only audit trail of every mutation

    Recalculation failures are recorded here too so a stale timeline is visible.
    """
    __tablename__ = "event_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    event_type: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    payload_json: Mapped[dict] = mapped_column(JSONB, nullable=False)  # PostgreSQL JSONB

    occurred_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        index=True
    )
    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )


# ============================================================================
# Decision paths & scenarios
# ============================================================================


class DecisionPath(Base):
    """Named tag for an optional real-world choice"""
    __tablename__ = "decision_paths"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class ScenarioSet(Base):
    """Saved combination of enabled/disabled decision paths"""
    __tablename__ = "scenario_sets"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class ScenarioSetDecisionPath(Base):
    """Link table: stored enabled state of a decision path inside a scenario set"""
    __tablename__ = "scenario_set_decision_paths"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    scenario_set_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> scenario_sets
    decision_path_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> decision_paths
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    __table_args__ = (
        UniqueConstraint('scenario_set_id', 'decision_path_id', name='uq_scenario_set_path'),
    )


# ============================================================================
# Projection events & recurring rules
# ============================================================================


class RecurringEventRule(Base):
    """
    Recurring rule definition. Owns the projection events generated over
    [start_date, end_date] (both inclusive).

    Lineage: the root rule has is_base_rule=True; revisions have
    is_base_rule=False and base_rule_id pointing at the root.
    """
    __tablename__ = "recurring_event_rules"

    id: Mapped[int] = mapped_column(primary_key=True)
    bank_account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> bank_accounts

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    value: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    direction: Mapped[str] = mapped_column(String(16), nullable=False)  # EXPENSE / INCOMING
    certainty: Mapped[str] = mapped_column(String(16), nullable=False)  # UNLIKELY / POSSIBLE / LIKELY / CERTAIN
    pay_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    decision_path_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # -> decision_paths

    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    end_date: Mapped[date_type] = mapped_column(Date, nullable=False)  # inclusive
    frequency: Mapped[str] = mapped_column(String(16), nullable=False)

    is_base_rule: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    base_rule_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # -> recurring_event_rules

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class ProjectionEvent(Base):
    """
    One-off projected cash event (user-created or generated by a recurring rule)
    """
    __tablename__ = "projection_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    bank_account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> bank_accounts

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)  # booking date (working-day adjusted)
    scheduled_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)  # rule occurrence before adjustment
    value: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    direction: Mapped[str] = mapped_column(String(16), nullable=False)
    certainty: Mapped[str] = mapped_column(String(16), nullable=False)
    pay_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    decision_path_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # -> decision_paths
    recurring_rule_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # -> recurring_event_rules

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index('ix_projection_events_account_date', 'bank_account_id', 'date'),
    )


# ============================================================================
# Balances & imported transactions
# ============================================================================


class DailyBalance(Base):
    """
    Persisted timeline row. expected_balance is owned by the calculator,
    actual_balance by the user (override).
    """
    __tablename__ = "daily_balances"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    bank_account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> bank_accounts
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    expected_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, server_default="0")
    actual_balance: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)

    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint('date', 'bank_account_id', name='uq_daily_balance_date_account'),
    )


class TransactionRecord(Base):
    """
    Imported bank activity (read-only to the balance engine)
    """
    __tablename__ = "transaction_records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    bank_account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # -> bank_accounts
    transaction_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False, server_default="OTHER")
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    debit_amount: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    credit_amount: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index('ix_transaction_records_account_date', 'bank_account_id', 'transaction_date'),
    )

"""create projection tables

Revision ID: 3f9a6c2e1b70
Revises:
Create Date: 2026-10-18 10:12:41.208153

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = '3f9a6c2e1b70'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # 1. bank_accounts
    op.create_table(
        'bank_accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # 2. account_settings (bank_account_id NULL = global fallback)
    op.create_table(
        'account_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bank_account_id', sa.Integer(), nullable=True),
        sa.Column('initial_balance', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('initial_balance_date', sa.Date(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bank_account_id')
    )

    # 3. event_log
    op.create_table(
        'event_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=128), nullable=False),
        sa.Column('payload_json', JSONB, nullable=False),
        sa.Column('occurred_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_event_log_account_id', 'event_log', ['account_id'])
    op.create_index('ix_event_log_event_type', 'event_log', ['event_type'])
    op.create_index('ix_event_log_occurred_at', 'event_log', ['occurred_at'])

    # 4. decision_paths / scenario_sets
    op.create_table(
        'decision_paths',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_table(
        'scenario_sets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_table(
        'scenario_set_decision_paths',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scenario_set_id', sa.Integer(), nullable=False),
        sa.Column('decision_path_id', sa.Integer(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default='true'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('scenario_set_id', 'decision_path_id', name='uq_scenario_set_path')
    )
    op.create_index('ix_scenario_set_decision_paths_scenario_set_id', 'scenario_set_decision_paths', ['scenario_set_id'])
    op.create_index('ix_scenario_set_decision_paths_decision_path_id', 'scenario_set_decision_paths', ['decision_path_id'])

    # 5. recurring_event_rules
    op.create_table(
        'recurring_event_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bank_account_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('value', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('direction', sa.String(length=16), nullable=False),
        sa.Column('certainty', sa.String(length=16), nullable=False),
        sa.Column('pay_to', sa.String(length=255), nullable=True),
        sa.Column('paid_by', sa.String(length=255), nullable=True),
        sa.Column('decision_path_id', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('frequency', sa.String(length=16), nullable=False),
        sa.Column('is_base_rule', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('base_rule_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_recurring_event_rules_bank_account_id', 'recurring_event_rules', ['bank_account_id'])
    op.create_index('ix_recurring_event_rules_decision_path_id', 'recurring_event_rules', ['decision_path_id'])
    op.create_index('ix_recurring_event_rules_base_rule_id', 'recurring_event_rules', ['base_rule_id'])

    # 6. projection_events
    op.create_table(
        'projection_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bank_account_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('value', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('direction', sa.String(length=16), nullable=False),
        sa.Column('certainty', sa.String(length=16), nullable=False),
        sa.Column('pay_to', sa.String(length=255), nullable=True),
        sa.Column('paid_by', sa.String(length=255), nullable=True),
        sa.Column('decision_path_id', sa.Integer(), nullable=True),
        sa.Column('recurring_rule_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_projection_events_bank_account_id', 'projection_events', ['bank_account_id'])
    op.create_index('ix_projection_events_decision_path_id', 'projection_events', ['decision_path_id'])
    op.create_index('ix_projection_events_recurring_rule_id', 'projection_events', ['recurring_rule_id'])
    op.create_index('ix_projection_events_account_date', 'projection_events', ['bank_account_id', 'date'])

    # 7. daily_balances
    op.create_table(
        'daily_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bank_account_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('expected_balance', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('actual_balance', sa.Numeric(precision=20, scale=2), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('date', 'bank_account_id', name='uq_daily_balance_date_account')
    )
    op.create_index('ix_daily_balances_bank_account_id', 'daily_balances', ['bank_account_id'])

    # 8. transaction_records (imported bank activity)
    op.create_table(
        'transaction_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bank_account_id', sa.Integer(), nullable=False),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False, server_default='OTHER'),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('debit_amount', sa.Numeric(precision=20, scale=2), nullable=True),
        sa.Column('credit_amount', sa.Numeric(precision=20, scale=2), nullable=True),
        sa.Column('balance', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transaction_records_bank_account_id', 'transaction_records', ['bank_account_id'])
    op.create_index('ix_transaction_records_account_date', 'transaction_records', ['bank_account_id', 'transaction_date'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('transaction_records')
    op.drop_table('daily_balances')
    op.drop_table('projection_events')
    op.drop_table('recurring_event_rules')
    op.drop_table('scenario_set_decision_paths')
    op.drop_table('scenario_sets')
    op.drop_table('decision_paths')
    op.drop_table('event_log')
    op.drop_table('account_settings')
    op.drop_table('bank_accounts')

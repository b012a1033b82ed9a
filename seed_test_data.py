"""
Seed demo data: one account, income/expense rules, a decision path and a scenario.
Run:  python seed_test_data.py
"""
import sys
from datetime import date
from decimal import Decimal

# ── bootstrap ────────────────────────────────────────────────────
from app.infrastructure.db.session import get_session_factory
from app.infrastructure.db.models import BankAccount

from app.application.account_settings import UpdateInitialBalanceUseCase
from app.application.bank_accounts import CreateBankAccountUseCase
from app.application.decision_paths import GetOrCreateDecisionPathUseCase
from app.application.projection_events import CreateProjectionEventUseCase
from app.application.recurring_rules import CreateRecurringRuleUseCase
from app.application.scenario_sets import CreateScenarioSetUseCase, get_or_create_default

db = get_session_factory()()
ACCOUNT_NAME = "Demo current account"

if db.query(BankAccount).filter_by(name=ACCOUNT_NAME).first():
    print(f"'{ACCOUNT_NAME}' already exists, nothing to do"); sys.exit(0)

today = date.today()
year_start = date(today.year, 1, 1)
year_end = date(today.year, 12, 31)

# ═══════════════════════════════════════════════════════════════
# Account & opening balance
# ═══════════════════════════════════════════════════════════════
account = CreateBankAccountUseCase(db).execute(name=ACCOUNT_NAME, description="Seeded demo data")
UpdateInitialBalanceUseCase(db).execute(Decimal("2500.00"), year_start, account.id)
print(f"✓ Account #{account.id}")

# ═══════════════════════════════════════════════════════════════
# Recurring rules
# ═══════════════════════════════════════════════════════════════
rules = [
    ("Salary", "3200.00", "INCOMING", "CERTAIN", "MONTHLY", date(today.year, 1, 25)),
    ("Rent", "1150.00", "EXPENSE", "CERTAIN", "MONTHLY", date(today.year, 1, 1)),
    ("Groceries", "85.50", "EXPENSE", "LIKELY", "WEEKLY", date(today.year, 1, 3)),
    ("Car insurance", "420.00", "EXPENSE", "CERTAIN", "ANNUAL", date(today.year, 3, 14)),
    ("Water bill", "96.40", "EXPENSE", "LIKELY", "QUARTERLY", date(today.year, 2, 10)),
]
for name, value, direction, certainty, frequency, start in rules:
    rule, events = CreateRecurringRuleUseCase(db).execute(
        bank_account_id=account.id,
        name=name,
        value=Decimal(value),
        direction=direction,
        certainty=certainty,
        frequency=frequency,
        start_date=start,
        end_date=year_end,
    )
    print(f"✓ Rule '{name}': {len(events)} events")

# ═══════════════════════════════════════════════════════════════
# Decision path & scenarios
# ═══════════════════════════════════════════════════════════════
new_car, _ = GetOrCreateDecisionPathUseCase(db).execute("Buy a car", "Replace the old car this year")
CreateProjectionEventUseCase(db).execute(
    bank_account_id=account.id,
    name="Car deposit",
    date=date(today.year, 6, 1),
    value=Decimal("4000.00"),
    direction="EXPENSE",
    certainty="POSSIBLE",
    decision_path_id=new_car.id,
)
CreateRecurringRuleUseCase(db).execute(
    bank_account_id=account.id,
    name="Car loan",
    value=Decimal("310.00"),
    direction="EXPENSE",
    certainty="POSSIBLE",
    frequency="MONTHLY",
    start_date=date(today.year, 7, 1),
    end_date=year_end,
    decision_path_id=new_car.id,
)
CreateProjectionEventUseCase(db).execute(
    bank_account_id=account.id,
    name="Lottery win",
    date=date(today.year, 9, 9),
    value=Decimal("10000.00"),
    direction="INCOMING",
    certainty="UNLIKELY",
)

get_or_create_default(db)
CreateScenarioSetUseCase(db).execute(
    name="Keep the old car",
    decision_path_states={new_car.id: False},
    description="Everything except the car purchase",
)
print("✓ Decision path & scenarios")

db.close()
print("Done.")

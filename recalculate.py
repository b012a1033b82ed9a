"""
Recalculate the persisted balance timeline of one account by hand
Run:  python recalculate.py <bank_account_id> <start YYYY-MM-DD> [end YYYY-MM-DD]
"""
import sys
from datetime import date

from app.application.recalculation import recalculate_balances_from, recalculation_window
from app.infrastructure.db.session import get_db

if len(sys.argv) < 3:
    print(__doc__)
    sys.exit(1)

bank_account_id = int(sys.argv[1])
start, end = recalculation_window(
    date.fromisoformat(sys.argv[2]),
    date.fromisoformat(sys.argv[3]) if len(sys.argv) > 3 else None,
)

db = next(get_db())

try:
    print(f"Recalculating account {bank_account_id}: {start}..{end}")
    days = recalculate_balances_from(db, start, end, bank_account_id)
    print(f"✓ Rows written: {len(days)}")
    if days:
        print(f"  first: {days[0].date} {days[0].expected_balance}")
        print(f"  last:  {days[-1].date} {days[-1].expected_balance}")

except Exception as e:
    print(f"✗ ERROR: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)

finally:
    db.close()

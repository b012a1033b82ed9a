"""
Bank account use cases
"""
from sqlalchemy.orm import Session

from app.application.errors import NotFoundError
from app.infrastructure.db.models import BankAccount
from app.infrastructure.eventlog.repository import EventLogRepository


class BankAccountValidationError(ValueError):
    pass


def require_bank_account(db: Session, bank_account_id: int) -> BankAccount:
    """Load an account or raise NotFoundError (never fall back to an empty timeline)."""
    account = db.get(BankAccount, bank_account_id)
    if account is None:
        raise NotFoundError("Bank account", bank_account_id)
    return account


def list_bank_accounts(db: Session) -> list[BankAccount]:
    return db.query(BankAccount).order_by(BankAccount.name.asc()).all()


class CreateBankAccountUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, name: str, description: str | None = None) -> BankAccount:
        name = (name or "").strip()
        if not name:
            raise BankAccountValidationError("Bank account name is required")

        account = BankAccount(name=name, description=description)
        self.db.add(account)
        self.db.flush()

        self.event_repo.append_event(
            account_id=account.id,
            event_type="bank_account_created",
            payload={"bank_account_id": account.id, "name": name},
        )
        self.db.commit()
        return account

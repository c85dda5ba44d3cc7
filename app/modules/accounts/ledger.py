"""
Ledger core: the only code path that changes Account.balance.

Every change is a signed delta applied by one server-side statement
(``balance = balance + :delta``), so concurrent payments and expenses on the
same account can never lose an update. Callers run these methods inside a
``unit_of_work`` together with the record write the effect belongs to.

Effects:
    payment created   +amount        payment deleted   -amount
    expense created   -amount        expense deleted   +amount
    expense updated   revert old (+old amount on old account),
                      then apply new (-new amount on new account)
    transfer created  -amount on source, +amount on destination
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import update, func
from sqlalchemy.orm import Session

from app.common.exceptions import NotFoundError
from app.modules.accounts.models import Account, AccountTransfer

logger = logging.getLogger(__name__)


class LedgerService:

    def __init__(self, db: Session):
        self.db = db

    # ===== VALIDATION (before the unit of work opens) =====

    def require_account(self, account_id: UUID, organization_id: UUID) -> Account:
        """Account must exist, belong to the organization and be active."""
        account = self.db.query(Account).filter(
            Account.id == account_id,
            Account.organization_id == organization_id,
            Account.is_active == True
        ).first()
        if not account:
            raise NotFoundError("Account")
        return account

    def require_optional_account(self, account_id: Optional[UUID], organization_id: UUID) -> Optional[Account]:
        if account_id is None:
            return None
        return self.require_account(account_id, organization_id)

    # ===== EFFECTS =====

    def apply_effect(self, account_id: Optional[UUID], delta: Decimal) -> None:
        """Atomically add ``delta`` (positive or negative) to the account balance."""
        if account_id is None:
            return
        delta = Decimal(delta)
        result = self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(balance=Account.balance + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Validated before the unit opened; vanishing mid-unit aborts it
            raise NotFoundError("Account")
        logger.info(f"Ledger effect {delta:+} applied to account {account_id}")

    def record_payment(self, account_id: Optional[UUID], amount: Decimal) -> None:
        self.apply_effect(account_id, Decimal(amount))

    def reverse_payment(self, account_id: Optional[UUID], amount: Decimal) -> None:
        self.apply_effect(account_id, -Decimal(amount))

    def record_expense(self, account_id: Optional[UUID], amount: Decimal) -> None:
        self.apply_effect(account_id, -Decimal(amount))

    def reverse_expense(self, account_id: Optional[UUID], amount: Decimal) -> None:
        self.apply_effect(account_id, Decimal(amount))

    def rebook_expense(
        self,
        old_account_id: Optional[UUID],
        old_amount: Decimal,
        new_account_id: Optional[UUID],
        new_amount: Decimal
    ) -> None:
        """
        Move an expense's effect from its old (account, amount) to the new one.

        Covers amount changes, reassignment, and adding or removing the
        account in one pass: revert the old effect, then apply the new one.
        """
        self.reverse_expense(old_account_id, old_amount)
        self.record_expense(new_account_id, new_amount)

    def record_transfer(self, from_account_id: UUID, to_account_id: UUID, amount: Decimal) -> None:
        self.apply_effect(from_account_id, -Decimal(amount))
        self.apply_effect(to_account_id, Decimal(amount))

    # ===== REBUILD =====

    def compute_balance(self, account: Account) -> Decimal:
        """Balance implied by the opening balance and every extant record routed to the account."""
        # Local import: finance models depend on accounts, not the other way round
        from app.modules.finance.models import Payment, Expense

        def total(column, *criteria) -> Decimal:
            value = self.db.query(func.coalesce(func.sum(column), 0)).filter(*criteria).scalar()
            return Decimal(str(value or 0))

        income = total(Payment.amount, Payment.account_id == account.id)
        expenses = total(Expense.amount, Expense.account_id == account.id)
        transfers_out = total(AccountTransfer.amount, AccountTransfer.from_account_id == account.id)
        transfers_in = total(AccountTransfer.amount, AccountTransfer.to_account_id == account.id)

        opening = Decimal(str(account.opening_balance or 0))
        return opening + income - expenses - transfers_out + transfers_in

    def rebuild_balance(self, account: Account) -> Decimal:
        """Overwrite the materialized balance with the recomputed one (administrative repair)."""
        balance = self.compute_balance(account)
        self.db.execute(
            update(Account)
            .where(Account.id == account.id)
            .values(balance=balance)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Account {account.id} balance rebuilt to {balance}")
        return balance

"""
Business services for payment accounts

- Account CRUD (balance is never written directly, see ledger.py)
- Transfers between two accounts of the organization
- Balance rebuild from source records
"""

from sqlalchemy.orm import Session
from sqlalchemy import update
from decimal import Decimal
from typing import Optional
from uuid import UUID
import logging

from app.common.exceptions import NotFoundError, ValidationError
from app.common.transaction import unit_of_work
from app.modules.accounts.ledger import LedgerService
from app.modules.accounts.models import Account, AccountTransfer
from app.modules.accounts.schemas import (
    AccountCreate, AccountUpdate, AccountList, TransferCreate, TransferList
)

logger = logging.getLogger(__name__)


class AccountService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)

    def get_account(self, account_id: UUID, organization_id: UUID) -> Account:
        """Account of the organization, active or not"""
        account = self.db.query(Account).filter(
            Account.id == account_id,
            Account.organization_id == organization_id
        ).first()
        if not account:
            raise NotFoundError("Account")
        return account

    def list_accounts(self, organization_id: UUID) -> AccountList:
        accounts = self.db.query(Account).filter(
            Account.organization_id == organization_id
        ).order_by(Account.is_default.desc(), Account.name.asc()).all()

        total_balance = sum((Decimal(str(a.balance)) for a in accounts), Decimal("0"))
        return AccountList(accounts=accounts, total_balance=total_balance)

    def _clear_default(self, organization_id: UUID, keep_id: Optional[UUID] = None):
        query = update(Account).where(
            Account.organization_id == organization_id,
            Account.is_default == True
        )
        if keep_id is not None:
            query = query.where(Account.id != keep_id)
        self.db.execute(query.values(is_default=False).execution_options(synchronize_session=False))

    def create_account(self, account_data: AccountCreate, organization_id: UUID) -> Account:
        with unit_of_work(self.db, "create account"):
            if account_data.is_default:
                self._clear_default(organization_id)

            account = Account(
                organization_id=organization_id,
                name=account_data.name,
                type=account_data.type,
                opening_balance=account_data.opening_balance,
                balance=account_data.opening_balance,
                is_default=account_data.is_default,
                notes=account_data.notes
            )
            self.db.add(account)

        self.db.refresh(account)
        logger.info(f"Account {account.id} '{account.name}' created with opening balance {account.opening_balance}")
        return account

    def update_account(self, account_id: UUID, account_update: AccountUpdate, organization_id: UUID) -> Account:
        account = self.get_account(account_id, organization_id)
        changes = account_update.model_dump(exclude_unset=True)

        with unit_of_work(self.db, "update account"):
            if changes.get("is_default"):
                self._clear_default(organization_id, keep_id=account.id)
            for field, value in changes.items():
                setattr(account, field, value)

        self.db.refresh(account)
        return account

    def delete_account(self, account_id: UUID, organization_id: UUID) -> None:
        """
        Delete an account, keeping its payments and expenses as unattributed records.

        Transfers cannot be detached from their accounts, so an account that took
        part in one cannot be deleted (deactivate it instead).
        """
        # Local import: finance models depend on accounts
        from app.modules.finance.models import Payment, Expense

        account = self.get_account(account_id, organization_id)

        has_transfers = self.db.query(AccountTransfer.id).filter(
            (AccountTransfer.from_account_id == account.id) | (AccountTransfer.to_account_id == account.id)
        ).first()
        if has_transfers:
            raise ValidationError("Account has transfers and cannot be deleted; deactivate it instead")

        with unit_of_work(self.db, "delete account"):
            unlinked_payments = self.db.query(Payment).filter(
                Payment.account_id == account.id
            ).update({Payment.account_id: None}, synchronize_session=False)
            unlinked_expenses = self.db.query(Expense).filter(
                Expense.account_id == account.id
            ).update({Expense.account_id: None}, synchronize_session=False)
            self.db.delete(account)

        logger.info(
            f"Account {account_id} deleted; unlinked {unlinked_payments} payments and {unlinked_expenses} expenses"
        )

    # ===== TRANSFERS =====

    def create_transfer(self, transfer_data: TransferCreate, organization_id: UUID) -> AccountTransfer:
        if transfer_data.from_account_id == transfer_data.to_account_id:
            raise ValidationError("Cannot transfer to the same account")

        self.ledger.require_account(transfer_data.from_account_id, organization_id)
        self.ledger.require_account(transfer_data.to_account_id, organization_id)

        with unit_of_work(self.db, "create transfer"):
            transfer = AccountTransfer(
                organization_id=organization_id,
                from_account_id=transfer_data.from_account_id,
                to_account_id=transfer_data.to_account_id,
                amount=transfer_data.amount,
                transfer_date=transfer_data.transfer_date,
                notes=transfer_data.notes
            )
            self.db.add(transfer)
            self.ledger.record_transfer(transfer.from_account_id, transfer.to_account_id, transfer_data.amount)

        self.db.refresh(transfer)
        return transfer

    def list_transfers(self, organization_id: UUID, limit: int = 50, offset: int = 0) -> TransferList:
        query = self.db.query(AccountTransfer).filter(
            AccountTransfer.organization_id == organization_id
        )
        total = query.count()
        transfers = query.order_by(
            AccountTransfer.transfer_date.desc(), AccountTransfer.created_at.desc()
        ).offset(offset).limit(limit).all()
        return TransferList(transfers=transfers, total=total, limit=limit, offset=offset)

    # ===== REBUILD =====

    def recalculate_balance(self, account_id: UUID, organization_id: UUID) -> Account:
        account = self.get_account(account_id, organization_id)
        with unit_of_work(self.db, "recalculate balance"):
            self.ledger.rebuild_balance(account)
        self.db.refresh(account)
        return account

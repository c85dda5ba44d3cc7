"""
Business services for the finance module

Ledger mutation entry points:
- PaymentService: create / delete payments (+ account effect, + order settlement)
- ExpenseService: create / update / delete expenses (+ account effect)
- FinanceSummaryService: read-only revenue / expense totals

Each mutation validates its references first (client, account, order), then
performs the record write and its paired effects inside one unit of work.
A failed validation therefore leaves no trace; a failure inside the unit
rolls everything back.
"""

from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID
import calendar
import logging

from app.common.exceptions import NotFoundError
from app.common.transaction import unit_of_work
from app.modules.accounts.ledger import LedgerService
from app.modules.clients.service import ClientValidator
from app.modules.finance.models import Payment, Expense
from app.modules.finance.schemas import (
    PaymentCreate, PaymentFilters, PaymentList,
    ExpenseCreate, ExpenseUpdate, ExpenseFilters, ExpenseList,
    OrderSettlementOut, FinanceSummary
)
from app.modules.finance.settlement import OrderSettlementService
from app.modules.invoices.models import Invoice
from app.modules.orders.models import Order

logger = logging.getLogger(__name__)


class PaymentService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)
        self.settlement = OrderSettlementService(db)

    def _require_order(self, order_id: UUID, organization_id: UUID) -> Order:
        order = self.db.query(Order).filter(
            Order.id == order_id,
            Order.organization_id == organization_id
        ).first()
        if not order:
            raise NotFoundError("Order")
        return order

    def get_payment(self, payment_id: UUID, organization_id: UUID) -> Payment:
        payment = self.db.query(Payment).filter(
            Payment.id == payment_id,
            Payment.organization_id == organization_id
        ).first()
        if not payment:
            raise NotFoundError("Payment")
        return payment

    def create_payment(self, payment_data: PaymentCreate, organization_id: UUID) -> Payment:
        """Record a client payment; routes +amount to the account and settles the order"""
        ClientValidator(self.db).require_client(payment_data.client_id, organization_id)
        self.ledger.require_optional_account(payment_data.account_id, organization_id)
        if payment_data.order_id is not None:
            self._require_order(payment_data.order_id, organization_id)

        with unit_of_work(self.db, "create payment"):
            payment = Payment(
                organization_id=organization_id,
                client_id=payment_data.client_id,
                amount=payment_data.amount,
                method=payment_data.method,
                payment_date=payment_data.payment_date,
                notes=payment_data.notes,
                account_id=payment_data.account_id,
                order_id=payment_data.order_id
            )
            self.db.add(payment)
            self.ledger.record_payment(payment.account_id, payment_data.amount)

            if payment.order_id is not None:
                self.db.flush()
                self.settlement.recompute(payment.order_id)

        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} of {payment.amount} recorded for client {payment.client_id}")
        return payment

    def delete_payment(self, payment_id: UUID, organization_id: UUID) -> None:
        """Delete a payment, reversing exactly the effect it had on its account and order"""
        payment = self.get_payment(payment_id, organization_id)
        account_id = payment.account_id
        order_id = payment.order_id
        amount = Decimal(str(payment.amount))

        with unit_of_work(self.db, "delete payment"):
            self.db.delete(payment)
            self.ledger.reverse_payment(account_id, amount)

            if order_id is not None:
                self.db.flush()
                self.settlement.recompute(order_id)

        logger.info(f"Payment {payment_id} of {amount} deleted")

    def list_payments(
        self,
        organization_id: UUID,
        filters: PaymentFilters,
        limit: int = 50,
        offset: int = 0
    ) -> PaymentList:
        query = self.db.query(Payment).filter(Payment.organization_id == organization_id)

        if filters.client_id:
            query = query.filter(Payment.client_id == filters.client_id)
        if filters.date_from:
            query = query.filter(Payment.payment_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(Payment.payment_date <= filters.date_to)

        total = query.count()
        payments = query.order_by(
            Payment.payment_date.desc(), Payment.created_at.desc()
        ).offset(offset).limit(limit).all()
        return PaymentList(payments=payments, total=total, limit=limit, offset=offset)

    def recompute_order(self, order_id: UUID, organization_id: UUID) -> OrderSettlementOut:
        """Explicit settlement run for one order (repair / verification)"""
        order = self._require_order(order_id, organization_id)
        with unit_of_work(self.db, "recompute settlement"):
            new_status = self.settlement.recompute(order.id)
        return OrderSettlementOut(
            order_id=order.id,
            total_paid=self.settlement.total_paid(order.id),
            total_price=order.total_price,
            payment_status=new_status
        )


class ExpenseService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)

    def get_expense(self, expense_id: UUID, organization_id: UUID) -> Expense:
        expense = self.db.query(Expense).filter(
            Expense.id == expense_id,
            Expense.organization_id == organization_id
        ).first()
        if not expense:
            raise NotFoundError("Expense")
        return expense

    def create_expense(self, expense_data: ExpenseCreate, organization_id: UUID) -> Expense:
        self.ledger.require_optional_account(expense_data.account_id, organization_id)

        with unit_of_work(self.db, "create expense"):
            expense = Expense(
                organization_id=organization_id,
                category=expense_data.category,
                description=expense_data.description,
                amount=expense_data.amount,
                is_recurring=expense_data.is_recurring,
                expense_date=expense_data.expense_date,
                account_id=expense_data.account_id
            )
            self.db.add(expense)
            self.ledger.record_expense(expense.account_id, expense_data.amount)

        self.db.refresh(expense)
        logger.info(f"Expense {expense.id} of {expense.amount} recorded ({expense.category})")
        return expense

    def update_expense(self, expense_id: UUID, expense_update: ExpenseUpdate, organization_id: UUID) -> Expense:
        """
        Update an expense, moving its ledger effect along with it.

        The old effect (pre-update amount and account) is reverted and the new
        one applied in the same unit, which handles amount changes, account
        reassignment and account removal or addition uniformly.
        """
        expense = self.get_expense(expense_id, organization_id)
        changes = expense_update.model_dump(exclude_unset=True)

        # Only account_id may be cleared explicitly; other nulls mean "unchanged"
        changes = {k: v for k, v in changes.items() if v is not None or k == "account_id"}

        old_account_id: Optional[UUID] = expense.account_id
        old_amount = Decimal(str(expense.amount))
        new_account_id: Optional[UUID] = changes.get("account_id", old_account_id)
        new_amount = Decimal(str(changes.get("amount", old_amount)))

        if "account_id" in changes and new_account_id is not None:
            self.ledger.require_account(new_account_id, organization_id)

        with unit_of_work(self.db, "update expense"):
            self.ledger.rebook_expense(old_account_id, old_amount, new_account_id, new_amount)
            for field, value in changes.items():
                setattr(expense, field, value)

        self.db.refresh(expense)
        logger.info(
            f"Expense {expense.id} updated: {old_amount}@{old_account_id} -> {new_amount}@{new_account_id}"
        )
        return expense

    def delete_expense(self, expense_id: UUID, organization_id: UUID) -> None:
        expense = self.get_expense(expense_id, organization_id)
        account_id = expense.account_id
        amount = Decimal(str(expense.amount))

        with unit_of_work(self.db, "delete expense"):
            self.db.delete(expense)
            self.ledger.reverse_expense(account_id, amount)

        logger.info(f"Expense {expense_id} of {amount} deleted")

    def list_expenses(
        self,
        organization_id: UUID,
        filters: ExpenseFilters,
        limit: int = 50,
        offset: int = 0
    ) -> ExpenseList:
        query = self.db.query(Expense).filter(Expense.organization_id == organization_id)

        if filters.category:
            query = query.filter(Expense.category == filters.category)
        if filters.date_from:
            query = query.filter(Expense.expense_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(Expense.expense_date <= filters.date_to)

        total = query.count()
        expenses = query.order_by(
            Expense.expense_date.desc(), Expense.created_at.desc()
        ).offset(offset).limit(limit).all()
        return ExpenseList(expenses=expenses, total=total, limit=limit, offset=offset)


class FinanceSummaryService:
    """Revenue and expense totals (all time and current month) for the dashboard"""

    RECENT_PAYMENTS = 10

    def __init__(self, db: Session):
        self.db = db

    def _sum(self, column, *criteria) -> Decimal:
        value = self.db.query(func.coalesce(func.sum(column), 0)).filter(*criteria).scalar()
        return Decimal(str(value or 0))

    def summary(self, organization_id: UUID, today: Optional[date] = None) -> FinanceSummary:
        today = today or date.today()
        month_start = today.replace(day=1)
        month_end = today.replace(day=calendar.monthrange(today.year, today.month)[1])

        in_org_payments = Payment.organization_id == organization_id
        in_org_expenses = Expense.organization_id == organization_id

        unpaid = self.db.query(Invoice).filter(
            Invoice.organization_id == organization_id,
            Invoice.is_paid == False
        ).order_by(Invoice.issue_date.desc()).all()
        recent = self.db.query(Payment).filter(in_org_payments).order_by(
            Payment.payment_date.desc(), Payment.created_at.desc()
        ).limit(self.RECENT_PAYMENTS).all()

        return FinanceSummary(
            total_revenue=self._sum(Payment.amount, in_org_payments),
            month_revenue=self._sum(
                Payment.amount, in_org_payments,
                Payment.payment_date >= month_start, Payment.payment_date <= month_end
            ),
            total_expenses=self._sum(Expense.amount, in_org_expenses),
            month_expenses=self._sum(
                Expense.amount, in_org_expenses,
                Expense.expense_date >= month_start, Expense.expense_date <= month_end
            ),
            unpaid_invoices=unpaid,
            recent_payments=recent
        )

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from datetime import date

from app.core.config import settings
from app.database.database import get_db
from app.dependencies.organizationDependencies import OrganizationId
from app.modules.finance.service import PaymentService, ExpenseService, FinanceSummaryService
from app.modules.finance.schemas import (
    PaymentCreate, PaymentOut, PaymentList, PaymentFilters,
    ExpenseCreate, ExpenseUpdate, ExpenseOut, ExpenseList, ExpenseFilters,
    OrderSettlementOut, FinanceSummary
)

router = APIRouter(prefix="/finance", tags=["Finance"])


@router.get("/summary", response_model=FinanceSummary)
def finance_summary(organization_id: OrganizationId, db: Session = Depends(get_db)):
    """Revenue and expenses, all time and for the current month, plus unpaid invoices"""
    return FinanceSummaryService(db).summary(organization_id)


# ===== PAYMENTS =====

@router.get("/payments", response_model=PaymentList)
def list_payments(
    organization_id: OrganizationId,
    client_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    filters = PaymentFilters(client_id=client_id, date_from=date_from, date_to=date_to)
    return PaymentService(db).list_payments(organization_id, filters, limit, offset)


@router.post("/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def create_payment(
    payment_data: PaymentCreate,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    """
    Record a client payment.

    - **account_id**: the account receiving the money, balance grows by amount
    - **order_id**: the order being paid, its payment status is re-derived
    """
    return PaymentService(db).create_payment(payment_data, organization_id)


@router.delete("/payments/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(payment_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    PaymentService(db).delete_payment(payment_id, organization_id)


# ===== EXPENSES =====

@router.get("/expenses", response_model=ExpenseList)
def list_expenses(
    organization_id: OrganizationId,
    category: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    filters = ExpenseFilters(category=category, date_from=date_from, date_to=date_to)
    return ExpenseService(db).list_expenses(organization_id, filters, limit, offset)


@router.post("/expenses", response_model=ExpenseOut, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense_data: ExpenseCreate,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    return ExpenseService(db).create_expense(expense_data, organization_id)


@router.patch("/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: UUID,
    expense_update: ExpenseUpdate,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    """Send ``account_id: null`` to detach the expense from its account"""
    return ExpenseService(db).update_expense(expense_id, expense_update, organization_id)


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(expense_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    ExpenseService(db).delete_expense(expense_id, organization_id)


# ===== SETTLEMENT =====

@router.post("/orders/{order_id}/recompute", response_model=OrderSettlementOut)
def recompute_order_settlement(order_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    return PaymentService(db).recompute_order(order_id, organization_id)

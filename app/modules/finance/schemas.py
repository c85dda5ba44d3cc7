from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from app.modules.finance.models import PaymentMethod
from app.modules.invoices.schemas import InvoiceOut
from app.modules.orders.models import OrderPaymentStatus


# Payment Schemas
class PaymentCreate(BaseModel):
    client_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2, description="Amount must be > 0")
    method: PaymentMethod = PaymentMethod.BANK
    payment_date: date = Field(default_factory=date.today)
    notes: Optional[str] = None
    account_id: Optional[UUID] = None
    order_id: Optional[UUID] = None


class PaymentOut(BaseModel):
    id: UUID
    client_id: UUID
    amount: Decimal
    method: PaymentMethod
    payment_date: date
    notes: Optional[str] = None
    account_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentList(BaseModel):
    payments: List[PaymentOut]
    total: int
    limit: int
    offset: int


class PaymentFilters(BaseModel):
    client_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


# Expense Schemas
class ExpenseCreate(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    is_recurring: bool = False
    expense_date: date = Field(default_factory=date.today)
    account_id: Optional[UUID] = None


class ExpenseUpdate(BaseModel):
    """
    Partial update. Omitted fields keep their value; an explicit
    ``account_id: null`` detaches the expense from its account.
    """
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=15, decimal_places=2)
    is_recurring: Optional[bool] = None
    expense_date: Optional[date] = None
    account_id: Optional[UUID] = None


class ExpenseOut(BaseModel):
    id: UUID
    category: str
    description: str
    amount: Decimal
    is_recurring: bool
    expense_date: date
    account_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ExpenseList(BaseModel):
    expenses: List[ExpenseOut]
    total: int
    limit: int
    offset: int


class ExpenseFilters(BaseModel):
    category: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


# Settlement
class OrderSettlementOut(BaseModel):
    order_id: UUID
    total_paid: Decimal
    total_price: Decimal
    payment_status: OrderPaymentStatus


# Summary
class FinanceSummary(BaseModel):
    total_revenue: Decimal
    month_revenue: Decimal
    total_expenses: Decimal
    month_expenses: Decimal
    unpaid_invoices: List[InvoiceOut]
    recent_payments: List[PaymentOut]

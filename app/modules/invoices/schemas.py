from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from app.modules.invoices.models import InvoiceVariant


class InvoiceItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(1, ge=1)
    price: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)
    order_id: Optional[UUID] = None


class InvoiceCreate(BaseModel):
    client_id: UUID
    org_requisites_id: Optional[UUID] = Field(None, description="Billing entity; falls back to the client's, then the organization default")
    issue_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    notes: Optional[str] = None
    contract_reference: Optional[str] = Field(None, max_length=300)
    billing_period: Optional[str] = Field(None, max_length=100)
    variant: InvoiceVariant = InvoiceVariant.DETAILED
    items: List[InvoiceItemCreate] = Field(..., min_length=1, description="At least one item")

    @model_validator(mode="after")
    def check_due_date(self):
        if self.due_date and self.due_date < self.issue_date:
            raise ValueError("due_date must not be earlier than issue_date")
        return self


class InvoiceItemOut(BaseModel):
    id: UUID
    description: str
    quantity: int
    price: Decimal
    total: Decimal
    order_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class InvoiceOut(BaseModel):
    id: UUID
    client_id: UUID
    org_requisites_id: Optional[UUID] = None
    number: str
    sequence_number: int
    issue_date: date
    due_date: Optional[date] = None
    total: Decimal
    is_paid: bool
    notes: Optional[str] = None
    contract_reference: Optional[str] = None
    billing_period: Optional[str] = None
    variant: InvoiceVariant
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceOut):
    items: List[InvoiceItemOut] = []


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    limit: int
    offset: int


class InvoiceFilters(BaseModel):
    client_id: Optional[UUID] = None
    is_paid: Optional[bool] = None

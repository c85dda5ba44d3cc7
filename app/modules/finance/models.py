"""
SQLAlchemy models for the finance module

- Payment: money received from a client, optionally routed to an account
  and optionally applied to an order
- Expense: money spent by the organization, optionally routed to an account

A payment or expense with account_id set carries a ledger effect on that
account (+amount / -amount). Without account_id it is unattributed.
"""

from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, Numeric, Enum, Date, Text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from datetime import date
from uuid import uuid4
from app.common.mixins import OrganizationMixin, TimestampMixin
from app.modules.clients.models import Client
import enum


class PaymentMethod(enum.Enum):
    CASH = "cash"
    BANK = "bank"
    CARD = "card"


class Payment(Base, OrganizationMixin, TimestampMixin):
    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.BANK)
    payment_date = Column(Date, nullable=False, default=date.today)
    notes = Column(Text, nullable=True)

    account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=True, index=True)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=True, index=True)

    client = relationship(Client)


class Expense(Base, OrganizationMixin, TimestampMixin):
    __tablename__ = "expenses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    category = Column(String(100), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    expense_date = Column(Date, nullable=False, default=date.today)
    is_recurring = Column(Boolean, default=False, nullable=False)

    account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=True, index=True)

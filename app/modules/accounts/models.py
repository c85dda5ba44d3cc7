"""
SQLAlchemy models for payment accounts

- Account: cash desk, bank account or card with a materialized balance
- AccountTransfer: money moved between two accounts of one organization

The balance column is only ever changed by app.modules.accounts.ledger.
"""

from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, Numeric, Enum, Date, Text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from datetime import date
from uuid import uuid4
from app.common.mixins import OrganizationMixin, TimestampMixin
import enum


class AccountType(enum.Enum):
    CASH = "cash"
    BANK = "bank"
    CARD = "card"
    OTHER = "other"


class Account(Base, OrganizationMixin, TimestampMixin):
    __tablename__ = "accounts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    type = Column(Enum(AccountType), nullable=False, default=AccountType.BANK)
    currency = Column(String(3), nullable=False, default="RUB")

    # Balance the account was opened with; the recalculation baseline
    opening_balance = Column(Numeric(15, 2), nullable=False, default=0)
    balance = Column(Numeric(15, 2), nullable=False, default=0)

    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)


class AccountTransfer(Base, OrganizationMixin, TimestampMixin):
    __tablename__ = "account_transfers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    from_account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True)
    to_account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    transfer_date = Column(Date, nullable=False, default=date.today)
    notes = Column(Text, nullable=True)

    from_account = relationship(Account, foreign_keys=[from_account_id])
    to_account = relationship(Account, foreign_keys=[to_account_id])

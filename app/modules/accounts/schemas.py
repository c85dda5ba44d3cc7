from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from app.modules.accounts.models import AccountType


class AccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: AccountType = AccountType.BANK
    opening_balance: Decimal = Field(Decimal("0"), max_digits=15, decimal_places=2)
    is_default: bool = False
    notes: Optional[str] = None


class AccountUpdate(BaseModel):
    """No balance field: it only moves through ledger effects."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[AccountType] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None
    notes: Optional[str] = None


class AccountOut(BaseModel):
    id: UUID
    name: str
    type: AccountType
    currency: str
    opening_balance: Decimal
    balance: Decimal
    is_active: bool
    is_default: bool
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AccountList(BaseModel):
    accounts: List[AccountOut]
    total_balance: Decimal


class TransferCreate(BaseModel):
    from_account_id: UUID
    to_account_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2, description="Amount must be > 0")
    transfer_date: date = Field(default_factory=date.today)
    notes: Optional[str] = None


class TransferOut(BaseModel):
    id: UUID
    from_account_id: UUID
    to_account_id: UUID
    amount: Decimal
    transfer_date: date
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class TransferList(BaseModel):
    transfers: List[TransferOut]
    total: int
    limit: int
    offset: int

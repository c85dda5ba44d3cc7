from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date, datetime

from app.modules.pricing.models import PriceListType


# Work items
class WorkItemCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=300)
    unit: str = Field("unit", max_length=20)
    base_price: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)


class WorkItemOut(BaseModel):
    id: UUID
    code: str
    name: str
    unit: str
    base_price: Decimal
    is_active: bool

    class Config:
        from_attributes = True


# Price lists
class PriceListCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=50)
    type: PriceListType = PriceListType.CLIENT
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    is_active: bool = True
    is_default: bool = False

    @model_validator(mode="after")
    def check_validity_window(self):
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("valid_to must not be earlier than valid_from")
        return self


class PriceListUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    type: Optional[PriceListType] = None
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None


class PriceListItemIn(BaseModel):
    work_item_id: UUID
    price: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)


class PriceListItemsUpsert(BaseModel):
    items: List[PriceListItemIn] = Field(..., min_length=1)


class PriceListItemOut(BaseModel):
    id: UUID
    work_item_id: UUID
    price: Decimal

    class Config:
        from_attributes = True


class PriceListOut(BaseModel):
    id: UUID
    name: str
    code: str
    type: PriceListType
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    is_active: bool
    is_default: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PriceListDetail(PriceListOut):
    items: List[PriceListItemOut] = []


class PriceListClientLink(BaseModel):
    client_id: UUID


# Client overrides
class ClientPriceSet(BaseModel):
    work_item_id: UUID
    price: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)


class ClientPriceOut(BaseModel):
    id: UUID
    client_id: UUID
    work_item_id: UUID
    price: Decimal

    class Config:
        from_attributes = True


# Resolution
class ResolvedPriceOut(BaseModel):
    client_id: UUID
    work_item_id: UUID
    price: Decimal
    source: str
    price_list_name: Optional[str] = None


class PriceListClone(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, min_length=1, max_length=50)


# Matrix view: active work items x active price lists
class PriceMatrixColumn(BaseModel):
    id: UUID
    name: str
    code: str
    is_default: bool


class PriceMatrixRow(BaseModel):
    work_item: WorkItemOut
    prices: Dict[UUID, Optional[Decimal]]


class PriceMatrix(BaseModel):
    columns: List[PriceMatrixColumn]
    rows: List[PriceMatrixRow]


# Order line quote on top of the cascade
class PriceLineQuote(BaseModel):
    client_id: UUID
    work_item_id: UUID
    quantity: int = Field(1, ge=1)
    manual_price: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    discount_pct: Decimal = Field(Decimal("0"), ge=0, le=100)


class PricedLineOut(BaseModel):
    unit_price: Decimal
    source: str
    quantity: int
    discount_pct: Decimal
    discount_amount: Decimal
    total: Decimal

    class Config:
        from_attributes = True


# Side-by-side comparison of two price lists
class PriceComparisonRow(BaseModel):
    work_item: WorkItemOut
    price_a: Optional[Decimal] = None
    price_b: Optional[Decimal] = None
    diff: Optional[Decimal] = None  # price_b - price_a when both lists carry the item


class PriceComparison(BaseModel):
    list_a: PriceListOut
    list_b: PriceListOut
    rows: List[PriceComparisonRow]

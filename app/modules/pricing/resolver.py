"""
Price resolution cascade.

What a client pays for a catalog work item, by strict precedence:

1. ClientPriceItem for (client, work item): absolute override
2. first active linked price list containing the work item, in link order
3. WorkItem.base_price (0 when the work item does not exist)

Every lookup is scoped to the caller's organization: a work item or price
list of another organization resolves as if it did not exist.

The outcome is one of three frozen variants so callers can branch on the
source exhaustively instead of probing optional fields.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from app.modules.pricing.models import (
    WorkItem, PriceList, PriceListItem, ClientPriceList, ClientPriceItem
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ClientOverride:
    price: Decimal

    @property
    def source(self) -> str:
        return "client_override"


@dataclass(frozen=True)
class PriceListMatch:
    price: Decimal
    price_list_name: str

    @property
    def source(self) -> str:
        return "price_list"


@dataclass(frozen=True)
class BasePrice:
    price: Decimal

    @property
    def source(self) -> str:
        return "base_price"


ResolvedPrice = Union[ClientOverride, PriceListMatch, BasePrice]


@dataclass(frozen=True)
class PricedLine:
    """A priced order line: unit price after the cascade (or manual price) and discount"""
    unit_price: Decimal
    source: str
    quantity: int
    discount_pct: Decimal
    discount_amount: Decimal
    total: Decimal


class PriceResolver:
    """Read-only; holds no state besides the session."""

    def __init__(self, db: Session):
        self.db = db

    def resolve_price(self, client_id: UUID, work_item_id: UUID, organization_id: UUID) -> ResolvedPrice:
        override = self.db.query(ClientPriceItem).join(WorkItem).filter(
            ClientPriceItem.client_id == client_id,
            ClientPriceItem.work_item_id == work_item_id,
            WorkItem.organization_id == organization_id
        ).first()
        if override:
            return ClientOverride(price=Decimal(str(override.price)))

        links = self.db.query(ClientPriceList).join(PriceList).filter(
            ClientPriceList.client_id == client_id,
            PriceList.organization_id == organization_id
        ).order_by(ClientPriceList.position).all()

        for link in links:
            price_list = link.price_list
            if not price_list.is_active:
                continue
            item = self.db.query(PriceListItem).filter(
                PriceListItem.price_list_id == price_list.id,
                PriceListItem.work_item_id == work_item_id
            ).first()
            if item:
                return PriceListMatch(price=Decimal(str(item.price)), price_list_name=price_list.name)

        work_item = self.db.query(WorkItem).filter(
            WorkItem.id == work_item_id,
            WorkItem.organization_id == organization_id
        ).first()
        if not work_item:
            logger.debug(f"Work item {work_item_id} not found in organization {organization_id}, resolving to 0")
            return BasePrice(price=Decimal("0"))
        return BasePrice(price=Decimal(str(work_item.base_price)))

    def price_line(
        self,
        client_id: UUID,
        work_item_id: UUID,
        organization_id: UUID,
        quantity: int,
        manual_price: Optional[Decimal] = None,
        discount_pct: Decimal = Decimal("0")
    ) -> PricedLine:
        """
        Price one order line.

        A manual price bypasses the cascade entirely. The percentage discount
        applies to the line total, not the unit price.
        """
        if manual_price is not None:
            unit_price, source = Decimal(manual_price), "manual"
        else:
            resolved = self.resolve_price(client_id, work_item_id, organization_id)
            unit_price, source = resolved.price, resolved.source

        discount_pct = Decimal(discount_pct or 0)
        gross = unit_price * quantity
        discount_amount = (gross * discount_pct / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)
        total = (gross - discount_amount).quantize(CENTS, rounding=ROUND_HALF_UP)

        return PricedLine(
            unit_price=unit_price,
            source=source,
            quantity=quantity,
            discount_pct=discount_pct,
            discount_amount=discount_amount,
            total=total
        )

from sqlalchemy.orm import Session
from sqlalchemy import update, func
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
import logging

from app.common.exceptions import NotFoundError, ValidationError
from app.common.transaction import unit_of_work
from app.modules.clients.service import ClientValidator
from app.modules.pricing.models import (
    WorkItem, PriceList, PriceListItem, ClientPriceList, ClientPriceItem
)
from app.modules.pricing.resolver import PriceResolver, PricedLine
from app.modules.pricing.schemas import (
    WorkItemCreate, PriceListCreate, PriceListUpdate, PriceListItemsUpsert,
    PriceListClone, ClientPriceSet, ResolvedPriceOut,
    PriceMatrix, PriceMatrixColumn, PriceMatrixRow, WorkItemOut,
    PriceLineQuote, PriceComparison, PriceComparisonRow, PriceListOut
)

logger = logging.getLogger(__name__)


class PricingService:
    """Work catalog, price lists, client links and per-client overrides"""

    def __init__(self, db: Session):
        self.db = db

    # ===== WORK ITEMS =====

    def create_work_item(self, item_data: WorkItemCreate, organization_id: UUID) -> WorkItem:
        duplicate = self.db.query(WorkItem).filter(
            WorkItem.organization_id == organization_id,
            WorkItem.code == item_data.code
        ).first()
        if duplicate:
            raise ValidationError(f"Work item with code '{item_data.code}' already exists")

        with unit_of_work(self.db, "create work item"):
            work_item = WorkItem(organization_id=organization_id, **item_data.model_dump())
            self.db.add(work_item)

        self.db.refresh(work_item)
        return work_item

    def list_work_items(self, organization_id: UUID) -> List[WorkItem]:
        return self.db.query(WorkItem).filter(
            WorkItem.organization_id == organization_id,
            WorkItem.is_active == True
        ).order_by(WorkItem.code).all()

    def _validate_work_items(self, work_item_ids: List[UUID], organization_id: UUID) -> None:
        found = self.db.query(WorkItem.id).filter(
            WorkItem.id.in_(work_item_ids),
            WorkItem.organization_id == organization_id
        ).all()
        if len({row.id for row in found}) != len(set(work_item_ids)):
            raise NotFoundError("Work item")

    # ===== PRICE LISTS =====

    def get_price_list(self, price_list_id: UUID, organization_id: UUID) -> PriceList:
        price_list = self.db.query(PriceList).filter(
            PriceList.id == price_list_id,
            PriceList.organization_id == organization_id
        ).first()
        if not price_list:
            raise NotFoundError("Price list")
        return price_list

    def list_price_lists(self, organization_id: UUID) -> List[PriceList]:
        return self.db.query(PriceList).filter(
            PriceList.organization_id == organization_id
        ).order_by(PriceList.is_default.desc(), PriceList.name).all()

    def _clear_default(self, organization_id: UUID, keep_id: Optional[UUID] = None) -> None:
        stmt = update(PriceList).where(
            PriceList.organization_id == organization_id,
            PriceList.is_default == True
        )
        if keep_id is not None:
            stmt = stmt.where(PriceList.id != keep_id)
        self.db.execute(stmt.values(is_default=False).execution_options(synchronize_session=False))

    def create_price_list(self, list_data: PriceListCreate, organization_id: UUID) -> PriceList:
        with unit_of_work(self.db, "create price list"):
            if list_data.is_default:
                self._clear_default(organization_id)
            price_list = PriceList(organization_id=organization_id, **list_data.model_dump())
            self.db.add(price_list)

        self.db.refresh(price_list)
        logger.info(f"Price list '{price_list.name}' created")
        return price_list

    def update_price_list(self, price_list_id: UUID, list_update: PriceListUpdate, organization_id: UUID) -> PriceList:
        price_list = self.get_price_list(price_list_id, organization_id)
        changes = {k: v for k, v in list_update.model_dump(exclude_unset=True).items() if v is not None}

        with unit_of_work(self.db, "update price list"):
            if changes.get("is_default"):
                self._clear_default(organization_id, keep_id=price_list.id)
            for field, value in changes.items():
                setattr(price_list, field, value)

        self.db.refresh(price_list)
        return price_list

    def delete_price_list(self, price_list_id: UUID, organization_id: UUID) -> None:
        """Items and client links go with the list"""
        price_list = self.get_price_list(price_list_id, organization_id)
        with unit_of_work(self.db, "delete price list"):
            self.db.delete(price_list)
        logger.info(f"Price list {price_list_id} deleted")

    def upsert_items(self, price_list_id: UUID, items_data: PriceListItemsUpsert, organization_id: UUID) -> int:
        """Insert or reprice list items in bulk; returns the number of rows written"""
        price_list = self.get_price_list(price_list_id, organization_id)
        self._validate_work_items([i.work_item_id for i in items_data.items], organization_id)

        with unit_of_work(self.db, "upsert price list items"):
            existing = {
                item.work_item_id: item
                for item in self.db.query(PriceListItem).filter(
                    PriceListItem.price_list_id == price_list.id
                ).all()
            }
            for entry in items_data.items:
                item = existing.get(entry.work_item_id)
                if item:
                    item.price = entry.price
                else:
                    item = PriceListItem(
                        price_list_id=price_list.id,
                        work_item_id=entry.work_item_id,
                        price=entry.price
                    )
                    self.db.add(item)
                    existing[entry.work_item_id] = item

        return len(items_data.items)

    def delete_item(self, price_list_id: UUID, work_item_id: UUID, organization_id: UUID) -> None:
        price_list = self.get_price_list(price_list_id, organization_id)
        with unit_of_work(self.db, "delete price list item"):
            self.db.query(PriceListItem).filter(
                PriceListItem.price_list_id == price_list.id,
                PriceListItem.work_item_id == work_item_id
            ).delete(synchronize_session=False)

    def clone_price_list(self, price_list_id: UUID, clone_data: PriceListClone, organization_id: UUID) -> PriceList:
        """
        Copy a list with all its items. The clone starts inactive and
        non-default so it never changes resolution until switched on.
        """
        source = self.get_price_list(price_list_id, organization_id)

        with unit_of_work(self.db, "clone price list"):
            clone = PriceList(
                organization_id=organization_id,
                name=clone_data.name or f"{source.name} (копия)",
                code=clone_data.code or f"{source.code}_copy",
                type=source.type,
                valid_from=source.valid_from,
                valid_to=source.valid_to,
                is_active=False,
                is_default=False,
                items=[
                    PriceListItem(work_item_id=item.work_item_id, price=item.price)
                    for item in source.items
                ]
            )
            self.db.add(clone)

        self.db.refresh(clone)
        logger.info(f"Price list {source.id} cloned as {clone.id} ({len(clone.items)} items)")
        return clone

    # ===== CLIENT LINKS =====

    def link_client(self, price_list_id: UUID, client_id: UUID, organization_id: UUID) -> ClientPriceList:
        """Idempotent: linking twice returns the existing link"""
        price_list = self.get_price_list(price_list_id, organization_id)
        ClientValidator(self.db).require_client(client_id, organization_id)

        link = self.db.query(ClientPriceList).filter(
            ClientPriceList.client_id == client_id,
            ClientPriceList.price_list_id == price_list.id
        ).first()
        if link:
            return link

        with unit_of_work(self.db, "link client price list"):
            last_position = self.db.query(func.max(ClientPriceList.position)).filter(
                ClientPriceList.client_id == client_id
            ).scalar()
            link = ClientPriceList(
                client_id=client_id,
                price_list_id=price_list.id,
                position=(last_position or 0) + 1
            )
            self.db.add(link)

        self.db.refresh(link)
        logger.info(f"Price list {price_list.id} linked to client {client_id} at position {link.position}")
        return link

    def unlink_client(self, price_list_id: UUID, client_id: UUID, organization_id: UUID) -> None:
        price_list = self.get_price_list(price_list_id, organization_id)
        with unit_of_work(self.db, "unlink client price list"):
            self.db.query(ClientPriceList).filter(
                ClientPriceList.client_id == client_id,
                ClientPriceList.price_list_id == price_list.id
            ).delete(synchronize_session=False)

    # ===== CLIENT OVERRIDES =====

    def list_client_prices(self, client_id: UUID, organization_id: UUID) -> List[ClientPriceItem]:
        ClientValidator(self.db).require_client(client_id, organization_id)
        return self.db.query(ClientPriceItem).filter(ClientPriceItem.client_id == client_id).all()

    def set_client_price(self, client_id: UUID, price_data: ClientPriceSet, organization_id: UUID) -> ClientPriceItem:
        ClientValidator(self.db).require_client(client_id, organization_id)
        self._validate_work_items([price_data.work_item_id], organization_id)

        with unit_of_work(self.db, "set client price"):
            override = self.db.query(ClientPriceItem).filter(
                ClientPriceItem.client_id == client_id,
                ClientPriceItem.work_item_id == price_data.work_item_id
            ).first()
            if override:
                override.price = price_data.price
            else:
                override = ClientPriceItem(
                    client_id=client_id,
                    work_item_id=price_data.work_item_id,
                    price=price_data.price
                )
                self.db.add(override)

        self.db.refresh(override)
        logger.info(f"Client {client_id} price for work item {price_data.work_item_id} set to {price_data.price}")
        return override

    def remove_client_price(self, client_id: UUID, work_item_id: UUID, organization_id: UUID) -> None:
        ClientValidator(self.db).require_client(client_id, organization_id)
        override = self.db.query(ClientPriceItem).filter(
            ClientPriceItem.client_id == client_id,
            ClientPriceItem.work_item_id == work_item_id
        ).first()
        if not override:
            raise NotFoundError("Client price")

        with unit_of_work(self.db, "remove client price"):
            self.db.delete(override)

    # ===== RESOLUTION / VIEWS =====

    def resolve(self, client_id: UUID, work_item_id: UUID, organization_id: UUID) -> ResolvedPriceOut:
        ClientValidator(self.db).require_client(client_id, organization_id)
        resolved = PriceResolver(self.db).resolve_price(client_id, work_item_id, organization_id)
        return ResolvedPriceOut(
            client_id=client_id,
            work_item_id=work_item_id,
            price=resolved.price,
            source=resolved.source,
            price_list_name=getattr(resolved, "price_list_name", None)
        )

    def price_matrix(self, organization_id: UUID) -> PriceMatrix:
        work_items = self.list_work_items(organization_id)
        price_lists = self.db.query(PriceList).filter(
            PriceList.organization_id == organization_id,
            PriceList.is_active == True
        ).order_by(PriceList.name).all()

        prices_by_list = {
            pl.id: {item.work_item_id: Decimal(str(item.price)) for item in pl.items}
            for pl in price_lists
        }
        rows = [
            PriceMatrixRow(
                work_item=WorkItemOut.model_validate(wi),
                prices={pl.id: prices_by_list[pl.id].get(wi.id) for pl in price_lists}
            )
            for wi in work_items
        ]
        columns = [
            PriceMatrixColumn(id=pl.id, name=pl.name, code=pl.code, is_default=pl.is_default)
            for pl in price_lists
        ]
        return PriceMatrix(columns=columns, rows=rows)

    def quote_line(self, quote: PriceLineQuote, organization_id: UUID) -> PricedLine:
        ClientValidator(self.db).require_client(quote.client_id, organization_id)
        return PriceResolver(self.db).price_line(
            quote.client_id,
            quote.work_item_id,
            organization_id,
            quantity=quote.quantity,
            manual_price=quote.manual_price,
            discount_pct=quote.discount_pct
        )

    def compare_price_lists(self, list_a_id: UUID, list_b_id: UUID, organization_id: UUID) -> PriceComparison:
        """
        Items of two price lists side by side, ordered by work item code.

        A work item carried by only one list gets None on the other side and
        no diff.
        """
        if list_a_id == list_b_id:
            raise ValidationError("Pick two different price lists to compare")
        list_a = self.get_price_list(list_a_id, organization_id)
        list_b = self.get_price_list(list_b_id, organization_id)

        prices_a = {item.work_item_id: Decimal(str(item.price)) for item in list_a.items}
        prices_b = {item.work_item_id: Decimal(str(item.price)) for item in list_b.items}
        work_items = {item.work_item_id: item.work_item for item in list_a.items + list_b.items}

        rows = []
        for work_item in sorted(work_items.values(), key=lambda wi: wi.code):
            price_a = prices_a.get(work_item.id)
            price_b = prices_b.get(work_item.id)
            rows.append(PriceComparisonRow(
                work_item=WorkItemOut.model_validate(work_item),
                price_a=price_a,
                price_b=price_b,
                diff=price_b - price_a if price_a is not None and price_b is not None else None
            ))

        return PriceComparison(
            list_a=PriceListOut.model_validate(list_a),
            list_b=PriceListOut.model_validate(list_b),
            rows=rows
        )

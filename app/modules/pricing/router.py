from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.database.database import get_db
from app.dependencies.organizationDependencies import OrganizationId
from app.modules.pricing.service import PricingService
from app.modules.pricing.schemas import (
    WorkItemCreate, WorkItemOut,
    PriceListCreate, PriceListUpdate, PriceListOut, PriceListDetail,
    PriceListItemsUpsert, PriceListClone, PriceListClientLink,
    ClientPriceSet, ClientPriceOut, ResolvedPriceOut, PriceMatrix,
    PriceLineQuote, PricedLineOut, PriceComparison
)

router = APIRouter(prefix="/pricing", tags=["Pricing"])


# ===== RESOLUTION =====

@router.get("/resolve", response_model=ResolvedPriceOut)
def resolve_price(
    organization_id: OrganizationId,
    client_id: UUID = Query(...),
    work_item_id: UUID = Query(...),
    db: Session = Depends(get_db)
):
    """
    Effective price of a work item for a client.

    Precedence: client override, then the first active linked price list
    containing the item, then the catalog base price.
    """
    return PricingService(db).resolve(client_id, work_item_id, organization_id)


@router.get("/matrix", response_model=PriceMatrix)
def price_matrix(organization_id: OrganizationId, db: Session = Depends(get_db)):
    return PricingService(db).price_matrix(organization_id)


@router.post("/quote", response_model=PricedLineOut)
def quote_line(quote: PriceLineQuote, organization_id: OrganizationId, db: Session = Depends(get_db)):
    """
    Price one order line: resolved unit price (or the manual price),
    quantity and percentage discount applied to the line total.
    """
    return PricingService(db).quote_line(quote, organization_id)


@router.get("/compare", response_model=PriceComparison)
def compare_price_lists(
    organization_id: OrganizationId,
    a: UUID = Query(..., description="First price list"),
    b: UUID = Query(..., description="Second price list"),
    db: Session = Depends(get_db)
):
    return PricingService(db).compare_price_lists(a, b, organization_id)


# ===== WORK ITEMS =====

@router.get("/work-items", response_model=List[WorkItemOut])
def list_work_items(organization_id: OrganizationId, db: Session = Depends(get_db)):
    return PricingService(db).list_work_items(organization_id)


@router.post("/work-items", response_model=WorkItemOut, status_code=status.HTTP_201_CREATED)
def create_work_item(item_data: WorkItemCreate, organization_id: OrganizationId, db: Session = Depends(get_db)):
    return PricingService(db).create_work_item(item_data, organization_id)


# ===== CLIENT OVERRIDES =====

@router.get("/clients/{client_id}/prices", response_model=List[ClientPriceOut])
def list_client_prices(client_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    return PricingService(db).list_client_prices(client_id, organization_id)


@router.put("/clients/{client_id}/prices", response_model=ClientPriceOut)
def set_client_price(
    client_id: UUID,
    price_data: ClientPriceSet,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    return PricingService(db).set_client_price(client_id, price_data, organization_id)


@router.delete("/clients/{client_id}/prices/{work_item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_client_price(
    client_id: UUID,
    work_item_id: UUID,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    PricingService(db).remove_client_price(client_id, work_item_id, organization_id)


# ===== PRICE LISTS =====

@router.get("/", response_model=List[PriceListOut])
def list_price_lists(organization_id: OrganizationId, db: Session = Depends(get_db)):
    return PricingService(db).list_price_lists(organization_id)


@router.post("/", response_model=PriceListOut, status_code=status.HTTP_201_CREATED)
def create_price_list(list_data: PriceListCreate, organization_id: OrganizationId, db: Session = Depends(get_db)):
    return PricingService(db).create_price_list(list_data, organization_id)


@router.get("/{price_list_id}", response_model=PriceListDetail)
def get_price_list(price_list_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    return PricingService(db).get_price_list(price_list_id, organization_id)


@router.patch("/{price_list_id}", response_model=PriceListOut)
def update_price_list(
    price_list_id: UUID,
    list_update: PriceListUpdate,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    return PricingService(db).update_price_list(price_list_id, list_update, organization_id)


@router.delete("/{price_list_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_price_list(price_list_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    PricingService(db).delete_price_list(price_list_id, organization_id)


@router.put("/{price_list_id}/items")
def upsert_price_list_items(
    price_list_id: UUID,
    items_data: PriceListItemsUpsert,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    upserted = PricingService(db).upsert_items(price_list_id, items_data, organization_id)
    return {"upserted": upserted}


@router.delete("/{price_list_id}/items/{work_item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_price_list_item(
    price_list_id: UUID,
    work_item_id: UUID,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    PricingService(db).delete_item(price_list_id, work_item_id, organization_id)


@router.post("/{price_list_id}/clone", response_model=PriceListDetail, status_code=status.HTTP_201_CREATED)
def clone_price_list(
    price_list_id: UUID,
    clone_data: PriceListClone,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    """The clone is created inactive"""
    return PricingService(db).clone_price_list(price_list_id, clone_data, organization_id)


@router.post("/{price_list_id}/clients", status_code=status.HTTP_201_CREATED)
def link_client(
    price_list_id: UUID,
    link_data: PriceListClientLink,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    link = PricingService(db).link_client(price_list_id, link_data.client_id, organization_id)
    return {"client_id": link.client_id, "price_list_id": link.price_list_id}


@router.delete("/{price_list_id}/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def unlink_client(
    price_list_id: UUID,
    client_id: UUID,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    PricingService(db).unlink_client(price_list_id, client_id, organization_id)

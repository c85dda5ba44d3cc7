from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.core.config import settings
from app.database.database import get_db
from app.dependencies.organizationDependencies import OrganizationId
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.schemas import (
    InvoiceCreate, InvoiceDetail, InvoiceList, InvoiceFilters
)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("/", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    organization_id: OrganizationId,
    db: Session = Depends(get_db)
):
    """
    Issue a new invoice.

    The number (``С-0001``...) continues the organization's all-time counter;
    the sequence number restarts every calendar year of the issue date.
    """
    return InvoiceService(db).create_invoice(invoice_data, organization_id)


@router.get("/", response_model=InvoiceList)
def list_invoices(
    organization_id: OrganizationId,
    client_id: Optional[UUID] = Query(None, description="Filter by client"),
    is_paid: Optional[bool] = Query(None, description="Filter by payment state"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    filters = InvoiceFilters(client_id=client_id, is_paid=is_paid)
    return InvoiceService(db).list_invoices(organization_id, filters, limit, offset)


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(invoice_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    return InvoiceService(db).get_invoice(invoice_id, organization_id)


@router.patch("/{invoice_id}/pay", response_model=InvoiceDetail)
def mark_invoice_paid(invoice_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    return InvoiceService(db).mark_paid(invoice_id, organization_id)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: UUID, organization_id: OrganizationId, db: Session = Depends(get_db)):
    """Paid invoices cannot be deleted"""
    InvoiceService(db).delete_invoice(invoice_id, organization_id)

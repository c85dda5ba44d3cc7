from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from decimal import Decimal
from typing import Optional
from uuid import UUID
import logging

from app.common.exceptions import NotFoundError, ValidationError
from app.common.transaction import unit_of_work
from app.modules.clients.models import Client
from app.modules.clients.service import ClientValidator
from app.modules.invoices.models import Invoice, InvoiceItem
from app.modules.invoices.numbering import InvoiceNumberingService
from app.modules.invoices.schemas import InvoiceCreate, InvoiceFilters, InvoiceList
from app.modules.orders.models import Order
from app.modules.organization.models import OrgRequisites

logger = logging.getLogger(__name__)


class InvoiceService:

    def __init__(self, db: Session):
        self.db = db
        self.numbering = InvoiceNumberingService(db)

    def resolve_requisites(
        self,
        explicit_id: Optional[UUID],
        client: Client,
        organization_id: UUID
    ) -> Optional[UUID]:
        """Billing entity: explicit > client's own > organization default > none"""
        if explicit_id is not None:
            requisites = self.db.query(OrgRequisites).filter(
                OrgRequisites.id == explicit_id,
                OrgRequisites.organization_id == organization_id
            ).first()
            if not requisites:
                raise NotFoundError("Requisites")
            return requisites.id

        if client.our_requisites_id is not None:
            return client.our_requisites_id

        default = self.db.query(OrgRequisites).filter(
            OrgRequisites.organization_id == organization_id,
            OrgRequisites.is_default == True
        ).first()
        return default.id if default else None

    def _validate_orders(self, invoice_data: InvoiceCreate, organization_id: UUID) -> None:
        order_ids = {item.order_id for item in invoice_data.items if item.order_id is not None}
        if not order_ids:
            return
        found = self.db.query(Order.id).filter(
            Order.id.in_(order_ids),
            Order.organization_id == organization_id
        ).count()
        if found != len(order_ids):
            raise NotFoundError("Order")

    def create_invoice(self, invoice_data: InvoiceCreate, organization_id: UUID) -> Invoice:
        """
        Create an invoice with its items.

        Number, sequence number, invoice row and items are written in one
        unit; a failure anywhere releases the reserved numbers too.
        """
        client = ClientValidator(self.db).require_client(invoice_data.client_id, organization_id)
        requisites_id = self.resolve_requisites(invoice_data.org_requisites_id, client, organization_id)
        self._validate_orders(invoice_data, organization_id)

        items = [
            InvoiceItem(
                order_id=item.order_id,
                description=item.description,
                quantity=item.quantity,
                price=item.price,
                total=item.price * item.quantity
            )
            for item in invoice_data.items
        ]
        total = sum((item.total for item in items), Decimal("0"))

        try:
            with unit_of_work(self.db, "create invoice"):
                number, sequence_number = self.numbering.next_identifiers(organization_id, invoice_data.issue_date)
                invoice = Invoice(
                    organization_id=organization_id,
                    client_id=client.id,
                    org_requisites_id=requisites_id,
                    number=number,
                    sequence_number=sequence_number,
                    issue_date=invoice_data.issue_date,
                    due_date=invoice_data.due_date,
                    total=total,
                    notes=invoice_data.notes,
                    contract_reference=invoice_data.contract_reference,
                    billing_period=invoice_data.billing_period,
                    variant=invoice_data.variant,
                    items=items
                )
                self.db.add(invoice)
        except IntegrityError as e:
            # PostgreSQL names the constraint, SQLite names the columns
            if "uq_invoice_org_number" in str(e) or "invoices.number" in str(e):
                raise ValidationError("Invoice number is already in use") from e
            raise

        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.number} created for client {client.id}, total {invoice.total}")
        return invoice

    def get_invoice(self, invoice_id: UUID, organization_id: UUID) -> Invoice:
        invoice = self.db.query(Invoice).options(selectinload(Invoice.items)).filter(
            Invoice.id == invoice_id,
            Invoice.organization_id == organization_id
        ).first()
        if not invoice:
            raise NotFoundError("Invoice")
        return invoice

    def list_invoices(
        self,
        organization_id: UUID,
        filters: InvoiceFilters,
        limit: int = 50,
        offset: int = 0
    ) -> InvoiceList:
        query = self.db.query(Invoice).filter(Invoice.organization_id == organization_id)

        if filters.client_id:
            query = query.filter(Invoice.client_id == filters.client_id)
        if filters.is_paid is not None:
            query = query.filter(Invoice.is_paid == filters.is_paid)

        total = query.count()
        invoices = query.order_by(
            Invoice.issue_date.desc(), Invoice.sequence_number.desc()
        ).offset(offset).limit(limit).all()
        return InvoiceList(invoices=invoices, total=total, limit=limit, offset=offset)

    def mark_paid(self, invoice_id: UUID, organization_id: UUID) -> Invoice:
        invoice = self.get_invoice(invoice_id, organization_id)
        if invoice.is_paid:
            raise ValidationError(f"Invoice {invoice.number} is already paid")

        with unit_of_work(self.db, "mark invoice paid"):
            invoice.is_paid = True

        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.number} marked paid")
        return invoice

    def delete_invoice(self, invoice_id: UUID, organization_id: UUID) -> None:
        """Unpaid invoices only; items are deleted with the invoice"""
        invoice = self.get_invoice(invoice_id, organization_id)
        if invoice.is_paid:
            raise ValidationError(f"Invoice {invoice.number} is paid and cannot be deleted")

        number = invoice.number
        with unit_of_work(self.db, "delete invoice"):
            self.db.delete(invoice)

        logger.info(f"Invoice {number} deleted")

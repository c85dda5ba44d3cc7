from app.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint, Numeric, Enum, Date, Text
from sqlalchemy.orm import relationship
from datetime import date
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import OrganizationMixin, TimestampMixin
from app.modules.clients.models import Client
from app.modules.organization.models import OrgRequisites
import enum


class InvoiceVariant(enum.Enum):
    DETAILED = "DETAILED"        # items annotated with order / patient details
    SIMPLIFIED = "SIMPLIFIED"    # plain work descriptions


class Invoice(Base, OrganizationMixin, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    org_requisites_id = Column(UUID(as_uuid=True), ForeignKey("org_requisites.id"), nullable=True)

    # Identifiers assigned once at creation by InvoiceNumberingService
    number = Column(String(50), nullable=False)
    sequence_number = Column(Integer, nullable=False)

    issue_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)
    total = Column(Numeric(15, 2), nullable=False, default=0)
    is_paid = Column(Boolean, default=False, nullable=False)

    notes = Column(Text, nullable=True)
    contract_reference = Column(String(300), nullable=True)
    billing_period = Column(String(100), nullable=True)
    variant = Column(Enum(InvoiceVariant), nullable=False, default=InvoiceVariant.DETAILED)

    client = relationship(Client)
    org_requisites = relationship(OrgRequisites)
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("organization_id", "number", name="uq_invoice_org_number"),
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id"), nullable=False, index=True)
    # Source order line, when the item was billed from an order
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=True)

    description = Column(String(500), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(15, 2), nullable=False)
    total = Column(Numeric(15, 2), nullable=False)  # price * quantity

    invoice = relationship("Invoice", back_populates="items")


class InvoiceSequence(Base, OrganizationMixin):
    """
    Numbering counters per organization.

    period_year = 0 is the all-time counter behind Invoice.number; one row per
    calendar year backs Invoice.sequence_number. Rows are advanced with an
    atomic UPDATE, never read-then-written.
    """
    __tablename__ = "invoice_sequences"

    ALL_TIME = 0

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    period_year = Column(Integer, nullable=False, default=0)
    current_number = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("organization_id", "period_year", name="uq_sequence_org_year"),
    )

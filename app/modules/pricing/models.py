"""
SQLAlchemy models for the work catalog and pricing

- WorkItem: catalog entry with the base price (the price floor)
- PriceList / PriceListItem: named price lists (client or subcontractor)
- ClientPriceList: links a client to one or more price lists
- ClientPriceItem: per-client price override for one work item
"""

from app.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, Enum, Date, UniqueConstraint, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from uuid import uuid4
from app.common.mixins import OrganizationMixin, TimestampMixin
import enum


class PriceListType(enum.Enum):
    CLIENT = "CLIENT"
    SUBCONTRACTOR = "SUBCONTRACTOR"


class WorkItem(Base, OrganizationMixin, TimestampMixin):
    __tablename__ = "work_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String(50), nullable=False)
    name = Column(String(300), nullable=False)
    unit = Column(String(20), nullable=False, default="unit")
    base_price = Column(Numeric(15, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_work_item_org_code"),
    )


class PriceList(Base, OrganizationMixin, TimestampMixin):
    __tablename__ = "price_lists"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=False)
    type = Column(Enum(PriceListType), nullable=False, default=PriceListType.CLIENT)
    valid_from = Column(Date, nullable=True)
    valid_to = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    items = relationship("PriceListItem", back_populates="price_list", cascade="all, delete-orphan")
    client_links = relationship("ClientPriceList", back_populates="price_list", cascade="all, delete-orphan")


class PriceListItem(Base):
    __tablename__ = "price_list_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    price_list_id = Column(UUID(as_uuid=True), ForeignKey("price_lists.id"), nullable=False, index=True)
    work_item_id = Column(UUID(as_uuid=True), ForeignKey("work_items.id"), nullable=False, index=True)
    price = Column(Numeric(15, 2), nullable=False)

    price_list = relationship("PriceList", back_populates="items")
    work_item = relationship("WorkItem")

    __table_args__ = (
        UniqueConstraint("price_list_id", "work_item_id", name="uq_price_list_item"),
    )


class ClientPriceList(Base):
    __tablename__ = "client_price_lists"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    price_list_id = Column(UUID(as_uuid=True), ForeignKey("price_lists.id"), nullable=False, index=True)
    # 1-based link order per client; the first linked list wins during resolution
    position = Column(Integer, nullable=False)
    linked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    price_list = relationship("PriceList", back_populates="client_links")

    __table_args__ = (
        UniqueConstraint("client_id", "price_list_id", name="uq_client_price_list"),
        UniqueConstraint("client_id", "position", name="uq_client_price_list_position"),
    )


class ClientPriceItem(Base, TimestampMixin):
    __tablename__ = "client_price_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    work_item_id = Column(UUID(as_uuid=True), ForeignKey("work_items.id"), nullable=False, index=True)
    price = Column(Numeric(15, 2), nullable=False)

    work_item = relationship("WorkItem")

    __table_args__ = (
        UniqueConstraint("client_id", "work_item_id", name="uq_client_price_item"),
    )

"""
Order record as seen by the finance core.

The order module proper (stages, items, production) lives elsewhere; the
ledger only needs the total to settle against and the payment status it
owns.
"""
from app.database.database import Base
from app.common.mixins import OrganizationMixin, TimestampMixin
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
import enum


class OrderPaymentStatus(enum.Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class Order(Base, OrganizationMixin, TimestampMixin):
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    order_number = Column(String(50), nullable=False)
    total_price = Column(Numeric(15, 2), nullable=False, default=0)
    # Written only by app.modules.finance.settlement
    payment_status = Column(Enum(OrderPaymentStatus), nullable=False, default=OrderPaymentStatus.UNPAID)

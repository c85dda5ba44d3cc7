"""
Order settlement: Order.payment_status derived from the order's payments.

The status is always recomputed from the full sum of payments, never
nudged up or down, so out-of-order creates and deletes cannot make it drift.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.modules.finance.models import Payment
from app.modules.orders.models import Order, OrderPaymentStatus

logger = logging.getLogger(__name__)


def settlement_status(total_paid: Decimal, total_price: Decimal) -> OrderPaymentStatus:
    if total_price > 0 and total_paid >= total_price:
        return OrderPaymentStatus.PAID
    if total_paid > 0:
        return OrderPaymentStatus.PARTIAL
    return OrderPaymentStatus.UNPAID


class OrderSettlementService:

    def __init__(self, db: Session):
        self.db = db

    def total_paid(self, order_id: UUID) -> Decimal:
        value = self.db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.order_id == order_id
        ).scalar()
        return Decimal(str(value or 0))

    def recompute(self, order_id: UUID) -> Optional[OrderPaymentStatus]:
        """
        Re-derive and store the order's payment status.

        Pending payment writes must be flushed first. Returns None without
        touching anything when the order no longer exists: payments may
        outlive the order they referenced.
        """
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            logger.debug(f"Settlement skipped, order {order_id} no longer exists")
            return None

        total_paid = self.total_paid(order_id)
        new_status = settlement_status(total_paid, Decimal(str(order.total_price or 0)))

        if order.payment_status != new_status:
            logger.info(
                f"Order {order.order_number} payment status {order.payment_status.value if order.payment_status else None}"
                f" -> {new_status.value} (paid {total_paid} of {order.total_price})"
            )
        order.payment_status = new_status
        return new_status

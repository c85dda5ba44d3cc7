from .models import Order, OrderPaymentStatus

__all__ = ["Order", "OrderPaymentStatus"]

"""
Finance module

Client payments and organization expenses, with their account effects
and order settlement.
"""

from .models import Payment, Expense, PaymentMethod
from .settlement import OrderSettlementService, settlement_status
from .service import PaymentService, ExpenseService, FinanceSummaryService

__all__ = [
    "Payment", "Expense", "PaymentMethod",
    "OrderSettlementService", "settlement_status",
    "PaymentService", "ExpenseService", "FinanceSummaryService"
]

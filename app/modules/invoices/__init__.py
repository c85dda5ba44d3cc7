"""
Invoices module

Client invoices with items, organization-scoped numbering and the
billing-entity (requisites) cascade.

Components:
- models.py: Invoice, InvoiceItem, InvoiceSequence
- numbering.py: InvoiceNumberingService, atomic per-organization counters
- service.py: create / list / get / mark paid / delete
- router.py: REST endpoints under /invoices
"""

from .models import Invoice, InvoiceItem, InvoiceSequence, InvoiceVariant
from .numbering import InvoiceNumberingService
from .service import InvoiceService

__all__ = [
    "Invoice", "InvoiceItem", "InvoiceSequence", "InvoiceVariant",
    "InvoiceNumberingService", "InvoiceService"
]

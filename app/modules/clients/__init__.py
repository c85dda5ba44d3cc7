"""
Clients module: the minimal client record the ledger and pricing core reference.
"""

from .models import Client
from .service import ClientValidator

__all__ = ["Client", "ClientValidator"]

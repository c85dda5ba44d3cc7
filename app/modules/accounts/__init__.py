"""
Accounts module

Payment accounts (cash desk, bank, card) with a materialized balance.

Components:
- models.py: Account, AccountTransfer
- ledger.py: LedgerService, the only writer of Account.balance
- service.py: account CRUD, transfers, balance rebuild
- router.py: REST endpoints under /accounts
"""

from .models import Account, AccountTransfer, AccountType
from .ledger import LedgerService
from .service import AccountService

__all__ = [
    "Account", "AccountTransfer", "AccountType",
    "LedgerService", "AccountService"
]

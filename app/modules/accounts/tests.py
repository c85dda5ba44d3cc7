"""
Tests for the accounts module

Covers:
- Ledger effects (atomic signed deltas, unknown accounts)
- Concurrent ledger effects from separate sessions
- Account CRUD with a single default per organization
- Transfers between accounts
- Account deletion unlinking payments and expenses
- Balance rebuild from source records
- REST endpoints and error payloads
"""

import pytest
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from uuid import uuid4
from fastapi.testclient import TestClient

from app.common.exceptions import NotFoundError, ValidationError
from app.main import app
from app.modules.accounts.ledger import LedgerService
from app.modules.accounts.models import Account, AccountTransfer, AccountType
from app.modules.accounts.schemas import AccountCreate, AccountUpdate, TransferCreate
from app.modules.accounts.service import AccountService
from app.modules.clients.models import Client
from app.modules.finance.models import Payment, Expense
from app.modules.finance.schemas import PaymentCreate, ExpenseCreate
from app.modules.finance.service import PaymentService, ExpenseService
from app.modules.organization.models import Organization


# ===== LEDGER =====

class TestLedgerService:
    """Signed deltas applied by the ledger core"""

    def test_apply_effect_adds_signed_delta(self, db_session, account):
        ledger = LedgerService(db_session)
        ledger.apply_effect(account.id, Decimal("150.50"))
        ledger.apply_effect(account.id, Decimal("-50.25"))
        db_session.commit()

        db_session.refresh(account)
        assert account.balance == Decimal("100.25")

    def test_apply_effect_without_account_is_noop(self, db_session, account):
        LedgerService(db_session).apply_effect(None, Decimal("500"))
        db_session.commit()

        db_session.refresh(account)
        assert account.balance == Decimal("0")

    def test_apply_effect_unknown_account(self, db_session):
        with pytest.raises(NotFoundError):
            LedgerService(db_session).apply_effect(uuid4(), Decimal("10"))
        db_session.rollback()

    def test_rebook_expense_same_account(self, db_session, make_account):
        """Revert +old, apply -new on the same account"""
        account = make_account(opening_balance="800")
        LedgerService(db_session).rebook_expense(account.id, Decimal("200"), account.id, Decimal("50"))
        db_session.commit()

        db_session.refresh(account)
        assert account.balance == Decimal("950")

    def test_require_account_rejects_inactive_and_foreign(self, db_session, organization, other_organization, make_account):
        ledger = LedgerService(db_session)
        inactive = make_account(name="Old card", is_active=False)
        foreign = make_account(name="Foreign", organization_id=other_organization.id)

        with pytest.raises(NotFoundError):
            ledger.require_account(inactive.id, organization.id)
        with pytest.raises(NotFoundError) as exc_info:
            ledger.require_account(foreign.id, organization.id)
        assert exc_info.value.message == "Account not found"

        assert ledger.require_optional_account(None, organization.id) is None


class TestConcurrentLedgerEffects:
    """Payments and expenses booked from separate sessions at the same time"""

    def test_concurrent_payments_and_expenses(self, file_sessions):
        with file_sessions() as session:
            org = Organization(name="Лаборатория")
            session.add(org)
            session.flush()
            client = Client(organization_id=org.id, name="Клиника")
            cash = Account(
                organization_id=org.id, name="Касса", type=AccountType.CASH,
                opening_balance=Decimal("1000"), balance=Decimal("1000")
            )
            session.add_all([client, cash])
            session.commit()
            organization_id, client_id, account_id = org.id, client.id, cash.id

        def book(i):
            with file_sessions() as session:
                if i % 2:
                    ExpenseService(session).create_expense(
                        ExpenseCreate(category="Материалы", description="Гипс", amount=Decimal("2.25"), account_id=account_id),
                        organization_id
                    )
                else:
                    PaymentService(session).create_payment(
                        PaymentCreate(client_id=client_id, amount=Decimal("10.50"), account_id=account_id),
                        organization_id
                    )

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(book, range(20)))

        with file_sessions() as session:
            cash = session.get(Account, account_id)
            assert cash.balance == Decimal("1082.50")
            assert LedgerService(session).compute_balance(cash) == cash.balance


# ===== ACCOUNT CRUD =====

class TestAccountService:
    """Account lifecycle"""

    def test_create_account_starts_at_opening_balance(self, db_session, organization):
        account = AccountService(db_session).create_account(
            AccountCreate(name="Сбербанк", type=AccountType.BANK, opening_balance=Decimal("1000")),
            organization.id
        )

        assert account.balance == Decimal("1000")
        assert account.opening_balance == Decimal("1000")
        assert account.currency == "RUB"

    def test_single_default_account(self, db_session, organization):
        service = AccountService(db_session)
        first = service.create_account(AccountCreate(name="Касса", is_default=True), organization.id)
        second = service.create_account(AccountCreate(name="Банк", is_default=True), organization.id)

        db_session.refresh(first)
        assert first.is_default is False
        assert second.is_default is True

        service.update_account(first.id, AccountUpdate(is_default=True), organization.id)
        db_session.refresh(second)
        assert second.is_default is False

    def test_update_never_touches_balance(self, db_session, organization, make_account):
        account = make_account(opening_balance="300")
        updated = AccountService(db_session).update_account(
            account.id, AccountUpdate(name="Главная касса", notes="ящик 2"), organization.id
        )

        assert updated.name == "Главная касса"
        assert updated.balance == Decimal("300")

    def test_list_accounts_total_balance(self, db_session, organization, other_organization, make_account):
        make_account(name="A", opening_balance="100")
        make_account(name="B", opening_balance="250.50")
        make_account(name="Foreign", opening_balance="999", organization_id=other_organization.id)

        result = AccountService(db_session).list_accounts(organization.id)

        assert len(result.accounts) == 2
        assert result.total_balance == Decimal("350.50")

    def test_get_foreign_account_not_found(self, db_session, organization, other_organization, make_account):
        foreign = make_account(organization_id=other_organization.id)
        with pytest.raises(NotFoundError):
            AccountService(db_session).get_account(foreign.id, organization.id)


# ===== TRANSFERS =====

class TestTransfers:
    """Money moved between two accounts in one unit"""

    def test_transfer_moves_both_balances(self, db_session, organization, make_account):
        cash = make_account(name="Касса", opening_balance="1000")
        bank = make_account(name="Банк", opening_balance="0")

        transfer = AccountService(db_session).create_transfer(
            TransferCreate(from_account_id=cash.id, to_account_id=bank.id, amount=Decimal("400")),
            organization.id
        )

        db_session.refresh(cash)
        db_session.refresh(bank)
        assert transfer.amount == Decimal("400")
        assert cash.balance == Decimal("600")
        assert bank.balance == Decimal("400")

    def test_transfer_to_same_account_rejected(self, db_session, organization, account):
        with pytest.raises(ValidationError):
            AccountService(db_session).create_transfer(
                TransferCreate(from_account_id=account.id, to_account_id=account.id, amount=Decimal("10")),
                organization.id
            )
        assert db_session.query(AccountTransfer).count() == 0

    def test_transfer_to_foreign_account_leaves_no_trace(self, db_session, organization, other_organization, make_account):
        cash = make_account(name="Касса", opening_balance="1000")
        foreign = make_account(name="Foreign", organization_id=other_organization.id)

        with pytest.raises(NotFoundError):
            AccountService(db_session).create_transfer(
                TransferCreate(from_account_id=cash.id, to_account_id=foreign.id, amount=Decimal("100")),
                organization.id
            )

        db_session.refresh(cash)
        assert cash.balance == Decimal("1000")
        assert db_session.query(AccountTransfer).count() == 0


# ===== DELETE / REBUILD =====

class TestDeleteAndRecalculate:

    def test_delete_unlinks_payments_and_expenses(self, db_session, organization, client_record, account):
        payment = PaymentService(db_session).create_payment(
            PaymentCreate(client_id=client_record.id, amount=Decimal("500"), account_id=account.id),
            organization.id
        )
        expense = ExpenseService(db_session).create_expense(
            ExpenseCreate(category="Материалы", description="Гипс", amount=Decimal("120"), account_id=account.id),
            organization.id
        )

        AccountService(db_session).delete_account(account.id, organization.id)

        assert db_session.query(Account).filter(Account.id == account.id).first() is None
        assert db_session.get(Payment, payment.id).account_id is None
        assert db_session.get(Expense, expense.id).account_id is None

    def test_delete_account_with_transfers_rejected(self, db_session, organization, make_account):
        cash = make_account(name="Касса", opening_balance="100")
        bank = make_account(name="Банк")
        service = AccountService(db_session)
        service.create_transfer(
            TransferCreate(from_account_id=cash.id, to_account_id=bank.id, amount=Decimal("50")),
            organization.id
        )

        with pytest.raises(ValidationError):
            service.delete_account(cash.id, organization.id)
        assert db_session.get(Account, cash.id) is not None

    def test_recalculate_repairs_drifted_balance(self, db_session, organization, client_record, make_account):
        cash = make_account(name="Касса", opening_balance="1000")
        bank = make_account(name="Банк")
        PaymentService(db_session).create_payment(
            PaymentCreate(client_id=client_record.id, amount=Decimal("300"), account_id=cash.id),
            organization.id
        )
        ExpenseService(db_session).create_expense(
            ExpenseCreate(category="Аренда", description="Октябрь", amount=Decimal("200"), account_id=cash.id),
            organization.id
        )
        AccountService(db_session).create_transfer(
            TransferCreate(from_account_id=cash.id, to_account_id=bank.id, amount=Decimal("100")),
            organization.id
        )

        db_session.refresh(cash)
        assert cash.balance == Decimal("1000")

        # Corrupt the materialized balance behind the ledger's back
        cash.balance = Decimal("12345")
        db_session.commit()

        repaired = AccountService(db_session).recalculate_balance(cash.id, organization.id)
        assert repaired.balance == Decimal("1000")
        assert LedgerService(db_session).compute_balance(bank) == Decimal("100")


# ===== API =====

class TestAccountsAPI:

    def test_create_and_list(self, api_client):
        response = api_client.post("/accounts/", json={"name": "Касса", "type": "cash", "opening_balance": "250.00"})
        assert response.status_code == 201
        assert Decimal(response.json()["balance"]) == Decimal("250")

        response = api_client.get("/accounts/")
        assert response.status_code == 200
        data = response.json()
        assert len(data["accounts"]) == 1
        assert Decimal(data["total_balance"]) == Decimal("250")

    def test_invalid_organization_header(self, api_client):
        response = api_client.get("/accounts/", headers={"X-Organization-ID": "not-a-uuid"})
        assert response.status_code == 400

    def test_missing_organization_header(self):
        with TestClient(app) as bare_client:
            response = bare_client.get("/accounts/")
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing X-Organization-ID header"

    def test_health_is_exempt_and_hardened(self):
        with TestClient(app) as bare_client:
            response = bare_client.get("/health")
        assert response.status_code == 200
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_organization_echoed_in_response(self, api_client, organization):
        response = api_client.get("/accounts/")
        assert response.headers["X-Organization-ID"] == str(organization.id)

    def test_transfer_same_account_error_payload(self, api_client, account):
        response = api_client.post("/accounts/transfers", json={
            "from_account_id": str(account.id),
            "to_account_id": str(account.id),
            "amount": "10"
        })
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_unknown_account_not_found(self, api_client):
        response = api_client.patch(f"/accounts/{uuid4()}", json={"name": "X"})
        assert response.status_code == 404
        assert response.json() == {"detail": "Account not found", "code": "NOT_FOUND"}

    def test_recalculate_endpoint(self, api_client, account):
        response = api_client.post(f"/accounts/{account.id}/recalculate")
        assert response.status_code == 200
        assert Decimal(response.json()["balance"]) == Decimal("0")

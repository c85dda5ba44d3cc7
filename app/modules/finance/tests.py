"""
Tests for the finance module

Covers:
- Payment create/delete with their account effect
- Order settlement (PAID / PARTIAL / UNPAID) derived from the payment sum
- Expense create/update/delete, including reassignment between accounts
- Validation failures leaving balances untouched
- Balance replay over mixed create/update/delete sequences
- REST endpoints
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import NotFoundError
from app.modules.accounts.ledger import LedgerService
from app.modules.finance.models import Payment, Expense
from app.modules.finance.schemas import (
    PaymentCreate, PaymentFilters, ExpenseCreate, ExpenseUpdate, ExpenseFilters
)
from app.modules.finance.service import PaymentService, ExpenseService, FinanceSummaryService
from app.modules.finance.settlement import OrderSettlementService, settlement_status
from app.modules.invoices.models import Invoice
from app.modules.orders.models import Order, OrderPaymentStatus


def pay(db_session, organization, client_record, amount, **kwargs):
    return PaymentService(db_session).create_payment(
        PaymentCreate(client_id=client_record.id, amount=Decimal(amount), **kwargs),
        organization.id
    )


def spend(db_session, organization, amount, category="Материалы", **kwargs):
    return ExpenseService(db_session).create_expense(
        ExpenseCreate(category=category, description="Расходники", amount=Decimal(amount), **kwargs),
        organization.id
    )


# ===== PAYMENTS =====

class TestPayments:
    """Payment effects on accounts"""

    def test_payment_create_and_delete_restores_balance(self, db_session, organization, client_record, account):
        payment = pay(db_session, organization, client_record, "500", account_id=account.id)
        db_session.refresh(account)
        assert account.balance == Decimal("500")

        PaymentService(db_session).delete_payment(payment.id, organization.id)
        db_session.refresh(account)
        assert account.balance == Decimal("0")
        assert db_session.query(Payment).count() == 0

    def test_unattributed_payment_has_no_effect(self, db_session, organization, client_record, account):
        payment = pay(db_session, organization, client_record, "700")

        db_session.refresh(account)
        assert payment.account_id is None
        assert account.balance == Decimal("0")

    def test_inactive_account_rejected_without_side_effects(self, db_session, organization, client_record, make_account):
        closed = make_account(name="Закрытая карта", opening_balance="100", is_active=False)

        with pytest.raises(NotFoundError):
            pay(db_session, organization, client_record, "50", account_id=closed.id)

        db_session.refresh(closed)
        assert closed.balance == Decimal("100")
        assert db_session.query(Payment).count() == 0

    def test_foreign_client_rejected(self, db_session, organization, other_organization, account):
        from app.modules.clients.models import Client
        foreign_client = Client(organization_id=other_organization.id, name="Чужая клиника")
        db_session.add(foreign_client)
        db_session.commit()

        with pytest.raises(NotFoundError) as exc_info:
            pay(db_session, organization, foreign_client, "50", account_id=account.id)
        assert exc_info.value.entity == "Client"

        db_session.refresh(account)
        assert account.balance == Decimal("0")

    def test_foreign_order_rejected(self, db_session, organization, other_organization, client_record):
        order = Order(
            organization_id=other_organization.id,
            client_id=client_record.id,
            order_number="Ч-1",
            total_price=Decimal("100")
        )
        db_session.add(order)
        db_session.commit()

        with pytest.raises(NotFoundError):
            pay(db_session, organization, client_record, "100", order_id=order.id)
        assert db_session.query(Payment).count() == 0

    def test_delete_unknown_payment(self, db_session, organization):
        with pytest.raises(NotFoundError):
            PaymentService(db_session).delete_payment(uuid4(), organization.id)

    def test_list_payments_filters(self, db_session, organization, client_record):
        pay(db_session, organization, client_record, "100", payment_date=date(2025, 1, 10))
        pay(db_session, organization, client_record, "200", payment_date=date(2025, 2, 10))
        pay(db_session, organization, client_record, "300", payment_date=date(2025, 3, 10))

        result = PaymentService(db_session).list_payments(
            organization.id, PaymentFilters(date_from=date(2025, 2, 1)), limit=10
        )
        assert result.total == 2
        assert [p.amount for p in result.payments] == [Decimal("300"), Decimal("200")]


# ===== SETTLEMENT =====

class TestSettlement:
    """Order.payment_status derived from the sum of its payments"""

    @pytest.mark.parametrize("paid,price,expected", [
        ("0", "1000", OrderPaymentStatus.UNPAID),
        ("400", "1000", OrderPaymentStatus.PARTIAL),
        ("1000", "1000", OrderPaymentStatus.PAID),
        ("1200", "1000", OrderPaymentStatus.PAID),
        ("50", "0", OrderPaymentStatus.PARTIAL),
        ("0", "0", OrderPaymentStatus.UNPAID),
    ])
    def test_settlement_status(self, paid, price, expected):
        assert settlement_status(Decimal(paid), Decimal(price)) == expected

    def test_partial_then_paid(self, db_session, organization, client_record, make_order):
        order = make_order(total_price="1000")
        assert order.payment_status == OrderPaymentStatus.UNPAID

        pay(db_session, organization, client_record, "400", order_id=order.id)
        db_session.refresh(order)
        assert order.payment_status == OrderPaymentStatus.PARTIAL

        pay(db_session, organization, client_record, "600", order_id=order.id)
        db_session.refresh(order)
        assert order.payment_status == OrderPaymentStatus.PAID

    def test_delete_payment_downgrades_status(self, db_session, organization, client_record, make_order):
        order = make_order(total_price="1000")
        first = pay(db_session, organization, client_record, "400", order_id=order.id)
        second = pay(db_session, organization, client_record, "600", order_id=order.id)
        service = PaymentService(db_session)

        service.delete_payment(second.id, organization.id)
        db_session.refresh(order)
        assert order.payment_status == OrderPaymentStatus.PARTIAL

        service.delete_payment(first.id, organization.id)
        db_session.refresh(order)
        assert order.payment_status == OrderPaymentStatus.UNPAID

    def test_recompute_is_idempotent(self, db_session, organization, client_record, make_order):
        order = make_order(total_price="1000")
        pay(db_session, organization, client_record, "400", order_id=order.id)
        settlement = OrderSettlementService(db_session)

        first = settlement.recompute(order.id)
        second = settlement.recompute(order.id)
        db_session.commit()

        assert first == second == OrderPaymentStatus.PARTIAL
        assert settlement.total_paid(order.id) == Decimal("400")

    def test_recompute_repairs_stale_status(self, db_session, organization, client_record, make_order):
        order = make_order(total_price="500")
        pay(db_session, organization, client_record, "500", order_id=order.id)
        order.payment_status = OrderPaymentStatus.UNPAID
        db_session.commit()

        result = PaymentService(db_session).recompute_order(order.id, organization.id)

        assert result.payment_status == OrderPaymentStatus.PAID
        assert result.total_paid == Decimal("500")
        db_session.refresh(order)
        assert order.payment_status == OrderPaymentStatus.PAID

    def test_recompute_missing_order_is_noop(self, db_session):
        assert OrderSettlementService(db_session).recompute(uuid4()) is None


# ===== EXPENSES =====

class TestExpenses:
    """Expense effects, including rebooking on update"""

    def test_expense_round_trip_same_account(self, db_session, organization, make_account):
        account = make_account(opening_balance="1000")
        expense = spend(db_session, organization, "200", account_id=account.id)
        db_session.refresh(account)
        assert account.balance == Decimal("800")

        ExpenseService(db_session).update_expense(expense.id, ExpenseUpdate(amount=Decimal("50")), organization.id)
        db_session.refresh(account)
        # 800 + 200 reverted - 50 applied
        assert account.balance == Decimal("950")

    def test_expense_reassignment_between_accounts(self, db_session, organization, make_account):
        cash = make_account(name="Касса", opening_balance="1000")
        bank = make_account(name="Банк", opening_balance="1000")
        expense = spend(db_session, organization, "200", account_id=cash.id)

        ExpenseService(db_session).update_expense(expense.id, ExpenseUpdate(account_id=bank.id), organization.id)

        db_session.refresh(cash)
        db_session.refresh(bank)
        assert cash.balance == Decimal("1000")
        assert bank.balance == Decimal("800")

    def test_explicit_null_account_detaches(self, db_session, organization, account):
        expense = spend(db_session, organization, "200", account_id=account.id)

        updated = ExpenseService(db_session).update_expense(
            expense.id, ExpenseUpdate.model_validate({"account_id": None}), organization.id
        )

        db_session.refresh(account)
        assert updated.account_id is None
        assert account.balance == Decimal("0")

    def test_omitted_account_keeps_assignment(self, db_session, organization, account):
        expense = spend(db_session, organization, "200", account_id=account.id)

        updated = ExpenseService(db_session).update_expense(
            expense.id, ExpenseUpdate(description="Гипс, 10 кг"), organization.id
        )

        db_session.refresh(account)
        assert updated.account_id == account.id
        assert updated.description == "Гипс, 10 кг"
        assert account.balance == Decimal("-200")

    def test_reassign_to_foreign_account_leaves_state(self, db_session, organization, other_organization, make_account):
        cash = make_account(name="Касса", opening_balance="1000")
        foreign = make_account(name="Foreign", organization_id=other_organization.id)
        expense = spend(db_session, organization, "200", account_id=cash.id)

        with pytest.raises(NotFoundError):
            ExpenseService(db_session).update_expense(expense.id, ExpenseUpdate(account_id=foreign.id), organization.id)

        db_session.refresh(cash)
        db_session.refresh(expense)
        assert cash.balance == Decimal("800")
        assert expense.account_id == cash.id

    def test_delete_expense_reverts(self, db_session, organization, account):
        expense = spend(db_session, organization, "120.40", account_id=account.id)
        ExpenseService(db_session).delete_expense(expense.id, organization.id)

        db_session.refresh(account)
        assert account.balance == Decimal("0")
        assert db_session.query(Expense).count() == 0

    def test_list_expenses_by_category(self, db_session, organization):
        spend(db_session, organization, "10", category="Аренда")
        spend(db_session, organization, "20", category="Материалы")

        result = ExpenseService(db_session).list_expenses(organization.id, ExpenseFilters(category="Аренда"))
        assert result.total == 1
        assert result.expenses[0].amount == Decimal("10")


# ===== REPLAY INVARIANT =====

class TestBalanceReplay:
    """Materialized balance equals the balance replayed from extant records"""

    def test_mixed_sequence(self, db_session, organization, client_record, make_account):
        cash = make_account(name="Касса", opening_balance="1000")
        bank = make_account(name="Банк", opening_balance="250")
        payments = PaymentService(db_session)
        expenses = ExpenseService(db_session)

        p1 = pay(db_session, organization, client_record, "500", account_id=cash.id)
        pay(db_session, organization, client_record, "75.25", account_id=bank.id)
        p3 = pay(db_session, organization, client_record, "300", account_id=cash.id)
        e1 = spend(db_session, organization, "200", account_id=cash.id)
        e2 = spend(db_session, organization, "40", account_id=bank.id)
        spend(db_session, organization, "99")

        expenses.update_expense(e1.id, ExpenseUpdate(amount=Decimal("150"), account_id=bank.id), organization.id)
        expenses.update_expense(e2.id, ExpenseUpdate.model_validate({"account_id": None}), organization.id)
        payments.delete_payment(p3.id, organization.id)
        expenses.update_expense(e1.id, ExpenseUpdate(account_id=cash.id), organization.id)
        payments.delete_payment(p1.id, organization.id)

        ledger = LedgerService(db_session)
        for account in (cash, bank):
            db_session.refresh(account)
            assert account.balance == ledger.compute_balance(account)

        assert cash.balance == Decimal("850")
        assert bank.balance == Decimal("325.25")


# ===== SUMMARY =====

class TestFinanceSummary:

    def test_summary_totals(self, db_session, organization, client_record):
        pay(db_session, organization, client_record, "100", payment_date=date(2025, 9, 30))
        pay(db_session, organization, client_record, "250", payment_date=date(2025, 10, 5))
        spend(db_session, organization, "40", expense_date=date(2025, 10, 6))
        db_session.add(Invoice(
            organization_id=organization.id,
            client_id=client_record.id,
            number="С-0001",
            sequence_number=1,
            issue_date=date(2025, 10, 1),
            total=Decimal("500")
        ))
        db_session.commit()

        summary = FinanceSummaryService(db_session).summary(organization.id, today=date(2025, 10, 18))

        assert summary.total_revenue == Decimal("350")
        assert summary.month_revenue == Decimal("250")
        assert summary.total_expenses == Decimal("40")
        assert summary.month_expenses == Decimal("40")
        assert [i.number for i in summary.unpaid_invoices] == ["С-0001"]
        assert len(summary.recent_payments) == 2


# ===== API =====

class TestFinanceAPI:

    def test_payment_endpoints(self, api_client, db_session, client_record, account, make_order):
        order = make_order(total_price="1000")

        response = api_client.post("/finance/payments", json={
            "client_id": str(client_record.id),
            "amount": "1000.00",
            "method": "cash",
            "account_id": str(account.id),
            "order_id": str(order.id)
        })
        assert response.status_code == 201
        payment_id = response.json()["id"]

        db_session.refresh(account)
        db_session.refresh(order)
        assert account.balance == Decimal("1000")
        assert order.payment_status == OrderPaymentStatus.PAID

        response = api_client.delete(f"/finance/payments/{payment_id}")
        assert response.status_code == 204

        db_session.refresh(account)
        db_session.refresh(order)
        assert account.balance == Decimal("0")
        assert order.payment_status == OrderPaymentStatus.UNPAID

    def test_non_positive_amount_rejected(self, api_client, client_record):
        response = api_client.post("/finance/payments", json={
            "client_id": str(client_record.id),
            "amount": "0"
        })
        assert response.status_code == 422

    def test_expense_patch_with_null_account(self, api_client, db_session, account):
        response = api_client.post("/finance/expenses", json={
            "category": "Аренда",
            "description": "Октябрь",
            "amount": "300",
            "account_id": str(account.id)
        })
        assert response.status_code == 201
        expense_id = response.json()["id"]

        response = api_client.patch(f"/finance/expenses/{expense_id}", json={"account_id": None})
        assert response.status_code == 200
        assert response.json()["account_id"] is None

        db_session.refresh(account)
        assert account.balance == Decimal("0")

    def test_recompute_endpoint(self, api_client, make_order):
        order = make_order(total_price="500")
        response = api_client.post(f"/finance/orders/{order.id}/recompute")
        assert response.status_code == 200
        assert response.json()["payment_status"] == "UNPAID"

    def test_recompute_unknown_order(self, api_client):
        response = api_client.post(f"/finance/orders/{uuid4()}/recompute")
        assert response.status_code == 404

    def test_summary_endpoint(self, api_client):
        response = api_client.get("/finance/summary")
        assert response.status_code == 200
        assert Decimal(response.json()["total_revenue"]) == Decimal("0")

"""
Seed script: populate a demo dental laboratory with realistic finance data.

What it creates:
- Organization + default requisites (billing entity).
- Accounts (3): cash desk, bank account, card, with opening balances.
- Work catalog and one active client price list.
- Clients (~20), a few with per-client price overrides.
- Orders priced through the price cascade, partially or fully paid.
- Expenses spread over the last months.
- Invoices for a sample of orders.

All money moves through the services, so balances and order statuses end up
consistent with the records.

Run inside the API container to use the 'postgres' host and project PYTHONPATH:
    docker compose exec api python scripts/seed_demo_lab.py \
        --name "Демо лаборатория" --clients 20 --orders 120

Note: This is intended for development environments only.
"""

# Add project root to sys.path so `app.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import random
from datetime import date, timedelta
from decimal import Decimal

from app.database.database import SessionLocal
from app.modules.organization.models import Organization, OrgRequisites
from app.modules.clients.models import Client
from app.modules.orders.models import Order
from app.modules.accounts.models import AccountType
from app.modules.accounts.schemas import AccountCreate
from app.modules.accounts.service import AccountService
from app.modules.finance.models import PaymentMethod
from app.modules.finance.schemas import PaymentCreate, ExpenseCreate
from app.modules.finance.service import PaymentService, ExpenseService
from app.modules.pricing.models import WorkItem
from app.modules.pricing.resolver import PriceResolver
from app.modules.pricing.schemas import PriceListCreate, PriceListItemsUpsert, PriceListItemIn, ClientPriceSet
from app.modules.pricing.service import PricingService
from app.modules.invoices.schemas import InvoiceCreate, InvoiceItemCreate
from app.modules.invoices.service import InvoiceService

WORK_CATALOG = [
    ("К-01", "Коронка металлокерамическая", "4500"),
    ("К-02", "Коронка циркониевая", "9000"),
    ("К-03", "Коронка E.max", "11000"),
    ("В-01", "Вкладка культевая", "2500"),
    ("П-01", "Протез съемный полный", "15000"),
    ("П-02", "Бюгельный протез", "28000"),
    ("И-01", "Абатмент индивидуальный", "7000"),
]

EXPENSE_CATEGORIES = ["Материалы", "Аренда", "Зарплата", "Оборудование", "Коммунальные"]


def create_organization(db, name: str):
    if db.query(Organization).filter(Organization.name == name).first():
        sys.exit(f"Organization '{name}' already exists; pick another --name")
    org = Organization(name=name, is_active=True)
    db.add(org)
    db.commit()
    db.refresh(org)

    db.add(OrgRequisites(
        organization_id=org.id,
        name=f"ООО «{name}»",
        inn=str(random.randint(7700000000, 7799999999)),
        kpp="770101001",
        bank_name="ПАО Сбербанк",
        is_default=True,
    ))
    db.commit()
    return org


def create_accounts(db, organization_id):
    service = AccountService(db)
    specs = [
        ("Касса", AccountType.CASH, "50000", True),
        ("Расчетный счет", AccountType.BANK, "350000", False),
        ("Корпоративная карта", AccountType.CARD, "0", False),
    ]
    return [
        service.create_account(
            AccountCreate(name=name, type=kind, opening_balance=Decimal(opening), is_default=is_default),
            organization_id
        )
        for name, kind, opening, is_default in specs
    ]


def create_catalog(db, organization_id):
    items = []
    for code, name, price in WORK_CATALOG:
        item = WorkItem(organization_id=organization_id, code=code, name=name, base_price=Decimal(price))
        db.add(item)
        items.append(item)
    db.commit()
    return items


def create_clients(db, organization_id, count: int):
    clients = []
    for i in range(1, count + 1):
        client = Client(
            organization_id=organization_id,
            name=f"Стоматология №{i}",
            inn=str(random.randint(7700000000, 7799999999)),
        )
        db.add(client)
        clients.append(client)
    db.commit()
    return clients


def create_pricing(db, organization_id, work_items, clients):
    service = PricingService(db)
    price_list = service.create_price_list(
        PriceListCreate(name="Клиники партнеры", code="PARTNERS"), organization_id
    )
    service.upsert_items(price_list.id, PriceListItemsUpsert(items=[
        PriceListItemIn(work_item_id=wi.id, price=(Decimal(wi.base_price) * Decimal("0.9")).quantize(Decimal("1")))
        for wi in work_items
    ]), organization_id)

    for client in clients[: len(clients) // 2]:
        service.link_client(price_list.id, client.id, organization_id)
    for client in clients[:3]:
        work_item = random.choice(work_items)
        service.set_client_price(
            client.id,
            ClientPriceSet(work_item_id=work_item.id, price=(Decimal(work_item.base_price) * Decimal("0.8")).quantize(Decimal("1"))),
            organization_id
        )


def create_orders_and_payments(db, organization_id, clients, work_items, accounts, count: int):
    resolver = PriceResolver(db)
    payments = PaymentService(db)
    orders = []
    for i in range(1, count + 1):
        client = random.choice(clients)
        work_item = random.choice(work_items)
        line = resolver.price_line(
            client.id, work_item.id, organization_id,
            quantity=random.randint(1, 4),
            discount_pct=Decimal(random.choice([0, 0, 5, 10]))
        )
        order = Order(
            organization_id=organization_id,
            client_id=client.id,
            order_number=f"З-{i:05d}",
            total_price=line.total,
        )
        db.add(order)
        db.commit()
        orders.append(order)

        share = random.choice([Decimal("0"), Decimal("0.5"), Decimal("1")])
        if share:
            payments.create_payment(PaymentCreate(
                client_id=client.id,
                amount=(line.total * share).quantize(Decimal("0.01")),
                method=random.choice(list(PaymentMethod)),
                payment_date=date.today() - timedelta(days=random.randint(0, 90)),
                account_id=random.choice(accounts).id,
                order_id=order.id,
            ), organization_id)
    return orders


def create_expenses(db, organization_id, accounts, count: int):
    service = ExpenseService(db)
    for _ in range(count):
        account = random.choice(accounts + [None])
        service.create_expense(ExpenseCreate(
            category=random.choice(EXPENSE_CATEGORIES),
            description="Демо расход",
            amount=Decimal(random.randint(500, 30000)),
            expense_date=date.today() - timedelta(days=random.randint(0, 90)),
            account_id=account.id if account else None,
        ), organization_id)


def create_invoices(db, organization_id, orders, count: int):
    service = InvoiceService(db)
    created = 0
    for order in random.sample(orders, min(count, len(orders))):
        service.create_invoice(InvoiceCreate(
            client_id=order.client_id,
            items=[InvoiceItemCreate(
                description=f"Работы по заказу {order.order_number}",
                quantity=1,
                price=Decimal(order.total_price),
                order_id=order.id,
            )],
        ), organization_id)
        created += 1
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed dental lab demo data")
    parser.add_argument("--name", default="Демо лаборатория")
    parser.add_argument("--clients", type=int, default=20)
    parser.add_argument("--orders", type=int, default=120)
    parser.add_argument("--expenses", type=int, default=40)
    parser.add_argument("--invoices", type=int, default=30)
    args = parser.parse_args()

    db = SessionLocal()
    try:
        organization = create_organization(db, args.name)
        accounts = create_accounts(db, organization.id)
        work_items = create_catalog(db, organization.id)
        clients = create_clients(db, organization.id, args.clients)
        create_pricing(db, organization.id, work_items, clients)

        print("Creating orders and payments...")
        orders = create_orders_and_payments(db, organization.id, clients, work_items, accounts, args.orders)
        print(f"Orders created: {len(orders)}")

        print("Creating expenses...")
        create_expenses(db, organization.id, accounts, args.expenses)

        print("Creating invoices...")
        invoices_created = create_invoices(db, organization.id, orders, args.invoices)
        print(f"Invoices created: {invoices_created}")

        print("\nSeed completed.")
        print("Organization:")
        print(f"  Name: {organization.name}")
        print(f"  ID:   {organization.id}")
        print("Headers for API requests:")
        print(f"  X-Organization-ID: {organization.id}")
    finally:
        db.close()


if __name__ == "__main__":
    main()

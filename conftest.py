"""
Shared pytest fixtures

Every test gets a fresh in-memory SQLite schema. The API client shares the
test's session so service-level assertions and HTTP calls see the same data.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from decimal import Decimal
from uuid import uuid4
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database.database import Base, get_db
from app.modules.organization.models import Organization
from app.modules.clients.models import Client
from app.modules.accounts.models import Account, AccountType
from app.modules.orders.models import Order


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def file_sessions(tmp_path):
    """
    Session factory over a file-backed SQLite database, for tests that run
    separate sessions on several threads.

    Transactions start with BEGIN IMMEDIATE so concurrent writers queue on
    the database lock instead of failing on a lock upgrade.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30}
    )

    @event.listens_for(engine, "connect")
    def disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture
def organization(db_session):
    org = Organization(id=uuid4(), name="Зуботехническая лаборатория")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def other_organization(db_session):
    org = Organization(id=uuid4(), name="Другая лаборатория")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def client_record(db_session, organization):
    client = Client(organization_id=organization.id, name="Стоматология Улыбка", inn="7701234567")
    db_session.add(client)
    db_session.commit()
    return client


@pytest.fixture
def make_account(db_session, organization):
    """Factory: account with balance equal to its opening balance"""
    def _make(name="Касса", opening_balance="0", organization_id=None, is_active=True):
        opening = Decimal(opening_balance)
        account = Account(
            organization_id=organization_id or organization.id,
            name=name,
            type=AccountType.CASH,
            opening_balance=opening,
            balance=opening,
            is_active=is_active
        )
        db_session.add(account)
        db_session.commit()
        return account
    return _make


@pytest.fixture
def account(make_account):
    return make_account()


@pytest.fixture
def make_order(db_session, organization, client_record):
    def _make(total_price="1000", order_number="З-001"):
        order = Order(
            organization_id=organization.id,
            client_id=client_record.id,
            order_number=order_number,
            total_price=Decimal(total_price)
        )
        db_session.add(order)
        db_session.commit()
        return order
    return _make


@pytest.fixture
def api_client(db_session, organization):
    """TestClient scoped to ``organization`` via the X-Organization-ID header"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, headers={"X-Organization-ID": str(organization.id)}) as test_client:
        yield test_client
    app.dependency_overrides.clear()

"""
Tests for the invoices module

Covers:
- Number / sequence number assignment across calendar years
- Counter seeding from invoices that predate the counters, including gaps
- Numbers never reused after a delete, distinct under concurrent creation
- Billing-entity (requisites) cascade
- Mark paid exactly once, paid invoices cannot be deleted
- REST endpoints
"""

import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import NotFoundError, ValidationError
from app.modules.invoices.models import Invoice, InvoiceItem, InvoiceSequence
from app.modules.invoices.numbering import InvoiceNumberingService, format_invoice_number
from app.modules.invoices.schemas import InvoiceCreate, InvoiceItemCreate, InvoiceFilters
from app.modules.invoices.service import InvoiceService
from app.modules.clients.models import Client
from app.modules.organization.models import Organization, OrgRequisites


def issue(db_session, organization, client_record, issue_date=None, items=None, **kwargs):
    data = InvoiceCreate(
        client_id=client_record.id,
        issue_date=issue_date or date(2025, 3, 1),
        items=items or [InvoiceItemCreate(description="Коронка", quantity=2, price=Decimal("1500"))],
        **kwargs
    )
    return InvoiceService(db_session).create_invoice(data, organization.id)


@pytest.fixture
def make_requisites(db_session, organization):
    def _make(name, is_default=False):
        requisites = OrgRequisites(organization_id=organization.id, name=name, inn="7700000000", is_default=is_default)
        db_session.add(requisites)
        db_session.commit()
        return requisites
    return _make


# ===== NUMBERING =====

class TestInvoiceNumbering:

    def test_format(self):
        assert format_invoice_number(1) == "С-0001"
        assert format_invoice_number(12345) == "С-12345"

    def test_numbers_across_years(self, db_session, organization, client_record):
        for day in (10, 11, 12):
            issue(db_session, organization, client_record, issue_date=date(2025, 2, day))

        fourth = issue(db_session, organization, client_record, issue_date=date(2025, 5, 1))
        assert fourth.number == "С-0004"
        assert fourth.sequence_number == 4

        next_year = issue(db_session, organization, client_record, issue_date=date(2026, 1, 15))
        assert next_year.number == "С-0005"
        assert next_year.sequence_number == 1

    def test_counters_are_per_organization(self, db_session, organization, other_organization, client_record):
        other_client = Client(organization_id=other_organization.id, name="Другая клиника")
        db_session.add(other_client)
        db_session.commit()

        issue(db_session, organization, client_record)
        issue(db_session, organization, client_record)
        other = issue(db_session, other_organization, other_client)

        assert other.number == "С-0001"
        assert other.sequence_number == 1

    def test_seeds_from_existing_invoices(self, db_session, organization, client_record):
        existing = [(1, date(2024, 12, 30), 1), (2, date(2025, 1, 5), 1), (3, date(2025, 1, 6), 2)]
        for n, issued, sequence_number in existing:
            db_session.add(Invoice(
                organization_id=organization.id,
                client_id=client_record.id,
                number=f"С-{n:04d}",
                sequence_number=sequence_number,
                issue_date=issued,
                total=Decimal("100")
            ))
        db_session.commit()
        assert db_session.query(InvoiceSequence).count() == 0

        number, sequence_number = InvoiceNumberingService(db_session).next_identifiers(organization.id, date(2025, 2, 1))
        db_session.commit()

        assert number == "С-0004"
        assert sequence_number == 3

    def test_seeding_skips_past_gaps(self, db_session, organization, client_record):
        for n in (1, 3):
            db_session.add(Invoice(
                organization_id=organization.id,
                client_id=client_record.id,
                number=f"С-{n:04d}",
                sequence_number=n,
                issue_date=date(2025, 1, n),
                total=Decimal("100")
            ))
        db_session.commit()

        first = issue(db_session, organization, client_record, issue_date=date(2025, 2, 1))
        second = issue(db_session, organization, client_record, issue_date=date(2025, 2, 2))

        assert (first.number, first.sequence_number) == ("С-0004", 4)
        assert (second.number, second.sequence_number) == ("С-0005", 5)

    def test_deleted_number_never_reused(self, db_session, organization, client_record):
        issue(db_session, organization, client_record)
        latest = issue(db_session, organization, client_record)
        InvoiceService(db_session).delete_invoice(latest.id, organization.id)

        assert issue(db_session, organization, client_record).number == "С-0003"

    def test_number_collision_is_a_validation_error(self, db_session, organization, client_record):
        db_session.add(Invoice(
            organization_id=organization.id,
            client_id=client_record.id,
            number="С-0001",
            sequence_number=1,
            issue_date=date(2025, 1, 1),
            total=Decimal("100")
        ))
        db_session.add(InvoiceSequence(organization_id=organization.id, period_year=InvoiceSequence.ALL_TIME, current_number=0))
        db_session.commit()

        with pytest.raises(ValidationError):
            issue(db_session, organization, client_record)
        assert db_session.query(Invoice).count() == 1

    def test_rejected_creation_consumes_no_number(self, db_session, organization, client_record):
        issue(db_session, organization, client_record)

        with pytest.raises(NotFoundError):
            issue(db_session, organization, client_record, org_requisites_id=uuid4())

        assert issue(db_session, organization, client_record).number == "С-0002"


class TestConcurrentNumbering:
    """Invoices created from separate sessions at the same time"""

    def test_concurrent_creations_get_distinct_numbers(self, file_sessions):
        with file_sessions() as session:
            org = Organization(name="Лаборатория")
            session.add(org)
            session.flush()
            client = Client(organization_id=org.id, name="Клиника")
            session.add(client)
            session.commit()
            organization_id, client_id = org.id, client.id

        def create(_):
            with file_sessions() as session:
                invoice = InvoiceService(session).create_invoice(InvoiceCreate(
                    client_id=client_id,
                    issue_date=date(2025, 4, 1),
                    items=[InvoiceItemCreate(description="Коронка", price=Decimal("1000"))]
                ), organization_id)
                return invoice.number, invoice.sequence_number

        with ThreadPoolExecutor(max_workers=8) as pool:
            assigned = list(pool.map(create, range(16)))

        assert sorted(number for number, _ in assigned) == [f"С-{n:04d}" for n in range(1, 17)]
        assert sorted(sequence for _, sequence in assigned) == list(range(1, 17))


# ===== CREATION =====

class TestInvoiceService:

    def test_total_from_items(self, db_session, organization, client_record):
        invoice = issue(db_session, organization, client_record, items=[
            InvoiceItemCreate(description="Коронка", quantity=2, price=Decimal("1500")),
            InvoiceItemCreate(description="Вкладка", quantity=1, price=Decimal("750.50")),
        ])

        assert invoice.total == Decimal("3750.50")
        assert sorted(item.total for item in invoice.items) == [Decimal("750.50"), Decimal("3000")]

    def test_requisites_cascade(self, db_session, organization, client_record, make_requisites):
        assert issue(db_session, organization, client_record).org_requisites_id is None

        default = make_requisites("ООО Лаборатория", is_default=True)
        assert issue(db_session, organization, client_record).org_requisites_id == default.id

        client_own = make_requisites("ИП Иванов")
        client_record.our_requisites_id = client_own.id
        db_session.commit()
        assert issue(db_session, organization, client_record).org_requisites_id == client_own.id

        explicit = make_requisites("ООО Другая")
        invoice = issue(db_session, organization, client_record, org_requisites_id=explicit.id)
        assert invoice.org_requisites_id == explicit.id

    def test_foreign_order_rejected(self, db_session, organization, client_record):
        with pytest.raises(NotFoundError):
            issue(db_session, organization, client_record, items=[
                InvoiceItemCreate(description="Коронка", price=Decimal("100"), order_id=uuid4())
            ])
        assert db_session.query(Invoice).count() == 0

    def test_mark_paid_once(self, db_session, organization, client_record):
        invoice = issue(db_session, organization, client_record)
        service = InvoiceService(db_session)

        assert service.mark_paid(invoice.id, organization.id).is_paid is True
        with pytest.raises(ValidationError):
            service.mark_paid(invoice.id, organization.id)

    def test_paid_invoice_cannot_be_deleted(self, db_session, organization, client_record):
        invoice = issue(db_session, organization, client_record)
        service = InvoiceService(db_session)
        service.mark_paid(invoice.id, organization.id)

        with pytest.raises(ValidationError):
            service.delete_invoice(invoice.id, organization.id)
        assert db_session.query(InvoiceItem).count() == 1

    def test_delete_cascades_items(self, db_session, organization, client_record):
        invoice = issue(db_session, organization, client_record)

        InvoiceService(db_session).delete_invoice(invoice.id, organization.id)

        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0

    def test_list_filters(self, db_session, organization, client_record):
        paid = issue(db_session, organization, client_record)
        issue(db_session, organization, client_record)
        InvoiceService(db_session).mark_paid(paid.id, organization.id)

        result = InvoiceService(db_session).list_invoices(organization.id, InvoiceFilters(is_paid=False))
        assert result.total == 1
        assert result.invoices[0].number == "С-0002"

    def test_foreign_invoice_not_found(self, db_session, organization, other_organization, client_record):
        invoice = issue(db_session, organization, client_record)
        with pytest.raises(NotFoundError):
            InvoiceService(db_session).get_invoice(invoice.id, other_organization.id)


# ===== API =====

class TestInvoicesAPI:

    def test_create_get_pay_delete(self, api_client, client_record):
        response = api_client.post("/invoices/", json={
            "client_id": str(client_record.id),
            "issue_date": "2025-10-01",
            "billing_period": "Сентябрь 2025",
            "items": [{"description": "Коронка", "quantity": 3, "price": "1000"}]
        })
        assert response.status_code == 201
        data = response.json()
        assert data["number"] == "С-0001"
        assert Decimal(data["total"]) == Decimal("3000")
        assert data["variant"] == "DETAILED"

        response = api_client.get(f"/invoices/{data['id']}")
        assert response.status_code == 200
        assert len(response.json()["items"]) == 1

        response = api_client.patch(f"/invoices/{data['id']}/pay")
        assert response.json()["is_paid"] is True

        response = api_client.delete(f"/invoices/{data['id']}")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_invoice_without_items_rejected(self, api_client, client_record):
        response = api_client.post("/invoices/", json={"client_id": str(client_record.id), "items": []})
        assert response.status_code == 422

    def test_list_endpoint(self, api_client, db_session, organization, client_record):
        issue(db_session, organization, client_record)
        response = api_client.get("/invoices/", params={"client_id": str(client_record.id)})
        assert response.status_code == 200
        assert response.json()["total"] == 1

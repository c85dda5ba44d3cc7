"""
Tests for the pricing module

Covers:
- Resolution cascade: client override > linked active price list > base price
- Organization scoping and link order of the cascade
- Order line pricing with manual prices and discounts
- Price list management (single default, bulk items, clone, client links)
- Price list comparison
- REST endpoints
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import NotFoundError, ValidationError
from app.modules.pricing.models import WorkItem, PriceList, PriceListItem, ClientPriceList, ClientPriceItem
from app.modules.pricing.resolver import PriceResolver, ClientOverride, PriceListMatch, BasePrice
from app.modules.pricing.schemas import (
    WorkItemCreate, PriceListCreate, PriceListUpdate, PriceListItemsUpsert, PriceListItemIn,
    PriceListClone, ClientPriceSet
)
from app.modules.pricing.service import PricingService


@pytest.fixture
def work_item(db_session, organization):
    item = WorkItem(organization_id=organization.id, code="К-01", name="Коронка металлокерамическая", base_price=Decimal("100"))
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture
def make_price_list(db_session, organization):
    def _make(name, prices, is_active=True, organization_id=None):
        price_list = PriceList(
            organization_id=organization_id or organization.id,
            name=name,
            code=name.upper(),
            is_active=is_active
        )
        price_list.items = [PriceListItem(work_item_id=wi.id, price=Decimal(p)) for wi, p in prices]
        db_session.add(price_list)
        db_session.commit()
        return price_list
    return _make


def link(db_session, client_record, price_list, position):
    db_session.add(ClientPriceList(client_id=client_record.id, price_list_id=price_list.id, position=position))
    db_session.commit()


# ===== RESOLUTION =====

class TestPriceResolver:
    """Precedence of the price cascade"""

    def test_base_price_then_client_override(self, db_session, organization, client_record, work_item, make_price_list):
        resolver = PriceResolver(db_session)

        resolved = resolver.resolve_price(client_record.id, work_item.id, organization.id)
        assert resolved == BasePrice(price=Decimal("100"))
        assert resolved.source == "base_price"

        price_list = make_price_list("Основной", [(work_item, "90")])
        link(db_session, client_record, price_list, 1)
        db_session.add(ClientPriceItem(client_id=client_record.id, work_item_id=work_item.id, price=Decimal("80")))
        db_session.commit()

        resolved = resolver.resolve_price(client_record.id, work_item.id, organization.id)
        assert isinstance(resolved, ClientOverride)
        assert resolved.price == Decimal("80")
        assert resolved.source == "client_override"

    def test_linked_price_list_match(self, db_session, organization, client_record, work_item, make_price_list):
        price_list = make_price_list("Клиники 2025", [(work_item, "90")])
        link(db_session, client_record, price_list, 1)

        resolved = PriceResolver(db_session).resolve_price(client_record.id, work_item.id, organization.id)

        assert resolved == PriceListMatch(price=Decimal("90"), price_list_name="Клиники 2025")
        assert resolved.source == "price_list"

    def test_inactive_list_skipped(self, db_session, organization, client_record, work_item, make_price_list):
        archived = make_price_list("Архив", [(work_item, "70")], is_active=False)
        link(db_session, client_record, archived, 1)

        resolved = PriceResolver(db_session).resolve_price(client_record.id, work_item.id, organization.id)
        assert resolved == BasePrice(price=Decimal("100"))

    def test_list_without_item_falls_through(self, db_session, organization, client_record, work_item, make_price_list):
        other_item = WorkItem(organization_id=organization.id, code="К-02", name="Вкладка", base_price=Decimal("50"))
        db_session.add(other_item)
        db_session.commit()
        price_list = make_price_list("Только вкладки", [(other_item, "45")])
        link(db_session, client_record, price_list, 1)

        resolved = PriceResolver(db_session).resolve_price(client_record.id, work_item.id, organization.id)
        assert isinstance(resolved, BasePrice)

    def test_lowest_position_wins(self, db_session, organization, client_record, work_item, make_price_list):
        first = make_price_list("Старый", [(work_item, "95")])
        second = make_price_list("Новый", [(work_item, "85")])
        link(db_session, client_record, second, 2)
        link(db_session, client_record, first, 1)

        resolved = PriceResolver(db_session).resolve_price(client_record.id, work_item.id, organization.id)
        assert resolved.price_list_name == "Старый"
        assert resolved.price == Decimal("95")

    def test_unknown_work_item_resolves_to_zero(self, db_session, organization, client_record):
        resolved = PriceResolver(db_session).resolve_price(client_record.id, uuid4(), organization.id)
        assert resolved == BasePrice(price=Decimal("0"))

    def test_foreign_work_item_resolves_like_missing(self, db_session, organization, other_organization, client_record):
        foreign_item = WorkItem(organization_id=other_organization.id, code="К-01", name="Чужая коронка", base_price=Decimal("777"))
        db_session.add(foreign_item)
        db_session.commit()

        resolved = PriceResolver(db_session).resolve_price(client_record.id, foreign_item.id, organization.id)

        assert resolved == BasePrice(price=Decimal("0"))
        assert resolved.source == "base_price"

    def test_foreign_price_list_link_ignored(self, db_session, organization, other_organization, client_record, work_item, make_price_list):
        foreign_list = make_price_list("Чужой", [(work_item, "10")], organization_id=other_organization.id)
        link(db_session, client_record, foreign_list, 1)

        resolved = PriceResolver(db_session).resolve_price(client_record.id, work_item.id, organization.id)
        assert resolved == BasePrice(price=Decimal("100"))


class TestPriceLine:
    """Order line pricing on top of the cascade"""

    def test_discount_applies_to_line_total(self, db_session, organization, client_record, work_item):
        line = PriceResolver(db_session).price_line(
            client_record.id, work_item.id, organization.id, quantity=3, discount_pct=Decimal("10")
        )

        assert line.unit_price == Decimal("100")
        assert line.source == "base_price"
        assert line.discount_amount == Decimal("30.00")
        assert line.total == Decimal("270.00")

    def test_manual_price_bypasses_cascade(self, db_session, organization, client_record, work_item):
        db_session.add(ClientPriceItem(client_id=client_record.id, work_item_id=work_item.id, price=Decimal("80")))
        db_session.commit()

        line = PriceResolver(db_session).price_line(
            client_record.id, work_item.id, organization.id, quantity=2, manual_price=Decimal("120")
        )
        assert line.source == "manual"
        assert line.total == Decimal("240.00")


# ===== MANAGEMENT =====

class TestPricingService:

    def test_work_item_code_unique(self, db_session, organization, work_item):
        with pytest.raises(ValidationError):
            PricingService(db_session).create_work_item(
                WorkItemCreate(code="К-01", name="Дубликат", base_price=Decimal("1")), organization.id
            )

    def test_single_default_price_list(self, db_session, organization):
        service = PricingService(db_session)
        first = service.create_price_list(PriceListCreate(name="A", code="A", is_default=True), organization.id)
        second = service.create_price_list(PriceListCreate(name="B", code="B", is_default=True), organization.id)

        db_session.refresh(first)
        assert first.is_default is False
        assert second.is_default is True

        service.update_price_list(first.id, PriceListUpdate(is_default=True), organization.id)
        db_session.refresh(second)
        assert second.is_default is False

    def test_upsert_items_inserts_and_reprices(self, db_session, organization, work_item):
        service = PricingService(db_session)
        price_list = service.create_price_list(PriceListCreate(name="Основной", code="MAIN"), organization.id)

        service.upsert_items(price_list.id, PriceListItemsUpsert(items=[
            PriceListItemIn(work_item_id=work_item.id, price=Decimal("90"))
        ]), organization.id)
        upserted = service.upsert_items(price_list.id, PriceListItemsUpsert(items=[
            PriceListItemIn(work_item_id=work_item.id, price=Decimal("92.50"))
        ]), organization.id)

        items = db_session.query(PriceListItem).filter(PriceListItem.price_list_id == price_list.id).all()
        assert upserted == 1
        assert len(items) == 1
        assert items[0].price == Decimal("92.50")

    def test_upsert_rejects_foreign_work_item(self, db_session, organization, other_organization):
        foreign_item = WorkItem(organization_id=other_organization.id, code="X", name="Чужая работа", base_price=Decimal("1"))
        db_session.add(foreign_item)
        db_session.commit()
        service = PricingService(db_session)
        price_list = service.create_price_list(PriceListCreate(name="Основной", code="MAIN"), organization.id)

        with pytest.raises(NotFoundError):
            service.upsert_items(price_list.id, PriceListItemsUpsert(items=[
                PriceListItemIn(work_item_id=foreign_item.id, price=Decimal("1"))
            ]), organization.id)

    def test_clone_is_inactive_copy(self, db_session, organization, work_item, make_price_list):
        source = make_price_list("Основной", [(work_item, "90")])
        source.is_default = True
        db_session.commit()

        clone = PricingService(db_session).clone_price_list(source.id, PriceListClone(), organization.id)

        assert clone.name == "Основной (копия)"
        assert clone.code == "ОСНОВНОЙ_copy"
        assert clone.is_active is False
        assert clone.is_default is False
        assert [(i.work_item_id, i.price) for i in clone.items] == [(work_item.id, Decimal("90"))]

    def test_link_is_idempotent_and_unlink(self, db_session, organization, client_record, work_item, make_price_list):
        service = PricingService(db_session)
        price_list = make_price_list("Основной", [(work_item, "90")])

        service.link_client(price_list.id, client_record.id, organization.id)
        service.link_client(price_list.id, client_record.id, organization.id)
        assert db_session.query(ClientPriceList).count() == 1

        service.unlink_client(price_list.id, client_record.id, organization.id)
        assert db_session.query(ClientPriceList).count() == 0

    def test_link_order_follows_link_calls(self, db_session, organization, client_record, work_item):
        service = PricingService(db_session)
        lists = {}
        for code, price in (("A", "90"), ("B", "80")):
            lists[code] = service.create_price_list(PriceListCreate(name=code, code=code), organization.id)
            service.upsert_items(lists[code].id, PriceListItemsUpsert(items=[
                PriceListItemIn(work_item_id=work_item.id, price=Decimal(price))
            ]), organization.id)

        first = service.link_client(lists["A"].id, client_record.id, organization.id)
        second = service.link_client(lists["B"].id, client_record.id, organization.id)
        assert (first.position, second.position) == (1, 2)

        resolver = PriceResolver(db_session)
        for _ in range(5):
            assert resolver.resolve_price(client_record.id, work_item.id, organization.id).price_list_name == "A"

        service.unlink_client(lists["A"].id, client_record.id, organization.id)
        relinked = service.link_client(lists["A"].id, client_record.id, organization.id)

        assert relinked.position == 3
        assert resolver.resolve_price(client_record.id, work_item.id, organization.id).price_list_name == "B"

    def test_delete_price_list_cascades(self, db_session, organization, client_record, work_item, make_price_list):
        price_list = make_price_list("Основной", [(work_item, "90")])
        link(db_session, client_record, price_list, 1)

        PricingService(db_session).delete_price_list(price_list.id, organization.id)

        assert db_session.query(PriceListItem).count() == 0
        assert db_session.query(ClientPriceList).count() == 0

    def test_client_price_set_and_remove(self, db_session, organization, client_record, work_item):
        service = PricingService(db_session)
        service.set_client_price(client_record.id, ClientPriceSet(work_item_id=work_item.id, price=Decimal("80")), organization.id)
        service.set_client_price(client_record.id, ClientPriceSet(work_item_id=work_item.id, price=Decimal("75")), organization.id)

        overrides = service.list_client_prices(client_record.id, organization.id)
        assert [o.price for o in overrides] == [Decimal("75")]

        service.remove_client_price(client_record.id, work_item.id, organization.id)
        with pytest.raises(NotFoundError):
            service.remove_client_price(client_record.id, work_item.id, organization.id)

    def test_price_matrix(self, db_session, organization, work_item, make_price_list):
        price_list = make_price_list("Основной", [(work_item, "90")])
        make_price_list("Архив", [(work_item, "10")], is_active=False)

        matrix = PricingService(db_session).price_matrix(organization.id)

        assert [c.name for c in matrix.columns] == ["Основной"]
        assert matrix.rows[0].prices == {price_list.id: Decimal("90")}

    def test_compare_price_lists(self, db_session, organization, work_item, make_price_list):
        inlay = WorkItem(organization_id=organization.id, code="В-01", name="Вкладка", base_price=Decimal("50"))
        bridge = WorkItem(organization_id=organization.id, code="М-01", name="Мост", base_price=Decimal("300"))
        db_session.add_all([inlay, bridge])
        db_session.commit()
        list_a = make_price_list("Основной", [(work_item, "90"), (inlay, "45")])
        list_b = make_price_list("Партнеры", [(work_item, "80"), (bridge, "250")])

        comparison = PricingService(db_session).compare_price_lists(list_a.id, list_b.id, organization.id)

        assert comparison.list_a.name == "Основной"
        assert [(r.work_item.code, r.price_a, r.price_b, r.diff) for r in comparison.rows] == [
            ("В-01", Decimal("45"), None, None),
            ("К-01", Decimal("90"), Decimal("80"), Decimal("-10")),
            ("М-01", None, Decimal("250"), None),
        ]

    def test_compare_requires_two_lists(self, db_session, organization, work_item, make_price_list):
        price_list = make_price_list("Основной", [(work_item, "90")])
        service = PricingService(db_session)

        with pytest.raises(ValidationError):
            service.compare_price_lists(price_list.id, price_list.id, organization.id)
        with pytest.raises(NotFoundError):
            service.compare_price_lists(price_list.id, uuid4(), organization.id)


# ===== API =====

class TestPricingAPI:

    def test_resolve_endpoint(self, api_client, client_record, work_item):
        response = api_client.get("/pricing/resolve", params={
            "client_id": str(client_record.id),
            "work_item_id": str(work_item.id)
        })
        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "base_price"
        assert Decimal(data["price"]) == Decimal("100")
        assert data["price_list_name"] is None

    def test_resolve_after_override(self, api_client, client_record, work_item):
        response = api_client.put(f"/pricing/clients/{client_record.id}/prices", json={
            "work_item_id": str(work_item.id),
            "price": "80"
        })
        assert response.status_code == 200

        response = api_client.get("/pricing/resolve", params={
            "client_id": str(client_record.id),
            "work_item_id": str(work_item.id)
        })
        assert response.json()["source"] == "client_override"

    def test_price_list_lifecycle(self, api_client, client_record, work_item):
        response = api_client.post("/pricing/", json={"name": "Клиники", "code": "CLN"})
        assert response.status_code == 201
        price_list_id = response.json()["id"]

        response = api_client.put(f"/pricing/{price_list_id}/items", json={
            "items": [{"work_item_id": str(work_item.id), "price": "88"}]
        })
        assert response.json() == {"upserted": 1}

        response = api_client.post(f"/pricing/{price_list_id}/clients", json={"client_id": str(client_record.id)})
        assert response.status_code == 201

        response = api_client.get("/pricing/resolve", params={
            "client_id": str(client_record.id),
            "work_item_id": str(work_item.id)
        })
        data = response.json()
        assert data["source"] == "price_list"
        assert data["price_list_name"] == "Клиники"

        response = api_client.post(f"/pricing/{price_list_id}/clone", json={})
        assert response.status_code == 201
        assert response.json()["is_active"] is False
        assert len(response.json()["items"]) == 1

    def test_unknown_price_list(self, api_client):
        response = api_client.get(f"/pricing/{uuid4()}")
        assert response.status_code == 404

    def test_resolve_foreign_work_item(self, api_client, db_session, other_organization, client_record):
        foreign_item = WorkItem(organization_id=other_organization.id, code="К-01", name="Чужая коронка", base_price=Decimal("777"))
        db_session.add(foreign_item)
        db_session.commit()

        response = api_client.get("/pricing/resolve", params={
            "client_id": str(client_record.id),
            "work_item_id": str(foreign_item.id)
        })
        assert response.status_code == 200
        assert Decimal(response.json()["price"]) == Decimal("0")
        assert response.json()["source"] == "base_price"

    def test_quote_endpoint(self, api_client, client_record, work_item):
        response = api_client.post("/pricing/quote", json={
            "client_id": str(client_record.id),
            "work_item_id": str(work_item.id),
            "quantity": 4,
            "discount_pct": "5"
        })
        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "base_price"
        assert Decimal(data["discount_amount"]) == Decimal("20.00")
        assert Decimal(data["total"]) == Decimal("380.00")

    def test_quote_rejects_bad_discount(self, api_client, client_record, work_item):
        response = api_client.post("/pricing/quote", json={
            "client_id": str(client_record.id),
            "work_item_id": str(work_item.id),
            "discount_pct": "150"
        })
        assert response.status_code == 422

    def test_compare_endpoint(self, api_client, work_item, make_price_list):
        list_a = make_price_list("Основной", [(work_item, "90")])
        list_b = make_price_list("Партнеры", [(work_item, "99.50")])

        response = api_client.get("/pricing/compare", params={"a": str(list_a.id), "b": str(list_b.id)})
        assert response.status_code == 200
        data = response.json()
        assert data["list_b"]["name"] == "Партнеры"
        assert Decimal(data["rows"][0]["diff"]) == Decimal("9.50")

        response = api_client.get("/pricing/compare", params={"a": str(list_a.id), "b": str(list_a.id)})
        assert response.status_code == 400

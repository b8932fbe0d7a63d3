# Overview: Pytest coverage for order numbering, order codes and order persistence.

import logging

import pytest

from storefront.services import order_service
from storefront.services.order_service import (
    InvalidOrderError,
    calculate_total,
    derive_order_code,
)

CART = [
    {"id": "p1", "name": "Widget", "price": 10, "quantity": 2},
    {"id": "p2", "name": "Gadget", "price": 5, "quantity": 1},
]


def _order(user_id: str = "cu000001", **overrides) -> dict:
    data = {
        "userId": user_id,
        "items": CART,
        "shippingAddress": {"zipCode": "90210", "country": "US", "city": "Beverly Hills"},
        "customer": {"firstName": "Ada", "email": "ada@example.com"},
        "sellerMessage": "Gift wrap please",
    }
    data.update(overrides)
    return data


class TestOrderCode:
    def test_reference_code(self):
        assert derive_order_code("90210", "US", CART, 3) == "cu90210uswiga3none"

    def test_is_deterministic(self):
        first = derive_order_code("90210", "US", CART, 3, "fr000002")
        second = derive_order_code("90210", "US", CART, 3, "fr000002")
        assert first == second == "cu90210uswiga3fr000002"

    def test_short_and_non_letter_names_kept_verbatim(self):
        items = [{"name": "A"}, {"name": "3D Printer"}, {"name": "ÉCLAIR"}]
        assert derive_order_code("SW1A 1AA", "gb", items, 12) == "cuSW1A 1AAgba3déc12none"

    def test_total(self):
        assert calculate_total(CART) == 25
        assert calculate_total([{"name": "Tea", "price": 2.5, "quantity": 3}]) == 7.5

    @pytest.mark.parametrize("items", [
        [],
        None,
        [{"name": "Widget", "price": "10", "quantity": 1}],
        [{"name": "Widget", "price": 10, "quantity": True}],
        [{"name": "Widget", "quantity": 1}],
        [{"price": 10, "quantity": 1}],
    ])
    def test_total_rejects_malformed_items(self, items):
        with pytest.raises(InvalidOrderError):
            calculate_total(items)


class TestCreateOrder:
    def test_create_order_persists_pending_order(self, store):
        result = order_service.create_order(_order())

        assert result["orderNumber"] == 1
        assert result["orderCode"] == "cu90210uswiga1none"

        order = order_service.get_order(result["orderId"])
        assert order["id"] == result["orderId"]
        assert order["userId"] == "cu000001"
        assert order["status"] == "pending"
        assert order["totalAmount"] == 25
        assert order["franchiseId"] is None
        assert order["sellerMessage"] == "Gift wrap please"
        assert order["createdAt"].endswith("Z")
        assert [item["name"] for item in order["items"]] == ["Widget", "Gadget"]

    def test_numbers_increase_per_user(self, store):
        numbers = [order_service.create_order(_order())["orderNumber"] for _ in range(3)]
        other = order_service.create_order(_order("cu000002"))

        assert numbers == [1, 2, 3]
        assert other["orderNumber"] == 1
        assert order_service.next_order_number("cu000001") == 4

    def test_third_order_code(self, store):
        order_service.create_order(_order())
        order_service.create_order(_order())
        result = order_service.create_order(_order())

        assert result["orderCode"] == "cu90210uswiga3none"

    def test_franchise_tag(self, store):
        result = order_service.create_order(_order(franchiseId="fr000003"))
        assert result["orderCode"].endswith("1fr000003")
        assert order_service.get_order(result["orderId"])["franchiseId"] == "fr000003"

    def test_numbering_continues_after_existing_orders(self, store):
        # Orders written before the per-user counter existed
        store.add_document("orders", {"userId": "cu000001", "orderNumber": 1})
        store.add_document("orders", {"userId": "cu000001", "orderNumber": 2})

        assert order_service.next_order_number("cu000001") == 3
        assert order_service.create_order(_order())["orderNumber"] == 3
        assert store.get_document("counters", "orderCounter_cu000001").get("currentCount") == 3

    def test_seed_count_stays_inside_transaction(self, store, monkeypatch):
        store.add_document("orders", {"userId": "cu000001", "orderNumber": 1})

        def _fail(*args, **kwargs):
            raise AssertionError("count_equal called during checkout")

        monkeypatch.setattr(order_service.document_store, "count_equal", _fail)
        assert order_service.create_order(_order())["orderNumber"] == 2

    @pytest.mark.parametrize("overrides", [
        {"userId": None},
        {"items": []},
        {"items": [{"name": "Widget", "price": None, "quantity": 1}]},
        {"shippingAddress": {"country": "US"}},
        {"shippingAddress": {"zipCode": "90210"}},
        {"shippingAddress": None},
    ])
    def test_invalid_orders_are_not_written(self, store, overrides):
        with pytest.raises(InvalidOrderError):
            order_service.create_order(_order(**overrides))
        assert store.list_documents("orders") == []


class TestOrderLookup:
    def test_lookup_requires_matching_user(self, store):
        result = order_service.create_order(_order())

        found = order_service.get_orders_by_code(result["orderCode"], "cu000001")
        assert [order["id"] for order in found] == [result["orderId"]]
        assert order_service.get_orders_by_code(result["orderCode"], "cu000002") == []

    def test_code_collision_is_reported(self, store, caplog):
        store.add_document("orders", {"userId": "cu000001", "orderCode": "cu1usab1none"})
        store.add_document("orders", {"userId": "cu000001", "orderCode": "cu1usab1none"})

        with caplog.at_level(logging.WARNING):
            found = order_service.get_orders_by_code("cu1usab1none", "cu000001")

        assert len(found) == 2
        assert "collision" in caplog.text

    def test_orders_for_user(self, store):
        first = order_service.create_order(_order())
        order_service.create_order(_order("cu000002"))
        second = order_service.create_order(_order())

        orders = order_service.get_orders_for_user("cu000001")
        assert [order["id"] for order in orders] == [first["orderId"], second["orderId"]]

    def test_missing_order(self, store):
        assert order_service.get_order("doesnotexist") is None

"""
Catalog service tests.

Verifies:
- adjust_stock never lets stock go negative
- Direct stock edits go through the same guard
- Listing, search, categories and low-stock queries
"""

import pytest

from zes_pos.extensions import db
from zes_pos.models import Product
from zes_pos.services import catalog_service
from zes_pos.validation import ValidationError, NotFoundError


class TestAdjustStock:

    def test_adds_and_removes(self, make_product):
        product = make_product(stock=10)
        assert catalog_service.adjust_stock(product.id, 5) == 15
        assert catalog_service.adjust_stock(product.id, -15) == 0
        assert db.session.get(Product, product.id).stock == 0

    def test_rejects_negative_result_and_keeps_stock(self, make_product):
        product = make_product(stock=3)

        with pytest.raises(ValidationError, match="Insufficient stock"):
            catalog_service.adjust_stock(product.id, -5)

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 3

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.adjust_stock("missing", 1)

    def test_rejects_non_integer_delta(self, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            catalog_service.adjust_stock(product.id, 1.5)


class TestProductCrud:

    def test_create_rejects_negative_stock(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product(patch={"name": "Bad", "price_per_unit_cents": 100, "stock": -1})

    def test_update_stock_target_uses_guard(self, make_product):
        product = make_product(stock=4)

        updated = catalog_service.update_product(product_id=product.id, patch={"stock": 9, "price_per_unit_cents": 40000})
        assert updated.stock == 9
        assert updated.price_per_unit_cents == 40000

        with pytest.raises(ValidationError):
            catalog_service.update_product(product_id=product.id, patch={"stock": -2})
        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 9

    def test_update_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.update_product(product_id="missing", patch={"name": "x"})

    def test_delete(self, make_product):
        product = make_product()
        catalog_service.delete_product(product_id=product.id)
        with pytest.raises(NotFoundError):
            catalog_service.get_product(product.id)

    def test_cost_hidden_unless_requested(self, make_product):
        product = make_product(cost=12345)
        assert "cost_per_unit_cents" not in product.to_dict()
        assert product.to_dict(include_cost=True)["cost_per_unit_cents"] == 12345


class TestCatalogQueries:

    def test_list_filter_and_search(self, make_product):
        make_product(name="LED Bulb 12W", category="Lighting")
        make_product(name="Copper Wire 1.5mm", category="Wiring", unit="meter")
        make_product(name="Switch 2-Gang", category="Switches")

        assert [p.name for p in catalog_service.list_products()] == [
            "Copper Wire 1.5mm", "LED Bulb 12W", "Switch 2-Gang",
        ]
        assert [p.name for p in catalog_service.list_products(category="Wiring")] == ["Copper Wire 1.5mm"]
        assert [p.name for p in catalog_service.list_products(q="led")] == ["LED Bulb 12W"]
        assert [p.name for p in catalog_service.list_products(q="switch")] == ["Switch 2-Gang"]

    def test_categories_are_distinct_and_sorted(self, make_product):
        make_product(name="A", category="Wiring")
        make_product(name="B", category="Lighting")
        make_product(name="C", category="Lighting")
        make_product(name="D", category="")

        assert catalog_service.list_categories() == ["Lighting", "Wiring"]

    def test_low_stock_is_strictly_below_threshold(self, make_product):
        make_product(name="Plenty", stock=50)
        make_product(name="Edge", stock=10)
        make_product(name="Low", stock=3)

        assert [p.name for p in catalog_service.list_low_stock(10)] == ["Low"]

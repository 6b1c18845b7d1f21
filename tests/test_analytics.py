from datetime import datetime

import pytest

from storefront.application.analytics_service import _bucket
from storefront.domain.enums import ProductStatus

@pytest.fixture
def sales(client, auth, customer, order_payload):
    """One prepaid order of two units (1500) and one cash-on-delivery order of one unit (750)."""
    assert client.post("/orders/", json=order_payload(quantity=2), headers=auth(customer)).status_code == 201
    cod = order_payload(quantity=1, paid=False)
    cod.pop("provider_order_id")
    assert client.post("/orders/", json=cod, headers=auth(customer)).status_code == 201

@pytest.mark.parametrize("period,expected", [
    ("daily", "2024-06-18"),
    ("weekly", "2024-W25"),
    ("monthly", "2024-06"),
    ("yearly", "2024"),
])
def test_bucket_keys(period, expected):
    assert _bucket(datetime(2024, 6, 18, 10, 30), period) == expected

class TestStorefront:
    def test_top_products_by_units(self, client, sales, catalog):
        products = client.get("/analytics/top-products").json()["products"]
        assert products == [{"id": catalog["product"].id, "name": "Linen Shirt", "sales": 3, "revenue": 2250.0}]

    def test_top_products_empty_without_orders(self, client):
        assert client.get("/analytics/top-products").json()["products"] == []

    def test_best_sellers_padded_with_other_products(self, client, seed, sales, catalog):
        seed.product(catalog["category"], name="Polo")
        products = client.get("/analytics/best-sellers").json()["products"]
        assert [p["name"] for p in products] == ["Linen Shirt", "Polo"]
        assert products[0]["img"] == "https://cdn.example.com/linen.jpg"
        assert products[0]["category"] == "Shirts"

    def test_new_arrivals_only_published(self, client, seed, catalog):
        seed.product(catalog["category"], name="Polo")
        seed.product(catalog["category"], name="Draft Tee", status=ProductStatus.DRAFT)
        names = [p["name"] for p in client.get("/analytics/new-arrivals").json()["products"]]
        assert names == ["Polo", "Linen Shirt"]

    def test_limit_is_bounded(self, client):
        assert client.get("/analytics/new-arrivals?limit=0").status_code == 400

class TestSales:
    def test_metrics(self, client, auth, admin, sales):
        metrics = client.get("/sales/metrics", headers=auth(admin)).json()["metrics"]
        assert metrics["total_revenue"] == 2250
        assert metrics["total_orders"] == 2
        assert metrics["new_customers"] == 2
        assert metrics["sales_growth"] == pytest.approx(66.67)

    def test_overview_counts_paid_orders_only(self, client, auth, admin, sales):
        overview = client.get("/sales/overview?days=30", headers=auth(admin)).json()["sales_overview"]
        assert overview == {"total_revenue": 1500.0, "total_orders": 1, "new_customers": 2, "sales_growth": 100.0}
        assert client.get("/sales/overview?days=all", headers=auth(admin)).json()["sales_overview"]["total_orders"] == 1

    @pytest.mark.parametrize("days", ["0", "-3", "week"])
    def test_overview_rejects_bad_window(self, client, auth, admin, days):
        assert client.get(f"/sales/overview?days={days}", headers=auth(admin)).status_code == 400

    def test_graph_groups_paid_revenue(self, client, auth, admin, sales):
        body = client.get("/sales/graph?period=Monthly", headers=auth(admin)).json()
        assert body["period"] == "monthly"
        assert body["data"] == [{"name": datetime.utcnow().strftime("%Y-%m"), "sales": 1500}]

    def test_graph_rejects_unknown_period(self, client, auth, admin):
        assert client.get("/sales/graph?period=hourly", headers=auth(admin)).status_code == 400

    def test_sales_require_admin(self, client, auth, customer):
        assert client.get("/sales/metrics", headers=auth(customer)).status_code == 403

"""
Tests: HTTP endpoints for pricing, admin and parameters.

Run with:
    pytest backend/tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from book_pricing.api.deps import get_services
from book_pricing.main import app
from book_pricing.services.engine import build_services
from book_pricing.services.storage import StorageError
from conftest import FIXED_EXTRA, MATRIX_DATA, OTHER_SIZE, SIZE, SIZE_KEY, selection


@pytest.fixture
def client(priced):
    app.dependency_overrides[get_services] = lambda: priced
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestPricingEndpoints:

    def test_calculate_price(self, client):
        resp = client.post("/pricing/calculate-price", json={"selection": selection(extras=[FIXED_EXTRA]), "quantity": 10})
        assert resp.status_code == 200
        body = resp.json()
        assert body["grand_total"] == 750000
        assert body["fixed_extras"] == 50000

    def test_calculate_price_rejected(self, client):
        resp = client.post("/pricing/calculate-price", json={"selection": selection(paper_weight="80"), "quantity": 10})
        assert resp.status_code == 422
        assert resp.json()["reason"] == "forbidden"

    def test_inconsistent_page_counts(self, client):
        resp = client.post(
            "/pricing/calculate-price",
            json={"selection": selection(print_type="color"), "quantity": 10},
        )
        assert resp.status_code == 422

    def test_allowed_options(self, client):
        resp = client.post("/pricing/allowed-options", json={"book_size": SIZE})
        assert resp.status_code == 200
        assert resp.json()["papers"] == {"تحریر": ["70", "100"]}

    def test_allowed_options_for_unpriced_size(self, client):
        resp = client.post("/pricing/allowed-options", json={"book_size": OTHER_SIZE})
        assert resp.status_code == 422
        assert resp.json()["reason"] == "not_configured"

    def test_validate_combination(self, client):
        resp = client.post("/pricing/validate-combination", json={"selection": selection()})
        assert resp.status_code == 200
        assert resp.json()["allowed"] is True

    def test_available_book_sizes(self, client):
        resp = client.get("/pricing/available-book-sizes")
        assert resp.status_code == 200
        enabled = [s["size"] for s in resp.json() if s["enabled"]]
        assert enabled == [SIZE_KEY]


class TestAdminEndpoints:

    def test_save_and_read_matrix(self, client):
        resp = client.put(f"/admin/matrices/{OTHER_SIZE}", json=MATRIX_DATA)
        assert resp.status_code == 200
        assert resp.json()["saved"] is True

        resp = client.get(f"/admin/matrices/{OTHER_SIZE}")
        assert resp.status_code == 200
        assert resp.json()["matrix"]["extras_costs"][FIXED_EXTRA]["type"] == "fixed"

    def test_save_unconfigured_size(self, client):
        resp = client.put("/admin/matrices/UnknownSize", json=MATRIX_DATA)
        assert resp.status_code == 422
        assert resp.json()["reason"] == "not_configured"

    def test_missing_matrix(self, client):
        assert client.get(f"/admin/matrices/{OTHER_SIZE}").status_code == 404

    def test_list_and_delete(self, client):
        listing = client.get("/admin/matrices").json()
        assert [m["book_size"] for m in listing] == [SIZE_KEY]
        assert listing[0]["canonical"] and listing[0]["configured"]

        assert client.delete(f"/admin/matrices/{SIZE_KEY}").status_code == 200
        assert client.delete(f"/admin/matrices/{SIZE_KEY}").status_code == 404

    def test_cleanup_orphans(self, client, priced, provider, params):
        provider.parameters = params.model_copy(update={"book_sizes": [OTHER_SIZE]})
        assert client.post("/admin/matrices/cleanup-orphans").json() == {"removed": 1}
        assert client.post("/admin/matrices/cleanup-orphans").json() == {"removed": 0}

    def test_migrate_keys(self, client):
        resp = client.post("/admin/matrices/migrate-keys")
        assert resp.status_code == 200
        assert resp.json()["merged"] == 0

    def test_clear_cache(self, client):
        assert client.post("/admin/cache/clear", json={"book_size": SIZE}).json() == {"cleared": SIZE_KEY}
        assert client.post("/admin/cache/clear").json() == {"cleared": "all"}

    def test_health_json_and_html(self, client):
        resp = client.get("/admin/health")
        assert resp.status_code == 200
        assert resp.json()["overall_status"] == "warning"

        resp = client.get("/admin/health", headers={"Accept": "text/html"})
        assert resp.status_code == 200
        assert "Pricing Health" in resp.text


class TestServiceEndpoints:

    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_parameters(self, client):
        body = client.get("/parameters/").json()
        assert body["book_size_keys"][SIZE] == SIZE_KEY
        assert body["slugs"]["تحریر"] == "tahrir"

    def test_storage_error_is_503(self, provider):
        class BrokenStore:
            def get(self, key):
                raise StorageError("connection timed out")

        app.dependency_overrides[get_services] = lambda: build_services(store=BrokenStore(), parameters=provider)
        try:
            resp = TestClient(app).get("/pricing/available-book-sizes")
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 503
        assert resp.json()["reason"] == "storage_error"

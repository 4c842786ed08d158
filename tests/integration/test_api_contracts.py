import pytest
from fastapi.testclient import TestClient

from autopecas.server.app import app
from autopecas.server.dependencies import get_reconcile_service, get_search_service


pytestmark = pytest.mark.integration


class _FakeSearchService:
    def __init__(self):
        self.calls = []

    async def autocomplete(self, query, limit=None):
        self.calls.append(("autocomplete", query, limit))
        return {
            "results": [{"sku": "FO-100", "titulo": "Filtro de Óleo", "matchType": "exact", "score": 900}],
            "totalMatches": 1,
            "query": query,
        }

    async def search_catalog(self, **kwargs):
        self.calls.append(("catalog", kwargs))
        return {"data": [], "pagination": {"page": kwargs["page"], "total": 0}}


class _FakeReconcileService:
    def __init__(self):
        self.csv_text = None

    async def match_skus(self, skus):
        return {"matched": list(skus), "unmatched": [], "totalImported": len(skus)}

    async def import_attributes(self, csv_text):
        self.csv_text = csv_text
        return {"success": True, "totalRows": 1}

    async def get_attributes(self, sku=None):
        return {"sku": sku, "attributes": {}}

    async def clear_attributes(self):
        return {"success": True}


@pytest.fixture
def fake_search():
    service = _FakeSearchService()
    app.dependency_overrides[get_search_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


@pytest.fixture
def fake_reconcile():
    service = _FakeReconcileService()
    app.dependency_overrides[get_reconcile_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


def test_autocomplete_returns_ranked_payload(fake_search):
    client = TestClient(app)
    response = client.get("/api/produtos/autocomplete", params={"q": "filtro oleo", "limit": 5})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert response.json()["results"][0]["sku"] == "FO-100"
    assert fake_search.calls == [("autocomplete", "filtro oleo", 5)]


def test_overlong_query_is_rejected(fake_search):
    client = TestClient(app)
    response = client.get("/api/produtos/autocomplete", params={"q": "x" * 101})

    payload = response.json()
    assert response.status_code == 400
    assert payload["success"] is False
    assert payload["error"]["code"] == "VALIDATION_ERROR"
    assert payload["error"]["details"] == {"field": "q"}
    assert fake_search.calls == []


def test_catalog_passes_public_flag(fake_search):
    client = TestClient(app)
    response = client.get("/api/produtos", params={"page": 2, "public": "1", "categoria": "freios"})

    assert response.status_code == 200
    _, kwargs = fake_search.calls[0]
    assert kwargs["public"] is True
    assert kwargs["categoria"] == "freios"
    assert kwargs["page"] == 2


def test_catalog_rejects_page_zero(fake_search):
    response = TestClient(app).get("/api/produtos", params={"page": 0})
    assert response.status_code == 422


def test_match_skus_requires_admin_token(fake_reconcile, admin_headers):
    client = TestClient(app)

    denied = client.post("/api/produtos/match-skus", json={"skus": ["A"]})
    wrong = client.post("/api/produtos/match-skus", json={"skus": ["A"]}, headers={"X-Admin-Token": "nope"})
    allowed = client.post("/api/produtos/match-skus", json={"skus": ["A"]}, headers=admin_headers)

    assert denied.status_code == 403
    assert wrong.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["matched"] == ["A"]


def test_attribute_upload_accepts_multipart_csv(fake_reconcile, admin_headers):
    client = TestClient(app)
    csv_bytes = "\ufeffsku;cor\nABC;azul\n".encode("utf-8")

    response = client.post(
        "/api/produtos/atributos/upload",
        files={"file": ("atributos.csv", csv_bytes, "text/csv")},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "totalRows": 1}
    assert fake_reconcile.csv_text == "sku;cor\nABC;azul\n"


def test_attribute_upload_rejects_empty_file(fake_reconcile, admin_headers):
    client = TestClient(app)

    empty = client.post(
        "/api/produtos/atributos/upload",
        files={"file": ("vazio.csv", b"  \n", "text/csv")},
        headers=admin_headers,
    )
    missing = client.post("/api/produtos/atributos/upload", headers=admin_headers)

    assert empty.status_code == 400
    assert empty.json()["error"]["details"] == {"field": "file"}
    assert missing.status_code == 400
    assert fake_reconcile.csv_text is None


def test_attributes_read_is_public(fake_reconcile):
    response = TestClient(app).get("/api/produtos/atributos", params={"sku": "ABC"})
    assert response.status_code == 200
    assert response.json()["sku"] == "ABC"

import pytest
from fastapi.testclient import TestClient

from autopecas.server.app import app


pytestmark = pytest.mark.integration


@pytest.fixture
def client():
    # Lifespan real: KV em memória, catálogo desconfigurado, SIGE sem credenciais
    with TestClient(app) as test_client:
        yield test_client


def test_balance_degrades_when_sige_not_configured(client):
    response = client.get("/api/produtos/saldo/ABC-1")

    assert response.status_code == 200
    assert response.json() == {
        "sku": "ABC-1",
        "found": False,
        "sige": False,
        "error": "SIGE nao configurado.",
        "quantidade": 0,
    }


def test_price_degrades_when_sige_not_configured(client):
    payload = client.get("/api/produtos/preco/ABC").json()

    assert payload["found"] is False
    assert payload["source"] == "none"
    assert payload["tier"] == "v2"


def test_connect_without_credentials_is_a_client_error(client, admin_headers):
    response = client.post("/api/sige/connect", headers=admin_headers)

    payload = response.json()
    assert response.status_code == 400
    assert payload["error"]["code"] == "ERP_NOT_CONFIGURED"
    assert payload["error"]["details"] == {"service": "sige"}


def test_sige_routes_require_admin(client):
    assert client.get("/api/sige/status").status_code == 403
    assert client.post("/api/sige/save-config", json={}).status_code == 403


def test_save_config_then_status(client, admin_headers):
    saved = client.post(
        "/api/sige/save-config",
        json={"baseUrl": "https://sige.test/api/", "email": " loja@x.com ", "password": "pw"},
        headers=admin_headers,
    )
    assert saved.json() == {"success": True}

    config = client.get("/api/sige/config", headers=admin_headers).json()
    assert config["baseUrl"] == "https://sige.test/api"
    assert config["hasPassword"] is True

    status = client.get("/api/sige/status", headers=admin_headers).json()
    assert status["configured"] is True
    assert status["hasToken"] is False

    balance = client.get("/api/produtos/saldo/ABC").json()
    assert balance["error"] == "SIGE nao conectado."


def test_price_config_and_custom_price_roundtrip(client, admin_headers):
    assert client.get("/api/price-config").json() == {"tier": "v2", "showPrice": True}
    assert client.put("/api/price-config", json={"tier": "v1"}).status_code == 403

    updated = client.put("/api/price-config", json={"tier": "v1", "showPrice": False}, headers=admin_headers)
    assert updated.json()["tier"] == "v1"

    invalid = client.put("/api/produtos/preco/ABC", json={"price": "abc"}, headers=admin_headers)
    assert invalid.status_code == 400

    client.put("/api/produtos/preco/ABC", json={"price": 19.9}, headers=admin_headers)
    price = client.get("/api/produtos/preco/ABC").json()
    assert price["source"] == "custom"
    assert price["price"] == 19.9
    assert price["showPrice"] is False


def test_catalog_routes_fail_cleanly_without_catalog(client):
    response = client.get("/api/produtos", params={"search": "filtro"})

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "CONFIG_ERROR"


def test_status_endpoint(client):
    payload = client.get("/api/status").json()

    assert payload["backend"] == "FastAPI"
    assert payload["catalog"]["status"] == "error"
    assert payload["sige"]["error"] == "SIGE nao configurado."
    assert payload["kv"] == {"backend": "MemoryKvStore", "available": True}

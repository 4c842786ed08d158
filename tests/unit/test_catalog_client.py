import httpx
import pytest

from autopecas.config.exceptions import ConfigurationError, UpstreamError
from autopecas.config.settings import CatalogSettings
from autopecas.infrastructure.catalog_client import (
    CatalogClient,
    in_filter,
    parse_content_range_total,
)


pytestmark = pytest.mark.unit


def _settings(**overrides) -> CatalogSettings:
    values = {"base_url": "https://db.test/", "api_key": "k", "page_size": 2}
    values.update(overrides)
    return CatalogSettings(**values)


def _table_handler(skus, seen):
    """Simula PostgREST: responde à janela pedida em `Range`."""

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        start, end = (int(part) for part in request.headers["Range"].split("-"))
        window = [{"sku": sku} for sku in skus[start : end + 1]]
        headers = {}
        if request.headers.get("Prefer") == "count=exact":
            headers["Content-Range"] = f"{start}-{start + len(window) - 1}/{len(skus)}"
        return httpx.Response(206, json=window, headers=headers)

    return handler


def test_parse_content_range_total():
    assert parse_content_range_total("0-23/1234", 24) == 1234
    assert parse_content_range_total("0-23/*", 24) == 24
    assert parse_content_range_total(None, 3) == 3


def test_in_filter_quotes_reserved_values():
    assert in_filter(["A", "B C"]) == 'in.(A,"B C")'
    assert in_filter(["X,Y"], negate=True) == 'not.in.("X,Y")'
    assert in_filter(['a"b']) == 'in.("a\\"b")'


@pytest.mark.asyncio
async def test_query_sends_range_auth_and_filters():
    seen = []
    client = CatalogClient(_settings(), transport=httpx.MockTransport(_table_handler(["A", "B", "C"], seen)))

    page = await client.query([("select", "sku"), ("sku", "eq.A")], 0, 2)

    request = seen[0]
    assert request.url.path == "/rest/v1/produtos"
    assert request.url.params["sku"] == "eq.A"
    assert request.headers["apikey"] == "k"
    assert request.headers["Authorization"] == "Bearer k"
    assert request.headers["Range"] == "0-1"
    assert page.rows == [{"sku": "A"}, {"sku": "B"}]
    assert page.total == 3
    await client.close()


@pytest.mark.asyncio
async def test_query_without_count_falls_back_to_row_count():
    seen = []
    client = CatalogClient(_settings(), transport=httpx.MockTransport(_table_handler(["A", "B", "C"], seen)))

    page = await client.query([("select", "sku")], 2, 2, count=False)

    assert "Prefer" not in seen[0].headers
    assert page.total == 1


@pytest.mark.asyncio
async def test_fetch_all_pages_through_the_table():
    seen = []
    skus = ["A", "B", "C", "D", "E"]
    client = CatalogClient(_settings(), transport=httpx.MockTransport(_table_handler(skus, seen)))

    found, total = await client.fetch_all_skus()

    assert found == set(skus)
    assert total == 5
    assert sorted(r.headers["Range"] for r in seen) == ["0-1", "2-3", "4-5"]


@pytest.mark.asyncio
async def test_error_response_raises_upstream_error():
    client = CatalogClient(
        _settings(),
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )

    with pytest.raises(UpstreamError) as exc_info:
        await client.query([("select", "sku")], 0, 10)

    assert exc_info.value.status_code == 502
    assert exc_info.value.service == "catalog"
    assert exc_info.value.upstream_status == 500


@pytest.mark.asyncio
async def test_non_json_success_body_raises_upstream_error():
    page = "<html><body>Em manutencao</body></html>"
    client = CatalogClient(
        _settings(),
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text=page)),
    )

    with pytest.raises(UpstreamError) as exc_info:
        await client.query([("select", "sku")], 0, 10)

    assert exc_info.value.service == "catalog"
    assert exc_info.value.upstream_status == 200

    with pytest.raises(UpstreamError):
        await client.check_connection()


@pytest.mark.asyncio
async def test_unconfigured_client_raises_configuration_error():
    client = CatalogClient(CatalogSettings())

    with pytest.raises(ConfigurationError):
        await client.query([("select", "sku")], 0, 1)
    assert await client.check_connection() == {"status": "error", "error": "catalog not configured"}


@pytest.mark.asyncio
async def test_check_connection_reports_total():
    seen = []
    client = CatalogClient(_settings(), transport=httpx.MockTransport(_table_handler(["A", "B"], seen)))

    assert await client.check_connection() == {"status": "online", "products": 2}

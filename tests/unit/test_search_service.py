import pytest

from autopecas.config.constants import KvKeys
from autopecas.config.exceptions import InvalidQueryError
from autopecas.config.settings import SearchSettings
from autopecas.infrastructure.catalog_client import CatalogPage
from autopecas.services.search_service import SearchService, pagination


pytestmark = pytest.mark.unit

CATEGORY_TREE = [
    {
        "name": "Motor",
        "slug": "motor",
        "children": [
            {"name": "Filtros", "slug": "filtros", "children": [{"name": "Filtro de Óleo", "slug": "filtro-oleo"}]},
        ],
    },
    {"name": "Freios", "slug": "freios", "children": []},
]


class _FakeCatalog:
    def __init__(self, rows=None, total=None):
        self.rows = rows or []
        self.total = len(self.rows) if total is None else total
        self.queries = []

    async def query(self, params, offset, limit, count=True):
        self.queries.append({"params": dict(params), "offset": offset, "limit": limit})
        return CatalogPage(rows=self.rows, total=self.total)


async def _put_meta(kv, sku, category=None, visible=True):
    await kv.set(f"{KvKeys.PRODUCT_META_PREFIX}{sku}", {"sku": sku, "category": category, "visible": visible})


def test_pagination_flags():
    assert pagination(2, 10, 35) == {
        "page": 2,
        "limit": 10,
        "total": 35,
        "totalPages": 4,
        "hasNext": True,
        "hasPrev": True,
    }
    assert pagination(1, 10, 0)["totalPages"] == 0


@pytest.mark.asyncio
async def test_autocomplete_ranks_rows(kv):
    catalog = _FakeCatalog(
        [
            {"sku": "FA-200", "titulo": "Filtro de Ar Esportivo"},
            {"sku": "PF-10", "titulo": "Pastilha de Freio"},
            {"sku": "FO-100", "titulo": "Filtro de Óleo Motor"},
        ],
        total=57,
    )
    service = SearchService(catalog, kv, SearchSettings())

    result = await service.autocomplete("  filtro oleo ", limit=5)

    assert result["query"] == "filtro oleo"
    assert result["totalMatches"] == 57
    assert [r["sku"] for r in result["results"]] == ["FO-100", "FA-200"]
    query = catalog.queries[0]
    assert query["offset"] == 0
    assert query["limit"] == 200
    assert query["params"]["select"] == "sku,titulo"
    assert query["params"]["order"] == "titulo.asc"
    assert query["params"]["or"].startswith("(") and "titulo.ilike" in query["params"]["or"]


@pytest.mark.asyncio
async def test_autocomplete_short_query_skips_catalog(kv):
    catalog = _FakeCatalog()
    service = SearchService(catalog, kv, SearchSettings())

    assert await service.autocomplete(" a ") == {"results": [], "totalMatches": 0, "query": "a"}
    assert catalog.queries == []


@pytest.mark.asyncio
async def test_autocomplete_limit_is_capped(kv):
    rows = [{"sku": f"F{i}", "titulo": f"Filtro {i}"} for i in range(40)]
    service = SearchService(_FakeCatalog(rows), kv, SearchSettings())

    assert len((await service.autocomplete("filtro", limit=999))["results"]) == 20
    assert len((await service.autocomplete("filtro"))["results"]) == 8


@pytest.mark.asyncio
async def test_catalog_by_sku_and_search(kv):
    catalog = _FakeCatalog([{"sku": "A", "titulo": "Amortecedor"}], total=30)
    service = SearchService(catalog, kv, SearchSettings())

    by_sku = await service.search_catalog(search="ignorado", sku=" A ", page=2, limit=10)
    assert catalog.queries[0]["params"]["sku"] == "eq.A"
    assert "or" not in catalog.queries[0]["params"]
    assert catalog.queries[0]["offset"] == 10
    assert by_sku["pagination"]["hasNext"] is True
    assert "categoria" not in by_sku

    await service.search_catalog(search="amortecedor")
    assert "or" in catalog.queries[1]["params"]
    assert catalog.queries[1]["limit"] == 24


@pytest.mark.asyncio
async def test_catalog_rejects_invalid_page(kv):
    service = SearchService(_FakeCatalog(), kv, SearchSettings())
    with pytest.raises(InvalidQueryError):
        await service.search_catalog(page=0)


@pytest.mark.asyncio
async def test_category_includes_descendants_and_visible_only(kv):
    await kv.set(KvKeys.CATEGORY_TREE, CATEGORY_TREE)
    await _put_meta(kv, "F1", "filtros")
    await _put_meta(kv, "F2", "filtro-oleo")
    await _put_meta(kv, "F3", "filtro-oleo", visible=False)
    await _put_meta(kv, "B1", "freios")
    catalog = _FakeCatalog([{"sku": "F1", "titulo": "Filtro"}], total=2)
    service = SearchService(catalog, kv, SearchSettings())

    result = await service.search_catalog(categoria="motor", search="filtro")

    params = catalog.queries[0]["params"]
    assert params["sku"] in ("in.(F1,F2)", "in.(F2,F1)")
    assert "or" in params
    assert result["categoria"] == "motor"
    assert result["categoryName"] == "Motor"
    assert result["categoryBreadcrumb"] == ["Motor"]


@pytest.mark.asyncio
async def test_empty_category_short_circuits(kv):
    await kv.set(KvKeys.CATEGORY_TREE, CATEGORY_TREE)
    catalog = _FakeCatalog()
    service = SearchService(catalog, kv, SearchSettings())

    result = await service.search_catalog(categoria="freios", page=3)

    assert result["data"] == []
    assert result["pagination"]["page"] == 1
    assert result["pagination"]["total"] == 0
    assert result["categoryBreadcrumb"] == ["Freios"]
    assert catalog.queries == []


@pytest.mark.asyncio
async def test_public_mode_excludes_invisible_products(kv):
    await _put_meta(kv, "HIDDEN", visible=False)
    await _put_meta(kv, "SHOWN")
    catalog = _FakeCatalog()
    service = SearchService(catalog, kv, SearchSettings())

    result = await service.search_catalog(public=True)

    assert catalog.queries[0]["params"]["sku"] == "not.in.(HIDDEN)"
    assert result["categoria"] is None


@pytest.mark.asyncio
async def test_public_mode_skips_oversized_exclusion(kv):
    for i in range(3):
        await _put_meta(kv, f"H{i}", visible=False)
    catalog = _FakeCatalog()
    service = SearchService(catalog, kv, SearchSettings(max_excluded_skus=2))

    await service.search_catalog(public=True)

    assert "sku" not in catalog.queries[0]["params"]


@pytest.mark.asyncio
async def test_meta_index_is_cached_in_process(kv, clock):
    service = SearchService(_FakeCatalog(), kv, SearchSettings(), clock=clock)
    await _put_meta(kv, "A")
    assert list(await service.product_metas()) == ["A"]

    await _put_meta(kv, "B")
    assert list(await service.product_metas()) == ["A"]

    clock.advance(61)
    assert sorted(await service.product_metas()) == ["A", "B"]


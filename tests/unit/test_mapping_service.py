import pytest

from autopecas.config.constants import KvKeys
from autopecas.config.exceptions import ValidationError
from autopecas.config.settings import ErpSettings
from autopecas.services.erp_resolver import balance_key
from autopecas.services.mapping_service import ErpProductIndex, MappingService, mapping_key


pytestmark = pytest.mark.unit

ERP_PRODUCTS = [
    {"id": "77", "codProduto": "123", "descProdutoEst": "Correia dentada"},
    {"id": "88", "codProduto": "ABC", "descProdutoEst": "Vela de ignicao"},
]


class _FakeCatalog:
    def __init__(self, skus):
        self.skus = skus

    async def fetch_all_products(self):
        return [{"sku": s, "titulo": f"Produto {s}"} for s in self.skus]


def _service(erp, kv, clock, skus=("00123", "ABC-1", "77", "ZZZ")):
    return MappingService(erp, kv, _FakeCatalog(list(skus)), ErpSettings(), clock=clock)


def _sync_erp(fake_erp_factory):
    return fake_erp_factory(
        {
            "/product?limit=500&offset=1": (200, ERP_PRODUCTS),
            "/product/77/balance": (200, {"quantidade": 4}),
        }
    )


def test_index_match_order():
    index = ErpProductIndex(ERP_PRODUCTS + [{"id": "5", "codProduto": "12.30"}])

    assert index.match("abc")[1] == "exact_cod"
    assert index.match("12-30")[1] == "clean_cod"
    assert index.match("00123")[1] == "no_zeros"
    assert index.match("88")[1] == "sige_id"
    assert index.match("ABC-1") == (ERP_PRODUCTS[1], "base_dash")
    assert index.match("nada") == (None, "")


@pytest.mark.asyncio
async def test_sync_matches_local_products(kv, clock, fake_erp_factory):
    erp = _sync_erp(fake_erp_factory)
    await kv.set(KvKeys.STOCK_SUMMARY, {"_cachedAt": 0})

    result = await _service(erp, kv, clock).sync_mappings()

    assert result["ok"] is True
    assert result["localProducts"] == 4
    assert result["sigeProducts"] == 2
    assert (result["matched"], result["unmatched"], result["skipped"]) == (3, 1, 0)
    by_sku = {r["sku"]: r for r in result["matchResults"]}
    assert by_sku["00123"]["matchType"] == "no_zeros"
    assert by_sku["ABC-1"]["matchType"] == "base_dash"
    assert by_sku["77"]["matchType"] == "sige_id"
    assert by_sku["ZZZ"] == {"sku": "ZZZ", "matched": False, "titulo": "Produto ZZZ"}

    stored = await kv.get(mapping_key("00123"))
    assert stored["sigeId"] == "77"
    assert stored["descricao"] == "Correia dentada"

    # 77 tem saldo (dois SKUs), 88 responde 404
    assert result["balanceFetched"] == 2
    assert (await kv.get(balance_key("00123")))["quantidade"] == 4
    assert await kv.get(balance_key("ABC-1")) is None
    assert await kv.get(KvKeys.STOCK_SUMMARY) is None


@pytest.mark.asyncio
async def test_second_sync_skips_existing_mappings(kv, clock, fake_erp_factory):
    service = _service(_sync_erp(fake_erp_factory), kv, clock)
    await service.sync_mappings(fetch_balances=False)

    again = await service.sync_mappings(fetch_balances=False)

    assert (again["matched"], again["unmatched"], again["skipped"]) == (0, 1, 3)
    assert again["balanceFetched"] == 0

    rebuilt = await service.sync_mappings(fetch_balances=False, clear_existing=True)
    assert rebuilt["matched"] == 3
    assert rebuilt["skipped"] == 0


@pytest.mark.asyncio
async def test_sync_pages_through_erp_products(kv, clock, fake_erp_factory):
    erp = fake_erp_factory(
        {
            "/product?limit=2&offset=1": (200, {"dados": ERP_PRODUCTS}),
            "/product?limit=2&offset=3": (200, {"dados": [{"id": "99", "codProduto": "ZZZ"}]}),
        }
    )

    result = await _service(erp, kv, clock).sync_mappings(fetch_balances=False, batch_size=2)

    assert result["sigeProducts"] == 3
    assert result["unmatched"] == 0


@pytest.mark.asyncio
async def test_sync_requires_erp(kv, clock, fake_erp_factory):
    service = _service(fake_erp_factory(ready_reason="SIGE nao conectado."), kv, clock)
    assert await service.sync_mappings() == {"error": "SIGE nao conectado."}


@pytest.mark.asyncio
async def test_sync_ignores_non_object_erp_items(kv, clock, fake_erp_factory):
    erp = fake_erp_factory({"/product?limit=500&offset=1": (200, ["a", "b"])})

    result = await _service(erp, kv, clock).sync_mappings()

    assert result["ok"] is True
    assert result["sigeProducts"] == 0
    assert (result["matched"], result["unmatched"]) == (0, 4)


@pytest.mark.asyncio
async def test_manual_mapping_lifecycle(kv, clock, fake_erp_factory):
    service = _service(fake_erp_factory(), kv, clock)
    await kv.set(balance_key("ABC"), {"found": False})

    result = await service.set_manual(" ABC ", 900, descricao="Filtro")

    assert result["mapping"]["sigeId"] == "900"
    assert result["mapping"]["codProduto"] == "900"
    assert result["mapping"]["matchType"] == "manual"
    assert await kv.get(balance_key("ABC")) is None
    assert (await service.list_mappings())["total"] == 1

    await service.delete("ABC")
    assert await kv.get(mapping_key("ABC")) is None
    assert (await service.list_mappings())["total"] == 0


@pytest.mark.asyncio
async def test_manual_mapping_requires_sige_id(kv, clock, fake_erp_factory):
    with pytest.raises(ValidationError):
        await _service(fake_erp_factory(), kv, clock).set_manual("ABC", "  ")

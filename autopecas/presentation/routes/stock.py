from typing import Annotated

from fastapi import APIRouter, Depends

from autopecas.presentation.schemas.stock_schemas import (
    BulkBalanceRequest,
    SkuMappingUpdate,
    StockScanRequest,
    SyncRequest,
)
from autopecas.server.dependencies import get_erp_resolver, get_mapping_service, require_admin
from autopecas.services.erp_resolver import ErpResolver
from autopecas.services.mapping_service import MappingService

router = APIRouter()

Resolver = Annotated[ErpResolver, Depends(get_erp_resolver)]
Mappings = Annotated[MappingService, Depends(get_mapping_service)]


# --- Saldo -------------------------------------------------------------------

@router.get("/produtos/saldo/{sku}")
async def get_saldo(sku: str, resolver: Resolver, force: str = ""):
    """
    Saldo do SKU no SIGE (cascata de estratégias de identificação).
    `?force=1` ignora o cache.
    """
    return await resolver.resolve_balance(sku, force_refresh=force == "1")


@router.post("/produtos/saldos", dependencies=[Depends(require_admin)])
async def get_saldos(body: BulkBalanceRequest, resolver: Resolver):
    return await resolver.resolve_balances(body.skus)


@router.delete("/produtos/saldo/cache", dependencies=[Depends(require_admin)])
async def clear_saldo_cache(resolver: Resolver):
    return await resolver.clear_balance_cache()


@router.delete("/produtos/saldo/cache/{sku}", dependencies=[Depends(require_admin)])
async def clear_saldo_cache_sku(sku: str, resolver: Resolver):
    return await resolver.clear_balance_cache_for(sku)


@router.get("/produtos/stock-summary", dependencies=[Depends(require_admin)])
async def stock_summary(resolver: Resolver):
    return await resolver.stock_summary()


@router.post("/produtos/stock-scan", dependencies=[Depends(require_admin)])
async def stock_scan(resolver: Resolver, body: StockScanRequest | None = None):
    """Varre em lote os SKUs do catálogo sem saldo válido em cache."""
    body = body or StockScanRequest()
    return await resolver.stock_scan(body.batchSize)


# --- Mapeamento SKU -> SIGE -----------------------------------------------

@router.get("/produtos/sige-map", dependencies=[Depends(require_admin)])
async def list_sige_map(mappings: Mappings):
    return await mappings.list_mappings()


@router.put("/produtos/sige-map/{sku}", dependencies=[Depends(require_admin)])
async def put_sige_map(sku: str, body: SkuMappingUpdate, mappings: Mappings):
    return await mappings.set_manual(sku, body.sigeId, body.codProduto, body.descricao)


@router.delete("/produtos/sige-map/{sku}", dependencies=[Depends(require_admin)])
async def delete_sige_map(sku: str, mappings: Mappings):
    return await mappings.delete(sku)


@router.post("/produtos/sige-sync", dependencies=[Depends(require_admin)])
async def sige_sync(mappings: Mappings, body: SyncRequest | None = None):
    """
    Vincula automaticamente os produtos locais ao cadastro do SIGE
    (código exato, código limpo, sem zeros, id, base antes do hífen).
    """
    body = body or SyncRequest()
    return await mappings.sync_mappings(
        fetch_balances=body.fetchBalances,
        clear_existing=body.clearExisting,
        batch_size=body.batchSize,
    )

from typing import Annotated

from fastapi import APIRouter, Depends

from autopecas.presentation.schemas.stock_schemas import CustomPriceUpdate, PriceConfigUpdate
from autopecas.server.dependencies import get_price_service, require_admin
from autopecas.services.price_service import PriceService

router = APIRouter()

Prices = Annotated[PriceService, Depends(get_price_service)]


@router.get("/produtos/preco/{sku}")
async def get_preco(sku: str, prices: Prices):
    """
    Preço do SKU: override manual, senão a faixa configurada (v1/v2/v3) das
    listas de preço do SIGE.
    """
    return await prices.resolve_price(sku)


@router.put("/produtos/preco/{sku}", dependencies=[Depends(require_admin)])
async def put_preco(sku: str, body: CustomPriceUpdate, prices: Prices):
    return await prices.set_custom_price(sku, body.price)


@router.delete("/produtos/preco/{sku}", dependencies=[Depends(require_admin)])
async def delete_preco(sku: str, prices: Prices):
    return await prices.delete_custom_price(sku)


@router.get("/produtos/custom-prices", dependencies=[Depends(require_admin)])
async def list_custom_prices(prices: Prices):
    return await prices.list_custom_prices()


@router.get("/price-config")
async def get_price_config(prices: Prices):
    return await prices.get_config()


@router.put("/price-config", dependencies=[Depends(require_admin)])
async def put_price_config(body: PriceConfigUpdate, prices: Prices):
    return await prices.save_config(body.tier, body.showPrice, body.listPriceMapping)


@router.delete("/price-cache", dependencies=[Depends(require_admin)])
async def clear_price_cache(prices: Prices):
    return await prices.clear_cache()

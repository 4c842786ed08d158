"""
Schemas Pydantic das rotas de produtos (reconciliação, saldo, mapeamento
e preço).

Listas de SKUs chegam como `Any`: a validação fica nos serviços, que
respondem com o formato estruturado de erro de cada operação.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class MatchSkusRequest(BaseModel):
    """Payload de POST /api/produtos/match-skus."""

    skus: Any = None


class BulkBalanceRequest(BaseModel):
    """Payload de POST /api/produtos/saldos (até 50 SKUs)."""

    skus: Any = None


class StockScanRequest(BaseModel):
    batchSize: Optional[int] = Field(default=None, ge=1)


class SkuMappingUpdate(BaseModel):
    """Payload de PUT /api/produtos/sige-map/{sku}."""

    sigeId: Optional[str] = None
    codProduto: Optional[str] = None
    descricao: Optional[str] = None


class SyncRequest(BaseModel):
    fetchBalances: bool = True
    clearExisting: bool = False
    batchSize: Optional[int] = Field(default=None, ge=1)


class CustomPriceUpdate(BaseModel):
    price: Any = None


class PriceConfigUpdate(BaseModel):
    """Payload de PUT /api/price-config."""

    tier: Optional[str] = None
    showPrice: Optional[bool] = None
    listPriceMapping: Optional[Dict[str, Any]] = None

"""
Modelos de domínio do autopecas.
Formatos dos registros persistidos no KV e devolvidos pela API.
"""

from typing import Any, Dict, List, Optional, TypedDict, Union

Number = Union[int, float]


class ProductRow(TypedDict):
    """Linha da tabela `produtos` (título vive no banco, metadados no KV)."""
    sku: str
    titulo: str


class RankedProduct(TypedDict):
    """
    Resultado do autocomplete.

    Attributes:
        matchType: "exact", "sku", "similar" ou "fuzzy"
        score: Pontuação do ranqueamento (> 0)
    """
    sku: str
    titulo: str
    matchType: str
    score: int


class SkuMapping(TypedDict, total=False):
    """
    Vínculo SKU local -> produto do SIGE (`sige_map_{sku}`).

    Attributes:
        matchType: manual, exact_cod, clean_cod, no_zeros, sige_id ou base_dash
        matchedAt: epoch em ms
    """
    sku: str
    sigeId: str
    codProduto: str
    descricao: str
    matchType: str
    matchedAt: int


class BalanceSnapshot(TypedDict, total=False):
    """
    Saldo consolidado de um SKU (`sige_balance_{sku}`).

    `sige` indica se o ERP foi efetivamente consultado; `_strategy` guarda a
    estratégia da cascata que encontrou o produto.
    """
    sku: str
    found: bool
    sige: bool
    quantidade: Number
    reservado: Number
    disponivel: Number
    sigeId: Optional[str]
    descricao: Optional[str]
    locais: List[Dict[str, Any]]
    error: str
    cached: bool
    _strategy: str
    _cachedAt: int


class PriceSnapshot(TypedDict, total=False):
    """Preço resolvido de um SKU (`sige_price_{sku}`)."""
    sku: str
    found: bool
    source: str  # "custom", "sige" ou "none"
    sigeId: str
    descricao: str
    v1: Optional[Number]
    v2: Optional[Number]
    v3: Optional[Number]
    base: Optional[Number]
    tier: str
    tierSource: Optional[str]  # "mapped" ou "auto"
    price: Optional[Number]
    showPrice: bool
    error: str
    cached: bool
    _cachedAt: int


class PriceConfig(TypedDict, total=False):
    tier: str
    showPrice: bool
    listPriceMapping: Dict[str, str]
    updatedAt: int


class ErpSession(TypedDict):
    """Sessão do SIGE (`sige_api_token`). Datas em ISO-8601 UTC."""
    token: str
    refreshToken: str
    createdAt: str
    expiresAt: str


class ErpCredentials(TypedDict, total=False):
    baseUrl: str
    email: str
    password: str
    updatedAt: str


class Pagination(TypedDict):
    page: int
    limit: int
    total: int
    totalPages: int
    hasNext: bool
    hasPrev: bool


class CatalogResponse(TypedDict, total=False):
    data: List[ProductRow]
    pagination: Pagination
    categoria: Optional[str]
    categoryName: Optional[str]
    categoryBreadcrumb: Optional[List[str]]

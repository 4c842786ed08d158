from .models import (
    BalanceSnapshot,
    CatalogResponse,
    ErpCredentials,
    ErpSession,
    Pagination,
    PriceConfig,
    PriceSnapshot,
    ProductRow,
    RankedProduct,
    SkuMapping,
)

__all__ = [
    "BalanceSnapshot",
    "CatalogResponse",
    "ErpCredentials",
    "ErpSession",
    "Pagination",
    "PriceConfig",
    "PriceSnapshot",
    "ProductRow",
    "RankedProduct",
    "SkuMapping",
]

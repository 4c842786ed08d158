from autopecas.config.settings import is_valid_admin_token
from autopecas.infrastructure.erp_client import ErpClient
from autopecas.services.erp_resolver import ErpResolver
from autopecas.services.mapping_service import MappingService
from autopecas.services.price_service import PriceService
from autopecas.services.search_service import SearchService
from autopecas.services.sku_reconciler import ReconcileService
from fastapi import HTTPException, Request


async def get_search_service(request: Request) -> SearchService:
    """
    Dependency to get the SearchService instance from app state.
    """
    return request.app.state.search_service


async def get_reconcile_service(request: Request) -> ReconcileService:
    return request.app.state.reconcile_service


async def get_erp_client(request: Request) -> ErpClient:
    """
    Dependency to get the SIGE client (session + credentials) from app state.
    """
    return request.app.state.erp


async def get_erp_resolver(request: Request) -> ErpResolver:
    return request.app.state.erp_resolver


async def get_mapping_service(request: Request) -> MappingService:
    return request.app.state.mapping_service


async def get_price_service(request: Request) -> PriceService:
    return request.app.state.price_service


async def require_admin(request: Request) -> None:
    """
    Rotas administrativas exigem `X-Admin-Token` igual ao token atual (ou ao
    anterior, durante a rotação).
    """
    if not is_valid_admin_token(request.headers.get("X-Admin-Token")):
        raise HTTPException(status_code=403, detail="Forbidden")

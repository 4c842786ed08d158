from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from autopecas.config import setup_logging
from autopecas.config.constants import Messages, PerformanceConfig, ServerConfig
from autopecas.config.exceptions import AutopecasError
from autopecas.config.settings import settings
from autopecas.infrastructure.catalog_client import CatalogClient
from autopecas.infrastructure.erp_client import ErpClient
from autopecas.infrastructure.kv_store import build_kv_store
from autopecas.presentation.routes import erp, price, reconcile, search, stock, system
from autopecas.server.error_handlers import autopecas_exception_handler, generic_exception_handler
from autopecas.services.erp_resolver import ErpResolver
from autopecas.services.mapping_service import MappingService
from autopecas.services.price_service import PriceService
from autopecas.services.search_service import SearchService
from autopecas.services.sku_reconciler import ReconcileService

"""
Módulo do Servidor (API Handler).

Define a aplicação FastAPI e o ciclo de vida dos recursos compartilhados:
1. KV store (Redis ou memória), cliente do catálogo e cliente do SIGE.
2. Serviços de busca, reconciliação, saldo, mapeamento e preço em `app.state`.
3. Handlers de erro padronizados e middlewares (GZip, CORS).
"""

setup_logging()
logger = logging.getLogger("server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Initializing KV store...")
    kv = build_kv_store()
    await kv.connect()
    app.state.kv = kv

    logger.info("Initializing clients...")
    app.state.catalog = CatalogClient(settings.catalog)
    if not app.state.catalog.configured:
        logger.warning("Catalog not configured: search and reconciliation endpoints will fail")
    app.state.erp = ErpClient(
        kv,
        timeout_seconds=settings.erp.timeout_seconds,
        token_validity_hours=settings.erp.token_validity_hours,
    )

    logger.info("Initializing Services...")
    app.state.search_service = SearchService(app.state.catalog, kv, settings.search)
    app.state.reconcile_service = ReconcileService(app.state.catalog, kv)
    app.state.erp_resolver = ErpResolver(app.state.erp, kv, app.state.catalog, settings.erp)
    app.state.mapping_service = MappingService(app.state.erp, kv, app.state.catalog, settings.erp)
    app.state.price_service = PriceService(app.state.erp, kv, settings.erp)

    logger.info(Messages.SERVER_STARTED.format(version=ServerConfig.VERSION, name=ServerConfig.VERSION_NAME))

    yield

    # Shutdown
    logger.info(Messages.SERVER_STOPPED)
    await app.state.erp.close()
    await app.state.catalog.close()
    await kv.close()


app = FastAPI(
    title="Autopecas API",
    version=ServerConfig.VERSION,
    lifespan=lifespan,
)

# --- Global Exception Handlers ---
app.add_exception_handler(AutopecasError, autopecas_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# --- Middleware ---
app.add_middleware(
    GZipMiddleware,
    minimum_size=PerformanceConfig.GZIP_MIN_SIZE,
    compresslevel=PerformanceConfig.GZIP_COMPRESSION_LEVEL,
)

cors_origins = settings.server.cors_allowed_origins or [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routers ---
app.include_router(search.router, prefix="/api", tags=["Search"])
app.include_router(reconcile.router, prefix="/api", tags=["Reconcile"])
app.include_router(stock.router, prefix="/api", tags=["Stock"])
app.include_router(price.router, prefix="/api", tags=["Price"])
app.include_router(erp.router, prefix="/api/sige", tags=["SIGE"])
app.include_router(system.router, prefix="/api", tags=["System"])

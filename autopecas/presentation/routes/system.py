import time

from fastapi import APIRouter, Request

from autopecas.config.exceptions import AutopecasError

router = APIRouter()


def _to_int(value, default: int = 0) -> int:
    try:
        if value is None:
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


async def _collect_catalog_status(request: Request) -> dict:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        return {"status": "error", "error": "Catalog client unavailable"}

    start = time.perf_counter()
    try:
        raw = await catalog.check_connection()
    except AutopecasError as e:
        raw = {"status": "error", "error": e.message}
    latency_ms = round((time.perf_counter() - start) * 1000, 2)

    payload = {
        "status": "online" if raw.get("status") == "online" else "error",
        "products": _to_int(raw.get("products")),
        "latency_ms": latency_ms,
    }
    if raw.get("error"):
        payload["error"] = str(raw.get("error"))
    return payload


async def _collect_erp_status(request: Request) -> dict:
    erp = getattr(request.app.state, "erp", None)
    if erp is None:
        return {"status": "error", "error": "SIGE client unavailable"}

    reason = await erp.is_ready()
    if reason:
        return {"status": "error", "error": reason}
    return {"status": "online"}


@router.get("/status")
async def get_status(request: Request):
    """
    Healthcheck e Status do Sistema.

    Verifica catálogo (PostgREST), sessão do SIGE e backend do KV. O SIGE
    desconectado não derruba o status geral: saldo e preço degradam para
    respostas `sige: false`.
    """
    catalog_status = await _collect_catalog_status(request)
    erp_status = await _collect_erp_status(request)

    kv = getattr(request.app.state, "kv", None)
    kv_backend = type(kv).__name__ if kv is not None else None

    return {
        "status": catalog_status["status"],
        "version": getattr(request.app, "version", "unknown"),
        "backend": "FastAPI",
        "catalog": catalog_status,
        "sige": erp_status,
        "kv": {"backend": kv_backend, "available": bool(kv is not None and kv.available)},
    }

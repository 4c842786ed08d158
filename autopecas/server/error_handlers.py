"""
Exception Handlers globais para o FastAPI.

Converte AutopecasError (e subclasses) em respostas JSON padronizadas e
evita vazamento de stack traces em erros não previstos.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from autopecas.config.exceptions import AutopecasError

logger = logging.getLogger("server")

_DETAIL_ATTRS = ("field", "query", "service", "upstream_status")


def error_payload(code: str, message: str, details: dict | None = None) -> dict:
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details or None,
        },
    }


async def autopecas_exception_handler(request: Request, exc: AutopecasError) -> JSONResponse:
    """
    Handler global para AutopecasError.

    Returns:
        JSONResponse com o status_code da exceção e
        `{"success": false, "error": {code, message, details}}`
    """
    status_code = getattr(exc, "status_code", 500)

    if status_code >= 500:
        logger.error(f"[{exc.code}] {exc.message} - Path: {request.url.path}")
    else:
        logger.warning(f"[{exc.code}] {exc.message} - Path: {request.url.path}")

    details = {}
    for attr in _DETAIL_ATTRS:
        if getattr(exc, attr, None) is not None:
            details[attr] = getattr(exc, attr)

    return JSONResponse(status_code=status_code, content=error_payload(exc.code, exc.message, details))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Fallback para exceções não tratadas: log completo com traceback e
    resposta genérica sem detalhes internos.
    """
    logger.exception(f"Unhandled exception on {request.url.path}: {exc}")

    return JSONResponse(
        status_code=500,
        content=error_payload("INTERNAL_ERROR", "Erro interno do servidor. Tente novamente."),
    )

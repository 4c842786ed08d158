from typing import Annotated

import orjson as _orjson
from fastapi import APIRouter, Depends, Query
from starlette.responses import Response

from autopecas.config.exceptions import ValidationError
from autopecas.config.logging_config import server_logger as logger
from autopecas.config.settings import settings
from autopecas.server.dependencies import get_search_service
from autopecas.services.search_service import SearchService

router = APIRouter()


def _orjson_response(content: dict, headers: dict[str, str] | None = None) -> Response:
    """Build a Response pre-serialized with orjson."""
    body = _orjson.dumps(content)
    resp = Response(content=body, media_type="application/json")
    if headers:
        resp.headers.update(headers)
    return resp


def _check_length(value: str, field: str) -> None:
    max_length = settings.search.max_query_length
    if len(value) > max_length:
        raise ValidationError(f"Query muito longa (máximo {max_length} caracteres)", field=field)


def _is_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


@router.get("/produtos/autocomplete")
async def autocomplete(
    service: Annotated[SearchService, Depends(get_search_service)],
    q: Annotated[str, Query(description="Texto digitado (mínimo 2 caracteres)")] = "",
    limit: Annotated[int | None, Query(ge=1)] = None,
):
    """
    Sugestões ranqueadas por similaridade (acentos, fonética e erros de
    digitação). Queries com menos de 2 caracteres retornam lista vazia.
    """
    _check_length(q, "q")
    logger.debug("Autocomplete: %r", q.replace("\r", "\\r").replace("\n", "\\n"))
    return _orjson_response(await service.autocomplete(q, limit))


@router.get("/produtos")
async def list_produtos(
    service: Annotated[SearchService, Depends(get_search_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
    search: str = "",
    sku: str = "",
    categoria: str = "",
    public: Annotated[str, Query(description="'1' para o catálogo público")] = "",
):
    """
    Catálogo paginado (ordenado por título).

    - `sku`: busca exata
    - `search`: busca tolerante a acentos/variações
    - `categoria` / `public=1`: filtros de categoria e visibilidade
    """
    _check_length(search, "search")
    result = await service.search_catalog(
        search=search,
        page=page,
        limit=limit,
        categoria=categoria,
        sku=sku,
        public=_is_flag(public),
    )
    return _orjson_response(result)

"""
Cliente assíncrono da tabela de produtos exposta via PostgREST (Supabase).

Paginação por header `Range` e total via `Content-Range` (com
`Prefer: count=exact`).
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import httpx
import orjson

from ..config.constants import Messages
from ..config.exceptions import ConfigurationError, UpstreamError
from ..config.logging_config import catalog_logger as logger
from ..config.settings import CatalogSettings

_RE_CONTENT_RANGE_TOTAL = re.compile(r"/(\d+|\*)")
_RE_NEEDS_QUOTES = re.compile(r'[,()":\s]')

QueryParams = List[Tuple[str, str]]


def parse_content_range_total(header: Optional[str], fallback: int) -> int:
    """
    Extrai o total de `Content-Range: 0-23/1234`.

    Examples:
        >>> parse_content_range_total("0-23/1234", 24)
        1234
        >>> parse_content_range_total("0-23/*", 24)
        24
    """
    if header:
        match = _RE_CONTENT_RANGE_TOTAL.search(header)
        if match and match.group(1) != "*":
            return int(match.group(1))
    return fallback


def _quote_value(value: str) -> str:
    if _RE_NEEDS_QUOTES.search(value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


def in_filter(values: Iterable[str], negate: bool = False) -> str:
    """Valor de filtro `in.(a,b)` / `not.in.(a,b)`."""
    op = "not.in" if negate else "in"
    return f"{op}.({','.join(_quote_value(v) for v in values)})"


@dataclass
class CatalogPage:
    rows: List[Dict[str, Any]]
    total: int


@dataclass
class CatalogClient:
    config: CatalogSettings
    transport: Optional[httpx.AsyncBaseTransport] = None
    _client: Optional[httpx.AsyncClient] = field(default=None, repr=False)

    @property
    def configured(self) -> bool:
        return self.config.configured

    def _headers(self) -> Dict[str, str]:
        key = self.config.api_key or ""
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    def _get_client(self) -> httpx.AsyncClient:
        if not self.configured:
            raise ConfigurationError(Messages.CATALOG_NOT_CONFIGURED)
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
                transport=self.transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None

    async def query(
        self,
        params: Sequence[Tuple[str, str]],
        offset: int,
        limit: int,
        count: bool = True,
    ) -> CatalogPage:
        """
        GET na tabela com filtros PostgREST e janela [offset, offset+limit).

        Raises:
            ConfigurationError: URL/chave do catálogo ausentes
            UpstreamError: Resposta não-2xx ou falha de transporte
        """
        client = self._get_client()
        headers = {"Range": f"{offset}-{offset + limit - 1}"}
        if count:
            headers["Prefer"] = "count=exact"

        try:
            response = await client.get(self.config.rest_url, params=list(params), headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Catalog request failed: %s", exc)
            raise UpstreamError(f"Erro ao consultar produtos: {exc}", service="catalog") from exc

        if response.is_error:
            logger.warning("Catalog query error [%s]: %s", response.status_code, response.text[:300])
            raise UpstreamError(
                f"Erro ao consultar produtos: HTTP {response.status_code}",
                service="catalog",
                upstream_status=response.status_code,
            )

        try:
            rows = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            rows = None
        if not isinstance(rows, list):
            logger.warning("Catalog returned non-array body [%s]: %s", response.status_code, response.text[:300])
            raise UpstreamError(
                "Resposta invalida do catalogo de produtos.",
                service="catalog",
                upstream_status=response.status_code,
            )
        total = parse_content_range_total(response.headers.get("content-range"), len(rows))
        return CatalogPage(rows=rows, total=total)

    async def fetch_all(self, select: str, order: str = "sku.asc") -> Tuple[List[Dict[str, Any]], int]:
        """
        Carrega a tabela inteira: primeira página com contagem exata, demais
        páginas em paralelo.
        """
        page_size = self.config.page_size
        params = [("select", select), ("order", order)]
        first = await self.query(params, 0, page_size, count=True)
        rows = list(first.rows)

        if len(first.rows) >= first.total:
            return rows, first.total

        pages = await asyncio.gather(
            *(
                self.query(params, offset, page_size, count=False)
                for offset in range(page_size, first.total, page_size)
            )
        )
        for page in pages:
            rows.extend(page.rows)

        logger.debug("Catalog fetch_all: %d rows (%d pages), total=%d", len(rows), len(pages) + 1, first.total)
        return rows, first.total

    async def fetch_all_skus(self) -> Tuple[Set[str], int]:
        """(SKUs únicos, total de linhas informado pelo banco)."""
        rows, total = await self.fetch_all("sku")
        return {row["sku"] for row in rows if row.get("sku")}, total

    async def fetch_all_products(self) -> List[Dict[str, Any]]:
        """Todos os `{sku, titulo}` (usado na sincronização de mapeamentos)."""
        rows, _ = await self.fetch_all("sku,titulo")
        return [row for row in rows if row.get("sku")]

    async def check_connection(self) -> Dict[str, Any]:
        if not self.configured:
            return {"status": "error", "error": "catalog not configured"}
        page = await self.query([("select", "sku")], 0, 1, count=True)
        return {"status": "online", "products": page.total}

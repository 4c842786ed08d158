"""
Busca no catálogo: autocomplete ranqueado e listagem paginada com filtros
de categoria e visibilidade.
"""

from __future__ import annotations

import math
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config.constants import KvKeys
from ..config.exceptions import InvalidQueryError
from ..config.logging_config import service_logger as logger
from ..config.settings import SearchSettings
from ..domain import CatalogResponse, Pagination
from ..infrastructure.catalog_client import in_filter
from ..utils.category_tree import (
    build_category_breadcrumb,
    collect_descendant_slugs,
    find_category_name,
)
from ..utils.text_normalizer import SearchQuery
from .fuzzy_scorer import rank_candidates
from .search_conditions import MODE_AUTOCOMPLETE, MODE_CATALOG, build_search_conditions

SELECT_COLUMNS = "sku,titulo"
ORDER_BY_TITLE = "titulo.asc"


def pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


class SearchService:
    def __init__(self, catalog, kv, config: SearchSettings, clock: Callable[[], float] = time.time):
        self.catalog = catalog
        self.kv = kv
        self.config = config
        self.clock = clock
        # (metas por SKU, carregado em)
        self._meta_cache: Optional[Tuple[Dict[str, Dict[str, Any]], float]] = None

    # --- Metadados de produto -----------------------------------------------

    async def product_metas(self) -> Dict[str, Dict[str, Any]]:
        """Índice `sku -> produto_meta`, mantido em memória por alguns segundos."""
        now = self.clock()
        if self._meta_cache is not None:
            metas, loaded_at = self._meta_cache
            if now - loaded_at < self.config.meta_cache_ttl_seconds:
                return metas

        metas = {}
        for meta in await self.kv.get_by_prefix(KvKeys.PRODUCT_META_PREFIX):
            if isinstance(meta, dict) and meta.get("sku"):
                metas[meta["sku"]] = meta
        self._meta_cache = (metas, now)
        logger.debug("Product meta index loaded: %d entries", len(metas))
        return metas

    # --- Autocomplete -------------------------------------------------------

    async def autocomplete(self, query: str, limit: Optional[int] = None) -> Dict[str, Any]:
        raw = (query or "").strip()
        limit = min(limit or self.config.autocomplete_default_limit, self.config.autocomplete_max_limit)

        search_query = SearchQuery.from_raw(raw)
        if not search_query.actionable:
            return {"results": [], "totalMatches": 0, "query": raw}

        conditions = build_search_conditions(raw, MODE_AUTOCOMPLETE)
        logger.info("Autocomplete: q=%r tokens=%s", raw, ",".join(search_query.meaningful))

        page = await self.catalog.query(
            [("select", SELECT_COLUMNS), ("or", f"({conditions})"), ("order", ORDER_BY_TITLE)],
            0,
            self.config.autocomplete_fetch_window,
        )
        results = rank_candidates(search_query, page.rows, limit)
        return {"results": results, "totalMatches": page.total, "query": raw}

    # --- Catálogo -----------------------------------------------------------

    async def _category_skus(self, slug: str) -> Tuple[List[str], Optional[str], Optional[List[str]]]:
        tree = await self.kv.get(KvKeys.CATEGORY_TREE) or []
        slugs = collect_descendant_slugs(tree, slug) or [slug]
        name = find_category_name(tree, slug)
        breadcrumb = build_category_breadcrumb(tree, slug)

        targets = set(slugs)
        metas = await self.product_metas()
        skus = [
            sku
            for sku, meta in metas.items()
            if meta.get("visible") is not False and meta.get("category") in targets
        ]
        logger.info("Catalog category %r (%s): %d slugs, %d visible products", slug, name, len(slugs), len(skus))
        return skus, name, breadcrumb

    async def _invisible_skus(self) -> List[str]:
        metas = await self.product_metas()
        return [sku for sku, meta in metas.items() if meta.get("visible") is False]

    async def search_catalog(
        self,
        search: str = "",
        page: int = 1,
        limit: Optional[int] = None,
        categoria: Optional[str] = None,
        sku: Optional[str] = None,
        public: bool = False,
    ) -> CatalogResponse:
        """
        Listagem paginada ordenada por título.

        - `sku`: busca exata (ignora `search`)
        - `categoria`: só produtos visíveis da categoria e descendentes
        - `public` sem categoria: exclui SKUs marcados como invisíveis

        Raises:
            InvalidQueryError: Página menor que 1
        """
        limit = min(limit or self.config.catalog_default_limit, self.config.catalog_max_limit)
        if page < 1:
            raise InvalidQueryError(str(page), "pagina deve ser >= 1")

        search = (search or "").strip()
        categoria = (categoria or "").strip()
        offset = (page - 1) * limit
        params: List[Tuple[str, str]] = [("select", SELECT_COLUMNS)]

        if categoria or public:
            category_name = None
            breadcrumb = None

            if categoria:
                skus, category_name, breadcrumb = await self._category_skus(categoria)
                if not skus:
                    return {
                        "data": [],
                        "pagination": pagination(1, limit, 0),
                        "categoria": categoria,
                        "categoryName": category_name,
                        "categoryBreadcrumb": breadcrumb,
                    }
                params.append(("sku", in_filter(skus)))
            else:
                invisible = await self._invisible_skus()
                if 0 < len(invisible) <= self.config.max_excluded_skus:
                    params.append(("sku", in_filter(invisible, negate=True)))
                elif invisible:
                    logger.warning("Public catalog: %d invisible SKUs, exclusion filter skipped", len(invisible))

            if search:
                params.append(("or", f"({build_search_conditions(search, MODE_CATALOG)})"))
            params.append(("order", ORDER_BY_TITLE))

            result = await self.catalog.query(params, offset, limit)
            return {
                "data": result.rows,
                "pagination": pagination(page, limit, result.total),
                "categoria": categoria or None,
                "categoryName": category_name,
                "categoryBreadcrumb": breadcrumb,
            }

        sku = (sku or "").strip()
        if sku:
            params.append(("sku", f"eq.{sku}"))
        elif search:
            params.append(("or", f"({build_search_conditions(search, MODE_CATALOG)})"))
        params.append(("order", ORDER_BY_TITLE))

        logger.debug("Catalog query: range %d-%d, params=%s", offset, offset + limit - 1, params)
        result = await self.catalog.query(params, offset, limit)
        return {"data": result.rows, "pagination": pagination(page, limit, result.total)}

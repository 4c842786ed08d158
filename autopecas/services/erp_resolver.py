"""
Resolução de saldo de estoque de um SKU local no ERP SIGE.

Não existe um identificador compartilhado entre o catálogo e o SIGE, então o
produto é procurado por uma cascata de estratégias (a primeira que encontrar
um produto utilizável vence). O resultado, inclusive "não encontrado", é
cacheado no KV com TTL menor para ausências.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

from ..config.constants import ErpConfig, KvKeys
from ..config.exceptions import AutopecasError, ServiceError
from ..config.logging_config import erp_logger as logger
from ..config.settings import ErpSettings
from ..domain import BalanceSnapshot
from ..utils.sku_utils import base_before_dash, clean_code_if_distinct
from .erp_extractors import (
    BalanceTotals,
    candidate_ids,
    extract_list,
    parse_balance,
    product_description,
)

Snapshot = BalanceSnapshot
Strategy = Callable[[str], Awaitable[Optional[Snapshot]]]


def is_fresh(entry: Dict[str, Any], now_ms: int, ttl_found_ms: int, ttl_missing_ms: int) -> bool:
    """
    Entrada de cache ainda válida? Ausências expiram antes para que um
    produto recém-cadastrado no ERP apareça logo.
    """
    age = now_ms - (entry.get("_cachedAt") or 0)
    ttl = ttl_found_ms if entry.get("found") else ttl_missing_ms
    return age < ttl


async def cache_put(kv, key: str, value: Any) -> None:
    """Grava entrada de cache; falha do KV só perde o cache, não a resposta."""
    try:
        await kv.set(key, value)
    except ServiceError as exc:
        logger.warning("Cache write skipped (%s): %s", key, exc.message)


def balance_key(sku: str) -> str:
    return f"{KvKeys.BALANCE_PREFIX}{sku}"


def _product_path(product_id: str) -> str:
    return f"/product/{quote(str(product_id), safe='')}/balance"


def _search_path(**params: Any) -> str:
    return f"/product?{urlencode(params, quote_via=quote)}"


def unavailable_snapshot(sku: str, error: str) -> Snapshot:
    return {"sku": sku, "found": False, "sige": False, "error": error, "quantidade": 0}


class ErpResolver:
    """Saldo por SKU (unitário, em lote), resumo global e varredura de pendentes."""

    def __init__(self, erp, kv, catalog, config: ErpSettings, clock: Callable[[], float] = time.time):
        self.erp = erp
        self.kv = kv
        self.catalog = catalog
        self.config = config
        self.clock = clock

        # Ordem da cascata: do identificador mais confiável ao mais frouxo
        self.strategies: Tuple[Tuple[str, Strategy], ...] = (
            ("mapping", self._by_mapping),
            ("direct_id", self._by_direct_id),
            ("cod_produto", self._by_cod_produto),
            ("base_dash", self._by_base_part),
            ("clean_code", self._by_clean_code),
            ("referencia", self._by_reference),
            ("descricao", self._by_description),
        )

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _is_fresh(self, entry: Dict[str, Any]) -> bool:
        return is_fresh(
            entry,
            self._now_ms(),
            self.config.balance_ttl_found_seconds * 1000,
            self.config.balance_ttl_not_found_seconds * 1000,
        )

    # --- Montagem do snapshot -------------------------------------------

    def _snapshot(
        self,
        sku: str,
        sige_id: str,
        totals: BalanceTotals,
        descricao: Optional[str] = None,
    ) -> Snapshot:
        snapshot: Snapshot = {"sku": sku, "found": True, "sige": True, "sigeId": sige_id}
        if descricao is not None:
            snapshot["descricao"] = descricao
        snapshot.update(
            quantidade=totals.quantidade,
            reservado=totals.reservado,
            disponivel=totals.disponivel,
        )
        if totals.locais:
            snapshot["locais"] = totals.locais
        snapshot["_cachedAt"] = self._now_ms()
        return snapshot

    def _not_found(self, sku: str) -> Snapshot:
        return {"sku": sku, "found": False, "sige": True, "quantidade": 0, "_cachedAt": self._now_ms()}

    async def _fetch_balance(self, product_id: str) -> Optional[BalanceTotals]:
        res = await self.erp.request("GET", _product_path(product_id))
        logger.debug("balance %s -> HTTP %s", product_id, res.status)
        if res.ok and res.data is not None:
            return parse_balance(res.data)
        return None

    async def _balance_for_product(self, sku: str, product: Dict[str, Any]) -> Optional[Snapshot]:
        for product_id in candidate_ids(product):
            totals = await self._fetch_balance(product_id)
            if totals is not None:
                return self._snapshot(sku, product_id, totals, product_description(product))
        return None

    async def _search_and_balance(self, sku: str, path: str) -> Optional[Snapshot]:
        res = await self.erp.request("GET", path)
        logger.debug("search %s -> HTTP %s", path, res.status)
        if not res.ok or res.data is None:
            return None

        products = extract_list(res.data, allow_single=True)
        if not products:
            return None

        product = products[0]
        embedded = parse_balance(product)
        if embedded.has_stock:
            sige_id = str(product.get("id") or product.get("codProduto") or "")
            return self._snapshot(sku, sige_id, embedded, product_description(product))
        return await self._balance_for_product(sku, product)

    # --- Estratégias ------------------------------------------------------

    async def _by_mapping(self, sku: str) -> Optional[Snapshot]:
        mapping = await self.kv.get(f"{KvKeys.MAPPING_PREFIX}{sku}")
        if not mapping or not mapping.get("sigeId"):
            return None
        sige_id = str(mapping["sigeId"])
        totals = await self._fetch_balance(sige_id)
        if totals is None:
            return None
        return self._snapshot(sku, sige_id, totals, mapping.get("descricao") or "")

    async def _by_direct_id(self, sku: str) -> Optional[Snapshot]:
        totals = await self._fetch_balance(sku)
        return None if totals is None else self._snapshot(sku, sku, totals)

    async def _by_cod_produto(self, sku: str) -> Optional[Snapshot]:
        return await self._search_and_balance(
            sku, _search_path(codProduto=sku, limit=ErpConfig.SEARCH_LIMIT, offset=ErpConfig.FIRST_OFFSET)
        )

    async def _by_base_part(self, sku: str) -> Optional[Snapshot]:
        base = base_before_dash(sku)
        if base is None:
            return None
        totals = await self._fetch_balance(base)
        if totals is not None:
            return self._snapshot(sku, base, totals)
        return await self._search_and_balance(
            sku, _search_path(codProduto=base, limit=ErpConfig.SEARCH_LIMIT, offset=ErpConfig.FIRST_OFFSET)
        )

    async def _by_clean_code(self, sku: str) -> Optional[Snapshot]:
        clean = clean_code_if_distinct(sku)
        if clean is None:
            return None
        return await self._search_and_balance(
            sku, _search_path(codProduto=clean, limit=ErpConfig.SEARCH_LIMIT, offset=ErpConfig.FIRST_OFFSET)
        )

    async def _by_reference(self, sku: str) -> Optional[Snapshot]:
        return await self._search_and_balance(
            sku, _search_path(referencia=sku, limit=ErpConfig.SEARCH_LIMIT, offset=ErpConfig.FIRST_OFFSET)
        )

    async def _by_description(self, sku: str) -> Optional[Snapshot]:
        return await self._search_and_balance(
            sku,
            _search_path(descProduto=sku, limit=ErpConfig.DESCRIPTION_SEARCH_LIMIT, offset=ErpConfig.FIRST_OFFSET),
        )

    # --- Resolução ----------------------------------------------------------

    async def _cached(self, sku: str) -> Optional[Snapshot]:
        cached = await self.kv.get(balance_key(sku))
        if cached and self._is_fresh(cached):
            logger.debug("Saldo cache hit for %s (found=%s)", sku, cached.get("found"))
            return {**cached, "cached": True}
        return None

    async def _run_cascade(self, sku: str) -> Snapshot:
        """Executa as estratégias em ordem e grava o resultado no cache."""
        result: Optional[Snapshot] = None
        for name, strategy in self.strategies:
            result = await strategy(sku)
            if result is not None:
                result["_strategy"] = name
                logger.debug("Saldo %s resolved by %s", sku, name)
                break
        else:
            logger.info("SKU %s: not found in SIGE after all strategies", sku)
            result = self._not_found(sku)

        await cache_put(self.kv, balance_key(sku), result)
        return {**result, "cached": False}

    async def _cached_or_lookup(self, sku: str) -> Snapshot:
        return await self._cached(sku) or await self._run_cascade(sku)

    async def resolve_balance(self, sku: str, force_refresh: bool = False) -> Snapshot:
        """
        Saldo de um SKU. Nunca levanta exceção: indisponibilidade do ERP vira
        `{found: false, sige: false, error}`.
        """
        sku = (sku or "").strip()
        if not sku:
            return unavailable_snapshot("", "SKU obrigatorio.")

        try:
            if not force_refresh:
                cached = await self._cached(sku)
                if cached is not None:
                    return cached
            else:
                logger.debug("Force refresh for %s, bypassing cache", sku)

            reason = await self.erp.is_ready()
            if reason:
                return unavailable_snapshot(sku, reason)

            return await self._run_cascade(sku)
        except AutopecasError as exc:
            logger.warning("Saldo lookup failed for %s: %s", sku, exc.message)
            return unavailable_snapshot(sku, exc.message)

    async def _isolated(self, sku: str) -> Snapshot:
        try:
            return await self._cached_or_lookup(sku)
        except Exception as exc:
            logger.warning("Saldo lookup failed for %s: %s", sku, exc)
            return {"sku": sku, "found": False, "sige": True, "quantidade": 0, "error": str(exc)}

    async def _in_batches(self, skus: List[str]) -> List[Snapshot]:
        results: List[Snapshot] = []
        step = max(1, self.config.bulk_concurrency)
        for i in range(0, len(skus), step):
            batch = skus[i:i + step]
            results.extend(await asyncio.gather(*(self._isolated(s) for s in batch)))
        return results

    async def resolve_balances(self, skus: Any) -> Dict[str, Any]:
        """Saldo de até 50 SKUs, 5 consultas simultâneas por vez."""
        if not isinstance(skus, list) or not skus:
            return {"error": "Array 'skus' obrigatorio.", "results": [], "total": 0}
        if len(skus) > self.config.bulk_max_skus:
            return {"error": f"Maximo {self.config.bulk_max_skus} SKUs por requisicao.", "results": [], "total": 0}

        skus = [str(s).strip() for s in skus]
        reason = await self.erp.is_ready()
        if reason:
            return {"results": [{"sku": s, "found": False, "sige": False} for s in skus], "error": reason}

        results = await self._in_batches(skus)
        logger.info(
            "Saldo bulk: %d SKUs, %d found, %d cached",
            len(results),
            sum(1 for r in results if r.get("found")),
            sum(1 for r in results if r.get("cached")),
        )
        return {"results": results, "total": len(results)}

    # --- Cache ------------------------------------------------------------

    async def clear_balance_cache(self) -> Dict[str, Any]:
        keys = [key for key, _ in await self.kv.items_by_prefix(KvKeys.BALANCE_PREFIX)]
        await self.kv.delete_many(keys)
        logger.info("Saldo cache cleared: %d entries", len(keys))
        return {"cleared": len(keys), "message": f"{len(keys)} entradas de cache removidas."}

    async def clear_balance_cache_for(self, sku: str) -> Dict[str, Any]:
        sku = (sku or "").strip()
        await self.kv.delete(balance_key(sku))
        return {"cleared": True, "sku": sku, "message": f"Cache para SKU {sku} removido."}

    # --- Resumo global e varredura ----------------------------------------

    async def _catalog_skus(self) -> List[str]:
        rows, _ = await self.catalog.fetch_all("sku")
        return [row["sku"] for row in rows if row.get("sku")]

    async def _cached_balances(self) -> Dict[str, Dict[str, Any]]:
        prefix = KvKeys.BALANCE_PREFIX
        return {
            key[len(prefix):]: value
            for key, value in await self.kv.items_by_prefix(prefix)
            if isinstance(value, dict)
        }

    async def stock_summary(self) -> Dict[str, Any]:
        """
        Contagem de estoque sobre todo o catálogo a partir do cache de saldos.
        SKUs sem cache válido contam como `pending`.
        """
        cached = await self.kv.get(KvKeys.STOCK_SUMMARY)
        if cached and self._now_ms() - (cached.get("_cachedAt") or 0) < self.config.summary_ttl_seconds * 1000:
            return {**cached, "cached": True}

        skus = await self._catalog_skus()
        balances = await self._cached_balances()

        in_stock = out_of_stock = not_found = pending = 0
        for sku in skus:
            entry = balances.get(sku)
            if not entry or not self._is_fresh(entry):
                pending += 1
            elif not entry.get("found"):
                not_found += 1
            else:
                available = entry.get("disponivel")
                if available is None:
                    available = entry.get("quantidade") or 0
                if available > 0:
                    in_stock += 1
                else:
                    out_of_stock += 1

        summary = {
            "totalProducts": len(skus),
            "inStock": in_stock,
            "outOfStock": out_of_stock,
            "notFound": not_found,
            "pending": pending,
            "totalCached": len(balances),
            "_cachedAt": self._now_ms(),
        }
        await cache_put(self.kv, KvKeys.STOCK_SUMMARY, summary)
        logger.info(
            "Stock summary: total=%d inStock=%d outOfStock=%d notFound=%d pending=%d",
            len(skus), in_stock, out_of_stock, not_found, pending,
        )
        return {**summary, "cached": False}

    async def invalidate_summary(self) -> None:
        await self.kv.delete(KvKeys.STOCK_SUMMARY)

    async def stock_scan(self, batch_size: Optional[int] = None) -> Dict[str, Any]:
        """Resolve até `batch_size` (máx. 50) SKUs sem cache válido."""
        limit = min(batch_size or self.config.scan_max_batch, self.config.scan_max_batch)

        reason = await self.erp.is_ready()
        if reason:
            return {"error": reason}

        skus = await self._catalog_skus()
        balances = await self._cached_balances()
        pending = [s for s in skus if s not in balances or not self._is_fresh(balances[s])]

        if not pending:
            await self.invalidate_summary()
            return {"scanned": 0, "remaining": 0, "message": "Todos os produtos ja estao no cache."}

        to_process = pending[:limit]
        results = await self._in_batches(to_process)
        await self.invalidate_summary()

        found = sum(1 for r in results if r.get("found"))
        remaining = len(pending) - len(to_process)
        logger.info("Stock scan: scanned=%d found=%d remaining=%d", len(results), found, remaining)
        return {
            "scanned": len(results),
            "found": found,
            "remaining": remaining,
            "totalPending": len(pending),
            "results": results,
        }

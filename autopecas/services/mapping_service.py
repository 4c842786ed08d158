"""
Mapeamentos persistentes SKU local → produto SIGE (`sige_map_{sku}`).

Um mapeamento salvo é a primeira estratégia da cascata de saldo/preço;
gravar ou remover um mapeamento invalida o saldo em cache do SKU.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

from ..config.constants import ErpConfig, KvKeys
from ..config.exceptions import ValidationError
from ..config.logging_config import erp_logger as logger
from ..config.settings import ErpSettings
from ..domain import SkuMapping
from ..utils.sku_utils import base_before_dash, sync_clean, sync_code_keys
from .erp_extractors import extract_list, parse_balance, product_description
from .erp_resolver import balance_key

MATCH_MANUAL = "manual"
MATCH_EXACT_COD = "exact_cod"
MATCH_CLEAN_COD = "clean_cod"
MATCH_NO_ZEROS = "no_zeros"
MATCH_SIGE_ID = "sige_id"
MATCH_BASE_DASH = "base_dash"


def mapping_key(sku: str) -> str:
    return f"{KvKeys.MAPPING_PREFIX}{sku}"


class ErpProductIndex:
    """Índice dos produtos do SIGE por código (em variações) e por id."""

    def __init__(self, products: List[Dict[str, Any]]):
        self.by_code: Dict[str, Dict[str, Any]] = {}
        self.by_id: Dict[str, Dict[str, Any]] = {}
        for product in products:
            # Em colisões o último produto listado vence
            for key in sync_code_keys(str(product.get("codProduto") or "")):
                self.by_code[key] = product
            sige_id = str(product.get("id") or "")
            if sige_id:
                self.by_id[sige_id] = product

    def match(self, sku: str) -> Tuple[Optional[Dict[str, Any]], str]:
        """(produto, matchType) na ordem exact_cod → clean_cod → no_zeros → sige_id → base_dash."""
        lowered = sku.lower()
        clean = sync_clean(lowered)
        no_zeros = lowered.lstrip("0")

        if lowered in self.by_code:
            return self.by_code[lowered], MATCH_EXACT_COD
        if clean in self.by_code:
            return self.by_code[clean], MATCH_CLEAN_COD
        if no_zeros != lowered and no_zeros in self.by_code:
            return self.by_code[no_zeros], MATCH_NO_ZEROS
        if sku in self.by_id:
            return self.by_id[sku], MATCH_SIGE_ID
        base = base_before_dash(sku)
        if base is not None and base.lower() in self.by_code:
            return self.by_code[base.lower()], MATCH_BASE_DASH
        return None, ""


class MappingService:
    def __init__(self, erp, kv, catalog, config: ErpSettings, clock: Callable[[], float] = time.time):
        self.erp = erp
        self.kv = kv
        self.catalog = catalog
        self.config = config
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def list_mappings(self) -> Dict[str, Any]:
        mappings = [
            value
            for value in await self.kv.get_by_prefix(KvKeys.MAPPING_PREFIX)
            if isinstance(value, dict) and (value.get("sku") or value.get("sigeId"))
        ]
        return {"mappings": mappings, "total": len(mappings)}

    async def set_manual(self, sku: str, sige_id: Any, cod_produto: Any = None, descricao: Any = None) -> Dict[str, Any]:
        sku = (sku or "").strip()
        sige_id = str(sige_id or "").strip()
        if not sige_id:
            raise ValidationError("sigeId obrigatorio.", field="sigeId")

        mapping: SkuMapping = {
            "sku": sku,
            "sigeId": sige_id,
            "codProduto": cod_produto or sige_id,
            "descricao": descricao or "",
            "matchType": MATCH_MANUAL,
            "matchedAt": self._now_ms(),
        }
        await self.kv.set(mapping_key(sku), mapping)
        await self.kv.delete(balance_key(sku))
        logger.info("Manual mapping: %s -> SIGE %s", sku, sige_id)
        return {"ok": True, "sku": sku, "mapping": mapping}

    async def delete(self, sku: str) -> Dict[str, Any]:
        sku = (sku or "").strip()
        await self.kv.delete_many([mapping_key(sku), balance_key(sku)])
        return {"ok": True, "sku": sku, "message": f"Mapeamento para {sku} removido."}

    async def _fetch_erp_products(self, page_size: int) -> List[Dict[str, Any]]:
        products: List[Dict[str, Any]] = []
        offset = ErpConfig.FIRST_OFFSET
        page = 0
        while True:
            page += 1
            res = await self.erp.request("GET", f"/product?{urlencode({'limit': page_size, 'offset': offset}, quote_via=quote)}")
            if not res.ok:
                logger.warning("SIGE sync: product fetch failed at offset %d (HTTP %s)", offset, res.status)
                break
            items = extract_list(res.data)
            if not items:
                break
            products.extend(items)
            logger.debug("SIGE sync: page %d, %d items (total %d)", page, len(items), len(products))
            if len(items) < page_size:
                break
            offset += page_size
        return products

    async def _store_balance(self, mapping: Dict[str, Any]) -> bool:
        try:
            res = await self.erp.request("GET", f"/product/{quote(mapping['sigeId'], safe='')}/balance")
            if not (res.ok and res.data is not None):
                return False
            totals = parse_balance(res.data)
            await self.kv.set(
                balance_key(mapping["sku"]),
                {
                    "sku": mapping["sku"],
                    "found": True,
                    "sige": True,
                    "sigeId": mapping["sigeId"],
                    "descricao": mapping["descricao"],
                    "quantidade": totals.quantidade,
                    "reservado": totals.reservado,
                    "disponivel": totals.disponivel,
                    "_cachedAt": self._now_ms(),
                },
            )
            return True
        except Exception as exc:
            logger.warning("SIGE sync: balance error for %s: %s", mapping["sku"], exc)
            return False

    async def sync_mappings(
        self,
        fetch_balances: bool = True,
        clear_existing: bool = False,
        batch_size: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Casa automaticamente todos os produtos locais com o cadastro do SIGE.

        Args:
            fetch_balances: Já busca o saldo dos novos mapeamentos
            clear_existing: Remove mapeamentos existentes antes (senão são mantidos)
            batch_size: Tamanho de página na listagem do SIGE (máx. 500)
        """
        page_size = min(batch_size or self.config.sync_page_size, self.config.sync_page_size)

        reason = await self.erp.is_ready()
        if reason:
            return {"error": reason}

        local_products = await self.catalog.fetch_all_products()
        erp_products = await self._fetch_erp_products(page_size)
        index = ErpProductIndex(erp_products)
        logger.info("SIGE sync: %d local products, %d SIGE products", len(local_products), len(erp_products))

        if clear_existing:
            await self.kv.delete_many([mapping_key(p["sku"]) for p in local_products])

        matched = unmatched = skipped = 0
        match_results: List[Dict[str, Any]] = []
        new_mappings: List[SkuMapping] = []

        for local in local_products:
            sku = local["sku"]
            if not clear_existing and await self.kv.get(mapping_key(sku)):
                skipped += 1
                continue

            product, match_type = index.match(sku)
            if product is None:
                unmatched += 1
                match_results.append({"sku": sku, "matched": False, "titulo": (local.get("titulo") or "")[:60]})
                continue

            sige_id = str(product.get("id") or product.get("codProduto") or "")
            cod_produto = str(product.get("codProduto") or "")
            descricao = product_description(product)
            mapping: SkuMapping = {
                "sku": sku,
                "sigeId": sige_id,
                "codProduto": cod_produto,
                "descricao": descricao,
                "matchType": match_type,
                "matchedAt": self._now_ms(),
            }
            await self.kv.set(mapping_key(sku), mapping)
            new_mappings.append(mapping)
            matched += 1
            match_results.append(
                {
                    "sku": sku,
                    "matched": True,
                    "matchType": match_type,
                    "sigeId": sige_id,
                    "codProduto": cod_produto,
                    "descricao": descricao[:60],
                }
            )

        logger.info("SIGE sync: %d matched, %d unmatched, %d skipped", matched, unmatched, skipped)

        balance_fetched = 0
        if fetch_balances and new_mappings:
            step = max(1, self.config.bulk_concurrency)
            for i in range(0, len(new_mappings), step):
                stored = await asyncio.gather(*(self._store_balance(m) for m in new_mappings[i:i + step]))
                balance_fetched += sum(1 for ok in stored if ok)
            logger.info("SIGE sync: fetched %d balances", balance_fetched)

        await self.kv.delete(KvKeys.STOCK_SUMMARY)
        return {
            "ok": True,
            "localProducts": len(local_products),
            "sigeProducts": len(erp_products),
            "matched": matched,
            "unmatched": unmatched,
            "skipped": skipped,
            "balanceFetched": balance_fetched,
            "matchResults": match_results[: ErpConfig.SYNC_MAX_RESULTS],
            "totalResults": len(match_results),
        }

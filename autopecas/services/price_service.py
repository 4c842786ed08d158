"""
Preço de venda por SKU: override manual ou listas de preço do SIGE.

Ordem de resolução:
1. preço customizado (`price_custom_{sku}`, formato antigo `product_price_{sku}`)
2. cache `sige_price_{sku}` (10 min encontrado / 2 min não encontrado)
3. SIGE: localiza o produto e lê `/list-price-items`, agrupando por `codLista`

As listas do SIGE viram as faixas v1/v2/v3 pelo `listPriceMapping` da
configuração. Sem mapeamento, as faixas são atribuídas pela ordem dos
códigos de lista e o resultado sai com `tierSource: "auto"`.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

from ..config.constants import ErpConfig, KvKeys
from ..config.exceptions import AutopecasError, ValidationError
from ..config.logging_config import erp_logger as logger
from ..config.settings import ErpSettings
from ..domain import PriceConfig, PriceSnapshot
from ..utils.sku_utils import base_before_dash, clean_code_if_distinct
from .erp_extractors import Number, extract_list, extract_price, to_number
from .erp_resolver import cache_put, is_fresh

TIER_SOURCE_MAPPED = "mapped"
TIER_SOURCE_AUTO = "auto"

DEFAULT_PRICE_CONFIG = {"tier": ErpConfig.DEFAULT_PRICE_TIER, "showPrice": True}


def price_key(sku: str) -> str:
    return f"{KvKeys.PRICE_PREFIX}{sku}"


def _empty_tiers() -> Dict[str, None]:
    return {tier: None for tier in ErpConfig.PRICE_TIERS}


def group_by_list(items: List[Dict[str, Any]]) -> Dict[str, Optional[Number]]:
    """
    `{codLista: preço}`. Por lista vale o primeiro item com preço; um item
    sem preço só é mantido até aparecer um com preço.
    """
    by_list: Dict[str, Optional[Number]] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        code = str(item.get("codLista") or "unknown")
        price = extract_price(item)
        if code not in by_list or (price is not None and by_list[code] is None):
            by_list[code] = price
    return by_list


def assign_tiers(
    by_list: Dict[str, Optional[Number]],
    list_mapping: Dict[str, Any],
) -> Tuple[Dict[str, Optional[Number]], str]:
    """
    Distribui os preços por lista nas faixas v1/v2/v3.

    Returns:
        (faixas, origem) com origem "mapped" quando o mapeamento configurado
        produziu algum preço, senão "auto" (ordem dos códigos de lista).
    """
    tiers: Dict[str, Optional[Number]] = _empty_tiers()
    for tier in ErpConfig.PRICE_TIERS:
        code = list_mapping.get(tier)
        if code and str(code) in by_list:
            tiers[tier] = by_list[str(code)]

    if any(v is not None for v in tiers.values()):
        return tiers, TIER_SOURCE_MAPPED

    codes = sorted(by_list.keys())
    for tier, code in zip(ErpConfig.PRICE_TIERS, codes):
        tiers[tier] = by_list[code]
    return tiers, TIER_SOURCE_AUTO


class PriceService:
    def __init__(self, erp, kv, config: ErpSettings, clock: Callable[[], float] = time.time):
        self.erp = erp
        self.kv = kv
        self.config = config
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    # --- Configuração -------------------------------------------------------

    async def get_config(self) -> PriceConfig:
        return await self.kv.get(KvKeys.PRICE_CONFIG) or dict(DEFAULT_PRICE_CONFIG)

    async def save_config(self, tier: Optional[str], show_price: Optional[bool], list_price_mapping: Any = None) -> Dict[str, Any]:
        if tier and tier not in ErpConfig.PRICE_TIERS:
            raise ValidationError(f"Faixa de preco invalida: {tier}", field="tier")
        config: Dict[str, Any] = {
            "tier": tier or ErpConfig.DEFAULT_PRICE_TIER,
            "showPrice": show_price is not False,
            "updatedAt": self._now_ms(),
        }
        if isinstance(list_price_mapping, dict):
            config["listPriceMapping"] = list_price_mapping
        await self.kv.set(KvKeys.PRICE_CONFIG, config)
        logger.info("Price config updated: tier=%s, showPrice=%s", config["tier"], config["showPrice"])
        return config

    # --- Preços customizados ----------------------------------------------

    async def set_custom_price(self, sku: str, price: Any) -> Dict[str, Any]:
        sku = (sku or "").strip()
        value = to_number(price)
        if value is None or value < 0:
            raise ValidationError("Preco invalido.", field="price")

        await self.kv.set(
            f"{KvKeys.CUSTOM_PRICE_PREFIX}{sku}",
            {"sku": sku, "price": value, "source": "custom", "updatedAt": self._now_ms()},
        )
        await self.kv.delete_many([f"{KvKeys.LEGACY_PRICE_PREFIX}{sku}", price_key(sku)])
        logger.info("Custom price set for %s: R$%.2f", sku, value)
        return {"ok": True, "sku": sku, "price": value}

    async def delete_custom_price(self, sku: str) -> Dict[str, Any]:
        sku = (sku or "").strip()
        await self.kv.delete_many(
            [f"{KvKeys.CUSTOM_PRICE_PREFIX}{sku}", f"{KvKeys.LEGACY_PRICE_PREFIX}{sku}", price_key(sku)]
        )
        return {"ok": True, "sku": sku, "message": "Preco personalizado removido."}

    async def list_custom_prices(self) -> Dict[str, Any]:
        customs: List[Dict[str, Any]] = []
        seen = set()
        for prefix in (KvKeys.CUSTOM_PRICE_PREFIX, KvKeys.LEGACY_PRICE_PREFIX):
            for key, value in await self.kv.items_by_prefix(prefix):
                if not isinstance(value, dict):
                    continue
                sku = value.get("sku") or key[len(prefix):]
                if sku in seen:
                    continue
                seen.add(sku)
                customs.append(
                    {"sku": sku, "price": value.get("price"), "source": "custom", "updatedAt": value.get("updatedAt")}
                )
        customs.sort(key=lambda c: c["sku"])
        return {"customs": customs, "total": len(customs)}

    async def _custom_price(self, sku: str) -> Optional[Any]:
        for prefix in (KvKeys.CUSTOM_PRICE_PREFIX, KvKeys.LEGACY_PRICE_PREFIX):
            custom = await self.kv.get(f"{prefix}{sku}")
            if custom and custom.get("price") is not None:
                return custom["price"]
        return None

    async def clear_cache(self) -> Dict[str, Any]:
        keys = [key for key, _ in await self.kv.items_by_prefix(KvKeys.PRICE_PREFIX)]
        await self.kv.delete_many(keys)
        logger.info("Price cache cleared: %d entries", len(keys))
        return {"cleared": len(keys), "message": f"{len(keys)} caches de preco removidos."}

    # --- Resolução ------------------------------------------------------------

    async def _search_code(self, code: str) -> Optional[Tuple[str, str]]:
        path = f"/product?{urlencode({'codProduto': code, 'limit': ErpConfig.PRICE_SEARCH_LIMIT, 'offset': ErpConfig.FIRST_OFFSET}, quote_via=quote)}"
        res = await self.erp.request("GET", path)
        if not res.ok or res.data is None:
            return None
        products = extract_list(res.data, allow_single=True)
        if not products:
            return None
        product = products[0]
        return str(product.get("codProduto") or product.get("id") or code), product.get("descProdutoEst") or ""

    async def find_product(self, sku: str) -> Optional[Tuple[str, str]]:
        """(codProduto, descrição) via mapeamento, código exato, base antes do hífen ou código limpo."""
        mapping = await self.kv.get(f"{KvKeys.MAPPING_PREFIX}{sku}")
        if mapping and mapping.get("sigeId"):
            return str(mapping["sigeId"]), ""

        for code in (sku, base_before_dash(sku), clean_code_if_distinct(sku)):
            if code is None:
                continue
            found = await self._search_code(code)
            if found is not None:
                return found
        return None

    async def _list_prices(self, cod_produto: str) -> List[Dict[str, Any]]:
        path = (
            "/list-price-items?"
            + urlencode(
                {"codProduto": cod_produto, "limit": ErpConfig.PRICE_LIST_LIMIT, "offset": ErpConfig.FIRST_OFFSET},
                quote_via=quote,
            )
        )
        res = await self.erp.request("GET", path)
        if not res.ok or res.data is None:
            logger.warning("list-price-items for %s: HTTP %s", cod_produto, res.status)
            return []
        return extract_list(res.data, allow_single=True)

    def _base_response(self, sku: str, tier: str, show_price: bool) -> Dict[str, Any]:
        return {"sku": sku, "found": False, "price": None, **_empty_tiers(), "tier": tier, "showPrice": show_price}

    async def resolve_price(self, sku: str) -> PriceSnapshot:
        sku = (sku or "").strip()
        config = await self.get_config()
        tier = config.get("tier") or ErpConfig.DEFAULT_PRICE_TIER
        show_price = config.get("showPrice") is not False

        if not sku:
            return {**self._base_response("", tier, show_price), "error": "SKU obrigatorio."}

        try:
            custom = await self._custom_price(sku)
            if custom is not None:
                return {
                    "sku": sku,
                    "found": True,
                    "source": "custom",
                    "price": custom,
                    **_empty_tiers(),
                    "tier": "custom",
                    "showPrice": show_price,
                    "cached": False,
                }

            cached = await self.kv.get(price_key(sku))
            if cached and is_fresh(
                cached,
                self._now_ms(),
                self.config.price_ttl_found_seconds * 1000,
                self.config.price_ttl_not_found_seconds * 1000,
            ):
                return {**cached, "showPrice": show_price, "cached": True}

            reason = await self.erp.is_ready()
            if reason:
                return {**self._base_response(sku, tier, show_price), "source": "none", "error": reason}

            return await self._resolve_from_erp(sku, tier, show_price, config.get("listPriceMapping") or {})
        except AutopecasError as exc:
            logger.warning("Price lookup failed for %s: %s", sku, exc.message)
            return {**self._base_response(sku, tier, show_price), "error": exc.message}

    async def _resolve_from_erp(
        self, sku: str, tier: str, show_price: bool, list_mapping: Dict[str, Any]
    ) -> PriceSnapshot:
        product = await self.find_product(sku)
        if product is None:
            logger.info("Price %s: product not found in SIGE", sku)
            not_found = {
                **self._base_response(sku, tier, show_price),
                "source": "sige",
                "_cachedAt": self._now_ms(),
            }
            await cache_put(self.kv, price_key(sku), not_found)
            return {**not_found, "cached": False}

        cod_produto, descricao = product
        items = await self._list_prices(cod_produto)
        by_list = group_by_list(items)

        tiers: Dict[str, Optional[Number]] = _empty_tiers()
        tier_source = None
        if by_list:
            tiers, tier_source = assign_tiers(by_list, list_mapping)
            if tier_source == TIER_SOURCE_AUTO:
                logger.warning(
                    "Price %s: no list mapping matched, tiers auto-assigned from lists %s",
                    sku,
                    sorted(by_list.keys())[: len(ErpConfig.PRICE_TIERS)],
                )

        base = next((tiers[t] for t in ErpConfig.PRICE_TIERS if tiers[t] is not None), None)
        if base is None and items and isinstance(items[0], dict):
            base = extract_price(items[0])

        selected = tiers.get(tier)
        price = selected if selected is not None else base

        result = {
            "sku": sku,
            "found": price is not None,
            "source": "sige",
            "sigeId": cod_produto,
            "descricao": descricao,
            **tiers,
            "base": base,
            "tier": tier,
            "tierSource": tier_source,
            "price": price,
            "showPrice": show_price,
            "_cachedAt": self._now_ms(),
        }
        await cache_put(self.kv, price_key(sku), result)
        logger.debug("Price %s: v1=%s v2=%s v3=%s base=%s price=%s", sku, tiers["v1"], tiers["v2"], tiers["v3"], base, price)
        return {**result, "cached": False}

"""
Reconciliação de SKUs importados (CSV, planilhas) contra o catálogo.

Três níveis, do mais estrito ao mais tolerante:
1. exato
2. normalizado (trim, maiúsculas, sem caracteres invisíveis)
3. agressivo (também sem `-`, `_`, `.`, espaços e barras)

    >>> normalize_sku_aggressive("abc-1234 ")
    'ABC1234'
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..config.constants import KvKeys, Messages, ReconcileConfig
from ..config.exceptions import ValidationError
from ..config.logging_config import service_logger as logger
from ..utils.csv_attributes import parse_attributes_csv

# zero-width space, BOM, NBSP, ZWNJ, ZWJ, word joiner
_RE_INVISIBLE = re.compile("[\u200b\ufeff\u00a0\u200c\u200d\u2060]")
_RE_SPACES = re.compile(r"\s+")
_RE_SEPARATORS = re.compile(r"[-_.\s/\\]")

TIER_EXACT = "exact"
TIER_NORMALIZED = "normalized"
TIER_AGGRESSIVE = "aggressive"


def normalize_sku(sku: str) -> str:
    result = _RE_INVISIBLE.sub("", (sku or "").strip().upper())
    return _RE_SPACES.sub(" ", result).strip()


def normalize_sku_aggressive(sku: str) -> str:
    return _RE_SEPARATORS.sub("", normalize_sku(sku))


@dataclass
class ReconciliationOutcome:
    matched: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    exact: int = 0
    normalized: int = 0
    aggressive: int = 0

    @property
    def match_details(self) -> Dict[str, int]:
        return {
            TIER_EXACT: self.exact,
            TIER_NORMALIZED: self.normalized,
            TIER_AGGRESSIVE: self.aggressive,
        }


def reconcile(imported: Iterable[str], catalog_skus: Iterable[str]) -> ReconciliationOutcome:
    """
    Classifica cada SKU importado no primeiro nível que casar.

    As tabelas de lookup são montadas uma vez (o primeiro SKU do catálogo
    visto para cada chave vence). Função total: nunca levanta exceção.
    """
    exact_set = set()
    by_normalized: Dict[str, str] = {}
    by_aggressive: Dict[str, str] = {}

    for catalog_sku in catalog_skus:
        exact_set.add(catalog_sku)
        by_normalized.setdefault(normalize_sku(catalog_sku), catalog_sku)
        by_aggressive.setdefault(normalize_sku_aggressive(catalog_sku), catalog_sku)

    outcome = ReconciliationOutcome()
    for sku in imported:
        if sku in exact_set:
            outcome.matched.append(sku)
            outcome.exact += 1
        elif normalize_sku(sku) in by_normalized:
            outcome.matched.append(sku)
            outcome.normalized += 1
        elif normalize_sku_aggressive(sku) in by_aggressive:
            outcome.matched.append(sku)
            outcome.aggressive += 1
        else:
            outcome.unmatched.append(sku)

    return outcome


class ReconcileService:
    """
    Operações de reconciliação expostas pela API: conferência de uma lista
    de SKUs e importação do CSV de atributos.
    """

    def __init__(self, catalog, kv):
        self.catalog = catalog
        self.kv = kv

    async def match_skus(self, skus: Any) -> Dict[str, Any]:
        if not isinstance(skus, list) or not skus:
            raise ValidationError(Messages.SKUS_REQUIRED, field="skus")

        catalog_skus, total_db = await self.catalog.fetch_all_skus()
        outcome = reconcile([str(s) for s in skus], catalog_skus)

        logger.info(
            "match-skus: matched=%d (exact=%d, norm=%d, agg=%d), unmatched=%d",
            len(outcome.matched),
            outcome.exact,
            outcome.normalized,
            outcome.aggressive,
            len(outcome.unmatched),
        )

        return {
            "totalDb": total_db,
            "totalDbUnique": len(catalog_skus),
            "matched": outcome.matched,
            "unmatched": outcome.unmatched[: ReconcileConfig.MAX_UNMATCHED_RESPONSE],
            "totalMatched": len(outcome.matched),
            "totalUnmatched": len(outcome.unmatched),
            "matchDetails": outcome.match_details,
        }

    async def import_attributes(self, csv_text: str) -> Dict[str, Any]:
        """
        Processa o CSV de atributos: valida, reconcilia contra o catálogo e
        substitui o mapa salvo no KV.

        Raises:
            ValidationError: CSV vazio ou sem coluna SKU / SKUs válidos
        """
        if not (csv_text or "").strip():
            raise ValidationError(Messages.CSV_EMPTY, field="file")

        parsed, columns = parse_attributes_csv(csv_text)
        csv_skus = list(parsed.keys())
        if not csv_skus:
            raise ValidationError(Messages.CSV_WITHOUT_SKU, field="file")

        catalog_skus, total_db = await self.catalog.fetch_all_skus()
        outcome = reconcile(csv_skus, catalog_skus)

        await self.kv.set(KvKeys.SKU_ATTRIBUTES, parsed)
        logger.info(
            "CSV de atributos importado: %d SKUs, %d colunas, %d vinculados",
            len(csv_skus),
            len(columns),
            len(outcome.matched),
        )

        preview = [
            {"sku": sku, "attributes": parsed.get(sku, {})}
            for sku in outcome.matched[: ReconcileConfig.PREVIEW_SIZE]
        ]

        return {
            "success": True,
            "totalCsv": len(csv_skus),
            "totalDb": total_db,
            "matched": len(outcome.matched),
            "unmatched": len(outcome.unmatched),
            "unmatchedSkus": outcome.unmatched[: ReconcileConfig.MAX_UNMATCHED_UPLOAD],
            "columns": columns,
            "preview": preview,
            "message": (
                f"CSV processado com sucesso. {len(outcome.matched)} SKUs vinculados, "
                f"{len(outcome.unmatched)} sem correspondência no banco."
            ),
            "matchDetails": outcome.match_details,
        }

    async def get_attributes(self, sku: Optional[str] = None) -> Dict[str, Any]:
        attributes_map = await self.kv.get(KvKeys.SKU_ATTRIBUTES) or {}
        sku = (sku or "").strip()
        if sku:
            attributes = attributes_map.get(sku)
            return {"sku": sku, "attributes": attributes, "found": bool(attributes)}
        data = [{"sku": s, "attributes": attrs} for s, attrs in attributes_map.items()]
        return {"total": len(data), "data": data}

    async def clear_attributes(self) -> Dict[str, Any]:
        await self.kv.delete(KvKeys.SKU_ATTRIBUTES)
        return {"success": True, "message": "CSV de atributos removido com sucesso."}

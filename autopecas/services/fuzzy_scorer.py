"""
Ranking fuzzy de produtos (autocomplete).

O score é a soma de sinais independentes: match exato, prefixo, substring,
hits por token, chave fonética, distância de edição e cobertura de todos os
tokens. Só a ordem relativa importa para o cliente; os pesos ficam em
`ScoreWeights`.
"""

import math
from typing import Any, Dict, Iterable, List, Mapping

from ..config.constants import ScoreWeights as W
from ..domain import RankedProduct
from ..utils.text_normalizer import SearchQuery, levenshtein, normalize_text, phonetic_key

MATCH_EXACT = "exact"
MATCH_SKU = "sku"
MATCH_SIMILAR = "similar"
MATCH_FUZZY = "fuzzy"


def _split(text: str) -> List[str]:
    return [t for t in text.split(" ") if t]


def _edit_distance_bonus(query_tokens: Iterable[str], target_tokens: List[str], weight: int) -> int:
    score = 0
    for qt in query_tokens:
        if len(qt) < W.EDIT_MIN_TOKEN_LENGTH:
            continue
        best = math.inf
        for tt in target_tokens:
            if abs(len(tt) - len(qt)) > W.EDIT_LENGTH_WINDOW:
                continue
            d = levenshtein(qt, tt)
            if d < best:
                best = d
        max_dist = max(1, math.floor(len(qt) * W.EDIT_DISTANCE_RATIO))
        if best <= max_dist:
            score += (max_dist - int(best) + 1) * weight
    return score


def _token_hits(query_tokens: Iterable[str], title_tokens: List[str]) -> int:
    hits = 0
    for qt in query_tokens:
        if len(qt) < 2:
            continue
        for tt in title_tokens:
            # O primeiro token do título que casar define o peso
            if tt == qt:
                hits += W.TOKEN_EXACT_HITS
                break
            if tt.startswith(qt):
                hits += W.TOKEN_PREFIX_HITS
                break
            if qt in tt:
                hits += W.TOKEN_SUBSTRING_HITS
                break
    return hits


def _all_tokens_present(query: SearchQuery, title_tokens: List[str], title_phonetic_tokens: List[str]) -> bool:
    for qt in query.meaningful:
        if any(tt == qt or tt.startswith(qt) or qt in tt for tt in title_tokens):
            continue
        qpt = phonetic_key(qt).replace(" ", "")
        if any(tpt == qpt or tpt.startswith(qpt) or qpt in tpt for tpt in title_phonetic_tokens):
            continue
        return False
    return True


def score_product(query: SearchQuery, titulo: str, sku: str) -> int:
    """
    Pontua um produto contra a query. Sempre >= 0; 0 significa irrelevante.

    Args:
        query: Query já derivada (normalizada, fonética, tokens)
        titulo: Título bruto do produto
        sku: SKU bruto do produto
    """
    q_norm = query.normalized
    titulo_norm = normalize_text(titulo)
    sku_norm = normalize_text(sku)
    titulo_phonetic = phonetic_key(titulo)
    titulo_tokens = _split(titulo_norm)
    score = 0

    if titulo_norm == q_norm or sku_norm == q_norm:
        score += W.EXACT

    if titulo_norm.startswith(q_norm):
        score += W.TITLE_PREFIX
    if sku_norm.startswith(q_norm):
        score += W.SKU_PREFIX

    if q_norm in titulo_norm:
        score += W.TITLE_CONTAINS
    if q_norm in sku_norm:
        score += W.SKU_CONTAINS

    score += _token_hits(query.tokens, titulo_tokens) * W.TOKEN_HIT_MULTIPLIER

    if query.phonetic in titulo_phonetic:
        score += W.PHONETIC_CONTAINS
    query_phonetic_tokens = _split(query.phonetic)
    titulo_phonetic_tokens = _split(titulo_phonetic)
    for qpt in query_phonetic_tokens:
        if len(qpt) < 2:
            continue
        if any(qpt in tpt for tpt in titulo_phonetic_tokens):
            score += W.PHONETIC_TOKEN

    score += _edit_distance_bonus(query.tokens, titulo_tokens, W.EDIT_DISTANCE)
    score += _edit_distance_bonus(query_phonetic_tokens, titulo_phonetic_tokens, W.PHONETIC_EDIT_DISTANCE)

    if query.compact in sku_norm:
        score += W.SKU_COMPACT_CONTAINS

    if len(query.tokens) > 1 and len(query.meaningful) > 1:
        if _all_tokens_present(query, titulo_tokens, titulo_phonetic_tokens):
            score += W.ALL_TOKENS_PRESENT

    return score


def classify_match(query: SearchQuery, titulo: str, sku: str, score: int) -> str:
    """Dica de UI: exact > sku > similar > fuzzy."""
    titulo_norm = normalize_text(titulo)
    sku_norm = normalize_text(sku)
    if query.normalized in titulo_norm or query.normalized in sku_norm:
        return MATCH_EXACT
    if query.compact in sku_norm:
        return MATCH_SKU
    if score >= W.SIMILAR_THRESHOLD:
        return MATCH_SIMILAR
    return MATCH_FUZZY


def rank_candidates(query: SearchQuery, rows: Iterable[Mapping[str, Any]], limit: int) -> List[RankedProduct]:
    """
    Pontua, descarta score 0, ordena por score (estável) e corta em `limit`.

    As linhas chegam ordenadas por título do catálogo; a ordenação estável
    preserva essa ordem entre scores iguais.
    """
    scored = []
    for row in rows:
        titulo = row.get("titulo") or ""
        sku = row.get("sku") or ""
        score = score_product(query, titulo, sku)
        if score > 0:
            scored.append((score, titulo, sku))

    scored.sort(key=lambda item: item[0], reverse=True)

    return [
        {
            "sku": sku,
            "titulo": titulo,
            "matchType": classify_match(query, titulo, sku, score),
            "score": score,
        }
        for score, titulo, sku in scored[: max(0, limit)]
    ]

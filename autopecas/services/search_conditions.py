"""
Montagem de filtros PostgREST (`ilike` com curinga `*`) para busca textual.

O banco guarda títulos com acento e a query chega sem; em vez de depender de
`unaccent` no servidor, geramos variantes acentuadas por token.

    "filtro oleo" → and(or(titulo.ilike.*filtro*,...),or(titulo.ilike.*oleo*,titulo.ilike.*óleo*,...)),sku.ilike.*filtrooleo*,...

O chamador embrulha o resultado em `or=(...)`.
"""

import re
from typing import Callable, Dict, List, Optional, Tuple

from ..config.constants import SearchConfig
from ..utils.text_normalizer import PT_STOPWORDS, normalize_text

MODE_CATALOG = "catalog"
MODE_AUTOCOMPLETE = "autocomplete"

ACCENT_MAP: Dict[str, Tuple[str, ...]] = {
    "a": ("á", "ã", "â"),
    "e": ("é", "ê"),
    "i": ("í",),
    "o": ("ó", "ô", "õ"),
    "u": ("ú",),
    "c": ("ç",),
}

_VOWELS = "aeiou"
_RE_FIRST_VOWEL = re.compile(r"[aeiou]")
_RE_SKU_SEPARATORS = re.compile(r"[-_.\s/\\]")
_RE_SEGMENTS = re.compile(r"[a-z]+|[0-9]+")
_RE_SPACES = re.compile(r"\s+")
_RE_NON_ALNUM = re.compile(r"[^a-z0-9]")
_RE_STAR_RUNS = re.compile(r"\*+")


def _dedupe(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


def generate_token_patterns(token: str) -> List[str]:
    """
    Variantes `ilike` tolerantes a acento para um token.

    Inclui substituição acentuada por posição, terminações comuns
    (ao/oes/cao), curinga `_` na primeira e segunda vogal e o token sem a
    primeira letra. Retorna no máximo 15 padrões, sem duplicatas.
    """
    if len(token) < 2:
        return [f"*{token}*"]

    patterns = [f"*{token}*"]

    for i, ch in enumerate(token):
        for variant in ACCENT_MAP.get(ch, ()):
            patterns.append(f"*{token[:i]}{variant}{token[i + 1:]}*")

    if token.endswith("ao"):
        patterns.append(f"*{token[:-2]}ão*")
    if token.endswith("oes"):
        patterns.append(f"*{token[:-3]}ões*")
    if token.endswith("cao"):
        patterns.append(f"*{token[:-3]}ção*")
    if "ca" in token:
        patterns.append(f"*{token.replace('ca', 'ça', 1)}*")
    if "co" in token and "com" not in token:
        patterns.append(f"*{token.replace('co', 'ço', 1)}*")

    first_vowel = _RE_FIRST_VOWEL.search(token)
    if first_vowel and len(token) >= 3:
        idx = first_vowel.start()
        patterns.append(f"*{token[:idx]}_{token[idx + 1:]}*")

    if len(token) >= 5:
        vowel_count = 0
        for i, ch in enumerate(token):
            if ch in _VOWELS:
                vowel_count += 1
                if vowel_count == 2:
                    patterns.append(f"*{token[:i]}_{token[i + 1:]}*")
                    break

    # Primeira letra acentuada no banco (ex: "Óleo")
    if len(token) >= 4:
        patterns.append(f"*{token[1:]}*")

    return _dedupe(patterns)[: SearchConfig.MAX_PATTERNS_PER_TOKEN]


# --- Estratégias de padrão para SKU --------------------------------------
# Cada estratégia recebe (normalizado sem espaços, original em minúsculas)
# e devolve um padrão ou None.

def _sku_compact(compact: str, original: str) -> Optional[str]:
    return compact


def _sku_spaces_as_wildcards(compact: str, original: str) -> Optional[str]:
    return _RE_SPACES.sub("*", original)


def _sku_without_separators(compact: str, original: str) -> Optional[str]:
    # ABC-12 → ABC12 (casa com ABC1234)
    clean = _RE_SKU_SEPARATORS.sub("", original)
    if clean != compact and len(clean) >= 2:
        return clean
    return None


def _sku_segments(compact: str, original: str) -> Optional[str]:
    # abc12 → abc*12 (casa com abc-1234)
    segments = _RE_SEGMENTS.findall(compact)
    if len(segments) > 1:
        return "*".join(segments)
    return None


SKU_PATTERN_STRATEGIES: Tuple[Callable[[str, str], Optional[str]], ...] = (
    _sku_compact,
    _sku_spaces_as_wildcards,
    _sku_without_separators,
    _sku_segments,
)


def sku_conditions(normalized: str, original: str) -> List[str]:
    """Condições `sku.ilike` derivadas da query inteira (sempre incluídas)."""
    compact = _RE_SPACES.sub("", normalized)
    if len(compact) < 2:
        return []

    conditions = []
    for strategy in SKU_PATTERN_STRATEGIES:
        pattern = strategy(compact, original)
        if pattern is not None:
            conditions.append(f"sku.ilike.*{pattern}*")
    return conditions


def effective_tokens(normalized: str) -> List[str]:
    """Tokens (len >= 2) sem stop-words; se sobrar nada, todos os tokens."""
    all_tokens = [t for t in normalized.split(" ") if len(t) >= SearchConfig.MIN_TOKEN_LENGTH]
    tokens = [t for t in all_tokens if t not in PT_STOPWORDS]
    return tokens or all_tokens


def build_search_conditions(search_term: str, mode: str = MODE_CATALOG) -> str:
    """
    Gera a lista de condições (sem o `or=(...)` externo).

    Args:
        search_term: Texto digitado pelo usuário
        mode: "catalog" (AND por token só no título) ou
              "autocomplete" (também testa os 3 primeiros padrões no SKU)

    Returns:
        String não vazia de condições separadas por vírgula.
    """
    norm = normalize_text(search_term)
    original = (search_term or "").lower().strip()
    tokens = effective_tokens(norm)

    if not tokens:
        p = _RE_STAR_RUNS.sub("*", _RE_NON_ALNUM.sub("*", original))
        return f"titulo.ilike.*{p}*,sku.ilike.*{p}*"

    sku_conds = sku_conditions(norm, original)

    if len(tokens) == 1:
        conditions: List[str] = []
        for p in generate_token_patterns(tokens[0]):
            conditions.append(f"titulo.ilike.{p}")
            conditions.append(f"sku.ilike.{p}")
        conditions.extend(sku_conds)
        return ",".join(_dedupe(conditions))

    # Multi-token: cada token precisa aparecer no título
    groups = []
    for token in tokens[: SearchConfig.MAX_QUERY_TOKENS]:
        patterns = generate_token_patterns(token)
        group = [f"titulo.ilike.{p}" for p in patterns]
        if mode == MODE_AUTOCOMPLETE:
            group.extend(
                f"sku.ilike.{p}" for p in patterns[: SearchConfig.AUTOCOMPLETE_SKU_PATTERNS]
            )
        groups.append(f"or({','.join(group)})")

    and_clause = f"and({','.join(groups)})"
    return ",".join([and_clause, *_dedupe(sku_conds)])

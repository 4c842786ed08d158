"""
Normalização de texto em português para busca fuzzy.

Todas as funções são puras: o mesmo texto gera sempre a mesma chave,
então podem ser usadas tanto no ranking quanto na montagem de filtros.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import List, Tuple

from ..config.constants import SearchConfig

# Pre-compiled regexes (hot path do autocomplete)
_RE_COMBINING = re.compile("[\u0300-\u036f]")
_RE_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_RE_SPACES = re.compile(r"\s+")

# Equivalências fonéticas comuns do português. A ordem importa.
PHONETIC_REPLACEMENTS: Tuple[Tuple[re.Pattern, str], ...] = tuple(
    (re.compile(pattern), replacement)
    for pattern, replacement in (
        (r"ss", "s"),
        (r"ç", "s"),
        (r"ch", "x"),
        (r"sh", "x"),
        (r"ph", "f"),
        (r"th", "t"),
        (r"lh", "li"),
        (r"nh", "ni"),
        (r"rr", "r"),
        (r"qu", "k"),
        (r"gu(?=[ei])", "g"),
        (r"ge", "je"),
        (r"gi", "ji"),
        (r"ce", "se"),
        (r"ci", "si"),
        (r"ks", "x"),
        (r"ct", "t"),
        (r"sc(?=[ei])", "s"),
        (r"xc(?=[ei])", "s"),
        (r"z$", "s"),
        (r"w", "v"),
        (r"y", "i"),
        (r"ll", "l"),
        (r"nn", "n"),
        (r"mm", "m"),
        (r"tt", "t"),
        (r"pp", "p"),
        (r"bb", "b"),
        (r"dd", "d"),
        (r"ff", "f"),
        (r"gg", "g"),
        (r"cc", "c"),
    )
)

PT_STOPWORDS = frozenset(
    {
        "de", "do", "da", "dos", "das", "em", "no", "na", "nos", "nas",
        "um", "uma", "uns", "umas", "o", "a", "os", "as", "e", "ou",
        "para", "por", "com", "sem", "ate", "que", "se", "mas", "mais",
        "ao", "aos", "pelo", "pela", "pelos", "pelas", "es", "el",
        "so", "ja", "nao", "nem", "tipo", "ser", "ter",
    }
)


def normalize_text(text: str) -> str:
    """
    Remove acentos e pontuação, deixando apenas [a-z0-9] separados por um espaço.

    Examples:
        >>> normalize_text("Filtro de Óleo")
        'filtro de oleo'
        >>> normalize_text("  KIT-EMBREAGEM/VW  ")
        'kit embreagem vw'
    """
    result = unicodedata.normalize("NFD", (text or "").lower())
    result = _RE_COMBINING.sub("", result)
    result = _RE_NON_ALNUM.sub(" ", result)
    return _RE_SPACES.sub(" ", result).strip()


def phonetic_key(text: str) -> str:
    """Chave fonética: texto normalizado com as substituições aplicadas em ordem."""
    result = normalize_text(text)
    for pattern, replacement in PHONETIC_REPLACEMENTS:
        result = pattern.sub(replacement, result)
    return result


def tokenize(normalized: str, min_length: int = 2) -> List[str]:
    return [t for t in normalized.split(" ") if t and len(t) >= min_length]


def meaningful_tokens(tokens: List[str]) -> List[str]:
    """Tokens sem stop-words (mantém a ordem original)."""
    return [t for t in tokens if len(t) >= 2 and t not in PT_STOPWORDS]


def levenshtein(a: str, b: str) -> int:
    """Distância de edição clássica (inserção, remoção, substituição)."""
    m, n = len(a), len(b)
    if m == 0:
        return n
    if n == 0:
        return m

    previous = list(range(n + 1))
    for i in range(1, m + 1):
        current = [i] + [0] * n
        for j in range(1, n + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
        previous = current
    return previous[n]


@dataclass(frozen=True)
class SearchQuery:
    """Query de busca com todas as formas derivadas calculadas uma única vez."""

    raw: str
    normalized: str
    phonetic: str
    tokens: Tuple[str, ...] = field(default_factory=tuple)
    meaningful: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_raw(cls, raw: str) -> "SearchQuery":
        normalized = normalize_text(raw)
        tokens = tokenize(normalized)
        return cls(
            raw=raw,
            normalized=normalized,
            phonetic=phonetic_key(raw),
            tokens=tuple(tokens),
            meaningful=tuple(meaningful_tokens(tokens)),
        )

    @property
    def compact(self) -> str:
        """Query normalizada sem espaços (usada nos matches de SKU)."""
        return _RE_SPACES.sub("", self.normalized)

    @property
    def actionable(self) -> bool:
        return len(self.raw.strip()) >= SearchConfig.MIN_QUERY_LENGTH

import re
from typing import List, Optional

_RE_CODE_SEPARATORS = re.compile(r"[-.\s]")
_RE_SYNC_SEPARATORS = re.compile(r"[-./\s]")


def base_before_dash(sku: str) -> Optional[str]:
    """
    Parte do SKU antes do primeiro hífen (variante → produto base no ERP).

    Examples:
        >>> base_before_dash("112274376-01")
        '112274376'
        >>> base_before_dash("ABC123") is None
        True
    """
    if "-" not in (sku or ""):
        return None
    return sku.split("-")[0]


def clean_code(sku: str) -> str:
    """Remove hífens, pontos e espaços (ex: "11.227-4376" → "112274376")."""
    return _RE_CODE_SEPARATORS.sub("", sku or "")


def clean_code_if_distinct(sku: str) -> Optional[str]:
    """
    Código limpo apenas quando acrescenta uma tentativa nova: diferente do
    SKU e da parte base antes do hífen.
    """
    clean = clean_code(sku)
    if clean == sku:
        return None
    base = base_before_dash(sku)
    if base is not None and clean == base:
        return None
    return clean


def sync_code_keys(code: str) -> List[str]:
    """Chaves de índice de um código do ERP: minúsculo, sem zeros à esquerda, sem separadores."""
    lowered = (code or "").lower()
    if not lowered:
        return []
    keys = (lowered, lowered.lstrip("0"), _RE_SYNC_SEPARATORS.sub("", lowered))
    return list(dict.fromkeys(key for key in keys if key))


def sync_clean(code: str) -> str:
    return _RE_SYNC_SEPARATORS.sub("", code or "")

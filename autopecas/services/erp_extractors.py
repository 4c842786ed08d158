"""
Extração de quantidades e preços das respostas do SIGE.

O SIGE não tem um schema estável entre versões/instalações: o mesmo dado
aparece como `quantidade`, `qtdSaldo`, `saldoFisico`... Cada grandeza tem
uma lista ordenada de extratores: primeiro campos nomeados, depois uma
heurística por padrão de chave. Para suportar um novo formato basta
acrescentar um campo/extrator na lista correspondente.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

Number = Union[int, float]

LIST_CONTAINER_KEYS = ("dados", "data", "items", "content")
PRODUCT_MARKER_KEYS = ("codProduto", "id", "descProdutoEst")
PRODUCT_ID_KEYS = ("id", "codProduto", "codigo", "cod")

QUANTITY_FIELDS = (
    "quantidade", "qtdSaldo", "saldo", "saldoFisico", "saldoAtual", "qtdFisica",
    "qtdEstoque", "qtd", "estoque", "qtde", "qtdAtual", "qtdTotal", "saldoTotal",
    "qtdSaldoFisico", "vlSaldo", "vlrSaldo",
)
RESERVED_FIELDS = (
    "reservado", "qtdReservado", "qtdReserva", "saldoReservado", "qtdReservada", "vlReservado",
)
AVAILABLE_FIELDS = (
    "disponivel", "qtdDisponivel", "saldoDisponivel", "qtdDisp", "vlDisponivel",
)
PRICE_FIELDS = (
    "vlrTabela", "valorTabela", "vlrLista", "valorLista", "vlrPreco", "valorPreco",
    "vlrVenda", "valorVenda", "precoVenda", "preco", "valor", "vlr", "vlrItem", "valorItem",
    "precoItem", "precoUnitario", "valorUnitario", "vlrUnitario", "precoLista",
    "vlr_tabela", "valor_tabela", "preco_venda", "valor_venda", "vlr_venda",
)

_RE_QUANTITY_SKIP = re.compile(r"^(cod|id|num|pagina|qtdRegistro|qtdPagina|grade|divisao|unidade)", re.I)
_RE_PRICE_KEY = re.compile(r"^(vlr|valor|preco|tabela)", re.I)
_RE_PRICE_SKIP = re.compile(r"^(cod|id|limit|offset|desc|tipo|unidade|data)", re.I)


def to_number(value: Any) -> Optional[Number]:
    """
    Converte valores do SIGE (número ou string numérica) em número.

    Examples:
        >>> to_number("12")
        12
        >>> to_number(" 3.5 ")
        3.5
        >>> to_number("") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def _nonzero(v: Number) -> bool:
    return v != 0


def _positive(v: Number) -> bool:
    return v > 0


def _any(v: Number) -> bool:
    return True


@dataclass(frozen=True)
class NamedFieldsExtractor:
    """Primeiro campo da lista com valor numérico aceito por `accept`."""

    fields: Tuple[str, ...]
    accept: Callable[[Number], bool] = _nonzero

    def __call__(self, item: Dict[str, Any]) -> Optional[Number]:
        for key in self.fields:
            value = to_number(item.get(key))
            if value is not None and self.accept(value):
                return value
        return None


@dataclass(frozen=True)
class HeuristicExtractor:
    """
    Primeiro valor > 0 cuja chave casa (ou, com `exclude=True`, não casa)
    com `pattern`. Com `numeric_strings=False` só considera números nativos.
    """

    pattern: re.Pattern
    exclude: bool = True
    numeric_strings: bool = True

    def __call__(self, item: Dict[str, Any]) -> Optional[Number]:
        for key, raw in item.items():
            if bool(self.pattern.search(key)) == self.exclude:
                continue
            if not self.numeric_strings and not isinstance(raw, (int, float)):
                continue
            value = to_number(raw)
            if value is not None and value > 0:
                return value
        return None


Extractor = Callable[[Dict[str, Any]], Optional[Number]]

QUANTITY_EXTRACTORS: Tuple[Extractor, ...] = (
    NamedFieldsExtractor(QUANTITY_FIELDS),
    HeuristicExtractor(_RE_QUANTITY_SKIP, exclude=True),
)
RESERVED_EXTRACTORS: Tuple[Extractor, ...] = (NamedFieldsExtractor(RESERVED_FIELDS, accept=_any),)
AVAILABLE_EXTRACTORS: Tuple[Extractor, ...] = (NamedFieldsExtractor(AVAILABLE_FIELDS),)
PRICE_EXTRACTORS: Tuple[Extractor, ...] = (
    NamedFieldsExtractor(PRICE_FIELDS, accept=_positive),
    HeuristicExtractor(_RE_PRICE_KEY, exclude=False),
    HeuristicExtractor(_RE_PRICE_SKIP, exclude=True),
)


def first_value(extractors: Sequence[Extractor], item: Dict[str, Any]) -> Optional[Number]:
    for extractor in extractors:
        value = extractor(item)
        if value is not None:
            return value
    return None


def _objects(items: List[Any]) -> List[Dict[str, Any]]:
    return [item for item in items if isinstance(item, dict)]


def extract_list(data: Any, allow_single: bool = False) -> List[Dict[str, Any]]:
    """
    Lista de itens de uma resposta do SIGE (array puro ou embrulhado em
    `dados`/`data`/`items`/`content`). Com `allow_single`, um objeto de
    produto isolado vira lista de um item.
    """
    if not data:
        return []
    if isinstance(data, list):
        return _objects(data)
    if not isinstance(data, dict):
        return []
    for key in LIST_CONTAINER_KEYS:
        if isinstance(data.get(key), list):
            return _objects(data[key])
    if allow_single and any(data.get(k) for k in PRODUCT_MARKER_KEYS):
        return [data]
    return []


@dataclass
class BalanceTotals:
    quantidade: Number = 0
    reservado: Number = 0
    disponivel: Number = 0
    locais: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def has_stock(self) -> bool:
        return self.quantidade > 0 or self.disponivel > 0


def _first_truthy(item: Dict[str, Any], keys: Sequence[str], default: Any) -> Any:
    for key in keys:
        if item.get(key):
            return item[key]
    return default


def _item_balance(item: Dict[str, Any]) -> Tuple[Number, Number, Number]:
    qtd = first_value(QUANTITY_EXTRACTORS, item) or 0
    res = first_value(RESERVED_EXTRACTORS, item) or 0
    disp = first_value(AVAILABLE_EXTRACTORS, item) or (qtd - res)
    return qtd, res, disp


def parse_balance(data: Any) -> BalanceTotals:
    """
    Soma o saldo de todos os locais de estoque.

    Objeto sem lista (e sem `error`/`message`) é tratado como saldo único.
    """
    totals = BalanceTotals()
    items = extract_list(data)

    if items:
        for item in items:
            qtd, res, disp = _item_balance(item)
            totals.quantidade += qtd
            totals.reservado += res
            totals.disponivel += disp
            totals.locais.append(
                {
                    "local": _first_truthy(item, ("descLocal", "nomeLocal", "localEstoque", "codLocal", "local"), "Geral"),
                    "filial": _first_truthy(item, ("descFilial", "nomeFilial", "codFilial", "filial"), ""),
                    "quantidade": qtd,
                    "reservado": res,
                    "disponivel": disp,
                }
            )
    elif isinstance(data, dict) and not data.get("error") and not data.get("message"):
        totals.quantidade, totals.reservado, totals.disponivel = _item_balance(data)

    return totals


def extract_price(item: Dict[str, Any]) -> Optional[Number]:
    return first_value(PRICE_EXTRACTORS, item)


def product_description(product: Dict[str, Any]) -> str:
    return product.get("descProdutoEst") or product.get("descricao") or product.get("descProduto") or ""


def candidate_ids(product: Dict[str, Any]) -> List[str]:
    """IDs distintos que podem servir para `/product/{id}/balance`."""
    ids: List[str] = []
    for key in PRODUCT_ID_KEYS:
        value = product.get(key)
        if value and str(value) not in ids:
            ids.append(str(value))
    return ids

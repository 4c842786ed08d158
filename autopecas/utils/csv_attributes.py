"""
Parser do CSV de atributos por SKU (planilha exportada pelo time de cadastro).

Formato esperado:
    SKU;Marca;Aplicacao
    ABC-1234;Bosch;"Gol, Parati, Saveiro"

O separador (`;` ou `,`) é detectado pela linha de cabeçalho. Valores com
vírgula viram lista.
"""

import csv
import re
from typing import Dict, List, Tuple, Union

AttributeValue = Union[str, List[str]]
AttributeMap = Dict[str, Dict[str, AttributeValue]]

_RE_LINE_BREAK = re.compile(r"\r?\n")
_RE_NON_LETTERS = re.compile(r"[^a-z]")


def detect_delimiter(header_line: str) -> str:
    return ";" if header_line.count(";") > header_line.count(",") else ","


def is_sku_header(header: str) -> bool:
    """'SKU', ' sku ', 'S.K.U' → True."""
    return _RE_NON_LETTERS.sub("", (header or "").lower()) == "sku"


def _non_empty_lines(csv_text: str) -> List[str]:
    return [line for line in _RE_LINE_BREAK.split(csv_text or "") if line.strip()]


def _split_rows(lines: List[str]) -> List[List[str]]:
    delimiter = detect_delimiter(lines[0])
    reader = csv.reader(lines, delimiter=delimiter, quotechar='"', doublequote=True)
    return [[field.strip() for field in row] for row in reader]


def _coerce_value(value: str) -> Union[AttributeValue, None]:
    if "," not in value:
        return value
    parts = [part.strip() for part in value.split(",") if part.strip()]
    if len(parts) > 1:
        return parts
    if len(parts) == 1:
        return parts[0]
    return None


def parse_attributes_csv(csv_text: str) -> Tuple[AttributeMap, List[str]]:
    """
    Converte o texto do CSV em `{sku: {coluna: valor}}`.

    Returns:
        (mapa de atributos, colunas de atributo). Mapa vazio quando há menos
        de duas linhas ou não existe coluna SKU. Linhas sem SKU ou sem nenhum
        atributo preenchido são ignoradas.
    """
    lines = _non_empty_lines(csv_text)
    if len(lines) < 2:
        return {}, []

    rows = _split_rows(lines)
    headers = rows[0]
    sku_index = next((i for i, h in enumerate(headers) if is_sku_header(h)), -1)
    if sku_index == -1:
        return {}, []

    columns = [h for i, h in enumerate(headers) if i != sku_index]
    result: AttributeMap = {}

    for fields in rows[1:]:
        sku = fields[sku_index].strip() if sku_index < len(fields) else ""
        if not sku:
            continue

        attributes: Dict[str, AttributeValue] = {}
        for j, key in enumerate(headers):
            if j == sku_index or j >= len(fields):
                continue
            value = fields[j]
            if not key or not value:
                continue
            coerced = _coerce_value(value)
            if coerced is not None:
                attributes[key] = coerced

        if attributes:
            result[sku] = attributes

    return result, columns

import pytest

from autopecas.services import erp_extractors as ex


pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "value, expected",
    [("12", 12), (" 3.5 ", 3.5), (7, 7), (2.0, 2), ("", None), ("abc", None), (None, None), (True, None), ("nan", None)],
)
def test_to_number(value, expected):
    assert ex.to_number(value) == expected


def test_parse_balance_sums_locations():
    data = [
        {"descLocal": "Loja", "quantidade": 10, "reservado": 2},
        {"qtdSaldo": "5", "disponivel": 5},
    ]

    totals = ex.parse_balance(data)

    assert (totals.quantidade, totals.reservado, totals.disponivel) == (15, 2, 13)
    assert [loc["local"] for loc in totals.locais] == ["Loja", "Geral"]
    assert totals.has_stock is True


def test_parse_balance_unwraps_containers():
    totals = ex.parse_balance({"dados": [{"saldoFisico": 4}]})
    assert totals.quantidade == 4
    assert totals.disponivel == 4


def test_parse_balance_single_object_uses_key_heuristic():
    totals = ex.parse_balance({"codProduto": "123", "qtdLoja": 7})
    assert totals.quantidade == 7
    assert totals.locais == []


def test_parse_balance_ignores_error_payloads():
    totals = ex.parse_balance({"message": "Produto nao encontrado", "quantidade": 3})
    assert totals.quantidade == 0
    assert totals.has_stock is False


def test_extract_price_prefers_named_positive_fields():
    assert ex.extract_price({"vlrTabela": "0", "precoVenda": "49.9"}) == 49.9
    assert ex.extract_price({"codLista": "1", "vlrCustom": 12}) == 12
    assert ex.extract_price({"codLista": "1", "descricao": "x"}) is None


def test_extract_list_variants():
    assert ex.extract_list([{"a": 1}]) == [{"a": 1}]
    assert ex.extract_list({"items": [{"a": 1}]}) == [{"a": 1}]
    assert ex.extract_list({"codProduto": "9"}) == []
    assert ex.extract_list({"codProduto": "9"}, allow_single=True) == [{"codProduto": "9"}]
    assert ex.extract_list(None) == []
    assert ex.extract_list({"dados": ["X1", {"id": 2}]}) == [{"id": 2}]
    assert ex.extract_list([123, "a"]) == []


def test_candidate_ids_are_distinct():
    assert ex.candidate_ids({"id": 10, "codProduto": "10", "codigo": "A"}) == ["10", "A"]


def test_product_description_fallbacks():
    assert ex.product_description({"descricao": "Filtro"}) == "Filtro"
    assert ex.product_description({}) == ""

import pytest

from autopecas.utils.category_tree import (
    build_category_breadcrumb,
    collect_descendant_slugs,
    find_category_name,
)


pytestmark = pytest.mark.unit

TREE = [
    {
        "name": "Motor",
        "slug": "motor",
        "children": [
            {
                "name": "Filtros",
                "slug": "filtros",
                "children": [
                    {"name": "Filtro de Óleo", "slug": "filtro-oleo"},
                    {"name": "Filtro de Ar", "slug": "filtro-ar", "children": None},
                ],
            },
            {"name": "Correias", "slug": "correias"},
        ],
    },
    {"name": "Suspensão", "slug": "suspensao", "children": [{"name": "Filtros", "slug": "filtros"}]},
]


def test_descendants_include_target_and_deduplicate():
    assert collect_descendant_slugs(TREE, "motor") == ["motor", "filtros", "filtro-oleo", "filtro-ar", "correias"]
    assert collect_descendant_slugs(TREE, "filtros") == ["filtros", "filtro-oleo", "filtro-ar"]


def test_descendants_of_unknown_slug_is_empty():
    assert collect_descendant_slugs(TREE, "nao-existe") == []
    assert collect_descendant_slugs([], "motor") == []


def test_find_category_name():
    assert find_category_name(TREE, "filtro-ar") == "Filtro de Ar"
    assert find_category_name(TREE, "nao-existe") is None


def test_breadcrumb_from_root():
    assert build_category_breadcrumb(TREE, "filtro-oleo") == ["Motor", "Filtros", "Filtro de Óleo"]
    assert build_category_breadcrumb(TREE, "suspensao") == ["Suspensão"]
    assert build_category_breadcrumb(TREE, "nao-existe") is None

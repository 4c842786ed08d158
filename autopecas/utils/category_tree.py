"""
Navegação na árvore de categorias (`category_tree` no KV).

Formato dos nós: `{"name": str, "slug": str, "children": [...]}`.
"""

from typing import Any, Dict, List, Optional

CategoryNode = Dict[str, Any]


def _children(node: CategoryNode) -> List[CategoryNode]:
    children = node.get("children")
    return children if isinstance(children, list) else []


def collect_descendant_slugs(nodes: List[CategoryNode], target_slug: str) -> List[str]:
    """
    Slug alvo mais todos os slugs abaixo dele, sem repetição e na ordem de
    visita. Lista vazia quando o slug não existe na árvore.
    """
    slugs: List[str] = []

    def visit(node_list: List[CategoryNode], collecting: bool) -> None:
        for node in node_list:
            if not isinstance(node, dict):
                continue
            if collecting or node.get("slug") == target_slug:
                slugs.append(node.get("slug"))
                visit(_children(node), True)
            else:
                visit(_children(node), False)

    visit(nodes or [], False)
    return list(dict.fromkeys(s for s in slugs if s))


def find_category_name(nodes: List[CategoryNode], slug: str) -> Optional[str]:
    for node in nodes or []:
        if not isinstance(node, dict):
            continue
        if node.get("slug") == slug:
            return node.get("name")
        found = find_category_name(_children(node), slug)
        if found:
            return found
    return None


def build_category_breadcrumb(
    nodes: List[CategoryNode], target_slug: str, path: Optional[List[str]] = None
) -> Optional[List[str]]:
    """Nomes da raiz até o slug, ex.: ["Motor", "Filtros", "Filtro de Óleo"]."""
    path = path or []
    for node in nodes or []:
        if not isinstance(node, dict):
            continue
        trail = [*path, node.get("name")]
        if node.get("slug") == target_slug:
            return trail
        found = build_category_breadcrumb(_children(node), target_slug, trail)
        if found:
            return found
    return None

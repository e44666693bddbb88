from __future__ import annotations

import logging
from typing import Iterable, Optional

from app.schemas.category import CategoryNode, CategoryRead
from app.schemas.product import ProductRead
from app.services.stock_service import matches_search, stock_projection

logger = logging.getLogger(__name__)


def _sort_key(category: CategoryRead):
    return (category.sort_order, category.name.lower())


def build_tree(categories: Iterable[CategoryRead]) -> list[CategoryNode]:
    """Nest a flat category list by ``parent``.

    Categories whose parent is missing from the list are treated as roots,
    and a parent chain that loops back on itself is cut where it repeats.
    """
    categories = list(categories)
    by_id = {category.id: category for category in categories if category.id}
    children: dict[Optional[str], list[CategoryRead]] = {}
    for category in categories:
        parent_id = category.parent_id
        if parent_id not in by_id or parent_id == category.id:
            parent_id = None
        children.setdefault(parent_id, []).append(category)

    def _build(category: CategoryRead, depth: int, seen: frozenset) -> CategoryNode:
        nested = [
            _build(child, depth + 1, seen | {child.id})
            for child in sorted(children.get(category.id, []), key=_sort_key)
            if child.id not in seen
        ]
        return CategoryNode(category=category, depth=depth, children=nested)

    roots = [_build(category, 0, frozenset({category.id})) for category in sorted(children.get(None, []), key=_sort_key)]

    placed = set()

    def _collect(node: CategoryNode) -> None:
        placed.add(node.category.id)
        for child in node.children:
            _collect(child)

    for root in roots:
        _collect(root)
    orphans = [category for category in categories if category.id not in placed]
    if orphans:
        logger.warning("Category cycle detected; showing %d category(ies) at top level", len(orphans))
        roots.extend(CategoryNode(category=category, depth=0) for category in sorted(orphans, key=_sort_key))
    return roots


def flatten_tree(nodes: Iterable[CategoryNode]) -> list[CategoryNode]:
    flat: list[CategoryNode] = []
    for node in nodes:
        flat.append(node)
        flat.extend(flatten_tree(node.children))
    return flat


def reorder_payload(ordered_ids: list[str]) -> list[dict]:
    return [{"id": category_id, "sortOrder": index} for index, category_id in enumerate(ordered_ids) if category_id]


def category_listing(category: Optional[CategoryRead], products: Iterable[ProductRead], search: Optional[str] = None) -> dict:
    """Products of one category with their stock split, filtered by name, brand or code."""
    if category is None:
        return {"success": False, "message": "Category not found"}
    matched = [product for product in products if matches_search(product, search)]
    return {
        "success": True,
        "category": {"id": category.id, "name": category.name},
        "count": len(matched),
        "products": [
            {
                "id": product.id,
                "name": product.name,
                "brand": product.brand,
                "qrCode": product.qr_code,
                "price": product.price,
                "stock": stock_projection(product),
            }
            for product in matched
        ],
    }


__all__ = [
    "build_tree",
    "category_listing",
    "flatten_tree",
    "reorder_payload",
]

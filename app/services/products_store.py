"""Per-session product and category cache.

One ``ProductsStore`` per auth token. Fetches are throttled: a repeat call
inside the refetch window is a no-op unless forced or the list is empty.
Mutations call the API and then patch the local list instead of refetching.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

from pydantic import ValidationError

from app.config import get_settings
from app.core.constants import PRODUCT_SORT_FIELDS, SORT_ORDERS
from app.schemas.category import CategoryRead
from app.schemas.product import Pagination, ProductRead
from app.services.api_client import unwrap
from app.services.inventory_api import InventoryApi, get_inventory_api
from app.services.scanner_service import find_product_by_code

logger = logging.getLogger(__name__)

_MAX_STORES = 256


def parse_products(items) -> list[ProductRead]:
    products = []
    for item in items or []:
        try:
            products.append(ProductRead.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping malformed product %s: %s", item.get("_id") if isinstance(item, dict) else item, exc)
    return products


def parse_categories(items) -> list[CategoryRead]:
    categories = []
    for item in items or []:
        try:
            categories.append(CategoryRead.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping malformed category: %s", exc)
    return categories


def _product_page(payload):
    """Split a products response into (items, pagination or None)."""
    if isinstance(payload, list):
        return payload, None
    items = unwrap(payload, "products", "data")
    if isinstance(items, dict):
        items = unwrap(items, "products", "items")
    pagination = payload.get("pagination") if isinstance(payload, dict) else None
    if pagination is None and isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        pagination = payload["data"].get("pagination")
    return (items if isinstance(items, list) else []), pagination


def _single(payload, *keys: str):
    item = unwrap(payload, *keys, "data")
    return item if isinstance(item, dict) else None


class ProductsStore:
    def __init__(
        self,
        token: Optional[str],
        *,
        api: Optional[InventoryApi] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.token = token
        self.api = api or get_inventory_api()
        self._clock = clock
        self._lock = threading.RLock()

        self.products: list[ProductRead] = []
        self.categories: list[CategoryRead] = []
        self.current_page = 1
        self.total_pages = 1
        self.total_products = 0
        self.page_size = settings.PRODUCTS_PAGE_SIZE
        self.filters: dict = {}
        self.sort_by = "createdAt"
        self.sort_order = "desc"

        self.products_refetch_seconds = settings.PRODUCTS_REFETCH_SECONDS
        self.categories_refetch_seconds = settings.CATEGORIES_REFETCH_SECONDS
        self._products_fetched_at: Optional[float] = None
        self._categories_fetched_at: Optional[float] = None
        self._fetched_page: Optional[int] = None

    # ==============================
    # Fetching
    # ==============================
    def _is_fresh(self, fetched_at: Optional[float], window: int) -> bool:
        return fetched_at is not None and (self._clock() - fetched_at) < window

    def query_params(self, page: int) -> dict:
        params = {
            "page": page,
            "limit": self.page_size,
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order,
        }
        params.update({key: value for key, value in self.filters.items() if value not in (None, "")})
        return params

    def fetch_products(self, page: int = 1, force: bool = False) -> list[ProductRead]:
        page = max(1, int(page))
        with self._lock:
            if (
                not force
                and self.products
                and page == self._fetched_page
                and self._is_fresh(self._products_fetched_at, self.products_refetch_seconds)
            ):
                return self.products

            payload = self.api.list_products(self.token, self.query_params(page))
            items, pagination = _product_page(payload)
            self.products = parse_products(items)
            if pagination:
                meta = Pagination.model_validate(pagination)
                self.current_page = meta.current_page
                self.total_pages = max(1, meta.total_pages)
                self.total_products = meta.total_items
            else:
                self.current_page = 1
                self.total_pages = 1
                self.total_products = len(self.products)
            self._fetched_page = page
            self._products_fetched_at = self._clock()
            logger.debug("Loaded %d product(s), page %d/%d", len(self.products), self.current_page, self.total_pages)
            return self.products

    def fetch_categories(self, force: bool = False) -> list[CategoryRead]:
        with self._lock:
            if (
                not force
                and self.categories
                and self._is_fresh(self._categories_fetched_at, self.categories_refetch_seconds)
            ):
                return self.categories
            payload = self.api.list_categories(self.token)
            items = unwrap(payload, "categories", "data")
            self.categories = parse_categories(items if isinstance(items, list) else [])
            self._categories_fetched_at = self._clock()
            return self.categories

    def load_all_products(self, page_size: Optional[int] = None) -> list[ProductRead]:
        """Every product across all pages; leaves the paged view untouched."""
        limit = page_size or get_settings().REPORT_FETCH_LIMIT
        collected: list[ProductRead] = []
        page = 1
        while True:
            params = self.query_params(page)
            params["limit"] = limit
            for key in self.filters:
                params.pop(key, None)
            items, pagination = _product_page(self.api.list_products(self.token, params))
            collected.extend(parse_products(items))
            if not pagination:
                break
            meta = Pagination.model_validate(pagination)
            if page >= meta.total_pages or not items:
                break
            page += 1
        return collected

    def set_filters(self, **filters) -> None:
        with self._lock:
            self.filters = {key: value for key, value in filters.items() if value not in (None, "")}
            self.invalidate()

    def set_sort(self, sort_by: str, sort_order: str = "desc") -> None:
        if sort_by not in PRODUCT_SORT_FIELDS:
            raise ValueError("Unsupported sort field: {}".format(sort_by))
        if sort_order not in SORT_ORDERS:
            raise ValueError("Unsupported sort order: {}".format(sort_order))
        with self._lock:
            self.sort_by = sort_by
            self.sort_order = sort_order
            self.invalidate()

    def invalidate(self) -> None:
        with self._lock:
            self._products_fetched_at = None
            self._fetched_page = None

    # ==============================
    # Mutations
    # ==============================
    def create_product(self, fields: dict, image=None) -> ProductRead:
        payload = self.api.create_product(self.token, fields, image)
        product = ProductRead.model_validate(_single(payload, "product") or fields)
        with self._lock:
            self.products.insert(0, product)
            self.total_products += 1
            self.total_pages = max(1, math.ceil(self.total_products / self.page_size))
        return product

    def update_product(self, product_id: str, fields: dict, image=None) -> ProductRead:
        payload = self.api.update_product(self.token, product_id, fields, image)
        returned = _single(payload, "product")
        with self._lock:
            for index, existing in enumerate(self.products):
                if existing.id == product_id:
                    merged = existing.to_api()
                    merged.update(returned or fields)
                    self.products[index] = ProductRead.model_validate(merged)
                    return self.products[index]
        return ProductRead.model_validate(returned or dict(fields, _id=product_id))

    def delete_product(self, product_id: str) -> None:
        self.api.delete_product(self.token, product_id)
        with self._lock:
            before = len(self.products)
            self.products = [product for product in self.products if product.id != product_id]
            if len(self.products) < before:
                self.total_products = max(0, self.total_products - 1)
                self.total_pages = max(1, math.ceil(self.total_products / self.page_size))

    def update_product_quantity(self, product_id: str, quantity: int) -> Optional[ProductRead]:
        with self._lock:
            for index, product in enumerate(self.products):
                if product.id == product_id:
                    self.products[index] = product.with_quantity(quantity)
                    return self.products[index]
        return None

    # ==============================
    # Lookups
    # ==============================
    def get_cached(self, product_id: str) -> Optional[ProductRead]:
        with self._lock:
            for product in self.products:
                if product.id == product_id:
                    return product
        return None

    def find_by_code(self, code: str) -> Optional[ProductRead]:
        with self._lock:
            return find_product_by_code(self.products, code)


_stores: "OrderedDict[Optional[str], ProductsStore]" = OrderedDict()
_stores_lock = threading.Lock()


def get_products_store(token: Optional[str], *, api: Optional[InventoryApi] = None) -> ProductsStore:
    if not token:
        return ProductsStore(None, api=api)
    with _stores_lock:
        store = _stores.get(token)
        if store is None:
            store = ProductsStore(token, api=api)
            _stores[token] = store
            while len(_stores) > _MAX_STORES:
                _stores.popitem(last=False)
        else:
            _stores.move_to_end(token)
        return store


def drop_products_store(token: Optional[str]) -> None:
    with _stores_lock:
        _stores.pop(token, None)


__all__ = [
    "ProductsStore",
    "drop_products_store",
    "get_products_store",
    "parse_categories",
    "parse_products",
]

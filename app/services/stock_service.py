from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.core.constants import SCANNER_RESTOCK_REASON, SCANNER_SALE_REASON
from app.schemas.product import ProductRead
from app.services.inventory_api import InventoryApi

logger = logging.getLogger(__name__)

INSUFFICIENT_STOCK_MESSAGE = "Insufficient stock"

STATUS_OUT_OF_STOCK = "Out of Stock"
STATUS_LOW_STOCK = "Low Stock"
STATUS_IN_STOCK = "In Stock"


class InsufficientStockError(ValueError):
    pass


@dataclass
class StockUpdate:
    operation: str
    quantity: int
    current: int
    new_quantity: int

    @property
    def is_noop(self) -> bool:
        return self.quantity == 0


def clamp_quantity(value) -> int:
    return max(0, int(value))


def stock_status(product: ProductRead) -> str:
    if product.is_out_of_stock:
        return STATUS_OUT_OF_STOCK
    if product.is_low_stock:
        return STATUS_LOW_STOCK
    return STATUS_IN_STOCK


def plan_update(product: ProductRead, operation: str, quantity: int) -> StockUpdate:
    """Scanner add/subtract; a subtract past zero is refused, never sent."""
    if operation not in ("add", "subtract"):
        raise ValueError("operation must be 'add' or 'subtract'")
    quantity = int(quantity)
    if quantity <= 0:
        raise ValueError("Quantity must be at least 1")
    current = product.stock_total
    new_quantity = current + quantity if operation == "add" else current - quantity
    if new_quantity < 0:
        raise InsufficientStockError(INSUFFICIENT_STOCK_MESSAGE)
    return StockUpdate(operation=operation, quantity=quantity, current=current, new_quantity=new_quantity)


def plan_adjustment(product: ProductRead, delta: int) -> StockUpdate:
    """Quick +/- adjustment; the result is clamped to zero before anything is sent."""
    current = product.stock_total
    new_quantity = clamp_quantity(current + int(delta))
    change = new_quantity - current
    operation = "add" if change >= 0 else "subtract"
    return StockUpdate(operation=operation, quantity=abs(change), current=current, new_quantity=new_quantity)


def submit_update(
    api: InventoryApi,
    token: str,
    product: ProductRead,
    update: StockUpdate,
    *,
    add_reason: str = SCANNER_RESTOCK_REASON,
    subtract_reason: str = SCANNER_SALE_REASON,
):
    if update.is_noop:
        logger.debug("Nothing to send for %s", product.name)
        return None
    logger.info(
        "Stock %s for %s: %d -> %d",
        update.operation,
        product.qr_code or product.id,
        update.current,
        update.new_quantity,
    )
    if update.operation == "add":
        return api.increase_stock(token, product.id, update.quantity, add_reason)
    return api.reduce_stock(token, product.qr_code, update.quantity, subtract_reason)


def check_move_availability(product: ProductRead, source: str, quantity: int) -> None:
    if quantity <= 0:
        raise ValueError("Quantity must be at least 1")
    available = product.godown_quantity if source == "godown" else product.store_quantity
    if quantity > available:
        raise InsufficientStockError(
            "Insufficient stock in {}. Available: {}".format(source, available)
        )


def stock_projection(product: ProductRead) -> dict:
    stock = product.stock
    return {
        "godown": stock.godown if stock else 0,
        "store": stock.store if stock else 0,
        "total": product.stock_total,
        "reserved": stock.reserved if stock else 0,
    }


def matches_search(product: ProductRead, search: Optional[str]) -> bool:
    if not search or not search.strip():
        return True
    needle = search.strip().lower()
    haystack = (product.name, product.brand or "", product.qr_code)
    return any(needle in value.lower() for value in haystack)


__all__ = [
    "INSUFFICIENT_STOCK_MESSAGE",
    "InsufficientStockError",
    "STATUS_IN_STOCK",
    "STATUS_LOW_STOCK",
    "STATUS_OUT_OF_STOCK",
    "StockUpdate",
    "check_move_availability",
    "clamp_quantity",
    "matches_search",
    "plan_adjustment",
    "plan_update",
    "stock_projection",
    "stock_status",
    "submit_update",
]

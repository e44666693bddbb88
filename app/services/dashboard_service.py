from __future__ import annotations

import logging

from app.core.errors import ApiError, SessionExpiredError
from app.schemas.stock import StockMovementRead
from app.services.alerts_service import product_warnings, summarize_warnings
from app.services.api_client import unwrap
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore

logger = logging.getLogger(__name__)

_EMPTY_SALES = {"totalQuantitySold": 0, "totalSalesValue": 0, "transactions": 0}


def _optional(call, *args, default=None):
    """Dashboard panels degrade to empty when their endpoint fails."""
    try:
        return call(*args)
    except SessionExpiredError:
        raise
    except ApiError as exc:
        logger.info("Dashboard panel unavailable: %s", exc.message)
        return default


def local_summary(products) -> dict:
    products = list(products)
    warnings = product_warnings(products)
    counts = summarize_warnings(warnings)
    return {
        "totalProducts": len(products),
        "totalStockValue": round(sum(product.value for product in products), 2),
        "totalQuantity": sum(product.stock_total for product in products),
        "lowStockCount": counts["low-stock"] + counts["out-of-stock"],
        "expiringSoonCount": counts["expiring-soon"],
        "expiredCount": counts["expired"],
    }


def category_performance_rows(payload, categories=()) -> list[dict]:
    """Flatten the per-category sales and inventory breakdown, naming categories by id."""
    names = {category.id: category.name for category in categories if category.id}
    items = unwrap(payload, "categories", "data")
    rows = []
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        sales = item.get("sales") or {}
        inventory = item.get("inventory") or {}
        key = item.get("category")
        rows.append(
            {
                "category": names.get(str(key), key) or "Uncategorized",
                "quantity_sold": sales.get("quantitySold", 0),
                "sales_value": sales.get("salesValue", 0),
                "transactions": sales.get("transactions", 0),
                "stock_value": inventory.get("totalStockValue", 0),
                "product_count": inventory.get("productCount", 0),
            }
        )
    return rows


def build_dashboard(api: InventoryApi, token: str, store: ProductsStore, *, activity_limit: int = 10) -> dict:
    products = store.load_all_products()
    analytics = _optional(api.dashboard_analytics, token, default={}) or {}
    summary = analytics.get("summary") if isinstance(analytics, dict) else None
    if not summary:
        summary = local_summary(products)

    sales = analytics.get("sales") if isinstance(analytics, dict) else None
    today = _optional(api.today_sales, token, default=None)

    activity_payload = _optional(api.recent_activities, token, activity_limit, default=[])
    activity_items = unwrap(activity_payload, "activities", "data")
    activities = [
        StockMovementRead.model_validate(item)
        for item in (activity_items if isinstance(activity_items, list) else [])
        if isinstance(item, dict)
    ]

    return {
        "summary": summary,
        "sales": {
            period: (sales or {}).get(period) or dict(_EMPTY_SALES)
            for period in ("daily", "weekly", "monthly", "yearly")
        },
        "today": unwrap(today, "data") if today else None,
        "top_products": (analytics.get("topProducts") if isinstance(analytics, dict) else None) or [],
        "category_performance": category_performance_rows(
            _optional(api.category_performance, token, {"period": "month"}, default=None),
            _optional(store.fetch_categories, default=[]),
        ),
        "warnings": product_warnings(products)[:10],
        "activities": activities,
    }


def sales_trend_points(api: InventoryApi, token: str, *, period: str = "daily", days: int = 30) -> list[dict]:
    payload = api.sales_trend(token, period=period, days=days)
    points = unwrap(payload, "data")
    return points if isinstance(points, list) else []


__all__ = ["build_dashboard", "category_performance_rows", "local_summary", "sales_trend_points"]

from __future__ import annotations

from functools import lru_cache
from typing import Optional
from urllib.parse import quote

from app.services.api_client import InventoryApiClient, get_api_client


def _segment(value) -> str:
    return quote(str(value), safe="")


def _product_form(fields: dict, image=None):
    """Product create/update body: multipart when an image is attached, JSON otherwise."""
    if image is None:
        return {"json": fields}
    data = {}
    for key, value in fields.items():
        if value is None:
            continue
        data[key] = str(value).lower() if isinstance(value, bool) else str(value)
    return {"data": data, "files": {"image": image}}


class InventoryApi:
    """One method per REST endpoint; ``token`` is always the first argument."""

    def __init__(self, client: Optional[InventoryApiClient] = None):
        self.client = client or get_api_client()

    # ==============================
    # Auth
    # ==============================
    def login(self, email: str, password: str):
        return self.client.post("/users/login", json={"email": email, "password": password})

    def logout(self, token):
        return self.client.post("/users/logout", token=token)

    def get_profile(self, token):
        return self.client.get("/users/profile", token=token)

    def update_profile(self, token, fields: dict):
        return self.client.put("/users/profile", token=token, json=fields)

    def change_password(self, token, current_password: str, new_password: str):
        return self.client.put(
            "/users/change-password",
            token=token,
            json={"currentPassword": current_password, "newPassword": new_password},
        )

    # ==============================
    # Products
    # ==============================
    def list_products(self, token, params: Optional[dict] = None):
        return self.client.get("/products", token=token, params=params)

    def get_product(self, token, product_id):
        return self.client.get("/products/{}".format(_segment(product_id)), token=token)

    def get_product_by_qr(self, token, qr_code: str):
        return self.client.get("/products/qr/{}".format(_segment(qr_code)), token=token)

    def create_product(self, token, fields: dict, image=None):
        return self.client.post("/products", token=token, **_product_form(fields, image))

    def update_product(self, token, product_id, fields: dict, image=None):
        return self.client.put(
            "/products/{}".format(_segment(product_id)),
            token=token,
            **_product_form(fields, image),
        )

    def delete_product(self, token, product_id):
        return self.client.delete("/products/{}".format(_segment(product_id)), token=token)

    def list_product_categories(self, token):
        return self.client.get("/products/categories/list", token=token)

    def low_stock_products(self, token):
        return self.client.get("/products/low-stock", token=token)

    def expiring_products(self, token, days: int = 7):
        return self.client.get("/products/expiring", token=token, params={"days": days})

    def expired_products(self, token):
        return self.client.get("/products/expired", token=token)

    # ==============================
    # Categories
    # ==============================
    def list_categories(self, token, include_products: bool = False):
        params = {"includeProducts": True} if include_products else None
        return self.client.get("/categories/list", token=token, params=params)

    def create_category(self, token, fields: dict):
        return self.client.post("/categories/create", token=token, json=fields)

    def update_category(self, token, category_id, fields: dict):
        return self.client.put("/categories/update/{}".format(_segment(category_id)), token=token, json=fields)

    def delete_category(self, token, category_id, move_products_to=None, delete_subcategories: bool = False):
        params = {"moveProductsTo": move_products_to}
        if delete_subcategories:
            params["deleteSubcategories"] = True
        return self.client.delete(
            "/categories/delete/{}".format(_segment(category_id)),
            token=token,
            params=params,
        )

    def category_products(self, token, category_id, params: Optional[dict] = None):
        return self.client.get("/categories/{}/products".format(_segment(category_id)), token=token, params=params)

    def reorder_categories(self, token, ordering: list):
        return self.client.post("/categories/reorder", token=token, json={"categories": ordering})

    def inventory_overview(self, token, category_id=None):
        return self.client.get("/categories/inventory-overview", token=token, params={"categoryId": category_id})

    def stock_summary(self, token):
        return self.client.get("/categories/stock-summary", token=token)

    # ==============================
    # Stock
    # ==============================
    def move_to_store(self, token, product_id, quantity: int, reason=None, notes=None):
        return self.client.post(
            "/stock/move-to-store",
            token=token,
            json={"productId": product_id, "quantity": quantity, "reason": reason, "notes": notes},
        )

    def move_to_godown(self, token, product_id, quantity: int, reason=None, notes=None):
        return self.client.post(
            "/stock/move-to-godown",
            token=token,
            json={"productId": product_id, "quantity": quantity, "reason": reason, "notes": notes},
        )

    def bulk_move_to_store(self, token, movements: list, reason=None, notes=None):
        return self.client.post(
            "/stock/bulk-move-to-store",
            token=token,
            json={"movements": movements, "globalReason": reason, "globalNotes": notes},
        )

    def bulk_move_to_godown(self, token, movements: list, reason=None, notes=None):
        return self.client.post(
            "/stock/bulk-move-to-godown",
            token=token,
            json={"movements": movements, "globalReason": reason, "globalNotes": notes},
        )

    def add_godown_stock(self, token, product_id, quantity: int, reason=None, batch_number=None, reference_number=None):
        return self.client.post(
            "/stock/add-godown",
            token=token,
            json={
                "productId": product_id,
                "quantity": quantity,
                "reason": reason,
                "batchNumber": batch_number,
                "referenceNumber": reference_number,
            },
        )

    def process_sale(self, token, product_id, quantity: int, order_number=None):
        return self.client.post(
            "/stock/process-sale",
            token=token,
            json={"productId": product_id, "quantity": quantity, "orderNumber": order_number},
        )

    def reduce_stock(self, token, qr_code: str, quantity: int, reason: str = ""):
        return self.client.post(
            "/stock/reduce",
            token=token,
            json={"qrCode": qr_code, "quantity": quantity, "reason": reason},
        )

    def increase_stock(self, token, product_id, quantity: int, reason: str = "", location: str = "godown"):
        return self.client.post(
            "/stock/increase",
            token=token,
            json={"productId": product_id, "quantity": quantity, "location": location, "reason": reason},
        )

    def adjust_stock(self, token, product_id, *, godown=None, store=None, reason: str, notes=None):
        body = {"productId": product_id, "reason": reason, "notes": notes}
        if godown is not None:
            body["godown"] = godown
        if store is not None:
            body["store"] = store
        return self.client.post("/stock/adjust", token=token, json=body)

    def stock_movements(self, token, params: Optional[dict] = None):
        return self.client.get("/stock/movements", token=token, params=params)

    def stock_levels(self, token, product_id):
        return self.client.get("/stock/levels/{}".format(_segment(product_id)), token=token)

    def stock_history(self, token, product_id, params: Optional[dict] = None):
        return self.client.get("/stock/history/{}".format(_segment(product_id)), token=token, params=params)

    def movement_history(self, token, product_id):
        return self.client.get("/stock/movement-history/{}".format(_segment(product_id)), token=token)

    def recent_activities(self, token, limit: int = 50):
        return self.client.get("/stock/recent-activities", token=token, params={"limit": limit})

    def stock_summary_overview(self, token):
        return self.client.get("/stock/summary", token=token)

    def stock_low(self, token):
        return self.client.get("/stock/low-stock", token=token)

    def stock_out(self, token):
        return self.client.get("/stock/out-of-stock", token=token)

    def reverse_movement(self, token, log_id, reason=None):
        return self.client.post(
            "/stock/reverse/{}".format(_segment(log_id)),
            token=token,
            json={"reason": reason} if reason else None,
        )

    # ==============================
    # Batches
    # ==============================
    def list_batches(self, token, product_id):
        return self.client.get("/batches/product/{}".format(_segment(product_id)), token=token)

    def create_batch(self, token, fields: dict):
        return self.client.post("/batches", token=token, json=fields)

    def update_batch(self, token, batch_id, fields: dict):
        return self.client.put("/batches/{}".format(_segment(batch_id)), token=token, json=fields)

    def delete_batch(self, token, batch_id):
        return self.client.delete("/batches/{}".format(_segment(batch_id)), token=token)

    def batch_expiry_status(self, token):
        return self.client.get("/batches/_expiry-status", token=token)

    # ==============================
    # Alerts
    # ==============================
    def list_alerts(self, token, params: Optional[dict] = None):
        return self.client.get("/alerts", token=token, params=params)

    def low_stock_alerts(self, token, limit: int = 50):
        return self.client.get("/alerts/low-stock", token=token, params={"limit": limit})

    def expiring_alerts(self, token, days: int = 7, limit: int = 50):
        return self.client.get("/alerts/expiring-soon", token=token, params={"days": days, "limit": limit})

    def expired_alerts(self, token, limit: int = 50):
        return self.client.get("/alerts/expired", token=token, params={"limit": limit})

    def alert_summary(self, token):
        return self.client.get("/alerts/summary", token=token)

    def mark_alert_read(self, token, alert_id):
        return self.client.put("/alerts/{}/read".format(_segment(alert_id)), token=token)

    def resolve_alert(self, token, alert_id, notes=None):
        return self.client.put(
            "/alerts/{}/resolve".format(_segment(alert_id)),
            token=token,
            json={"notes": notes} if notes else None,
        )

    def mark_all_alerts_read(self, token):
        return self.client.put("/alerts/mark-all-read", token=token)

    def delete_alert(self, token, alert_id):
        return self.client.delete("/alerts/{}".format(_segment(alert_id)), token=token)

    # ==============================
    # Analytics
    # ==============================
    def dashboard_analytics(self, token):
        return self.client.get("/analytics/dashboard", token=token)

    def sales_trend(self, token, period: str = "daily", days: int = 30):
        return self.client.get("/analytics/sales-trend", token=token, params={"period": period, "days": days})

    def category_performance(self, token, params: Optional[dict] = None):
        return self.client.get("/analytics/category-performance", token=token, params=params)

    def today_sales(self, token):
        return self.client.get("/analytics/today-sales", token=token)

    # ==============================
    # Promotions
    # ==============================
    def list_promotions(self, token):
        return self.client.get("/promotions/active", token=token)

    def create_promotion(self, token, fields: dict):
        return self.client.post("/promotions", token=token, json=fields)

    def update_promotion(self, token, promotion_id, fields: dict):
        return self.client.put("/promotions/{}".format(_segment(promotion_id)), token=token, json=fields)

    def delete_promotion(self, token, promotion_id):
        return self.client.delete("/promotions/{}".format(_segment(promotion_id)), token=token)

    # ==============================
    # Users
    # ==============================
    def list_users(self, token, params: Optional[dict] = None):
        return self.client.get("/users", token=token, params=params)

    def register_user(self, token, fields: dict):
        return self.client.post("/users/register", token=token, json=fields)

    def toggle_user_status(self, token, user_id):
        return self.client.put("/users/{}/toggle-status".format(_segment(user_id)), token=token)

    # ==============================
    # Orders
    # ==============================
    def list_orders(self, token, params: Optional[dict] = None):
        return self.client.get("/orders/list", token=token, params=params)

    def create_order(self, token, fields: dict):
        return self.client.post("/orders/create", token=token, json=fields)

    def order_details(self, token, order_id):
        return self.client.get("/orders/details/{}".format(_segment(order_id)), token=token)

    def update_order(self, token, order_id, fields: dict):
        return self.client.put("/orders/update/{}".format(_segment(order_id)), token=token, json=fields)

    # ==============================
    # Suppliers
    # ==============================
    def list_suppliers(self, token, params: Optional[dict] = None):
        return self.client.get("/suppliers/list", token=token, params=params)

    def create_supplier(self, token, fields: dict):
        return self.client.post("/suppliers/create", token=token, json=fields)

    def get_supplier(self, token, supplier_id):
        return self.client.get("/suppliers/{}".format(_segment(supplier_id)), token=token)

    def update_supplier(self, token, supplier_id, fields: dict):
        return self.client.put("/suppliers/{}".format(_segment(supplier_id)), token=token, json=fields)

    def supplier_performance(self, token, supplier_id, period: int = 90):
        return self.client.get(
            "/suppliers/{}/performance".format(_segment(supplier_id)),
            token=token,
            params={"period": period},
        )

    def rate_supplier(self, token, supplier_id, rating: int, notes=None):
        return self.client.put(
            "/suppliers/{}/rating".format(_segment(supplier_id)),
            token=token,
            json={"rating": rating, "notes": notes},
        )

    # ==============================
    # Purchase Orders
    # ==============================
    def list_purchase_orders(self, token, params: Optional[dict] = None):
        return self.client.get("/purchase-orders/list", token=token, params=params)

    def create_purchase_order(self, token, fields: dict):
        return self.client.post("/purchase-orders/create", token=token, json=fields)

    def get_purchase_order(self, token, order_id):
        return self.client.get("/purchase-orders/{}".format(_segment(order_id)), token=token)

    def update_purchase_order_status(self, token, order_id, status: str, notes=None):
        return self.client.put(
            "/purchase-orders/{}/status".format(_segment(order_id)),
            token=token,
            json={"status": status, "notes": notes},
        )

    def receive_purchase_order(self, token, order_id, items: list):
        return self.client.post(
            "/purchase-orders/{}/receive".format(_segment(order_id)),
            token=token,
            json={"items": items},
        )

    # ==============================
    # Reports and uploads
    # ==============================
    def download_server_report(self, token, kind: str, params: Optional[dict] = None):
        return self.client.download("/reports/{}".format(_segment(kind)), token=token, params=params)

    def upload_product_image(self, token, image, folder: str = "products"):
        return self.client.post(
            "/upload/product-image",
            token=token,
            data={"folder": folder},
            files={"image": image},
        )


@lru_cache
def get_inventory_api() -> InventoryApi:
    return InventoryApi()


__all__ = ["InventoryApi", "get_inventory_api"]

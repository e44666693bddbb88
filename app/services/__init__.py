from app.services.auth_service import AuthState, login, logout
from app.services.inventory_api import InventoryApi, get_inventory_api
from app.services.products_store import ProductsStore, get_products_store
from app.services.report_service import render, report_filename
from app.services.scanner_service import find_product_by_code, scan_image

__all__ = [
    "AuthState",
    "InventoryApi",
    "ProductsStore",
    "find_product_by_code",
    "get_inventory_api",
    "get_products_store",
    "login",
    "logout",
    "render",
    "report_filename",
    "scan_image",
]

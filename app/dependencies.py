from fastapi import Depends, Request

from app.core.dashboard_auth import current_auth, require_login_api
from app.database.session import get_db
from app.services.auth_service import AuthState
from app.services.inventory_api import InventoryApi, get_inventory_api
from app.services.products_store import ProductsStore, get_products_store


def get_api() -> InventoryApi:
    return get_inventory_api()


def get_auth(request: Request) -> AuthState:
    return current_auth(request)


def get_store(request: Request, api: InventoryApi = Depends(get_api)) -> ProductsStore:
    return get_products_store(current_auth(request).token, api=api)


__all__ = ["get_api", "get_auth", "get_db", "get_store", "require_login_api"]

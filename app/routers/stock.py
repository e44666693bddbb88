from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, RedirectResponse

from app.core.constants import MOVEMENT_TYPES, STOCK_LOCATIONS
from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated, require_login_api
from app.core.toasts import push_toast
from app.dependencies import get_api, get_store
from app.schemas.product import ProductRead
from app.schemas.stock import StockMovementRead
from app.services.api_client import clean_params, unwrap
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore
from app.services.stock_service import (
    InsufficientStockError,
    check_move_availability,
    plan_adjustment,
    stock_projection,
    stock_status,
    submit_update,
)

router = APIRouter(prefix="/stock", tags=["Stock"])


def _product(api: InventoryApi, token: str, store: ProductsStore, product_id: str) -> ProductRead:
    product = store.get_cached(product_id)
    if product is not None:
        return product
    return ProductRead.model_validate(unwrap(api.get_product(token, product_id), "product", "data"))


def _refresh_quantity(store: ProductsStore, product_id: str, payload) -> None:
    data = unwrap(payload, "product", "data")
    if not isinstance(data, dict):
        store.invalidate()
        return
    stock = data.get("stock") if isinstance(data.get("stock"), dict) else None
    total = (stock or {}).get("total", data.get("quantity", data.get("newStock")))
    if isinstance(total, (int, float)):
        store.update_product_quantity(product_id, int(total))
    else:
        store.invalidate()


@router.get("", response_class=HTMLResponse)
def stock_page(
    request: Request,
    page: int = Query(1, ge=1),
    search: Optional[str] = Query(None),
    movement_type: Optional[str] = Query(None, alias="type"),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    token = current_auth(request).token
    search = (search or "").strip()
    filters = {"search": search} if search else {}
    if filters != store.filters:
        store.set_filters(**filters)
    products = store.fetch_products(page)
    payload = api.stock_movements(token, clean_params({"type": movement_type, "limit": 50}))
    items = unwrap(payload, "movements", "data")
    movements = [StockMovementRead.model_validate(item) for item in items if isinstance(item, dict)] if isinstance(items, list) else []

    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "stock.html",
        {
            "request": request,
            "products": [(product, stock_projection(product), stock_status(product)) for product in products],
            "movements": movements,
            "search": search,
            "page": store.current_page,
            "total_pages": store.total_pages,
            "movement_type": movement_type or "",
            "movement_types": MOVEMENT_TYPES,
            "locations": STOCK_LOCATIONS,
        },
    )


@router.post("/move")
def move_stock(
    request: Request,
    product_id: str = Form(...),
    source: str = Form(...),
    quantity: int = Form(...),
    reason: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if source not in STOCK_LOCATIONS:
        push_toast(request, "Unknown stock location: {}".format(source), "error")
        return RedirectResponse(url="/stock", status_code=303)
    token = current_auth(request).token
    product = _product(api, token, store, product_id)
    try:
        check_move_availability(product, source, quantity)
    except (InsufficientStockError, ValueError) as exc:
        push_toast(request, str(exc), "error")
        return RedirectResponse(url="/stock", status_code=303)

    if source == "godown":
        api.move_to_store(token, product_id, quantity, reason or None, notes or None)
        destination = "store"
    else:
        api.move_to_godown(token, product_id, quantity, reason or None, notes or None)
        destination = "godown"
    store.invalidate()
    push_toast(request, "Moved {} of {} from {} to {}".format(quantity, product.name, source, destination))
    return RedirectResponse(url="/stock", status_code=303)


@router.post("/add")
def add_godown_stock(
    request: Request,
    product_id: str = Form(...),
    quantity: int = Form(...),
    reason: Optional[str] = Form(None),
    batch_number: Optional[str] = Form(None),
    reference_number: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if quantity <= 0:
        push_toast(request, "Quantity must be at least 1", "error")
        return RedirectResponse(url="/stock", status_code=303)
    payload = api.add_godown_stock(
        current_auth(request).token,
        product_id,
        quantity,
        reason or None,
        batch_number or None,
        reference_number or None,
    )
    _refresh_quantity(store, product_id, payload)
    push_toast(request, "Added {} unit(s) to godown".format(quantity))
    return RedirectResponse(url="/stock", status_code=303)


@router.post("/adjust")
def adjust_stock(
    request: Request,
    product_id: str = Form(...),
    godown: Optional[int] = Form(None),
    store_quantity: Optional[int] = Form(None, alias="store"),
    reason: str = Form(...),
    notes: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if (godown is not None and godown < 0) or (store_quantity is not None and store_quantity < 0):
        push_toast(request, "Stock levels cannot be negative", "error")
        return RedirectResponse(url="/stock", status_code=303)
    api.adjust_stock(
        current_auth(request).token,
        product_id,
        godown=godown,
        store=store_quantity,
        reason=reason,
        notes=notes or None,
    )
    store.invalidate()
    push_toast(request, "Stock adjusted")
    return RedirectResponse(url="/stock", status_code=303)


@router.post("/quick")
def quick_adjust(
    request: Request,
    product_id: str = Form(...),
    delta: int = Form(...),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    """One-click +/- from the product list; never goes below zero."""
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    token = current_auth(request).token
    product = _product(api, token, store, product_id)
    update = plan_adjustment(product, delta)
    if update.is_noop:
        push_toast(request, "{} is already at {}".format(product.name, update.current), "info")
        return RedirectResponse(url="/stock", status_code=303)
    submit_update(api, token, product, update, add_reason="Manual adjustment", subtract_reason="Manual adjustment")
    store.update_product_quantity(product_id, update.new_quantity)
    push_toast(request, "{}: {} -> {}".format(product.name, update.current, update.new_quantity))
    return RedirectResponse(url="/stock", status_code=303)


@router.post("/movements/{log_id}/reverse")
def reverse_movement(
    request: Request,
    log_id: str,
    reason: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    api.reverse_movement(current_auth(request).token, log_id, reason or None)
    store.invalidate()
    push_toast(request, "Movement reversed")
    return RedirectResponse(url="/stock", status_code=303)


@router.get("/api/levels/{product_id}")
def stock_levels(request: Request, product_id: str, api: InventoryApi = Depends(get_api)):
    auth = require_login_api(request)
    return jsonable_encoder(unwrap(api.stock_levels(auth.token, product_id), "data"))


__all__ = ["router"]

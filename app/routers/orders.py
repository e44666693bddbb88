from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.core.constants import ORDER_STATUSES, PAYMENT_METHODS, PAYMENT_STATUSES
from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated
from app.core.toasts import push_toast
from app.dependencies import get_api, get_store
from app.services.api_client import clean_params, unwrap, unwrap_items
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.get("", response_class=HTMLResponse)
def orders_page(
    request: Request,
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    payload = api.list_orders(current_auth(request).token, clean_params({"status": status, "page": page}))
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "orders.html",
        {
            "request": request,
            "orders": unwrap_items(payload, "orders"),
            "products": store.load_all_products(),
            "status": status or "",
            "page": page,
            "statuses": ORDER_STATUSES,
            "payment_statuses": PAYMENT_STATUSES,
            "payment_methods": PAYMENT_METHODS,
        },
    )


@router.post("")
def create_order(
    request: Request,
    customer_name: str = Form(...),
    customer_email: Optional[str] = Form(None),
    customer_phone: Optional[str] = Form(None),
    product_id: str = Form(...),
    quantity: int = Form(...),
    payment_method: str = Form("cash"),
    notes: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    auth = current_auth(request)
    if quantity <= 0:
        push_toast(request, "Quantity must be at least 1", "error")
        return RedirectResponse(url="/orders", status_code=303)
    product = store.get_cached(product_id)
    item = {"product": product_id, "quantity": quantity}
    if product is not None:
        item["unitPrice"] = product.price
    body = {
        "shopId": auth.user.shop_id,
        "customer": {"name": customer_name.strip(), "email": customer_email or None, "phone": customer_phone or None},
        "items": [item],
        "paymentMethod": payment_method if payment_method in PAYMENT_METHODS else "cash",
        "notes": notes or None,
    }
    payload = api.create_order(auth.token, body)
    store.invalidate()
    order = unwrap(payload, "order", "data")
    number = order.get("orderNumber") if isinstance(order, dict) else None
    push_toast(request, "Order {} created".format(number) if number else "Order created")
    return RedirectResponse(url="/orders", status_code=303)


@router.post("/{order_id}/status")
def update_order_status(
    request: Request,
    order_id: str,
    status: Optional[str] = Form(None),
    payment_status: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    fields = {}
    if status in ORDER_STATUSES:
        fields["status"] = status
    if payment_status in PAYMENT_STATUSES:
        fields["paymentStatus"] = payment_status
    if notes:
        fields["notes"] = notes
    if not fields:
        push_toast(request, "Nothing to update", "info")
        return RedirectResponse(url="/orders", status_code=303)
    api.update_order(current_auth(request).token, order_id, fields)
    push_toast(request, "Order updated")
    return RedirectResponse(url="/orders", status_code=303)


__all__ = ["router"]

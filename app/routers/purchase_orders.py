from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from app.core.constants import PURCHASE_ORDER_STATUSES
from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated
from app.core.toasts import push_toast
from app.dependencies import get_api, get_store
from app.services.api_client import clean_params, unwrap, unwrap_items
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore

router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])


def received_items(products: list, quantities: list) -> list[dict]:
    """Pair the receive form's parallel lists; blank or negative counts are skipped.

    ``receivedQuantity`` is the running total received for the line, not the
    delta of this delivery.
    """
    items = []
    for product_id, raw in zip(products, quantities):
        try:
            quantity = int(raw)
        except (TypeError, ValueError):
            continue
        if product_id and quantity >= 0:
            items.append({"product": product_id, "receivedQuantity": quantity})
    return items


@router.get("", response_class=HTMLResponse)
def purchase_orders_page(
    request: Request,
    status: Optional[str] = Query(None),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    token = current_auth(request).token
    orders = unwrap_items(api.list_purchase_orders(token, clean_params({"status": status})), "purchaseOrders")
    suppliers = unwrap_items(api.list_suppliers(token), "suppliers")
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "purchase_orders.html",
        {
            "request": request,
            "orders": orders,
            "suppliers": suppliers,
            "products": store.load_all_products(),
            "status": status or "",
            "statuses": PURCHASE_ORDER_STATUSES,
        },
    )


@router.post("")
def create_purchase_order(
    request: Request,
    supplier: str = Form(...),
    product_id: str = Form(...),
    quantity: int = Form(...),
    unit_cost: float = Form(...),
    expected_delivery_date: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if quantity <= 0 or unit_cost < 0:
        push_toast(request, "Quantity must be at least 1 and cost cannot be negative", "error")
        return RedirectResponse(url="/purchase-orders", status_code=303)
    auth = current_auth(request)
    body = {
        "shopId": auth.user.shop_id,
        "supplier": supplier,
        "items": [{"product": product_id, "quantity": quantity, "unitCost": unit_cost}],
        "expectedDeliveryDate": expected_delivery_date or None,
        "notes": notes or None,
    }
    payload = api.create_purchase_order(auth.token, body)
    order = unwrap(payload, "purchaseOrder", "data")
    number = order.get("orderNumber") if isinstance(order, dict) else None
    push_toast(request, "Purchase order {} created".format(number) if number else "Purchase order created")
    return RedirectResponse(url="/purchase-orders", status_code=303)


@router.post("/{order_id}/status")
def update_status(
    request: Request,
    order_id: str,
    status: str = Form(...),
    notes: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if status not in PURCHASE_ORDER_STATUSES:
        push_toast(request, "Unknown status: {}".format(status), "error")
        return RedirectResponse(url="/purchase-orders", status_code=303)
    api.update_purchase_order_status(current_auth(request).token, order_id, status, notes or None)
    push_toast(request, "Purchase order marked {}".format(status.replace("_", " ")))
    return RedirectResponse(url="/purchase-orders", status_code=303)


@router.post("/{order_id}/receive")
async def receive(
    request: Request,
    order_id: str,
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    form = await request.form()
    items = received_items(form.getlist("product"), form.getlist("receivedQuantity"))
    if not items:
        push_toast(request, "Enter the received quantities", "error")
        return RedirectResponse(url="/purchase-orders", status_code=303)
    await run_in_threadpool(api.receive_purchase_order, current_auth(request).token, order_id, items)
    store.invalidate()
    push_toast(request, "Delivery recorded")
    return RedirectResponse(url="/purchase-orders", status_code=303)


__all__ = ["router"]

from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.core.constants import PAYMENT_TERMS
from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated
from app.core.toasts import push_toast
from app.dependencies import get_api
from app.services.api_client import clean_params, unwrap, unwrap_items
from app.services.inventory_api import InventoryApi

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])


@router.get("", response_class=HTMLResponse)
def suppliers_page(
    request: Request,
    search: Optional[str] = Query(None),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    payload = api.list_suppliers(current_auth(request).token, clean_params({"search": search}))
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "suppliers.html",
        {
            "request": request,
            "suppliers": unwrap_items(payload, "suppliers"),
            "search": search or "",
            "payment_terms": PAYMENT_TERMS,
        },
    )


@router.get("/{supplier_id}", response_class=HTMLResponse)
def supplier_detail(request: Request, supplier_id: str, api: InventoryApi = Depends(get_api)):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    token = current_auth(request).token
    supplier = unwrap(api.get_supplier(token, supplier_id), "supplier", "data")
    performance = unwrap(api.supplier_performance(token, supplier_id), "performance", "data")
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "supplier_detail.html",
        {
            "request": request,
            "supplier": supplier if isinstance(supplier, dict) else {},
            "performance": performance if isinstance(performance, dict) else {},
        },
    )


@router.post("")
def create_supplier(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    phone: str = Form(...),
    company: Optional[str] = Form(None),
    street: str = Form(...),
    city: str = Form(...),
    state: str = Form(...),
    postal_code: str = Form(...),
    country: str = Form("United States"),
    payment_terms: str = Form("net_30"),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    auth = current_auth(request)
    body = {
        "name": name.strip(),
        "company": company or None,
        "email": email.strip().lower(),
        "phone": phone.strip(),
        "address": {
            "street": street,
            "city": city,
            "state": state,
            "postalCode": postal_code,
            "country": country or "United States",
        },
        "paymentTerms": payment_terms if payment_terms in PAYMENT_TERMS else "net_30",
        "shopId": auth.user.shop_id,
    }
    api.create_supplier(auth.token, body)
    push_toast(request, "Supplier {} added".format(body["name"]))
    return RedirectResponse(url="/suppliers", status_code=303)


@router.post("/{supplier_id}/rating")
def rate_supplier(
    request: Request,
    supplier_id: str,
    rating: int = Form(...),
    notes: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if not 1 <= rating <= 5:
        push_toast(request, "Rating must be between 1 and 5", "error")
        return RedirectResponse(url="/suppliers/{}".format(supplier_id), status_code=303)
    api.rate_supplier(current_auth(request).token, supplier_id, rating, notes or None)
    push_toast(request, "Supplier rated")
    return RedirectResponse(url="/suppliers/{}".format(supplier_id), status_code=303)


__all__ = ["router"]

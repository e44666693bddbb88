from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, RedirectResponse

from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated, require_login_api
from app.core.toasts import push_toast
from app.dependencies import get_api, get_store
from app.services.alerts_service import parse_alerts, product_warnings, summarize_warnings
from app.services.api_client import clean_params
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("", response_class=HTMLResponse)
def alerts_page(
    request: Request,
    show: str = Query("unread", pattern="^(unread|all|resolved)$"),
    alert_type: Optional[str] = Query(None, alias="type"),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    params = {"type": alert_type}
    if show == "unread":
        params["isRead"] = "false"
    elif show == "resolved":
        params["isResolved"] = "true"
    alerts = parse_alerts(api.list_alerts(current_auth(request).token, clean_params(params)))
    warnings = product_warnings(store.load_all_products())

    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "alerts.html",
        {
            "request": request,
            "alerts": alerts,
            "warnings": warnings,
            "warning_counts": summarize_warnings(warnings),
            "show": show,
            "alert_type": alert_type or "",
        },
    )


@router.get("/api/warnings")
def warnings_json(request: Request, store: ProductsStore = Depends(get_store)):
    require_login_api(request)
    warnings = product_warnings(store.load_all_products())
    return jsonable_encoder({"counts": summarize_warnings(warnings), "warnings": warnings})


@router.post("/mark-all-read")
def mark_all_read(request: Request, api: InventoryApi = Depends(get_api)):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    api.mark_all_alerts_read(current_auth(request).token)
    push_toast(request, "All alerts marked as read")
    return RedirectResponse(url="/alerts", status_code=303)


@router.post("/{alert_id}/read")
def mark_read(request: Request, alert_id: str, api: InventoryApi = Depends(get_api)):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    api.mark_alert_read(current_auth(request).token, alert_id)
    return RedirectResponse(url="/alerts", status_code=303)


@router.post("/{alert_id}/resolve")
def resolve(
    request: Request,
    alert_id: str,
    notes: Optional[str] = Form(None),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    api.resolve_alert(current_auth(request).token, alert_id, notes or None)
    push_toast(request, "Alert resolved")
    return RedirectResponse(url="/alerts", status_code=303)


@router.post("/{alert_id}/delete")
def delete(request: Request, alert_id: str, api: InventoryApi = Depends(get_api)):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    api.delete_alert(current_auth(request).token, alert_id)
    push_toast(request, "Alert deleted")
    return RedirectResponse(url="/alerts", status_code=303)


__all__ = ["router"]

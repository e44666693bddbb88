from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse

from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated, require_login_api
from app.dependencies import get_api, get_store
from app.services.dashboard_service import build_dashboard, local_summary, sales_trend_points
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_class=HTMLResponse)
def dashboard_page(
    request: Request,
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    templates = request.app.state.templates
    data = build_dashboard(api, current_auth(request).token, store)
    return templates.TemplateResponse(request, "dashboard.html", {"request": request, **data})


@router.get("/api/summary")
def dashboard_summary(request: Request, store: ProductsStore = Depends(get_store)):
    require_login_api(request)
    return local_summary(store.load_all_products())


@router.get("/api/sales-trend")
def dashboard_sales_trend(
    request: Request,
    period: str = Query("daily", pattern="^(daily|weekly|monthly)$"),
    days: int = Query(30, ge=1, le=365),
    api: InventoryApi = Depends(get_api),
):
    auth = require_login_api(request)
    return jsonable_encoder(sales_trend_points(api, auth.token, period=period, days=days))


__all__ = ["router"]

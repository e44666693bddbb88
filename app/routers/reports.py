import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, Response

from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated
from app.dependencies import get_api, get_store
from app.services import report_service
from app.services.dashboard_service import sales_trend_points
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])

SERVER_REPORTS = ("products", "sales", "expiry", "stock-valuation")


def _attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": 'attachment; filename="{}"'.format(filename)},
    )


def _period(start: Optional[date], end: Optional[date]) -> tuple[date, date]:
    end = end or date.today()
    start = start or end - timedelta(days=29)
    if start > end:
        start, end = end, start
    return start, end


@router.get("", response_class=HTMLResponse)
def reports_page(request: Request):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    start, end = _period(None, None)
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "reports.html",
        {
            "request": request,
            "report_types": report_service.REPORT_TYPES,
            "formats": report_service.FORMATS,
            "server_reports": SERVER_REPORTS,
            "start": start.isoformat(),
            "end": end.isoformat(),
        },
    )


@router.get("/download")
def download_report(
    request: Request,
    report: str = Query("products"),
    fmt: str = Query("csv", alias="format"),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if report not in report_service.REPORT_TYPES:
        raise HTTPException(status_code=404, detail="Unknown report: {}".format(report))
    if fmt not in report_service.FORMATS:
        raise HTTPException(status_code=400, detail="Unsupported format: {}".format(fmt))

    start, end = _period(start, end)
    now = datetime.now()
    if report == "sales":
        days = (end - start).days + 1
        trend = sales_trend_points(api, current_auth(request).token, period="daily", days=days)
        built = report_service.build_sales_report(trend, now=now, period=(start, end))
    else:
        products = store.load_all_products()
        if report == "products":
            built = report_service.build_products_report(products, now=now, period=(start, end))
        elif report == "stock-valuation":
            built = report_service.build_stock_valuation_report(products, now=now)
        elif report == "low-stock":
            built = report_service.build_low_stock_report(products, now=now)
        else:
            built = report_service.build_expiry_report(products, now=now)

    logger.info("Generated %s report as %s with %d row(s)", report, fmt, len(built.rows))
    return _attachment(
        report_service.render(built, fmt),
        report_service.FORMATS[fmt],
        report_service.report_filename(report, fmt),
    )


@router.get("/server/{kind}")
def download_server_report(
    request: Request,
    kind: str,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if kind not in SERVER_REPORTS:
        raise HTTPException(status_code=404, detail="Unknown report: {}".format(kind))
    start, end = _period(start, end)
    params = {"startDate": start.isoformat(), "endDate": end.isoformat()}
    content, content_type, filename = api.download_server_report(current_auth(request).token, kind, params)
    return _attachment(
        content,
        content_type or "application/octet-stream",
        filename or "{}-report-{}.csv".format(kind, date.today().isoformat()),
    )


__all__ = ["router"]

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from app.config import get_settings
from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated, require_login_api
from app.core.errors import NotFoundError
from app.core.toasts import push_toast
from app.dependencies import get_api, get_store
from app.schemas.product import ProductRead
from app.services.api_client import unwrap
from app.services.camera import CameraError, CameraSession
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore
from app.services.scanner_service import ScannerError, get_scanner_libraries, scan_image
from app.services.stock_service import InsufficientStockError, plan_update, stock_projection, submit_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scanner", tags=["Scanner"])

PRODUCT_NOT_FOUND_MESSAGE = "No product found with code {}"


def _camera(request: Request) -> CameraSession:
    return request.app.state.camera


def _resolve(api: InventoryApi, token: str, store: ProductsStore, code: str) -> Optional[ProductRead]:
    """Loaded product list first, then a direct lookup by code."""
    store.fetch_products()
    product = store.find_by_code(code)
    if product is not None:
        return product
    try:
        payload = api.get_product_by_qr(token, code)
    except NotFoundError:
        return None
    data = unwrap(payload, "product", "data")
    return ProductRead.model_validate(data) if isinstance(data, dict) else None


def _render(request: Request, *, code=None, product=None, method=None, error=None, status_code=200):
    camera = _camera(request)
    libraries = get_scanner_libraries()
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "scanner.html",
        {
            "request": request,
            "code": code,
            "product": product,
            "stock": stock_projection(product) if product else None,
            "method": method,
            "error": error,
            "camera_state": camera.state.value,
            "camera_active": camera.active,
            "camera_error": camera.error,
            "libraries": libraries.loaded,
        },
        status_code=status_code,
    )


def _found(request: Request, api, store, code: str, method: Optional[str], camera: Optional[CameraSession] = None):
    product = _resolve(api, current_auth(request).token, store, code)
    if camera is not None:
        camera.record_lookup(product)
    if product is None:
        message = PRODUCT_NOT_FOUND_MESSAGE.format(code)
        push_toast(request, message, "error")
        return _render(request, code=code, method=method, error=message)
    push_toast(request, "Product found: {}".format(product.name))
    return _render(request, code=code, product=product, method=method)


@router.get("", response_class=HTMLResponse)
def scanner_page(request: Request):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    return _render(request)


@router.post("/scan", response_class=HTMLResponse)
async def scan_upload(
    request: Request,
    image: UploadFile = File(...),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    data = await image.read(get_settings().SCANNER_MAX_UPLOAD_BYTES + 1)
    if len(data) > get_settings().SCANNER_MAX_UPLOAD_BYTES:
        return _render(request, error="Image is too large", status_code=413)
    try:
        result = await run_in_threadpool(scan_image, data, image.content_type)
    except ScannerError as exc:
        push_toast(request, exc.message, "error")
        return _render(request, error=exc.message, status_code=422)
    return await run_in_threadpool(_found, request, api, store, result.code, result.method)


@router.post("/lookup", response_class=HTMLResponse)
def manual_lookup(
    request: Request,
    code: str = Form(...),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    code = code.strip()
    if not code:
        return _render(request, error="Enter a code to look up", status_code=422)
    return _found(request, api, store, code, "manual")


@router.post("/camera/start")
def camera_start(request: Request):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    host = request.headers.get("host") or (request.url.hostname or "")
    try:
        _camera(request).start(request.url.scheme, host, owner=current_auth(request).token)
    except CameraError as exc:
        push_toast(request, exc.message, "error")
    else:
        push_toast(request, "Camera started", "info")
    return RedirectResponse(url="/scanner", status_code=303)


@router.post("/camera/capture", response_class=HTMLResponse)
def camera_capture(
    request: Request,
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    camera = _camera(request)
    try:
        result = camera.capture(owner=current_auth(request).token)
    except (CameraError, ScannerError) as exc:
        push_toast(request, exc.message, "error")
        return _render(request, error=exc.message)
    return _found(request, api, store, result.code, result.method, camera)


@router.post("/camera/stop")
def camera_stop(request: Request):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    try:
        _camera(request).stop(owner=current_auth(request).token)
    except CameraError as exc:
        push_toast(request, exc.message, "error")
    return RedirectResponse(url="/scanner", status_code=303)


@router.post("/update-stock", response_class=HTMLResponse)
def update_stock(
    request: Request,
    code: str = Form(...),
    operation: str = Form(...),
    quantity: int = Form(...),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    token = current_auth(request).token
    product = _resolve(api, token, store, code.strip())
    if product is None:
        message = PRODUCT_NOT_FOUND_MESSAGE.format(code)
        push_toast(request, message, "error")
        return _render(request, code=code, error=message, status_code=404)

    try:
        update = plan_update(product, operation, quantity)
    except (InsufficientStockError, ValueError) as exc:
        push_toast(request, str(exc), "error")
        return _render(request, code=code, product=product, error=str(exc), status_code=422)

    submit_update(api, token, product, update)
    updated = store.update_product_quantity(product.id, update.new_quantity) or product.with_quantity(update.new_quantity)
    push_toast(request, "Stock updated: {} -> {}".format(update.current, update.new_quantity))
    return _render(request, code=code, product=updated, method="manual")


@router.get("/api/status")
def scanner_status(request: Request):
    require_login_api(request)
    camera = _camera(request)
    libraries = get_scanner_libraries()
    return {
        "state": camera.state.value,
        "camera_active": camera.active,
        "error": camera.error,
        "libraries": libraries.loaded,
        "methods": libraries.chain().methods if libraries.ready else [],
    }


__all__ = ["router"]

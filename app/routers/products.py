import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.core.constants import PRODUCT_SORT_FIELDS, SORT_ORDERS
from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated, require_login_api
from app.core.errors import ApiError, SessionExpiredError
from app.core.toasts import push_toast
from app.dependencies import get_api, get_store
from app.schemas.product import ProductForm, ProductRead
from app.schemas.stock import StockMovementRead
from app.services.api_client import unwrap
from app.services.category_service import build_tree, flatten_tree
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore
from app.services.stock_service import stock_projection, stock_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ()) if part != "__root__")
    return "{}: {}".format(field, error.get("msg")) if field else error.get("msg", "Invalid input")


async def _image_part(image: Optional[UploadFile]):
    if image is None or not image.filename:
        return None
    content = await image.read()
    if not content:
        return None
    return image.filename, content, image.content_type or "application/octet-stream"


def _apply_view(store: ProductsStore, search, category, sort_by, sort_order) -> None:
    filters = {key: value for key, value in {"search": search, "category": category}.items() if value}
    if filters != store.filters:
        store.set_filters(**filters)
    if (sort_by, sort_order) != (store.sort_by, store.sort_order):
        store.set_sort(sort_by, sort_order)


def _history(api: InventoryApi, token: str, product_id: str) -> list:
    try:
        payload = api.movement_history(token, product_id)
    except SessionExpiredError:
        raise
    except ApiError as exc:
        logger.info("Movement history unavailable for %s: %s", product_id, exc.message)
        return []
    items = unwrap(payload, "history", "movements", "data")
    return [StockMovementRead.model_validate(item) for item in items if isinstance(item, dict)] if isinstance(items, list) else []


def _form_context(request: Request, store: ProductsStore, product=None, values=None, error=None) -> dict:
    return {
        "request": request,
        "product": product,
        "product_id": product.id if product else (values or {}).get("_id"),
        "values": values or (product.to_api() if product else {}),
        "categories": flatten_tree(build_tree(store.fetch_categories())),
        "error": error,
    }


@router.get("", response_class=HTMLResponse)
def products_page(
    request: Request,
    page: int = Query(1, ge=1),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if sort_by not in PRODUCT_SORT_FIELDS:
        sort_by = "createdAt"
    if sort_order not in SORT_ORDERS:
        sort_order = "desc"
    _apply_view(store, (search or "").strip(), category, sort_by, sort_order)

    products = store.fetch_products(page)
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "products.html",
        {
            "request": request,
            "products": [(product, stock_status(product)) for product in products],
            "categories": flatten_tree(build_tree(store.fetch_categories())),
            "page": store.current_page,
            "total_pages": store.total_pages,
            "total_products": store.total_products,
            "search": search or "",
            "category": category or "",
            "sort_by": sort_by,
            "sort_order": sort_order,
            "sort_fields": PRODUCT_SORT_FIELDS,
        },
    )


@router.get("/api/lookup")
def lookup_product(
    request: Request,
    code: str = Query(..., min_length=1),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    auth = require_login_api(request)
    product = store.find_by_code(code)
    if product is None:
        product = ProductRead.model_validate(unwrap(api.get_product_by_qr(auth.token, code.strip()), "product", "data"))
    return jsonable_encoder({"product": product.to_api(), "stock": stock_projection(product)})


@router.get("/new", response_class=HTMLResponse)
def new_product_page(request: Request, store: ProductsStore = Depends(get_store)):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    templates = request.app.state.templates
    return templates.TemplateResponse(request, "product_form.html", _form_context(request, store))


@router.post("", response_class=HTMLResponse)
async def create_product(
    request: Request,
    name: str = Form(...),
    price: str = Form(...),
    quantity: str = Form("0"),
    qr_code: str = Form(..., alias="qrCode"),
    category: Optional[str] = Form(None),
    brand: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    expiration_date: Optional[str] = Form(None, alias="expirationDate"),
    low_stock_threshold: Optional[str] = Form(None, alias="lowStockThreshold"),
    image: Optional[UploadFile] = File(None),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    values = {
        "name": name,
        "price": price,
        "quantity": quantity or "0",
        "qrCode": qr_code,
        "category": category or None,
        "brand": brand or None,
        "description": description or None,
        "expirationDate": expiration_date or None,
        "lowStockThreshold": low_stock_threshold or None,
    }
    try:
        form = ProductForm.model_validate(values)
    except ValidationError as exc:
        templates = request.app.state.templates
        return templates.TemplateResponse(
            request,
            "product_form.html",
            await run_in_threadpool(_form_context, request, store, None, values, _first_error(exc)),
            status_code=422,
        )

    product = await run_in_threadpool(store.create_product, form.to_api(), await _image_part(image))
    push_toast(request, "Product {} created".format(product.name or form.name))
    return RedirectResponse(url="/products", status_code=303)


@router.get("/{product_id}", response_class=HTMLResponse)
def product_detail(
    request: Request,
    product_id: str,
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    token = current_auth(request).token
    product = ProductRead.model_validate(unwrap(api.get_product(token, product_id), "product", "data"))
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "product_detail.html",
        {
            "request": request,
            "product": product,
            "status": stock_status(product),
            "stock": stock_projection(product),
            "history": _history(api, token, product_id),
        },
    )


@router.get("/{product_id}/edit", response_class=HTMLResponse)
def edit_product_page(
    request: Request,
    product_id: str,
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    product = store.get_cached(product_id)
    if product is None:
        payload = api.get_product(current_auth(request).token, product_id)
        product = ProductRead.model_validate(unwrap(payload, "product", "data"))
    values = product.to_api()
    values["category"] = product.category_id
    values["expirationDate"] = product.expiry.isoformat() if product.expiry else ""
    templates = request.app.state.templates
    return templates.TemplateResponse(request, "product_form.html", _form_context(request, store, product, values))


@router.post("/{product_id}", response_class=HTMLResponse)
async def update_product(
    request: Request,
    product_id: str,
    name: str = Form(...),
    price: str = Form(...),
    quantity: str = Form("0"),
    qr_code: str = Form(..., alias="qrCode"),
    category: Optional[str] = Form(None),
    brand: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    expiration_date: Optional[str] = Form(None, alias="expirationDate"),
    low_stock_threshold: Optional[str] = Form(None, alias="lowStockThreshold"),
    image: Optional[UploadFile] = File(None),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    values = {
        "name": name,
        "price": price,
        "quantity": quantity or "0",
        "qrCode": qr_code,
        "category": category or None,
        "brand": brand or None,
        "description": description or None,
        "expirationDate": expiration_date or None,
        "lowStockThreshold": low_stock_threshold or None,
    }
    try:
        form = ProductForm.model_validate(values)
    except ValidationError as exc:
        templates = request.app.state.templates
        product = store.get_cached(product_id)
        return templates.TemplateResponse(
            request,
            "product_form.html",
            await run_in_threadpool(_form_context, request, store, product, dict(values, _id=product_id), _first_error(exc)),
            status_code=422,
        )

    await run_in_threadpool(store.update_product, product_id, form.to_api(), await _image_part(image))
    push_toast(request, "Product {} updated".format(form.name))
    return RedirectResponse(url="/products/{}".format(product_id), status_code=303)


@router.post("/{product_id}/delete")
def delete_product(request: Request, product_id: str, store: ProductsStore = Depends(get_store)):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    store.delete_product(product_id)
    push_toast(request, "Product deleted")
    return RedirectResponse(url="/products", status_code=303)


__all__ = ["router"]

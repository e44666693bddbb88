from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated, require_login_api
from app.core.toasts import push_toast
from app.dependencies import get_api, get_store
from app.schemas.category import CategoryForm
from app.services.category_service import build_tree, flatten_tree, reorder_payload
from app.services.inventory_api import InventoryApi
from app.services.products_store import ProductsStore

router = APIRouter(prefix="/categories", tags=["Categories"])


def _form(name, parent, description, icon, color, sort_order) -> CategoryForm:
    return CategoryForm.model_validate(
        {
            "name": name,
            "parent": parent or None,
            "description": description or None,
            "icon": icon or None,
            "color": color or None,
            "sortOrder": sort_order or 0,
        }
    )


@router.get("", response_class=HTMLResponse)
def categories_page(request: Request, store: ProductsStore = Depends(get_store)):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    tree = build_tree(store.fetch_categories(force=True))
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "categories.html",
        {"request": request, "nodes": flatten_tree(tree), "roots": tree},
    )


@router.get("/api/tree")
def category_tree(request: Request, store: ProductsStore = Depends(get_store)):
    require_login_api(request)
    return jsonable_encoder(build_tree(store.fetch_categories()))


@router.post("")
def create_category(
    request: Request,
    name: str = Form(...),
    parent: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    icon: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    sort_order: Optional[int] = Form(None, alias="sortOrder"),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    try:
        form = _form(name, parent, description, icon, color, sort_order)
    except ValidationError:
        push_toast(request, "Category name is required", "error")
        return RedirectResponse(url="/categories", status_code=303)
    api.create_category(current_auth(request).token, form.to_api())
    store.fetch_categories(force=True)
    push_toast(request, "Category {} created".format(form.name))
    return RedirectResponse(url="/categories", status_code=303)


@router.post("/reorder")
async def reorder_categories(
    request: Request,
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    form = await request.form()
    ordered = [value for value in form.getlist("category_id") if isinstance(value, str)]
    await run_in_threadpool(api.reorder_categories, current_auth(request).token, reorder_payload(ordered))
    await run_in_threadpool(store.fetch_categories, True)
    push_toast(request, "Category order saved")
    return RedirectResponse(url="/categories", status_code=303)


@router.post("/{category_id}")
def update_category(
    request: Request,
    category_id: str,
    name: str = Form(...),
    parent: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    icon: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    sort_order: Optional[int] = Form(None, alias="sortOrder"),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if parent == category_id:
        push_toast(request, "A category cannot be its own parent", "error")
        return RedirectResponse(url="/categories", status_code=303)
    try:
        form = _form(name, parent, description, icon, color, sort_order)
    except ValidationError:
        push_toast(request, "Category name is required", "error")
        return RedirectResponse(url="/categories", status_code=303)
    api.update_category(current_auth(request).token, category_id, form.to_api())
    store.fetch_categories(force=True)
    push_toast(request, "Category {} updated".format(form.name))
    return RedirectResponse(url="/categories", status_code=303)


@router.post("/{category_id}/delete")
def delete_category(
    request: Request,
    category_id: str,
    move_products_to: Optional[str] = Form(None),
    delete_subcategories: bool = Form(False),
    api: InventoryApi = Depends(get_api),
    store: ProductsStore = Depends(get_store),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    api.delete_category(
        current_auth(request).token,
        category_id,
        move_products_to=move_products_to or None,
        delete_subcategories=delete_subcategories,
    )
    store.fetch_categories(force=True)
    store.invalidate()
    push_toast(request, "Category deleted")
    return RedirectResponse(url="/categories", status_code=303)


__all__ = ["router"]

from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError

from app.core.dashboard_auth import current_auth, redirect_if_not_admin
from app.core.toasts import push_toast
from app.dependencies import get_api
from app.schemas.user import RegisterForm, UserRead
from app.services.api_client import clean_params, unwrap_items
from app.services.inventory_api import InventoryApi

router = APIRouter(prefix="/users", tags=["Users"])

USER_ROLES = ("staff", "manager", "admin")


@router.get("", response_class=HTMLResponse)
def users_page(
    request: Request,
    search: Optional[str] = Query(None),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_not_admin(request)
    if redirect:
        return redirect
    payload = api.list_users(current_auth(request).token, clean_params({"search": search}))
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "users.html",
        {
            "request": request,
            "users": [UserRead.model_validate(item) for item in unwrap_items(payload, "users")],
            "search": search or "",
            "roles": USER_ROLES,
        },
    )


@router.post("")
def register_user(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    role: str = Form("staff"),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_not_admin(request)
    if redirect:
        return redirect
    try:
        form = RegisterForm(name=name, email=email, password=password, role=role if role in USER_ROLES else "staff")
    except ValidationError:
        push_toast(request, "Enter a name, a valid email and a password of at least 6 characters", "error")
        return RedirectResponse(url="/users", status_code=303)
    api.register_user(current_auth(request).token, form.model_dump())
    push_toast(request, "User {} registered".format(form.email))
    return RedirectResponse(url="/users", status_code=303)


@router.post("/{user_id}/toggle")
def toggle_user(request: Request, user_id: str, api: InventoryApi = Depends(get_api)):
    redirect = redirect_if_not_admin(request)
    if redirect:
        return redirect
    auth = current_auth(request)
    if auth.user and auth.user.id == user_id:
        push_toast(request, "You cannot deactivate your own account", "error")
        return RedirectResponse(url="/users", status_code=303)
    api.toggle_user_status(auth.token, user_id)
    push_toast(request, "User status updated")
    return RedirectResponse(url="/users", status_code=303)


__all__ = ["router"]

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.core.constants import DEFAULT_DASHBOARD_PATH, LOGIN_PATH
from app.core.dashboard_auth import current_auth, redirect_if_unauthenticated
from app.core.errors import ApiError
from app.core.toasts import push_toast
from app.dependencies import get_api
from app.services import auth_service
from app.services.api_client import unwrap
from app.services.inventory_api import InventoryApi
from app.services.products_store import drop_products_store

router = APIRouter(tags=["Auth"])


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    if current_auth(request).is_authenticated:
        return RedirectResponse(url=DEFAULT_DASHBOARD_PATH, status_code=303)
    templates = request.app.state.templates
    return templates.TemplateResponse(request, "login.html", {"request": request, "error": None, "email": ""})


@router.post("/login", response_class=HTMLResponse)
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    api: InventoryApi = Depends(get_api),
):
    templates = request.app.state.templates
    try:
        state = auth_service.login(email, password, api=api)
    except ApiError as exc:
        push_toast(request, exc.message, "error")
        return templates.TemplateResponse(
            request,
            "login.html",
            {"request": request, "error": exc.message, "email": email},
            status_code=exc.status_code if exc.status_code in (400, 401, 403) else 400,
        )

    push_toast(request, auth_service.LOGIN_SUCCESS_MESSAGE)
    response = RedirectResponse(url=DEFAULT_DASHBOARD_PATH, status_code=303)
    auth_service.write_auth_cookies(response, state)
    return response


@router.post("/logout")
def logout(request: Request, api: InventoryApi = Depends(get_api)):
    state = current_auth(request)
    drop_products_store(state.token)
    auth_service.logout(state, api=api)
    push_toast(request, auth_service.LOGOUT_MESSAGE)
    response = RedirectResponse(url=LOGIN_PATH, status_code=303)
    auth_service.clear_auth_cookies(response)
    return response


@router.get("/profile", response_class=HTMLResponse)
def profile_page(request: Request, api: InventoryApi = Depends(get_api)):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    auth = current_auth(request)
    profile = unwrap(api.get_profile(auth.token), "user", "data")
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "profile.html",
        {"request": request, "profile": profile if isinstance(profile, dict) else auth.user.to_cookie()},
    )


@router.post("/profile")
def profile_update(
    request: Request,
    name: str = Form(...),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    auth = current_auth(request)
    api.update_profile(auth.token, {"name": name.strip()})
    state = auth_service.update_user(auth, name=name.strip())
    push_toast(request, "Profile updated")
    response = RedirectResponse(url="/profile", status_code=303)
    auth_service.write_auth_cookies(response, state)
    return response


@router.post("/profile/password")
def change_password(
    request: Request,
    current_password: str = Form(...),
    new_password: str = Form(...),
    confirm_password: str = Form(...),
    api: InventoryApi = Depends(get_api),
):
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if new_password != confirm_password:
        push_toast(request, "New passwords do not match", "error")
        return RedirectResponse(url="/profile", status_code=303)
    if len(new_password) < 6:
        push_toast(request, "Password must be at least 6 characters", "error")
        return RedirectResponse(url="/profile", status_code=303)
    api.change_password(current_auth(request).token, current_password, new_password)
    push_toast(request, "Password changed")
    return RedirectResponse(url="/profile", status_code=303)


__all__ = ["router"]

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import RedirectResponse

from app.core.constants import DEFAULT_DASHBOARD_PATH, LOGIN_PATH
from app.services.auth_service import AuthState, state_from_cookies


def current_auth(request: Request) -> AuthState:
    cached = getattr(request.state, "auth", None)
    if cached is None:
        cached = state_from_cookies(request.cookies)
        request.state.auth = cached
    return cached


def redirect_if_unauthenticated(request: Request) -> Optional[RedirectResponse]:
    if current_auth(request).is_authenticated:
        return None
    return RedirectResponse(url=LOGIN_PATH, status_code=303)


def redirect_if_not_admin(request: Request) -> Optional[RedirectResponse]:
    redirect = redirect_if_unauthenticated(request)
    if redirect:
        return redirect
    if current_auth(request).is_admin:
        return None
    return RedirectResponse(url=DEFAULT_DASHBOARD_PATH, status_code=303)


def require_login_api(request: Request) -> AuthState:
    auth = current_auth(request)
    if not auth.is_authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return auth

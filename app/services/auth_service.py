from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import quote, unquote

from pydantic import ValidationError
from starlette.responses import Response

from app.config import get_settings
from app.core.errors import ApiError
from app.core.security import token_expired
from app.schemas.user import UserRead
from app.services.api_client import unwrap
from app.services.inventory_api import InventoryApi, get_inventory_api

logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Login failed"
LOGIN_SUCCESS_MESSAGE = "Login successful!"
LOGOUT_MESSAGE = "Logged out successfully"


@dataclass
class AuthState:
    token: Optional[str] = None
    user: Optional[UserRead] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user)

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.is_admin)


def login(email: str, password: str, *, api: Optional[InventoryApi] = None) -> AuthState:
    api = api or get_inventory_api()
    try:
        payload = api.login(email.strip(), password)
    except ApiError as exc:
        message = exc.message
        if isinstance(exc.payload, dict) and exc.payload.get("message"):
            message = exc.payload["message"]
        elif exc.status_code == 401:
            message = LOGIN_FAILED_MESSAGE
        raise ApiError(message, status_code=exc.status_code, payload=exc.payload) from exc

    payload = unwrap(payload, "data")
    token = payload.get("token") if isinstance(payload, dict) else None
    user_data = payload.get("user") if isinstance(payload, dict) else None
    if not token or not isinstance(user_data, dict):
        raise ApiError(LOGIN_FAILED_MESSAGE)

    state = AuthState(token=token, user=UserRead.model_validate(user_data))
    logger.info("User %s signed in", state.user.email or email)
    return state


def logout(state: AuthState, *, api: Optional[InventoryApi] = None) -> AuthState:
    """Tell the API the session ended; the local state is cleared regardless."""
    if state.token:
        api = api or get_inventory_api()
        try:
            api.logout(state.token)
        except ApiError as exc:
            logger.info("Logout call failed, clearing local session anyway: %s", exc.message)
    return AuthState()


def handle_session_expiry() -> AuthState:
    return AuthState()


def update_user(state: AuthState, **fields) -> AuthState:
    if state.user is None:
        return state
    merged = state.user.to_cookie()
    merged.update(fields)
    return AuthState(token=state.token, user=UserRead.model_validate(merged))


def state_from_cookies(cookies: Mapping[str, str]) -> AuthState:
    settings = get_settings()
    token = cookies.get(settings.AUTH_COOKIE_NAME)
    raw_user = cookies.get(settings.USER_COOKIE_NAME)
    if not token or not raw_user:
        return AuthState()
    if token_expired(token):
        logger.debug("Auth cookie holds an expired token")
        return AuthState()
    try:
        user = UserRead.model_validate(json.loads(unquote(raw_user)))
    except (ValueError, ValidationError):
        logger.warning("Discarding unreadable %s cookie", settings.USER_COOKIE_NAME)
        return AuthState()
    return AuthState(token=token, user=user)


def write_auth_cookies(response: Response, state: AuthState) -> None:
    settings = get_settings()
    max_age = settings.AUTH_COOKIE_HOURS * 3600
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        state.token or "",
        max_age=max_age,
        path="/",
        samesite="lax",
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
    )
    user_value = json.dumps(state.user.to_cookie() if state.user else {}, separators=(",", ":"), default=str)
    response.set_cookie(
        settings.USER_COOKIE_NAME,
        quote(user_value, safe=""),
        max_age=max_age,
        path="/",
        samesite="lax",
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
    )


def clear_auth_cookies(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    response.delete_cookie(settings.USER_COOKIE_NAME, path="/")


__all__ = [
    "AuthState",
    "LOGIN_FAILED_MESSAGE",
    "LOGIN_SUCCESS_MESSAGE",
    "LOGOUT_MESSAGE",
    "clear_auth_cookies",
    "handle_session_expiry",
    "login",
    "logout",
    "state_from_cookies",
    "update_user",
    "write_auth_cookies",
]

import logging
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from app.core.constants import DEFAULT_DASHBOARD_PATH, LOGIN_PATH
from app.core.errors import ApiError, SessionExpiredError
from app.core.toasts import push_toast
from app.services.auth_service import clear_auth_cookies, handle_session_expiry
from app.services.products_store import drop_products_store

logger = logging.getLogger(__name__)


def wants_json(request: Request) -> bool:
    if "/api/" in request.url.path:
        return True
    return "application/json" in request.headers.get("accept", "")


def safe_referer(request: Request, fallback: str = DEFAULT_DASHBOARD_PATH) -> str:
    referer = request.headers.get("referer")
    if not referer:
        return fallback
    parsed = urlparse(referer)
    if parsed.netloc and parsed.netloc != request.url.netloc:
        return fallback
    target = parsed.path or fallback
    if parsed.query:
        target = "{}?{}".format(target, parsed.query)
    return target


async def session_expired_handler(request: Request, exc: SessionExpiredError):
    token = request.cookies.get(request.app.state.settings.AUTH_COOKIE_NAME)
    drop_products_store(token)
    request.state.auth = handle_session_expiry()

    if wants_json(request):
        response = JSONResponse(status_code=401, content={"detail": exc.message})
    elif request.url.path == LOGIN_PATH:
        templates = request.app.state.templates
        response = templates.TemplateResponse(
            request,
            "login.html",
            {"request": request, "error": exc.message, "email": ""},
            status_code=401,
        )
    else:
        push_toast(request, exc.message, "error")
        response = RedirectResponse(url=LOGIN_PATH, status_code=303)
    clear_auth_cookies(response)
    logger.info("Session expired on %s", request.url.path)
    return response


async def api_error_handler(request: Request, exc: ApiError):
    status_code = exc.status_code if exc.status_code and exc.status_code >= 400 else 502
    if wants_json(request):
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    if request.method == "GET":
        templates = request.app.state.templates
        return templates.TemplateResponse(
            request,
            "error.html",
            {"request": request, "message": exc.message, "status_code": status_code},
            status_code=status_code,
        )

    push_toast(request, exc.message, "error")
    return RedirectResponse(url=safe_referer(request), status_code=303)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SessionExpiredError, session_expired_handler)
    app.add_exception_handler(ApiError, api_error_handler)


__all__ = ["register_exception_handlers", "safe_referer", "wants_json"]

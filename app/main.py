import logging
import secrets
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.sessions import SessionMiddleware

from app.config import Settings, get_settings
from app.core.constants import DEFAULT_DASHBOARD_PATH, STATIC_DIR, TEMPLATES_DIR
from app.core.dashboard_auth import current_auth
from app.core.error_handlers import register_exception_handlers
from app.core.logging import setup_logging
from app.core.request_logging import RequestLogMiddleware
from app.core.scheduler import Scheduler
from app.core.toasts import pop_toasts
from app.database import Base, engine, ensure_sqlite_schema
from app.models import import_all_models
from app.routers import (
    alerts_router,
    auth_router,
    categories_router,
    dashboard_router,
    developer_router,
    health_router,
    orders_router,
    products_router,
    purchase_orders_router,
    reports_router,
    scanner_router,
    stock_router,
    suppliers_router,
    users_router,
)
from app.services.api_client import close_api_client
from app.services.camera import CameraSession
from app.services.inventory_api import get_inventory_api
from app.services.request_log_service import prune_request_logs

logger = logging.getLogger(__name__)

setup_logging()
settings: Settings = get_settings()

import_all_models()
Base.metadata.create_all(bind=engine)
ensure_sqlite_schema()


def prune_request_log_job() -> int:
    try:
        return prune_request_logs(settings.REQUEST_LOG_RETENTION_DAYS)
    except SQLAlchemyError as exc:
        raise RuntimeError("Request log prune failed: {}".format(exc)) from exc


def build_scheduler() -> Scheduler:
    scheduler = Scheduler(timezone_mode=settings.SCHEDULER_TZ, poll_seconds=settings.SCHEDULER_POLL_SECONDS)
    scheduler.add_daily_job("prune_request_logs", settings.SCHEDULER_PRUNE_AT, prune_request_log_job)
    return scheduler


def console_context(request: Request) -> dict:
    auth = current_auth(request)
    return {
        "app_name": settings.APP_NAME,
        "auth": auth,
        "current_user": auth.user,
        "toasts": pop_toasts(request) if "session" in request.scope else [],
    }


def _money(value) -> str:
    try:
        return "{:,.2f}".format(float(value or 0))
    except (TypeError, ValueError):
        return "0.00"


@asynccontextmanager
async def lifespan(_app: FastAPI):
    scheduler = _app.state.scheduler
    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    try:
        yield
    finally:
        scheduler.stop()
        _app.state.camera.stop()
        close_api_client()
        get_inventory_api.cache_clear()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
app.state.settings = settings
app.state.scheduler = build_scheduler()
app.state.camera = CameraSession()
app.state.templates = Jinja2Templates(directory=str(TEMPLATES_DIR), context_processors=[console_context])
app.state.templates.env.filters["money"] = _money

if settings.REQUEST_LOG_ENABLED:
    app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET or secrets.token_urlsafe(32),
    session_cookie=settings.SESSION_COOKIE,
    same_site="lax",
    https_only=settings.ENVIRONMENT.lower() not in ("local", "test"),
)
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
register_exception_handlers(app)

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(products_router)
app.include_router(stock_router)
app.include_router(categories_router)
app.include_router(alerts_router)
app.include_router(scanner_router)
app.include_router(reports_router)
app.include_router(orders_router)
app.include_router(suppliers_router)
app.include_router(purchase_orders_router)
app.include_router(users_router)
app.include_router(developer_router)


@app.get("/")
def root():
    return RedirectResponse(url=DEFAULT_DASHBOARD_PATH, status_code=302)


__all__ = ["app", "root"]

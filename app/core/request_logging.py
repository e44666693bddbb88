import logging
import time

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.services.auth_service import state_from_cookies
from app.services.request_log_service import excluded_paths, record_request, should_log

logger = logging.getLogger("app.requests")


class RequestLogMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, session_factory=None, excluded=None):
        super().__init__(app)
        self._session_factory = session_factory
        self._excluded = excluded if excluded is not None else excluded_paths()

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not should_log(path, self._excluded):
            return await call_next(request)

        started = time.perf_counter()
        error_message = None
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as exc:
            error_message = str(exc)[:500]
            raise
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            route = request.scope.get("route")
            route_path = getattr(route, "path", None)
            user = state_from_cookies(request.cookies).user
            client_ip = request.client.host if request.client else None
            logger.info(
                "%s %s %s %.1fms",
                request.method,
                path,
                status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 1),
                    "client_ip": client_ip,
                },
            )
            try:
                await run_in_threadpool(
                    record_request,
                    method=request.method,
                    path=path,
                    route=route_path,
                    status_code=status_code,
                    duration_ms=duration_ms,
                    client_ip=client_ip,
                    user_email=user.email if user else None,
                    query_string=request.url.query,
                    error_message=error_message,
                    session_factory=self._session_factory,
                )
            except SQLAlchemyError:
                logger.exception("Could not store request log for %s %s", request.method, path)

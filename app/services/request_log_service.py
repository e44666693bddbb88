from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import parse_qsl, urlencode

from sqlalchemy import case, delete, func, select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.security import mask_sensitive
from app.database.session import SessionLocal, session_scope
from app.models.request_log import RequestLog

logger = logging.getLogger(__name__)


def excluded_paths() -> list[str]:
    raw = get_settings().REQUEST_LOG_EXCLUDED_PATHS or ""
    return [value.strip() for value in raw.split(",") if value.strip()]


def should_log(path: str, excluded: Optional[list[str]] = None) -> bool:
    excluded = excluded if excluded is not None else excluded_paths()
    return not any(path == prefix or path.startswith(prefix.rstrip("/") + "/") for prefix in excluded)


def masked_query(query_string: str) -> Optional[str]:
    if not query_string:
        return None
    pairs = parse_qsl(query_string, keep_blank_values=True)
    masked = mask_sensitive(dict(pairs))
    return urlencode(masked)


def record_request(
    *,
    method: str,
    path: str,
    route: Optional[str],
    status_code: int,
    duration_ms: float,
    client_ip: Optional[str] = None,
    user_email: Optional[str] = None,
    query_string: str = "",
    error_message: Optional[str] = None,
    session_factory=None,
) -> None:
    with session_scope(session_factory or SessionLocal) as db:
        db.add(
            RequestLog(
                method=method,
                path=path[:255],
                route=(route or path)[:255],
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_ip=client_ip,
                user_email=user_email,
                query_string=masked_query(query_string),
                error_message=error_message,
            )
        )


def prune_request_logs(retention_days: Optional[int] = None, *, session_factory=None) -> int:
    days = retention_days if retention_days is not None else get_settings().REQUEST_LOG_RETENTION_DAYS
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    with session_scope(session_factory or SessionLocal) as db:
        result = db.execute(delete(RequestLog).where(RequestLog.created_at < cutoff))
        removed = result.rowcount or 0
    logger.info("Pruned %d request log row(s) older than %d day(s)", removed, days)
    return removed


def request_metrics(db: Session, *, hours: int = 24, limit: int = 10) -> dict:
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    window = RequestLog.created_at >= since

    totals = db.execute(
        select(
            func.count(RequestLog.id),
            func.sum(case((RequestLog.status_code >= 400, 1), else_=0)),
            func.avg(RequestLog.duration_ms),
        ).where(window)
    ).one()
    total = totals[0] or 0
    errors = int(totals[1] or 0)

    slowest = db.execute(
        select(
            RequestLog.route,
            func.count(RequestLog.id).label("hits"),
            func.avg(RequestLog.duration_ms).label("avg_ms"),
            func.max(RequestLog.duration_ms).label("max_ms"),
        )
        .where(window)
        .group_by(RequestLog.route)
        .order_by(func.avg(RequestLog.duration_ms).desc())
        .limit(limit)
    ).all()

    by_status = db.execute(
        select(RequestLog.status_code, func.count(RequestLog.id))
        .where(window)
        .group_by(RequestLog.status_code)
        .order_by(RequestLog.status_code)
    ).all()

    recent = (
        db.execute(select(RequestLog).order_by(RequestLog.created_at.desc(), RequestLog.id.desc()).limit(limit))
        .scalars()
        .all()
    )

    return {
        "hours": hours,
        "total_requests": total,
        "error_count": errors,
        "error_rate": round(errors / total * 100, 1) if total else 0.0,
        "avg_duration_ms": round(float(totals[2] or 0), 1),
        "slowest_routes": [
            {
                "route": row.route,
                "hits": row.hits,
                "avg_ms": round(float(row.avg_ms or 0), 1),
                "max_ms": round(float(row.max_ms or 0), 1),
            }
            for row in slowest
        ],
        "status_counts": {str(code): count for code, count in by_status},
        "recent": recent,
    }


__all__ = [
    "excluded_paths",
    "masked_query",
    "prune_request_logs",
    "record_request",
    "request_metrics",
    "should_log",
]

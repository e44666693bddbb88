from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.core.dashboard_auth import redirect_if_not_admin, require_login_api
from app.core.toasts import push_toast
from app.dependencies import get_db
from app.services.request_log_service import request_metrics

router = APIRouter(prefix="/developer", tags=["Developer"])


def _scheduler_jobs(request: Request) -> list[dict]:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return []
    return [job.as_dict() for job in scheduler.jobs()]


@router.get("", response_class=HTMLResponse)
def developer_page(
    request: Request,
    hours: int = Query(24, ge=1, le=24 * 30),
    db: Session = Depends(get_db),
):
    redirect = redirect_if_not_admin(request)
    if redirect:
        return redirect
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "developer.html",
        {
            "request": request,
            "metrics": request_metrics(db, hours=hours),
            "jobs": _scheduler_jobs(request),
        },
    )


@router.get("/api/metrics")
def developer_metrics(
    request: Request,
    hours: int = Query(24, ge=1, le=24 * 30),
    db: Session = Depends(get_db),
):
    require_login_api(request)
    metrics = request_metrics(db, hours=hours)
    metrics["recent"] = [
        {
            "method": row.method,
            "path": row.path,
            "status_code": row.status_code,
            "duration_ms": row.duration_ms,
            "created_at": row.created_at,
        }
        for row in metrics["recent"]
    ]
    return jsonable_encoder(metrics)


@router.post("/jobs/{name}/run")
def run_job(request: Request, name: str):
    redirect = redirect_if_not_admin(request)
    if redirect:
        return redirect
    scheduler = getattr(request.app.state, "scheduler", None)
    try:
        job = scheduler.run_now(name) if scheduler is not None else None
    except KeyError:
        job = None
    if job is None:
        push_toast(request, "Unknown job: {}".format(name), "error")
    elif job.last_error:
        push_toast(request, "Job {} failed: {}".format(name, job.last_error), "error")
    else:
        push_toast(request, "Job {} finished: {}".format(name, job.last_result))
    return RedirectResponse(url="/developer", status_code=303)


__all__ = ["router"]

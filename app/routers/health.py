from datetime import datetime, timezone

from fastapi import APIRouter, Request

from app.config import get_settings
from app.services.scanner_service import get_scanner_libraries

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request):
    settings = get_settings()
    camera = getattr(request.app.state, "camera", None)
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "api_url": settings.API_URL,
        "scanner": get_scanner_libraries().loaded,
        "camera": camera.state.value if camera is not None else None,
        "time": datetime.now(timezone.utc).isoformat(),
    }


__all__ = ["router"]

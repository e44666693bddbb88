from fastapi import Request

_SESSION_KEY = "toasts"
LEVELS = ("success", "error", "info")


def push_toast(request: Request, message: str, level: str = "success") -> None:
    if level not in LEVELS:
        level = "info"
    toasts = list(request.session.get(_SESSION_KEY, []))
    toasts.append({"level": level, "message": message})
    request.session[_SESSION_KEY] = toasts[-5:]


def pop_toasts(request: Request) -> list[dict]:
    return request.session.pop(_SESSION_KEY, [])

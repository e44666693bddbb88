from __future__ import annotations

import time
from typing import Any, Optional

from jose import JWTError, jwt

from app.core.constants import SENSITIVE_FIELDS

MASK = "***MASKED***"


def bearer_headers(token: Optional[str]) -> dict[str, str]:
    if not token:
        return {}
    return {"Authorization": "Bearer {}".format(token)}


def read_token_claims(token: str) -> dict:
    """Claims of an API token, read without verifying the signature.

    The console cannot verify tokens (the API owns the secret); this is only
    used to notice a cookie that has clearly outlived its ``exp``.
    """
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return {}


def token_expired(token: Optional[str], *, now: Optional[float] = None) -> bool:
    if not token:
        return True
    exp = read_token_claims(token).get("exp")
    if exp is None:
        return False
    try:
        return float(exp) <= (now if now is not None else time.time())
    except (TypeError, ValueError):
        return False


def _is_sensitive(key: str) -> bool:
    normalized = key.replace("-", "").replace("_", "").lower()
    return any(field.replace("_", "") in normalized for field in SENSITIVE_FIELDS)


def mask_sensitive(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            key: MASK if isinstance(key, str) and _is_sensitive(key) else mask_sensitive(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [mask_sensitive(item) for item in data]
    return data


__all__ = [
    "MASK",
    "bearer_headers",
    "mask_sensitive",
    "read_token_claims",
    "token_expired",
]

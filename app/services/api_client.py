"""HTTP client for the inventory REST API.

Every call carries its own bearer token; nothing about the signed-in user is
stored on the client. Failed calls raise an ``ApiError`` subclass whose
message is the toast the console shows.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Any, Optional

import httpx

from app.config import get_settings
from app.core.errors import (
    ApiError,
    ForbiddenError,
    GENERIC_ERROR_MESSAGE,
    NetworkError,
    NotFoundError,
    ServerError,
    SessionExpiredError,
    UNEXPECTED_ERROR_MESSAGE,
)
from app.core.security import bearer_headers

logger = logging.getLogger(__name__)

_FILENAME_RE = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


def clean_params(params: Optional[dict]) -> Optional[dict]:
    if not params:
        return None
    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = value
    return cleaned or None


def _response_payload(response: httpx.Response):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _server_message(payload) -> Optional[str]:
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


def error_from_response(response: httpx.Response, *, had_token: bool) -> ApiError:
    status_code = response.status_code
    payload = _response_payload(response)
    if status_code == 401:
        if had_token:
            return SessionExpiredError(status_code=401, payload=payload)
        return ApiError(_server_message(payload) or UNEXPECTED_ERROR_MESSAGE, status_code=401, payload=payload)
    if status_code == 403:
        return ForbiddenError(status_code=403, payload=payload)
    if status_code == 404:
        return NotFoundError(status_code=404, payload=payload)
    if status_code == 500:
        return ServerError(status_code=500, payload=payload)
    return ApiError(
        _server_message(payload) or UNEXPECTED_ERROR_MESSAGE,
        status_code=status_code,
        payload=payload,
    )


def unwrap(payload, *keys: str):
    """Return the first present envelope key (``data``, ``products``...) or the payload."""
    if isinstance(payload, dict):
        for key in keys:
            if key in payload and payload[key] is not None:
                return payload[key]
    return payload


def unwrap_items(payload, key: str) -> list:
    """List of dict records under ``key``, also when nested one level in ``data``."""
    items = unwrap(payload, key, "data")
    if isinstance(items, dict):
        items = unwrap(items, key, "items")
    return [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []


def filename_from_disposition(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    match = _FILENAME_RE.search(value)
    return match.group(1).strip() if match else None


class InventoryApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        upload_timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT_SECONDS
        self.upload_timeout = upload_timeout if upload_timeout is not None else settings.UPLOAD_TIMEOUT_SECONDS
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def send(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        params: Optional[dict] = None,
        json: Any = None,
        data: Optional[dict] = None,
        files: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        if timeout is None:
            timeout = self.upload_timeout if files else self.timeout
        try:
            response = self._client.request(
                method,
                path,
                params=clean_params(params),
                json=json,
                data=data,
                files=files,
                headers=bearer_headers(token),
                timeout=timeout,
            )
        except httpx.TransportError as exc:
            logger.warning("%s %s failed without a response: %s", method, path, exc)
            raise NetworkError() from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(GENERIC_ERROR_MESSAGE) from exc

        logger.debug(
            "%s %s -> %s",
            method,
            path,
            response.status_code,
        )
        if response.is_success:
            return response

        error = error_from_response(response, had_token=bool(token))
        logger.info("%s %s -> %s: %s", method, path, response.status_code, error.message)
        raise error

    def request(self, method: str, path: str, **kwargs):
        return _response_payload(self.send(method, path, **kwargs))

    def get(self, path: str, **kwargs):
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs):
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs):
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs):
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs):
        return self.request("DELETE", path, **kwargs)

    def download(self, path: str, *, token: Optional[str] = None, params: Optional[dict] = None):
        response = self.send("GET", path, token=token, params=params, timeout=self.upload_timeout)
        content_type = response.headers.get("content-type", "application/octet-stream")
        filename = filename_from_disposition(response.headers.get("content-disposition"))
        return response.content, content_type, filename


@lru_cache
def get_api_client() -> InventoryApiClient:
    return InventoryApiClient()


def close_api_client() -> None:
    if get_api_client.cache_info().currsize:
        get_api_client().close()
        get_api_client.cache_clear()


__all__ = [
    "InventoryApiClient",
    "clean_params",
    "close_api_client",
    "error_from_response",
    "filename_from_disposition",
    "get_api_client",
    "unwrap",
    "unwrap_items",
]

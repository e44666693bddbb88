from typing import Optional

SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."
FORBIDDEN_MESSAGE = "Access denied. Insufficient permissions."
NOT_FOUND_MESSAGE = "Resource not found."
SERVER_ERROR_MESSAGE = "Server error. Please try again later."
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred."
GENERIC_ERROR_MESSAGE = "An error occurred. Please try again."


class ApiError(Exception):
    """Failed call to the inventory API, carrying the toast shown to the user."""

    default_message = GENERIC_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None, payload=None):
        self.message = message or self.default_message
        self.status_code = status_code
        self.payload = payload
        super().__init__(self.message)


class SessionExpiredError(ApiError):
    default_message = SESSION_EXPIRED_MESSAGE


class ForbiddenError(ApiError):
    default_message = FORBIDDEN_MESSAGE


class NotFoundError(ApiError):
    default_message = NOT_FOUND_MESSAGE


class ServerError(ApiError):
    default_message = SERVER_ERROR_MESSAGE


class NetworkError(ApiError):
    default_message = NETWORK_ERROR_MESSAGE


__all__ = [
    "ApiError",
    "ForbiddenError",
    "GENERIC_ERROR_MESSAGE",
    "NETWORK_ERROR_MESSAGE",
    "NetworkError",
    "NotFoundError",
    "SESSION_EXPIRED_MESSAGE",
    "ServerError",
    "SessionExpiredError",
    "UNEXPECTED_ERROR_MESSAGE",
]

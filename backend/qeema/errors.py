"""Typed API failures.

Services raise these; a single exception handler in `main.py` turns them
into the error envelope. Each class fixes the HTTP status and the error
code, callers supply the message.
"""

from typing import Any, Optional


class ApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None, headers: Optional[dict] = None):
        self.message = message or self.default_message
        self.details = details
        self.headers = headers
        super().__init__(self.message)


class BadRequestError(ApiError):
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"


class InvalidArgumentError(BadRequestError):
    """An argument passed type checks but violates a business rule."""


class UnauthorizedError(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class TokenExpiredError(UnauthorizedError):
    code = "TOKEN_EXPIRED"
    default_message = "Token expired"


class ForbiddenError(ApiError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", details: Any = None):
        super().__init__(f"{resource} not found", details)


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class ValidationFailedError(ApiError):
    status_code = 422
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class TooManyRequestsError(ApiError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"
    default_message = "Too many requests"


class UpstreamError(ApiError):
    status_code = 502
    code = "UPLOAD_FAILED"
    default_message = "Upload failed"


class ServiceUnavailableError(ApiError):
    status_code = 503
    code = "UPLOAD_UNAVAILABLE"
    default_message = "Image uploads are not configured"

"""
Error taxonomy for the auction API.

Every failure a route can surface is an AppError subclass carrying a
machine-readable code and an HTTP status. The API layer turns them into the
JSON error envelope {error, code, details?, requestId}.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors surfaced to API clients."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        is_operational: bool = True
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.is_operational = is_operational


# 4xx Client Errors

class BadRequestError(AppError):
    def __init__(self, message: str, code: str = 'BAD_REQUEST', details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code, 400, details)


class ValidationError(AppError):
    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 'VALIDATION_ERROR', 400, {'field': field, **(details or {})})


class UnauthorizedError(AppError):
    def __init__(self, message: str = 'Authentication required', code: str = 'UNAUTHORIZED'):
        super().__init__(message, code, 401)


class ForbiddenError(AppError):
    def __init__(self, message: str = 'Access denied', code: str = 'FORBIDDEN'):
        super().__init__(message, code, 403)


class NotFoundError(AppError):
    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found: {resource_id}" if resource_id else f"{resource} not found"
        super().__init__(message, 'NOT_FOUND', 404, {'resource': resource, 'id': resource_id})


class ConflictError(AppError):
    def __init__(self, message: str, code: str = 'CONFLICT', details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code, 409, details)


class RateLimitError(AppError):
    def __init__(self, reset_at: int, retry_after: int, message: str = 'Rate limit exceeded'):
        super().__init__(message, 'RATE_LIMITED', 429, {'resetAt': reset_at, 'retryAfter': retry_after})


# 5xx Server Errors

class InternalError(AppError):
    def __init__(self, message: str = 'Internal server error', details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 'INTERNAL_ERROR', 500, details, is_operational=False)


class ServiceUnavailableError(AppError):
    def __init__(self, service: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Service unavailable: {service}", 'SERVICE_UNAVAILABLE', 503, details)


def format_error_response(error: AppError, request_id: Optional[str] = None) -> dict:
    """
    Build the JSON error envelope for an AppError.

    Details are only exposed for client errors; server error details stay
    in the logs.
    """
    response = {
        'error': error.message,
        'code': error.code,
    }

    if error.status_code < 500 and error.details:
        response['details'] = error.details

    if request_id:
        response['requestId'] = request_id

    return response

"""Error taxonomy shared by the gates and handlers.

Each error carries the HTTP status it maps to; the exception handlers in
``storefront.main`` render them into the uniform error envelope.
"""


class AppError(Exception):
    """Base class for structured application errors."""

    status_code = 500
    error = "Internal Server Error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, retry_after: int | None = None) -> None:
        self.message = message or self.default_message
        self.retry_after = retry_after
        super().__init__(self.message)


class Unauthenticated(AppError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    error = "Unauthorized"
    default_message = "Authentication required"


class InvalidToken(Unauthenticated):
    """Token failed signature, format or expiry checks."""

    default_message = "Invalid or expired token"


class Forbidden(AppError):
    status_code = 403
    error = "Forbidden"
    default_message = "Access denied"


class NotFound(AppError):
    status_code = 404
    error = "Not Found"
    default_message = "Resource not found"


class DuplicateIdentity(AppError):
    status_code = 409
    error = "Conflict"
    default_message = "User already exists"


class ValidationFailed(AppError):
    status_code = 400
    error = "Bad Request"
    default_message = "Validation failed"


class TooManyRequests(AppError):
    status_code = 429
    error = "Too Many Requests"
    default_message = "Too many requests, please try again later"


class ServiceUnavailable(AppError):
    status_code = 503
    error = "Service Unavailable"
    default_message = "Service temporarily unavailable"

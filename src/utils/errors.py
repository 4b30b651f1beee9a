"""Application error taxonomy. Each error maps to one HTTP status."""


class AppError(Exception):
    status_code = 500
    error_type = "internal_error"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    error_type = "validation_error"
    default_message = "Invalid input"


class AuthenticationError(AppError):
    status_code = 401
    error_type = "authentication_error"
    default_message = "Authentication required"


class InvalidToken(AuthenticationError):
    default_message = "Invalid token"


class ExpiredToken(AuthenticationError):
    default_message = "Token has expired"


class AuthorizationError(AppError):
    status_code = 403
    error_type = "forbidden"
    default_message = "Forbidden - insufficient role"


class NotFoundError(AppError):
    status_code = 404
    error_type = "not_found"
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    error_type = "conflict"
    default_message = "Resource already exists"


class RateLimitError(AppError):
    status_code = 429
    error_type = "rate_limit"
    default_message = "Too many requests, please try again later"


class InternalError(AppError):
    pass

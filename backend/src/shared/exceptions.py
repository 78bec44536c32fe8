from typing import Any


class AppError(Exception):
    """Base exception for application errors."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An error occurred",
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.details = details
        super().__init__(self.message)


class InvalidInputError(AppError):
    """Raised when a request is malformed or fails validation."""

    status_code = 400
    code = "INVALID_INPUT"


class NotFoundError(AppError):
    """Raised when a requested resource does not exist."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", id: str = "", code: str | None = None):
        super().__init__(
            f"{resource} not found: {id}" if id else f"{resource} not found",
            code=code,
        )


class ConflictError(AppError):
    """Raised when a write would violate a uniqueness constraint."""

    status_code = 409
    code = "CONFLICT"


class AuthenticationError(AppError):
    """Raised when credentials are invalid."""

    status_code = 401
    code = "AUTH_FAILED"

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class PersistenceError(AppError):
    """Raised when the storage layer fails for a reason we cannot classify."""

    code = "PERSISTENCE_ERROR"


class HashingError(AppError):
    """Raised when a password cannot be hashed."""

    code = "HASHING_ERROR"


class RequestCanceledError(AppError):
    """Raised when the client went away before the work started."""

    status_code = 499
    code = "REQUEST_CANCELED"

    def __init__(self, message: str = "Request canceled by client"):
        super().__init__(message)


class RequestTimeoutError(AppError):
    """Raised when a request runs past its deadline."""

    status_code = 504
    code = "REQUEST_TIMEOUT"

    def __init__(self, message: str = "Request timed out"):
        super().__init__(message)

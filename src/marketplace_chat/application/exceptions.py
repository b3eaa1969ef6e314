from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    code = "error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    code = "not_found"


class ValidationError(AppError):
    code = "invalid_data"


class PayloadTooLargeError(ValidationError):
    code = "payload_too_large"


class UnauthenticatedError(AppError):
    code = "unauthenticated"


class StoreUnavailableError(AppError):
    """The store failed or timed out. Callers may retry."""

    code = "store_unavailable"
    retryable = True

    def __init__(self, detail: str = "", *, cause: str | None = None) -> None:
        super().__init__(detail)
        self.cause = cause

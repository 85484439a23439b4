from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class ConflictError(AppError):
    pass


class ValidationError(AppError):
    pass


class NetworkFailure(AppError):
    """Transport error, timeout or 5xx. Transient."""


class Unauthorized(AppError):
    """Missing, expired or rejected token. Not retried locally."""


class RemoteError(AppError):
    """Unexpected non-2xx response from the backend."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class AlreadyRequested(ConflictError):
    pass


class InvalidTransition(ConflictError):
    pass


class SubscriptionUnavailable(AppError):
    pass


class RequestFailed(AppError):
    pass


class SendFailed(AppError):
    pass

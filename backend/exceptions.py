"""Application error taxonomy rendered by the handler registered in main.py."""

from fastapi import status


class AppException(Exception):
    """Base exception for the rewards service."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


# Engine callers catch this to treat reward tracking as best-effort.
RewardsError = AppException


class AuthenticationError(AppException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)


class NotFoundError(AppException):
    """Referenced user or border does not exist."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


class ValidationError(AppException):
    """Malformed event kind, amount or missing identifier."""

    def __init__(self, detail: str = "Validation error"):
        super().__init__(status.HTTP_422_UNPROCESSABLE_ENTITY, detail)


class InsufficientPointsError(AppException):
    def __init__(self, required: int, available: int):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"Not enough points: {required} required, {available} available",
        )
        self.required = required
        self.available = available


class PersistenceError(AppException):
    """The store was unreachable or rejected a write; nothing was committed."""

    def __init__(self, detail: str = "Service temporarily unavailable. Please try again later."):
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, detail)

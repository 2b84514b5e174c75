from __future__ import annotations

from fastapi import status


# PUBLIC_INTERFACE
class AppError(Exception):
    """
    Base class for failures that map onto an HTTP error response.

    Attributes:
    - message: diagnostic text (may contain internal details)
    - status_code: HTTP status returned to the caller
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def public_message(self) -> str:
        """Message safe to return to the caller."""
        return self.message


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class StorageError(AppError):
    """
    Persistence failure (connectivity, constraint, I/O, pool timeout).
    The diagnostic message is logged, never returned.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    @property
    def public_message(self) -> str:
        return "Internal server error"

"""Application exceptions mapped to HTTP status codes by the API layer."""

from fastapi import status


class AppError(Exception):
    """Base exception for the brand monitor."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed input: missing prompts, no providers configured, unknown provider ids."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PersistenceError(AppError):
    """Reading or writing the analysis record failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code


class ValidationError(ServiceError):
    """Malformed or out-of-range input. Raised before any write."""

    default_status_code = status.HTTP_400_BAD_REQUEST


class Overpayment(ServiceError):
    """Payment amount exceeds the remaining invoice or installment balance."""

    default_status_code = status.HTTP_400_BAD_REQUEST


class AccessDenied(ServiceError):
    """Entity belongs to a different school."""

    default_status_code = status.HTTP_403_FORBIDDEN


class NotFound(ServiceError):
    default_status_code = status.HTTP_404_NOT_FOUND


class Conflict(ServiceError):
    default_status_code = status.HTTP_409_CONFLICT


class StorageFailure(ServiceError):
    """Transaction could not commit. Nothing was written; the caller may retry the whole operation."""

    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

from typing import Any, Optional


class ServiceError(Exception):
    """Base for errors converted into the JSON error envelope at the request boundary."""

    status_code = 500

    def __init__(self, message: str, error: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class ValidationError(ServiceError):
    status_code = 400


class AuthenticationRequired(ServiceError):
    status_code = 401


class NotFound(ServiceError):
    status_code = 404


class IntegrityViolation(ServiceError):
    status_code = 500


class StorageError(ServiceError):
    status_code = 500

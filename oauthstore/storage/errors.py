"""
Storage error classes for oauthstore.

Every error raised by the storage layer derives from StorageError and
carries the operation and key that produced it in ``details``.
"""

from typing import Any, Dict, Optional


class StorageError(Exception):
    """Base storage error."""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "STORAGE_ERROR"
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            'error': self.error_code,
            'message': self.message,
            'details': self.details,
        }

        if self.cause:
            result['cause'] = str(self.cause)

        return result

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message


class EncodeError(StorageError):
    """Record could not be serialized."""

    def __init__(self, message: str, details: dict = None, cause: BaseException = None):
        super().__init__(message, "ENCODE_ERROR", details, cause)


class DecodeError(StorageError):
    """Stored bytes don't match the expected shape."""

    def __init__(self, message: str, details: dict = None, cause: BaseException = None):
        super().__init__(message, "DECODE_ERROR", details, cause)


class NotFoundError(StorageError):
    """Key absent at read time."""

    def __init__(self, message: str = "Record not found", details: dict = None):
        super().__init__(message, "NOT_FOUND", details)


class ExpiredError(NotFoundError):
    """Authorization code is absent, either never written or past its TTL."""

    def __init__(self, message: str = "Token is expired", details: dict = None):
        super().__init__(message, details)
        self.error_code = "EXPIRED"


class BackendError(StorageError):
    """Redis I/O failure: pool exhaustion, connection loss or timeout."""

    def __init__(self, message: str, details: dict = None, cause: BaseException = None):
        super().__init__(message, "BACKEND_ERROR", details, cause)


class ConfigurationError(StorageError):
    """Invalid storage configuration."""

    def __init__(self, message: str, config_key: str = None, details: dict = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)
        self.config_key = config_key

        if config_key:
            self.details['config_key'] = config_key


class StorageClosedError(StorageError):
    """Operation attempted after the storage was closed."""

    def __init__(self, message: str = "Storage is closed", details: dict = None):
        super().__init__(message, "STORAGE_CLOSED", details)

"""
Exception classes for schemasync.
"""

from typing import Any, Dict, Optional


class SchemaSyncError(Exception):
    """Base exception for all schemasync errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(SchemaSyncError):
    """Raised when there's an error in configuration."""

    pass


class DuplicateClassError(ConfigurationError):
    """Raised when the declared schemas contain the same class name twice."""

    def __init__(self, class_names: list) -> None:
        super().__init__(
            f"Duplicate class names in declared schemas: {', '.join(class_names)}",
            {"class_names": class_names},
        )
        self.class_names = class_names


class ValidationError(SchemaSyncError):
    """Raised when a schema document fails validation."""

    pass


class StoreError(SchemaSyncError):
    """Raised when there's an error talking to the schema store."""

    pass


class StoreConnectionError(StoreError):
    """Raised when the schema store cannot be reached."""

    pass


class StoreTimeoutError(StoreError):
    """Raised when a schema store call times out."""

    def __init__(
        self,
        message: str = "Schema store request timed out",
        timeout_duration: Optional[float] = None,
    ) -> None:
        if timeout_duration:
            message += f" (timeout: {timeout_duration}s)"

        super().__init__(message)
        self.timeout_duration = timeout_duration


class StoreAPIError(StoreError):
    """Raised when the schema store rejects a request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details = {}
        if status_code:
            details["status_code"] = status_code
        if code:
            details["code"] = code
        if response_body:
            details["response_body"] = response_body

        super().__init__(message, details)
        self.status_code = status_code
        self.code = code
        self.response_body = response_body


class ReconciliationError(SchemaSyncError):
    """Raised when a single class fails to reconcile."""

    def __init__(
        self,
        class_name: str,
        message: str,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, {"class_name": class_name}, cause)
        self.class_name = class_name


class StartupTimeoutError(SchemaSyncError):
    """Raised when bootstrap and schema enumeration exceed the startup window."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Timeout occurred during execution of migrations after {timeout_seconds}s"
        )
        self.timeout_seconds = timeout_seconds

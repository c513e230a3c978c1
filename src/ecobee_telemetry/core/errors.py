"""
Custom exception classes for ecobee telemetry ingestion.

Exception Hierarchy:
    EcobeeTelemetryError (base)
    ├── ConfigurationError
    ├── HttpError
    │   └── MetricsPushError
    ├── ApiError
    ├── AuthenticationError
    └── ReportFormatError

Token expiry is not represented here: the ecobee client reports it as an
``ApiStatus.TOKEN_EXPIRED`` result and the pipeline decides how to recover.
"""

from typing import Optional, Dict, Any


class EcobeeTelemetryError(Exception):
    """Base exception for ecobee telemetry errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        msg = self.message
        if self.details:
            msg += f" | Details: {self.details}"
        if self.cause:
            msg += f" | Caused by: {self.cause}"
        return msg


class ConfigurationError(EcobeeTelemetryError):
    """Raised when configuration is invalid or missing."""

    pass


class HttpError(EcobeeTelemetryError):
    """Raised when an HTTP exchange returns an unexpected status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.url = url

    def __str__(self) -> str:
        msg = self.message
        if self.status_code:
            msg += f" | HTTP {self.status_code}"
        if self.url:
            msg += f" | URL: {self.url}"
        return msg


class MetricsPushError(HttpError):
    """Raised when the metrics database rejects a batch."""

    pass


class ApiError(EcobeeTelemetryError):
    """Raised when the ecobee API answers with a fatal status code."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        api_message: str = "",
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.code = code
        self.api_message = api_message

    def __str__(self) -> str:
        return f"{self.message} | Code: {self.code}, Message: {self.api_message}"


class AuthenticationError(EcobeeTelemetryError):
    """Raised when no usable access token can be obtained."""

    pass


class ReportFormatError(EcobeeTelemetryError):
    """Raised when a runtime report payload lacks required structure."""

    pass

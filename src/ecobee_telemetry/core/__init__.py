"""
Core module for ecobee telemetry.

Contains configuration and errors.
"""

from .config import TelemetryConfiguration, EcobeeConfig, InfluxConfig, resolve_timezone
from .errors import (
    EcobeeTelemetryError,
    ConfigurationError,
    HttpError,
    MetricsPushError,
    ApiError,
    AuthenticationError,
    ReportFormatError,
)

__all__ = [
    "TelemetryConfiguration",
    "EcobeeConfig",
    "InfluxConfig",
    "resolve_timezone",
    "EcobeeTelemetryError",
    "ConfigurationError",
    "HttpError",
    "MetricsPushError",
    "ApiError",
    "AuthenticationError",
    "ReportFormatError",
]

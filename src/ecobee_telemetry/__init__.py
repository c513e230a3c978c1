"""
ecobee telemetry ingestion

Polls the ecobee cloud API for thermostat runtime reports, imports ecobee
CSV export files, and pushes both to InfluxDB as time-series points.
"""

__version__ = "0.1.0"

from .core.config import TelemetryConfiguration
from .core.errors import (
    EcobeeTelemetryError,
    ConfigurationError,
    HttpError,
    ApiError,
    AuthenticationError,
)
from .platform import EcobeeClient, InfluxPush
from .pipeline import TelemetryPipeline, RunResult, ConvertResult
from .checkpoint import Checkpoint, CheckpointStore, TokenStore

__all__ = [
    "__version__",
    # Core
    "TelemetryConfiguration",
    "EcobeeTelemetryError",
    "ConfigurationError",
    "HttpError",
    "ApiError",
    "AuthenticationError",
    # Platform clients
    "EcobeeClient",
    "InfluxPush",
    # Runs
    "TelemetryPipeline",
    "RunResult",
    "ConvertResult",
    # State
    "Checkpoint",
    "CheckpointStore",
    "TokenStore",
]

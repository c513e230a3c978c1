"""
Platform clients.

Contains the ecobee API client and the InfluxDB metrics sink.
"""

from .ecobee_client import (
    EcobeeClient,
    ApiStatus,
    ApiResult,
    AccessToken,
    RevisionEntry,
)
from .influx_client import InfluxPush

__all__ = [
    "EcobeeClient",
    "ApiStatus",
    "ApiResult",
    "AccessToken",
    "RevisionEntry",
    "InfluxPush",
]

"""
InfluxDB metrics sink.

Points are buffered per batch and written through ``influxdb_client``'s
synchronous write API at second precision. InfluxDB 1.8+ is addressed via
its 2.x compatibility endpoint: the bucket is ``database/retention_policy``
and the token is ``username:password``.

Names arrive from the emitter with spaces already escaped (``Current\\ Temp``).
The sink turns them back into plain text and lets ``Point`` apply the
line-protocol escaping, so commas and spaces in sensor names are both
escaped exactly once.
"""

import logging
import math
from typing import List, Optional, Union

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS
from influxdb_client.rest import ApiException
from urllib3.exceptions import HTTPError as TransportError

from ecobee_telemetry.core.errors import MetricsPushError


logger = logging.getLogger(__name__)


PointValue = Union[str, int, float, bool]
FIELD_NAME = "value"


def measurement_name(prefix: str, name: str) -> str:
    """Unescaped measurement name for ``Point``."""
    return f"{prefix}{name}".replace("\\ ", " ")


def field_value(value: Optional[PointValue]) -> Optional[Union[bool, float, str]]:
    """
    Typed field value; ``None`` when there is nothing to write.

    Numeric strings become floats so the emitter can hand over the raw
    report text without every number landing as a string field.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    text = str(value).strip()
    if text == "":
        return None
    try:
        number = float(text)
    except ValueError:
        return text
    return number if math.isfinite(number) else None


class InfluxPush:
    """Buffers one batch of points and pushes it to InfluxDB."""

    def __init__(
        self,
        url: str,
        database: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        retention_policy: str = "autogen",
        timeout: int = 30,
        write_api=None,
    ):
        """
        Initialize the sink.

        Args:
            url: InfluxDB base URL
            database: Target database
            username: Optional user for the compatibility token
            password: Password for ``username``
            retention_policy: Retention policy half of the bucket name
            timeout: Write timeout in seconds
            write_api: Existing write API (tests pass a mock here)
        """
        self.url = url.rstrip("/")
        self.database = database
        self.bucket = f"{database}/{retention_policy}"
        self.timeout = timeout
        self._token = f"{username}:{password or ''}" if username else ""
        self._client: Optional[InfluxDBClient] = None
        self._write_api = write_api
        self._points: List[Point] = []

    @classmethod
    def from_config(cls, config) -> "InfluxPush":
        """Build from an ``InfluxConfig``."""
        return cls(
            url=config.url,
            database=config.database,
            username=config.username,
            password=config.password,
            retention_policy=config.retention_policy,
            timeout=config.timeout_seconds,
        )

    @property
    def write_api(self):
        """Get or create the synchronous write API."""
        if self._write_api is None:
            self._client = InfluxDBClient(
                url=self.url,
                token=self._token,
                org="-",
                timeout=self.timeout * 1000,
            )
            self._write_api = self._client.write_api(write_options=SYNCHRONOUS)
        return self._write_api

    @property
    def pending(self) -> List[str]:
        return [point.to_line_protocol() for point in self._points]

    def new_batch(self) -> None:
        self._points = []

    def add_point(
        self,
        prefix: str,
        name: str,
        value: Optional[PointValue],
        timestamp: Optional[int] = None,
    ) -> bool:
        """
        Buffer one point.

        Returns:
            True if the point was added, False when it had no value
        """
        typed = field_value(value)
        if typed is None:
            return False

        point = Point(measurement_name(prefix, name)).field(FIELD_NAME, typed)
        if timestamp is not None:
            point = point.time(int(timestamp), WritePrecision.S)
        self._points.append(point)
        return True

    def push_batch(self) -> None:
        """
        Write the buffered points.

        Raises:
            MetricsPushError: If the request fails or InfluxDB rejects the batch
        """
        if not self._points:
            return

        points = self._points
        logger.debug(f"Pushing {len(points)} points to {self.url} bucket {self.bucket}")

        try:
            self.write_api.write(
                bucket=self.bucket,
                org="-",
                record=points,
                write_precision=WritePrecision.S,
            )
        except ApiException as e:
            detail = e.body or e.reason or ""
            if isinstance(detail, bytes):
                detail = detail.decode("utf-8", "replace")
            raise MetricsPushError(
                f"InfluxDB rejected batch: {detail.strip()}",
                status_code=e.status,
                url=self.url,
                cause=e,
            )
        except TransportError as e:
            raise MetricsPushError("InfluxDB write failed", url=self.url, cause=e)

        self._points = []

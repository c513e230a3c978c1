"""Sensor manifest shipped alongside a runtime report."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .classifier import Bucket


logger = logging.getLogger(__name__)


class SensorType(Enum):
    UNKNOWN = "unknown"
    AIR_PRESSURE = "airPressure"
    TEMPERATURE = "temperature"
    OCCUPANCY = "occupancy"
    HUMIDITY = "humidity"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SensorType":
        for member in cls:
            if member.value == value:
                return member
        return cls.UNKNOWN


# Sensor types that produce metric values; occupancy and unknown do not.
SENSOR_BUCKETS = {
    SensorType.TEMPERATURE: Bucket.TEMPERATURE,
    SensorType.HUMIDITY: Bucket.HUMIDITY,
    SensorType.AIR_PRESSURE: Bucket.AIR_PRESSURE,
}


@dataclass(frozen=True)
class Sensor:
    """A single sensor channel."""
    id: str
    name: str
    usage: str = ""
    type: SensorType = SensorType.UNKNOWN

    @property
    def bucket(self) -> Optional[Bucket]:
        return SENSOR_BUCKETS.get(self.type)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sensor":
        return cls(
            id=str(data.get("sensorId", "")),
            name=str(data.get("sensorName", "")),
            usage=str(data.get("sensorUsage", "") or ""),
            type=SensorType.parse(data.get("sensorType")),
        )


@dataclass
class SensorManifest:
    """
    Sensor metadata plus the column layout of the sensor data rows.

    ``columns`` is parallel to each sensor data row; the first two entries
    are always the date and time placeholders.
    """

    sensors: Dict[str, Sensor] = field(default_factory=dict)
    columns: List[str] = field(default_factory=list)
    rows: List[str] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        sensors: Iterable[Sensor],
        columns: Iterable[str],
        rows: Iterable[str] = (),
    ) -> "SensorManifest":
        registry: Dict[str, Sensor] = {}
        for sensor in sensors:
            if sensor.id in registry:
                logger.debug(f"Duplicate sensor id {sensor.id}, keeping last definition")
            registry[sensor.id] = sensor
        return cls(sensors=registry, columns=list(columns), rows=list(rows))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SensorManifest":
        """Build from one entry of the report's ``sensorList``."""
        if not data:
            return cls()
        return cls.build(
            sensors=(Sensor.from_dict(s) for s in data.get("sensors", [])),
            columns=(str(c) for c in data.get("columns", [])),
            rows=(str(r) for r in data.get("data", [])),
        )

    def lookup(self, sensor_id: str) -> Optional[Sensor]:
        return self.sensors.get(sensor_id)

    def row(self, index: int) -> str:
        """Sensor data row ``index``, or an empty row when the manifest is short."""
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return ""

    def __len__(self) -> int:
        return len(self.sensors)

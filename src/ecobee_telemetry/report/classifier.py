"""
Column classification for runtime report rows.

Every report column lands in exactly one bucket of a ``CategorizedRecord``.
The rules are checked in order: fixed operations-time and operations-state
name sets first, then substring rules for setpoints, humidity and
temperature, with everything else falling into ``other``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class Bucket(Enum):
    """Semantic bucket of a report field."""
    OPERATIONS_TIME = "operationsTime"
    OPERATIONS_STATE = "operationsState"
    SETPOINTS = "setpoints"
    HUMIDITY = "humidity"
    TEMPERATURE = "temperature"
    AIR_PRESSURE = "airPressure"
    OTHER = "other"


# Equipment run time within an interval, in seconds.
AUX_HEAT = "auxHeat1"
COMP_COOL = "compCool1"
FAN = "fan"
OPERATIONS_TIME_COLUMNS = frozenset({AUX_HEAT, COMP_COOL, FAN})

HVAC_MODE = "HVACmode"
ZONE_HVAC_MODE = "zoneHVACmode"
ZONE_CLIMATE = "zoneClimate"
OPERATIONS_STATE_COLUMNS = frozenset({HVAC_MODE, ZONE_HVAC_MODE, ZONE_CLIMATE})

HEAT_SETPOINT = "zoneHeatTemp"
COOL_SETPOINT = "zoneCoolTemp"

# Request-side spellings the API echoes back in the report header.
CANONICAL_COLUMN_NAMES = {
    "hvacMode": HVAC_MODE,
    "zoneHvacMode": ZONE_HVAC_MODE,
}


def canonical_column(name: str) -> str:
    """Map a report header name onto the name the classifier expects."""
    name = name.strip()
    return CANONICAL_COLUMN_NAMES.get(name, name)


def classify_column(name: str) -> Bucket:
    """Return the bucket for a canonical column name."""
    if name in OPERATIONS_TIME_COLUMNS:
        return Bucket.OPERATIONS_TIME
    if name in OPERATIONS_STATE_COLUMNS:
        return Bucket.OPERATIONS_STATE
    if HEAT_SETPOINT in name or COOL_SETPOINT in name:
        return Bucket.SETPOINTS
    if "Humidity" in name:
        return Bucket.HUMIDITY
    if "Temp" in name:
        return Bucket.TEMPERATURE
    return Bucket.OTHER


@dataclass
class CategorizedRecord:
    """One report row sorted into semantic buckets.

    Each bucket maps a field name (report column or sensor name) to the raw
    string value from the row. Empty values are never stored.
    """

    operations_time: Dict[str, str] = field(default_factory=dict)
    operations_state: Dict[str, str] = field(default_factory=dict)
    setpoints: Dict[str, str] = field(default_factory=dict)
    humidity: Dict[str, str] = field(default_factory=dict)
    temperature: Dict[str, str] = field(default_factory=dict)
    air_pressure: Dict[str, str] = field(default_factory=dict)
    other: Dict[str, str] = field(default_factory=dict)

    def bucket(self, bucket: Bucket) -> Dict[str, str]:
        return {
            Bucket.OPERATIONS_TIME: self.operations_time,
            Bucket.OPERATIONS_STATE: self.operations_state,
            Bucket.SETPOINTS: self.setpoints,
            Bucket.HUMIDITY: self.humidity,
            Bucket.TEMPERATURE: self.temperature,
            Bucket.AIR_PRESSURE: self.air_pressure,
            Bucket.OTHER: self.other,
        }[bucket]

    def add(self, bucket: Bucket, name: str, value: str) -> bool:
        """Store ``value`` under ``name``; empty values are dropped."""
        if value is None or value == "":
            return False
        self.bucket(bucket)[name] = value
        return True

    def add_column(self, name: str, value: str) -> bool:
        """Classify a report column and store its value."""
        return self.add(classify_column(name), name, value)

    def is_empty(self) -> bool:
        return not any(self.bucket(b) for b in Bucket)

    @property
    def hvac_mode(self) -> Optional[str]:
        return self.operations_state.get(HVAC_MODE)

    @property
    def heat_setpoint(self) -> Optional[str]:
        return self.setpoints.get(HEAT_SETPOINT)

    @property
    def cool_setpoint(self) -> Optional[str]:
        return self.setpoints.get(COOL_SETPOINT)

    def seconds_active(self, column: str) -> Optional[str]:
        """Raw run-time value for an operations-time column."""
        return self.operations_time.get(column)

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        """Non-empty buckets keyed by bucket name, for logging and archives."""
        return {b.value: dict(self.bucket(b)) for b in Bucket if self.bucket(b)}

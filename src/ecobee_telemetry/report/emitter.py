"""
Turn categorized records into metric points and hand them to a sink.

Temperatures arrive in Fahrenheit and leave in Celsius, air pressure
arrives in pascals and leaves in hectopascals. Humidity and uncategorized
values pass through untouched. Setpoints are only reported while the
system is actually heating or cooling.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Union

from .classifier import CategorizedRecord
from .duty_cycle import DutyCycleState, device_readings
from .intervals import epoch_seconds
from .reshaper import ReshapedRow


logger = logging.getLogger(__name__)


PointValue = Union[str, float, bool]


class MetricsSink(Protocol):
    """Point-buffering contract of the metrics database."""

    def new_batch(self) -> None: ...

    def add_point(
        self,
        prefix: str,
        name: str,
        value: Optional[PointValue],
        timestamp: Optional[int] = None,
    ) -> bool: ...

    def push_batch(self) -> None: ...


@dataclass(frozen=True)
class MetricPoint:
    prefix: str
    name: str
    value: PointValue
    timestamp: int


@dataclass
class EmitResult:
    points: List[MetricPoint]
    written: bool
    written_count: int = 0


def escape_name(name: str) -> str:
    """
    Make a column or sensor name usable as a metric name.

    ``"Current Temp (F)"`` becomes ``"Current\\ Temp"``: the parenthesised
    unit is dropped and the remaining spaces are escaped.
    """
    cut = name.find(" (")
    if cut != -1:
        name = name[:cut]
    return name.replace(" ", "\\ ")


def _format_number(value: float) -> str:
    # Adding 0.0 folds -0.0 into 0.0.
    return str(round(value, 2) + 0.0)


def fahrenheit_to_celsius(value: str) -> Optional[str]:
    try:
        fahrenheit = float(value)
    except (TypeError, ValueError):
        return None
    return _format_number((fahrenheit - 32.0) * 5.0 / 9.0)


def pascal_to_hectopascal(value: str) -> Optional[str]:
    try:
        pascal = float(value)
    except (TypeError, ValueError):
        return None
    return _format_number(pascal / 100.0)


class MetricEmitter:
    """Builds one batch of points per reshaped row and pushes it."""

    def __init__(self, sink: MetricsSink, prefix: str = "Home "):
        self.sink = sink
        self.prefix = prefix
        self.points_written = 0
        self.batches_pushed = 0

    def build_points(
        self,
        record: CategorizedRecord,
        timestamp: int,
        state: DutyCycleState,
    ) -> List[MetricPoint]:
        """
        Convert ``record`` into metric points.

        Args:
            record: Categorized row
            timestamp: Epoch seconds of the row's own date and time
            state: Duty-cycle state of the current run, advanced in place
        """
        points: List[MetricPoint] = []

        def add(name: str, value: Optional[PointValue], at: int = timestamp) -> None:
            if value is None:
                logger.debug(f"Dropping {name}: value not convertible")
                return
            points.append(MetricPoint(self.prefix, escape_name(name), value, at))

        for name, value in record.temperature.items():
            add(name, fahrenheit_to_celsius(value))

        for name, value in record.air_pressure.items():
            add(name, pascal_to_hectopascal(value))

        mode = record.hvac_mode
        if mode == "heat" and record.heat_setpoint is not None:
            add("zoneHeatTemp", fahrenheit_to_celsius(record.heat_setpoint))
        elif mode == "cool" and record.cool_setpoint is not None:
            add("zoneCoolTemp", fahrenheit_to_celsius(record.cool_setpoint))

        for name, value in record.humidity.items():
            add(name, value)

        for name, value in record.other.items():
            add(name, value)

        for reading in device_readings(state, record, timestamp):
            add(reading.device.value, reading.active, reading.timestamp)

        return points

    def emit(self, row: ReshapedRow, state: DutyCycleState) -> EmitResult:
        """Write one row's points as a batch; empty batches are not pushed."""
        points = self.build_points(row.record, epoch_seconds(row.moment), state)

        self.sink.new_batch()
        written_count = 0
        for point in points:
            if self.sink.add_point(point.prefix, point.name, point.value, point.timestamp):
                written_count += 1
        written = written_count > 0

        if written:
            self.sink.push_batch()
            self.batches_pushed += 1
            self.points_written += written_count
            logger.debug(f"Pushed {written_count} points for {row.date} {row.time}")
        else:
            logger.debug(f"Nothing to push for {row.date} {row.time}")

        return EmitResult(points=points, written=written, written_count=written_count)

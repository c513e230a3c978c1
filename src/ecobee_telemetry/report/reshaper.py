"""
Reshape runtime report rows into categorized records.

A runtime report carries two parallel row lists: the report rows (date,
time, then one value per requested column) and the sensor rows (date, time,
then one value per sensor channel). Row ``i`` of both lists describes the
same five-minute interval. Each pair becomes one ``CategorizedRecord``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from ecobee_telemetry.core.errors import ReportFormatError
from .classifier import CategorizedRecord, canonical_column
from .intervals import format_gmt, parse_local
from .sensors import SensorManifest
from .tokenizer import tokenize


logger = logging.getLogger(__name__)


@dataclass
class RuntimeReport:
    """Runtime report for one thermostat."""

    columns: List[str]
    rows: List[str]
    sensors: SensorManifest = field(default_factory=SensorManifest)
    thermostat_id: str = ""

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "RuntimeReport":
        """
        Build from the API's ``runtimeReport`` response body.

        Raises:
            ReportFormatError: If ``columns`` or ``reportList`` is missing
        """
        if not isinstance(data, dict):
            raise ReportFormatError("Runtime report must be a JSON object")

        header = data.get("columns")
        report_list = data.get("reportList")
        if not isinstance(header, str) or not report_list:
            raise ReportFormatError(
                "Runtime report is missing 'columns' or 'reportList'",
                details={"keys": sorted(data.keys())},
            )

        entry = report_list[0]
        if not isinstance(entry, dict):
            raise ReportFormatError(
                "Runtime report entry must be a JSON object",
                details={"type": type(entry).__name__},
            )
        rows = [str(r) for r in entry.get("rowList", [])]
        row_count = entry.get("rowCount")
        if isinstance(row_count, int) and 0 <= row_count < len(rows):
            rows = rows[:row_count]

        sensor_list = data.get("sensorList") or []
        return cls(
            columns=[canonical_column(c) for c in tokenize(header)],
            rows=rows,
            sensors=SensorManifest.from_dict(sensor_list[0] if sensor_list else None),
            thermostat_id=str(entry.get("thermostatIdentifier", "")),
        )


@dataclass
class ReshapedRow:
    """A row worth emitting: its record plus the row's local date and time."""

    record: CategorizedRecord
    date: str
    time: str
    moment: datetime
    index: int = 0

    @property
    def gmt(self) -> str:
        return format_gmt(self.moment)


class ReportReshaper:
    """
    Walks report and sensor rows and yields one record per usable row.

    ``checkpoint`` holds the GMT timestamp of the last row yielded so far
    and stays ``None`` when nothing was emitted.
    """

    def __init__(self, zone: Optional[tzinfo] = None):
        self.zone = zone
        self.checkpoint: Optional[str] = None
        self.emitted = 0
        self.skipped = 0

    def reshape(self, report: RuntimeReport) -> Iterator[ReshapedRow]:
        return self.reshape_rows(
            report.columns,
            (tokenize(row) for row in report.rows),
            report.sensors,
        )

    def reshape_rows(
        self,
        columns: Sequence[str],
        rows: Iterable[Sequence[str]],
        sensors: Optional[SensorManifest] = None,
    ) -> Iterator[ReshapedRow]:
        """
        Classify already-split report rows.

        Args:
            columns: Column names excluding the leading date and time
            rows: Report rows, each starting with date and time
            sensors: Sensor manifest whose rows run parallel to ``rows``
        """
        sensors = sensors or SensorManifest()
        expected = len(columns) + 2

        for index, report_row in enumerate(rows):
            record = CategorizedRecord()

            if len(report_row) == expected:
                for name, value in zip(columns, report_row[2:]):
                    record.add_column(name, value)
            else:
                logger.debug(
                    f"Row {index} has {len(report_row)} fields, expected {expected}; "
                    "skipping report columns"
                )

            sensor_row = tokenize(sensors.row(index))
            if len(sensor_row) == len(sensors.columns):
                for sensor_id, value in zip(sensors.columns[2:], sensor_row[2:]):
                    sensor = sensors.lookup(sensor_id)
                    if sensor is not None and sensor.bucket is not None:
                        record.add(sensor.bucket, sensor.name, value)

            if record.is_empty():
                self.skipped += 1
                continue

            if len(report_row) < 2:
                logger.warning(f"Row {index} has sensor data but no date/time, skipping")
                self.skipped += 1
                continue

            date, time = report_row[0], report_row[1]
            try:
                moment = parse_local(date, time, self.zone)
            except ValueError as e:
                logger.warning(f"Row {index} has an unreadable timestamp ({e}), skipping")
                self.skipped += 1
                continue

            row = ReshapedRow(record=record, date=date, time=time, moment=moment, index=index)
            self.checkpoint = row.gmt
            self.emitted += 1
            yield row

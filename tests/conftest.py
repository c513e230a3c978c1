"""
Pytest configuration and fixtures.
"""

import json
from pathlib import Path

import pytest

from ecobee_telemetry.core.config import TelemetryConfiguration
from ecobee_telemetry.core.errors import MetricsPushError


REPORT_COLUMNS = (
    "hvacMode,zoneHvacMode,zoneClimate,zoneAveTemp,auxHeat1,compCool1,fan,"
    "zoneHeatTemp,zoneCoolTemp,outdoorTemp,outdoorHumidity,wind"
)


class RecordingSink:
    """In-memory metrics sink that records every pushed batch."""

    def __init__(self):
        self.batches = []
        self.new_batch_calls = 0
        self.fail_on_push = False
        self._current = []

    def new_batch(self):
        self.new_batch_calls += 1
        self._current = []

    def add_point(self, prefix, name, value, timestamp=None):
        if value is None or value == "":
            return False
        self._current.append((prefix, name, value, timestamp))
        return True

    def push_batch(self):
        if self.fail_on_push:
            raise MetricsPushError("batch rejected", status_code=400)
        self.batches.append(list(self._current))

    @property
    def points(self):
        return [p for batch in self.batches for p in batch]

    def named(self, name):
        return [p for p in self.points if p[1] == name]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def sample_report() -> dict:
    """Two-row runtime report with a sensor manifest, as returned by the API."""
    return {
        "startDate": "2024-01-15",
        "startInterval": 120,
        "endDate": "2024-01-15",
        "endInterval": 121,
        "columns": REPORT_COLUMNS,
        "reportList": [
            {
                "thermostatIdentifier": "311012345678",
                "rowCount": 2,
                "rowList": [
                    "2024-01-15,10:00:00,heat,heatStage1On,Home,68.5,0,0,0,70,78,32,80,5",
                    "2024-01-15,10:05:00,heat,heatStage1On,Home,68.7,0,0,150,70,78,32,80,5",
                ],
            }
        ],
        "sensorList": [
            {
                "thermostatIdentifier": "311012345678",
                "sensors": [
                    {
                        "sensorId": "rs1:100",
                        "sensorName": "Bedroom",
                        "sensorType": "temperature",
                        "sensorUsage": "dischargeAir",
                    },
                    {
                        "sensorId": "rs1:101",
                        "sensorName": "Bedroom",
                        "sensorType": "occupancy",
                        "sensorUsage": "",
                    },
                    {
                        "sensorId": "ei:0:1",
                        "sensorName": "Thermostat Humidity",
                        "sensorType": "humidity",
                        "sensorUsage": "",
                    },
                ],
                "columns": ["date", "time", "rs1:100", "rs1:101", "ei:0:1"],
                "data": [
                    "2024-01-15,10:00:00,69.1,1,40",
                    "2024-01-15,10:05:00,69.3,0,41",
                ],
            }
        ],
        "status": {"code": 0, "message": ""},
    }


@pytest.fixture
def sample_summary() -> dict:
    """Thermostat summary poll response."""
    return {
        "thermostatCount": 1,
        "revisionList": [
            "311012345678:Main Floor:true:240115100000:240115090000:240115100500:240115100500"
        ],
        "statusList": ["311012345678:fan"],
        "status": {"code": 0, "message": ""},
    }


EXPORT_HEADER = (
    "Date,Time,System Setting,System Mode,Calendar Event,Program Mode,"
    "Cool Set Temp (F),Heat Set Temp (F),Current Temp (F),Current Humidity (%RH),"
    "Outdoor Temp (F),Wind Speed (km/h),Cool Stage 1 (sec),Heat Stage 1 (sec),Fan (sec)"
)


def write_export(path: Path, rows, footprint: bool = True) -> Path:
    lines = [
        ("\ufeff" if footprint else "") + "#Thermostat,Main Floor",
        "#Generated by ecobee",
        "",
        EXPORT_HEADER,
        *rows,
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def export_dir(tmp_path) -> Path:
    """Directory holding one good export file and one unrelated file."""
    data_dir = tmp_path / "exports"
    data_dir.mkdir()
    write_export(
        data_dir / "report-main-floor.csv",
        [
            "2024-01-15,10:00:00,heat,heatStage1On,Home,,78,70,68.5,40,32,5,0,0,0",
            "2024-01-15,10:05:00,heat,heatStage1On,Home,,78,70,68.7,41,32,5,0,300,300",
        ],
    )
    (data_dir / "notes.txt").write_text("not an export\n", encoding="utf-8")
    return data_dir


@pytest.fixture
def config(tmp_path) -> TelemetryConfiguration:
    """Configuration with state in a temp dir and UTC report times."""
    return TelemetryConfiguration.from_dict({
        "ecobee": {
            "api_key": "test-api-key",
            "thermostat_id": "311012345678",
        },
        "influx": {"host": "localhost", "database": "ecobee_test"},
        "timezone": "UTC",
        "state": {"directory": str(tmp_path / "state")},
        "csv_import": {"data_path": str(tmp_path / "exports"), "data_prefix": "report-"},
    })


@pytest.fixture
def token_file(config) -> Path:
    """Stored token pair in the state directory."""
    state_dir = config.state.directory
    state_dir.mkdir(parents=True, exist_ok=True)
    path = state_dir / "accessToken.json"
    path.write_text(json.dumps({
        "access_token": "old-access",
        "refresh_token": "old-refresh",
        "token_type": "Bearer",
        "expires_in": 3599,
        "scope": "smartRead",
    }), encoding="utf-8")
    return path


@pytest.fixture
def make_export():
    """Factory writing an export file: make_export(path, rows, footprint=True)."""
    return write_export

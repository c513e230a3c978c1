"""
Tests for the ingestion pipeline.
"""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import yaml

from ecobee_telemetry.checkpoint import Checkpoint, CheckpointStore
from ecobee_telemetry.core.errors import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    MetricsPushError,
)
from ecobee_telemetry.pipeline import TelemetryPipeline
from ecobee_telemetry.platform.ecobee_client import (
    AccessToken,
    ApiResult,
    ApiStatus,
    EcobeeClient,
)


NOW = datetime(2024, 1, 15, 14, 7, 42, tzinfo=timezone.utc)
EXPIRED = ApiResult(ApiStatus.TOKEN_EXPIRED, {"status": {"code": 14, "message": "expired"}})


@pytest.fixture
def api(sample_summary, sample_report):
    api = MagicMock(spec=EcobeeClient)
    api.thermostat_summary.return_value = ApiResult(ApiStatus.OK, sample_summary)
    api.runtime_report.return_value = ApiResult(ApiStatus.OK, sample_report)
    api.refresh_access_token.return_value = AccessToken("new-access", "new-refresh")
    return api


@pytest.fixture
def pipeline(config, api, sink, token_file):
    return TelemetryPipeline(config, ecobee_client=api, sink=sink, clock=lambda: NOW)


def _saved_checkpoint(config):
    path = config.state.directory / "thermostat.yaml"
    if not path.exists():
        return None
    return yaml.safe_load(path.read_text(encoding="utf-8"))


class TestPoll:
    """Tests for TelemetryPipeline.poll()."""

    def test_poll_pushes_and_advances_checkpoint(self, pipeline, api, sink, config):
        """A poll pushes every row and stores the last one."""
        result = pipeline.poll()

        assert result.fetched
        assert result.rows_emitted == 2
        assert result.batches_pushed == 2
        assert result.checkpoint == "2024-01-15T10:05:00Z"
        assert len(sink.batches) == 2

        saved = _saved_checkpoint(config)
        assert saved["last_data"] == "2024-01-15T10:05:00Z"
        assert saved["revisions"]["runtime"] == "240115100500"
        assert saved["name"] == "Main Floor"

    def test_poll_archives_report(self, pipeline, config, sample_report):
        """The fetched report is archived verbatim."""
        result = pipeline.poll()

        assert result.archive_path.parent == config.state.directory / "reports"
        assert json.loads(result.archive_path.read_text(encoding="utf-8")) == sample_report

    def test_window_starts_at_checkpoint(self, pipeline, api, config):
        """The fetch window starts at the stored checkpoint."""
        CheckpointStore(config.state.directory).save(
            Checkpoint(thermostat_id="311012345678", last_data="2024-01-15T10:00:00Z")
        )
        pipeline.poll()

        window = api.runtime_report.call_args.args[1]
        assert (window.start_date, window.start_interval) == ("2024-01-15", 120)
        assert (window.end_date, window.end_interval) == ("2024-01-15", 169)
        assert api.runtime_report.call_args.args[2] == config.ecobee.columns

    def test_unchanged_revision_skips_fetch(self, pipeline, api, config):
        """No new runtime revision means no fetch."""
        CheckpointStore(config.state.directory).save(
            Checkpoint(thermostat_id="311012345678", runtime_revision="240115100500")
        )
        result = pipeline.poll()

        assert result.fetched is False
        api.runtime_report.assert_not_called()

    def test_force_fetches_unchanged_revision(self, pipeline, api, config):
        """--force fetches regardless of the revision."""
        CheckpointStore(config.state.directory).save(
            Checkpoint(thermostat_id="311012345678", runtime_revision="240115100500")
        )
        result = pipeline.poll(force=True)

        assert result.fetched
        api.runtime_report.assert_called_once()

    def test_expired_token_refreshed_once(self, pipeline, api, config, sample_report):
        """An expired token is refreshed, stored and retried."""
        api.runtime_report.side_effect = [EXPIRED, ApiResult(ApiStatus.OK, sample_report)]

        result = pipeline.poll()

        assert result.rows_emitted == 2
        api.refresh_access_token.assert_called_once_with("old-refresh")
        assert api.runtime_report.call_args_list[1].args[0] == "new-access"
        stored = json.loads((config.state.directory / "accessToken.json").read_text(encoding="utf-8"))
        assert stored["access_token"] == "new-access"

    def test_summary_expiry_refreshes_token(self, pipeline, api, sample_summary):
        """Expiry on the summary poll also refreshes."""
        api.thermostat_summary.side_effect = [EXPIRED, ApiResult(ApiStatus.OK, sample_summary)]

        pipeline.poll()

        api.refresh_access_token.assert_called_once()
        assert api.runtime_report.call_args.args[0] == "new-access"

    def test_still_expired_after_refresh(self, pipeline, api, config):
        """A second expiry aborts without a further refresh."""
        api.runtime_report.side_effect = [EXPIRED, EXPIRED]

        with pytest.raises(AuthenticationError):
            pipeline.poll()
        assert api.refresh_access_token.call_count == 1
        assert _saved_checkpoint(config) is None

    def test_api_error_leaves_checkpoint(self, pipeline, api, config):
        """An API error leaves the checkpoint alone."""
        api.runtime_report.side_effect = ApiError("ecobee API request failed", code=3, api_message="boom")

        with pytest.raises(ApiError):
            pipeline.poll()
        assert _saved_checkpoint(config) is None

    def test_push_failure_leaves_checkpoint(self, pipeline, sink, config):
        """A failed push leaves the checkpoint alone."""
        sink.fail_on_push = True

        with pytest.raises(MetricsPushError):
            pipeline.poll()
        assert _saved_checkpoint(config) is None

    def test_zero_rows_keeps_checkpoint(self, pipeline, api, config, sample_report):
        """An empty report does not move the checkpoint."""
        CheckpointStore(config.state.directory).save(
            Checkpoint(thermostat_id="311012345678", last_data="2024-01-15T10:00:00Z")
        )
        sample_report["reportList"][0]["rowList"] = []
        sample_report["sensorList"][0]["data"] = []

        result = pipeline.poll()

        assert result.rows_emitted == 0
        assert result.checkpoint is None
        assert _saved_checkpoint(config)["last_data"] == "2024-01-15T10:00:00Z"

    def test_unknown_thermostat(self, pipeline, config):
        """A thermostat missing from the summary is a config error."""
        config.ecobee.thermostat_id = "000000000000"
        with pytest.raises(ConfigurationError):
            pipeline.poll()

    def test_missing_token_file(self, config, api, sink):
        """No stored token stops the poll before any request."""
        pipeline = TelemetryPipeline(config, ecobee_client=api, sink=sink, clock=lambda: NOW)
        with pytest.raises(AuthenticationError):
            pipeline.poll()
        api.thermostat_summary.assert_not_called()


class TestProcessFile:
    """Tests for TelemetryPipeline.process_file()."""

    def test_process_saved_report(self, config, sink, tmp_path, sample_report):
        """A saved report is pushed without a checkpoint."""
        path = tmp_path / "runtime.json"
        path.write_text(json.dumps(sample_report), encoding="utf-8")

        result = TelemetryPipeline(config, sink=sink).process_file(path)

        assert result.rows_emitted == 2
        assert len(sink.batches) == 2
        assert _saved_checkpoint(config) is None

    def test_non_finite_run_time_skips_device(self, config, sink, sample_report):
        """An overflowing fan value drops only that row's fan point."""
        sample_report["reportList"][0]["rowList"][0] = (
            "2024-01-15,10:00:00,heat,heatStage1On,Home,68.5,0,0,1e999,70,78,32,80,5"
        )

        result = TelemetryPipeline(config, sink=sink).push_report(sample_report)

        assert result.rows_emitted == 2
        assert len(sink.batches) == 2
        fan = sink.named("fan")
        assert len(fan) == 1
        assert fan[0][2] is True


class TestConvertExports:
    """Tests for TelemetryPipeline.convert_exports()."""

    def test_convert(self, config, sink, export_dir):
        """Matching export files are pushed with converted values."""
        result = TelemetryPipeline(config, sink=sink).convert_exports()

        assert [p.name for p in result.processed] == ["report-main-floor.csv"]
        assert result.rows_emitted == 2
        assert len(sink.batches) == 2

        temps = sink.named("Current\\ Temp")
        assert [p[2] for p in temps] == ["20.28", "20.39"]
        assert [p[2] for p in sink.named("zoneHeatTemp")] == ["21.11", "21.11"]
        assert [p[2] for p in sink.named("heat")] == [False, True]
        assert (export_dir / "report-main-floor.csv").exists()

    def test_rejected_file_not_pushed(self, config, sink, export_dir, make_export):
        """A rejected file pushes nothing."""
        make_export(
            export_dir / "report-broken.csv",
            ["2024-01-15,10:00:00,heat,heatStage1On,Home,,78,70,68.5,40,32,5,0,0,0", "2024-01-15,10:05:00"],
        )

        result = TelemetryPipeline(config, sink=sink).convert_exports()

        assert [p.name for p in result.rejected] == ["report-broken.csv"]
        assert [p.name for p in result.processed] == ["report-main-floor.csv"]
        assert len(sink.batches) == 2

    def test_delete_processed(self, config, sink, export_dir):
        """Processed files are deleted when configured."""
        config.csv_import.delete_processed = True
        TelemetryPipeline(config, sink=sink).convert_exports()

        assert not (export_dir / "report-main-floor.csv").exists()
        assert (export_dir / "notes.txt").exists()

    def test_each_file_starts_with_devices_off(self, config, sink, export_dir, make_export):
        """A second file's first full-off interval reports no transition from the first file."""
        make_export(
            export_dir / "report-z-second.csv",
            ["2024-01-16,10:00:00,heat,heatStage1On,Home,,78,70,68.5,40,32,5,0,150,0"],
        )
        TelemetryPipeline(config, sink=sink).convert_exports()

        heat = sink.named("heat")
        second_file_start = int(datetime(2024, 1, 16, 10, 0, tzinfo=timezone.utc).timestamp())
        assert heat[-1] == ("Home ", "heat", True, second_file_start + 150)

    def test_explicit_path_and_prefix(self, config, sink, tmp_path, make_export):
        """Path and prefix arguments override the config."""
        other = tmp_path / "other"
        other.mkdir()
        make_export(other / "ecobee-1.csv", ["2024-01-15,10:00:00,heat,heatStage1On,Home,,78,70,68.5,40,32,5,0,0,0"])

        result = TelemetryPipeline(config, sink=sink).convert_exports(data_path=other, prefix="ecobee-")
        assert [p.name for p in result.processed] == ["ecobee-1.csv"]

    def test_unconfigured_data_path(self, config, sink):
        """No data path anywhere is a config error."""
        config.csv_import.data_path = None
        with pytest.raises(ConfigurationError):
            TelemetryPipeline(config, sink=sink).convert_exports()

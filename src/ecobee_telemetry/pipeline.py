"""
Ingestion runs.

Three entry points share the same reshape-and-emit core:

1. ``poll``: refresh the token if needed, check the thermostat summary for a
   new runtime revision, fetch the report window since the last checkpoint,
   archive it, push its rows and advance the checkpoint.
2. ``process_file``: push a previously archived report without touching
   the checkpoint.
3. ``convert_exports``: push the rows of CSV export files.

The checkpoint is only written once every batch of a poll has been pushed;
any error before that leaves it as it was so the next run fetches the same
window again.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ecobee_telemetry.checkpoint import Checkpoint, CheckpointStore, TokenStore
from ecobee_telemetry.core.config import TelemetryConfiguration
from ecobee_telemetry.core.errors import (
    AuthenticationError,
    ConfigurationError,
    ReportFormatError,
)
from ecobee_telemetry.platform.ecobee_client import (
    AccessToken,
    ApiResult,
    ApiStatus,
    EcobeeClient,
    revision_entries,
)
from ecobee_telemetry.platform.influx_client import InfluxPush
from ecobee_telemetry.report.csv_export import (
    find_export_files,
    read_export_file,
    remove_processed,
)
from ecobee_telemetry.report.duty_cycle import DutyCycleState
from ecobee_telemetry.report.emitter import MetricEmitter, MetricsSink
from ecobee_telemetry.report.intervals import RuntimeWindow, runtime_intervals
from ecobee_telemetry.report.reshaper import ReportReshaper, RuntimeReport


logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of pushing one report or one export file."""
    rows_emitted: int = 0
    rows_skipped: int = 0
    batches_pushed: int = 0
    points_written: int = 0
    checkpoint: Optional[str] = None
    window: Optional[RuntimeWindow] = None
    archive_path: Optional[Path] = None
    fetched: bool = True
    message: str = ""


@dataclass
class ConvertResult:
    """Outcome of a CSV export import."""
    processed: List[Path] = field(default_factory=list)
    rejected: List[Path] = field(default_factory=list)
    rows_emitted: int = 0
    batches_pushed: int = 0


class TelemetryPipeline:
    """
    Wires configuration, clients and stores into ingestion runs.

    Clients are created lazily so a CSV import never needs ecobee
    credentials and tests can inject their own.
    """

    def __init__(
        self,
        config: TelemetryConfiguration,
        ecobee_client: Optional[EcobeeClient] = None,
        sink: Optional[MetricsSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Loaded configuration
            ecobee_client: API client (created from config when omitted)
            sink: Metrics sink (an InfluxPush built from config when omitted)
            clock: Returns the current time; the wall clock when omitted
        """
        self.config = config
        self._ecobee_client = ecobee_client
        self._sink = sink
        self._clock = clock
        self.checkpoints = CheckpointStore(config.state.directory)
        self.tokens = TokenStore(config.state.directory)

    @property
    def ecobee_client(self) -> EcobeeClient:
        """Get or create EcobeeClient."""
        if self._ecobee_client is None:
            self._ecobee_client = EcobeeClient(
                api_key=self.config.ecobee.api_key,
                thermostat_id=self.config.ecobee.thermostat_id,
                base_url=self.config.ecobee.base_url,
                timeout=self.config.ecobee.timeout_seconds,
            )
        return self._ecobee_client

    @property
    def sink(self) -> MetricsSink:
        """Get or create the InfluxDB sink."""
        if self._sink is None:
            self._sink = InfluxPush.from_config(self.config.influx)
        return self._sink

    def _new_emitter(self) -> MetricEmitter:
        return MetricEmitter(self.sink, prefix=self.config.influx.prefix)

    # --- Token handling ---

    def _call_with_refresh(
        self,
        token: AccessToken,
        call: Callable[[str], ApiResult],
        what: str,
    ) -> Tuple[AccessToken, ApiResult]:
        """
        Run ``call`` and, if the token expired, refresh it and run it once more.

        Returns:
            The token now in use and the successful result

        Raises:
            AuthenticationError: If the token is still rejected after refreshing
        """
        result = call(token.access_token)
        if result.status is ApiStatus.OK:
            return token, result

        logger.info(f"Access token expired during {what}, refreshing")
        token = self.ecobee_client.refresh_access_token(token.refresh_token)
        self.tokens.save(token)

        result = call(token.access_token)
        if result.status is ApiStatus.TOKEN_EXPIRED:
            raise AuthenticationError(f"Access token rejected after refresh during {what}")
        return token, result

    # --- Shared core ---

    def push_report(self, data: Dict[str, Any]) -> RunResult:
        """
        Reshape a runtime report and push one batch per usable row.

        Returns:
            RunResult whose ``checkpoint`` is the GMT timestamp of the last
            row emitted, or ``None`` when no row was emitted
        """
        report = RuntimeReport.from_json(data)
        reshaper = ReportReshaper(zone=self.config.tzinfo)
        emitter = self._new_emitter()
        state = DutyCycleState()
        result = RunResult()

        for row in reshaper.reshape(report):
            emitted = emitter.emit(row, state)
            if emitted.written:
                result.batches_pushed += 1
                result.points_written += emitted.written_count

        result.rows_emitted = reshaper.emitted
        result.rows_skipped = reshaper.skipped
        result.checkpoint = reshaper.checkpoint
        logger.info(
            f"Report for thermostat {report.thermostat_id or '?'}: "
            f"{result.rows_emitted} rows emitted, {result.rows_skipped} skipped, "
            f"{result.batches_pushed} batches pushed"
        )
        return result

    # --- Entry points ---

    def poll(self, force: bool = False) -> RunResult:
        """
        Fetch and push new runtime data from the ecobee API.

        Args:
            force: Fetch a report even if the runtime revision is unchanged

        Returns:
            RunResult; ``fetched`` is False when no new data was available
        """
        thermostat_id = self.config.ecobee.thermostat_id
        token = self.tokens.load()
        checkpoint = self.checkpoints.load(thermostat_id)

        token, summary = self._call_with_refresh(
            token, self.ecobee_client.thermostat_summary, "thermostat summary poll"
        )
        runtime_update = self._apply_summary(checkpoint, summary.payload)

        if not runtime_update and not force:
            logger.info("Runtime revision unchanged, nothing to fetch")
            self.checkpoints.save(checkpoint)
            return RunResult(fetched=False, message="runtime revision unchanged")

        now = self._clock() if self._clock else None
        window = runtime_intervals(
            checkpoint.last_data,
            now=now,
            default_lookback=timedelta(hours=self.config.state.default_lookback_hours),
        )
        logger.info(
            f"Fetching runtime window {window.start_date}/{window.start_interval} "
            f"to {window.end_date}/{window.end_interval}"
        )

        token, report = self._call_with_refresh(
            token,
            lambda access: self.ecobee_client.runtime_report(
                access,
                window,
                self.config.ecobee.columns,
                self.config.ecobee.include_sensors,
            ),
            "runtime report fetch",
        )

        archive_path = self.checkpoints.archive_report(window.archive_name, report.payload)
        result = self.push_report(report.payload)
        result.window = window
        result.archive_path = archive_path

        if result.checkpoint:
            logger.info(f"Advancing checkpoint from {checkpoint.last_data} to {result.checkpoint}")
            checkpoint.last_data = result.checkpoint
        else:
            logger.info(f"No rows emitted, checkpoint left at {checkpoint.last_data}")
        self.checkpoints.save(checkpoint)
        return result

    def _apply_summary(self, checkpoint: Checkpoint, summary: Dict[str, Any]) -> bool:
        thermostat_id = self.config.ecobee.thermostat_id
        for entry in revision_entries(summary):
            if entry.id == thermostat_id:
                runtime_update = checkpoint.apply_revision(entry)
                logger.info(
                    f"Thermostat {entry.id} ({entry.name}) connected={entry.connected} "
                    f"runtime revision {entry.runtime_revision}"
                )
                return runtime_update
        raise ConfigurationError(
            f"Thermostat {thermostat_id} is not registered to this account",
            details={"registered": [e.id for e in revision_entries(summary)]},
        )

    def process_file(self, path: Path) -> RunResult:
        """Push a saved runtime report; the checkpoint is left alone."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ReportFormatError(f"Cannot read report file {path}", cause=e)
        return self.push_report(data)

    def convert_exports(
        self,
        data_path: Optional[Path] = None,
        prefix: Optional[str] = None,
    ) -> ConvertResult:
        """
        Push every matching CSV export file in ``data_path``.

        Each file gets its own duty-cycle state. Rejected files are left in
        place; processed files are deleted when ``delete_processed`` is set.
        """
        csv_config = self.config.csv_import
        directory = Path(data_path) if data_path else csv_config.data_path
        if directory is None:
            raise ConfigurationError("csv_import.data_path is not configured")
        if prefix is None:
            prefix = csv_config.data_prefix

        files = find_export_files(directory, prefix)
        logger.info(f"Found {len(files)} export files in {directory}")

        result = ConvertResult()
        for path in files:
            export = read_export_file(path)
            if not export.good:
                result.rejected.append(path)
                continue

            reshaper = ReportReshaper(zone=self.config.tzinfo)
            emitter = self._new_emitter()
            state = DutyCycleState()
            for row in reshaper.reshape_rows(export.columns, export.rows):
                if emitter.emit(row, state).written:
                    result.batches_pushed += 1

            result.rows_emitted += reshaper.emitted
            result.processed.append(path)
            logger.info(f"{path.name}: {reshaper.emitted} rows emitted, {reshaper.skipped} skipped")

            if csv_config.delete_processed:
                remove_processed(path)

        return result

"""
Persistent state between runs.

The checkpoint (``thermostat.yaml``) records the thermostat's revision
markers from the last summary poll and the GMT timestamp of the last data
row pushed. The token store (``accessToken.json``) keeps the OAuth token pair
returned by the last refresh. Both live in the configured state directory
and are replaced atomically on save so an aborted run never leaves a
half-written file behind.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ecobee_telemetry.core.errors import AuthenticationError
from ecobee_telemetry.platform.ecobee_client import AccessToken, RevisionEntry


logger = logging.getLogger(__name__)


CHECKPOINT_FILE_NAME = "thermostat.yaml"
TOKEN_FILE_NAME = "accessToken.json"
REPORTS_DIR_NAME = "reports"


def _replace_file(path: Path, text: str) -> None:
    """Write ``text`` next to ``path`` and move it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    os.replace(tmp, path)


@dataclass
class Checkpoint:
    """Revision markers and last processed data timestamp."""
    thermostat_id: str = ""
    name: str = ""
    connected: bool = False
    thermostat_revision: str = ""
    alerts_revision: str = ""
    runtime_revision: str = ""
    interval_revision: str = ""
    last_data: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        result = {
            "thermostat_id": self.thermostat_id,
            "name": self.name,
            "connected": self.connected,
            "revisions": {
                "thermostat": self.thermostat_revision,
                "alerts": self.alerts_revision,
                "runtime": self.runtime_revision,
                "interval": self.interval_revision,
            },
        }
        if self.last_data:
            result["last_data"] = self.last_data
        if self.updated_at:
            result["updated_at"] = self.updated_at
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        revisions = data.get("revisions", {}) or {}
        last_data = data.get("last_data")
        return cls(
            thermostat_id=str(data.get("thermostat_id", "") or ""),
            name=str(data.get("name", "") or ""),
            connected=bool(data.get("connected", False)),
            thermostat_revision=str(revisions.get("thermostat", "") or ""),
            alerts_revision=str(revisions.get("alerts", "") or ""),
            runtime_revision=str(revisions.get("runtime", "") or ""),
            interval_revision=str(revisions.get("interval", "") or ""),
            last_data=str(last_data) if last_data else None,
            updated_at=data.get("updated_at"),
        )

    def apply_revision(self, entry: RevisionEntry) -> bool:
        """
        Record a summary poll entry.

        Returns:
            True when the runtime revision changed, i.e. new runtime data exists
        """
        runtime_update = entry.runtime_revision != self.runtime_revision
        self.name = entry.name
        self.connected = entry.connected
        self.thermostat_revision = entry.thermostat_revision
        self.alerts_revision = entry.alerts_revision
        self.runtime_revision = entry.runtime_revision
        self.interval_revision = entry.interval_revision
        return runtime_update


class CheckpointStore:
    """Loads and saves the checkpoint file in the state directory."""

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)
        self.path = self.state_dir / CHECKPOINT_FILE_NAME
        self.reports_dir = self.state_dir / REPORTS_DIR_NAME

    def exists(self) -> bool:
        return self.path.exists()

    def load(self, thermostat_id: str = "") -> Checkpoint:
        """
        Load the checkpoint, or a fresh one when the file is missing or unreadable.

        A checkpoint recorded for a different thermostat is not reused.
        """
        if not self.path.exists():
            logger.info(f"No checkpoint at {self.path}, starting fresh")
            return Checkpoint(thermostat_id=thermostat_id)

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            checkpoint = Checkpoint.from_dict(data)
        except (OSError, yaml.YAMLError, AttributeError) as e:
            logger.warning(f"Failed to load checkpoint {self.path}: {e}")
            return Checkpoint(thermostat_id=thermostat_id)

        if thermostat_id and checkpoint.thermostat_id and checkpoint.thermostat_id != thermostat_id:
            logger.warning(
                f"Checkpoint belongs to thermostat {checkpoint.thermostat_id}, "
                f"not {thermostat_id}; starting fresh"
            )
            return Checkpoint(thermostat_id=thermostat_id)

        if thermostat_id:
            checkpoint.thermostat_id = thermostat_id
        return checkpoint

    def save(self, checkpoint: Checkpoint) -> None:
        checkpoint.updated_at = datetime.now(timezone.utc).isoformat()
        _replace_file(
            self.path,
            yaml.dump(
                checkpoint.to_dict(),
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            ),
        )
        logger.debug(f"Saved checkpoint to {self.path}")

    def archive_report(self, name: str, report: Dict[str, Any]) -> Path:
        """Write a fetched report as pretty JSON under ``reports/``."""
        path = self.reports_dir / name
        _replace_file(path, json.dumps(report, indent=4) + "\n")
        logger.info(f"Archived report to {path}")
        return path


class TokenStore:
    """The ``accessToken.json`` file holding the current token pair."""

    def __init__(self, state_dir: Path):
        self.path = Path(state_dir) / TOKEN_FILE_NAME

    def load(self) -> AccessToken:
        """
        Raises:
            AuthenticationError: If the token file is missing or unreadable
        """
        if not self.path.exists():
            raise AuthenticationError(
                f"Token file not found: {self.path}",
                details={"hint": "Authorize the application and save the token response there"},
            )
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise AuthenticationError(f"Token file is unreadable: {self.path}", cause=e)
        if not isinstance(data, dict):
            raise AuthenticationError(f"Token file is not a JSON object: {self.path}")
        return AccessToken.from_dict(data)

    def save(self, token: AccessToken) -> None:
        _replace_file(self.path, json.dumps(token.to_dict(), indent=4) + "\n")
        logger.debug(f"Saved access token to {self.path}")

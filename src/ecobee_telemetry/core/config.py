"""
Configuration management for ecobee telemetry.

Supports YAML configuration files with environment variable interpolation.
A ``.env`` file in the working directory is loaded first so secrets such as
the ecobee API key can stay out of the YAML file.
"""

import os
import re
from dataclasses import dataclass, field
from datetime import timedelta, timezone, tzinfo
from pathlib import Path
from typing import Optional, List, Dict, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError


# Load .env file if present
load_dotenv()


DEFAULT_CONFIG_PATH = Path("ecobee.yaml")
DEFAULT_STATE_DIR = Path("~/.config/ecoBeeApi")

DEFAULT_COLUMNS = [
    "hvacMode",
    "zoneHvacMode",
    "zoneClimate",
    "zoneAveTemp",
    "auxHeat1",
    "compCool1",
    "fan",
    "zoneHeatTemp",
    "zoneCoolTemp",
    "outdoorTemp",
    "outdoorHumidity",
    "wind",
]

_OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


def _interpolate_env_vars(value: str) -> str:
    """Replace ${VAR} or $VAR patterns with environment variable values."""
    if not isinstance(value, str):
        return value

    pattern = r"\$\{([^}]+)\}|\$([A-Z_][A-Z0-9_]*)"

    def replace(match):
        var_name = match.group(1) or match.group(2)
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise ConfigurationError(
                f"Environment variable '{var_name}' is not set",
                details={"variable": var_name},
            )
        return env_value

    return re.sub(pattern, replace, value)


def _interpolate_dict(d: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively interpolate environment variables in a dictionary."""
    result = {}
    for key, value in d.items():
        if isinstance(value, dict):
            result[key] = _interpolate_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _interpolate_dict(v) if isinstance(v, dict) else _interpolate_env_vars(v)
                for v in value
            ]
        elif isinstance(value, str):
            result[key] = _interpolate_env_vars(value)
        else:
            result[key] = value
    return result


def resolve_timezone(value: Optional[str]) -> Optional[tzinfo]:
    """
    Turn a configured timezone into a ``tzinfo``.

    Accepts a fixed offset (``-0500``, ``+05:30``) or an IANA zone name.
    ``None`` means "use the process local zone at the record's own date".
    """
    if value is None or str(value).strip() == "":
        return None

    text = str(value).strip()
    match = _OFFSET_PATTERN.match(text)
    if match:
        sign, hours, minutes = match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes))
        return timezone(-delta if sign == "-" else delta)

    if text.upper() in ("UTC", "GMT", "Z"):
        return timezone.utc

    try:
        return ZoneInfo(text)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone: {text}", cause=e)


@dataclass
class EcobeeConfig:
    """ecobee cloud API settings."""

    api_key: str = ""
    thermostat_id: str = ""
    base_url: str = "https://api.ecobee.com"
    columns: List[str] = field(default_factory=lambda: list(DEFAULT_COLUMNS))
    include_sensors: bool = True
    timeout_seconds: int = 30

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EcobeeConfig":
        columns = data.get("columns", DEFAULT_COLUMNS)
        if isinstance(columns, str):
            columns = [c.strip() for c in columns.split(",") if c.strip()]
        return cls(
            api_key=str(data.get("api_key", "") or ""),
            thermostat_id=str(data.get("thermostat_id", "") or ""),
            base_url=str(data.get("base_url", "https://api.ecobee.com")).rstrip("/"),
            columns=list(columns),
            include_sensors=bool(data.get("include_sensors", True)),
            timeout_seconds=int(data.get("timeout_seconds", 30)),
        )


@dataclass
class InfluxConfig:
    """InfluxDB write endpoint settings."""

    host: str = "influx"
    port: int = 8086
    tls: bool = False
    database: str = "ecobee"
    retention_policy: str = "autogen"
    prefix: str = "Home "
    username: Optional[str] = None
    password: Optional[str] = None
    timeout_seconds: int = 30

    @property
    def url(self) -> str:
        scheme = "https" if self.tls else "http"
        return f"{scheme}://{self.host}:{self.port}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InfluxConfig":
        return cls(
            host=str(data.get("host", "influx")),
            port=int(data.get("port", 8086)),
            tls=bool(data.get("tls", False)),
            database=str(data.get("database", "ecobee")),
            retention_policy=str(data.get("retention_policy", "autogen")),
            prefix=str(data.get("prefix", "Home ")),
            username=data.get("username"),
            password=data.get("password"),
            timeout_seconds=int(data.get("timeout_seconds", 30)),
        )


@dataclass
class CsvImportConfig:
    """Settings for importing ecobee CSV export files."""

    data_path: Optional[Path] = None
    data_prefix: str = ""
    delete_processed: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CsvImportConfig":
        data_path = data.get("data_path")
        return cls(
            data_path=Path(data_path).expanduser() if data_path else None,
            data_prefix=str(data.get("data_prefix", "") or ""),
            delete_processed=bool(data.get("delete_processed", False)),
        )


@dataclass
class StateConfig:
    """Where checkpoint, tokens and archived reports live."""

    directory: Path = DEFAULT_STATE_DIR
    default_lookback_hours: int = 24

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateConfig":
        return cls(
            directory=Path(data.get("directory", DEFAULT_STATE_DIR)).expanduser(),
            default_lookback_hours=int(data.get("default_lookback_hours", 24)),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class TelemetryConfiguration:
    """Complete ingestion configuration."""

    ecobee: EcobeeConfig = field(default_factory=EcobeeConfig)
    influx: InfluxConfig = field(default_factory=InfluxConfig)
    csv_import: CsvImportConfig = field(default_factory=CsvImportConfig)
    state: StateConfig = field(default_factory=StateConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    timezone: Optional[str] = None
    config_path: Optional[Path] = None

    @property
    def tzinfo(self) -> Optional[tzinfo]:
        return resolve_timezone(self.timezone)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "TelemetryConfiguration":
        """
        Load configuration from ``path`` or ``ecobee.yaml`` in the working directory.

        Args:
            path: Explicit config file path (must exist when given)

        Returns:
            TelemetryConfiguration instance, defaults when no file is found
        """
        if path is not None:
            path = Path(path)
            if not path.exists():
                raise ConfigurationError(f"Config file not found: {path}")
        elif DEFAULT_CONFIG_PATH.exists():
            path = DEFAULT_CONFIG_PATH
        else:
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}
        if not isinstance(raw_config, dict):
            raise ConfigurationError(f"Config root must be a mapping: {path}")

        return cls.from_dict(_interpolate_dict(raw_config), config_path=path)

    @classmethod
    def from_dict(
        cls, config: Dict[str, Any], config_path: Optional[Path] = None
    ) -> "TelemetryConfiguration":
        logging_config = config.get("logging", {}) or {}
        instance = cls(
            ecobee=EcobeeConfig.from_dict(config.get("ecobee", {}) or {}),
            influx=InfluxConfig.from_dict(config.get("influx", {}) or {}),
            csv_import=CsvImportConfig.from_dict(config.get("csv_import", {}) or {}),
            state=StateConfig.from_dict(config.get("state", {}) or {}),
            logging=LoggingConfig(
                level=str(logging_config.get("level", "INFO")).upper(),
                file=logging_config.get("file"),
            ),
            timezone=config.get("timezone"),
            config_path=config_path,
        )
        # Fail early on a bad timezone rather than in the middle of a run.
        resolve_timezone(instance.timezone)
        return instance

    def validate(self, for_polling: bool = True) -> List[str]:
        """
        Validate the configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if for_polling:
            if not self.ecobee.api_key:
                errors.append(
                    "ecobee.api_key is required. Set ECOBEE_API_KEY in .env "
                    "and reference it as ${ECOBEE_API_KEY} in ecobee.yaml"
                )
            if not self.ecobee.thermostat_id:
                errors.append("ecobee.thermostat_id is required")
            if not self.ecobee.columns:
                errors.append("ecobee.columns must name at least one report column")

        if self.influx.port <= 0:
            errors.append(f"influx.port must be positive, got {self.influx.port}")

        if self.state.default_lookback_hours <= 0:
            errors.append("state.default_lookback_hours must be positive")

        return errors


def generate_config_template() -> str:
    """Generate an ecobee.yaml template."""
    columns = ",".join(DEFAULT_COLUMNS)
    return f"""# ecobee telemetry configuration
# Generated by ecobee-telemetry init

ecobee:
  api_key: ${{ECOBEE_API_KEY}}
  thermostat_id: "000000000000"
  # columns: {columns}
  include_sensors: true

influx:
  host: influx
  port: 8086
  tls: false
  database: ecobee
  retention_policy: autogen
  prefix: "Home "

# Fixed offset ("-0500") or IANA zone name ("America/Toronto").
# Leave unset to use this machine's local zone.
# timezone: America/Toronto

csv_import:
  # data_path: ~/Downloads
  data_prefix: report-
  delete_processed: false

state:
  directory: ~/.config/ecoBeeApi
  default_lookback_hours: 24

logging:
  level: INFO
"""

"""
Reader for the CSV files the ecobee web portal exports.

An export file starts with a UTF-8 byte-order mark on its first line,
followed by ``#`` comment lines describing the thermostat, one header line
and the data lines. Every data line must have exactly as many fields as the
header; the first bad line marks the whole file as rejected.

Header names carry display units (``Current Temp (F)``) and use the
portal's wording. ``ExportFile.columns`` maps them onto the runtime report
column names so both sources share one classifier.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .classifier import (
    AUX_HEAT,
    COMP_COOL,
    COOL_SETPOINT,
    FAN,
    HEAT_SETPOINT,
    HVAC_MODE,
    ZONE_CLIMATE,
    ZONE_HVAC_MODE,
)


logger = logging.getLogger(__name__)


FOOTPRINT = "\ufeff"

CSV_COLUMN_ALIASES = {
    "System Setting": HVAC_MODE,
    "System Mode": ZONE_HVAC_MODE,
    "Calendar Event": ZONE_CLIMATE,
    "Cool Set Temp": COOL_SETPOINT,
    "Heat Set Temp": HEAT_SETPOINT,
    "Cool Stage 1": COMP_COOL,
    "Heat Stage 1": AUX_HEAT,
    "Fan": FAN,
}


def header_name(raw: str) -> str:
    """Header field without its parenthesised unit: ``"Fan (sec)"`` -> ``"Fan"``."""
    name = raw.strip()
    cut = name.find(" (")
    if cut != -1:
        name = name[:cut]
    return name


def csv_column(name: str) -> str:
    return CSV_COLUMN_ALIASES.get(name, name)


def split_line(line: str) -> List[str]:
    """Split on every comma, keeping empty fields."""
    return line.rstrip("\r\n").split(",")


@dataclass
class ExportFile:
    """Contents of one CSV export file."""

    path: Path
    header: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    good: bool = True
    reason: str = ""

    @property
    def columns(self) -> List[str]:
        """Canonical column names after the leading date and time fields."""
        return [csv_column(name) for name in self.header[2:]]

    def reject(self, reason: str) -> "ExportFile":
        self.good = False
        self.reason = reason
        logger.warning(f"Rejecting {self.path.name}: {reason}")
        return self


def read_export_file(path: Path) -> ExportFile:
    """
    Read an export file.

    Args:
        path: File to read

    Returns:
        ExportFile; ``good`` is False when the footprint is missing, the
        header is absent or a data line has the wrong number of fields.
        Rows read before a bad line are kept for inspection but a rejected
        file is not meant to be emitted.
    """
    export = ExportFile(path=Path(path))

    with open(path, "r", encoding="utf-8", newline="") as f:
        first = f.readline()
        if not first.startswith(FOOTPRINT):
            return export.reject("missing byte-order mark footprint")

        for line_number, line in enumerate(f, start=2):
            text = line.rstrip("\r\n")
            if not text or text.startswith("#"):
                continue

            if not export.header:
                export.header = [header_name(h) for h in split_line(text)]
                if len(export.header) < 3:
                    return export.reject(f"header on line {line_number} has too few fields")
                continue

            fields = split_line(text)
            if len(fields) != len(export.header):
                return export.reject(
                    f"line {line_number} has {len(fields)} fields, "
                    f"header has {len(export.header)}"
                )
            export.rows.append(fields)

    if not export.header:
        return export.reject("no header line")

    logger.debug(f"Read {len(export.rows)} rows from {export.path.name}")
    return export


def find_export_files(directory: Path, prefix: str = "") -> List[Path]:
    """Regular files in ``directory`` whose name starts with ``prefix``, sorted."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.name.startswith(prefix)
    )


def remove_processed(path: Path) -> Optional[str]:
    """Delete a processed file, returning an error description on failure."""
    try:
        Path(path).unlink()
    except OSError as e:
        logger.warning(f"Could not delete {path}: {e}")
        return str(e)
    logger.info(f"Deleted processed file {path}")
    return None

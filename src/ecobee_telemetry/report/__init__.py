"""
Runtime report processing.

Tokenizing, classifying and reshaping report rows, reconstructing equipment
duty cycles and turning the result into metric points.
"""

from .tokenizer import TokenSequence, tokenize
from .classifier import Bucket, CategorizedRecord, classify_column, canonical_column
from .sensors import Sensor, SensorManifest, SensorType
from .intervals import RuntimeWindow, runtime_intervals, local_to_gmt, interval_index
from .reshaper import RuntimeReport, ReshapedRow, ReportReshaper
from .duty_cycle import Device, DutyCycleState, DeviceReading, advance
from .emitter import MetricEmitter, MetricPoint, escape_name
from .csv_export import ExportFile, read_export_file, find_export_files

__all__ = [
    "TokenSequence",
    "tokenize",
    "Bucket",
    "CategorizedRecord",
    "classify_column",
    "canonical_column",
    "Sensor",
    "SensorManifest",
    "SensorType",
    "RuntimeWindow",
    "runtime_intervals",
    "local_to_gmt",
    "interval_index",
    "RuntimeReport",
    "ReshapedRow",
    "ReportReshaper",
    "Device",
    "DutyCycleState",
    "DeviceReading",
    "advance",
    "MetricEmitter",
    "MetricPoint",
    "escape_name",
    "ExportFile",
    "read_export_file",
    "find_export_files",
]

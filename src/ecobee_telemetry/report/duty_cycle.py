"""
Equipment on/off reconstruction from per-interval run seconds.

The report only says how many seconds of each five-minute interval the fan,
heat and cool stages ran. Walking the rows in order, a partial interval
means the equipment switched during it; the switch instant is placed inside
the interval using the reported seconds.

One ``DutyCycleState`` belongs to one report or CSV file run. Rows must be
fed in report order; a fresh state starts with everything off.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .classifier import AUX_HEAT, COMP_COOL, FAN, CategorizedRecord
from .intervals import INTERVAL_SECONDS


logger = logging.getLogger(__name__)


class Device(Enum):
    FAN = "fan"
    HEAT = "heat"
    COOL = "cool"

    @property
    def column(self) -> str:
        """Operations-time column holding this device's run seconds."""
        return DEVICE_COLUMNS[self]


DEVICE_COLUMNS = {
    Device.FAN: FAN,
    Device.HEAT: AUX_HEAT,
    Device.COOL: COMP_COOL,
}


@dataclass
class DutyCycleState:
    """Carried on/off state of the three devices for one run."""
    fan: bool = False
    heat: bool = False
    cool: bool = False

    def is_active(self, device: Device) -> bool:
        return getattr(self, device.value)

    def set_active(self, device: Device, active: bool) -> None:
        setattr(self, device.value, active)


@dataclass(frozen=True)
class DeviceReading:
    """State of one device after a row, with the instant it applies to."""
    device: Device
    active: bool
    timestamp: int
    changed: bool = False


def parse_seconds(raw: Optional[str]) -> Optional[int]:
    """Parse a run-seconds value; ``None`` when empty, unparsable or out of range."""
    if raw is None or raw == "":
        return None
    try:
        seconds = int(float(raw))
    except (ValueError, OverflowError):
        return None
    if not 0 <= seconds <= INTERVAL_SECONDS:
        logger.warning(f"Run time {raw!r} outside 0-{INTERVAL_SECONDS} seconds, ignoring")
        return None
    return seconds


def advance(
    state: DutyCycleState,
    device: Device,
    seconds: int,
    interval_start: int,
) -> DeviceReading:
    """
    Apply one interval's run seconds to ``state`` and return the device reading.

    Args:
        state: Run state, mutated in place
        device: Device the seconds belong to
        seconds: Seconds active within the interval (0-300)
        interval_start: Epoch seconds of the row's own timestamp

    Returns:
        DeviceReading; its timestamp is offset inside the interval only
        when a partial interval flipped the state
    """
    active = state.is_active(device)

    if seconds == 0:
        if active:
            state.set_active(device, False)
            return DeviceReading(device, False, interval_start, changed=True)
        return DeviceReading(device, False, interval_start)

    if seconds == INTERVAL_SECONDS:
        if not active:
            state.set_active(device, True)
            return DeviceReading(device, True, interval_start, changed=True)
        return DeviceReading(device, True, interval_start)

    # Partial interval: the device switched somewhere inside it.
    active = not active
    state.set_active(device, active)
    if active:
        timestamp = interval_start + seconds
    else:
        timestamp = interval_start - (INTERVAL_SECONDS - seconds)
    return DeviceReading(device, active, timestamp, changed=True)


def device_readings(
    state: DutyCycleState,
    record: CategorizedRecord,
    interval_start: int,
) -> List[DeviceReading]:
    """Advance every device that has a readable run time in ``record``."""
    readings = []
    for device in Device:
        seconds = parse_seconds(record.seconds_active(device.column))
        if seconds is None:
            continue
        readings.append(advance(state, device, seconds, interval_start))
    return readings

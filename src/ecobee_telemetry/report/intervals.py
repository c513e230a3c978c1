"""
Runtime report interval windows and local/GMT time conversion.

The ecobee API addresses a day in 288 five-minute intervals. Query windows
are always expressed in GMT, while report rows carry the thermostat's local
date and time.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Tuple


logger = logging.getLogger(__name__)


GMT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DATE_FORMAT = "%Y-%m-%d"
INTERVAL_SECONDS = 300
INTERVALS_PER_DAY = 288

_TIME_FORMATS = ("%H:%M:%S", "%H:%M")


def interval_index(moment: datetime) -> int:
    """Five-minute interval of the day containing ``moment`` (0-287)."""
    return (moment.hour * 60 + moment.minute) // 5


def format_gmt(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(GMT_FORMAT)


def parse_gmt(text: Optional[str]) -> Optional[datetime]:
    """Parse a checkpoint timestamp; ``None`` when missing or malformed."""
    if not text:
        return None
    try:
        return datetime.strptime(text.strip(), GMT_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


@dataclass(frozen=True)
class RuntimeWindow:
    """Query window for one runtime report request."""

    start_date: str
    start_interval: int
    end_date: str
    end_interval: int
    now_gmt: str

    def as_tuple(self) -> Tuple[str, int, str, int, str]:
        return (
            self.start_date,
            self.start_interval,
            self.end_date,
            self.end_interval,
            self.now_gmt,
        )

    @property
    def archive_name(self) -> str:
        """File name used when archiving the report fetched for this window."""
        return (
            f"runtime-{self.start_date}T{self.start_interval:03d}"
            f"--{self.end_date}T{self.end_interval:03d}.json"
        )


def runtime_intervals(
    last_gmt: Optional[str],
    now: Optional[datetime] = None,
    default_lookback: timedelta = timedelta(hours=24),
) -> RuntimeWindow:
    """
    Compute the next report window from the last processed GMT timestamp.

    A missing or malformed ``last_gmt`` does not abort the run: the window
    starts ``default_lookback`` before ``now`` instead and a warning is logged.

    Args:
        last_gmt: Checkpoint timestamp in ``YYYY-MM-DDTHH:MM:SSZ`` form
        now: Current time (defaults to the wall clock)
        default_lookback: Window length used when the checkpoint is unusable

    Returns:
        RuntimeWindow with GMT dates and interval indexes
    """
    now_gmt = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)

    start = parse_gmt(last_gmt)
    if start is None:
        start = now_gmt - default_lookback
        if last_gmt:
            logger.warning(
                f"Checkpoint {last_gmt!r} is not a {GMT_FORMAT} timestamp, "
                f"starting from {format_gmt(start)}"
            )
        else:
            logger.info(f"No checkpoint recorded, starting from {format_gmt(start)}")

    window = RuntimeWindow(
        start_date=start.strftime(DATE_FORMAT),
        start_interval=interval_index(start),
        end_date=now_gmt.strftime(DATE_FORMAT),
        end_interval=interval_index(now_gmt),
        now_gmt=now_gmt.strftime(GMT_FORMAT),
    )
    logger.debug(f"Runtime window: {window}")
    return window


def parse_local(date_text: str, time_text: str, zone: Optional[tzinfo] = None) -> datetime:
    """
    Combine a report row's local date and time into an aware datetime.

    With ``zone`` set the date is interpreted in that zone, so a named zone
    applies the offset that was valid on that date. Without it the process
    local zone is used, again evaluated at the row's own date.

    Raises:
        ValueError: If the date or time cannot be parsed
    """
    day = datetime.strptime(date_text.strip(), DATE_FORMAT)
    for fmt in _TIME_FORMATS:
        try:
            clock = datetime.strptime(time_text.strip(), fmt).time()
            break
        except ValueError:
            continue
    else:
        raise ValueError(f"time data {time_text!r} does not match HH:MM[:SS]")

    naive = datetime.combine(day.date(), clock)
    if zone is None:
        return naive.astimezone()
    return naive.replace(tzinfo=zone)


def local_to_gmt(date_text: str, time_text: str, zone: Optional[tzinfo] = None) -> str:
    """GMT-formatted timestamp for a local report date and time."""
    return format_gmt(parse_local(date_text, time_text, zone))


def epoch_seconds(moment: datetime) -> int:
    return int(moment.timestamp())

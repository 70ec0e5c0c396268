"""
Sets the format of messages related to the radar operation (status and errors),
which will be written to the log file configured in LOG_FILE and to the console.
"""
import logging
from datetime import datetime
from zoneinfo import ZoneInfo
from config import LOG_FILE, LOG_LEVEL, LOG_TIMEZONE


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders timestamps in the configured timezone."""

    def __init__(self, *args, timezone: ZoneInfo, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.timezone = timezone

    def formatTime(self, record, datefmt=None):
        ts = datetime.fromtimestamp(record.created, tz=self.timezone)
        if datefmt:
            return ts.strftime(datefmt)
        return ts.isoformat(timespec="seconds")


formatter = TimezoneFormatter(
    fmt="%(asctime)s [%(levelname)s] %(message)s",
    timezone=ZoneInfo(LOG_TIMEZONE),
    datefmt="%Y-%m-%d %H:%M:%S",
)

file_handler = logging.FileHandler(LOG_FILE)
file_handler.setFormatter(formatter)

stream_handler = logging.StreamHandler()
stream_handler.setFormatter(formatter)

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    handlers=[file_handler, stream_handler],
)
logging.getLogger("urllib3").setLevel(logging.WARNING)

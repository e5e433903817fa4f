"""
rewardpayout/logs.py

Logging setup for the service.

Console output in the usual "time [name] LEVEL: message" form, plus an
optional daily JSON-lines file (reward-distribution-YYYY-MM-DD.log) that
carries the structured audit fields.
"""

import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Optional

from .config import LOG_PARAMS

CONSOLE_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, audit fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        audit = getattr(record, "audit", None)
        if isinstance(audit, dict):
            for key, value in audit.items():
                if key != "timestamp":
                    entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DailyFileHandler(logging.FileHandler):
    """Appends to <directory>/<prefix>-YYYY-MM-DD.log, switching file at UTC midnight."""

    def __init__(self, directory: str, prefix: str = LOG_PARAMS["file_prefix"]):
        os.makedirs(directory, exist_ok=True)
        self.directory = directory
        self.prefix = prefix
        self._day = self._today()
        super().__init__(self._path_for(self._day), mode="a", encoding="utf-8", delay=True)

    @staticmethod
    def _today() -> str:
        return time.strftime("%Y-%m-%d", time.gmtime())

    def _path_for(self, day: str) -> str:
        return os.path.join(self.directory, f"{self.prefix}-{day}.log")

    def emit(self, record: logging.LogRecord) -> None:
        day = self._today()
        if day != self._day:
            self.acquire()
            try:
                if self.stream:
                    self.stream.close()
                    self.stream = None
                self._day = day
                self.baseFilename = os.path.abspath(self._path_for(day))
            finally:
                self.release()
        super().emit(record)


def configure_logging(
    level: str = LOG_PARAMS["level"],
    log_dir: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the "rewardpayout" logger tree.

    Args:
        level: Log level name
        log_dir: Directory for the daily JSON file; None disables file logging

    Returns:
        The package root logger
    """
    root = logging.getLogger("rewardpayout")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    if log_dir:
        file_handler = DailyFileHandler(log_dir)
        file_handler.setFormatter(JsonFormatter())
        root.addHandler(file_handler)

    return root

# src/mission_control/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

_OWN_PREFIX = "mission_control."

# Own loggers that only reach the console at WARNING+ (one line per HTTP call).
_CHATTY = {"mission_control.api.transport": logging.WARNING}


class _ConsoleNoiseFilter(logging.Filter):
    """Own logs pass (chatty ones only at their floor); everything else needs ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith(_OWN_PREFIX):
            return record.levelno >= logging.ERROR
        return record.levelno >= _CHATTY.get(record.name, logging.NOTSET)


def setup_logging(
    *,
    log_dir: str | Path = ".local/mission_control",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console on stderr (filtered) plus a full log file in log_dir.

    Call once, before the first log line. Returns the log file path.
    """
    log_file = Path(log_dir) / "mission_control.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.addFilter(_ConsoleNoiseFilter())

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(file_level)

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in (console, file_handler):
        h.setFormatter(fmt)
        root.addHandler(h)
    root.setLevel(min(console_level, file_level))

    # httpx logs every request at INFO.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file

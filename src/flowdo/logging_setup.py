# src/flowdo/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Minimum level shown on the console per logger prefix; anything else needs ERROR.
_CONSOLE_THRESHOLDS: dict[str, int] = {
    "flowdo": logging.NOTSET,
    "apscheduler": logging.WARNING,  # the executor logs every wake-up at INFO
    "py.warnings": logging.ERROR,
}

LOG_MAX_BYTES = 1_000_000
LOG_BACKUPS = 3


class _ConsoleNoiseFilter(logging.Filter):
    """Keep the REPL readable: our own loggers pass, third-party chatter mostly doesn't."""

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, threshold in _CONSOLE_THRESHOLDS.items():
            if record.name == prefix or record.name.startswith(prefix + "."):
                return record.levelno >= threshold
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/flowdo",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    log_name: str = "flowdo.log",
) -> Path:
    """
    Console handler (filtered) on stderr plus a rotating file with everything.

    Replaces any handlers already on the root logger, so call it once at startup.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / log_name

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file

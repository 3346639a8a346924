"""Logging setup shared by the API, the scheduler and the tests."""
from __future__ import annotations

import logging
import sys
from datetime import datetime

from app.config import Settings

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_configured = False


def configure_logging(settings: Settings) -> None:
    """Install console and daily file handlers on the root logger once."""
    global _configured
    if _configured:
        return
    _configured = True

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    if root.handlers:
        return

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    root.addHandler(console)

    try:
        settings.log_directory.mkdir(parents=True, exist_ok=True)
        log_file = settings.log_directory / f"pipeline_{datetime.now().strftime('%Y-%m-%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
        root.addHandler(file_handler)
    except OSError:
        root.warning("Log directory %s unavailable; logging to console only", settings.log_directory)

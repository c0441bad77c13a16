import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
NOISY_LOGGERS = ("playwright", "httpx", "httpcore", "asyncio")

# Unattended runs (cron, the web app's scheduler) append to one file indefinitely.
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3


def _build_handlers(file_path: Optional[str]) -> list[logging.Handler]:
    # stderr only: stdout carries command output (`list-documents --json`).
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8")
        )
    return handlers


def configure_logging(level: str = "INFO", file_path: Optional[str] = None) -> None:
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        handlers=_build_handlers(file_path),
        force=True,  # the CLI reconfigures once the YAML config is loaded
    )

    noisy_level = os.getenv("NOISY_LOG_LEVEL", "WARNING").upper()
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

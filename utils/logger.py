from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Dict

LOG_FILE_NAME = "inbox_tagger.log"

# Third-party loggers that are chatty at INFO.
QUIET_LOGGERS: Dict[str, str] = {
    "googleapiclient.discovery_cache": "ERROR",
    "googleapiclient.discovery": "WARNING",
    "google_auth_oauthlib": "WARNING",
    "urllib3": "WARNING",
}


def configure_logging(log_dir: Path, level: str = "INFO", rich_console: bool = True) -> Path:
    """Log to a rotating file and to the terminal.

    The terminal handler is rich's ``RichHandler`` unless ``rich_console`` is
    false (e.g. when output is piped into another tool).
    """

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME

    if rich_console:
        console_handler = {
            "class": "rich.logging.RichHandler",
            "formatter": "rich",
            "show_path": False,
            "markup": False,
        }
    else:
        console_handler = {"class": "logging.StreamHandler", "formatter": "plain"}

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "file": {"format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s"},
            "plain": {"format": "%(levelname)s | %(name)s | %(message)s"},
            "rich": {"format": "%(message)s", "datefmt": "[%X]"},
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "file",
                "filename": str(log_path),
                "maxBytes": 1_000_000,
                "backupCount": 3,
                "encoding": "utf-8",
            },
            "console": console_handler,
        },
        "loggers": {name: {"level": quiet_level} for name, quiet_level in QUIET_LOGGERS.items()},
        "root": {
            "handlers": ["file", "console"],
            "level": level.upper(),
        },
    }

    logging.config.dictConfig(config)
    logging.getLogger(__name__).debug("Logging to %s at %s", log_path, level)
    return log_path

"""A JSON-lines debug log written to a size-rotated file."""

from __future__ import annotations

import json
import logging
import os
import traceback
from datetime import datetime
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "multinic"
MAX_BYTES = 500 * 1024 * 1024
BACKUP_COUNT = 3

_LEVEL_NAMES = {"WARNING": "warn", "CRITICAL": "fatal"}

logger = logging.getLogger(LOGGER_NAME)


class _JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": _LEVEL_NAMES.get(record.levelname, record.levelname.lower()),
            "ts": datetime.fromtimestamp(record.created)
            .astimezone()
            .isoformat(timespec="milliseconds"),
            "caller": f"{os.path.basename(record.pathname)}:{record.lineno}",
            "msg": record.getMessage(),
        }
        if record.levelno >= logging.ERROR:
            if record.exc_info:
                entry["stacktrace"] = self.formatException(record.exc_info)
            elif record.stack_info:
                entry["stacktrace"] = record.stack_info
            else:
                entry["stacktrace"] = "".join(traceback.format_stack()[:-1])
        return json.dumps(entry)


def initialize_logger(log_file_path: str) -> logging.Logger:
    """Configure the package logger to write debug-level JSON lines to a file."""
    directory = os.path.dirname(log_file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    handler = RotatingFileHandler(
        log_file_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
    )
    handler.setFormatter(_JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger
from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Console logging for the importer.

Lines look like `LABEL message`, or `LABEL row=N message` when the record
was logged with extra={"row": N}. LABEL is one of DEBUG, INFO, WARN, ERROR
and SUMMARY; SUMMARY is a custom level between INFO and WARNING carrying
the final counts of an import.

Library modules use logging.getLogger(__name__) and only ever reach the
console through the "farmer_import" logger configured here.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "set_debug",
    "reset_logging",
]

LOGGER_NAME = "farmer_import"
SUMMARY_LEVEL = 25

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}

_configured: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        row = getattr(record, "row", None)
        prefix = label if row is None else f"{label} row={row}"
        text = f"{prefix} {record.getMessage()}"
        if record.exc_info and record.levelno <= logging.DEBUG:
            text += "\n" + self.formatException(record.exc_info)
        return text


def setup_logging(level: int = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """Attach the labeled stdout handler once and return the app logger.

    Later calls return the already configured logger unchanged.
    """
    global _configured
    if _configured is not None:
        return _configured

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.handlers.clear()
    app_logger.setLevel(level)
    app_logger.propagate = False

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(LabeledFormatter())
    app_logger.addHandler(handler)

    _configured = app_logger
    return app_logger


def get_logger() -> logging.Logger:
    return _configured if _configured is not None else setup_logging()


def set_debug(enabled: bool = True) -> None:
    # handlers carry no level of their own, the logger level decides
    get_logger().setLevel(logging.DEBUG if enabled else logging.INFO)


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger so the next setup_logging() rebinds stdout (tests)."""
    global _configured
    _configured = None

from __future__ import annotations

import copy
import logging
from typing import Any

from service import logging_utils as _logging_backend

# Keys that should be redacted from structured logs
_REDACT_KEYS = {
    "password",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "auth",
    "bearer",
    "cookie",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow-copy record and redact obvious secret-like fields at top level.
    The JSONL writer performs a deep pass as well.
    """
    redacted = copy.copy(record)
    for k in list(redacted.keys()):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_secret"):
            redacted[k] = "***REDACTED***"
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record to the JSONL activity log.
    Falls back to stdlib logging when the log file cannot be written.
    """
    payload = _redact_record(record)
    try:
        _logging_backend.write_activity_log(payload)
        return
    except (OSError, TypeError, ValueError):
        logging.getLogger("greenhouse_watch.activity").debug("activity log write failed", exc_info=True)
    logging.getLogger("greenhouse_watch.activity").info(payload)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record to the JSONL error log.
    Falls back to stdlib logging when the log file cannot be written.
    """
    payload = _redact_record(record)
    try:
        _logging_backend.write_error_log(payload)
        return
    except (OSError, TypeError, ValueError):
        logging.getLogger("greenhouse_watch.error").debug("error log write failed", exc_info=True)
    logging.getLogger("greenhouse_watch.error").error(payload)

"""
Logging setup and helpers for keeping secrets out of log output.

Example:
    from glucose_exporter.logging_utils import redact_sensitive_data
    safe = redact_sensitive_data({'password': 'abc', 'email': 'bob@example.com'})
    # safe == {'password': '***REDACTED***', 'email': 'bob@example.com'}
"""

import json
import logging
from datetime import datetime, timezone

from .constants import DEFAULT_LOG_FORMAT, REDACTED, SENSITIVE_KEYS

# Attributes present on every LogRecord; anything else came in through `extra`
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


def redact_sensitive_data(obj):
    """
    Recursively redacts sensitive fields in dicts/lists.

    Keys are matched case-insensitively against SENSITIVE_KEYS.
    """
    if isinstance(obj, dict):
        return {
            k: (REDACTED if str(k).lower() in SENSITIVE_KEYS else redact_sensitive_data(v))
            for k, v in obj.items()
        }
    elif isinstance(obj, list):
        return [redact_sensitive_data(i) for i in obj]
    else:
        return obj


class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON with standard fields.

    Values passed through ``extra`` are merged into the top-level object.
    """

    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_record:
                log_record[key] = value
        return json.dumps(log_record, default=str)


def setup_logging(level: str = "INFO", log_format: str = "console") -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Logging level name
        log_format: 'console' for plain text, 'json' for one JSON object per line

    Returns:
        The configured root logger
    """
    logger = logging.getLogger()
    logger.setLevel(level.upper())
    # Remove existing handlers
    for h in list(logger.handlers):
        logger.removeHandler(h)

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
    logger.addHandler(handler)
    return logger

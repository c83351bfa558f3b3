"""JSON log lines for the ``sms.*`` loggers.

The gateway modules only emit records; nothing is printed until the embedding
process opts in::

    from ops.structured_logger import enable_sms_logging
    enable_sms_logging("INFO")

Each record becomes one JSON object. The structured fields the gateways pass
via ``extra={"extra": {...}}`` are lifted to the top level, known event fields
first, in a fixed order.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional

from config.settings import settings

SMS_LOGGER = "sms"

EVENT_FIELDS = (
    "event",
    "provider",
    "dest",
    "status_code",
    "message_count",
    "latency_ms",
    "error_type",
    "message",
)

# Never rendered, even if a caller passes them as extra fields.
REDACTED_FIELDS = frozenset({"api_key", "api_secret", "text"})


class SmsJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields: Dict[str, Any] = {}
        if isinstance(getattr(record, "extra", None), dict):
            fields = {k: v for k, v in record.extra.items() if k not in REDACTED_FIELDS}

        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": record.levelname,
            "logger": record.name,
            "service": settings.SERVICE_NAME,
        }
        for key in EVENT_FIELDS:
            if key in fields:
                payload[key] = fields.pop(key)
        payload.setdefault("event", record.getMessage())
        payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def enable_sms_logging(level: Optional[str] = None, stream: Optional[IO[str]] = None) -> logging.Logger:
    """Attach a JSON handler to the ``sms`` logger tree and return that logger.

    Only the ``sms`` hierarchy is touched; the root logger and other
    libraries keep the embedding process's configuration. Calling it again
    replaces the previous handler.
    """
    logger = logging.getLogger(SMS_LOGGER)
    logger.setLevel(level or settings.LOG_LEVEL)
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(SmsJsonFormatter())
    logger.handlers[:] = [handler]
    return logger

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

_LOGGING_CONFIGURED = False

# Structured fields copied from `extra=` onto JSON records
_CONTEXT_FIELDS = ("request_id", "user_id", "business_id", "claim_id", "city", "category")


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": getattr(record, "service", "numtrip_api"),
        }
        for field in _CONTEXT_FIELDS:
            if hasattr(record, field):
                log_record[field] = getattr(record, field)
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def configure_logging(level: str | int = logging.INFO, json_output: bool = False) -> None:
    """
    Configure the root logger once.

    Safe to call multiple times (every app factory call does); later calls are no-ops.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else str(level).upper())
    root.handlers.clear()
    root.addHandler(handler)

    _LOGGING_CONFIGURED = True
